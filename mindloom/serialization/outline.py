"""
Plain-text outline serialization for Mindloom.

Layout of a rendered mindmap:

    ---
    title: AI Mindmap - 2026-10-18T10-00-00
    created_at: '2026-10-18T10:00:00'
    source_files:
    - notes/a.md
    category_schema:
    - Technological
    ---
    # Technological [SOURCES: notes/a.md]
      - AI Research [TAGS: ai] [SOURCES: notes/a.md] [ALSO: Market Shift]
        - Transformers [SOURCES: notes/a.md]

Depth 1 is always a '#' heading at column 0 and every deeper level is a '-'
list item indented by two spaces per level. The marker depends on depth only.
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import yaml

from ..exceptions import ParseError
from ..models import (
    Mindmap,
    MindmapNode,
    ROOT_ID,
    UNATTRIBUTED,
    WarningCollector,
    assign_positional_ids,
)


FRONT_MATTER_DELIMITER = "---"
HEADING_MARKER = "#"
BULLET_MARKER = "-"
INDENT = "  "

ANNOTATION_KEYS = ("CATEGORY", "TAGS", "SOURCES", "ALSO")

_HEADING_PATTERN = re.compile(r'^(#+)\s+(.*)$')
_BULLET_PATTERN = re.compile(r'^[-*+]\s+(.*)$')
# Greedy prefix: always matches the last annotation on the line.
_ANNOTATION_PATTERN = re.compile(r'^(.*)\s\[(CATEGORY|TAGS|SOURCES|ALSO): (.*?)\]$')


def marker_for_depth(depth: int) -> str:
    """Return the outline marker used for every node at the given depth."""
    if depth < 1:
        raise ValueError("The root node is not rendered")
    return HEADING_MARKER if depth == 1 else BULLET_MARKER


def indent_for_depth(depth: int) -> str:
    return INDENT * (depth - 1)


def escape_item(item: str, separator: str) -> str:
    """Backslash-escape backslashes and the list separator inside one annotation item."""
    return item.replace("\\", "\\\\").replace(separator, "\\" + separator)


def split_escaped(value: str, separator: str) -> List[str]:
    """
    Split an annotation value on unescaped separators and unescape the items.

    Args:
        value: Annotation value as written in the outline
        separator: Single separator character (';' for sources, ',' for tags)

    Returns:
        Non-empty stripped items in order
    """
    items: List[str] = []
    current: List[str] = []
    escaped = False
    for char in value:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == separator:
            items.append("".join(current))
            current = []
        else:
            current.append(char)
    items.append("".join(current))
    return [item.strip() for item in items if item.strip()]


def split_annotations(text: str) -> Tuple[str, List[Tuple[str, str]]]:
    """
    Split trailing [KEY: value] annotations off an outline line body.

    Args:
        text: Line body after the marker

    Returns:
        Tuple of (title, [(key, value), ...]) with annotations in line order
    """
    annotations: List[Tuple[str, str]] = []
    remaining = text.rstrip()
    while True:
        match = _ANNOTATION_PATTERN.match(remaining)
        if not match:
            break
        remaining = match.group(1).rstrip()
        annotations.append((match.group(2), match.group(3)))
    annotations.reverse()
    return remaining.strip(), annotations


class OutlineSerializer(WarningCollector):
    """
    Bidirectional mapping between a Mindmap and its outline text.
    """

    stage_name = "serializer"

    def __init__(self, include_front_matter: bool = True, include_provenance: bool = True):
        """
        Initialize the serializer.

        Args:
            include_front_matter: Emit the YAML header with title, schema and sources
            include_provenance: Emit [TAGS] and [SOURCES] annotations
        """
        super().__init__()
        self.include_front_matter = include_front_matter
        self.include_provenance = include_provenance

    # Rendering

    def render(self, mindmap: Mindmap) -> str:
        """
        Render a mindmap as outline text. The mindmap is not modified.

        Args:
            mindmap: The mindmap to render

        Returns:
            Outline text ending with a newline
        """
        self._reset_warnings()
        lines: List[str] = []

        if self.include_front_matter:
            header = {
                "title": mindmap.title,
                "created_at": mindmap.created_at.isoformat(),
                "source_files": list(mindmap.source_files),
                "category_schema": list(mindmap.category_schema),
            }
            dumped = yaml.safe_dump(header, sort_keys=False, allow_unicode=True, default_flow_style=False)
            lines.append(FRONT_MATTER_DELIMITER)
            lines.extend(dumped.rstrip("\n").splitlines())
            lines.append(FRONT_MATTER_DELIMITER)

        nodes = list(mindmap.iter_nodes(include_root=True))
        titles = {node.id: node.title for node in nodes}
        order = {node.id: index for index, node in enumerate(nodes)}

        def walk(node: MindmapNode, depth: int) -> None:
            for child in node.children:
                lines.append(self._render_line(child, depth, titles, order))
                walk(child, depth + 1)

        walk(mindmap.root, 1)
        return "\n".join(lines) + "\n"

    def _render_line(self, node: MindmapNode, depth: int,
                     titles: Dict[str, str], order: Dict[str, int]) -> str:
        parts = [f"{indent_for_depth(depth)}{marker_for_depth(depth)} {node.title}"]

        if depth == 1 and node.category and node.category != node.title:
            parts.append(f"[CATEGORY: {node.category}]")

        if self.include_provenance:
            if node.tags:
                tags = ", ".join(escape_item(tag, ",") for tag in sorted(node.tags))
                parts.append(f"[TAGS: {tags}]")
            if node.source_refs:
                refs = "; ".join(escape_item(ref, ";") for ref in node.source_refs)
                parts.append(f"[SOURCES: {refs}]")

        for ref in sorted(node.secondary_parents, key=lambda ref: (order.get(ref, len(order)), ref)):
            if ref not in titles:
                self._warn("dangling_link", f"Secondary parent {ref} of '{node.title}' is not in the tree", node.id)
                continue
            parts.append(f"[ALSO: {titles[ref]}]")

        return " ".join(parts)

    # Parsing

    def parse(self, text: str) -> Mindmap:
        """
        Parse outline text back into a Mindmap.

        Args:
            text: Outline text (front matter optional)

        Returns:
            The reconstructed Mindmap

        Raises:
            ParseError: If the indentation or markers are structurally inconsistent
        """
        self._reset_warnings()
        lines = text.splitlines()
        header, body_start = self._parse_front_matter(lines)

        root = MindmapNode(id=ROOT_ID, title="")
        stack: List[MindmapNode] = [root]
        pending_links: List[Tuple[MindmapNode, str]] = []
        missing_sources: List[MindmapNode] = []

        for line_number, raw in enumerate(lines[body_start:], start=body_start + 1):
            if not raw.strip():
                continue

            line = raw.rstrip().replace("\t", INDENT)
            stripped = line.lstrip(" ")
            indent = len(line) - len(stripped)

            heading = _HEADING_PATTERN.match(stripped)
            bullet = None if heading else _BULLET_PATTERN.match(stripped)

            if heading:
                if len(heading.group(1)) != 1:
                    raise ParseError(f"heading marker '{heading.group(1)}' used; only '#' marks depth 1", line_number)
                if indent:
                    raise ParseError("depth-1 headings must not be indented", line_number)
                depth = 1
                body = heading.group(2)
            elif bullet:
                if indent % len(INDENT):
                    raise ParseError(f"indentation of {indent} spaces is not a multiple of {len(INDENT)}", line_number)
                depth = indent // len(INDENT) + 1
                if depth < 2:
                    raise ParseError("list item at column 0; depth-1 entries must be '#' headings", line_number)
                body = bullet.group(1)
            else:
                self._warn("skipped_line", f"Line {line_number} is not an outline entry and was skipped")
                continue

            if depth > len(stack):
                if len(stack) == 1:
                    raise ParseError("list item appears before any heading", line_number)
                raise ParseError(f"indentation jumps from depth {len(stack) - 1} to depth {depth}", line_number)

            title, annotations = split_annotations(body)
            node = MindmapNode(id=f"line-{line_number}", title=title, depth=depth)
            has_sources = False

            for key, value in annotations:
                if key == "CATEGORY":
                    if depth == 1:
                        node.category = value.strip()
                    else:
                        self._warn("misplaced_category", f"Ignored category annotation below depth 1 on line {line_number}")
                elif key == "TAGS":
                    node.tags.update(split_escaped(value, ","))
                elif key == "SOURCES":
                    has_sources = True
                    for ref in split_escaped(value, ";"):
                        if ref not in node.source_refs:
                            node.source_refs.append(ref)
                elif key == "ALSO":
                    pending_links.append((node, value.strip()))

            if depth == 1 and not node.category:
                node.category = title
            if not has_sources or not node.source_refs:
                missing_sources.append(node)

            stack[depth - 1].children.append(node)
            del stack[depth:]
            stack.append(node)

        schema = self._schema_from_header(header)
        for top in root.children:
            if top.category not in schema:
                if header.get("category_schema"):
                    self._warn("category_added", f"Category '{top.category}' missing from the header schema; appended")
                schema.append(top.category)

        assign_positional_ids(root)
        for node in missing_sources:
            node.source_refs = [UNATTRIBUTED]
            if self.include_provenance:
                self._warn("unattributed", f"'{node.title}' has no sources annotation", node.id)

        mindmap = Mindmap(
            root=root,
            title=str(header.get("title") or ""),
            category_schema=schema,
            created_at=self._created_at_from_header(header),
            source_files=[str(ref) for ref in header.get("source_files") or []]
        )
        self._resolve_links(mindmap, pending_links)

        if not root.children:
            self._warn("empty_outline", "Outline contains no entries")
        return mindmap

    def _parse_front_matter(self, lines: List[str]) -> Tuple[Dict[str, Any], int]:
        start = 0
        while start < len(lines) and not lines[start].strip():
            start += 1
        if start >= len(lines) or lines[start].strip() != FRONT_MATTER_DELIMITER:
            return {}, 0

        for end in range(start + 1, len(lines)):
            if lines[end].strip() == FRONT_MATTER_DELIMITER:
                try:
                    header = yaml.safe_load("\n".join(lines[start + 1:end])) or {}
                except yaml.YAMLError as e:
                    raise ParseError(f"front matter is not valid YAML: {e}", start + 1)
                if not isinstance(header, dict):
                    raise ParseError("front matter must be a mapping", start + 1)
                return header, end + 1

        raise ParseError("front matter is not terminated", start + 1)

    def _schema_from_header(self, header: Dict[str, Any]) -> List[str]:
        raw = header.get("category_schema") or []
        if not isinstance(raw, list):
            self._warn("bad_header", "Ignored category_schema header that is not a list")
            return []
        schema: List[str] = []
        for name in raw:
            name = str(name)
            if name not in schema:
                schema.append(name)
        return schema

    def _created_at_from_header(self, header: Dict[str, Any]) -> datetime:
        value = header.get("created_at")
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value)
            except ValueError:
                self._warn("bad_header", f"Unreadable created_at {value!r}; using current time")
        return datetime.now()

    def _resolve_links(self, mindmap: Mindmap, pending_links: List[Tuple[MindmapNode, str]]) -> None:
        """
        Turn [ALSO: title] annotations into secondary parent ids.

        First match wins among the nodes with that title that are not already
        linked to this node in either direction, so repeated annotations for
        same-titled nodes resolve to distinct targets.
        """
        if not pending_links:
            return
        ordered = list(mindmap.iter_nodes())
        for node, title in pending_links:
            lineage = set(mindmap.ancestor_ids(node.id)) | mindmap.descendant_ids(node.id)
            target: Optional[MindmapNode] = next(
                (
                    candidate for candidate in ordered
                    if candidate.title == title
                    and candidate is not node
                    and candidate.id not in lineage
                    and candidate.id not in node.secondary_parents
                    and node.id not in candidate.secondary_parents
                ),
                None
            )
            if target is None:
                self._warn(
                    "dropped_link",
                    f"Cross-reference '{title}' on '{node.title}' matches no other node in this outline; dropped",
                    node.id
                )
                continue
            node.secondary_parents.add(target.id)
