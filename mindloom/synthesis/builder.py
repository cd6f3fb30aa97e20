"""
Structure builder for Mindloom.

Turns the nested outline suggested by the language model, together with the
aggregated note content and tags, into a validated Mindmap tree.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Set

from ..config import config
from ..exceptions import StructureError
from ..models import (
    Mindmap,
    MindmapNode,
    OutlineSuggestion,
    ProcessedContent,
    ROOT_ID,
    TAG_WEIGHTINGS,
    UNATTRIBUTED,
    UNCATEGORIZED,
    WarningCollector,
    assign_positional_ids,
)
from .similarity import mentions, normalize_title
from .tags import ResolvedTag, TagHierarchyResolver, normalize_tag


@dataclass
class _IndexedSource:
    source_id: str
    text: str
    tags: List[ResolvedTag] = field(default_factory=list)


def default_title(created_at: datetime) -> str:
    """Title given to freshly generated mindmaps."""
    return f"AI Mindmap - {created_at.strftime('%Y-%m-%dT%H-%M-%S')}"


class StructureBuilder(WarningCollector):
    """
    Builds Mindmap trees from raw outlines.

    Irregular input degrades gracefully (with warnings); only an outline with
    no usable title at all raises StructureError.
    """

    stage_name = "builder"

    def __init__(self, category_schema: Optional[Sequence[str]] = None,
                 tag_weighting: Optional[str] = None):
        """
        Initialize the builder.

        Args:
            category_schema: Default ordered category schema (defaults to config value)
            tag_weighting: Default weighting mode (defaults to config value)
        """
        super().__init__()
        self.category_schema = list(category_schema) if category_schema is not None else config.category_schema
        self.tag_weighting = tag_weighting or config.tag_weighting
        self._counter = 0

    def build(self, outline: Any, contents: Sequence[ProcessedContent],
              tag_weighting: Optional[str] = None,
              category_schema: Optional[Sequence[str]] = None,
              title: Optional[str] = None) -> Mindmap:
        """
        Build a mindmap from a raw outline.

        Args:
            outline: Sequence of outline entries (dicts, strings or OutlineSuggestion)
            contents: Aggregated sources the outline was generated from
            tag_weighting: 'high', 'medium' or 'low' (defaults to the builder's mode)
            category_schema: Category schema to start from (defaults to the builder's schema)
            title: Optional display title

        Returns:
            The built Mindmap

        Raises:
            StructureError: If the outline contains no titled entry
            ValueError: If the weighting mode is unknown
        """
        self._reset_warnings()
        self._counter = 0

        weighting = tag_weighting or self.tag_weighting
        if weighting not in TAG_WEIGHTINGS:
            raise ValueError(f"Unknown tag weighting {weighting!r}; expected one of {', '.join(TAG_WEIGHTINGS)}")

        schema: List[str] = []
        for name in (category_schema if category_schema is not None else self.category_schema):
            if name and name not in schema:
                schema.append(name)

        suggestions = self._parse_outline(outline)
        resolver = TagHierarchyResolver(schema)
        sources = self._index_sources(contents, resolver)

        root = MindmapNode(id=ROOT_ID, title="")
        for suggestion in suggestions:
            root.children.append(self._build_node(suggestion, 1, sources))

        for top, suggestion in zip(root.children, suggestions):
            top.category = self._resolve_category(top, suggestion, sources, resolver, schema, weighting)

        assign_positional_ids(root)
        for node in root.iter_subtree():
            if node.source_refs == [UNATTRIBUTED]:
                self._warn("unattributed", f"No source could be attributed to '{node.title}'", node.id)

        created_at = datetime.now()
        source_files: List[str] = []
        for content in contents:
            if content.source_id not in source_files:
                source_files.append(content.source_id)

        return Mindmap(
            root=root,
            title=title or default_title(created_at),
            category_schema=schema,
            created_at=created_at,
            source_files=source_files
        )

    # Outline handling

    def _parse_outline(self, outline: Any) -> List[OutlineSuggestion]:
        if outline is None:
            raise StructureError("Raw outline is empty")
        if isinstance(outline, (dict, str, OutlineSuggestion)):
            outline = [outline]
        if not isinstance(outline, (list, tuple)):
            raise StructureError(f"Raw outline must be a sequence of entries, got {type(outline).__name__}")

        dropped: List[Any] = []
        suggestions: List[OutlineSuggestion] = []
        for raw in outline:
            suggestion = OutlineSuggestion.from_raw(raw, dropped)
            if suggestion is not None:
                suggestions.append(suggestion)

        for raw in dropped:
            self._warn("malformed_entry", f"Ignored outline entry without a usable title: {raw!r}")

        if not suggestions:
            raise StructureError("Raw outline contains no titled entries", details=f"{len(dropped)} malformed entries")
        return suggestions

    def _index_sources(self, contents: Sequence[ProcessedContent],
                       resolver: TagHierarchyResolver) -> List[_IndexedSource]:
        indexed = []
        for content in contents:
            resolved = resolver.resolve(content.tags)
            for warning in resolver.warnings:
                self.warnings.append(warning)
            indexed.append(_IndexedSource(
                source_id=content.source_id,
                text=(content.content or "").casefold(),
                tags=resolved
            ))
        return indexed

    # Node construction

    def _next_id(self) -> str:
        self._counter += 1
        return f"pending-{self._counter}"

    def _build_node(self, suggestion: OutlineSuggestion, depth: int,
                    sources: List[_IndexedSource]) -> MindmapNode:
        hint_tags = []
        for raw in suggestion.tags:
            tag = normalize_tag(raw)
            if tag:
                hint_tags.append(tag)
            else:
                self._warn("empty_tag", f"Dropped empty tag hint on '{suggestion.title}'")

        hint_folds: Set[str] = set()
        for tag in hint_tags:
            hint_folds.add(tag.casefold())
            hint_folds.add(tag.split('/')[-1].casefold())

        title_norm = normalize_title(suggestion.title)

        tags: Set[str] = set(hint_tags)
        refs: List[str] = []
        for source in sources:
            matched = [
                item.tag for item in source.tags
                if item.tag.casefold() in hint_folds
                or item.leaf.casefold() in hint_folds
                or (title_norm and normalize_title(item.leaf) == title_norm)
            ]
            if matched or mentions(source.text, suggestion.title):
                if source.source_id not in refs:
                    refs.append(source.source_id)
                tags.update(matched)

        node = MindmapNode(
            id=self._next_id(),
            title=suggestion.title,
            depth=depth,
            tags=tags,
            source_refs=refs or [UNATTRIBUTED]
        )
        for child in suggestion.children:
            node.children.append(self._build_node(child, depth + 1, sources))
        return node

    # Category arbitration

    def _resolve_category(self, top: MindmapNode, suggestion: OutlineSuggestion,
                          sources: List[_IndexedSource], resolver: TagHierarchyResolver,
                          schema: List[str], weighting: str) -> str:
        """
        Pick the category of a depth-1 node from the model hint and the tags.

        high: tag suggestion wins on conflict.
        medium: the side with more corroborating sources wins; exact ties keep the model's.
        low: the model wins; tags are used only when the model gives nothing.
        """
        model_category: Optional[str] = None
        if suggestion.category:
            model_category = resolver.match_category(suggestion.category) or suggestion.category
        else:
            model_category = resolver.match_category(suggestion.title)

        subtree_sources: Set[str] = set()
        subtree_tags: List[str] = []
        for node in top.iter_subtree():
            subtree_sources.update(ref for ref in node.source_refs if ref != UNATTRIBUTED)
            subtree_tags.extend(sorted(node.tags))

        support: Dict[str, Set[str]] = {}
        for source in sources:
            if source.source_id not in subtree_sources:
                continue
            for item in source.tags:
                if item.suggested_category:
                    support.setdefault(item.suggested_category, set()).add(source.source_id)

        votes: Counter = Counter()
        for tag in subtree_tags:
            item = resolver.resolve_tag(tag)
            if item and item.suggested_category:
                votes[item.suggested_category] += 1

        tag_category: Optional[str] = None
        if votes:
            tag_category = max(
                votes,
                key=lambda name: (len(support.get(name, ())), votes[name], -schema.index(name))
            )

        chosen: Optional[str]
        if model_category and tag_category and model_category != tag_category:
            if weighting == "high":
                chosen = tag_category
            elif weighting == "medium":
                model_support = set(support.get(model_category, set()))
                model_support.update(
                    source.source_id for source in sources
                    if source.source_id in subtree_sources and mentions(source.text, model_category)
                )
                tag_support = len(support.get(tag_category, ()))
                chosen = tag_category if tag_support > len(model_support) else model_category
            else:
                chosen = model_category
        else:
            chosen = model_category or tag_category

        if not chosen:
            chosen = UNCATEGORIZED
            self._warn(
                "uncategorized",
                f"No category could be determined for '{top.title}', using '{UNCATEGORIZED}'"
            )

        existing = resolver.match_category(chosen)
        if existing:
            return existing

        schema.append(chosen)
        resolver.register_category(chosen)
        self._warn("category_added", f"Category '{chosen}' was not in the schema and has been appended")
        return chosen
