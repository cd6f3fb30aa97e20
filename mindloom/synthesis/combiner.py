"""
Mindmap combiner for Mindloom.

Merges several mindmaps into one tree anchored on a unified category schema.
A subtree is only ever placed under the category it came from.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Set, Tuple

from ..config import config
from ..exceptions import CombineError
from ..models import (
    Mindmap,
    MindmapNode,
    ROOT_ID,
    UNATTRIBUTED,
    UNCATEGORIZED,
    WarningCollector,
    assign_positional_ids,
)
from .linker import MultiParentLinker
from .similarity import fold_tags, normalize_title, tag_overlap


@dataclass
class _PreparedTree:
    """Working copy of one input tree, with enough bookkeeping to remap links."""
    index: int
    tops: List[Tuple[str, MindmapNode]] = field(default_factory=list)
    copies: Dict[str, MindmapNode] = field(default_factory=dict)
    links: List[Tuple[MindmapNode, str]] = field(default_factory=list)


def unify_schemas(schemas: Sequence[Sequence[str]], base: Optional[Sequence[str]] = None) -> List[str]:
    """
    Union of category schemas in first-seen order.

    Names are compared case-insensitively; the first spelling seen is kept.

    Args:
        schemas: Schemas of the input mindmaps
        base: Optional explicit schema placed first

    Returns:
        The unified schema
    """
    unified: List[str] = []
    seen: Set[str] = set()
    for schema in ([base] if base else []) + list(schemas):
        for name in schema:
            if name.casefold() not in seen:
                seen.add(name.casefold())
                unified.append(name)
    return unified


class MindmapCombiner(WarningCollector):
    """
    Combines mindmaps without ever re-categorizing a subtree.
    """

    stage_name = "combiner"

    def __init__(self, tag_threshold: Optional[float] = None,
                 min_shared_tags: Optional[int] = None,
                 linker: Optional[MultiParentLinker] = None,
                 enable_multi_parent: Optional[bool] = None):
        """
        Initialize the combiner.

        Args:
            tag_threshold: Jaccard tag overlap at which siblings count as duplicates
            min_shared_tags: Minimum number of shared tags for a tag-based duplicate
            linker: Linker re-run on the merged tree
            enable_multi_parent: Whether to re-run the linker (defaults to config value)
        """
        super().__init__()
        options = config.combiner_options()
        self.tag_threshold = tag_threshold if tag_threshold is not None else options["tag_threshold"]
        self.min_shared_tags = min_shared_tags if min_shared_tags is not None else options["min_shared_tags"]
        self.linker = linker or MultiParentLinker()
        self.enable_multi_parent = config.enable_multi_parent if enable_multi_parent is None else enable_multi_parent
        self._redirects: Dict[int, MindmapNode] = {}

    def combine(self, mindmaps: Sequence[Mindmap],
                category_schema: Optional[Sequence[str]] = None,
                title: Optional[str] = None) -> Mindmap:
        """
        Combine mindmaps into one.

        Args:
            mindmaps: Input mindmaps, folded in the given order (not modified)
            category_schema: Optional schema placed ahead of the input schemas
            title: Optional display title for the result

        Returns:
            The combined Mindmap

        Raises:
            CombineError: If no mindmap is given or an input has no category schema
        """
        self._reset_warnings()
        self._redirects = {}

        if not mindmaps:
            raise CombineError("At least one mindmap is required to combine")
        for index, mindmap in enumerate(mindmaps):
            if not mindmap.category_schema:
                raise CombineError(
                    f"Mindmap #{index + 1} has no category schema; its subtrees cannot be placed",
                    details=mindmap.title or None
                )

        schema = unify_schemas([mindmap.category_schema for mindmap in mindmaps], category_schema)
        prepared = [self._prepare(index, mindmap, schema) for index, mindmap in enumerate(mindmaps)]

        anchors: Dict[str, MindmapNode] = {
            name: MindmapNode(id=f"category:{name}", title=name, category=name, depth=1)
            for name in schema
        }

        for tree in prepared:
            for category, top in tree.tops:
                anchor = anchors[category]
                if normalize_title(top.title) == normalize_title(category):
                    self._absorb(anchor, top)
                else:
                    self._merge_into(anchor, top)

        root = MindmapNode(id=ROOT_ID, title="", children=[anchors[name] for name in schema])
        for anchor in root.children:
            if not anchor.source_refs:
                for child in anchor.children:
                    self._union_refs(anchor, child.source_refs)
            if not anchor.source_refs:
                anchor.source_refs = [UNATTRIBUTED]

        assign_positional_ids(root)
        for node in root.iter_subtree():
            if node.depth != 1:
                node.category = None

        source_files: List[str] = []
        for mindmap in mindmaps:
            for ref in mindmap.source_files:
                if ref not in source_files:
                    source_files.append(ref)

        created_at = datetime.now()
        merged = Mindmap(
            root=root,
            title=title or f"Combined Mindmap - {created_at.strftime('%Y-%m-%dT%H-%M-%S')}",
            category_schema=schema,
            created_at=created_at,
            source_files=source_files
        )
        self._carry_links(merged, prepared)

        result = self.linker.link(merged, enabled=self.enable_multi_parent)
        self.warnings.extend(self.linker.warnings)
        logging.info(f"Combined {len(mindmaps)} mindmaps into {len(schema)} categories")
        return result

    # Preparation (independent per input tree)

    def _prepare(self, index: int, mindmap: Mindmap, schema: List[str]) -> _PreparedTree:
        tree = _PreparedTree(index=index)
        for top in mindmap.root.children:
            category = self._category_for(top, schema)
            tree.tops.append((category, self._copy(top, tree)))
        return tree

    def _copy(self, node: MindmapNode, tree: _PreparedTree) -> MindmapNode:
        clone = MindmapNode(
            id=node.id,
            title=node.title,
            category=node.category,
            depth=node.depth,
            tags=set(node.tags),
            source_refs=list(node.source_refs)
        )
        tree.copies[node.id] = clone
        for target in sorted(node.secondary_parents):
            tree.links.append((clone, target))
        clone.children = [self._copy(child, tree) for child in node.children]
        return clone

    def _category_for(self, top: MindmapNode, schema: List[str]) -> str:
        name = top.category or top.title
        if name in schema:
            return name
        folded = {entry.casefold(): entry for entry in schema}
        if name and name.casefold() in folded:
            return folded[name.casefold()]

        if UNCATEGORIZED not in schema:
            schema.append(UNCATEGORIZED)
        self._warn(
            "uncategorized",
            f"Category '{name}' of '{top.title}' is absent from every schema; placed under '{UNCATEGORIZED}'",
            top.id
        )
        return UNCATEGORIZED

    # Merging

    def _is_duplicate(self, first: MindmapNode, second: MindmapNode) -> bool:
        first_title = normalize_title(first.title)
        if first_title and first_title == normalize_title(second.title):
            return True
        shared = fold_tags(first.tags) & fold_tags(second.tags)
        return len(shared) >= self.min_shared_tags and tag_overlap(first.tags, second.tags) >= self.tag_threshold

    def _merge_into(self, parent: MindmapNode, node: MindmapNode) -> MindmapNode:
        for existing in parent.children:
            if self._is_duplicate(existing, node):
                logging.debug(f"Merging duplicate '{node.title}' into '{existing.title}'")
                self._absorb(existing, node)
                return existing
        parent.children.append(node)
        return node

    def _absorb(self, target: MindmapNode, other: MindmapNode) -> None:
        self._union_refs(target, other.source_refs)
        target.tags.update(other.tags)
        self._redirects[id(other)] = target
        for child in other.children:
            self._merge_into(target, child)

    @staticmethod
    def _union_refs(target: MindmapNode, refs: Sequence[str]) -> None:
        for ref in refs:
            if ref not in target.source_refs:
                target.source_refs.append(ref)
        if len(target.source_refs) > 1 and UNATTRIBUTED in target.source_refs:
            target.source_refs.remove(UNATTRIBUTED)

    def _resolve(self, node: MindmapNode) -> MindmapNode:
        while id(node) in self._redirects:
            node = self._redirects[id(node)]
        return node

    def _carry_links(self, merged: Mindmap, prepared: List[_PreparedTree]) -> None:
        """Re-attach secondary links of the inputs to the merged nodes."""
        for tree in prepared:
            for clone, target_id in tree.links:
                source = self._resolve(clone)
                target_clone = tree.copies.get(target_id)
                if target_clone is None:
                    self._warn("dangling_link", f"Dropped link from '{clone.title}' to unknown node {target_id}")
                    continue
                target = self._resolve(target_clone)
                if target is source or source.id in target.secondary_parents:
                    continue
                lineage = set(merged.ancestor_ids(source.id)) | merged.descendant_ids(source.id)
                if target.id in lineage:
                    logging.debug(f"Dropped link {source.id} -> {target.id}: merged onto the same lineage")
                    continue
                source.secondary_parents.add(target.id)
