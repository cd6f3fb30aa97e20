"""
Mindmap data models for Mindloom.

A mindmap is one owning tree of MindmapNode objects plus a side-table of weak
secondary references stored on each node as a set of node ids.
"""

from collections import Counter
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Set

from pydantic import BaseModel, Field


ROOT_ID = "root"

# Stands in for source_refs when no source could be attributed to a node.
UNATTRIBUTED = "unattributed"

UNCATEGORIZED = "Uncategorized"


class MindmapNode(BaseModel):
    """
    A single concept in the mindmap tree.
    """

    id: str = Field(
        ...,
        description="Identifier, stable within one tree"
    )

    title: str = Field(
        ...,
        description="Concept title as displayed"
    )

    category: Optional[str] = Field(
        default=None,
        description="Top-level category, only set on depth-1 nodes"
    )

    depth: int = Field(
        default=0,
        ge=0,
        description="Distance from the root (root = 0)"
    )

    tags: Set[str] = Field(
        default_factory=set,
        description="Tags attached to this concept"
    )

    source_refs: List[str] = Field(
        default_factory=list,
        description="Ordered identifiers of the sources that contributed this node"
    )

    children: List['MindmapNode'] = Field(
        default_factory=list,
        description="Owned child nodes, in rendering order"
    )

    secondary_parents: Set[str] = Field(
        default_factory=set,
        description="Ids of non-owning cross-referenced nodes"
    )

    def iter_subtree(self) -> Iterator['MindmapNode']:
        """Yield this node and all of its descendants in preorder."""
        yield self
        for child in self.children:
            yield from child.iter_subtree()


MindmapNode.model_rebuild()


class Mindmap(BaseModel):
    """
    A complete mindmap: the node tree plus its category schema and provenance.
    """

    root: MindmapNode = Field(
        default_factory=lambda: MindmapNode(id=ROOT_ID, title=""),
        description="Root node (depth 0, never rendered as a line)"
    )

    title: str = Field(
        default="",
        description="Display title of the mindmap"
    )

    category_schema: List[str] = Field(
        default_factory=list,
        description="Ordered allowed top-level category names"
    )

    created_at: datetime = Field(
        default_factory=datetime.now,
        description="When the mindmap was created"
    )

    source_files: List[str] = Field(
        default_factory=list,
        description="Identifiers of the sources the mindmap was built from"
    )

    # Traversal helpers

    def iter_nodes(self, include_root: bool = False) -> Iterator[MindmapNode]:
        """
        Iterate over nodes in preorder (document order).

        Args:
            include_root: Whether to yield the root node first

        Yields:
            MindmapNode objects
        """
        for node in self.root.iter_subtree():
            if node is self.root and not include_root:
                continue
            yield node

    def get_node(self, node_id: str) -> Optional[MindmapNode]:
        """Return the node with the given id, or None."""
        for node in self.iter_nodes(include_root=True):
            if node.id == node_id:
                return node
        return None

    def parent_map(self) -> Dict[str, Optional[str]]:
        """Map every node id to the id of its owning parent (root maps to None)."""
        parents: Dict[str, Optional[str]] = {self.root.id: None}
        for node in self.iter_nodes(include_root=True):
            for child in node.children:
                parents[child.id] = node.id
        return parents

    def ancestor_ids(self, node_id: str) -> List[str]:
        """
        Return the owning parent chain of a node, nearest first.

        Args:
            node_id: Id of the node

        Returns:
            List of ancestor ids ending with the root id
        """
        parents = self.parent_map()
        chain: List[str] = []
        current = parents.get(node_id)
        while current is not None:
            chain.append(current)
            current = parents.get(current)
        return chain

    def descendant_ids(self, node_id: str) -> Set[str]:
        """Return the ids of every node below the given one."""
        node = self.get_node(node_id)
        if node is None:
            return set()
        return {n.id for n in node.iter_subtree() if n is not node}

    def category_nodes(self) -> List[MindmapNode]:
        """Return the depth-1 nodes."""
        return list(self.root.children)

    def branch_of(self) -> Dict[str, str]:
        """Map every non-root node id to the id of its depth-1 ancestor."""
        branches: Dict[str, str] = {}
        for top in self.root.children:
            for node in top.iter_subtree():
                branches[node.id] = top.id
        return branches

    def find_violations(self) -> List[str]:
        """
        Check the structural invariants of the mindmap.

        Returns:
            List of human-readable violations (empty when the mindmap is valid)
        """
        problems: List[str] = []
        seen: Set[int] = set()
        ids: Set[str] = set()
        parents = self.parent_map()

        for node in self.iter_nodes(include_root=True):
            if id(node) in seen:
                problems.append(f"node {node.id} is owned more than once")
                continue
            seen.add(id(node))
            if node.id in ids:
                problems.append(f"duplicate node id {node.id}")
            ids.add(node.id)

            parent_id = parents.get(node.id)
            if parent_id is not None:
                parent = self.get_node(parent_id)
                if parent is not None and node.depth != parent.depth + 1:
                    problems.append(f"node {node.id} has depth {node.depth}, expected {parent.depth + 1}")

            if node is not self.root and not node.source_refs:
                problems.append(f"node {node.id} has no source_refs")

            if node.depth == 1 and node.category not in self.category_schema:
                problems.append(f"node {node.id} category {node.category!r} is not in the schema")
            if node.depth != 1 and node.category is not None:
                problems.append(f"node {node.id} carries a category but is not depth 1")

            if node.secondary_parents:
                related = set(self.ancestor_ids(node.id)) | self.descendant_ids(node.id) | {node.id}
                for target in node.secondary_parents:
                    if target in related:
                        problems.append(f"node {node.id} has secondary parent {target} on its own lineage")
                    elif target not in ids and self.get_node(target) is None:
                        problems.append(f"node {node.id} has dangling secondary parent {target}")

        return problems

    # Summaries for settings and visualization surfaces

    def category_summary(self) -> Dict[str, int]:
        """Count nodes below each depth-1 category, in schema order."""
        summary: Dict[str, int] = {name: 0 for name in self.category_schema}
        for top in self.root.children:
            name = top.category or top.title
            summary[name] = summary.get(name, 0) + sum(1 for _ in top.iter_subtree()) - 1
        return summary

    def tag_summary(self) -> Dict[str, int]:
        """Count how many nodes carry each tag."""
        counts: Counter = Counter()
        for node in self.iter_nodes():
            counts.update(node.tags)
        return dict(sorted(counts.items(), key=lambda item: (-item[1], item[0])))

    def to_view_tree(self) -> Dict[str, Any]:
        """
        Export the tree for a visualization client.

        Returns:
            Nested dictionaries with id/title/depth/children/secondaryParents keys
        """
        order = {node.id: index for index, node in enumerate(self.iter_nodes(include_root=True))}

        def convert(node: MindmapNode) -> Dict[str, Any]:
            return {
                "id": node.id,
                "title": node.title,
                "depth": node.depth,
                "category": node.category,
                "children": [convert(child) for child in node.children],
                "secondaryParents": sorted(node.secondary_parents, key=lambda ref: order.get(ref, len(order))),
            }

        return convert(self.root)


def assign_positional_ids(root: MindmapNode) -> Dict[str, str]:
    """
    Renumber a tree in place with positional ids ("root", "1", "1.2", ...)
    and recompute depths.

    Secondary parent references are not rewritten; callers use the returned
    mapping to translate them.

    Args:
        root: Root of the tree to renumber

    Returns:
        Mapping from the previous id of each node to its new id
    """
    mapping: Dict[str, str] = {root.id: ROOT_ID}
    root.id = ROOT_ID
    root.depth = 0

    def walk(node: MindmapNode, prefix: str) -> None:
        for index, child in enumerate(node.children, start=1):
            new_id = f"{prefix}{index}"
            mapping[child.id] = new_id
            child.id = new_id
            child.depth = node.depth + 1
            walk(child, f"{new_id}.")

    walk(root, "")
    return mapping
