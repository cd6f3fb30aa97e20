"""
Multi-parent linking for Mindloom.

Adds weak secondary-parent references between related concepts that live in
different top-level branches. Never adds or moves owning children.
"""

import logging
from typing import Dict, List, Optional, Set

from ..config import config
from ..models import Mindmap, MindmapNode, WarningCollector
from .similarity import fold_tags, title_similarity


class MultiParentLinker(WarningCollector):
    """
    Discovers cross-branch links by shared tags or lexical title overlap.

    Links are directional by discovery order: when an earlier node A (in
    document order) relates to a later node B, B's id is recorded on A only.
    """

    stage_name = "linker"

    def __init__(self, title_threshold: Optional[int] = None,
                 max_links_per_node: Optional[int] = None):
        """
        Initialize the linker.

        Args:
            title_threshold: Minimum title similarity (0-100) for a link
            max_links_per_node: Cap on secondary parents per node (None = no cap)
        """
        super().__init__()
        options = config.linker_options()
        self.title_threshold = title_threshold if title_threshold is not None else options["title_threshold"]
        self.max_links_per_node = max_links_per_node if max_links_per_node is not None else options["max_links_per_node"]

    def link(self, mindmap: Mindmap, enabled: bool = True) -> Mindmap:
        """
        Return a copy of the mindmap with secondary parents populated.

        Args:
            mindmap: The mindmap to link (not modified)
            enabled: When False the copy is returned unchanged

        Returns:
            A new Mindmap
        """
        self._reset_warnings()
        result = mindmap.model_copy(deep=True)
        if not enabled:
            return result

        branches = result.branch_of()
        parents = result.parent_map()
        lineage: Dict[str, Set[str]] = {}
        for node_id in parents:
            chain = set()
            current = parents.get(node_id)
            while current is not None:
                chain.add(current)
                current = parents.get(current)
            lineage[node_id] = chain

        candidates: List[MindmapNode] = [node for node in result.iter_nodes() if node.depth >= 2]
        folded = {node.id: fold_tags(node.tags) for node in candidates}
        added = 0

        for index, first in enumerate(candidates):
            for second in candidates[index + 1:]:
                if self._at_capacity(first):
                    break
                if branches.get(first.id) == branches.get(second.id):
                    continue
                if second.id in first.secondary_parents or first.id in second.secondary_parents:
                    continue
                if not self._related(first, second, folded):
                    continue
                if second.id in lineage[first.id] or first.id in lineage[second.id]:
                    logging.debug(f"Skipped link {first.id} -> {second.id}: same lineage")
                    continue
                first.secondary_parents.add(second.id)
                added += 1

        logging.info(f"Linker added {added} secondary links across {len(result.root.children)} branches")
        return result

    def _at_capacity(self, node: MindmapNode) -> bool:
        return self.max_links_per_node is not None and len(node.secondary_parents) >= self.max_links_per_node

    def _related(self, first: MindmapNode, second: MindmapNode, folded: Dict[str, Set[str]]) -> bool:
        if folded[first.id] & folded[second.id]:
            return True
        return title_similarity(first.title, second.title) >= self.title_threshold
