"""Mindmap synthesis: tag resolution, building, linking and combining."""

from .tags import ResolvedTag, TagHierarchyResolver, normalize_tag
from .builder import StructureBuilder
from .linker import MultiParentLinker
from .combiner import MindmapCombiner, unify_schemas

__all__ = [
    "ResolvedTag",
    "TagHierarchyResolver",
    "normalize_tag",
    "StructureBuilder",
    "MultiParentLinker",
    "MindmapCombiner",
    "unify_schemas",
]
