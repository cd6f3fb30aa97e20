"""Data models for Mindloom."""

from .mindmap import (
    Mindmap,
    MindmapNode,
    ROOT_ID,
    UNATTRIBUTED,
    UNCATEGORIZED,
    assign_positional_ids,
)
from .source import (
    OutlineSuggestion,
    ProcessedContent,
    SourceSelection,
    TagWeighting,
    TAG_WEIGHTINGS,
)
from .metadata import MindmapMetadata
from .diagnostics import StageWarning, WarningCollector

__all__ = [
    "Mindmap",
    "MindmapNode",
    "ROOT_ID",
    "UNATTRIBUTED",
    "UNCATEGORIZED",
    "assign_positional_ids",
    "OutlineSuggestion",
    "ProcessedContent",
    "SourceSelection",
    "TagWeighting",
    "TAG_WEIGHTINGS",
    "MindmapMetadata",
    "StageWarning",
    "WarningCollector",
]
