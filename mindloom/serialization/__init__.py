"""Outline serialization of mindmaps."""

from .outline import OutlineSerializer, marker_for_depth, split_annotations

__all__ = ["OutlineSerializer", "marker_for_depth", "split_annotations"]
