"""Saving and loading mindmap outlines."""

from .manager import MindmapPersistence, content_hash, slugify

__all__ = ["MindmapPersistence", "content_hash", "slugify"]
