"""Content importers for various note sources."""

from .base import BaseImporter, collect_tags
from .mock import MockImporter
from .vault import VaultImporter, extract_tags, split_front_matter

__all__ = ["BaseImporter", "collect_tags", "MockImporter", "VaultImporter", "extract_tags", "split_front_matter"]
