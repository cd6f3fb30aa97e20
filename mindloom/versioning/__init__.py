"""Git versioning of saved mindmaps."""

from .manager import VersionManager

__all__ = ["VersionManager"]
