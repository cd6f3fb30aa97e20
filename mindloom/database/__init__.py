"""Database management for mindmap metadata and AI call records."""

from .manager import DatabaseManager, open_database

__all__ = ["DatabaseManager", "open_database"]
