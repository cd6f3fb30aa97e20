"""
Mindmap persistence for Mindloom.

Saved mindmaps live as outline files (`<folder>/<id>.md`). The outline text is
the source of truth; with save_format "both" an advisory metadata record is
also written to DuckDB.
"""

import hashlib
import logging
import re
from pathlib import Path
from typing import List, Optional

from ..config import config
from ..database import DatabaseManager, open_database
from ..exceptions import ParseError, PersistenceError
from ..models import Mindmap, MindmapMetadata, StageWarning
from ..serialization import OutlineSerializer
from ..versioning import VersionManager


OUTLINE_SUFFIX = ".md"
SAVE_FORMATS = ("markdown", "both")


def slugify(title: str) -> str:
    """Derive a file-safe mindmap id from a title."""
    slug = re.sub(r'[^\w]+', '-', title.casefold()).strip('-')
    return slug or "mindmap"


def content_hash(text: str) -> str:
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


class MindmapPersistence:
    """
    Saves, loads, lists and deletes mindmaps in the mindmaps folder.
    """

    def __init__(self, folder: Optional[str] = None, save_format: Optional[str] = None,
                 database_path: Optional[str] = None, version_manager: Optional[VersionManager] = None):
        """
        Initialize persistence.

        Args:
            folder: Folder holding the outline files (defaults to config value)
            save_format: "markdown" or "both" (defaults to config value)
            database_path: DuckDB file for metadata (defaults to <folder>/<database filename>)
            version_manager: Optional Git versioning of saved outlines
        """
        self.folder = Path(folder or config.mindmaps_folder)
        self.save_format = save_format or config.save_format
        if self.save_format not in SAVE_FORMATS:
            raise ValueError(f"Unknown save format: {self.save_format}")

        self.serializer = OutlineSerializer()
        self.version_manager = version_manager
        self.db: Optional[DatabaseManager] = None

        if self.save_format == "both":
            self.folder.mkdir(parents=True, exist_ok=True)
            self.db = open_database(database_path or str(self.folder / config.database_filename))

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def close(self):
        if self.db:
            self.db.disconnect()
            self.db = None

    @property
    def warnings(self) -> List[StageWarning]:
        """Warnings from the most recent load."""
        return self.serializer.warnings

    def path_for(self, mindmap_id: str) -> Path:
        return self.folder / f"{mindmap_id}{OUTLINE_SUFFIX}"

    def exists(self, mindmap_id: str) -> bool:
        return self.path_for(mindmap_id).is_file()

    def _unique_id(self, title: str) -> str:
        base = slugify(title)
        candidate = base
        counter = 2
        while self.exists(candidate):
            candidate = f"{base}-{counter}"
            counter += 1
        return candidate

    def save(self, mindmap: Mindmap, mindmap_id: Optional[str] = None) -> str:
        """
        Write a mindmap to its outline file.

        Args:
            mindmap: The mindmap to save
            mindmap_id: Existing id to overwrite; a new id is derived from the title otherwise

        Returns:
            The id the mindmap was saved under
        """
        self.folder.mkdir(parents=True, exist_ok=True)
        mindmap_id = mindmap_id or self._unique_id(mindmap.title)
        path = self.path_for(mindmap_id)

        text = self.serializer.render(mindmap)
        temp_path = path.with_name(path.name + ".tmp")
        temp_path.write_text(text, encoding="utf-8")
        temp_path.replace(path)
        logging.info(f"Saved mindmap '{mindmap.title}' to {path}")

        if self.db:
            self.db.upsert_mindmap(MindmapMetadata(
                mindmap_id=mindmap_id,
                title=mindmap.title,
                created_at=mindmap.created_at,
                source_files=mindmap.source_files,
                category_schema=mindmap.category_schema,
                node_count=sum(1 for _ in mindmap.iter_nodes()),
                content_hash=content_hash(text)
            ))

        if self.version_manager:
            self.version_manager.commit_mindmap([str(path.resolve())], mindmap.title or mindmap_id)

        return mindmap_id

    def load(self, mindmap_id: str) -> Mindmap:
        """
        Read a saved mindmap.

        Args:
            mindmap_id: Id of the saved mindmap

        Returns:
            The parsed Mindmap

        Raises:
            PersistenceError: If no outline file exists for the id
            ParseError: If the outline file is structurally unreadable
        """
        path = self.path_for(mindmap_id)
        if not path.is_file():
            raise PersistenceError(f"Mindmap not found: {mindmap_id}", details=str(path))

        text = path.read_text(encoding="utf-8")
        mindmap = self.serializer.parse(text)

        metadata = self.db.get_mindmap(mindmap_id) if self.db else None
        if metadata:
            if metadata.content_hash and metadata.content_hash != content_hash(text):
                logging.info(f"Outline {path.name} was edited since it was saved")
            if not mindmap.title:
                mindmap.title = metadata.title
            if not mindmap.source_files:
                mindmap.source_files = list(metadata.source_files)

        if not mindmap.title:
            mindmap.title = mindmap_id
        return mindmap

    def list_mindmaps(self) -> List[MindmapMetadata]:
        """
        List saved mindmaps, newest first.

        Outline files that cannot be parsed are skipped with a warning.
        """
        if not self.folder.is_dir():
            return []

        records = {record.mindmap_id: record for record in self.db.list_mindmaps()} if self.db else {}
        listing: List[MindmapMetadata] = []

        for path in sorted(self.folder.glob(f"*{OUTLINE_SUFFIX}")):
            mindmap_id = path.stem
            try:
                mindmap = self.load(mindmap_id)
            except ParseError as e:
                logging.warning(f"Skipping unreadable mindmap {path.name}: {e}")
                continue

            record = records.get(mindmap_id)
            listing.append(MindmapMetadata(
                mindmap_id=mindmap_id,
                title=mindmap.title,
                created_at=mindmap.created_at,
                source_files=mindmap.source_files,
                category_schema=mindmap.category_schema,
                node_count=sum(1 for _ in mindmap.iter_nodes()),
                content_hash=record.content_hash if record else None,
                saved_at=record.saved_at if record else mindmap.created_at
            ))

        listing.sort(key=lambda item: item.created_at, reverse=True)
        return listing

    def delete(self, mindmap_id: str) -> bool:
        """
        Delete a saved mindmap and its metadata record.

        Returns:
            True if an outline file was removed
        """
        path = self.path_for(mindmap_id)
        removed = False
        if path.is_file():
            path.unlink()
            removed = True
            logging.info(f"Deleted mindmap {mindmap_id}")

        if self.db:
            self.db.delete_mindmap(mindmap_id)

        if removed and self.version_manager:
            self.version_manager.commit_mindmap([str(path.resolve())], mindmap_id, action="delete")

        return removed
