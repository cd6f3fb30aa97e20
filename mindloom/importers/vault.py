"""
Markdown vault importer for Mindloom.

Reads notes from a folder of Markdown files (an Obsidian-style vault),
extracting tags from YAML front matter and inline #tags.
"""

import logging
import re
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import yaml

from ..config import config
from ..models import ProcessedContent, SourceSelection
from .base import BaseImporter


NOTE_SUFFIXES = (".md", ".markdown")

# '#tag' or '#parent/child'; must not follow a word character (skips URLs' anchors and headings).
_INLINE_TAG_PATTERN = re.compile(r'(?<![\w#/])#([A-Za-z][\w\-]*(?:/[\w\-]+)*)')
_CODE_FENCE_PATTERN = re.compile(r'```.*?```', re.DOTALL)
_INLINE_CODE_PATTERN = re.compile(r'`[^`\n]*`')


def split_front_matter(text: str) -> Tuple[dict, str]:
    """
    Separate YAML front matter from a note body.

    Args:
        text: Full note text

    Returns:
        Tuple of (front matter mapping, body text)
    """
    if not text.startswith("---"):
        return {}, text

    lines = text.splitlines()
    for index in range(1, len(lines)):
        if lines[index].strip() == "---":
            try:
                data = yaml.safe_load("\n".join(lines[1:index])) or {}
            except yaml.YAMLError as e:
                logging.warning(f"Ignoring unreadable front matter: {e}")
                data = {}
            if not isinstance(data, dict):
                data = {}
            return data, "\n".join(lines[index + 1:])
    return {}, text


def extract_tags(text: str) -> List[str]:
    """
    Extract tags from a note: front matter `tags`/`tag` plus inline #tags.

    Args:
        text: Full note text

    Returns:
        Distinct tags without the leading '#', in order of appearance
    """
    front, body = split_front_matter(text)
    tags: List[str] = []

    for key in ("tags", "tag"):
        value = front.get(key)
        if isinstance(value, str):
            value = re.split(r'[,\s]+', value)
        if isinstance(value, list):
            for item in value:
                if isinstance(item, str) and item.strip().lstrip('#'):
                    tag = item.strip().lstrip('#')
                    if tag not in tags:
                        tags.append(tag)

    body = _CODE_FENCE_PATTERN.sub("", body)
    body = _INLINE_CODE_PATTERN.sub("", body)
    for match in _INLINE_TAG_PATTERN.findall(body):
        if match not in tags:
            tags.append(match)

    return tags


def tag_matches(note_tags: Iterable[str], wanted: str) -> bool:
    """True when `wanted` or one of its child tags (wanted/...) is among the note tags."""
    wanted = wanted.strip().lstrip('#').casefold()
    for tag in note_tags:
        folded = tag.casefold()
        if folded == wanted or folded.startswith(wanted + "/"):
            return True
    return False


class VaultImporter(BaseImporter):
    """
    Importer for a folder of Markdown notes.
    """

    def __init__(self, vault_path: str, selection: Optional[SourceSelection] = None,
                 max_source_files: Optional[int] = None, include_content: Optional[bool] = None):
        """
        Initialize the vault importer.

        Args:
            vault_path: Root folder of the vault
            selection: Files, folders and tags to include (default: the whole vault)
            max_source_files: Cap on the number of notes (defaults to config value)
            include_content: Keep note text for the model prompt (defaults to config value)
        """
        self.vault_path = Path(vault_path)
        self.selection = selection or SourceSelection(folders=["."], include_subfolders=True)
        self.max_source_files = max_source_files or config.max_source_files
        self.include_content = config.include_content if include_content is None else include_content

        logging.info(f"Initialized vault importer for: {self.vault_path}")

    def get_all_sources(self) -> List[ProcessedContent]:
        if not self.vault_path.is_dir():
            logging.error(f"Vault directory not found: {self.vault_path}")
            return []

        paths = self._select_paths()
        if len(paths) > self.max_source_files:
            logging.warning(
                f"Selection contains {len(paths)} notes; only the first {self.max_source_files} are used"
            )
            paths = paths[:self.max_source_files]

        contents = []
        for path in paths:
            content = self._read_note(path)
            if content is not None:
                contents.append(content)

        logging.info(f"Aggregated {len(contents)} notes from {self.vault_path}")
        return contents

    def _select_paths(self) -> List[Path]:
        selected: List[Path] = []

        def add(path: Path) -> None:
            resolved = path.resolve()
            if resolved not in selected:
                selected.append(resolved)

        for name in self.selection.files:
            path = self.vault_path / name
            if path.is_file():
                add(path)
            else:
                logging.warning(f"Selected file not found: {name}")

        for name in self.selection.folders:
            folder = self.vault_path / name
            if not folder.is_dir():
                logging.warning(f"Selected folder not found: {name}")
                continue
            pattern = folder.rglob("*") if self.selection.include_subfolders else folder.glob("*")
            for path in sorted(pattern):
                if path.is_file() and path.suffix.lower() in NOTE_SUFFIXES and not self._is_hidden(path):
                    add(path)

        if self.selection.tags:
            for path in sorted(self.vault_path.rglob("*")):
                if not path.is_file() or path.suffix.lower() not in NOTE_SUFFIXES or self._is_hidden(path):
                    continue
                try:
                    note_tags = extract_tags(path.read_text(encoding="utf-8"))
                except (OSError, UnicodeDecodeError) as e:
                    logging.warning(f"Could not read {path}: {e}")
                    continue
                if any(tag_matches(note_tags, wanted) for wanted in self.selection.tags):
                    add(path)

        return sorted(selected, key=lambda path: self._relative(path))

    def _is_hidden(self, path: Path) -> bool:
        return any(part.startswith(".") for part in Path(self._relative(path)).parts)

    def _relative(self, path: Path) -> str:
        try:
            return path.resolve().relative_to(self.vault_path.resolve()).as_posix()
        except ValueError:
            return path.as_posix()

    def _read_note(self, path: Path) -> Optional[ProcessedContent]:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logging.warning(f"Could not read {path}: {e}")
            return None

        _, body = split_front_matter(text)
        return ProcessedContent(
            source_id=self._relative(path),
            tags=extract_tags(text),
            content=body if self.include_content else "",
            length=len(body)
        )
