"""
Tests for the vault and mock importers.
"""

import unittest
import tempfile
import shutil
from pathlib import Path

from mindloom.importers import MockImporter, VaultImporter, collect_tags, extract_tags, split_front_matter
from mindloom.models import ProcessedContent, SourceSelection


AI_NOTE = """---
tags: [technological/ai]
---
AI notes with an inline #research tag.

```
#notatag inside code
```
And `#alsonot` inline code.
"""

QUANTUM_NOTE = "Qubits and error correction. #deeptech/quantum-ai\n"

MARKETS_NOTE = """---
tags: economic/markets, research
---
Market Shift notes.
"""


class TestTagExtraction(unittest.TestCase):
    """Test front matter and inline tag parsing."""

    def test_split_front_matter(self):
        front, body = split_front_matter(MARKETS_NOTE)

        self.assertEqual(front, {"tags": "economic/markets, research"})
        self.assertEqual(body.strip(), "Market Shift notes.")

    def test_no_front_matter(self):
        self.assertEqual(split_front_matter("Just text"), ({}, "Just text"))

    def test_front_matter_and_inline_tags(self):
        self.assertEqual(extract_tags(AI_NOTE), ["technological/ai", "research"])

    def test_string_front_matter_tags(self):
        self.assertEqual(extract_tags(MARKETS_NOTE), ["economic/markets", "research"])

    def test_inline_tag_rules(self):
        text = "# Heading\nSee #a/b and word#skip and #c, then #a/b again. https://x.test/#anchor"

        self.assertEqual(extract_tags(text), ["a/b", "c"])


class TestVaultImporter(unittest.TestCase):
    """Test note selection and aggregation."""

    def setUp(self):
        """Create a small vault."""
        self.vault = Path(tempfile.mkdtemp())
        (self.vault / "notes" / "deep").mkdir(parents=True)
        (self.vault / ".obsidian").mkdir()
        (self.vault / "notes" / "ai.md").write_text(AI_NOTE, encoding="utf-8")
        (self.vault / "notes" / "deep" / "quantum.md").write_text(QUANTUM_NOTE, encoding="utf-8")
        (self.vault / "notes" / "readme.txt").write_text("#ignored", encoding="utf-8")
        (self.vault / "markets.md").write_text(MARKETS_NOTE, encoding="utf-8")
        (self.vault / ".obsidian" / "workspace.md").write_text("#research", encoding="utf-8")

    def tearDown(self):
        shutil.rmtree(self.vault)

    def source_ids(self, selection=None, **kwargs):
        importer = VaultImporter(str(self.vault), selection=selection, **kwargs)
        return [content.source_id for content in importer.get_all_sources()]

    def test_default_selection_is_whole_vault(self):
        self.assertEqual(self.source_ids(), ["markets.md", "notes/ai.md", "notes/deep/quantum.md"])

    def test_folder_without_subfolders(self):
        selection = SourceSelection(folders=["notes"])

        self.assertEqual(self.source_ids(selection), ["notes/ai.md"])

    def test_folder_with_subfolders(self):
        selection = SourceSelection(folders=["notes"], include_subfolders=True)

        self.assertEqual(self.source_ids(selection), ["notes/ai.md", "notes/deep/quantum.md"])

    def test_tag_selection_includes_child_tags(self):
        selection = SourceSelection(tags=["deeptech"])

        self.assertEqual(self.source_ids(selection), ["notes/deep/quantum.md"])

    def test_tag_selection_is_case_insensitive(self):
        selection = SourceSelection(tags=["#Research"])

        self.assertEqual(self.source_ids(selection), ["markets.md", "notes/ai.md"])

    def test_file_selection_combined_with_tags(self):
        selection = SourceSelection(files=["markets.md", "missing.md"], tags=["research"])

        self.assertEqual(self.source_ids(selection), ["markets.md", "notes/ai.md"])

    def test_source_cap(self):
        with self.assertLogs(level="WARNING"):
            ids = self.source_ids(max_source_files=2)

        self.assertEqual(ids, ["markets.md", "notes/ai.md"])

    def test_processed_content(self):
        importer = VaultImporter(str(self.vault), selection=SourceSelection(files=["markets.md"]))

        content = importer.get_all_sources()[0]

        self.assertEqual(content.tags, ["economic/markets", "research"])
        self.assertEqual(content.content.strip(), "Market Shift notes.")
        self.assertEqual(content.length, len(content.content))

    def test_content_can_be_left_out(self):
        importer = VaultImporter(str(self.vault), selection=SourceSelection(files=["markets.md"]),
                                 include_content=False)

        content = importer.get_all_sources()[0]

        self.assertEqual(content.content, "")
        self.assertGreater(content.length, 0)

    def test_missing_vault(self):
        importer = VaultImporter(str(self.vault / "nowhere"))

        self.assertEqual(importer.get_all_sources(), [])


class TestMockImporter(unittest.TestCase):
    """Test the sample importer and tag union."""

    def test_sample_notes(self):
        contents = MockImporter().get_all_sources()

        self.assertEqual(len(contents), 4)
        self.assertTrue(all(content.length == len(content.content) for content in contents))

    def test_collect_tags_first_seen_order(self):
        contents = [
            ProcessedContent(source_id="a.md", tags=["research", "technological/ai"]),
            ProcessedContent(source_id="b.md", tags=["technological/ai", "economic"]),
        ]

        self.assertEqual(collect_tags(contents), ["research", "technological/ai", "economic"])


if __name__ == '__main__':
    unittest.main()
