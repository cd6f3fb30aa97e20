"""
Tests for saving, loading, listing and deleting mindmaps.
"""

from datetime import datetime

import pytest

from mindloom.exceptions import PersistenceError
from mindloom.models import Mindmap, MindmapNode, assign_positional_ids
from mindloom.persistence import MindmapPersistence, content_hash, slugify
from mindloom.versioning.manager import GIT_AVAILABLE, VersionManager


def make_mindmap(title="Research Map", created_at=datetime(2026, 10, 18, 9, 30)):
    root = MindmapNode(id="root", title="", children=[
        MindmapNode(id="t", title="Technological", category="Technological", source_refs=["a.md"], children=[
            MindmapNode(id="ai", title="AI Research", tags={"ai"}, source_refs=["a.md"]),
        ]),
        MindmapNode(id="e", title="Economic", category="Economic", source_refs=["b.md"]),
    ])
    assign_positional_ids(root)
    return Mindmap(
        root=root,
        title=title,
        category_schema=["Technological", "Economic"],
        created_at=created_at,
        source_files=["a.md", "b.md"]
    )


@pytest.fixture
def markdown_store(tmp_path):
    store = MindmapPersistence(folder=str(tmp_path / "maps"), save_format="markdown")
    yield store
    store.close()


@pytest.fixture
def full_store(tmp_path):
    store = MindmapPersistence(folder=str(tmp_path / "maps"), save_format="both")
    yield store
    store.close()


def test_slugify():
    assert slugify("Research Map: 2026!") == "research-map-2026"
    assert slugify("???") == "mindmap"


def test_save_and_load(markdown_store):
    mindmap = make_mindmap()

    mindmap_id = markdown_store.save(mindmap)

    assert mindmap_id == "research-map"
    assert markdown_store.exists(mindmap_id)
    assert markdown_store.load(mindmap_id) == mindmap
    assert not list(markdown_store.folder.glob("*.tmp"))


def test_saved_file_is_plain_outline(markdown_store):
    mindmap_id = markdown_store.save(make_mindmap())

    text = markdown_store.path_for(mindmap_id).read_text(encoding="utf-8")

    assert "# Technological [SOURCES: a.md]" in text
    assert "  - AI Research [TAGS: ai] [SOURCES: a.md]" in text


def test_ids_are_unique_per_title(markdown_store):
    first = markdown_store.save(make_mindmap())
    second = markdown_store.save(make_mindmap())

    assert (first, second) == ("research-map", "research-map-2")


def test_save_with_id_overwrites(markdown_store):
    mindmap_id = markdown_store.save(make_mindmap())
    renamed = make_mindmap(title="Renamed")

    assert markdown_store.save(renamed, mindmap_id=mindmap_id) == mindmap_id
    assert markdown_store.load(mindmap_id).title == "Renamed"
    assert len(list(markdown_store.folder.glob("*.md"))) == 1


def test_load_missing_raises(markdown_store):
    with pytest.raises(PersistenceError):
        markdown_store.load("nope")


def test_hand_written_outline_uses_id_as_title(markdown_store):
    markdown_store.folder.mkdir(parents=True)
    markdown_store.path_for("scratch").write_text("# Social\n  - Communities\n", encoding="utf-8")

    mindmap = markdown_store.load("scratch")

    assert mindmap.title == "scratch"
    assert mindmap.category_schema == ["Social"]
    assert [w.code for w in markdown_store.warnings].count("unattributed") == 2


def test_list_newest_first_and_skips_unreadable(markdown_store):
    markdown_store.save(make_mindmap(title="Older", created_at=datetime(2026, 1, 1)))
    markdown_store.save(make_mindmap(title="Newer", created_at=datetime(2026, 6, 1)))
    markdown_store.path_for("broken").write_text("## Not an outline\n", encoding="utf-8")

    listing = markdown_store.list_mindmaps()

    assert [item.title for item in listing] == ["Newer", "Older"]
    assert listing[0].mindmap_id == "newer"
    assert listing[0].node_count == 3


def test_list_empty_folder(tmp_path):
    store = MindmapPersistence(folder=str(tmp_path / "missing"), save_format="markdown")

    assert store.list_mindmaps() == []


def test_delete(markdown_store):
    mindmap_id = markdown_store.save(make_mindmap())

    assert markdown_store.delete(mindmap_id) is True
    assert not markdown_store.exists(mindmap_id)
    assert markdown_store.delete(mindmap_id) is False


def test_markdown_only_has_no_database(markdown_store):
    markdown_store.save(make_mindmap())

    assert markdown_store.db is None
    assert not list(markdown_store.folder.glob("*.db"))


def test_unknown_save_format(tmp_path):
    with pytest.raises(ValueError):
        MindmapPersistence(folder=str(tmp_path), save_format="pdf")


def test_metadata_record_is_written(full_store):
    mindmap_id = full_store.save(make_mindmap())

    record = full_store.db.get_mindmap(mindmap_id)
    text = full_store.path_for(mindmap_id).read_text(encoding="utf-8")

    assert record.title == "Research Map"
    assert record.node_count == 3
    assert record.category_schema == ["Technological", "Economic"]
    assert record.content_hash == content_hash(text)


def test_metadata_fills_gaps_in_edited_outline(full_store):
    mindmap_id = full_store.save(make_mindmap())
    full_store.path_for(mindmap_id).write_text("# Technological [SOURCES: a.md]\n", encoding="utf-8")

    mindmap = full_store.load(mindmap_id)

    assert mindmap.title == "Research Map"
    assert mindmap.source_files == ["a.md", "b.md"]
    assert len(mindmap.root.children) == 1


def test_delete_removes_metadata(full_store):
    mindmap_id = full_store.save(make_mindmap())

    full_store.delete(mindmap_id)

    assert full_store.db.get_mindmap(mindmap_id) is None


@pytest.mark.skipif(not GIT_AVAILABLE, reason="GitPython is not available")
def test_saves_and_deletes_are_committed(tmp_path):
    folder = tmp_path / "maps"
    version_manager = VersionManager(repo_path=str(folder))
    store = MindmapPersistence(folder=str(folder), save_format="markdown", version_manager=version_manager)

    mindmap_id = store.save(make_mindmap())
    store.delete(mindmap_id)

    messages = [commit["message"] for commit in version_manager.get_commit_history()]
    assert messages[0].startswith("AI: Delete research-map")
    assert messages[1].startswith("AI: Save Research Map")
    assert messages[2] == "Initial commit: Add .gitignore"
    assert (folder / ".gitignore").is_file()
