"""Tests for blocks_db.py - SQLite block store.

Tests:
- Document CRUD and cascading delete
- Block upsert/delete/reorder
- Applying editor change sets
- Legacy entries
"""

from __future__ import annotations

from pathlib import Path

import pytest

from blockpad.document import blocks_db
from blockpad.document.blocks_models import Block, BlockMetadata, BlockType
from blockpad.document.editor import ChangeSet, EditorEngine
from blockpad.errors import DatabaseError, DocumentNotFoundError


class TestDocuments:
    """Test document-level operations."""

    def test_create_and_get(self, temp_data_dir: Path) -> None:
        document = blocks_db.create_document("Journal")
        loaded = blocks_db.get_document(document.id)

        assert loaded is not None
        assert loaded.title == "Journal"
        assert loaded.blocks == {}

    def test_get_missing(self, temp_data_dir: Path) -> None:
        assert blocks_db.get_document("doc-missing") is None

    def test_list_documents(self, temp_data_dir: Path) -> None:
        blocks_db.create_document("One")
        blocks_db.create_document("Two")
        titles = {d["title"] for d in blocks_db.list_documents()}
        assert titles == {"One", "Two"}

    def test_delete_cascades_to_blocks(self, temp_data_dir: Path) -> None:
        document = blocks_db.create_document("Doomed")
        blocks_db.upsert_blocks(document.id, [Block.new(content="x")])

        assert blocks_db.delete_document(document.id) is True
        assert blocks_db.list_blocks(document.id) == []
        assert blocks_db.delete_document(document.id) is False

    def test_database_file_in_data_dir(self, temp_data_dir: Path) -> None:
        blocks_db.create_document("Where")
        assert (temp_data_dir / "blocks.db").exists()


class TestBlocks:
    """Test block-level operations."""

    def test_upsert_roundtrip(self, temp_data_dir: Path) -> None:
        document = blocks_db.create_document("Doc")
        block = Block.new(
            BlockType.CODE,
            "print(1)",
            order=0,
            indent_level=2,
            metadata=BlockMetadata(language="python"),
        )
        blocks_db.upsert_blocks(document.id, [block])

        [stored] = blocks_db.list_blocks(document.id)
        assert stored == block

    def test_upsert_replaces_by_id(self, temp_data_dir: Path) -> None:
        document = blocks_db.create_document("Doc")
        block = Block.new(content="v1")
        blocks_db.upsert_blocks(document.id, [block])
        block.content = "v2"
        blocks_db.upsert_blocks(document.id, [block])

        stored = blocks_db.list_blocks(document.id)
        assert [b.content for b in stored] == ["v2"]

    def test_delete_blocks(self, temp_data_dir: Path) -> None:
        document = blocks_db.create_document("Doc")
        keep, drop = Block.new(content="keep", order=0), Block.new(content="drop", order=1)
        blocks_db.upsert_blocks(document.id, [keep, drop])

        assert blocks_db.delete_blocks([drop.id]) == 1
        assert [b.id for b in blocks_db.list_blocks(document.id)] == [keep.id]

    def test_reorder_blocks(self, temp_data_dir: Path) -> None:
        document = blocks_db.create_document("Doc")
        a, b = Block.new(content="a", order=0), Block.new(content="b", order=1)
        blocks_db.upsert_blocks(document.id, [a, b])

        blocks_db.reorder_blocks([(a.id, 1), (b.id, 0)])
        assert [blk.content for blk in blocks_db.list_blocks(document.id)] == ["b", "a"]

    def test_unknown_type_tag_loads_as_text(self, temp_data_dir: Path) -> None:
        document = blocks_db.create_document("Doc")
        block = Block.new(content="x")
        blocks_db.upsert_blocks(document.id, [block])
        with blocks_db._transaction("test") as conn:
            conn.execute("UPDATE blocks SET type = 'kanban' WHERE id = ?", (block.id,))

        [stored] = blocks_db.list_blocks(document.id)
        assert stored.type is BlockType.TEXT

    def test_integrity_failure_raises_database_error(self, temp_data_dir: Path) -> None:
        block = Block.new(content="orphan")
        with pytest.raises(DatabaseError) as exc_info:
            blocks_db.upsert_blocks("doc-missing", [block])

        assert exc_info.value.operation == "upsert_blocks"
        assert exc_info.value.recoverable is False
        assert blocks_db.list_blocks("doc-missing") == []


class TestApplyChanges:
    """Test persisting engine change sets."""

    def test_engine_session_persists(self, temp_data_dir: Path) -> None:
        document = blocks_db.create_document("Live")
        engine = EditorEngine(document, listeners=[blocks_db.apply_changes])

        first = engine.blocks[0]
        engine.update_content(first.id, "# Title")
        second = engine.insert_after(first.id, BlockType.BULLETED_LIST, "A")
        third = engine.insert_after(second.id, BlockType.BULLETED_LIST, "B")
        engine.move(third.id, second.id)
        engine.delete(second.id)

        loaded = blocks_db.get_document(document.id)
        assert loaded is not None
        assert [b.to_dict() for b in loaded.ordered_blocks()] == [
            b.to_dict() for b in engine.blocks
        ]
        assert loaded.modified_at == engine.document.modified_at

    def test_undo_is_persisted(self, temp_data_dir: Path) -> None:
        document = blocks_db.create_document("Live")
        engine = EditorEngine(document, listeners=[blocks_db.apply_changes])
        engine.insert_after(engine.blocks[0].id, content="temp")
        engine.undo()

        assert len(blocks_db.list_blocks(document.id)) == 1

    def test_missing_document(self, temp_data_dir: Path) -> None:
        with pytest.raises(DocumentNotFoundError):
            blocks_db.apply_changes(ChangeSet("doc-nope", "2024-01-01T00:00:00+00:00"))


class TestSaveDocument:
    def test_save_drops_stale_blocks(self, temp_data_dir: Path) -> None:
        document = blocks_db.create_document("Doc")
        stale = Block.new(content="stale")
        blocks_db.upsert_blocks(document.id, [stale])

        fresh = Block.new(content="fresh")
        document.add(fresh)
        blocks_db.save_document(document)

        assert [b.id for b in blocks_db.list_blocks(document.id)] == [fresh.id]


class TestLegacyDocuments:
    def test_legacy_flagging(self, temp_data_dir: Path) -> None:
        legacy = blocks_db.create_document("Old", legacy_content="# Old\n\ntext")
        blocks_db.create_document("New")

        assert blocks_db.count_legacy_documents() == 1
        [entry] = blocks_db.list_legacy_documents()
        assert entry["id"] == legacy.id
        assert entry["legacy_content"] == "# Old\n\ntext"
        assert blocks_db.get_legacy_document(legacy.id) is not None

    def test_rollback_unknown(self, temp_data_dir: Path) -> None:
        assert blocks_db.rollback_document("doc-nope", "") is False
