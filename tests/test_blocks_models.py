"""Tests for blocks_models.py - taxonomy, metadata and serialization."""

from __future__ import annotations

import pytest

from blockpad.document.blocks_models import (
    NESTABLE_TYPES,
    Block,
    BlockCategory,
    BlockMetadata,
    BlockType,
    Document,
    require_all_types,
)


class TestBlockType:
    """Test the taxonomy and capability matrix."""

    def test_parse_known_tag(self) -> None:
        assert BlockType.parse("check_list") is BlockType.CHECK_LIST

    def test_parse_unknown_tag_is_text(self) -> None:
        """Malformed tags decode to text instead of failing."""
        assert BlockType.parse("kanban") is BlockType.TEXT
        assert BlockType.parse(None) is BlockType.TEXT

    def test_heading_levels(self) -> None:
        for level in range(1, 7):
            assert BlockType.heading(level).heading_level == level
        assert BlockType.TEXT.heading_level is None

    def test_heading_level_out_of_range(self) -> None:
        with pytest.raises(ValueError):
            BlockType.heading(7)

    def test_nesting_capability(self) -> None:
        assert NESTABLE_TYPES == {
            BlockType.BULLETED_LIST,
            BlockType.NUMBERED_LIST,
            BlockType.CHECK_LIST,
            BlockType.QUOTE,
            BlockType.CALLOUT,
            BlockType.TOGGLE,
        }

    def test_inline_formatting_capability(self) -> None:
        no_inline = {t for t in BlockType if not t.supports_inline_formatting}
        assert no_inline == {
            BlockType.CODE,
            BlockType.DIVIDER,
            BlockType.IMAGE,
            BlockType.FILE,
            BlockType.TABLE,
        }

    def test_every_type_has_traits(self) -> None:
        for block_type in BlockType:
            assert block_type.display_name
            assert isinstance(block_type.category, BlockCategory)

    def test_require_all_types_reports_missing(self) -> None:
        with pytest.raises(RuntimeError, match="renderers"):
            require_all_types({BlockType.TEXT: None}, "renderers")


class TestBlock:
    """Test Block creation, conversion and serialization."""

    def test_new_block_defaults(self) -> None:
        block = Block.new()
        assert block.id.startswith("block-")
        assert block.type is BlockType.TEXT
        assert block.content == ""
        assert block.indent_level == 0
        assert block.created_at == block.modified_at

    def test_new_clamps_indent(self) -> None:
        assert Block.new(indent_level=10).indent_level == 6
        assert Block.new(indent_level=-2).indent_level == 0

    def test_irrelevant_metadata_reads_default(self) -> None:
        block = Block.new(BlockType.TEXT, "hello")
        assert block.metadata.language is None
        assert block.metadata.is_checked is False
        assert block.metadata.header_row is True

    def test_convert_to_code_sets_language(self) -> None:
        block = Block.new(BlockType.TEXT, "print()")
        block.convert_to(BlockType.CODE, default_language="swift", default_callout_icon="i")
        assert block.type is BlockType.CODE
        assert block.metadata.language == "swift"
        assert block.content == "print()"

    def test_convert_to_code_keeps_existing_language(self) -> None:
        block = Block.new(BlockType.TEXT, "x", metadata=BlockMetadata(language="python"))
        block.convert_to(BlockType.CODE, default_language="swift", default_callout_icon="i")
        assert block.metadata.language == "python"

    def test_convert_to_callout_sets_icon(self) -> None:
        block = Block.new(BlockType.TEXT, "note")
        block.convert_to(
            BlockType.CALLOUT, default_language="swift", default_callout_icon="info.circle"
        )
        assert block.metadata.callout_icon == "info.circle"

    def test_convert_to_check_list_resets_checked(self) -> None:
        block = Block.new(BlockType.TEXT, "task", metadata=BlockMetadata(is_checked=True))
        block.convert_to(BlockType.CHECK_LIST, default_language="swift", default_callout_icon="i")
        assert block.metadata.is_checked is False

    def test_indent_and_outdent_bounds(self) -> None:
        block = Block.new(indent_level=6)
        assert block.indent() is False
        assert block.indent_level == 6

        block = Block.new()
        assert block.outdent() is False
        assert block.indent() is True
        assert block.indent_level == 1

    def test_clone_is_independent(self) -> None:
        block = Block.new(BlockType.CHECK_LIST, "task")
        copy = block.clone()
        copy.content = "changed"
        copy.metadata.is_checked = True
        assert block.content == "task"
        assert block.metadata.is_checked is False

    def test_dict_roundtrip(self) -> None:
        block = Block.new(
            BlockType.CODE,
            "let x = 1",
            order=3,
            indent_level=2,
            metadata=BlockMetadata(language="swift"),
        )
        restored = Block.from_dict(block.to_dict())
        assert restored == block

    def test_from_dict_unknown_type(self) -> None:
        block = Block.from_dict({"id": "block-1", "type": "mystery", "content": "x"})
        assert block.type is BlockType.TEXT
        assert block.metadata == BlockMetadata()

    def test_metadata_from_dict_ignores_unknown_keys(self) -> None:
        metadata = BlockMetadata.from_dict({"language": "go", "colour": "red"})
        assert metadata.language == "go"

    def test_to_markdown_includes_indent(self) -> None:
        block = Block.new(BlockType.BULLETED_LIST, "item", indent_level=2)
        assert block.to_markdown() == "    - item"


class TestDocument:
    def test_ordered_blocks(self) -> None:
        document = Document.new("Notes")
        second = Block.new(content="b", order=1)
        first = Block.new(content="a", order=0)
        document.add(second)
        document.add(first)
        assert [b.content for b in document.ordered_blocks()] == ["a", "b"]

    def test_to_dict_without_blocks(self) -> None:
        document = Document.new("Notes")
        data = document.to_dict(include_blocks=False)
        assert data["title"] == "Notes"
        assert "blocks" not in data
