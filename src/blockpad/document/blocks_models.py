"""Data models for the block-based document engine.

This module defines the core data structures for outliner-style blocks:
the closed BlockType taxonomy with its capability matrix, the Block unit
with its type-specific metadata, and the Document arena that owns them.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping
from uuid import uuid4

from ..config import EDITOR


def _now_iso() -> str:
    """Get current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


def _new_id(prefix: str) -> str:
    """Generate a new unique ID with prefix."""
    return f"{prefix}-{uuid4().hex[:12]}"


class BlockCategory(str, Enum):
    """Grouping used by the slash-command picker."""

    BASIC = "basic"
    LISTS = "lists"
    FORMATTING = "formatting"
    MEDIA = "media"
    ADVANCED = "advanced"

    @property
    def display_name(self) -> str:
        return _CATEGORY_NAMES[self]


_CATEGORY_NAMES = {
    BlockCategory.BASIC: "Basic Blocks",
    BlockCategory.LISTS: "Lists",
    BlockCategory.FORMATTING: "Formatting",
    BlockCategory.MEDIA: "Media",
    BlockCategory.ADVANCED: "Advanced",
}


class BlockType(str, Enum):
    """Closed set of block variants."""

    # Text blocks
    TEXT = "text"
    HEADING_1 = "heading_1"
    HEADING_2 = "heading_2"
    HEADING_3 = "heading_3"
    HEADING_4 = "heading_4"
    HEADING_5 = "heading_5"
    HEADING_6 = "heading_6"

    # List blocks
    BULLETED_LIST = "bulleted_list"
    NUMBERED_LIST = "numbered_list"
    CHECK_LIST = "check_list"

    # Code & quote
    CODE = "code"
    QUOTE = "quote"

    # Visual elements
    DIVIDER = "divider"
    CALLOUT = "callout"
    TOGGLE = "toggle"

    # Media placeholders
    IMAGE = "image"
    FILE = "file"

    # Advanced
    TABLE = "table"

    @classmethod
    def parse(cls, tag: Any) -> BlockType:
        """Decode a stored type tag, falling back to TEXT for unknown tags."""
        if isinstance(tag, BlockType):
            return tag
        try:
            return cls(str(tag))
        except ValueError:
            return cls.TEXT

    @classmethod
    def heading(cls, level: int) -> BlockType:
        """Return the heading variant for level 1..6."""
        if not 1 <= level <= EDITOR.MAX_HEADING_LEVEL:
            raise ValueError(f"Heading level out of range: {level}")
        return _HEADINGS[level - 1]

    @property
    def heading_level(self) -> int | None:
        """Heading level for heading variants, else None."""
        if self in _HEADINGS:
            return _HEADINGS.index(self) + 1
        return None

    @property
    def display_name(self) -> str:
        return _TRAITS[self].display_name

    @property
    def icon(self) -> str:
        return _TRAITS[self].icon

    @property
    def placeholder(self) -> str:
        return _TRAITS[self].placeholder

    @property
    def category(self) -> BlockCategory:
        return _TRAITS[self].category

    @property
    def supports_nesting(self) -> bool:
        """Can blocks of this type carry nested (indented) children?"""
        return _TRAITS[self].supports_nesting

    @property
    def supports_inline_formatting(self) -> bool:
        return _TRAITS[self].supports_inline_formatting

    @property
    def is_numbered(self) -> bool:
        return self is BlockType.NUMBERED_LIST


_HEADINGS = (
    BlockType.HEADING_1,
    BlockType.HEADING_2,
    BlockType.HEADING_3,
    BlockType.HEADING_4,
    BlockType.HEADING_5,
    BlockType.HEADING_6,
)


@dataclass(frozen=True)
class BlockTraits:
    """Static capability row for one BlockType."""

    display_name: str
    icon: str
    placeholder: str
    category: BlockCategory
    supports_nesting: bool = False
    supports_inline_formatting: bool = True


_B, _L, _F, _M, _A = (
    BlockCategory.BASIC,
    BlockCategory.LISTS,
    BlockCategory.FORMATTING,
    BlockCategory.MEDIA,
    BlockCategory.ADVANCED,
)

_TRAITS: dict[BlockType, BlockTraits] = {
    BlockType.TEXT: BlockTraits("Text", "text.alignleft", "Type '/' for commands...", _B),
    BlockType.HEADING_1: BlockTraits("Heading 1", "textformat.size.larger", "Heading 1", _B),
    BlockType.HEADING_2: BlockTraits("Heading 2", "textformat.size.larger", "Heading 2", _B),
    BlockType.HEADING_3: BlockTraits("Heading 3", "textformat.size", "Heading 3", _B),
    BlockType.HEADING_4: BlockTraits("Heading 4", "textformat.size", "Heading 4", _B),
    BlockType.HEADING_5: BlockTraits("Heading 5", "textformat.size.smaller", "Heading 5", _B),
    BlockType.HEADING_6: BlockTraits("Heading 6", "textformat.size.smaller", "Heading 6", _B),
    BlockType.BULLETED_LIST: BlockTraits("Bullet List", "list.bullet", "List item", _L, True),
    BlockType.NUMBERED_LIST: BlockTraits("Numbered List", "list.number", "List item", _L, True),
    BlockType.CHECK_LIST: BlockTraits("Checklist", "checklist", "To-do", _L, True),
    BlockType.CODE: BlockTraits(
        "Code", "chevron.left.forwardslash.chevron.right", "Code...", _F, False, False
    ),
    BlockType.QUOTE: BlockTraits("Quote", "quote.opening", "Quote...", _F, True),
    BlockType.DIVIDER: BlockTraits("Divider", "minus", "", _A, False, False),
    BlockType.CALLOUT: BlockTraits("Callout", "exclamationmark.bubble", "Callout text...", _F, True),
    BlockType.TOGGLE: BlockTraits("Toggle", "chevron.right", "Toggle heading...", _A, True),
    BlockType.IMAGE: BlockTraits("Image", "photo", "Add image...", _M, False, False),
    BlockType.FILE: BlockTraits("File", "doc", "Add file...", _M, False, False),
    BlockType.TABLE: BlockTraits("Table", "tablecells", "Table...", _A, False, False),
}


def require_all_types(table: Mapping[BlockType, Any], name: str) -> None:
    """Fail at import time when a per-type table misses a BlockType."""
    missing = [t.value for t in BlockType if t not in table]
    if missing:
        raise RuntimeError(f"{name} is missing block types: {', '.join(missing)}")


require_all_types(_TRAITS, "block traits")


# Block types that support nesting children
NESTABLE_TYPES = frozenset(t for t in BlockType if t.supports_nesting)


@dataclass
class BlockMetadata:
    """Type-specific block data.

    Every field always exists with a default, so reading metadata that is
    irrelevant to the current type is safe.
    """

    # Code
    language: str | None = None
    show_line_numbers: bool = False

    # Callout
    callout_icon: str | None = None
    callout_color: str | None = None

    # Toggle
    is_expanded: bool = True

    # Checklist
    is_checked: bool = False

    # Image / file placeholders
    image_url: str | None = None
    image_caption: str | None = None
    image_width: float | None = None
    image_height: float | None = None

    # Table
    column_count: int | None = None
    row_count: int | None = None
    header_row: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> BlockMetadata:
        """Create from dictionary, ignoring unknown keys."""
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


METADATA_FIELDS = frozenset(f.name for f in fields(BlockMetadata))


@dataclass
class Block:
    """A content block in the block editor.

    Blocks form a flat ordered list; outline nesting is encoded by
    ``indent_level`` only and never affects ``order``.
    """

    id: str
    type: BlockType
    content: str = ""

    # Position
    order: int = 0
    indent_level: int = 0

    # Timestamps
    created_at: str = ""
    modified_at: str = ""

    metadata: BlockMetadata = field(default_factory=BlockMetadata)

    @classmethod
    def new(
        cls,
        type: BlockType | str = BlockType.TEXT,
        content: str = "",
        *,
        order: int = 0,
        indent_level: int = 0,
        metadata: BlockMetadata | None = None,
    ) -> Block:
        """Create a fresh block with a new id and timestamps."""
        now = _now_iso()
        return cls(
            id=_new_id("block"),
            type=BlockType.parse(type),
            content=content,
            order=order,
            indent_level=_clamp_indent(indent_level),
            created_at=now,
            modified_at=now,
            metadata=metadata or BlockMetadata(),
        )

    def clone(self) -> Block:
        """Structural copy used for undo snapshots."""
        return replace(self, metadata=replace(self.metadata))

    def touch(self) -> None:
        self.modified_at = _now_iso()

    def update_content(self, content: str) -> None:
        """Replace the payload and mark as modified."""
        self.content = content
        self.touch()

    def convert_to(
        self,
        block_type: BlockType,
        *,
        default_language: str,
        default_callout_icon: str,
    ) -> None:
        """Change the block type in place, initializing type metadata.

        Content is left untouched.
        """
        self.type = block_type
        if block_type is BlockType.CODE:
            if self.metadata.language is None:
                self.metadata.language = default_language
        elif block_type is BlockType.CALLOUT:
            if self.metadata.callout_icon is None:
                self.metadata.callout_icon = default_callout_icon
        elif block_type is BlockType.CHECK_LIST:
            self.metadata.is_checked = False
        self.touch()

    def indent(self) -> bool:
        """Increase indent level. Returns False when already at the maximum."""
        if self.indent_level >= EDITOR.MAX_INDENT_LEVEL:
            return False
        self.indent_level += 1
        self.touch()
        return True

    def outdent(self) -> bool:
        """Decrease indent level. Returns False when already at zero."""
        if self.indent_level <= 0:
            return False
        self.indent_level -= 1
        self.touch()
        return True

    def is_nestable(self) -> bool:
        """Check if this block type supports children."""
        return self.type in NESTABLE_TYPES

    def plain_text(self) -> str:
        return self.content

    def to_markdown(self) -> str:
        """Render this block as a markdown line (or fence for code)."""
        from .markdown_renderer import render_block

        return render_block(self)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "type": self.type.value,
            "content": self.content,
            "order": self.order,
            "indent_level": self.indent_level,
            "created_at": self.created_at,
            "modified_at": self.modified_at,
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Block:
        """Create from dictionary. Unknown type tags decode to text."""
        return cls(
            id=data["id"],
            type=BlockType.parse(data.get("type")),
            content=data.get("content") or "",
            order=int(data.get("order", 0)),
            indent_level=_clamp_indent(int(data.get("indent_level", 0))),
            created_at=data.get("created_at", ""),
            modified_at=data.get("modified_at", ""),
            metadata=BlockMetadata.from_dict(data.get("metadata")),
        )


def _clamp_indent(level: int) -> int:
    return max(0, min(EDITOR.MAX_INDENT_LEVEL, level))


@dataclass
class Document:
    """A note composed of blocks.

    The document is the arena that owns its blocks, keyed by id. Editors and
    stores refer to blocks by id and never hold divergent copies.
    """

    id: str
    title: str = ""
    created_at: str = ""
    modified_at: str = ""
    blocks: dict[str, Block] = field(default_factory=dict)

    @classmethod
    def new(cls, title: str = "") -> Document:
        now = _now_iso()
        return cls(id=_new_id("doc"), title=title, created_at=now, modified_at=now)

    def touch(self) -> None:
        self.modified_at = _now_iso()

    def ordered_blocks(self) -> list[Block]:
        """Blocks sorted by their order key."""
        return sorted(self.blocks.values(), key=lambda b: b.order)

    def add(self, block: Block) -> None:
        self.blocks[block.id] = block

    def to_dict(self, include_blocks: bool = True) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "created_at": self.created_at,
            "modified_at": self.modified_at,
        }
        if include_blocks:
            result["blocks"] = [b.to_dict() for b in self.ordered_blocks()]
        return result
