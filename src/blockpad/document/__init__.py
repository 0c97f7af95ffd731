"""Block document engine.

Key components:
- blocks_models: Block, BlockType, BlockMetadata, Document dataclasses
- editor: EditorEngine and the ChangeSet it emits
- history: snapshot undo/redo
- auto_format: markdown-prefix auto-formatting rules
- slash_menu: slash-command block type picker
- markdown_parser: Markdown -> Blocks conversion
- markdown_renderer: Blocks -> Markdown export
- blocks_db: SQLite block store
- persistence: debounced change-set writer
- migration: legacy markdown entry migration
"""

from .auto_format import Conversion, recognize
from .blocks_models import Block, BlockCategory, BlockMetadata, BlockType, Document
from .editor import ChangeSet, EditorEngine
from .history import EditorState, HistoryManager
from .markdown_parser import from_markdown, parse_commonmark
from .markdown_renderer import render_block, render_markdown
from .migration import BlockMigrationService, MigrationProgress
from .persistence import PersistenceWriter
from .slash_menu import CATALOG, SlashMenuItem, SlashMenuState, filter_items

__all__ = [
    "Block",
    "BlockCategory",
    "BlockMetadata",
    "BlockType",
    "Document",
    "Conversion",
    "recognize",
    "ChangeSet",
    "EditorEngine",
    "EditorState",
    "HistoryManager",
    "from_markdown",
    "parse_commonmark",
    "render_block",
    "render_markdown",
    "BlockMigrationService",
    "MigrationProgress",
    "PersistenceWriter",
    "CATALOG",
    "SlashMenuItem",
    "SlashMenuState",
    "filter_items",
]
