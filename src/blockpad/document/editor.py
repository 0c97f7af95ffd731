"""Editor engine for one open block document.

The engine owns the ordered list of block ids and the focus pointer for a
single document, and is the only place blocks are mutated while the
document is open. Every mutating operation:

1. validates its arguments (unknown ids raise ``BlockNotFoundError``),
2. snapshots the pre-mutation state into the history,
3. applies the change and reindexes ``order`` to ``0..n-1``,
4. emits a ``ChangeSet`` to registered listeners (persistence).

Edge cases such as indenting past the maximum or dropping a block onto
itself are silent no-ops and record nothing.

Engines are not thread-safe. Drive each instance from a single task; one
engine exists per open document.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator

from ..config import EDITOR
from ..errors import BlockNotFoundError, ValidationError
from ..settings import Settings, settings as default_settings
from .auto_format import Conversion, recognize
from .blocks_models import METADATA_FIELDS, Block, BlockType, Document
from .history import EditorState, HistoryManager
from .markdown_parser import from_markdown
from .markdown_renderer import render_markdown
from .slash_menu import SlashMenuState

logger = logging.getLogger(__name__)

SLASH_TRIGGER = "/"


# =============================================================================
# Change Sets
# =============================================================================


@dataclass
class ChangeSet:
    """Persistence-facing summary of one or more mutations.

    Maps directly onto the store operations: insert-or-replace by id,
    delete by id and bulk (id, order) reorder.
    """

    document_id: str
    modified_at: str
    upserted: dict[str, Block] = field(default_factory=dict)
    deleted: set[str] = field(default_factory=set)
    reordered: dict[str, int] = field(default_factory=dict)

    @classmethod
    def diff(
        cls,
        document: Document,
        before: Iterable[Block],
        after: Iterable[Block],
    ) -> ChangeSet:
        """Compute the changes that turn ``before`` into ``after``."""
        old = {block.id: block for block in before}
        changes = cls(document_id=document.id, modified_at=document.modified_at)

        for block in after:
            previous = old.pop(block.id, None)
            if previous is None or _content_fields(previous) != _content_fields(block):
                changes.upserted[block.id] = block.clone()
            elif previous.order != block.order:
                changes.reordered[block.id] = block.order

        changes.deleted.update(old)
        return changes

    @property
    def is_empty(self) -> bool:
        return not (self.upserted or self.deleted or self.reordered)

    def merge(self, newer: ChangeSet) -> ChangeSet:
        """Combine with a later change set; the later one wins per id."""
        merged = ChangeSet(
            document_id=self.document_id,
            modified_at=newer.modified_at or self.modified_at,
            upserted=dict(self.upserted),
            deleted=set(self.deleted),
            reordered=dict(self.reordered),
        )
        for block_id in newer.deleted:
            merged.upserted.pop(block_id, None)
            merged.reordered.pop(block_id, None)
            merged.deleted.add(block_id)
        for block_id, block in newer.upserted.items():
            merged.deleted.discard(block_id)
            merged.reordered.pop(block_id, None)
            merged.upserted[block_id] = block
        for block_id, order in newer.reordered.items():
            if block_id in merged.upserted:
                # Copy so neither input set sees the new order.
                moved = merged.upserted[block_id].clone()
                moved.order = order
                merged.upserted[block_id] = moved
            else:
                merged.reordered[block_id] = order
        return merged

    def reorder_pairs(self) -> list[tuple[str, int]]:
        return sorted(self.reordered.items(), key=lambda pair: pair[1])


def _content_fields(block: Block) -> dict[str, Any]:
    data = block.to_dict()
    data.pop("order")
    return data


ChangeListener = Callable[[ChangeSet], None]


# =============================================================================
# Editor Engine
# =============================================================================


class EditorEngine:
    """Stateful controller owning the ordered block list of one document."""

    def __init__(
        self,
        document: Document,
        *,
        history: HistoryManager | None = None,
        cfg: Settings | None = None,
        listeners: Iterable[ChangeListener] = (),
        seed: bool = True,
    ) -> None:
        self.document = document
        self.settings = cfg or default_settings
        self.history = history or HistoryManager(self.settings.history_limit)
        self._listeners: list[ChangeListener] = list(listeners)

        self._ids: list[str] = [block.id for block in document.ordered_blocks()]
        for index, block_id in enumerate(self._ids):
            document.blocks[block_id].order = index

        self.focused_block_id: str | None = self._ids[0] if self._ids else None
        self.selected_block_ids: set[str] = set()
        self.slash_menu: SlashMenuState | None = None

        if seed and not self._ids:
            self._seed()

    # =========================================================================
    # Read access
    # =========================================================================

    @property
    def blocks(self) -> list[Block]:
        """Blocks in document order."""
        return [self.document.blocks[block_id] for block_id in self._ids]

    @property
    def block_ids(self) -> list[str]:
        return list(self._ids)

    def get_block(self, block_id: str) -> Block:
        return self._require(block_id)

    def index_of(self, block_id: str) -> int:
        self._require(block_id)
        return self._ids.index(block_id)

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        self._listeners.remove(listener)

    def snapshot(self) -> EditorState:
        return EditorState.capture(self.blocks, self.focused_block_id)

    def to_dict(self) -> dict[str, Any]:
        """Ordered block list plus focus, as returned to the presentation layer."""
        return {
            "document_id": self.document.id,
            "modified_at": self.document.modified_at,
            "blocks": [block.to_dict() for block in self.blocks],
            "focused_block_id": self.focused_block_id,
            "can_undo": self.history.can_undo,
            "can_redo": self.history.can_redo,
            "slash_menu": self.slash_menu.to_dict() if self.slash_menu else None,
        }

    # =========================================================================
    # Insert / delete
    # =========================================================================

    def insert_after(
        self,
        block_id: str,
        block_type: BlockType | str = BlockType.TEXT,
        content: str = "",
    ) -> Block:
        """Insert a new block right after ``block_id`` and focus it."""
        anchor = self._require(block_id)
        block_type = _coerce_type(block_type)
        self._check_content(content)
        index = self._ids.index(block_id)

        with self._mutation("insert_after"):
            block = self._new_block(block_type, content, order=anchor.order + 1)
            self.document.add(block)
            self._ids.insert(index + 1, block.id)
            self.focused_block_id = block.id

        return block

    def ensure_seed_block(self) -> Block | None:
        """Re-seed an emptied document with one text block.

        Returns the new block, or None when the document is not empty.
        """
        if self._ids:
            return None
        with self._mutation("seed"):
            block = self._add_seed()
        return block

    def delete(self, block_id: str) -> None:
        """Delete one block; focus moves to the previous block, else the next."""
        self._require(block_id)
        index = self._ids.index(block_id)

        with self._mutation("delete"):
            self._remove(block_id)
            self.focused_block_id = self._neighbour_at(index)

    def delete_selection(self, block_ids: Iterable[str] | None = None) -> int:
        """Delete a set of blocks as one undoable unit.

        Args:
            block_ids: Ids to delete; defaults to the current selection.

        Returns:
            Number of deleted blocks.
        """
        ids = set(self.selected_block_ids if block_ids is None else block_ids)
        if len(ids) > EDITOR.MAX_SELECTION_SIZE:
            raise ValidationError(
                "Selection too large",
                field="block_ids",
                constraint=f"max {EDITOR.MAX_SELECTION_SIZE}",
            )
        for block_id in ids:
            self._require(block_id)
        if not ids:
            return 0

        first_index = min(self._ids.index(block_id) for block_id in ids)
        survivors_before = [i for i in self._ids[:first_index] if i not in ids]

        with self._mutation("delete_selection"):
            for block_id in ids:
                self._remove(block_id)
            if survivors_before:
                self.focused_block_id = survivors_before[-1]
            else:
                self.focused_block_id = self._ids[0] if self._ids else None
            self.selected_block_ids.clear()

        return len(ids)

    # =========================================================================
    # Selection
    # =========================================================================

    def select(self, block_ids: Iterable[str]) -> None:
        ids = set(block_ids)
        for block_id in ids:
            self._require(block_id)
        self.selected_block_ids = ids

    def clear_selection(self) -> None:
        self.selected_block_ids.clear()

    # =========================================================================
    # Type and content
    # =========================================================================

    def convert(self, block_id: str, new_type: BlockType | str) -> Block:
        """Change a block's type in place; content is preserved."""
        block = self._require(block_id)
        new_type = _coerce_type(new_type)
        if block.type is new_type:
            return block

        with self._mutation("convert"):
            self._convert(block, new_type)

        return block

    def update_content(self, block_id: str, text: str) -> Block:
        """Replace a block's content, driving the slash menu and auto-format.

        A leading ``/`` typed into a block opens the slash menu for it and the
        rest of the text becomes the menu query. Auto-format only runs once
        the menu is closed for this block, so an edit that removes the ``/``
        closes the menu and is then formatted.
        """
        block = self._require(block_id)
        self._check_content(text)
        if text == block.content:
            return block

        previous = block.content
        with self._mutation("update_content"):
            block.update_content(text)
            self._sync_slash_menu(block_id, previous, text)
            if text and not self._slash_menu_open_for(block_id):
                conversion = recognize(block.type, text)
                if conversion is not None:
                    self._apply_conversion(block, conversion)

        return block

    def set_checked(self, block_id: str, checked: bool) -> Block:
        block = self._require(block_id)
        if block.metadata.is_checked == checked:
            return block
        with self._mutation("set_checked"):
            block.metadata.is_checked = checked
            block.touch()
        return block

    def update_metadata(self, block_id: str, **changes: Any) -> Block:
        """Set type-specific metadata fields on a block."""
        block = self._require(block_id)
        unknown = sorted(set(changes) - METADATA_FIELDS)
        if unknown:
            raise ValidationError(
                f"Unknown metadata fields: {', '.join(unknown)}",
                field="metadata",
            )
        if all(getattr(block.metadata, key) == value for key, value in changes.items()):
            return block

        with self._mutation("update_metadata"):
            for key, value in changes.items():
                setattr(block.metadata, key, value)
            block.touch()

        return block

    # =========================================================================
    # Indentation
    # =========================================================================

    def indent(self, block_id: str) -> Block:
        """Increase indent level by one; no-op at the maximum."""
        block = self._require(block_id)
        if block.indent_level >= EDITOR.MAX_INDENT_LEVEL:
            return block
        with self._mutation("indent"):
            block.indent()
        return block

    def outdent(self, block_id: str) -> Block:
        """Decrease indent level by one; no-op at zero."""
        block = self._require(block_id)
        if block.indent_level <= 0:
            return block
        with self._mutation("outdent"):
            block.outdent()
        return block

    # =========================================================================
    # Move
    # =========================================================================

    def move(self, block_id: str, before_id: str | None) -> bool:
        """Move a block to sit immediately before another block.

        Args:
            block_id: The dragged block.
            before_id: The drop target, or None to move to the end.

        Returns:
            True if the order changed. Dropping a block onto itself, or a
            move that leaves the order unchanged, records nothing.
        """
        self._require(block_id)
        if before_id is not None:
            self._require(before_id)
        if block_id == before_id:
            return False

        reordered = [i for i in self._ids if i != block_id]
        if before_id is None:
            reordered.append(block_id)
        else:
            reordered.insert(reordered.index(before_id), block_id)

        if reordered == self._ids:
            return False

        with self._mutation("move"):
            self._ids = reordered

        return True

    # =========================================================================
    # Focus
    # =========================================================================

    def focus(self, block_id: str | None) -> str | None:
        if block_id is not None:
            self._require(block_id)
        self.focused_block_id = block_id
        return self.focused_block_id

    def focus_next(self) -> str | None:
        """Move focus one block down; no-op at the last block."""
        index = self._focused_index()
        if index is not None and index < len(self._ids) - 1:
            self.focused_block_id = self._ids[index + 1]
        return self.focused_block_id

    def focus_previous(self) -> str | None:
        """Move focus one block up; no-op at the first block."""
        index = self._focused_index()
        if index is not None and index > 0:
            self.focused_block_id = self._ids[index - 1]
        return self.focused_block_id

    # =========================================================================
    # Undo / redo
    # =========================================================================

    def undo(self) -> bool:
        """Restore the previous state. Returns False when history is empty."""
        current = self.snapshot()
        state = self.history.undo(current)
        if state is None:
            return False
        self._restore(state, current)
        return True

    def redo(self) -> bool:
        """Re-apply an undone state. Returns False when nothing to redo."""
        current = self.snapshot()
        state = self.history.redo(current)
        if state is None:
            return False
        self._restore(state, current)
        return True

    # =========================================================================
    # Slash menu
    # =========================================================================

    def open_slash_menu(self, block_id: str) -> SlashMenuState:
        self._require(block_id)
        self.slash_menu = SlashMenuState(block_id=block_id)
        return self.slash_menu

    def filter_slash_menu(self, query: str) -> SlashMenuState:
        menu = self._require_slash_menu()
        menu.set_query(query)
        return menu

    def move_slash_selection(self, delta: int) -> SlashMenuState:
        menu = self._require_slash_menu()
        menu.move_selection(delta)
        return menu

    def close_slash_menu(self) -> None:
        self.slash_menu = None

    def select_slash_menu_entry(self, index: int | None = None) -> Block | None:
        """Convert the menu's block to the highlighted (or given) entry.

        The ``/query`` trigger text is removed from the block when its content
        still starts with it. Returns None, leaving the menu open, when the
        filter matches nothing.
        """
        menu = self._require_slash_menu()
        if index is not None:
            menu.select(index)
        target = menu.confirm()
        if target is None:
            return None

        block = self._require(menu.block_id)
        trigger = SLASH_TRIGGER + menu.query
        new_content = block.content
        if block.content.startswith(trigger):
            new_content = block.content[len(trigger):]

        self.slash_menu = None
        if block.type is target and new_content == block.content:
            return block

        with self._mutation("slash_select"):
            if new_content != block.content:
                block.update_content(new_content)
            if block.type is not target:
                self._convert(block, target)
            self.focused_block_id = block.id

        return block

    # =========================================================================
    # Markdown
    # =========================================================================

    def to_markdown(self) -> str:
        return render_markdown(self.blocks)

    def load_markdown(self, markdown: str) -> list[Block]:
        """Replace the whole document with blocks parsed from markdown."""
        parsed = from_markdown(markdown, callout_icon=self.settings.default_callout_icon)
        with self._mutation("load_markdown"):
            self.document.blocks = {block.id: block for block in parsed}
            self._ids = [block.id for block in parsed]
            self.focused_block_id = self._ids[0] if self._ids else None
            self.selected_block_ids.clear()
            self.slash_menu = None
        return self.blocks

    # =========================================================================
    # Internals
    # =========================================================================

    @contextmanager
    def _mutation(self, action: str) -> Iterator[None]:
        """Snapshot, apply, reindex, record and publish one operation."""
        before = self.snapshot()
        yield
        self._reindex()
        self.history.record(before)
        self._publish(before.blocks, action)

    def _publish(self, before: Iterable[Block], action: str) -> None:
        self.document.touch()
        changes = ChangeSet.diff(self.document, before, self.blocks)
        logger.debug(
            "%s on %s: upserted=%d deleted=%d reordered=%d",
            action,
            self.document.id,
            len(changes.upserted),
            len(changes.deleted),
            len(changes.reordered),
        )
        for listener in list(self._listeners):
            try:
                listener(changes)
            except Exception as e:  # noqa: BLE001
                # In-memory state stays authoritative when write-back fails.
                logger.warning("Change listener failed after %s: %s", action, e)

    def _restore(self, state: EditorState, current: EditorState) -> None:
        restored = state.restore()
        self.document.blocks = {block.id: block for block in restored}
        self._ids = [block.id for block in sorted(restored, key=lambda b: b.order)]
        self._reindex()

        if state.focused_block_id in self.document.blocks:
            self.focused_block_id = state.focused_block_id
        elif self.focused_block_id not in self.document.blocks:
            self.focused_block_id = self._ids[0] if self._ids else None
        self.selected_block_ids &= set(self._ids)
        if self.slash_menu and self.slash_menu.block_id not in self.document.blocks:
            self.slash_menu = None

        self._publish(current.blocks, "restore")

    def _seed(self) -> None:
        before: tuple[Block, ...] = ()
        self._add_seed()
        self._reindex()
        self._publish(before, "seed")

    def _add_seed(self) -> Block:
        block = self._new_block(BlockType.TEXT, "", order=0)
        self.document.add(block)
        self._ids.append(block.id)
        self.focused_block_id = block.id
        return block

    def _new_block(self, block_type: BlockType, content: str, *, order: int) -> Block:
        block = Block.new(BlockType.TEXT, content, order=order)
        if block_type is not BlockType.TEXT:
            self._convert(block, block_type)
        return block

    def _convert(self, block: Block, new_type: BlockType) -> None:
        block.convert_to(
            new_type,
            default_language=self.settings.default_code_language,
            default_callout_icon=self.settings.default_callout_icon,
        )

    def _apply_conversion(self, block: Block, conversion: Conversion) -> None:
        self._convert(block, conversion.target)
        if conversion.checked:
            block.metadata.is_checked = True
        block.update_content(conversion.content)
        logger.debug("Auto-formatted %s as %s", block.id, conversion.target.value)

    def _sync_slash_menu(self, block_id: str, previous: str, text: str) -> None:
        open_here = self._slash_menu_open_for(block_id)
        if text.startswith(SLASH_TRIGGER):
            if open_here:
                self.slash_menu.set_query(text[len(SLASH_TRIGGER):])
            elif not previous.startswith(SLASH_TRIGGER):
                self.slash_menu = SlashMenuState(block_id=block_id)
                self.slash_menu.set_query(text[len(SLASH_TRIGGER):])
        elif open_here:
            self.slash_menu = None

    def _slash_menu_open_for(self, block_id: str) -> bool:
        return self.slash_menu is not None and self.slash_menu.block_id == block_id

    def _require_slash_menu(self) -> SlashMenuState:
        if self.slash_menu is None:
            raise ValidationError("Slash menu is not open", field="slash_menu")
        return self.slash_menu

    def _remove(self, block_id: str) -> None:
        self._ids.remove(block_id)
        del self.document.blocks[block_id]
        self.selected_block_ids.discard(block_id)
        if self._slash_menu_open_for(block_id):
            self.slash_menu = None

    def _neighbour_at(self, index: int) -> str | None:
        """Focus target after removing the block that sat at ``index``."""
        if index > 0:
            return self._ids[index - 1]
        if self._ids:
            return self._ids[0]
        return None

    def _focused_index(self) -> int | None:
        if self.focused_block_id is None or self.focused_block_id not in self.document.blocks:
            return None
        return self._ids.index(self.focused_block_id)

    def _reindex(self) -> None:
        for index, block_id in enumerate(self._ids):
            self.document.blocks[block_id].order = index

    def _require(self, block_id: str) -> Block:
        block = self.document.blocks.get(block_id)
        if block is None:
            raise BlockNotFoundError(block_id)
        return block

    def _check_content(self, text: str) -> None:
        if len(text) > EDITOR.MAX_CONTENT_LENGTH:
            raise ValidationError(
                "Block content exceeds maximum length",
                field="content",
                constraint=f"max {EDITOR.MAX_CONTENT_LENGTH}",
            )


def _coerce_type(value: BlockType | str) -> BlockType:
    """Strictly decode a requested block type."""
    if isinstance(value, BlockType):
        return value
    try:
        return BlockType(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown block type: {value}", field="type", value=value) from exc
