"""Snapshot-based undo/redo for the block editor.

History is linear: recording a new state clears the redo stack. Snapshots
are whole-document deep copies, so later in-place block mutation never
reaches a stored state.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Iterable

from .blocks_models import Block

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


@dataclass(frozen=True)
class EditorState:
    """Immutable snapshot of a document's ordered block list."""

    blocks: tuple[Block, ...]
    focused_block_id: str | None = None

    @classmethod
    def capture(cls, blocks: Iterable[Block], focused_block_id: str | None = None) -> EditorState:
        """Snapshot blocks by value."""
        return cls(
            blocks=tuple(block.clone() for block in blocks),
            focused_block_id=focused_block_id,
        )

    def restore(self) -> list[Block]:
        """Fresh copies of the snapshot blocks, safe to mutate."""
        return [block.clone() for block in self.blocks]


class HistoryManager:
    """Two bounded stacks of editor snapshots."""

    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        if limit < 1:
            raise ValueError(f"History limit must be positive, got {limit}")
        self.limit = limit
        self._undo: deque[EditorState] = deque(maxlen=limit)
        self._redo: deque[EditorState] = deque(maxlen=limit)

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    def record(self, state: EditorState) -> None:
        """Push the pre-mutation state and drop any redo history."""
        self._undo.append(state)
        self._redo.clear()

    def undo(self, current: EditorState) -> EditorState | None:
        """Step back one state.

        Args:
            current: The live state, pushed onto the redo stack.

        Returns:
            The state to restore, or None when there is nothing to undo.
        """
        if not self._undo:
            return None
        previous = self._undo.pop()
        self._redo.append(current)
        logger.debug("Undo (remaining=%d)", len(self._undo))
        return previous

    def redo(self, current: EditorState) -> EditorState | None:
        """Step forward one state. Symmetric to ``undo``."""
        if not self._redo:
            return None
        following = self._redo.pop()
        self._undo.append(current)
        logger.debug("Redo (remaining=%d)", len(self._redo))
        return following

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()
