"""Registry of open editor sessions.

Each open document gets its own engine, history and persistence writer.
Opening a legacy flat-markdown document migrates it first.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from blockpad.document import blocks_db
from blockpad.document.blocks_models import Document
from blockpad.document.editor import EditorEngine
from blockpad.document.migration import BlockMigrationService
from blockpad.document.persistence import PersistenceWriter
from blockpad.errors import DocumentNotFoundError, StorageError
from blockpad.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)

WriterFactory = Callable[..., PersistenceWriter]


def _default_writer(
    *, on_error: Callable[[StorageError], None], on_success: Callable[[], None]
) -> PersistenceWriter:
    return PersistenceWriter(on_error=on_error, on_success=on_success)


class EditorSession:
    """One open document: engine, history and writer."""

    def __init__(self, document: Document, *, cfg: Settings, writer_factory: WriterFactory) -> None:
        self.last_error: StorageError | None = None
        self.writer = writer_factory(on_error=self.record_error, on_success=self.clear_error)
        # Seeding an empty document is persisted through the writer.
        self.engine = EditorEngine(document, cfg=cfg, listeners=[self.writer])

    @property
    def document_id(self) -> str:
        return self.engine.document.id

    def record_error(self, error: StorageError) -> None:
        self.last_error = error

    def clear_error(self) -> None:
        """A later write superseded the failed one."""
        self.last_error = None

    def state(self) -> dict[str, Any]:
        state = self.engine.to_dict()
        state["persist_error"] = self.last_error.to_dict() if self.last_error else None
        return state


class EditorSessions:
    """Open/lookup/close for editor sessions, keyed by document id."""

    def __init__(
        self,
        *,
        cfg: Settings | None = None,
        writer_factory: WriterFactory = _default_writer,
    ) -> None:
        self.settings = cfg or default_settings
        self._writer_factory = writer_factory
        self._sessions: dict[str, EditorSession] = {}
        self._lock = threading.Lock()

    def __contains__(self, document_id: str) -> bool:
        return document_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def open(self, document_id: str | None = None, *, title: str = "") -> EditorSession:
        """Open an existing document, or create one when no id is given.

        Opening an already open document returns its live session.

        Raises:
            DocumentNotFoundError: If ``document_id`` does not exist.
        """
        with self._lock:
            if document_id is not None and document_id in self._sessions:
                return self._sessions[document_id]

            if document_id is None:
                document_id = blocks_db.create_document(title).id
            elif blocks_db.get_legacy_document(document_id) is not None:
                BlockMigrationService().migrate_entry(document_id)

            document = blocks_db.get_document(document_id)
            if document is None:
                raise DocumentNotFoundError(document_id)

            session = EditorSession(
                document, cfg=self.settings, writer_factory=self._writer_factory
            )
            self._sessions[document_id] = session
            logger.debug("Opened editor session for %s", document_id)
            return session

    def get(self, document_id: str) -> EditorSession:
        """Look up an open session.

        Raises:
            DocumentNotFoundError: If the document is not open.
        """
        session = self._sessions.get(document_id)
        if session is None:
            raise DocumentNotFoundError(document_id)
        return session

    def close(self, document_id: str) -> bool:
        """Flush pending writes and forget the session.

        Returns:
            True if all pending changes were persisted.
        """
        with self._lock:
            session = self._sessions.pop(document_id, None)
        if session is None:
            raise DocumentNotFoundError(document_id)
        persisted = session.writer.close()
        logger.debug("Closed editor session for %s (persisted=%s)", document_id, persisted)
        return persisted

    def close_all(self) -> None:
        for document_id in list(self._sessions):
            self.close(document_id)
