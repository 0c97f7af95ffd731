"""Debounced write-back of editor change sets.

The writer is registered as an engine listener. Change sets are merged
into a pending set and flushed after a quiet period; a newer change
reschedules the flush so only the latest state of each block is written.

Transient SQLite failures (``database is locked``) are retried with
exponential backoff. When retries are exhausted the failed set is put back
under any newer pending changes and reported through ``on_error``; the
next successful write supersedes it and is reported through ``on_success``.
The editor's in-memory state is never rolled back.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from typing import Callable

import tenacity

from ..config import RETRY
from ..errors import StorageError
from ..settings import settings
from . import blocks_db
from .editor import ChangeSet

logger = logging.getLogger(__name__)

ApplyChanges = Callable[[ChangeSet], None]
ErrorCallback = Callable[[StorageError], None]
SuccessCallback = Callable[[], None]


def _is_retryable(exc: BaseException) -> bool:
    """Check if an exception should trigger a retry."""
    return isinstance(exc, sqlite3.OperationalError)


class PersistenceWriter:
    """Debounced, retrying change-set writer for one document."""

    def __init__(
        self,
        *,
        apply: ApplyChanges = blocks_db.apply_changes,
        delay: float | None = None,
        attempts: int | None = None,
        wait: tenacity.wait.wait_base | None = None,
        on_error: ErrorCallback | None = None,
        on_success: SuccessCallback | None = None,
    ) -> None:
        self._apply = apply
        self.delay = settings.persist_debounce_seconds if delay is None else delay
        self.attempts = attempts or settings.persist_retry_attempts
        self._wait = wait or tenacity.wait_exponential(
            multiplier=RETRY.MULTIPLIER, min=RETRY.MIN_WAIT, max=RETRY.MAX_WAIT
        )
        self.on_error = on_error
        self.on_success = on_success

        self._pending: ChangeSet | None = None
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()
        # Serializes flushes so a re-queued failure can never land after a newer write.
        self._write_lock = threading.Lock()
        self._closed = False

    def __call__(self, changes: ChangeSet) -> None:
        self.submit(changes)

    @property
    def has_pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def submit(self, changes: ChangeSet) -> None:
        """Merge a change set into the pending write and reschedule the flush."""
        if changes.is_empty:
            return
        with self._lock:
            self._pending = self._pending.merge(changes) if self._pending else changes
            if self._closed or self.delay <= 0:
                flush_now = not self._closed
            else:
                self._schedule()
                flush_now = False
        if flush_now:
            self.flush()

    def flush(self) -> bool:
        """Write pending changes now.

        Returns:
            True if nothing was pending or the write succeeded.
        """
        with self._write_lock:
            with self._lock:
                self._cancel_timer()
                changes, self._pending = self._pending, None
            if changes is None:
                return True

            try:
                self._write(changes)
            except Exception as e:
                self._requeue(changes)
                error = StorageError(
                    f"Failed to persist changes: {e}",
                    document_id=changes.document_id,
                    attempts=self.attempts,
                )
                logger.warning(
                    "Persisting %s failed after %d attempts: %s",
                    changes.document_id,
                    self.attempts,
                    e,
                )
                if self.on_error is not None:
                    self.on_error(error)
                return False

            if self.on_success is not None:
                self.on_success()
        return True

    def close(self) -> bool:
        """Flush and stop accepting scheduled writes."""
        with self._lock:
            self._closed = True
            self._cancel_timer()
        return self.flush()

    def _write(self, changes: ChangeSet) -> None:
        retrying = tenacity.Retrying(
            stop=tenacity.stop_after_attempt(self.attempts),
            wait=self._wait,
            retry=tenacity.retry_if_exception(_is_retryable),
            before_sleep=lambda rs: logger.debug(
                "Retrying write for %s (attempt %d)",
                changes.document_id,
                rs.attempt_number + 1,
            ),
            reraise=True,
        )
        retrying(self._apply, changes)

    def _flush_from_timer(self) -> None:
        # Each timer runs on a fresh thread; drop its thread-local connection.
        try:
            self.flush()
        finally:
            blocks_db.close_connection()

    def _requeue(self, failed: ChangeSet) -> None:
        with self._lock:
            self._pending = failed.merge(self._pending) if self._pending else failed

    def _schedule(self) -> None:
        self._cancel_timer()
        self._timer = threading.Timer(self.delay, self._flush_from_timer)
        self._timer.daemon = True
        self._timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
