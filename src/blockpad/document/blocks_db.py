"""SQLite storage for block documents.

This module is the persistence side of the editor: it stores documents and
their blocks and applies editor change sets with exactly the operations the
engine performs logically (insert-or-replace by id, delete by id, bulk
reorder). Legacy flat-markdown entries live in the same ``documents`` table
until they are migrated.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Iterator

from ..errors import DatabaseError, DocumentNotFoundError
from ..settings import settings
from .blocks_models import Block, BlockMetadata, BlockType, Document

if TYPE_CHECKING:
    from .editor import ChangeSet

logger = logging.getLogger(__name__)

# Thread-local storage for connections
_local = threading.local()

# Schema version for migrations
# v1: documents + blocks
SCHEMA_VERSION = 1


def _db_path() -> Path:
    """Get the path to the blocks database."""
    base = Path(os.environ.get("BLOCKPAD_DATA_DIR", settings.data_dir))
    return base / "blocks.db"


def _get_connection() -> sqlite3.Connection:
    """Get a thread-local database connection."""
    if not hasattr(_local, "conn") or _local.conn is None:
        db_path = _db_path()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        _local.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        _local.conn.row_factory = sqlite3.Row
        # Enable foreign keys
        _local.conn.execute("PRAGMA foreign_keys = ON")
        # WAL mode for better concurrent access
        _local.conn.execute("PRAGMA journal_mode = WAL")
    return _local.conn


def close_connection() -> None:
    """Close the thread-local database connection.

    This is primarily used for testing to ensure clean state between tests.
    """
    if hasattr(_local, "conn") and _local.conn is not None:
        try:
            _local.conn.close()
        except sqlite3.Error as e:
            logger.debug("Error closing blocks database: %s", e)
        _local.conn = None


@contextmanager
def _transaction(operation: str) -> Iterator[sqlite3.Connection]:
    """Context manager for database transactions.

    Transient ``OperationalError``s (a locked database) propagate unchanged so
    callers can retry them; any other SQLite failure becomes a DatabaseError.
    """
    conn = _get_connection()
    try:
        yield conn
        conn.commit()
    except sqlite3.OperationalError:
        conn.rollback()
        raise
    except sqlite3.Error as e:
        conn.rollback()
        raise DatabaseError(
            f"Block store {operation} failed: {e}",
            operation=operation,
            recoverable=False,
        ) from e
    except Exception:
        conn.rollback()
        raise


def _init_schema(conn: sqlite3.Connection) -> None:
    """Initialize the database schema."""
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS schema_version (
            version INTEGER PRIMARY KEY
        );

        CREATE TABLE IF NOT EXISTS documents (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL DEFAULT '',
            legacy_content TEXT,
            is_block_based INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            modified_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS blocks (
            id TEXT PRIMARY KEY,
            document_id TEXT NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
            type TEXT NOT NULL,
            content TEXT NOT NULL DEFAULT '',
            position INTEGER NOT NULL,
            indent_level INTEGER NOT NULL DEFAULT 0,
            metadata TEXT NOT NULL DEFAULT '{}',
            created_at TEXT NOT NULL,
            modified_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_blocks_document
            ON blocks(document_id, position);
    """)
    row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
    if row is None:
        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))


def init_db() -> None:
    """Initialize the database."""
    with _transaction("init_db") as conn:
        _init_schema(conn)


# =============================================================================
# Row conversion
# =============================================================================


def _block_from_row(row: sqlite3.Row) -> Block:
    try:
        metadata = json.loads(row["metadata"] or "{}")
    except (json.JSONDecodeError, TypeError):
        metadata = {}
    return Block(
        id=row["id"],
        type=BlockType.parse(row["type"]),
        content=row["content"],
        order=row["position"],
        indent_level=row["indent_level"],
        created_at=row["created_at"],
        modified_at=row["modified_at"],
        metadata=BlockMetadata.from_dict(metadata),
    )


def _block_params(document_id: str, block: Block) -> tuple[Any, ...]:
    return (
        block.id,
        document_id,
        block.type.value,
        block.content,
        block.order,
        block.indent_level,
        json.dumps(block.metadata.to_dict()),
        block.created_at,
        block.modified_at,
    )


_UPSERT_BLOCK = """
    INSERT INTO blocks
    (id, document_id, type, content, position, indent_level, metadata, created_at, modified_at)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT (id) DO UPDATE SET
        document_id = excluded.document_id,
        type = excluded.type,
        content = excluded.content,
        position = excluded.position,
        indent_level = excluded.indent_level,
        metadata = excluded.metadata,
        modified_at = excluded.modified_at
"""


# =============================================================================
# Document Operations
# =============================================================================


def create_document(title: str = "", *, legacy_content: str | None = None) -> Document:
    """Create a document.

    Args:
        title: Document title.
        legacy_content: Flat markdown body for entries that predate blocks.
            Such documents are flagged for migration.

    Returns:
        The created Document (without blocks).
    """
    init_db()
    document = Document.new(title)
    with _transaction("create_document") as conn:
        conn.execute(
            """
            INSERT INTO documents (id, title, legacy_content, is_block_based, created_at, modified_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                document.id,
                title,
                legacy_content,
                0 if legacy_content is not None else 1,
                document.created_at,
                document.modified_at,
            ),
        )
    return document


def get_document(document_id: str) -> Document | None:
    """Load a document and all its blocks.

    Returns:
        The Document or None if not found.
    """
    init_db()
    conn = _get_connection()
    row = conn.execute(
        "SELECT id, title, created_at, modified_at FROM documents WHERE id = ?",
        (document_id,),
    ).fetchone()
    if not row:
        return None

    document = Document(
        id=row["id"],
        title=row["title"],
        created_at=row["created_at"],
        modified_at=row["modified_at"],
    )
    for block in list_blocks(document_id):
        document.add(block)
    return document


def list_documents() -> list[dict[str, Any]]:
    """List document summaries ordered by most recently modified."""
    init_db()
    conn = _get_connection()
    cursor = conn.execute("""
        SELECT d.id, d.title, d.is_block_based, d.created_at, d.modified_at,
               (SELECT COUNT(*) FROM blocks b WHERE b.document_id = d.id) AS block_count
        FROM documents d
        ORDER BY d.modified_at DESC
    """)
    return [
        {
            "id": row["id"],
            "title": row["title"],
            "is_block_based": bool(row["is_block_based"]),
            "created_at": row["created_at"],
            "modified_at": row["modified_at"],
            "block_count": row["block_count"],
        }
        for row in cursor
    ]


def delete_document(document_id: str) -> bool:
    """Delete a document; its blocks are removed by cascade.

    Returns:
        True if deleted, False if not found.
    """
    init_db()
    with _transaction("delete_document") as conn:
        cursor = conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
        return cursor.rowcount > 0


def save_document(document: Document) -> None:
    """Write a whole document: its row, every block, and drop stale blocks."""
    init_db()
    with _transaction("save_document") as conn:
        conn.execute(
            """
            INSERT INTO documents (id, title, is_block_based, created_at, modified_at)
            VALUES (?, ?, 1, ?, ?)
            ON CONFLICT (id) DO UPDATE SET
                title = excluded.title,
                is_block_based = 1,
                modified_at = excluded.modified_at
            """,
            (document.id, document.title, document.created_at, document.modified_at),
        )
        ids = list(document.blocks)
        placeholders = ", ".join("?" for _ in ids)
        if ids:
            conn.execute(
                f"DELETE FROM blocks WHERE document_id = ? AND id NOT IN ({placeholders})",
                (document.id, *ids),
            )
        else:
            conn.execute("DELETE FROM blocks WHERE document_id = ?", (document.id,))
        conn.executemany(
            _UPSERT_BLOCK,
            [_block_params(document.id, block) for block in document.ordered_blocks()],
        )


# =============================================================================
# Block Operations
# =============================================================================


def list_blocks(document_id: str) -> list[Block]:
    """List a document's blocks ordered by position."""
    init_db()
    conn = _get_connection()
    cursor = conn.execute(
        """
        SELECT id, type, content, position, indent_level, metadata, created_at, modified_at
        FROM blocks WHERE document_id = ?
        ORDER BY position
        """,
        (document_id,),
    )
    return [_block_from_row(row) for row in cursor]


def upsert_blocks(document_id: str, blocks: Iterable[Block]) -> None:
    """Insert or replace blocks by id."""
    init_db()
    with _transaction("upsert_blocks") as conn:
        conn.executemany(_UPSERT_BLOCK, [_block_params(document_id, b) for b in blocks])


def delete_blocks(block_ids: Iterable[str]) -> int:
    """Delete blocks by id. Returns the number of rows removed."""
    init_db()
    with _transaction("delete_blocks") as conn:
        cursor = conn.executemany(
            "DELETE FROM blocks WHERE id = ?",
            [(block_id,) for block_id in block_ids],
        )
        return cursor.rowcount


def reorder_blocks(pairs: Iterable[tuple[str, int]]) -> None:
    """Apply (id, position) pairs in one transaction."""
    init_db()
    with _transaction("reorder_blocks") as conn:
        conn.executemany(
            "UPDATE blocks SET position = ? WHERE id = ?",
            [(position, block_id) for block_id, position in pairs],
        )


def apply_changes(changes: ChangeSet) -> None:
    """Persist an editor change set atomically.

    Raises:
        DocumentNotFoundError: If the document row does not exist.
    """
    init_db()
    with _transaction("apply_changes") as conn:
        cursor = conn.execute(
            "UPDATE documents SET modified_at = ? WHERE id = ?",
            (changes.modified_at, changes.document_id),
        )
        if cursor.rowcount == 0:
            raise DocumentNotFoundError(changes.document_id)

        if changes.deleted:
            conn.executemany(
                "DELETE FROM blocks WHERE id = ? AND document_id = ?",
                [(block_id, changes.document_id) for block_id in changes.deleted],
            )
        if changes.upserted:
            conn.executemany(
                _UPSERT_BLOCK,
                [_block_params(changes.document_id, b) for b in changes.upserted.values()],
            )
        if changes.reordered:
            conn.executemany(
                "UPDATE blocks SET position = ? WHERE id = ? AND document_id = ?",
                [
                    (position, block_id, changes.document_id)
                    for block_id, position in changes.reorder_pairs()
                ],
            )

    logger.debug(
        "Persisted changes for %s (upserted=%d deleted=%d reordered=%d)",
        changes.document_id,
        len(changes.upserted),
        len(changes.deleted),
        len(changes.reordered),
    )


# =============================================================================
# Legacy Entries
# =============================================================================


def list_legacy_documents() -> list[dict[str, Any]]:
    """Documents still holding flat markdown instead of blocks."""
    init_db()
    conn = _get_connection()
    cursor = conn.execute("""
        SELECT id, title, legacy_content, created_at, modified_at
        FROM documents WHERE is_block_based = 0
        ORDER BY created_at
    """)
    return [dict(row) for row in cursor]


def count_legacy_documents() -> int:
    init_db()
    conn = _get_connection()
    return conn.execute("SELECT COUNT(*) FROM documents WHERE is_block_based = 0").fetchone()[0]


def get_legacy_document(document_id: str) -> dict[str, Any] | None:
    """A single not-yet-migrated document, or None."""
    init_db()
    conn = _get_connection()
    row = conn.execute(
        """
        SELECT id, title, legacy_content, created_at, modified_at
        FROM documents WHERE id = ? AND is_block_based = 0
        """,
        (document_id,),
    ).fetchone()
    return dict(row) if row else None


def rollback_document(document_id: str, markdown: str) -> bool:
    """Drop a document's blocks and flag it as flat markdown again.

    The stored legacy body is kept when present; otherwise ``markdown``
    becomes the legacy body.

    Returns:
        True if rolled back, False if not found.
    """
    init_db()
    with _transaction("rollback_document") as conn:
        cursor = conn.execute(
            """
            UPDATE documents
            SET is_block_based = 0,
                legacy_content = COALESCE(legacy_content, ?)
            WHERE id = ?
            """,
            (markdown, document_id),
        )
        if cursor.rowcount == 0:
            return False
        conn.execute("DELETE FROM blocks WHERE document_id = ?", (document_id,))
    return True
