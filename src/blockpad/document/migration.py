"""Migrate legacy flat-markdown documents to blocks.

Legacy entries keep their markdown body in ``documents.legacy_content``
with ``is_block_based = 0``. Migration parses that body with the
CommonMark parser, stores the blocks, and flips the flag. The legacy body
is kept so a migrated document can be rolled back.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any

from ..errors import DocumentNotFoundError
from . import blocks_db
from .blocks_models import Block, BlockType, Document
from .markdown_parser import parse_commonmark
from .markdown_renderer import render_markdown

logger = logging.getLogger(__name__)


@dataclass
class MigrationProgress:
    """Progress of a running (or the last) bulk migration."""

    is_migrating: bool = False
    total_entries: int = 0
    migrated_entries: int = 0
    failed_entries: int = 0
    current_entry_title: str = ""

    @property
    def fraction(self) -> float:
        if self.total_entries == 0:
            return 1.0 if not self.is_migrating else 0.0
        return self.migrated_entries / self.total_entries

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["fraction"] = self.fraction
        return data


class BlockMigrationService:
    """Converts legacy entries in the block store into block documents."""

    def __init__(self) -> None:
        self.progress = MigrationProgress()

    def needs_migration(self) -> bool:
        return blocks_db.count_legacy_documents() > 0

    def migrate_all(self) -> MigrationProgress:
        """Migrate every legacy entry.

        A failing entry is logged and skipped; the rest still migrate.
        Calling this while a migration is running returns the live progress.
        """
        if self.progress.is_migrating:
            return self.progress

        entries = blocks_db.list_legacy_documents()
        self.progress = MigrationProgress(is_migrating=True, total_entries=len(entries))
        logger.info("Migrating %d legacy entries to blocks", len(entries))

        try:
            for entry in entries:
                self.progress.current_entry_title = entry["title"]
                try:
                    self._migrate(entry)
                except Exception as e:
                    self.progress.failed_entries += 1
                    logger.warning("Failed to migrate %r: %s", entry["title"], e)
                    continue
                self.progress.migrated_entries += 1
        finally:
            self.progress.is_migrating = False
            self.progress.current_entry_title = ""

        logger.info(
            "Migration finished: %d/%d migrated",
            self.progress.migrated_entries,
            self.progress.total_entries,
        )
        return self.progress

    def migrate_entry(self, document_id: str) -> Document:
        """Migrate one legacy entry by id.

        Raises:
            DocumentNotFoundError: If no unmigrated entry has this id.
        """
        entry = blocks_db.get_legacy_document(document_id)
        if entry is None:
            raise DocumentNotFoundError(document_id)
        return self._migrate(entry)

    def rollback_entry(self, document_id: str) -> None:
        """Return a migrated document to flat markdown.

        Raises:
            DocumentNotFoundError: If the document does not exist.
        """
        document = blocks_db.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        markdown = render_markdown(document.ordered_blocks())
        blocks_db.rollback_document(document_id, markdown)
        logger.info("Rolled back %s to markdown", document_id)

    def _migrate(self, entry: dict[str, Any]) -> Document:
        blocks = parse_commonmark(entry["legacy_content"] or "")
        if not blocks:
            blocks = [Block.new(BlockType.TEXT, "")]

        document = Document(
            id=entry["id"],
            title=entry["title"],
            created_at=entry["created_at"],
            modified_at=entry["modified_at"],
        )
        for block in blocks:
            document.add(block)
        document.touch()

        blocks_db.save_document(document)
        logger.debug("Migrated %s into %d blocks", document.id, len(blocks))
        return document
