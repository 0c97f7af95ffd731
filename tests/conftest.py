from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest


@pytest.fixture
def temp_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point the block store at an isolated data directory."""
    data_dir = tmp_path / "blockpad-data"
    data_dir.mkdir()
    monkeypatch.setenv("BLOCKPAD_DATA_DIR", str(data_dir))

    from blockpad.document import blocks_db

    blocks_db.close_connection()
    blocks_db.init_db()

    yield data_dir

    blocks_db.close_connection()


@pytest.fixture
def engine():
    """An engine over a fresh in-memory document (seeded with one block)."""
    from blockpad.document.blocks_models import Document
    from blockpad.document.editor import EditorEngine

    return EditorEngine(Document.new("Test"))


@pytest.fixture
def recorded_changes():
    """Collects change sets emitted by an engine."""
    return []
