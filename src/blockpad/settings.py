from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    val = raw.strip().lower()
    if val in {"1", "true", "yes", "y", "on"}:
        return True
    if val in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclass(frozen=True)
class Settings:
    """Static settings for the block editor engine.

    Everything is local; there are no network endpoints.
    """

    root_dir: Path = Path(__file__).resolve().parents[2]
    data_dir: Path = Path(os.environ.get("BLOCKPAD_DATA_DIR", str(root_dir / ".blockpad-data")))
    log_path: Path = data_dir / "blockpad.log"
    log_level: str = os.environ.get("BLOCKPAD_LOG_LEVEL", "INFO")
    log_max_bytes: int = int(os.environ.get("BLOCKPAD_LOG_MAX_BYTES", str(1_000_000)))
    log_backup_count: int = int(os.environ.get("BLOCKPAD_LOG_BACKUP_COUNT", "3"))
    log_to_file: bool = _env_bool("BLOCKPAD_LOG_TO_FILE", False)

    # =========================================================================
    # Editor
    # =========================================================================
    # Undo/redo stack depth per open document. Oldest snapshots are evicted.
    history_limit: int = int(os.environ.get("BLOCKPAD_HISTORY_LIMIT", "50"))

    # Metadata defaults applied when a block is converted into these types.
    default_code_language: str = os.environ.get("BLOCKPAD_DEFAULT_CODE_LANGUAGE", "swift")
    default_callout_icon: str = os.environ.get("BLOCKPAD_DEFAULT_CALLOUT_ICON", "info.circle")

    # =========================================================================
    # Persistence
    # =========================================================================
    # Writes are debounced: a newer change set reschedules the pending flush.
    persist_debounce_seconds: float = float(
        os.environ.get("BLOCKPAD_PERSIST_DEBOUNCE_SECONDS", "0.5")
    )
    persist_retry_attempts: int = int(os.environ.get("BLOCKPAD_PERSIST_RETRY_ATTEMPTS", "3"))


settings = Settings()
