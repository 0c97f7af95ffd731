"""Tests for settings, config and logging setup."""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path

import pytest

from blockpad.config import EDITOR, RETRY
from blockpad.document.blocks_models import Document
from blockpad.document.editor import EditorEngine
from blockpad.errors import ConfigurationError
from blockpad.logging_setup import configure_logging
from blockpad.settings import Settings, _env_bool


class TestSettings:
    def test_defaults(self) -> None:
        cfg = Settings()
        assert cfg.history_limit == 50
        assert cfg.default_code_language == "swift"
        assert cfg.default_callout_icon == "info.circle"
        assert cfg.persist_retry_attempts >= 1

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("1", True), ("yes", True), ("off", False), ("maybe", False)],
    )
    def test_env_bool(self, monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool) -> None:
        monkeypatch.setenv("BLOCKPAD_TEST_FLAG", raw)
        assert _env_bool("BLOCKPAD_TEST_FLAG") is expected

    def test_engine_uses_settings(self) -> None:
        cfg = replace(Settings(), default_code_language="python", history_limit=2)
        engine = EditorEngine(Document.new(), cfg=cfg)
        block = engine.convert(engine.blocks[0].id, "code")
        assert block.metadata.language == "python"
        assert engine.history.limit == 2


class TestConfig:
    def test_structural_limits(self) -> None:
        assert EDITOR.MAX_INDENT_LEVEL == 6
        assert EDITOR.INDENT_WIDTH == 2
        assert RETRY.MIN_WAIT <= RETRY.MAX_WAIT


class TestLogging:
    def test_configure_is_idempotent(self) -> None:
        cfg = replace(Settings(), log_to_file=False, log_level="DEBUG")
        configure_logging(cfg)
        logger = configure_logging(cfg)
        marked = [h for h in logger.handlers if getattr(h, "_blockpad_handler", False)]
        assert len(marked) == 1
        assert logger.level == logging.DEBUG

    def test_unknown_level_rejected(self) -> None:
        cfg = replace(Settings(), log_to_file=False, log_level="chatty")
        with pytest.raises(ConfigurationError) as exc_info:
            configure_logging(cfg)
        assert exc_info.value.setting == "BLOCKPAD_LOG_LEVEL"

    def test_file_handler(self, tmp_path: Path) -> None:
        log_path = tmp_path / "logs" / "blockpad.log"
        cfg = replace(Settings(), log_to_file=True, log_path=log_path)
        logger = configure_logging(cfg)
        logger.warning("hello file")
        for handler in logger.handlers:
            handler.flush()
        assert "hello file" in log_path.read_text(encoding="utf-8")

        configure_logging(replace(cfg, log_to_file=False))
