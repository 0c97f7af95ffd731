"""Logging configuration for blockpad.

Modules log through ``logging.getLogger(__name__)``; this installs the
handlers once at process start, driven by the settings log fields.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

from .errors import ConfigurationError
from .settings import Settings, settings as default_settings

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_HANDLER_MARK = "_blockpad_handler"


def configure_logging(cfg: Settings | None = None) -> logging.Logger:
    """Attach blockpad handlers to the package logger.

    Calling this more than once replaces the previously installed handlers.

    Args:
        cfg: Settings to read levels and file paths from.

    Returns:
        The configured ``blockpad`` logger.

    Raises:
        ConfigurationError: If the log level is not a known level name.
    """
    cfg = cfg or default_settings
    level = logging.getLevelName(cfg.log_level.upper())
    if not isinstance(level, int):
        raise ConfigurationError(
            f"Unknown log level: {cfg.log_level}", setting="BLOCKPAD_LOG_LEVEL"
        )
    logger = logging.getLogger("blockpad")
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(_LOG_FORMAT)

    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    setattr(stream, _HANDLER_MARK, True)
    logger.addHandler(stream)

    if cfg.log_to_file:
        cfg.log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            cfg.log_path,
            maxBytes=cfg.log_max_bytes,
            backupCount=cfg.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        setattr(file_handler, _HANDLER_MARK, True)
        logger.addHandler(file_handler)

    return logger
