"""Logging setup for the Collectory CLI."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from collectory.config.models import LoggingSettings

LOG_FILENAME = "collectory.log"
_HANDLER_NAME = "collectory-file"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: LoggingSettings, directory: Path) -> Path:
    """Attach a rotating file handler for the ``collectory`` logger hierarchy.

    Calling this again replaces the previously installed handler.

    Args:
        settings: Level and rotation limits.
        directory: Directory that receives ``collectory.log``.

    Returns:
        Path: Location of the log file.
    """
    directory = directory.expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    log_path = directory / LOG_FILENAME

    logger = logging.getLogger("collectory")
    for handler in list(logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            logger.removeHandler(handler)
            handler.close()

    handler = RotatingFileHandler(
        log_path,
        maxBytes=max(settings.max_size_mb, 1) * 1024 * 1024,
        backupCount=max(settings.backup_count, 0),
        encoding="utf-8",
    )
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, settings.level.upper(), logging.WARNING))
    return log_path


__all__ = ["LOG_FILENAME", "configure_logging"]
