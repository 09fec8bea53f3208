"""Logging configuration for the filerelay CLI and watch service."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from filerelay.config.models import LoggingSettings

_HANDLER_MARKER = "_filerelay_handler"
_FILE_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"


def _resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown logging level: {level}")
    return resolved


def configure_logging(
    settings: LoggingSettings,
    *,
    level_override: Optional[str] = None,
    console: Optional[Console] = None,
) -> logging.Logger:
    """Attach console and optional rotating-file handlers to the package logger.

    Calling this again replaces the handlers installed by a previous call, so
    the CLI can reconfigure logging per command without duplicating output.

    Args:
        settings: Logging section of the configuration.
        level_override: Level taking precedence over ``settings.level``.
        console: Rich console used for terminal output (stderr by default).

    Returns:
        logging.Logger: The configured ``filerelay`` logger.
    """
    logger = logging.getLogger("filerelay")
    level = _resolve_level(level_override or settings.level)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(level)
    setattr(console_handler, _HANDLER_MARKER, True)
    logger.addHandler(console_handler)

    if settings.file is not None:
        log_path = settings.file.expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max(1, settings.max_size_mb) * 1024 * 1024,
            backupCount=max(0, settings.backup_count),
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        setattr(file_handler, _HANDLER_MARKER, True)
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


__all__ = ["configure_logging"]
