"""Tests for logging configuration."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest
from rich.logging import RichHandler

from filerelay.config.models import LoggingSettings
from filerelay.logging_setup import _HANDLER_MARKER, configure_logging


def test_configure_logging_installs_console_and_file_handlers(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "filerelay.log"

    logger = configure_logging(LoggingSettings(level="info", file=log_file, backup_count=2))
    logger.info("transfer started")

    handler_types = {type(handler) for handler in logger.handlers}
    assert RichHandler in handler_types
    assert RotatingFileHandler in handler_types
    assert logger.level == logging.INFO
    for handler in logger.handlers:
        handler.flush()
    assert "transfer started" in log_file.read_text(encoding="utf-8")
    configure_logging(LoggingSettings())


def test_reconfiguring_replaces_previous_handlers() -> None:
    configure_logging(LoggingSettings())
    logger = configure_logging(LoggingSettings(), level_override="DEBUG")

    installed = [
        handler for handler in logger.handlers if getattr(handler, _HANDLER_MARKER, False)
    ]
    assert len(installed) == 1
    assert isinstance(installed[0], RichHandler)
    assert logger.level == logging.DEBUG


def test_unknown_level_raises() -> None:
    with pytest.raises(ValueError):
        configure_logging(LoggingSettings(level="chatty"))
