"""Logging initialization helpers."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from audioscribe.config import Settings

_CONFIGURED_ATTR = "_audioscribe_configured"


def _build_handlers(settings: Settings, level: int) -> list[logging.Handler]:
    formatter = logging.Formatter(fmt=str(settings.logging.format), datefmt=str(settings.logging.datefmt))
    handlers: list[logging.Handler] = []

    if settings.logging.console:
        handlers.append(logging.StreamHandler())

    if settings.logging.file:
        file_path = Path(str(settings.logging.file))
        if not file_path.is_absolute():
            file_path = Path(settings.log_dir) / file_path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                file_path,
                maxBytes=int(settings.logging.max_bytes),
                backupCount=int(settings.logging.backup_count),
                encoding="utf-8",
            )
        )

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def setup_logging(settings: Settings, *, force: bool = False) -> logging.Logger:
    """Configure the `audioscribe` logger tree; other loggers are left untouched."""
    logger = logging.getLogger("audioscribe")
    if getattr(logger, _CONFIGURED_ATTR, False) and not force:
        return logger

    level = getattr(logging, str(settings.logging.level or "INFO").upper(), logging.INFO)
    for old in logger.handlers:
        old.close()
    logger.setLevel(level)
    logger.handlers = _build_handlers(settings, level)
    logger.propagate = False
    setattr(logger, _CONFIGURED_ATTR, True)
    return logger
