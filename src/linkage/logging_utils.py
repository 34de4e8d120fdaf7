"""Shared logging helpers for the simulator and the web layer."""

from __future__ import annotations

import logging
import os
from typing import Final

_LOG_FORMAT: Final[str] = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_LEVELS: Final[dict[str, int]] = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "NOTSET": logging.NOTSET,
}


def _parse_level(level_str: str | None, default: int) -> int:
    if not level_str:
        return default
    return _LEVELS.get(level_str.strip().upper(), default)


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """Return a logger that emits to stderr.

    An explicit ``level`` wins, otherwise ``LOG_LEVEL`` from the environment
    is used, falling back to WARNING so that tight simulation loops stay quiet.
    """
    chosen_level = level if level is not None else _parse_level(os.environ.get("LOG_LEVEL"), logging.WARNING)

    logger = logging.getLogger(name)
    if not any(getattr(h, "_linkage_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        handler._linkage_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    for handler in logger.handlers:
        handler.setLevel(chosen_level)
    logger.setLevel(chosen_level)
    return logger
