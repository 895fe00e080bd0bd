# rightprops/common/logging.py
from __future__ import annotations

import logging

# CLI level names -> logging levels. "silent" sits above CRITICAL so nothing is emitted.
LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "silent": logging.CRITICAL + 10,
}


def get_logger(name: str = "rightprops", level: int | None = None) -> logging.Logger:
    """
    Return a package logger. If no handlers are set, we add a basicConfig once.
    Level is left to the parent unless given explicitly.
    """
    logger = logging.getLogger(name)
    if not logging.getLogger().handlers and not logger.handlers:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if level is not None:
        logger.setLevel(level)
    return logger


def set_log_level(name: str) -> int:
    """Apply a CLI level name to the package root logger and return the numeric level."""
    try:
        level = LEVELS[name.lower()]
    except KeyError as e:
        raise ValueError(f"log level expects one of {', '.join(LEVELS)}, got {name!r}") from e
    logging.getLogger("rightprops").setLevel(level)
    return level
