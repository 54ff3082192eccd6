"""
Logging configuration for the transaction manager.

Every module logs through ``setup_logger(__name__)``. Loggers are created
before settings are loaded, so their level starts from the LOG_LEVEL
environment variable and is re-applied from the validated settings at
startup with ``set_log_level``.
"""
import logging
import os
import sys
from typing import Dict, Optional

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LEVEL = "INFO"

_loggers: Dict[str, logging.Logger] = {}


def resolve_level(level: Optional[str] = None) -> int:
    """
    Translate a level name to its numeric value.

    Unknown names fall back to INFO instead of failing at import time.
    """
    name = (level or os.getenv("LOG_LEVEL") or DEFAULT_LEVEL).strip().upper()
    numeric = logging.getLevelName(name)
    return numeric if isinstance(numeric, int) else logging.INFO


def setup_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Configure and return a logger instance.

    Args:
        name: Logger name (usually __name__)
        level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to env LOG_LEVEL or INFO.

    Returns:
        Configured logger instance
    """
    numeric_level = resolve_level(level)

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)

    # Avoid duplicate handlers
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
    for handler in logger.handlers:
        handler.setLevel(numeric_level)

    _loggers[name] = logger
    return logger


def set_log_level(level: str) -> int:
    """
    Apply ``level`` to every logger created through ``setup_logger``.

    Returns:
        The numeric level applied
    """
    numeric_level = resolve_level(level)
    for logger in _loggers.values():
        logger.setLevel(numeric_level)
        for handler in logger.handlers:
            handler.setLevel(numeric_level)
    return numeric_level
