"""Structured logging configuration.

This module initializes structlog with a stable JSON event format.
Rendered events are emitted through the standard logging tree.
"""

from __future__ import annotations

import logging
from typing import Any

import structlog

from core.constants import DEFAULT_LOG_LEVEL

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    """Configure structlog processors and the stdlib output handler.

    Args:
        level: Minimum level name, one of debug/info/warning/error.
    """
    numeric_level = _LEVELS.get(level, logging.INFO)
    _configure_structlog(numeric_level)
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)


def get_logger(name: str) -> Any:
    """Return a module logger instance.

    Args:
        name: Logger name, usually __name__.

    Returns:
        A structlog logger with structured output.
    """
    if not structlog.is_configured():
        _configure_structlog(_LEVELS[DEFAULT_LOG_LEVEL])
    return structlog.get_logger(name)


def _configure_structlog(numeric_level: int) -> None:
    # Loggers are not cached so a later configure_logging call applies everywhere.
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
