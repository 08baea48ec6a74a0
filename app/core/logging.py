# app/core/logging.py

"""
Logging setup for the service.

Call ``configure_logging()`` once at startup (``app.main`` does this) and
get module loggers with ``get_logger(__name__)`` everywhere else.
"""

from __future__ import annotations

import logging
from typing import Optional

from app.core.config import settings

DEFAULT_LOGGER_NAME = "app"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def _parse_level(value: Optional[str]) -> int:
    """Map 'debug' / 'INFO' style strings to a logging constant, INFO if unknown."""
    if not value:
        return logging.INFO
    level = getattr(logging, value.strip().upper(), None)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: Optional[str] = None, *, force: bool = False) -> logging.Logger:
    global _configured
    if _configured and not force:
        return get_logger()

    root = logging.getLogger(DEFAULT_LOGGER_NAME)
    root.setLevel(_parse_level(level or settings.LOG_LEVEL))
    if force:
        root.handlers.clear()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    _configured = True
    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name or DEFAULT_LOGGER_NAME)


__all__ = ["configure_logging", "get_logger", "DEFAULT_LOGGER_NAME"]
