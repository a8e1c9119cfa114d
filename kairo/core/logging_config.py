"""Logging setup for the API process and maintenance scripts."""
from __future__ import annotations

import logging

APP_LOGGER_NAME = "kairo"
_FORMAT = "%(levelname)s - %(asctime)s - %(name)s - %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def map_log_level(level_name: str | None) -> int:
    level = getattr(logging, (level_name or "INFO").upper(), None)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level_name: str | None = None) -> logging.Logger:
    """Attach a single console handler to the application logger.

    Safe to call more than once: existing handlers are replaced, not stacked.
    """
    level = map_log_level(level_name)
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT))

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    for existing in list(app_logger.handlers):
        app_logger.removeHandler(existing)
    app_logger.addHandler(handler)
    app_logger.setLevel(level)
    app_logger.propagate = False
    return app_logger
