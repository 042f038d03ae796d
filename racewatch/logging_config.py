"""
Logging setup — one place to apply the detector's log format.
"""

from __future__ import annotations

import logging

from racewatch.config import settings

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str | int | None = None) -> logging.Logger:
    """Configure root logging and return the top-level 'racewatch' logger."""
    resolved = level if level is not None else settings.log_level
    if isinstance(resolved, str):
        resolved = logging.getLevelName(resolved.upper())
        if not isinstance(resolved, int):
            resolved = logging.INFO

    logging.basicConfig(level=resolved, format=LOG_FORMAT, datefmt=DATE_FORMAT)
    logger = logging.getLogger("racewatch")
    logger.setLevel(resolved)
    return logger
