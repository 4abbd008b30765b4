"""Process-wide logging setup."""

from __future__ import annotations

import logging

from orghr.config import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s — %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str | None = None) -> None:
    """Apply the standard log format at ``LOG_LEVEL`` (or *level*)."""
    name = (level or settings.LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )
