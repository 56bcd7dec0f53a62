"""Loguru sink setup."""

from __future__ import annotations

import sys

from loguru import logger

_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <7} | {name}:{line} | {message}"

_sink_id: int | None = None


def configure_logging(level: str = "INFO") -> None:
    """Install a single stderr sink at *level*, replacing any earlier one."""
    global _sink_id
    if _sink_id is None:
        # Drop loguru's default handler the first time round
        logger.remove()
    else:
        logger.remove(_sink_id)
    _sink_id = logger.add(sys.stderr, level=level.upper(), format=_FORMAT)
