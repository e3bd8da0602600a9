from __future__ import annotations

import logging
import os

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def setup_logging(level: str | int | None = None) -> None:
    """
    Configure application logging with one consistent formatter.
    """
    if level is None:
        level = os.getenv("CRAWLER_LOG_LEVEL", "INFO")

    if isinstance(level, str):
        level = _LEVELS.get(level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    logging.getLogger().setLevel(level)
    # Third-party loggers stay at WARNING unless running at DEBUG.
    if level > logging.DEBUG:
        for name in ("aiohttp", "pymongo"):
            logging.getLogger(name).setLevel(logging.WARNING)
