"""Logging configuration for the command line entry point."""

from __future__ import annotations

import logging

_NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn", "uvicorn.error", "uvicorn.access")


def setup_logging(verbose: bool = False) -> None:
    """Send log records to stderr.

    Only warnings are shown unless ``verbose`` is set.  User-facing
    output never goes through logging.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
        force=True,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
