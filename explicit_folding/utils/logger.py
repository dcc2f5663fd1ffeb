"""Minimal logging utilities for explicit-folding.

The DEBUG level doubles as the diagnostic trace: composite patterns, every
match seen by the scanner, and the final list of ranges.

Example:
    >>> from explicit_folding.utils.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.debug("Scanning document")
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

ROOT_LOGGER_NAME = "explicit_folding"


def get_logger(name: str) -> logging.Logger:
    """Get a logger for the given name.

    Returns a standard library logger with the "explicit_folding." prefix.

    Args:
        name: Logger name (typically __name__)

    Returns:
        logging.Logger instance

    Example:
        >>> logger = get_logger("scanner")
        >>> logger.name
        'explicit_folding.scanner'
    """
    if not (name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}.")):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


@contextmanager
def debug_trace(stream=None) -> Iterator[logging.Handler]:
    """Route the package's DEBUG trace to `stream` (stderr by default).

    The handler is removed and the previous level restored on exit, even if
    an exception is raised.

    Args:
        stream: File-like object receiving the trace.

    Yields:
        logging.Handler: The installed handler.

    Example:
        >>> with debug_trace(sys.stderr):
        ...     fold_document(rules, document)
    """
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    previous_level = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    try:
        yield handler
    finally:
        logger.removeHandler(handler)
        logger.setLevel(previous_level)
