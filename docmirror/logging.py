"""Logging for docmirror runs.

Findings go to stdout; everything logged here goes to stderr (and
optionally a file) so CI logs can diff findings without log noise.
"""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "docmirror"

STREAM_FORMAT = "[docmirror] %(levelname)s %(message)s"
# map-phase work runs on "docmirror_N" pool threads; name the stage and thread when debugging
VERBOSE_STREAM_FORMAT = "[docmirror] %(levelname)s %(name)s [%(threadName)s] %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(threadName)s]: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``docmirror.<name>``, e.g. ``get_logger("resolver")``."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Install the stderr handler and an optional file sink on the docmirror logger.

    ``verbose`` switches to DEBUG and adds the emitting stage and worker
    thread to each stderr line. Calling this again replaces earlier handlers.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter(VERBOSE_STREAM_FORMAT if verbose else STREAM_FORMAT))
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging", "get_logger"]
