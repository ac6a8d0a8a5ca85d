"""Logger configuration tests."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from docmirror.logging import configure_logging, get_logger


@pytest.fixture(autouse=True)
def _reset_logger():
    yield
    logger = logging.getLogger("docmirror")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def _stream_format(logger: logging.Logger) -> str:
    handler = next(item for item in logger.handlers if not isinstance(item, logging.FileHandler))
    return handler.formatter._fmt


def test_default_stream_format_is_terse() -> None:
    logger = configure_logging()

    assert logger.level == logging.INFO
    assert _stream_format(logger) == "[docmirror] %(levelname)s %(message)s"


def test_verbose_names_stage_and_thread() -> None:
    logger = configure_logging(verbose=True)

    assert logger.level == logging.DEBUG
    assert "%(name)s" in _stream_format(logger)
    assert "%(threadName)s" in _stream_format(logger)


def test_reconfiguring_replaces_handlers_and_writes_file(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "docmirror.log"
    configure_logging()
    logger = configure_logging(log_file=log_file)

    get_logger("resolver").info("resolved %d citations", 3)
    for handler in logger.handlers:
        handler.flush()

    assert len(logger.handlers) == 2
    assert "docmirror.resolver" in log_file.read_text(encoding="utf-8")
    assert "resolved 3 citations" in log_file.read_text(encoding="utf-8")
