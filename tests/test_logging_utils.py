"""Tests for logger setup."""

import logging
from pathlib import Path
from typing import Iterator

import pytest

from screener.logging_utils import setup_logger


@pytest.fixture
def logger_name(request: pytest.FixtureRequest) -> Iterator[str]:
    """Unique logger name per test, cleaned up afterwards."""
    name = f"screener.test.{request.node.name}"
    yield name
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def test_console_handler_installed(logger_name: str) -> None:
    """A console handler is added at the requested level."""
    logger = setup_logger(logger_name, level="debug")
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1


def test_setup_is_idempotent(logger_name: str) -> None:
    """Calling twice does not duplicate handlers but updates the level."""
    setup_logger(logger_name)
    logger = setup_logger(logger_name, level="WARNING")
    assert len(logger.handlers) == 1
    assert logger.level == logging.WARNING


def test_file_handler(logger_name: str, tmp_path: Path) -> None:
    """A dated log file is written when a directory is given."""
    logger = setup_logger(logger_name, log_dir=tmp_path / "logs", console=False)
    logger.info("hello")
    for handler in logger.handlers:
        handler.flush()

    files = list((tmp_path / "logs").glob(f"{logger_name}_*.log"))
    assert len(files) == 1
    assert "[INFO]" in files[0].read_text()


def test_unknown_level_raises(logger_name: str) -> None:
    """Unknown level names are rejected."""
    with pytest.raises(ValueError, match="Unknown log level"):
        setup_logger(logger_name, level="LOUD")
