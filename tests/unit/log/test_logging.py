"""Tests for CLI logging setup."""

from __future__ import annotations

import io
import logging

import pytest
from rich.console import Console
from rich.logging import RichHandler

from scaffoldx.log import LOGGER_NAME, configure_logging


@pytest.fixture
def clean_logger():
    logger = logging.getLogger(LOGGER_NAME)
    saved = (logger.level, list(logger.handlers))
    logger.handlers = []
    yield logger
    logger.setLevel(saved[0])
    logger.handlers = saved[1]


def test_single_rich_handler(clean_logger: logging.Logger) -> None:
    configure_logging("INFO")
    configure_logging("DEBUG")
    handlers = [h for h in clean_logger.handlers if isinstance(h, RichHandler)]
    assert len(handlers) == 1
    assert clean_logger.level == logging.DEBUG


def test_messages_reach_the_console(clean_logger: logging.Logger) -> None:
    buffer = io.StringIO()
    configure_logging("INFO", console=Console(file=buffer, width=120))
    logging.getLogger("scaffoldx.engine").info("Running %s", "README")
    logging.getLogger("scaffoldx.engine").debug("hidden")
    assert "Running README" in buffer.getvalue()
    assert "hidden" not in buffer.getvalue()
