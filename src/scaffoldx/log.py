"""Terminal logging for the scaffoldx CLI."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "scaffoldx"


def configure_logging(level: str | int = logging.WARNING, console: Console | None = None) -> logging.Logger:
    """Attach a single RichHandler to the ``scaffoldx`` logger; later calls only change the level."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    if not any(isinstance(handler, RichHandler) for handler in logger.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_time=False,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    return logger
