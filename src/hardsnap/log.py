"""Logging setup — a Rich handler on stderr plus an optional plain log file."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "hardsnap"

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def resolve_level(level: Union[str, int]) -> int:
    """Map a level name (``"info"``) or number to a logging level."""
    if isinstance(level, int):
        return level
    return LEVELS.get(level.lower(), logging.WARNING)


def configure_logging(
    level: Union[str, int] = "warning",
    log_file: Optional[str] = None,
    *,
    console: Optional[Console] = None,
) -> logging.Logger:
    """Install handlers on the ``hardsnap`` logger, replacing earlier ones."""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    numeric = resolve_level(level)
    logger.setLevel(logging.DEBUG if log_file else numeric)
    logger.propagate = False

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    rich_handler.setLevel(numeric)
    rich_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(rich_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger
