"""Logging helpers with consistent formatting."""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

from rich.logging import RichHandler


ROOT_LOGGER = "redlocker"

logging.getLogger(ROOT_LOGGER).addHandler(logging.NullHandler())


def _has_output_handler(logger: logging.Logger) -> bool:
    return any(not isinstance(handler, logging.NullHandler) for handler in logger.handlers)


def configure_logging(level: Optional[str | int] = None, *, rich: bool = True) -> logging.Logger:
    """Attach a single output handler to the package logger and set its level.

    Meant for entrypoints such as the CLI; library code only calls
    :func:`get_logger`. The level defaults to ``REDLOCKER_LOG_LEVEL``
    (``WARNING`` when unset). Calling again only updates the level.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    if level is None:
        level = os.getenv("REDLOCKER_LOG_LEVEL", "WARNING")
    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
        if not isinstance(level, int):
            level = logging.WARNING
    logger.setLevel(level)

    if _has_output_handler(logger):
        return logger

    if rich:
        handler: logging.Handler = RichHandler(
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            show_time=True,
            show_path=False,
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(name)s %(levelname)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    logger.addHandler(handler)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger nested under the ``redlocker`` package logger."""
    if name == ROOT_LOGGER or name.startswith(f"{ROOT_LOGGER}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
