"""Operational logging through loguru.

Components obtain a bound logger with :func:`get_logger`; the process entry
point calls :func:`configure_logging` once. Output goes to stderr so that the
JSON-lines protocol on stdout stays clean.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Literal

from loguru import logger

if TYPE_CHECKING:
    from loguru import Logger

LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> - <level>{message}</level>"
)

_CURRENT_LEVEL: str | None = None
_HANDLER_IDS: list[int] = []


def configure_logging(level: LogLevel = "INFO", force_reconfigure: bool = False) -> None:
    """Install a single stderr sink; repeated calls with the same level are no-ops."""
    global _CURRENT_LEVEL

    if not force_reconfigure and level == _CURRENT_LEVEL:
        return
    logger.remove()
    _HANDLER_IDS.clear()
    _HANDLER_IDS.append(
        logger.add(
            sys.stderr,
            level=level,
            format=_FORMAT,
            colorize=sys.stderr.isatty(),
            backtrace=False,
            diagnose=False,
        )
    )
    _CURRENT_LEVEL = level


def get_logger(component: str) -> Logger:
    """Return a loguru logger bound to a component name."""
    return logger.bind(component=component)
