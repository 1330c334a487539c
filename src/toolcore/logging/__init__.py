"""Structured tool log and operational logging."""

from .runtime import configure_logging, get_logger
from .toollog import JsonlToolLogger, ToolLogEntry, sanitize_arguments, utc_timestamp

__all__ = [
    "JsonlToolLogger",
    "ToolLogEntry",
    "configure_logging",
    "get_logger",
    "sanitize_arguments",
    "utc_timestamp",
]
