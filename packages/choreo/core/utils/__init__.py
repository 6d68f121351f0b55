"""Shared utilities: logging setup and duration parsing."""

from choreo.core.utils.logging import StructuredJSONFormatter, configure_logging, get_logger
from choreo.core.utils.timing import clamp, parse_duration

__all__ = [
    "StructuredJSONFormatter",
    "clamp",
    "configure_logging",
    "get_logger",
    "parse_duration",
]
