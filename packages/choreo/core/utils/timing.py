"""Duration parsing and small numeric helpers."""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MS = 300.0

_DURATION_RE = re.compile(r"^\s*(-?\d*\.?\d+)\s*(ms|s)?\s*$")


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def parse_duration(value: float | int | str | None, default: float = DEFAULT_DURATION_MS) -> float:
    """Convert a duration to milliseconds.

    Numbers are taken as milliseconds. Strings accept ``"500ms"``, ``"0.5s"``
    or a bare number. Anything unparseable yields ``default``.

    Args:
        value: Duration value
        default: Fallback in milliseconds

    Returns:
        Duration in milliseconds

    Example:
        >>> parse_duration("0.5s")
        500.0
        >>> parse_duration("120ms")
        120.0
        >>> parse_duration(None)
        300.0
    """
    if value is None:
        return default
    if isinstance(value, bool):
        logger.warning(f"Boolean is not a duration: {value!r}; using {default}ms")
        return default
    if isinstance(value, int | float):
        return float(value)

    match = _DURATION_RE.match(value)
    if match is None:
        logger.warning(f"Unparseable duration {value!r}; using {default}ms")
        return default

    number = float(match.group(1))
    if match.group(2) == "s":
        return number * 1000.0
    return number
