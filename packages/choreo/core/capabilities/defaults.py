"""Default collaborator implementations.

Useful for headless runs and tests: an in-memory surface that records every
write, a registry-backed resolver, a formatting style applier, and a static
motion policy.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from numbers import Real
from typing import Any

from choreo.core.capabilities.protocols import SurfaceHandle
from choreo.core.config.models import MotionConfig

logger = logging.getLogger(__name__)

# Unit suffixes applied to bare numbers when committing styles
_STYLE_UNITS: tuple[tuple[str, str], ...] = (
    ("translate", "px"),
    ("rotate", "deg"),
    ("skew", "deg"),
)


@dataclass
class InMemorySurface:
    """Surface handle that records writes.

    Attributes:
        name: Label used in logs and reprs
        styles: Current style map
        properties: Current property map
        writes: Every write in order as (channel, key, value)
    """

    name: str
    styles: dict[str, Any] = field(default_factory=dict)
    properties: dict[str, Any] = field(default_factory=dict)
    writes: list[tuple[str, str, Any]] = field(default_factory=list)

    def apply_style(self, key: str, value: Any) -> None:
        self.styles[key] = value
        self.writes.append(("style", key, value))

    def apply_property(self, key: str, value: Any) -> None:
        self.properties[key] = value
        self.writes.append(("property", key, value))

    def history(self, key: str) -> list[Any]:
        """All values written to a style key, oldest first."""
        return [value for channel, k, value in self.writes if channel == "style" and k == key]


class RegistryTargetResolver:
    """Resolves references from an explicit name -> handles registry.

    Example:
        >>> resolver = RegistryTargetResolver()
        >>> card = InMemorySurface("card")
        >>> resolver.register(".card", card)
        >>> resolver.resolve(".card") == [card]
        True
        >>> resolver.resolve("#missing")
        []
    """

    def __init__(self, targets: Mapping[str, Iterable[SurfaceHandle]] | None = None):
        self._targets: dict[str, list[SurfaceHandle]] = {}
        for ref, handles in (targets or {}).items():
            self._targets[ref] = list(handles)

    def register(self, ref: str, *handles: SurfaceHandle) -> None:
        """Add handles under a reference."""
        self._targets.setdefault(ref, []).extend(handles)

    def unregister(self, ref: str) -> None:
        """Forget a reference."""
        self._targets.pop(ref, None)

    def resolve(self, ref: str) -> list[SurfaceHandle]:
        return list(self._targets.get(ref, []))


def format_style_value(key: str, value: Any) -> Any:
    """Attach the conventional unit to bare numeric transform values.

    Example:
        >>> format_style_value("translateX", 12)
        '12px'
        >>> format_style_value("rotate", 45.5)
        '45.5deg'
        >>> format_style_value("opacity", 0.5)
        0.5
    """
    if not isinstance(value, Real) or isinstance(value, bool):
        return value
    lowered = key.lower()
    for prefix, unit in _STYLE_UNITS:
        if lowered.startswith(prefix):
            number = round(float(value), 4)
            text = str(int(number)) if number == int(number) else str(number)
            return f"{text}{unit}"
    return value


class HandleStyleApplier:
    """Applies maps through the handle's ``apply_style``/``apply_property``.

    Args:
        format_units: Attach px/deg units to bare numeric transform values
    """

    def __init__(self, format_units: bool = True):
        self.format_units = format_units

    def apply(
        self,
        handle: SurfaceHandle,
        styles: Mapping[str, Any],
        properties: Mapping[str, Any] | None = None,
    ) -> None:
        for key, value in styles.items():
            handle.apply_style(key, format_style_value(key, value) if self.format_units else value)
        for key, value in (properties or {}).items():
            handle.apply_property(key, value)


class StaticMotionPreference:
    """Motion policy fixed at construction.

    Args:
        reduced_motion: Prefer reduced motion
        max_duration_ms: Stages longer than this are disallowed (None = no cap)
        blocked_categories: Categories that are never allowed
    """

    def __init__(
        self,
        reduced_motion: bool = False,
        max_duration_ms: float | None = None,
        blocked_categories: Iterable[str] = (),
    ):
        self._reduced_motion = reduced_motion
        self.max_duration_ms = max_duration_ms
        self.blocked_categories = set(blocked_categories)

    @classmethod
    def from_config(cls, config: MotionConfig) -> StaticMotionPreference:
        """Build from the ``motion`` section of the app config."""
        return cls(
            reduced_motion=config.reduced_motion,
            max_duration_ms=config.max_duration_ms,
            blocked_categories=config.blocked_categories,
        )

    @property
    def prefers_reduced_motion(self) -> bool:
        return self._reduced_motion

    def is_allowed(self, category: str | None, duration_ms: float) -> bool:
        if category is not None and category in self.blocked_categories:
            return False
        if self.max_duration_ms is not None and duration_ms > self.max_duration_ms:
            return False
        return True
