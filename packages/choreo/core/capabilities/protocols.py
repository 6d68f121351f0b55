"""Protocols for the engine's external collaborators.

The engine never inspects or constructs surface handles. It resolves
logical target references through a ``TargetResolver`` and commits computed
values through a ``StyleApplier``; motion policy comes from a
``MotionPreference`` provider.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class SurfaceHandle(Protocol):
    """A live, mutable visual surface.

    The only operations the engine performs on a surface.
    """

    def apply_style(self, key: str, value: Any) -> None:
        """Set a style entry (e.g. ``opacity``, ``transform``)."""
        ...

    def apply_property(self, key: str, value: Any) -> None:
        """Set a non-style property (e.g. ``scrollTop``, ``data-state``)."""
        ...


class TargetResolver(Protocol):
    """Maps a logical target reference to zero or more surface handles."""

    def resolve(self, ref: str) -> list[SurfaceHandle]:
        """Resolve a reference.

        Returns:
            Matching handles (empty when nothing matches)
        """
        ...


class StyleApplier(Protocol):
    """Commits computed values to a surface handle."""

    def apply(
        self,
        handle: SurfaceHandle,
        styles: Mapping[str, Any],
        properties: Mapping[str, Any] | None = None,
    ) -> None:
        """Apply a style map and an optional property map to one handle."""
        ...


class MotionPreference(Protocol):
    """Motion-preference policy injected by the host."""

    @property
    def prefers_reduced_motion(self) -> bool:
        """True when the user asked for reduced motion."""
        ...

    def is_allowed(self, category: str | None, duration_ms: float) -> bool:
        """Whether a stage of this category and duration may run as authored."""
        ...
