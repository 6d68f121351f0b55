"""Snapshot tweens.

``StateInterpolator`` tweens between two property snapshots over a fixed
duration. Keyframed animations are a chain of these, one per segment.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from choreo.core.interpolation.easing import EasingFn, linear, resolve_easing
from choreo.core.interpolation.interpolators import Interpolator, build_interpolation_config
from choreo.core.interpolation.models import BlendMode, PropertyConfig
from choreo.core.utils.timing import clamp


class StateInterpolator:
    """Tween between two snapshots with per-property rules.

    Args:
        from_values: Snapshot at progress 0
        to_values: Snapshot at progress 1
        duration_ms: Tween duration (used by per-property delays)
        easing: Overall easing applied before per-property easing
        properties: Explicit per-property rules; other keys are inferred
        blend_mode: Global blend mode for the tween's property table

    Example:
        >>> tween = StateInterpolator({"opacity": 0}, {"opacity": 1}, 300, easing="linear")
        >>> tween.at(0.25)
        {'opacity': 0.25}
    """

    def __init__(
        self,
        from_values: Mapping[str, Any],
        to_values: Mapping[str, Any],
        duration_ms: float,
        easing: Any = "linear",
        properties: Mapping[str, PropertyConfig] | None = None,
        blend_mode: BlendMode = BlendMode.OVERRIDE,
        **interpolator_options: Any,
    ):
        self.from_values = dict(from_values)
        self.to_values = dict(to_values)
        self.duration_ms = duration_ms
        self.easing: EasingFn = resolve_easing(easing, default=linear)
        config = build_interpolation_config(self.from_values, self.to_values, properties, blend_mode)
        self.interpolator = Interpolator(config, **interpolator_options)

    def at(self, progress: float) -> dict[str, Any]:
        """Snapshot at the given (un-eased) progress."""
        eased = self.easing(clamp(progress))
        return self.interpolator.interpolate_properties(
            self.from_values, self.to_values, eased, self.duration_ms
        )


class KeyframeInterpolator:
    """Piecewise tween through ordered keyframes.

    Args:
        keyframes: ``(offset, values)`` pairs; offsets in [0, 1], ascending
        duration_ms: Total duration
        properties: Explicit per-property rules shared by all segments
        **interpolator_options: Passed to each segment's Interpolator
    """

    def __init__(
        self,
        keyframes: Sequence[tuple[float, Mapping[str, Any]]],
        duration_ms: float,
        properties: Mapping[str, PropertyConfig] | None = None,
        **interpolator_options: Any,
    ):
        if len(keyframes) < 2:
            raise ValueError("At least two keyframes are required")

        self.offsets = [offset for offset, _ in keyframes]
        self.segments: list[StateInterpolator] = []
        for (start, from_values), (end, to_values) in zip(keyframes, keyframes[1:], strict=False):
            self.segments.append(
                StateInterpolator(
                    from_values,
                    to_values,
                    duration_ms * (end - start),
                    easing="linear",
                    properties=properties,
                    **interpolator_options,
                )
            )

    def at(self, progress: float) -> dict[str, Any]:
        """Snapshot at the given (already eased) progress."""
        progress = clamp(progress)
        for index, segment in enumerate(self.segments):
            start, end = self.offsets[index], self.offsets[index + 1]
            if progress <= end or index == len(self.segments) - 1:
                span = end - start
                local = 1.0 if span <= 0 else (progress - start) / span
                return segment.at(local)
        return self.segments[-1].at(1.0)
