"""Stage drivers.

A driver turns stage progress into effects. The clock decides *when* and
*how far*; the driver decides *what happens*: interpolated style writes,
callback invocations, event emission.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, Protocol

from choreo.core.capabilities.protocols import StyleApplier, SurfaceHandle, TargetResolver
from choreo.core.interpolation.easing import EasingFn
from choreo.core.interpolation.interpolators import blend
from choreo.core.interpolation.models import BlendMode
from choreo.core.interpolation.state import KeyframeInterpolator
from choreo.core.timeline.compiler import Timeline
from choreo.core.timeline.models import (
    BaseStage,
    EventStage,
    Keyframe,
    StaggerStage,
    StyleStage,
    TimelineEntry,
)
from choreo.core.utils.timing import clamp

logger = logging.getLogger(__name__)

EventEmitter = Callable[[str, dict[str, Any]], Any]


class StageDriver(Protocol):
    """Applies stage effects for a playback clock."""

    def bind(self, timeline: Timeline) -> None:
        """Called whenever the clock (re)compiles its timeline."""
        ...

    def begin_frame(self) -> None: ...

    def start_stage(self, stage: BaseStage, entry: TimelineEntry) -> None: ...

    def update_stage(
        self,
        stage: BaseStage,
        entry: TimelineEntry,
        raw_progress: float,
        eased_progress: float,
        easing: EasingFn,
    ) -> None: ...

    def finish_stage(self, stage: BaseStage, entry: TimelineEntry) -> None: ...

    def end_frame(self) -> None:
        """Commit everything written during the frame."""
        ...


def _keyframe_pairs(keyframes: list[Keyframe]) -> list[tuple[float, dict[str, Any]]]:
    return [(k.offset, k.values) for k in keyframes]


class RenderingStageDriver:
    """Default driver: renders stages through the target capabilities.

    - Style stages interpolate their keyframes and write to every handle the
      target resolves to.
    - Stagger stages give each target its own progress
      ``(stage_elapsed - delay_i) / duration_i`` from the stagger plan.
    - Callback stages are left to the clock, which calls them itself.
    - Event stages emit once when started.

    Writes are buffered per frame. Two stages writing the same key to the
    same handle in one frame are combined with the blend mode; OVERRIDE
    means last writer wins.

    Args:
        resolver: Target resolution capability
        applier: Style application capability
        emit: Event sink for event stages
        blend_mode: How same-frame writes to one key combine
        interpolator_options: Passed to every KeyframeInterpolator
    """

    def __init__(
        self,
        resolver: TargetResolver,
        applier: StyleApplier,
        emit: EventEmitter | None = None,
        blend_mode: BlendMode = BlendMode.OVERRIDE,
        interpolator_options: Mapping[str, Any] | None = None,
    ):
        self.resolver = resolver
        self.applier = applier
        self.emit = emit
        self.blend_mode = blend_mode
        self.interpolator_options = dict(interpolator_options or {})
        self._timeline: Timeline | None = None
        self._interpolators: dict[tuple[str, float], KeyframeInterpolator] = {}
        self._warned: set[str] = set()
        # handle id -> (handle, styles, properties)
        self._frame: dict[int, tuple[SurfaceHandle, dict[str, Any], dict[str, Any]]] = {}

    def bind(self, timeline: Timeline) -> None:
        self._timeline = timeline
        self._interpolators.clear()

    # ========== FRAME ==========

    def begin_frame(self) -> None:
        self._frame = {}

    def end_frame(self) -> None:
        frame, self._frame = self._frame, {}
        for handle, styles, properties in frame.values():
            try:
                self.applier.apply(handle, styles, properties or None)
            except Exception:
                logger.exception(f"Failed to apply styles to {handle!r}")

    def _write(self, handle: SurfaceHandle, values: Mapping[str, Any], channel: str) -> None:
        _, styles, properties = self._frame.setdefault(id(handle), (handle, {}, {}))
        bucket = properties if channel == "property" else styles
        for key, value in values.items():
            if key in bucket:
                bucket[key] = blend(bucket[key], value, 1.0, self.blend_mode)
            else:
                bucket[key] = value

    # ========== STAGES ==========

    def start_stage(self, stage: BaseStage, entry: TimelineEntry) -> None:
        if isinstance(stage, EventStage):
            self._emit_event(stage)

    def update_stage(
        self,
        stage: BaseStage,
        entry: TimelineEntry,
        raw_progress: float,
        eased_progress: float,
        easing: EasingFn,
    ) -> None:
        if isinstance(stage, StyleStage):
            values = self._interpolator(stage, stage.duration_ms).at(eased_progress)
            for handle in self._resolve(stage.id, stage.target):
                self._write(handle, values, stage.channel)
        elif isinstance(stage, StaggerStage):
            self._update_stagger(stage, entry, raw_progress, easing)

    def finish_stage(self, stage: BaseStage, entry: TimelineEntry) -> None:
        prefix = f"{stage.id}:"
        self._warned = {key for key in self._warned if not key.startswith(prefix)}

    def _update_stagger(
        self, stage: StaggerStage, entry: TimelineEntry, raw_progress: float, easing: EasingFn
    ) -> None:
        plan = self._timeline.stagger_plans.get(stage.id) if self._timeline else None
        if plan is None:
            logger.warning(f"No stagger plan for stage '{stage.id}'")
            return

        stage_elapsed = raw_progress * entry.iteration_ms
        for slot in plan.slots:
            if slot.duration_ms > 0:
                local = clamp((stage_elapsed - slot.delay_ms) / slot.duration_ms)
            else:
                local = 1.0 if stage_elapsed >= slot.delay_ms else 0.0
            values = self._interpolator(stage, slot.duration_ms).at(easing(local))
            for handle in self._resolve(stage.id, slot.ref):
                self._write(handle, values, "style")

    def _interpolator(self, stage: StyleStage | StaggerStage, duration_ms: float) -> KeyframeInterpolator:
        key = (stage.id, duration_ms)
        interpolator = self._interpolators.get(key)
        if interpolator is None:
            interpolator = KeyframeInterpolator(
                _keyframe_pairs(stage.keyframes),
                duration_ms,
                properties=stage.properties,
                **self.interpolator_options,
            )
            self._interpolators[key] = interpolator
        return interpolator

    def _resolve(self, stage_id: str, ref: str) -> list[SurfaceHandle]:
        """Handles for ``ref``; unresolved targets write nothing but keep their interval."""
        handles = self.resolver.resolve(ref)
        if not handles:
            warn_key = f"{stage_id}:{ref}"
            if warn_key not in self._warned:
                self._warned.add(warn_key)
                logger.warning(f"Target '{ref}' of stage '{stage_id}' did not resolve; skipping")
        return handles

    def _emit_event(self, stage: EventStage) -> None:
        if self.emit is None:
            logger.debug(f"Event stage '{stage.id}' has no emitter; '{stage.event}' dropped")
            return
        self.emit(stage.event, {"stage_id": stage.id, **stage.payload})
