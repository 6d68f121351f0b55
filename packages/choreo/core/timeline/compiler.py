"""Timeline compiler.

Turns authored stages plus relationship hints into absolute start/end times.

Placement rules:
- Top-level stages follow a ``PlacementMode`` (sequential by default).
- Group children follow their group's ``GroupRelationship``.
- A stage never starts before the stages it depends on have ended.
- An explicit ``start_time_ms`` (relative to the enclosing origin) always
  wins over computed placement.
- Reduced-motion alternatives are swapped in before placement.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from choreo.core.capabilities.protocols import MotionPreference
from choreo.core.errors import DuplicateIdError
from choreo.core.graph.resolver import topological_order
from choreo.core.interpolation.easing import EasingFn, resolve_easing
from choreo.core.stagger.distributor import distribute
from choreo.core.stagger.models import StaggerOptions, StaggerPlan, StaggerTarget
from choreo.core.timeline.models import (
    AnyStage,
    BaseStage,
    GroupRelationship,
    GroupStage,
    PlacementMode,
    StageKind,
    StaggerStage,
    TimelineEntry,
)

logger = logging.getLogger(__name__)

DEFAULT_CASCADE_OFFSET_MS = 100.0


@dataclass
class Timeline:
    """Compiled timeline.

    Attributes:
        entries: Placement per stage id (children included)
        stages: Resolved stage per id (reduced-motion swaps applied)
        easings: Resolved easing per stage id
        stagger_plans: Distribution per stagger stage id
        labels: Seek labels (stage ids and explicit labels) to times
        total_duration_ms: Max end time, or the explicit override
        order: Stage ids sorted by start time (ties keep declaration order)
    """

    entries: dict[str, TimelineEntry] = field(default_factory=dict)
    stages: dict[str, BaseStage] = field(default_factory=dict)
    easings: dict[str, EasingFn] = field(default_factory=dict)
    stagger_plans: dict[str, StaggerPlan] = field(default_factory=dict)
    labels: dict[str, float] = field(default_factory=dict)
    total_duration_ms: float = 0.0
    order: list[str] = field(default_factory=list)

    def entry(self, stage_id: str) -> TimelineEntry:
        """Get a stage's placement.

        Raises:
            KeyError: If the stage is not part of the timeline
        """
        return self.entries[stage_id]

    def label_time(self, label: str) -> float | None:
        """Time of a label, or None if unknown."""
        return self.labels.get(label)

    def active_at(self, time_ms: float) -> list[str]:
        """Ids of stages whose interval contains ``time_ms``."""
        return [
            sid
            for sid in self.order
            if self.entries[sid].start_ms <= time_ms < self.entries[sid].end_ms
        ]


class TimelineCompiler:
    """Compiles stage lists into ``Timeline`` objects.

    Args:
        motion: Motion-preference provider (None = stages run as authored)
        default_easing: Easing for stages that declare none
        stagger: Defaults for STAGGER placement and stagger stages
        cascade_offset_ms: Offset between CASCADE-placed stages

    Example:
        >>> compiler = TimelineCompiler()
        >>> timeline = compiler.compile([
        ...     CallbackStage(id="a", duration_ms=100, callback=print),
        ...     CallbackStage(id="b", duration_ms=50, callback=print),
        ... ])
        >>> timeline.entry("b").start_ms, timeline.total_duration_ms
        (100.0, 150.0)
    """

    def __init__(
        self,
        motion: MotionPreference | None = None,
        default_easing: EasingFn | None = None,
        stagger: StaggerOptions | None = None,
        cascade_offset_ms: float = DEFAULT_CASCADE_OFFSET_MS,
    ):
        self.motion = motion
        self.default_easing = default_easing
        self.stagger = stagger or StaggerOptions()
        self.cascade_offset_ms = cascade_offset_ms

    def compile(
        self,
        stages: Sequence[AnyStage],
        mode: PlacementMode = PlacementMode.SEQUENTIAL,
        duration_override_ms: float | None = None,
        labels: Mapping[str, float] | None = None,
    ) -> Timeline:
        """Compile stages into a timeline.

        Args:
            stages: Top-level stages in declaration order
            mode: Placement of top-level stages
            duration_override_ms: Explicit total duration
            labels: Extra seek labels (name -> ms)

        Returns:
            Compiled Timeline

        Raises:
            DuplicateIdError: If stage ids collide anywhere in the tree
            CircularDependencyError: If sibling dependencies form a cycle
            UnknownDependencyError: If a dependency names no sibling
        """
        timeline = Timeline()
        self._place(timeline, stages, origin=0.0, mode=mode, parent_id=None)

        ends = [e.end_ms for e in timeline.entries.values()]
        timeline.total_duration_ms = (
            duration_override_ms if duration_override_ms is not None else max(ends, default=0.0)
        )

        declaration = list(timeline.entries)
        timeline.order = sorted(
            declaration, key=lambda sid: (timeline.entries[sid].start_ms, declaration.index(sid))
        )
        timeline.labels = {sid: timeline.entries[sid].start_ms for sid in declaration}
        timeline.labels.update(labels or {})

        logger.debug(
            f"Compiled timeline: {len(timeline.entries)} stages, "
            f"{timeline.total_duration_ms:.1f}ms ({mode.value})"
        )
        return timeline

    # ========== PLACEMENT ==========

    def _resolve_stage(self, stage: AnyStage) -> AnyStage:
        alternative = stage.reduced_motion_alternative
        if self.motion is None or alternative is None:
            return stage
        if self.motion.prefers_reduced_motion or not self.motion.is_allowed(
            stage.category, stage.duration_ms
        ):
            logger.debug(f"Using reduced-motion alternative for stage '{stage.id}'")
            return alternative.model_copy(
                update={
                    "id": stage.id,
                    "depends_on": stage.depends_on,
                    "start_time_ms": (
                        alternative.start_time_ms
                        if alternative.start_time_ms is not None
                        else stage.start_time_ms
                    ),
                }
            )
        return stage

    def _stagger_plan(self, stage: StaggerStage) -> StaggerPlan:
        options = stage.stagger.model_copy(update={"duration_ms": stage.duration_ms})
        return distribute(stage.targets, options)

    def _iteration_ms(self, timeline: Timeline, stage: AnyStage) -> float:
        if stage.kind == StageKind.EVENT:
            return 0.0
        if stage.kind == StageKind.STAGGER:
            plan = self._stagger_plan(stage)
            timeline.stagger_plans[stage.id] = plan
            return plan.total_duration_ms
        return stage.duration_ms

    def _measure(self, stage: AnyStage) -> float:
        """Span of a stage placed at origin 0, without touching the real timeline.

        Sibling dependencies are dropped; they only shift the start, never the span.
        """
        scratch = Timeline()
        alone = stage.model_copy(update={"depends_on": []})
        self._place(scratch, [alone], origin=0.0, mode=PlacementMode.PARALLEL, parent_id=None)
        entry = scratch.entries[stage.id]
        return entry.end_ms - entry.start_ms

    def _place(
        self,
        timeline: Timeline,
        stages: Sequence[AnyStage],
        origin: float,
        mode: PlacementMode | GroupRelationship,
        parent_id: str | None,
        relationship_value_ms: float = 0.0,
    ) -> float:
        """Place sibling stages; returns the latest end time."""
        resolved = [self._resolve_stage(s) for s in stages]
        by_id: dict[str, AnyStage] = {}
        for stage in resolved:
            if stage.id in timeline.entries or stage.id in by_id:
                raise DuplicateIdError(f"Duplicate stage id: '{stage.id}'")
            by_id[stage.id] = stage

        order = topological_order(resolved, key=lambda s: s.id, dependencies=lambda s: s.depends_on)

        sibling_offsets = self._sibling_offsets(resolved, order, mode)
        end_together_at = None
        if mode is GroupRelationship.END_TOGETHER:
            end_together_at = origin + max(
                (s.delay_ms + self._measure(s) for s in resolved), default=0.0
            )

        cursor = origin
        prev_end: float | None = None
        latest = origin

        for index, stage_id in enumerate(order):
            stage = by_id[stage_id]

            if mode in (PlacementMode.SEQUENTIAL, GroupRelationship.CHAIN):
                start = cursor + stage.delay_ms
            elif mode in (PlacementMode.PARALLEL, GroupRelationship.START_TOGETHER):
                start = origin + stage.delay_ms
            elif mode in (PlacementMode.STAGGER, PlacementMode.CASCADE):
                start = origin + sibling_offsets[stage_id] + stage.delay_ms
            elif mode is GroupRelationship.GAP:
                base = origin if prev_end is None else prev_end + relationship_value_ms
                start = base + stage.delay_ms
            elif mode is GroupRelationship.OVERLAP:
                base = origin if prev_end is None else max(origin, prev_end - relationship_value_ms)
                start = base + stage.delay_ms
            else:  # END_TOGETHER
                start = end_together_at - self._measure(stage)

            for dep_id in stage.depends_on:
                start = max(start, timeline.entries[dep_id].end_ms)

            if stage.start_time_ms is not None:
                start = origin + stage.start_time_ms

            end = self._place_stage(timeline, stage, start, parent_id)
            cursor = max(cursor, end)
            prev_end = end
            latest = max(latest, end)

        return latest

    def _sibling_offsets(
        self,
        stages: Sequence[AnyStage],
        order: Sequence[str],
        mode: PlacementMode | GroupRelationship,
    ) -> dict[str, float]:
        if mode is PlacementMode.CASCADE:
            return {sid: i * self.cascade_offset_ms for i, sid in enumerate(order)}
        if mode is PlacementMode.STAGGER:
            categories = {s.id: s.category for s in stages}
            plan = distribute(
                [StaggerTarget(ref=sid, category=categories[sid]) for sid in order],
                self.stagger,
            )
            return plan.delays
        return {}

    def _place_stage(
        self, timeline: Timeline, stage: AnyStage, start: float, parent_id: str | None
    ) -> float:
        if isinstance(stage, GroupStage):
            # Register the group first so children see it as their parent
            timeline.stages[stage.id] = stage
            timeline.entries[stage.id] = TimelineEntry(
                stage_id=stage.id,
                start_ms=start,
                end_ms=start,
                duration_ms=0.0,
                iteration_ms=0.0,
                parent_id=parent_id,
            )
            if stage.children:
                end = self._place(
                    timeline,
                    stage.children,
                    origin=start,
                    mode=stage.relationship,
                    parent_id=stage.id,
                    relationship_value_ms=stage.relationship_value_ms,
                )
            else:
                end = start + stage.duration_ms
            span = end - start
            timeline.entries[stage.id] = timeline.entries[stage.id].model_copy(
                update={"end_ms": end, "duration_ms": span, "iteration_ms": span}
            )
            timeline.easings[stage.id] = resolve_easing(stage.easing, self.default_easing)
            return end

        iteration = self._iteration_ms(timeline, stage)
        span = stage.span_ms(iteration)
        timeline.stages[stage.id] = stage
        timeline.entries[stage.id] = TimelineEntry(
            stage_id=stage.id,
            start_ms=start,
            end_ms=start + span,
            duration_ms=span,
            iteration_ms=iteration,
            parent_id=parent_id,
        )
        timeline.easings[stage.id] = resolve_easing(stage.easing, self.default_easing)
        return start + span


def compile_timeline(
    stages: Sequence[AnyStage],
    mode: PlacementMode = PlacementMode.SEQUENTIAL,
    duration_override_ms: float | None = None,
    labels: Mapping[str, float] | None = None,
    motion: MotionPreference | None = None,
) -> Timeline:
    """Compile stages with default compiler settings.

    See ``TimelineCompiler.compile``.
    """
    return TimelineCompiler(motion=motion).compile(stages, mode, duration_override_ms, labels)
