"""Synchronized animation groups.

A group computes every member's timing once, then plays all members on a
single PlaybackClock. One clock means one time origin: pausing, resuming and
rate changes can never make members drift apart.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, Protocol

from choreo.core.errors import EmptyGroupError, GroupLockedError
from choreo.core.playback.clock import PlaybackClock
from choreo.core.playback.driver import StageDriver
from choreo.core.playback.loop import FrameLoop
from choreo.core.playback.tokens import CompletionToken
from choreo.core.statemachine.machine import AnimationStateMachine
from choreo.core.sync.models import (
    AnimationPhase,
    ItemTiming,
    SyncedAnimation,
    SyncGroupOptions,
    SyncGroupState,
    SyncPoint,
)
from choreo.core.sync.strategies import compute_timings
from choreo.core.timeline.compiler import TimelineCompiler
from choreo.core.timeline.models import AnimationDescriptor, AnimationSpec, PlacementMode
from choreo.core.utils.timing import clamp

logger = logging.getLogger(__name__)

SYNC_POINT_EVENT = "syncPoint"
TRANSITION_TO_EVENT = "transitionTo"

SyncPointListener = Callable[[SyncPoint], Any]


class SyncHost(Protocol):
    """What a group needs from its orchestrator."""

    loop: FrameLoop
    compiler: TimelineCompiler

    def resolve_animation(self, spec: AnimationSpec) -> AnimationDescriptor: ...

    def create_driver(self) -> StageDriver: ...

    def apply_snapshot(
        self,
        targets: Sequence[str],
        styles: Mapping[str, Any] | None = None,
        properties: Mapping[str, Any] | None = None,
    ) -> None: ...


class SyncGroup:
    """Group of animations reconciled by one synchronization strategy.

    Members can be added or removed only while the group is INITIALIZING;
    ``initialize()`` computes the timings and locks the group.

    Args:
        options: Group configuration
        host: Orchestrator providing the loop, presets and rendering

    Example:
        >>> group = SyncGroup(SyncGroupOptions(id="hero"), context)
        >>> group.add_animation(SyncedAnimation(id="a", target="title", animation="fadeIn",
        ...                                     duration_ms=300))
        >>> group.add_animation(SyncedAnimation(id="b", target="image", animation="zoomIn",
        ...                                     duration_ms=500))
        >>> group.initialize().duration_ms
        500.0
    """

    def __init__(self, options: SyncGroupOptions, host: SyncHost):
        self.options = options
        self.host = host
        self.state = SyncGroupState.INITIALIZING
        self.duration_ms = 0.0
        self.timings: dict[str, ItemTiming] = {}
        self.fired: list[tuple[str, str]] = []

        self._animations: dict[str, SyncedAnimation] = {}
        self._listeners: dict[str, list[SyncPointListener]] = {}
        self._machines: dict[str, tuple[AnimationStateMachine, SyncPointListener]] = {}
        self._clock: PlaybackClock | None = None

    @property
    def id(self) -> str:
        return self.options.id

    @property
    def animations(self) -> list[SyncedAnimation]:
        return list(self._animations.values())

    @property
    def clock(self) -> PlaybackClock | None:
        return self._clock

    def __repr__(self) -> str:
        return f"SyncGroup({self.id!r}, {self.state.value}, {len(self._animations)} animations)"

    # ========== STRUCTURE ==========

    def _ensure_unlocked(self, action: str) -> None:
        if self.state is not SyncGroupState.INITIALIZING:
            raise GroupLockedError(
                f"Cannot {action} group '{self.id}' after initialization (state: {self.state.value})"
            )

    def add_animation(self, animation: SyncedAnimation) -> SyncGroup:
        self._ensure_unlocked("add animations to")
        self._animations[animation.id] = animation
        return self

    def add_animations(self, animations: Iterable[SyncedAnimation]) -> SyncGroup:
        for animation in animations:
            self.add_animation(animation)
        return self

    def remove_animation(self, animation_id: str) -> SyncGroup:
        self._ensure_unlocked("remove animations from")
        self._animations.pop(animation_id, None)
        return self

    def initialize(self) -> SyncGroup:
        """Compute timings with the group's strategy and lock the group.

        Raises:
            EmptyGroupError: If the group has no animations
            GroupLockedError: If already initialized
        """
        self._ensure_unlocked("initialize")
        if not self._animations:
            raise EmptyGroupError(f"Group '{self.id}' has no animations")

        self.timings, self.duration_ms = compute_timings(self.animations, self.options)
        self.state = SyncGroupState.READY
        logger.debug(
            f"Group '{self.id}' initialized: {len(self.timings)} animations, "
            f"{self.duration_ms:.1f}ms ({self.options.strategy.value})"
        )
        return self

    def timing(self, animation_id: str) -> ItemTiming:
        return self.timings[animation_id]

    @property
    def start_times(self) -> dict[str, float]:
        return {aid: t.start_ms for aid, t in self.timings.items()}

    @property
    def durations(self) -> dict[str, float]:
        return {aid: t.duration_ms for aid, t in self.timings.items()}

    # ========== PLAYBACK ==========

    def play(self) -> CompletionToken:
        """Play every member against one clock (initializing first if needed).

        Returns:
            Token resolved when the group completes
        """
        if self.state is SyncGroupState.INITIALIZING:
            self.initialize()
        if self.state is SyncGroupState.PLAYING:
            return self._clock.completion
        if self.state is SyncGroupState.PAUSED:
            self.resume()
            return self._clock.completion

        self.fired = []
        self._clock = self._build_clock()
        self.state = SyncGroupState.PLAYING
        logger.info(f"Group '{self.id}' playing ({self.duration_ms:.1f}ms)")
        return self._clock.play()

    def pause(self) -> bool:
        if self.state is not SyncGroupState.PLAYING:
            return False
        self._clock.pause()
        self.state = SyncGroupState.PAUSED
        return True

    def resume(self) -> bool:
        if self.state is not SyncGroupState.PAUSED:
            return False
        self.state = SyncGroupState.PLAYING
        self._clock.resume()
        return True

    def cancel(self) -> bool:
        """Stop all scheduled work and reset progress to 0."""
        if self.state not in (SyncGroupState.PLAYING, SyncGroupState.PAUSED):
            return False
        self.state = SyncGroupState.CANCELED
        self._clock.stop()
        logger.info(f"Group '{self.id}' canceled")
        return True

    def progress(self) -> float:
        if self.state in (
            SyncGroupState.INITIALIZING,
            SyncGroupState.READY,
            SyncGroupState.CANCELED,
        ):
            return 0.0
        if self.state is SyncGroupState.COMPLETED:
            return 1.0
        if self.duration_ms <= 0:
            return 0.0
        return clamp(self._clock.elapsed_ms / self.duration_ms)

    def _build_clock(self) -> PlaybackClock:
        stages = []
        for animation in self.animations:
            timing = self.timings[animation.id]
            descriptor = self.host.resolve_animation(animation.animation)
            stages.append(
                descriptor.to_stage(
                    f"{self.id}:{animation.id}",
                    animation.target,
                    duration_ms=timing.duration_ms,
                    start_time_ms=timing.start_ms,
                )
            )

        timeline = self.host.compiler.compile(
            stages, PlacementMode.PARALLEL, duration_override_ms=self.duration_ms
        )
        clock = PlaybackClock(timeline, self.host.loop, name=self.id, driver=self.host.create_driver())

        order = {aid: index for index, aid in enumerate(self._animations)}
        points = sorted(
            (
                (t, order[aid], aid, point_id)
                for aid, timing in self.timings.items()
                for point_id, t in timing.sync_points.items()
            ),
            key=lambda item: (item[0], item[1]),
        )
        for time_ms, _, animation_id, point_id in points:
            clock.when_elapsed(time_ms).add_done_callback(
                lambda token, aid=animation_id, pid=point_id: (
                    None if token.cancelled else self._reach_sync_point(aid, pid)
                )
            )

        clock.on("complete", self._handle_complete)
        return clock

    def _handle_complete(self) -> None:
        self.state = SyncGroupState.COMPLETED
        logger.info(f"Group '{self.id}' completed")
        if self.options.on_complete is not None:
            try:
                self.options.on_complete()
            except Exception:
                logger.exception(f"Group '{self.id}' completion callback failed")

    # ========== SYNC POINTS ==========

    def _point_definition(self, animation: SyncedAnimation, point_id: str) -> SyncPoint:
        for point in animation.sync_points:
            if point.id == point_id:
                return point
        for point in self.options.sync_points:
            if point.id == point_id:
                return point
        if point_id in {phase.value for phase in AnimationPhase}:
            return SyncPoint.standard(AnimationPhase(point_id))
        # Custom timing functions may return points nobody declared
        timing = self.timings[animation.id]
        offset = timing.sync_points[point_id] - timing.start_ms
        position = clamp(offset / timing.duration_ms) if timing.duration_ms > 0 else 0.0
        return SyncPoint(id=point_id, name=point_id, position=position)

    def _reach_sync_point(self, animation_id: str, point_id: str) -> None:
        animation = self._animations.get(animation_id)
        if animation is None:
            return
        point = self._point_definition(animation, point_id)
        self.fired.append((animation_id, point_id))
        logger.debug(f"Group '{self.id}': '{animation_id}' reached sync point '{point_id}'")

        state = animation.states.get(point_id)
        if state is not None:
            self._enter_state(animation, state.id, state.styles, state.properties)

        for listener in list(self._listeners.get(animation_id, [])):
            try:
                listener(point)
            except Exception:
                logger.exception(f"Sync point listener for '{animation_id}' failed")

        if self.options.on_sync_point is not None:
            try:
                self.options.on_sync_point(point, [animation_id])
            except Exception:
                logger.exception(f"Group '{self.id}' sync point callback failed")

    def _enter_state(
        self,
        animation: SyncedAnimation,
        state_id: str,
        styles: Mapping[str, Any],
        properties: Mapping[str, Any],
    ) -> None:
        bound = self._machines.get(animation.id)
        if bound is not None:
            bound[0].send(TRANSITION_TO_EVENT, {"state_id": state_id})
        else:
            self.host.apply_snapshot([animation.target], styles, properties)

    def add_sync_point_listener(self, animation_id: str, listener: SyncPointListener) -> SyncGroup:
        self._listeners.setdefault(animation_id, []).append(listener)
        return self

    def remove_sync_point_listener(
        self, animation_id: str, listener: SyncPointListener
    ) -> SyncGroup:
        listeners = self._listeners.get(animation_id, [])
        if listener in listeners:
            listeners.remove(listener)
        return self

    def connect_state_machine(
        self,
        animation_id: str,
        machine: AnimationStateMachine,
        state_map: Mapping[str, str],
    ) -> SyncGroup:
        """Drive a state machine from an animation's sync points.

        Each mapped point sends ``syncPoint`` with ``{point_id, state_id}``.
        """
        self.disconnect_state_machine(animation_id)
        mapping = dict(state_map)

        def listener(point: SyncPoint) -> None:
            state_id = mapping.get(point.id)
            if state_id:
                machine.send(SYNC_POINT_EVENT, {"point_id": point.id, "state_id": state_id})

        self._machines[animation_id] = (machine, listener)
        return self.add_sync_point_listener(animation_id, listener)

    def disconnect_state_machine(self, animation_id: str) -> SyncGroup:
        bound = self._machines.pop(animation_id, None)
        if bound is not None:
            self.remove_sync_point_listener(animation_id, bound[1])
        return self
