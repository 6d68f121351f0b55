"""Timing strategies for sync groups.

Each strategy maps the group's members to start times, durations and
absolute sync-point times. All functions are pure.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from choreo.core.sync.models import (
    PHASE_POSITIONS,
    STANDARD_SYNC_POINTS,
    ItemTiming,
    SynchronizationStrategy,
    SyncedAnimation,
    SyncGroupOptions,
)

logger = logging.getLogger(__name__)

StrategyResult = tuple[dict[str, ItemTiming], float]
Strategy = Callable[[Sequence[SyncedAnimation], SyncGroupOptions], StrategyResult]


def _adapts(animation: SyncedAnimation, options: SyncGroupOptions) -> bool:
    return options.adapt_timings and animation.adapt_timing


def sync_point_times(
    animation: SyncedAnimation, options: SyncGroupOptions, start_ms: float, duration_ms: float
) -> dict[str, float]:
    """Absolute times of a member's sync points.

    Group points first, member points override them, then the standard
    start/middle/end points fill any gaps.
    """
    times: dict[str, float] = {}
    for point in options.sync_points:
        times[point.id] = start_ms + point.position * duration_ms
    for point in animation.sync_points:
        times[point.id] = start_ms + point.position * duration_ms
    return _with_standard_points(times, start_ms, duration_ms)


def _with_standard_points(
    times: dict[str, float], start_ms: float, duration_ms: float
) -> dict[str, float]:
    for phase in STANDARD_SYNC_POINTS:
        times.setdefault(phase.value, start_ms + PHASE_POSITIONS[phase] * duration_ms)
    return times


def _timing(
    animation: SyncedAnimation, options: SyncGroupOptions, start_ms: float, duration_ms: float
) -> ItemTiming:
    return ItemTiming(
        start_ms=start_ms,
        duration_ms=duration_ms,
        sync_points=sync_point_times(animation, options, start_ms, duration_ms),
    )


# ========== STRATEGIES ==========


def common_duration(
    animations: Sequence[SyncedAnimation], options: SyncGroupOptions
) -> StrategyResult:
    """Everyone starts at 0; adaptable members run for the group duration."""
    group_duration = options.duration_ms or max(a.duration_ms for a in animations)
    timings = {
        a.id: _timing(a, options, 0.0, group_duration if _adapts(a, options) else a.duration_ms)
        for a in animations
    }
    return timings, group_duration


def align_sync_points(
    animations: Sequence[SyncedAnimation], options: SyncGroupOptions
) -> StrategyResult:
    """Map every known sync point onto each member, then rescale adaptable members.

    The rescale target is the explicit duration, else the longest
    non-adaptable member, else the longest member.
    """
    point_ids: list[str] = [p.id for p in options.sync_points]
    for animation in animations:
        point_ids.extend(p.id for p in animation.sync_points if p.id not in point_ids)
    if not point_ids:
        logger.debug(f"Group '{options.id}' has no sync points to align; using common duration")
        return common_duration(animations, options)

    group_positions = {p.id: p.position for p in options.sync_points}
    fixed_end = max(
        (a.duration_ms for a in animations if not _adapts(a, options)), default=0.0
    )
    target = options.duration_ms or fixed_end or max(a.duration_ms for a in animations)

    timings: dict[str, ItemTiming] = {}
    for animation in animations:
        own_positions = {p.id: p.position for p in animation.sync_points}
        times: dict[str, float] = {}
        for point_id in point_ids:
            position = own_positions.get(point_id, group_positions.get(point_id))
            if position is not None:
                times[point_id] = position * animation.duration_ms

        duration = animation.duration_ms
        if _adapts(animation, options):
            scale = target / duration if duration > 0 else 0.0
            times = {point_id: t * scale for point_id, t in times.items()}
            duration = target

        timings[animation.id] = ItemTiming(
            start_ms=0.0,
            duration_ms=duration,
            sync_points=_with_standard_points(times, 0.0, duration),
        )

    group_duration = options.duration_ms or max(t.end_ms for t in timings.values())
    return timings, group_duration


def simultaneous_start(
    animations: Sequence[SyncedAnimation], options: SyncGroupOptions
) -> StrategyResult:
    """Everyone starts at 0 with their own duration."""
    timings = {a.id: _timing(a, options, 0.0, a.duration_ms) for a in animations}
    group_duration = options.duration_ms or max(a.duration_ms for a in animations)
    return timings, group_duration


def simultaneous_end(
    animations: Sequence[SyncedAnimation], options: SyncGroupOptions
) -> StrategyResult:
    """Everyone ends at the group duration.

    Adaptable members start at 0 and stretch; the others start late. A fixed
    member longer than an explicit group duration cannot end on time: it
    starts at 0 and a warning is logged.
    """
    group_duration = options.duration_ms or max(a.duration_ms for a in animations)
    timings: dict[str, ItemTiming] = {}
    for animation in animations:
        if _adapts(animation, options):
            timings[animation.id] = _timing(animation, options, 0.0, group_duration)
        else:
            if animation.duration_ms > group_duration:
                logger.warning(
                    f"Fixed member '{animation.id}' ({animation.duration_ms}ms) outlasts the "
                    f"group ({group_duration}ms); it starts at 0 and ends late"
                )
            start = max(0.0, group_duration - animation.duration_ms)
            timings[animation.id] = _timing(animation, options, start, animation.duration_ms)
    return timings, group_duration


def cascade(animations: Sequence[SyncedAnimation], options: SyncGroupOptions) -> StrategyResult:
    """Members sorted by ``order`` start ``cascade_offset_ms`` apart."""
    ordered = sorted(animations, key=lambda a: a.order)
    timings: dict[str, ItemTiming] = {}
    for index, animation in enumerate(ordered):
        start = index * options.cascade_offset_ms
        timings[animation.id] = _timing(animation, options, start, animation.duration_ms)
    group_duration = options.duration_ms or max(t.end_ms for t in timings.values())
    return timings, group_duration


def custom(animations: Sequence[SyncedAnimation], options: SyncGroupOptions) -> StrategyResult:
    """Delegate to ``options.custom_timing``; common duration when absent."""
    calculator = options.custom_timing
    if calculator is None:
        logger.warning(f"Group '{options.id}' uses CUSTOM without a timing function")
        return common_duration(animations, options)

    members = list(animations)
    timings: dict[str, ItemTiming] = {}
    for animation in members:
        result = calculator(animation, members, options)
        if isinstance(result, dict):
            result = ItemTiming.model_validate(result)
        if not result.sync_points:
            result = _timing(animation, options, result.start_ms, result.duration_ms)
        timings[animation.id] = result
    group_duration = options.duration_ms or max(t.end_ms for t in timings.values())
    return timings, group_duration


STRATEGIES: dict[SynchronizationStrategy, Strategy] = {
    SynchronizationStrategy.COMMON_DURATION: common_duration,
    SynchronizationStrategy.ALIGN_SYNC_POINTS: align_sync_points,
    SynchronizationStrategy.SIMULTANEOUS_START: simultaneous_start,
    SynchronizationStrategy.SIMULTANEOUS_END: simultaneous_end,
    SynchronizationStrategy.CASCADE: cascade,
    SynchronizationStrategy.CUSTOM: custom,
}


def compute_timings(
    animations: Sequence[SyncedAnimation], options: SyncGroupOptions
) -> StrategyResult:
    """Run the group's strategy.

    Returns:
        (timings per member id, group duration)
    """
    return STRATEGIES[options.strategy](animations, options)
