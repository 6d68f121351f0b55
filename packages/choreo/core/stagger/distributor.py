"""Stagger distribution.

Computes play order and per-target delays for N targets:

1. Drop excluded targets; explicitly ordered targets come first.
2. Order by grouping strategy (category/rows/columns/distance) or, when no
   grouping is set, by distribution pattern.
3. Optionally sort by direction over spatial positions (inside each group
   when grouping is active).
4. Base delay ``curve(i / (n - 1)) * delay * (n - 1)`` keeps the total span of
   a linear stagger while reshaping the spacing; per-target delay overrides
   add on top.
5. An optional cap rescales all delays proportionally so the last target
   ends exactly at the cap.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Callable, Sequence

from choreo.core.stagger.models import (
    DistributionEasing,
    DistributionPattern,
    GroupingStrategy,
    Position,
    StaggerDirection,
    StaggerOptions,
    StaggerPlan,
    StaggerSlot,
    StaggerTarget,
)

logger = logging.getLogger(__name__)

_UNDECLARED_CATEGORY_ORDER = 999
_UNCATEGORIZED_ORDER = 1000

_CURVES: dict[DistributionEasing, Callable[[float], float]] = {
    DistributionEasing.LINEAR: lambda t: t,
    DistributionEasing.EASE_IN: lambda t: t * t,
    DistributionEasing.EASE_OUT: lambda t: t * (2 - t),
    DistributionEasing.EASE_IN_OUT: lambda t: 2 * t * t if t < 0.5 else -1 + (4 - 2 * t) * t,
    DistributionEasing.CUBIC_IN: lambda t: t**3,
    DistributionEasing.CUBIC_OUT: lambda t: (t - 1) ** 3 + 1,
    DistributionEasing.CUBIC_IN_OUT: lambda t: (
        4 * t**3 if t < 0.5 else (t - 1) * (2 * t - 2) * (2 * t - 2) + 1
    ),
    DistributionEasing.EXPONENTIAL: lambda t: 0.0 if t == 0 else math.pow(2, 10 * (t - 1)),
}


def distribution_curve(
    easing: DistributionEasing, custom: Callable[[float], float] | None = None
) -> Callable[[float], float]:
    """Get the delay distribution curve.

    CUSTOM without a function falls back to linear.
    """
    if easing is DistributionEasing.CUSTOM:
        if custom is not None:
            return custom
        logger.warning("CUSTOM distribution easing without a function; using linear")
        return _CURVES[DistributionEasing.LINEAR]
    return _CURVES[easing]


def _primes_below(n: int) -> set[int]:
    if n < 3:
        return set()
    sieve = [True] * n
    sieve[0] = sieve[1] = False
    for i in range(2, int(n**0.5) + 1):
        if sieve[i]:
            for j in range(i * i, n, i):
                sieve[j] = False
    return {i for i, is_prime in enumerate(sieve) if is_prime}


def apply_pattern(
    targets: Sequence[StaggerTarget], pattern: DistributionPattern, seed: int | None = None
) -> list[StaggerTarget]:
    """Reorder targets by distribution pattern.

    Example:
        >>> refs = [StaggerTarget(ref=str(i)) for i in range(5)]
        >>> [t.ref for t in apply_pattern(refs, DistributionPattern.FROM_CENTER)]
        ['2', '1', '3', '0', '4']
    """
    items = list(targets)
    n = len(items)

    if pattern is DistributionPattern.LINEAR:
        return items
    if pattern is DistributionPattern.REVERSED:
        return items[::-1]
    if pattern is DistributionPattern.FROM_CENTER:
        middle = n // 2
        result = []
        for i in range(n):
            index = middle + i // 2 if i % 2 == 0 else middle - math.ceil(i / 2)
            if 0 <= index < n:
                result.append(items[index])
        return result
    if pattern is DistributionPattern.FROM_EDGES:
        result = []
        for i in range(math.ceil(n / 2)):
            result.append(items[i])
            if n - 1 - i > i:
                result.append(items[n - 1 - i])
        return result
    if pattern is DistributionPattern.RANDOM:
        random.Random(seed).shuffle(items)
        return items
    if pattern is DistributionPattern.EVEN_ODD:
        return items[0::2] + items[1::2]
    if pattern is DistributionPattern.ODD_EVEN:
        return items[1::2] + items[0::2]
    if pattern is DistributionPattern.PRIME:
        primes = _primes_below(n)
        return [t for i, t in enumerate(items) if i in primes] + [
            t for i, t in enumerate(items) if i not in primes
        ]
    raise ValueError(f"Unknown distribution pattern: {pattern}")


def _distance(position: Position, origin: Position) -> float:
    return math.sqrt(
        (position.x - origin.x) ** 2 + (position.y - origin.y) ** 2 + (position.z - origin.z) ** 2
    )


def apply_direction(
    targets: Sequence[StaggerTarget], direction: StaggerDirection, origin: Position
) -> list[StaggerTarget]:
    """Stable sort of positioned targets; unpositioned targets go last."""
    positioned = [t for t in targets if t.position is not None]
    unpositioned = [t for t in targets if t.position is None]

    def angle(t: StaggerTarget) -> float:
        return math.atan2(t.position.y - origin.y, t.position.x - origin.x)

    keys: dict[StaggerDirection, tuple[Callable[[StaggerTarget], float], bool]] = {
        StaggerDirection.TOP_DOWN: (lambda t: t.position.y, False),
        StaggerDirection.BOTTOM_UP: (lambda t: t.position.y, True),
        StaggerDirection.LEFT_RIGHT: (lambda t: t.position.x, False),
        StaggerDirection.RIGHT_LEFT: (lambda t: t.position.x, True),
        StaggerDirection.CLOCKWISE: (angle, False),
        StaggerDirection.COUNTER_CLOCKWISE: (angle, True),
        StaggerDirection.INWARD: (lambda t: _distance(t.position, origin), True),
        StaggerDirection.OUTWARD: (lambda t: _distance(t.position, origin), False),
    }
    key, reverse = keys[direction]
    return sorted(positioned, key=key, reverse=reverse) + unpositioned


def apply_grouping(
    targets: Sequence[StaggerTarget], options: StaggerOptions
) -> list[list[StaggerTarget]]:
    """Partition targets into ordered groups.

    Returns:
        Groups in play order; members keep their incoming order
    """
    grouping = options.grouping
    if grouping is GroupingStrategy.NONE:
        return [list(targets)]

    buckets: dict[float, list[StaggerTarget]] = {}

    def add(key: float, target: StaggerTarget) -> None:
        buckets.setdefault(key, []).append(target)

    if grouping is GroupingStrategy.CATEGORY:
        declared = {c.id: c.order for c in options.categories}
        for target in targets:
            if target.category is None:
                add(_UNCATEGORIZED_ORDER, target)
            else:
                add(declared.get(target.category, _UNDECLARED_CATEGORY_ORDER), target)
    elif grouping is GroupingStrategy.ROWS:
        for target in targets:
            row = target.position.row if target.position else None
            add(-1 if row is None else row, target)
    elif grouping is GroupingStrategy.COLUMNS:
        for target in targets:
            col = target.position.col if target.position else None
            add(-1 if col is None else col, target)
    elif grouping is GroupingStrategy.DISTANCE:
        band = options.distance_band
        for target in targets:
            if target.position is None:
                add(-1, target)
            else:
                add(math.floor(_distance(target.position, options.reference_point) / band), target)

    return [buckets[key] for key in sorted(buckets)]


def order_targets(
    targets: Sequence[StaggerTarget], options: StaggerOptions
) -> list[StaggerTarget]:
    """Compute the play order for a target list."""
    included = [t for t in targets if t.include]
    # Explicit order first; stable for the rest
    included.sort(key=lambda t: (0, t.order) if t.order is not None else (1, 0))

    if options.grouping is not GroupingStrategy.NONE:
        groups = apply_grouping(included, options)
        if options.direction is not None:
            groups = [
                apply_direction(group, options.direction, options.reference_point)
                for group in groups
            ]
        return [target for group in groups for target in group]

    ordered = apply_pattern(included, options.pattern, options.seed)
    if options.direction is not None:
        ordered = apply_direction(ordered, options.direction, options.reference_point)
    return ordered


def distribute(
    targets: Sequence[StaggerTarget], options: StaggerOptions | None = None
) -> StaggerPlan:
    """Distribute delays over a target list.

    Args:
        targets: Targets in declaration order
        options: Distribution settings

    Returns:
        StaggerPlan with slots in play order

    Example:
        >>> plan = distribute(
        ...     [StaggerTarget(ref=r) for r in "abcd"],
        ...     StaggerOptions(delay_ms=100, duration_ms=200),
        ... )
        >>> [s.delay_ms for s in plan.slots]
        [0.0, 100.0, 200.0, 300.0]
        >>> plan.total_duration_ms
        500.0
    """
    options = options or StaggerOptions()
    ordered = order_targets(targets, options)
    n = len(ordered)
    if n == 0:
        return StaggerPlan(slots=[], total_duration_ms=0.0)

    curve = distribution_curve(options.easing, options.custom_easing)
    span = options.delay_ms * (n - 1)

    delays: list[float] = []
    durations: list[float] = []
    for index, target in enumerate(ordered):
        if options.custom_delay is not None:
            base = float(options.custom_delay(target, index, n))
        elif options.easing is DistributionEasing.LINEAR:
            base = index * options.delay_ms
        else:
            progress = index / (n - 1) if n > 1 else 0.0
            base = curve(progress) * span
        delays.append(options.start_delay_ms + base + (target.delay_ms or 0.0))
        durations.append(
            target.duration_ms if target.duration_ms is not None else options.duration_ms
        )

    if options.max_total_duration_ms is not None:
        delays = _rescale_to_cap(delays, durations[-1], options.max_total_duration_ms)

    slots = [
        StaggerSlot(ref=t.ref, index=i, delay_ms=d, duration_ms=dur)
        for i, (t, d, dur) in enumerate(zip(ordered, delays, durations, strict=True))
    ]
    total = max(slot.end_ms for slot in slots)

    plan = StaggerPlan(slots=slots, total_duration_ms=total)
    logger.debug(f"Stagger plan: {plan.summary()}")
    return plan


def _rescale_to_cap(delays: list[float], last_duration: float, cap: float) -> list[float]:
    target_last = max(0.0, cap - last_duration)
    last = delays[-1]
    if last > 0:
        factor = target_last / last
        return [d * factor for d in delays]
    # All-zero delays cannot be scaled; shift instead
    return [d + target_last - last for d in delays]
