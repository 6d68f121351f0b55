"""Tests for stagger delay distribution."""

from __future__ import annotations

import pytest

from choreo.core.stagger import (
    Category,
    DistributionEasing,
    DistributionPattern,
    GroupingStrategy,
    Position,
    StaggerDirection,
    StaggerOptions,
    StaggerTarget,
    distribute,
)


def _targets(*refs: str) -> list[StaggerTarget]:
    return [StaggerTarget(ref=ref) for ref in refs]


class TestLinearDistribution:
    """Default linear delays."""

    def test_delays_are_index_multiples(self) -> None:
        plan = distribute(_targets("a", "b", "c", "d"), StaggerOptions(delay_ms=100, duration_ms=200))

        assert [slot.delay_ms for slot in plan.slots] == [0.0, 100.0, 200.0, 300.0]
        assert plan.total_duration_ms == 500.0
        assert plan.order == ["a", "b", "c", "d"]

    def test_start_delay_offsets_everything(self) -> None:
        plan = distribute(_targets("a", "b"), StaggerOptions(delay_ms=50, start_delay_ms=20))
        assert plan.delays == {"a": 20.0, "b": 70.0}

    def test_empty_input(self) -> None:
        plan = distribute([], StaggerOptions())
        assert plan.slots == []
        assert plan.total_duration_ms == 0.0

    def test_per_target_overrides(self) -> None:
        targets = [StaggerTarget(ref="a", duration_ms=1000), StaggerTarget(ref="b", delay_ms=5)]
        plan = distribute(targets, StaggerOptions(delay_ms=10, duration_ms=100))

        assert plan.slot("a").duration_ms == 1000
        assert plan.slot("b").delay_ms == 15.0
        assert plan.total_duration_ms == 1000.0

    def test_excluded_targets_dropped(self) -> None:
        targets = [StaggerTarget(ref="a"), StaggerTarget(ref="b", include=False)]
        assert distribute(targets).order == ["a"]

    def test_explicit_order_first(self) -> None:
        targets = [StaggerTarget(ref="a"), StaggerTarget(ref="b", order=0)]
        assert distribute(targets).order == ["b", "a"]


class TestCap:
    """Maximum total duration."""

    def test_delays_rescaled_to_fit(self) -> None:
        plan = distribute(
            _targets("a", "b", "c"),
            StaggerOptions(delay_ms=500, duration_ms=100, max_total_duration_ms=300),
        )

        assert [slot.delay_ms for slot in plan.slots] == pytest.approx([0.0, 100.0, 200.0])
        assert plan.total_duration_ms == pytest.approx(300.0)

    def test_cap_with_zero_delays_shifts(self) -> None:
        plan = distribute(
            _targets("a", "b"),
            StaggerOptions(delay_ms=0, duration_ms=100, max_total_duration_ms=300),
        )
        assert plan.total_duration_ms == pytest.approx(300.0)


class TestPatterns:
    @pytest.mark.parametrize(
        ("pattern", "expected"),
        [
            (DistributionPattern.REVERSED, ["4", "3", "2", "1", "0"]),
            (DistributionPattern.FROM_CENTER, ["2", "1", "3", "0", "4"]),
            (DistributionPattern.FROM_EDGES, ["0", "4", "1", "3", "2"]),
            (DistributionPattern.EVEN_ODD, ["0", "2", "4", "1", "3"]),
            (DistributionPattern.ODD_EVEN, ["1", "3", "0", "2", "4"]),
            (DistributionPattern.PRIME, ["2", "3", "0", "1", "4"]),
        ],
    )
    def test_pattern_order(self, pattern: DistributionPattern, expected: list[str]) -> None:
        plan = distribute(_targets(*"01234"), StaggerOptions(pattern=pattern))
        assert plan.order == expected

    def test_random_is_seedable(self) -> None:
        options = StaggerOptions(pattern=DistributionPattern.RANDOM, seed=7)
        first = distribute(_targets(*"abcdefgh"), options).order
        second = distribute(_targets(*"abcdefgh"), options).order

        assert first == second
        assert sorted(first) == list("abcdefgh")


class TestDistributionEasing:
    def test_ease_in_bunches_early_delays(self) -> None:
        plan = distribute(
            _targets("a", "b", "c"),
            StaggerOptions(delay_ms=100, easing=DistributionEasing.EASE_IN),
        )
        delays = [slot.delay_ms for slot in plan.slots]

        assert delays[0] == pytest.approx(0.0)
        assert delays[1] < 100.0
        assert delays[2] == pytest.approx(200.0)

    def test_custom_delay_function(self) -> None:
        options = StaggerOptions(custom_delay=lambda target, index, total: (total - index) * 10)
        assert distribute(_targets("a", "b"), options).delays == {"a": 20.0, "b": 10.0}


class TestSpatialOrdering:
    def test_direction_left_right(self) -> None:
        targets = [
            StaggerTarget(ref="right", position=Position(x=10)),
            StaggerTarget(ref="left", position=Position(x=0)),
            StaggerTarget(ref="nowhere"),
        ]
        options = StaggerOptions(direction=StaggerDirection.LEFT_RIGHT)

        assert distribute(targets, options).order == ["left", "right", "nowhere"]

    def test_outward_from_reference(self) -> None:
        targets = [
            StaggerTarget(ref="far", position=Position(x=50)),
            StaggerTarget(ref="near", position=Position(x=1)),
        ]
        options = StaggerOptions(direction=StaggerDirection.OUTWARD)

        assert distribute(targets, options).order == ["near", "far"]

    def test_category_grouping(self) -> None:
        targets = [
            StaggerTarget(ref="body", category="content"),
            StaggerTarget(ref="free"),
            StaggerTarget(ref="title", category="header"),
        ]
        options = StaggerOptions(
            grouping=GroupingStrategy.CATEGORY,
            categories=[Category(id="header", order=0), Category(id="content", order=1)],
        )

        assert distribute(targets, options).order == ["title", "body", "free"]

    def test_distance_bands(self) -> None:
        targets = [
            StaggerTarget(ref="b", position=Position(x=150)),
            StaggerTarget(ref="a", position=Position(x=20)),
            StaggerTarget(ref="c", position=Position(x=90)),
        ]
        options = StaggerOptions(grouping=GroupingStrategy.DISTANCE, distance_band=100)

        assert distribute(targets, options).order == ["a", "c", "b"]

    def test_row_grouping(self) -> None:
        targets = [
            StaggerTarget(ref="r1", position=Position(row=1)),
            StaggerTarget(ref="r0", position=Position(row=0)),
        ]
        options = StaggerOptions(grouping=GroupingStrategy.ROWS)

        assert distribute(targets, options).order == ["r0", "r1"]
