"""Tests for easing resolution."""

from __future__ import annotations

import pytest

from choreo.core.interpolation import (
    DEFAULT_EASING,
    StepPosition,
    available_easings,
    cubic_bezier,
    elastic,
    linear,
    resolve_easing,
    steps,
)
from choreo.core.interpolation.easing import normalize_easing_name


class TestResolveEasing:
    """Descriptor forms accepted by resolve_easing."""

    def test_none_uses_default(self) -> None:
        assert resolve_easing(None) is DEFAULT_EASING
        assert resolve_easing(None, default=linear) is linear

    def test_callable_passthrough(self) -> None:
        def fn(t: float) -> float:
            return t * t

        assert resolve_easing(fn) is fn

    @pytest.mark.parametrize(
        "name", ["linear", "ease", "ease-in-out", "easeOut", "bounceOut", "easeInQuad", "step-end"]
    )
    def test_named_easings_hit_endpoints(self, name: str) -> None:
        fn = resolve_easing(name)
        assert fn(0.0) == pytest.approx(0.0, abs=1e-6)
        assert fn(1.0) == pytest.approx(1.0, abs=1e-6)

    def test_cubic_bezier_string(self) -> None:
        fn = resolve_easing("cubic-bezier(0, 0, 1, 1)")
        assert fn(0.5) == pytest.approx(0.5, abs=0.01)

    def test_steps_string(self) -> None:
        fn = resolve_easing("steps(4, start)")
        assert fn(0.1) == pytest.approx(0.25)

    def test_dict_descriptor(self) -> None:
        fn = resolve_easing({"kind": "steps", "steps": 2})
        assert fn(0.6) == pytest.approx(0.5)

    def test_composite_descriptor(self) -> None:
        fn = resolve_easing(
            {
                "kind": "composite",
                "components": [
                    {"easing": "linear", "weight": 1},
                    {"easing": "step-end", "weight": 1},
                ],
            }
        )
        assert fn(0.5) == pytest.approx(0.25)

    @pytest.mark.parametrize("bad", ["no-such-curve", "cubic-bezier(2, 0, 1, 1)", {"kind": "nope"}])
    def test_malformed_degrades_to_linear(self, bad: object) -> None:
        assert resolve_easing(bad)(0.3) == pytest.approx(0.3)


class TestBuilders:
    """Easing constructors."""

    def test_cubic_bezier_rejects_bad_x(self) -> None:
        with pytest.raises(ValueError):
            cubic_bezier(-0.1, 0, 1, 1)

    def test_ease_in_is_slow_at_start(self) -> None:
        fn = resolve_easing("ease-in")
        assert fn(0.25) < 0.25

    @pytest.mark.parametrize(
        ("position", "t", "expected"),
        [
            (StepPosition.END, 0.3, 0.25),
            (StepPosition.START, 0.3, 0.5),
            (StepPosition.BOTH, 0.3, 0.375),
            (StepPosition.END, 1.0, 1.0),
        ],
    )
    def test_steps_positions(self, position: StepPosition, t: float, expected: float) -> None:
        assert steps(4, position)(t) == pytest.approx(expected)

    def test_steps_requires_positive_count(self) -> None:
        with pytest.raises(ValueError):
            steps(0)

    def test_elastic_overshoots(self) -> None:
        fn = elastic(amplitude=1.0, period=0.3)
        samples = [fn(i / 100) for i in range(101)]
        assert max(samples) > 1.0
        assert samples[-1] == 1.0


def test_normalize_easing_name() -> None:
    assert normalize_easing_name("easeInOut") == "ease-in-out"
    assert normalize_easing_name("Quad_Ease_In") == "quad-ease-in"


def test_available_easings_resolve() -> None:
    names = available_easings()
    assert "linear" in names
    for name in names:
        assert resolve_easing(name)(1.0) == pytest.approx(1.0, abs=1e-6)
