"""Tests for snapshot and keyframe tweens."""

from __future__ import annotations

import pytest

from choreo.core.interpolation import KeyframeInterpolator, PropertyConfig, StateInterpolator


def test_state_interpolator_linear() -> None:
    tween = StateInterpolator({"opacity": 0, "left": "0px"}, {"opacity": 1, "left": "40px"}, 300)

    assert tween.at(0.25) == {"opacity": 0.25, "left": "10px"}
    assert tween.at(1.0) == {"opacity": 1.0, "left": "40px"}


def test_state_interpolator_clamps_progress() -> None:
    tween = StateInterpolator({"x": 0}, {"x": 10}, 100)
    assert tween.at(1.5) == {"x": 10.0}
    assert tween.at(-1.0) == {"x": 0.0}


def test_state_interpolator_uses_overall_easing() -> None:
    tween = StateInterpolator({"x": 0}, {"x": 10}, 100, easing="steps(2)")
    assert tween.at(0.4) == {"x": 0.0}


def test_state_interpolator_explicit_rules() -> None:
    tween = StateInterpolator(
        {"x": 0}, {"x": 100}, 100, properties={"x": PropertyConfig(clamp=(0.0, 50.0))}
    )
    assert tween.at(0.9) == {"x": 50.0}


class TestKeyframeInterpolator:
    def test_segments(self) -> None:
        frames = KeyframeInterpolator(
            [(0.0, {"x": 0}), (0.5, {"x": 100}), (1.0, {"x": 0})], duration_ms=1000
        )

        assert frames.at(0.25) == {"x": pytest.approx(50.0)}
        assert frames.at(0.5) == {"x": pytest.approx(100.0)}
        assert frames.at(0.75) == {"x": pytest.approx(50.0)}
        assert frames.at(1.0) == {"x": pytest.approx(0.0)}

    def test_requires_two_keyframes(self) -> None:
        with pytest.raises(ValueError):
            KeyframeInterpolator([(0.0, {"x": 0})], duration_ms=100)
