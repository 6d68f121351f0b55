"""Tests for duration parsing helpers."""

from __future__ import annotations

import pytest

from choreo.core.utils.timing import DEFAULT_DURATION_MS, clamp, parse_duration


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (250, 250.0),
        (12.5, 12.5),
        ("120ms", 120.0),
        ("0.5s", 500.0),
        (" 2 s ", 2000.0),
        ("75", 75.0),
        (".25s", 250.0),
    ],
)
def test_parse_duration(value: object, expected: float) -> None:
    assert parse_duration(value) == expected


@pytest.mark.parametrize("value", [None, "soon", "5 minutes", True])
def test_parse_duration_falls_back_to_default(value: object) -> None:
    assert parse_duration(value) == DEFAULT_DURATION_MS
    assert parse_duration(value, default=0.0) == 0.0


def test_clamp() -> None:
    assert clamp(1.5) == 1.0
    assert clamp(-0.2) == 0.0
    assert clamp(0.3) == 0.3
    assert clamp(15, 0, 10) == 10
