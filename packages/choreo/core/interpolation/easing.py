"""Easing resolution.

Turns easing descriptors (names, CSS strings, descriptor models, dicts or
callables) into plain ``float -> float`` functions. Named curves are backed by
easing-functions; cubic-bezier curves are evaluated with bezier.

Resolution never fails: malformed descriptors degrade to linear easing and
are logged.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable
from typing import Any

import bezier
import numpy as np
from easing_functions import (
    BackEaseIn,
    BackEaseInOut,
    BackEaseOut,
    BounceEaseIn,
    BounceEaseInOut,
    BounceEaseOut,
    CircularEaseIn,
    CircularEaseInOut,
    CircularEaseOut,
    CubicEaseIn,
    CubicEaseInOut,
    CubicEaseOut,
    ElasticEaseIn,
    ElasticEaseInOut,
    ElasticEaseOut,
    ExponentialEaseIn,
    ExponentialEaseInOut,
    ExponentialEaseOut,
    QuadEaseIn,
    QuadEaseInOut,
    QuadEaseOut,
    QuarticEaseIn,
    QuarticEaseInOut,
    QuarticEaseOut,
    QuinticEaseIn,
    QuinticEaseInOut,
    QuinticEaseOut,
    SineEaseIn,
    SineEaseInOut,
    SineEaseOut,
)
from pydantic import TypeAdapter, ValidationError

from choreo.core.interpolation.models import (
    CompositeEasing,
    CubicBezierEasing,
    EasingSpec,
    ElasticEasing,
    NamedEasing,
    StepPosition,
    StepsEasing,
)

logger = logging.getLogger(__name__)

EasingFn = Callable[[float], float]

_BEZIER_SAMPLES = 256

_EASING_DEFAULTS: dict[str, float] = {
    "start": 0.0,
    "end": 1.0,
    "duration": 1.0,
}

_EASING_CLASSES: dict[str, type[Any]] = {
    "quad-in": QuadEaseIn,
    "quad-out": QuadEaseOut,
    "quad-in-out": QuadEaseInOut,
    "cubic-in": CubicEaseIn,
    "cubic-out": CubicEaseOut,
    "cubic-in-out": CubicEaseInOut,
    "quart-in": QuarticEaseIn,
    "quart-out": QuarticEaseOut,
    "quart-in-out": QuarticEaseInOut,
    "quint-in": QuinticEaseIn,
    "quint-out": QuinticEaseOut,
    "quint-in-out": QuinticEaseInOut,
    "sine-in": SineEaseIn,
    "sine-out": SineEaseOut,
    "sine-in-out": SineEaseInOut,
    "circ-in": CircularEaseIn,
    "circ-out": CircularEaseOut,
    "circ-in-out": CircularEaseInOut,
    "expo-in": ExponentialEaseIn,
    "expo-out": ExponentialEaseOut,
    "expo-in-out": ExponentialEaseInOut,
    "elastic-in": ElasticEaseIn,
    "elastic-out": ElasticEaseOut,
    "elastic-in-out": ElasticEaseInOut,
    "back-in": BackEaseIn,
    "back-out": BackEaseOut,
    "back-in-out": BackEaseInOut,
    "bounce-in": BounceEaseIn,
    "bounce-out": BounceEaseOut,
    "bounce-in-out": BounceEaseInOut,
}

# CSS keyword curves
_CSS_BEZIERS: dict[str, tuple[float, float, float, float]] = {
    "ease": (0.25, 0.1, 0.25, 1.0),
    "ease-in": (0.42, 0.0, 1.0, 1.0),
    "ease-out": (0.0, 0.0, 0.58, 1.0),
    "ease-in-out": (0.42, 0.0, 0.58, 1.0),
}

_ALIASES: dict[str, str] = {
    "exponential-in": "expo-in",
    "exponential-out": "expo-out",
    "exponential-in-out": "expo-in-out",
    "quadratic-in": "quad-in",
    "quadratic-out": "quad-out",
    "quadratic-in-out": "quad-in-out",
    "circular-in": "circ-in",
    "circular-out": "circ-out",
    "circular-in-out": "circ-in-out",
}

_CUBIC_BEZIER_RE = re.compile(r"^cubic-bezier\(([^)]*)\)$")
_STEPS_RE = re.compile(r"^steps\(\s*(\d+)\s*(?:,\s*([a-z-]+)\s*)?\)$")
_CAMEL_RE = re.compile(r"(?<=[a-z0-9])([A-Z])")
_EASE_PREFIX_RE = re.compile(r"^ease-(in-out|in|out)-([a-z]+)$")

_SPEC_ADAPTER: TypeAdapter[Any] = TypeAdapter(EasingSpec)


def linear(t: float) -> float:
    """Identity easing."""
    return t


def normalize_easing_name(name: str) -> str:
    """Normalize an easing name to lower kebab case.

    Example:
        >>> normalize_easing_name("easeInOut")
        'ease-in-out'
        >>> normalize_easing_name("Quad_Ease_In")
        'quad-ease-in'
    """
    name = _CAMEL_RE.sub(r"-\1", name.strip())
    return name.replace("_", "-").replace(" ", "-").lower()


def _make_easing(easing_cls: type[Any]) -> EasingFn:
    obj = easing_cls(**_EASING_DEFAULTS)
    return lambda t: float(obj.ease(t))


def cubic_bezier(x1: float, y1: float, x2: float, y2: float) -> EasingFn:
    """Build a CSS cubic-bezier easing.

    The curve is sampled once; evaluation interpolates the x -> y mapping.

    Args:
        x1: First control point x (must be in [0, 1])
        y1: First control point y
        x2: Second control point x (must be in [0, 1])
        y2: Second control point y

    Returns:
        Easing function

    Raises:
        ValueError: If an x coordinate lies outside [0, 1]
    """
    if not (0.0 <= x1 <= 1.0 and 0.0 <= x2 <= 1.0):
        raise ValueError(f"cubic-bezier x values must be in [0, 1], got {x1}, {x2}")

    nodes = np.asfortranarray(
        [
            [0.0, x1, x2, 1.0],
            [0.0, y1, y2, 1.0],
        ]
    )
    curve = bezier.Curve(nodes, degree=3)
    evaluated = curve.evaluate_multi(np.linspace(0.0, 1.0, _BEZIER_SAMPLES))
    xs = np.ascontiguousarray(evaluated[0, :])
    ys = np.ascontiguousarray(evaluated[1, :])

    def ease(t: float) -> float:
        if t <= 0.0:
            return 0.0
        if t >= 1.0:
            return 1.0
        return float(np.interp(t, xs, ys))

    return ease


def steps(count: int, position: StepPosition = StepPosition.END) -> EasingFn:
    """Build a staircase easing with ``count`` steps.

    Args:
        count: Number of steps (>= 1)
        position: Where each jump happens

    Returns:
        Easing function
    """
    if count < 1:
        raise ValueError(f"steps count must be >= 1, got {count}")

    def ease(t: float) -> float:
        if t <= 0.0:
            return 0.0 if position is not StepPosition.START else 1.0 / count
        if t >= 1.0:
            return 1.0
        step = math.floor(t * count)
        if position is StepPosition.START:
            return min(1.0, (step + 1) / count)
        if position is StepPosition.BOTH:
            return (step + 0.5) / count
        return step / count

    return ease


def elastic(amplitude: float = 1.0, period: float = 0.3) -> EasingFn:
    """Build an elastic ease-out.

    Args:
        amplitude: Overshoot amplitude (values below 1 are raised to 1)
        period: Oscillation period as a fraction of the tween

    Returns:
        Easing function
    """
    a = max(1.0, amplitude)
    s = period / (2 * math.pi) * math.asin(1 / a)

    def ease(t: float) -> float:
        if t <= 0.0:
            return 0.0
        if t >= 1.0:
            return 1.0
        return a * math.pow(2, -10 * t) * math.sin((t - s) * (2 * math.pi) / period) + 1

    return ease


def composite(components: list[tuple[EasingFn, float]]) -> EasingFn:
    """Weighted average of easing functions.

    Zero total weight degrades to linear.
    """
    total = sum(weight for _, weight in components)
    if total <= 0:
        logger.warning("Composite easing has zero total weight; using linear")
        return linear

    normalized = [(fn, weight / total) for fn, weight in components]
    return lambda t: sum(fn(t) * weight for fn, weight in normalized)


DEFAULT_EASING: EasingFn = cubic_bezier(*_CSS_BEZIERS["ease-in-out"])


def _named(name: str) -> EasingFn:
    key = normalize_easing_name(name)
    key = key.replace("-ease-", "-")
    prefixed = _EASE_PREFIX_RE.match(key)
    if prefixed and prefixed.group(2) not in ("in", "out"):
        key = f"{prefixed.group(2)}-{prefixed.group(1)}"
    key = _ALIASES.get(key, key)

    if key == "linear":
        return linear
    if key in _CSS_BEZIERS:
        return cubic_bezier(*_CSS_BEZIERS[key])
    if key in ("step-start", "step-end"):
        return steps(1, StepPosition.START if key == "step-start" else StepPosition.END)
    if key in _EASING_CLASSES:
        return _make_easing(_EASING_CLASSES[key])

    raise ValueError(f"Unknown easing name: {name!r}")


def _parse_css(text: str) -> EasingFn:
    compact = text.strip()

    bezier_match = _CUBIC_BEZIER_RE.match(compact)
    if bezier_match:
        parts = [float(p) for p in bezier_match.group(1).split(",")]
        if len(parts) != 4:
            raise ValueError(f"cubic-bezier needs 4 values, got {len(parts)}")
        return cubic_bezier(*parts)

    steps_match = _STEPS_RE.match(compact)
    if steps_match:
        raw_position = (steps_match.group(2) or "end").removeprefix("jump-")
        return steps(int(steps_match.group(1)), StepPosition(raw_position))

    return _named(compact)


def build_easing(spec: Any) -> EasingFn:
    """Build an easing from a validated descriptor model.

    Raises:
        ValueError: If the descriptor cannot be built
    """
    if isinstance(spec, NamedEasing):
        return _named(spec.name)
    if isinstance(spec, CubicBezierEasing):
        return cubic_bezier(spec.x1, spec.y1, spec.x2, spec.y2)
    if isinstance(spec, StepsEasing):
        return steps(spec.steps, spec.position)
    if isinstance(spec, ElasticEasing):
        return elastic(spec.amplitude, spec.period)
    if isinstance(spec, CompositeEasing):
        return composite([(_parse_css(c.easing), c.weight) for c in spec.components])
    raise ValueError(f"Not an easing descriptor: {spec!r}")


def resolve_easing(easing: Any = None, default: EasingFn | None = None) -> EasingFn:
    """Resolve any easing descriptor to a function.

    Accepted forms:
    - None: ``default`` (standard cubic ease-in-out when not given)
    - callable: used as-is
    - str: name (``"ease-out"``, ``"bounceOut"``), ``cubic-bezier(a, b, c, d)``
      or ``steps(n, start|end|both)``
    - dict: validated as an easing descriptor (``{"kind": "steps", "steps": 4}``)
    - descriptor model

    Malformed input resolves to linear with a warning.

    Args:
        easing: Descriptor in any accepted form
        default: Easing for None

    Returns:
        Easing function

    Example:
        >>> fn = resolve_easing("cubic-bezier(0, 0, 1, 1)")
        >>> round(fn(0.5), 2)
        0.5
        >>> resolve_easing("no-such-curve")(0.3)
        0.3
    """
    if easing is None:
        return default if default is not None else DEFAULT_EASING

    if callable(easing) and not isinstance(easing, type):
        return easing

    try:
        if isinstance(easing, str):
            return _parse_css(easing)
        if isinstance(easing, dict):
            return build_easing(_SPEC_ADAPTER.validate_python(easing))
        return build_easing(easing)
    except (ValueError, ValidationError) as e:
        logger.warning(f"Malformed easing {easing!r}, falling back to linear: {e}")
        return linear


def available_easings() -> list[str]:
    """List every easing name accepted by resolve_easing."""
    return sorted(["linear", "step-start", "step-end", *_CSS_BEZIERS, *_EASING_CLASSES])
