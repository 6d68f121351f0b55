"""Type-dispatched value interpolation and blending.

The ``Interpolator`` looks up each property's type in an explicit table
(``InterpolationConfig``) and dispatches to the matching routine. Properties
missing from the table get rules inferred once from their first value; the
inferred rules are cached so the per-frame path never re-inspects types.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from numbers import Real
from typing import Any

from choreo.core.interpolation.codecs import (
    MatrixTransformCodec,
    PolylinePathCodec,
    RGBAColorCodec,
    ValueCodec,
)
from choreo.core.interpolation.easing import EasingFn, linear, resolve_easing
from choreo.core.interpolation.models import (
    BlendMode,
    InterpolationConfig,
    InterpolationType,
    PropertyConfig,
)
from choreo.core.utils.timing import clamp

logger = logging.getLogger(__name__)

SWITCH_POINT = 0.5

_CSS_VALUE_RE = re.compile(r"^\s*(-?\d*\.?\d+)([a-zA-Z%]*)\s*$")
_COLOR_RE = re.compile(r"^\s*(#[0-9a-fA-F]{3,8}|rgba?\(.*\))\s*$")
_TRANSFORM_RE = re.compile(
    r"^\s*(matrix|translate|translateX|translateY|scale|scaleX|scaleY|rotate)\("
)
_PATH_RE = re.compile(r"^\s*[Mm]\s*-?\d")

_DEFAULT_PROPERTY = PropertyConfig()


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _format_css_number(value: float) -> str:
    rounded = round(value, 4)
    if rounded == int(rounded):
        return str(int(rounded))
    return f"{rounded}"


def infer_property_config(value: Any) -> PropertyConfig:
    """Infer interpolation rules from a sample value.

    Used when building a property table from state snapshots or keyframes.

    Example:
        >>> infer_property_config("#ff0000").type
        <InterpolationType.COLOR: 'color'>
        >>> infer_property_config("12px").type
        <InterpolationType.CSS_VALUE: 'css-value'>
    """
    if _is_number(value):
        return PropertyConfig(type=InterpolationType.NUMBER)
    if isinstance(value, str):
        if _COLOR_RE.match(value):
            return PropertyConfig(type=InterpolationType.COLOR)
        if _TRANSFORM_RE.match(value):
            return PropertyConfig(type=InterpolationType.TRANSFORM)
        if _PATH_RE.match(value):
            return PropertyConfig(type=InterpolationType.PATH)
        if _CSS_VALUE_RE.match(value):
            return PropertyConfig(type=InterpolationType.CSS_VALUE)
        return PropertyConfig(type=InterpolationType.STRING)
    if isinstance(value, list | tuple):
        element = infer_property_config(value[0]) if value else None
        return PropertyConfig(type=InterpolationType.ARRAY, element=element)
    if isinstance(value, Mapping):
        fields = {str(k): infer_property_config(v) for k, v in value.items()}
        return PropertyConfig(type=InterpolationType.OBJECT, fields=fields)
    return PropertyConfig(type=InterpolationType.STRING)


def build_interpolation_config(
    from_values: Mapping[str, Any],
    to_values: Mapping[str, Any],
    overrides: Mapping[str, PropertyConfig] | None = None,
    blend_mode: BlendMode = BlendMode.OVERRIDE,
) -> InterpolationConfig:
    """Build a property table covering every key of two snapshots.

    Explicit overrides win; other keys are inferred from whichever snapshot
    defines them (``from`` first).
    """
    overrides = overrides or {}
    properties: dict[str, PropertyConfig] = {}
    for key in [*from_values, *(k for k in to_values if k not in from_values)]:
        if key in overrides:
            properties[key] = overrides[key]
        else:
            sample = from_values[key] if key in from_values else to_values[key]
            properties[key] = infer_property_config(sample)
    return InterpolationConfig(properties=properties, blend_mode=blend_mode)


def blend(
    a: Any,
    b: Any,
    progress: float,
    mode: BlendMode = BlendMode.OVERRIDE,
    custom: Callable[[Any, Any, float], Any] | None = None,
) -> Any:
    """Combine two already-interpolated values.

    OVERRIDE keeps ``a`` until progress reaches 1 for every value type. For
    the other modes, non-numeric values switch from ``a`` to ``b`` at
    progress 0.5 (custom blends excepted).

    Args:
        a: Base value
        b: Incoming value
        progress: Blend weight in [0, 1]
        mode: Blend mode
        custom: Function used by BlendMode.CUSTOM

    Returns:
        Blended value

    Example:
        >>> round(blend(10, 20, 0.5, BlendMode.MULTIPLY), 3)
        14.142
    """
    if mode is BlendMode.CUSTOM:
        if custom is not None:
            return custom(a, b, progress)
        logger.warning("CUSTOM blend without a function; averaging instead")
        mode = BlendMode.AVERAGE

    if mode is BlendMode.OVERRIDE:
        return b if progress >= 1.0 else a
    if not (_is_number(a) and _is_number(b)):
        return b if progress >= SWITCH_POINT else a

    if mode is BlendMode.ADD:
        return a + b * progress
    if mode is BlendMode.MULTIPLY:
        if a == 0 or (b / a) < 0:
            # Geometric blend undefined; fall back to linear
            return a + (b - a) * progress
        return a * (b / a) ** progress
    if mode is BlendMode.SCREEN:
        return a + (b - a * b) * progress
    if mode is BlendMode.AVERAGE:
        return a + (b - a) * progress
    if mode is BlendMode.MIN:
        return min(a, b)
    if mode is BlendMode.MAX:
        return max(a, b)
    raise ValueError(f"Unknown blend mode: {mode}")


class Interpolator:
    """Type-dispatched interpolation over property maps.

    Args:
        config: Property table and blend mode
        color_codec: Color decomposition collaborator
        transform_codec: Transform decomposition collaborator
        path_codec: Path decomposition collaborator
        snap_threshold: Snap distance as a fraction of the scalar range

    Example:
        >>> interp = Interpolator(
        ...     InterpolationConfig(properties={"x": PropertyConfig(clamp=(30.0, 70.0))})
        ... )
        >>> interp.interpolate(0, 100, 0.8, interp.config.get("x"))
        70.0
    """

    def __init__(
        self,
        config: InterpolationConfig | None = None,
        *,
        color_codec: ValueCodec | None = None,
        transform_codec: ValueCodec | None = None,
        path_codec: ValueCodec | None = None,
        snap_threshold: float = 0.05,
    ):
        self.config = config or InterpolationConfig()
        self.snap_threshold = snap_threshold
        self._codecs: dict[InterpolationType, ValueCodec] = {
            InterpolationType.COLOR: color_codec or RGBAColorCodec(),
            InterpolationType.TRANSFORM: transform_codec or MatrixTransformCodec(),
            InterpolationType.PATH: path_codec or PolylinePathCodec(),
        }
        self._inferred: dict[str, PropertyConfig] = {}
        self._easings: dict[str, EasingFn] = {
            name: resolve_easing(prop.easing, default=linear)
            for name, prop in self.config.properties.items()
        }
        self._dispatch: dict[InterpolationType, Callable[[Any, Any, float, PropertyConfig], Any]] = {
            InterpolationType.NUMBER: self._number,
            InterpolationType.COLOR: self._codec_lerp,
            InterpolationType.TRANSFORM: self._codec_lerp,
            InterpolationType.PATH: self._codec_lerp,
            InterpolationType.ARRAY: self._array,
            InterpolationType.OBJECT: self._object,
            InterpolationType.STRING: self._string,
            InterpolationType.CSS_VALUE: self._css_value,
        }

    def rules_for(self, name: str, sample: Any) -> PropertyConfig:
        """Get the rules for a property, inferring and caching if undeclared."""
        declared = self.config.get(name)
        if declared is not None:
            return declared
        inferred = self._inferred.get(name)
        if inferred is None:
            inferred = infer_property_config(sample)
            self._inferred[name] = inferred
            logger.debug(f"Inferred {inferred.type.value} interpolation for '{name}'")
        return inferred

    def interpolate(
        self, from_value: Any, to_value: Any, progress: float, prop: PropertyConfig | None = None
    ) -> Any:
        """Interpolate a single value.

        Args:
            from_value: Value at progress 0
            to_value: Value at progress 1
            progress: Progress in [0, 1] (already eased)
            prop: Rules (defaults to plain scalar)

        Returns:
            Interpolated value
        """
        prop = prop or _DEFAULT_PROPERTY
        if prop.interpolator is not None:
            return prop.interpolator(from_value, to_value, progress)
        try:
            return self._dispatch[prop.type](from_value, to_value, progress, prop)
        except (TypeError, ValueError) as e:
            logger.warning(
                f"Cannot interpolate {from_value!r} -> {to_value!r} as {prop.type.value}: {e}"
            )
            return self._string(from_value, to_value, progress, prop)

    def interpolate_properties(
        self,
        from_values: Mapping[str, Any],
        to_values: Mapping[str, Any],
        progress: float,
        duration_ms: float = 0.0,
    ) -> dict[str, Any]:
        """Interpolate every property of two snapshots.

        Per-property easing and delay from the table apply here: a property
        with ``delay_ms`` holds its start value until the delay has elapsed,
        then runs over the remaining duration.

        Args:
            from_values: Start snapshot
            to_values: End snapshot
            progress: Overall tween progress in [0, 1]
            duration_ms: Tween duration (needed for per-property delays)

        Returns:
            Interpolated snapshot covering keys of both inputs
        """
        result: dict[str, Any] = {}
        for key in [*from_values, *(k for k in to_values if k not in from_values)]:
            if key not in to_values:
                if progress < SWITCH_POINT:
                    result[key] = from_values[key]
                continue
            if key not in from_values:
                if progress >= SWITCH_POINT:
                    result[key] = to_values[key]
                continue

            prop = self.rules_for(key, from_values[key])
            local = self._local_progress(key, prop, progress, duration_ms)
            result[key] = self.interpolate(from_values[key], to_values[key], local, prop)
        return result

    def blend(self, a: Any, b: Any, progress: float) -> Any:
        """Blend two values with the configured global blend mode."""
        return blend(a, b, progress, self.config.blend_mode, self.config.custom_blend)

    # ========== TYPE ROUTINES ==========

    def _local_progress(
        self, key: str, prop: PropertyConfig, progress: float, duration_ms: float
    ) -> float:
        local = progress
        if prop.delay_ms > 0 and duration_ms > 0:
            if prop.delay_ms >= duration_ms:
                local = 1.0 if progress >= 1.0 else 0.0
            else:
                local = clamp((progress * duration_ms - prop.delay_ms) / (duration_ms - prop.delay_ms))
        easing = self._easings.get(key)
        return easing(local) if easing is not None else local

    def _number(self, a: Any, b: Any, progress: float, prop: PropertyConfig) -> float:
        a, b = float(a), float(b)
        value = a + (b - a) * progress

        if prop.clamp is not None:
            return clamp(value, prop.clamp[0], prop.clamp[1])

        if prop.snap and b != a:
            span = abs(b - a)
            nearest = min(prop.snap, key=lambda point: abs(value - point))
            if abs(value - nearest) / span < self.snap_threshold:
                return float(nearest)
        return value

    def _codec_lerp(self, a: Any, b: Any, progress: float, prop: PropertyConfig) -> Any:
        codec = self._codecs[prop.type]
        start = codec.decompose(a)
        end = codec.decompose(b)
        if start.shape != end.shape:
            raise ValueError(f"component shapes differ: {start.shape} vs {end.shape}")
        return codec.compose(start + (end - start) * progress, a)

    def _array(self, a: Any, b: Any, progress: float, prop: PropertyConfig) -> list[Any]:
        a, b = list(a), list(b)
        shared = min(len(a), len(b))
        result = []
        for i in range(shared):
            element = prop.element or self.rules_for(f"[{i}]", a[i])
            result.append(self.interpolate(a[i], b[i], progress, element))

        # Unmatched tail switches in abruptly
        longer = a if progress < SWITCH_POINT else b
        result.extend(longer[shared:])
        return result

    def _object(self, a: Any, b: Any, progress: float, prop: PropertyConfig) -> dict[str, Any]:
        fields = prop.fields or {}
        result: dict[str, Any] = {}
        for key in [*a, *(k for k in b if k not in a)]:
            if key in a and key in b:
                rules = fields.get(key) or infer_property_config(a[key])
                result[key] = self.interpolate(a[key], b[key], progress, rules)
            elif key in a:
                if progress < SWITCH_POINT:
                    result[key] = a[key]
            elif progress >= SWITCH_POINT:
                result[key] = b[key]
        return result

    def _string(self, a: Any, b: Any, progress: float, prop: PropertyConfig) -> Any:
        return b if progress >= SWITCH_POINT else a

    def _css_value(self, a: Any, b: Any, progress: float, prop: PropertyConfig) -> Any:
        start = _CSS_VALUE_RE.match(str(a))
        end = _CSS_VALUE_RE.match(str(b))
        if start is None or end is None or start.group(2) != end.group(2):
            return b if progress >= SWITCH_POINT else a

        x, y = float(start.group(1)), float(end.group(1))
        return f"{_format_css_number(x + (y - x) * progress)}{start.group(2)}"
