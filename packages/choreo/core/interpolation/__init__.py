"""Interpolation engine.

Type-dispatched value interpolation, blend modes and easing resolution.
"""

from choreo.core.interpolation.codecs import (
    MatrixTransformCodec,
    PolylinePathCodec,
    RGBAColorCodec,
    ValueCodec,
)
from choreo.core.interpolation.easing import (
    DEFAULT_EASING,
    EasingFn,
    available_easings,
    cubic_bezier,
    elastic,
    linear,
    resolve_easing,
    steps,
)
from choreo.core.interpolation.interpolators import (
    Interpolator,
    blend,
    build_interpolation_config,
    infer_property_config,
)
from choreo.core.interpolation.models import (
    BlendMode,
    CompositeEasing,
    CubicBezierEasing,
    ElasticEasing,
    InterpolationConfig,
    InterpolationType,
    NamedEasing,
    PropertyConfig,
    StepPosition,
    StepsEasing,
    WeightedEasing,
)
from choreo.core.interpolation.state import KeyframeInterpolator, StateInterpolator

__all__ = [
    "DEFAULT_EASING",
    "BlendMode",
    "CompositeEasing",
    "CubicBezierEasing",
    "EasingFn",
    "ElasticEasing",
    "InterpolationConfig",
    "InterpolationType",
    "Interpolator",
    "KeyframeInterpolator",
    "MatrixTransformCodec",
    "NamedEasing",
    "PolylinePathCodec",
    "PropertyConfig",
    "RGBAColorCodec",
    "StateInterpolator",
    "StepPosition",
    "StepsEasing",
    "ValueCodec",
    "WeightedEasing",
    "available_easings",
    "blend",
    "build_interpolation_config",
    "cubic_bezier",
    "elastic",
    "infer_property_config",
    "linear",
    "resolve_easing",
    "steps",
]
