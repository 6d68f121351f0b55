"""Interpolation models.

Type tags, blend modes, easing descriptors and the per-property type table
that drives value interpolation.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class InterpolationType(str, Enum):
    """Value families the interpolator knows how to blend."""

    NUMBER = "number"
    COLOR = "color"
    TRANSFORM = "transform"
    PATH = "path"
    ARRAY = "array"
    OBJECT = "object"
    STRING = "string"
    CSS_VALUE = "css-value"


class BlendMode(str, Enum):
    """How two already-interpolated values combine.

    Values:
        OVERRIDE: Keep the first value until progress reaches 1
        ADD: a + b * progress
        MULTIPLY: a * (b / a) ** progress
        SCREEN: a + (b - a * b) * progress
        AVERAGE: Linear blend between a and b
        MIN: Smaller of the two
        MAX: Larger of the two
        CUSTOM: Caller-supplied function
    """

    OVERRIDE = "override"
    ADD = "add"
    MULTIPLY = "multiply"
    SCREEN = "screen"
    AVERAGE = "average"
    MIN = "min"
    MAX = "max"
    CUSTOM = "custom"


class StepPosition(str, Enum):
    """Where the jump happens inside each step of a steps() easing."""

    START = "start"
    END = "end"
    BOTH = "both"


# ============================================================================
# Easing descriptors
# ============================================================================


class NamedEasing(BaseModel):
    """Easing referenced by name (``"ease-out"``, ``"bounce-out"``...)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["named"] = "named"
    name: str = Field(min_length=1)


class CubicBezierEasing(BaseModel):
    """CSS-style cubic bezier with fixed endpoints (0, 0) and (1, 1)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["cubic-bezier"] = "cubic-bezier"
    x1: float = Field(ge=0.0, le=1.0)
    y1: float
    x2: float = Field(ge=0.0, le=1.0)
    y2: float


class StepsEasing(BaseModel):
    """Discrete staircase easing."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["steps"] = "steps"
    steps: int = Field(ge=1)
    position: StepPosition = StepPosition.END


class ElasticEasing(BaseModel):
    """Elastic ease-out with configurable amplitude and period."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["elastic"] = "elastic"
    amplitude: float = Field(default=1.0, gt=0.0)
    period: float = Field(default=0.3, gt=0.0)


class WeightedEasing(BaseModel):
    """One member of a composite easing."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    easing: str
    weight: float = Field(default=1.0, ge=0.0)


class CompositeEasing(BaseModel):
    """Weighted average of several named easings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["composite"] = "composite"
    components: list[WeightedEasing] = Field(min_length=1)


EasingSpec = Annotated[
    NamedEasing | CubicBezierEasing | StepsEasing | ElasticEasing | CompositeEasing,
    Field(discriminator="kind"),
]

# Anything resolve_easing accepts: a descriptor model, its dict form, a CSS
# string, a callable, or None for the default.
EasingLike = Any


# ============================================================================
# Property tables
# ============================================================================


class PropertyConfig(BaseModel):
    """Interpolation rules for a single property.

    Attributes:
        type: Value family
        interpolator: Custom ``(from, to, progress) -> value`` function
        clamp: Optional (low, high) range applied to scalar results
        snap: Optional snap points for scalar results
        easing: Optional per-property easing (resolved once)
        delay_ms: Per-property start delay inside the tween
        element: Element rules for ARRAY properties
        fields: Field rules for OBJECT properties
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    type: InterpolationType = InterpolationType.NUMBER
    interpolator: Callable[[Any, Any, float], Any] | None = None
    clamp: tuple[float, float] | None = None
    snap: list[float] | None = None
    easing: EasingLike = None
    delay_ms: float = Field(default=0.0, ge=0.0)
    element: PropertyConfig | None = None
    fields: dict[str, PropertyConfig] | None = None

    @model_validator(mode="after")
    def _check_clamp(self) -> PropertyConfig:
        if self.clamp is not None and self.clamp[0] > self.clamp[1]:
            raise ValueError(f"clamp low must be <= high, got {self.clamp}")
        return self


class InterpolationConfig(BaseModel):
    """Per-property type table plus the global blend mode.

    Example:
        >>> config = InterpolationConfig(
        ...     properties={
        ...         "opacity": PropertyConfig(clamp=(0.0, 1.0)),
        ...         "color": PropertyConfig(type=InterpolationType.COLOR),
        ...     },
        ...     blend_mode=BlendMode.AVERAGE,
        ... )
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    properties: dict[str, PropertyConfig] = Field(default_factory=dict)
    blend_mode: BlendMode = BlendMode.OVERRIDE
    custom_blend: Callable[[Any, Any, float], Any] | None = None

    def get(self, name: str) -> PropertyConfig | None:
        """Get the rules for a property, if declared."""
        return self.properties.get(name)


PropertyConfig.model_rebuild()
