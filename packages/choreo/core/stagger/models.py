"""Stagger distribution models."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class DistributionPattern(str, Enum):
    """Base ordering applied to the target list.

    Values:
        LINEAR: Declaration order
        REVERSED: Reverse declaration order
        FROM_CENTER: Middle first, alternating outward
        FROM_EDGES: Outermost first, alternating inward
        RANDOM: Shuffled (seedable)
        EVEN_ODD: Even indices, then odd
        ODD_EVEN: Odd indices, then even
        PRIME: Prime indices, then the rest
    """

    LINEAR = "linear"
    REVERSED = "reversed"
    FROM_CENTER = "from-center"
    FROM_EDGES = "from-edges"
    RANDOM = "random"
    EVEN_ODD = "even-odd"
    ODD_EVEN = "odd-even"
    PRIME = "prime"


class GroupingStrategy(str, Enum):
    """Ordering by group membership instead of by pattern."""

    NONE = "none"
    CATEGORY = "category"
    ROWS = "rows"
    COLUMNS = "columns"
    DISTANCE = "distance"


class StaggerDirection(str, Enum):
    """Directional sort over spatial positions."""

    TOP_DOWN = "top-down"
    BOTTOM_UP = "bottom-up"
    LEFT_RIGHT = "left-right"
    RIGHT_LEFT = "right-left"
    CLOCKWISE = "clockwise"
    COUNTER_CLOCKWISE = "counter-clockwise"
    INWARD = "inward"
    OUTWARD = "outward"


class DistributionEasing(str, Enum):
    """Curve reshaping delays over the normalized index."""

    LINEAR = "linear"
    EASE_IN = "ease-in"
    EASE_OUT = "ease-out"
    EASE_IN_OUT = "ease-in-out"
    CUBIC_IN = "cubic-in"
    CUBIC_OUT = "cubic-out"
    CUBIC_IN_OUT = "cubic-in-out"
    EXPONENTIAL = "exponential"
    CUSTOM = "custom"


class Position(BaseModel):
    """Spatial position of a target."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    row: int | None = None
    col: int | None = None


class Category(BaseModel):
    """Declared category with an explicit group order."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    order: int = 0


class StaggerTarget(BaseModel):
    """One element of a staggered group.

    Attributes:
        ref: Logical target reference
        position: Optional spatial position
        category: Optional category id
        delay_ms: Additive delay override
        duration_ms: Duration override
        order: Explicit order (ordered targets come first)
        include: False drops the target
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    ref: str
    position: Position | None = None
    category: str | None = None
    delay_ms: float | None = None
    duration_ms: float | None = Field(default=None, ge=0.0)
    order: int | None = None
    include: bool = True


class StaggerOptions(BaseModel):
    """Distribution settings.

    Attributes:
        delay_ms: Per-index delay step
        start_delay_ms: Offset added to every delay
        duration_ms: Default per-target duration
        max_total_duration_ms: Cap; delays are rescaled so the last target
            ends exactly at the cap
        pattern: Base ordering
        grouping: Group ordering (overrides pattern when not NONE)
        direction: Optional directional sort over positions
        categories: Declared categories for CATEGORY grouping
        easing: Delay distribution curve
        custom_easing: Curve for DistributionEasing.CUSTOM
        custom_delay: ``(target, index, total) -> delay_ms`` replacing the
            computed base delay
        reference_point: Origin for radial directions
        distance_band: Band width for DISTANCE grouping
        seed: Seed for the RANDOM pattern
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    delay_ms: float = Field(default=50.0, ge=0.0)
    start_delay_ms: float = Field(default=0.0, ge=0.0)
    duration_ms: float = Field(default=300.0, ge=0.0)
    max_total_duration_ms: float | None = Field(default=None, ge=0.0)
    pattern: DistributionPattern = DistributionPattern.LINEAR
    grouping: GroupingStrategy = GroupingStrategy.NONE
    direction: StaggerDirection | None = None
    categories: list[Category] = Field(default_factory=list)
    easing: DistributionEasing = DistributionEasing.LINEAR
    custom_easing: Callable[[float], float] | None = None
    custom_delay: Callable[[StaggerTarget, int, int], float] | None = None
    reference_point: Position = Field(default_factory=Position)
    distance_band: float = Field(default=100.0, gt=0.0)
    seed: int | None = None


class StaggerSlot(BaseModel):
    """Computed timing for one target."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ref: str
    index: int
    delay_ms: float
    duration_ms: float

    @property
    def end_ms(self) -> float:
        return self.delay_ms + self.duration_ms


class StaggerPlan(BaseModel):
    """Result of a distribution: slots in play order plus the total span."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    slots: list[StaggerSlot]
    total_duration_ms: float

    @property
    def order(self) -> list[str]:
        return [slot.ref for slot in self.slots]

    @property
    def delays(self) -> dict[str, float]:
        return {slot.ref: slot.delay_ms for slot in self.slots}

    def slot(self, ref: str) -> StaggerSlot | None:
        """Find the slot for a reference."""
        return next((s for s in self.slots if s.ref == ref), None)

    def summary(self) -> dict[str, Any]:
        """Compact description for debug logging."""
        return {
            "targets": len(self.slots),
            "total_duration_ms": self.total_duration_ms,
            "order": self.order,
        }
