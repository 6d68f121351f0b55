"""Synchronization models."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from choreo.core.statemachine.models import State
from choreo.core.timeline.models import AnimationDescriptor, PresetRef

DEFAULT_CASCADE_OFFSET_MS = 100.0


class AnimationPhase(str, Enum):
    PREP = "prep"
    START = "start"
    MIDDLE = "middle"
    END = "end"
    AFTER = "after"


PHASE_POSITIONS: dict[AnimationPhase, float] = {
    AnimationPhase.PREP: 0.0,
    AnimationPhase.START: 0.0,
    AnimationPhase.MIDDLE: 0.5,
    AnimationPhase.END: 1.0,
    AnimationPhase.AFTER: 1.0,
}

# Injected into every item that does not define them
STANDARD_SYNC_POINTS: tuple[AnimationPhase, ...] = (
    AnimationPhase.START,
    AnimationPhase.MIDDLE,
    AnimationPhase.END,
)


class SynchronizationStrategy(str, Enum):
    """How a group reconciles its members' timings.

    Values:
        COMMON_DURATION: All start at 0; adaptable items stretch to the group duration
        ALIGN_SYNC_POINTS: Sync points mapped per item, adaptable items rescaled
        SIMULTANEOUS_START: All start at 0 with their own durations
        SIMULTANEOUS_END: All end together
        CASCADE: Sequential starts with a fixed offset
        CUSTOM: Caller-supplied timing function
    """

    COMMON_DURATION = "common-duration"
    ALIGN_SYNC_POINTS = "align-sync-points"
    SIMULTANEOUS_START = "simultaneous-start"
    SIMULTANEOUS_END = "simultaneous-end"
    CASCADE = "cascade"
    CUSTOM = "custom"


class SyncGroupState(str, Enum):
    INITIALIZING = "initializing"
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELED = "canceled"


class SyncPoint(BaseModel):
    """Named, proportional instant within an animation.

    Attributes:
        id: Sync point id
        name: Display name
        phase: Animation phase this point belongs to
        position: Fraction of the animation's duration in [0, 1]
        barrier: Informational flag for hosts that want to gate on the point
        meta: Free-form metadata
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    name: str = ""
    phase: AnimationPhase | None = None
    position: float = Field(ge=0.0, le=1.0)
    barrier: bool = False
    meta: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def standard(cls, phase: AnimationPhase) -> SyncPoint:
        return cls(id=phase.value, name=phase.value.title(), phase=phase, position=PHASE_POSITIONS[phase])


class SyncedAnimation(BaseModel):
    """One member of a sync group.

    Attributes:
        id: Member id (unique within the group)
        target: Target reference
        animation: Preset name, preset reference or descriptor
        duration_ms: Nominal duration
        sync_points: Member-specific sync points (override group points)
        priority: Informational priority
        order: Sort key for the cascade strategy
        adapt_timing: Whether the duration may be rescaled
        states: Sync point id -> state snapshot applied when the point fires
        meta: Free-form metadata
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    id: str = Field(min_length=1)
    target: str
    animation: AnimationDescriptor | PresetRef | str
    duration_ms: float = Field(ge=0.0)
    sync_points: list[SyncPoint] = Field(default_factory=list)
    priority: int = 0
    order: int = 0
    adapt_timing: bool = True
    states: dict[str, State] = Field(default_factory=dict)
    meta: dict[str, Any] = Field(default_factory=dict)


class ItemTiming(BaseModel):
    """Computed placement of a member (all times relative to the group origin)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    start_ms: float = Field(ge=0.0)
    duration_ms: float = Field(ge=0.0)
    sync_points: dict[str, float] = Field(default_factory=dict)

    @property
    def end_ms(self) -> float:
        return self.start_ms + self.duration_ms


# fn(animation, animations, options) -> ItemTiming | dict
TimingCalculator = Callable[..., Any]


class SyncGroupOptions(BaseModel):
    """Sync group configuration.

    Attributes:
        id: Group id
        sync_points: Sync points shared by all members
        strategy: Timing strategy (fixed at initialize())
        duration_ms: Explicit group duration
        adapt_timings: Group-wide switch for duration adaptation
        cascade_offset_ms: Offset between members for CASCADE
        custom_timing: ``fn(animation, animations, options)`` for CUSTOM;
            returns an ItemTiming or a dict with start_ms/duration_ms/sync_points
        on_sync_point: ``fn(point, [animation_id])`` when a point is reached
        on_complete: Called when the group completes
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    id: str = Field(min_length=1)
    sync_points: list[SyncPoint] = Field(default_factory=list)
    strategy: SynchronizationStrategy = SynchronizationStrategy.COMMON_DURATION
    duration_ms: float | None = Field(default=None, gt=0.0)
    adapt_timings: bool = True
    cascade_offset_ms: float = Field(default=DEFAULT_CASCADE_OFFSET_MS, ge=0.0)
    custom_timing: TimingCalculator | None = None
    on_sync_point: Callable[[SyncPoint, list[str]], Any] | None = None
    on_complete: Callable[[], Any] | None = None
