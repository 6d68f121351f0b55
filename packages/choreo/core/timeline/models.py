"""Timeline models.

Stages are the authored units of a timeline. They are frozen pydantic models;
changing a compiled timeline means compiling a new one.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from choreo.core.interpolation.models import EasingLike, PropertyConfig
from choreo.core.stagger.models import StaggerOptions, StaggerTarget


class StageKind(str, Enum):
    """Stage variants."""

    STYLE = "style"
    STAGGER = "stagger"
    CALLBACK = "callback"
    EVENT = "event"
    GROUP = "group"


class PlaybackDirection(str, Enum):
    """Playback direction for a stage or a whole clock.

    Values:
        NORMAL: Forward every iteration
        REVERSE: Backward every iteration
        ALTERNATE: Forward, then backward on odd iterations
        ALTERNATE_REVERSE: Backward, then forward on odd iterations
    """

    NORMAL = "normal"
    REVERSE = "reverse"
    ALTERNATE = "alternate"
    ALTERNATE_REVERSE = "alternate-reverse"

    def is_reversed(self, iteration: int, yoyo: bool = False) -> bool:
        """Whether the given iteration plays backward.

        ``yoyo`` turns NORMAL into ALTERNATE and REVERSE into
        ALTERNATE_REVERSE.
        """
        odd = iteration % 2 == 1
        if self is PlaybackDirection.ALTERNATE or (self is PlaybackDirection.NORMAL and yoyo):
            return odd
        if self is PlaybackDirection.ALTERNATE_REVERSE or (
            self is PlaybackDirection.REVERSE and yoyo
        ):
            return not odd
        return self is PlaybackDirection.REVERSE


class GroupRelationship(str, Enum):
    """How a group's children are placed relative to each other."""

    START_TOGETHER = "start-together"
    END_TOGETHER = "end-together"
    OVERLAP = "overlap"
    GAP = "gap"
    CHAIN = "chain"


class PlacementMode(str, Enum):
    """Placement of top-level stages."""

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    STAGGER = "stagger"
    CASCADE = "cascade"


class Keyframe(BaseModel):
    """Values reached at a fractional offset of a style animation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    offset: float = Field(ge=0.0, le=1.0)
    values: dict[str, Any]


def _keyframes_from_shorthand(data: Any) -> Any:
    if not isinstance(data, dict) or "keyframes" in data:
        return data
    if "from_values" in data or "to_values" in data:
        data = dict(data)
        start = data.pop("from_values", None) or {}
        end = data.pop("to_values", None) or {}
        data["keyframes"] = [Keyframe(offset=0.0, values=start), Keyframe(offset=1.0, values=end)]
    return data


def _check_keyframes(keyframes: list[Keyframe]) -> None:
    if len(keyframes) < 2:
        raise ValueError("At least two keyframes are required")
    offsets = [k.offset for k in keyframes]
    if offsets != sorted(offsets):
        raise ValueError(f"Keyframe offsets must ascend, got {offsets}")


# ============================================================================
# Stages
# ============================================================================


class BaseStage(BaseModel):
    """Fields shared by every stage variant.

    Attributes:
        id: Unique stage id (also a seek label)
        duration_ms: Duration of one iteration
        delay_ms: Delay before the stage starts
        easing: Easing descriptor (resolved once at compile time)
        start_time_ms: Explicit start, relative to the enclosing origin
        direction: Iteration direction
        repeat_count: Extra iterations (0 = play once)
        repeat_delay_ms: Pause between iterations
        yoyo: Alternate direction on odd iterations
        depends_on: Sibling stage ids that must finish first
        category: Category tag checked against the motion policy
        reduced_motion_alternative: Stage used instead under reduced motion
        on_start: Called when the stage interval is entered
        on_update: Called with eased progress every tick the stage is active
        on_complete: Called when the stage interval is exited
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    id: str = Field(min_length=1)
    duration_ms: float = Field(default=300.0, ge=0.0)
    delay_ms: float = Field(default=0.0, ge=0.0)
    easing: EasingLike = None
    start_time_ms: float | None = Field(default=None, ge=0.0)
    direction: PlaybackDirection = PlaybackDirection.NORMAL
    repeat_count: int = Field(default=0, ge=0)
    repeat_delay_ms: float = Field(default=0.0, ge=0.0)
    yoyo: bool = False
    depends_on: list[str] = Field(default_factory=list)
    category: str | None = None
    reduced_motion_alternative: AnyStage | None = None
    on_start: Callable[[], Any] | None = None
    on_update: Callable[[float], Any] | None = None
    on_complete: Callable[[], Any] | None = None

    def span_ms(self, iteration_ms: float | None = None) -> float:
        """Total time covered including repeats.

        Args:
            iteration_ms: Length of one iteration (defaults to duration_ms)
        """
        one = self.duration_ms if iteration_ms is None else iteration_ms
        return one * (self.repeat_count + 1) + self.repeat_delay_ms * self.repeat_count

    def progress_at(self, local_ms: float, iteration_ms: float) -> float:
        """Raw (un-eased) progress at a time inside the stage span.

        Handles repeats, repeat delays, direction and yoyo. Times inside a
        repeat delay hold the end of the previous iteration.
        """
        if iteration_ms <= 0:
            return 0.0 if self.direction.is_reversed(self.repeat_count, self.yoyo) else 1.0

        period = iteration_ms + self.repeat_delay_ms
        iteration = min(int(max(local_ms, 0.0) // period), self.repeat_count)
        within = local_ms - iteration * period
        raw = max(0.0, min(1.0, within / iteration_ms))
        if self.direction.is_reversed(iteration, self.yoyo):
            raw = 1.0 - raw
        return raw


class StyleStage(BaseStage):
    """Interpolates a target's styles through keyframes.

    ``from_values``/``to_values`` are accepted as shorthand for two
    keyframes. ``channel="property"`` commits through ``apply_property``.

    Example:
        >>> stage = StyleStage(id="fade", target=".card",
        ...                    from_values={"opacity": 0}, to_values={"opacity": 1})
        >>> [k.offset for k in stage.keyframes]
        [0.0, 1.0]
    """

    kind: Literal["style"] = "style"
    target: str
    keyframes: list[Keyframe]
    properties: dict[str, PropertyConfig] = Field(default_factory=dict)
    channel: Literal["style", "property"] = "style"

    @model_validator(mode="before")
    @classmethod
    def _expand_shorthand(cls, data: Any) -> Any:
        return _keyframes_from_shorthand(data)

    @model_validator(mode="after")
    def _validate_keyframes(self) -> StyleStage:
        _check_keyframes(self.keyframes)
        return self


class StaggerStage(BaseStage):
    """Runs one keyframed animation over many targets with staggered delays.

    ``duration_ms`` is the per-target duration; the stage's iteration length
    is the stagger plan's total duration.
    """

    kind: Literal["stagger"] = "stagger"
    targets: list[StaggerTarget]
    stagger: StaggerOptions = Field(default_factory=StaggerOptions)
    keyframes: list[Keyframe]
    properties: dict[str, PropertyConfig] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _expand_shorthand(cls, data: Any) -> Any:
        data = _keyframes_from_shorthand(data)
        if isinstance(data, dict) and data.get("targets"):
            data = dict(data)
            data["targets"] = [
                StaggerTarget(ref=t) if isinstance(t, str) else t for t in data["targets"]
            ]
        return data

    @model_validator(mode="after")
    def _validate_keyframes(self) -> StaggerStage:
        _check_keyframes(self.keyframes)
        return self


class CallbackStage(BaseStage):
    """Calls ``callback(progress)`` every tick while active."""

    kind: Literal["callback"] = "callback"
    callback: Callable[[float], Any]


class EventStage(BaseStage):
    """Emits a named event once, at its start time. Always zero duration."""

    kind: Literal["event"] = "event"
    event: str
    payload: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _zero_duration(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = {**data, "duration_ms": 0.0}
        return data


class GroupStage(BaseStage):
    """Places child stages by relationship.

    ``relationship_value_ms`` is the delta used by OVERLAP and GAP. The
    group's span is derived from its children; groups do not repeat.
    """

    kind: Literal["group"] = "group"
    children: list[AnyStage] = Field(default_factory=list)
    relationship: GroupRelationship = GroupRelationship.CHAIN
    relationship_value_ms: float = Field(default=0.0, ge=0.0)

    @model_validator(mode="after")
    def _no_repeat(self) -> GroupStage:
        if self.repeat_count:
            raise ValueError("Group stages cannot repeat; repeat the children instead")
        return self


AnyStage = Annotated[
    StyleStage | StaggerStage | CallbackStage | EventStage | GroupStage,
    Field(discriminator="kind"),
]

for _model in (BaseStage, StyleStage, StaggerStage, CallbackStage, EventStage, GroupStage):
    _model.model_rebuild()


# ============================================================================
# Compiled timeline
# ============================================================================


class TimelineEntry(BaseModel):
    """Absolute placement of one stage.

    Attributes:
        stage_id: Stage id
        start_ms: Absolute start
        end_ms: Absolute end (start + duration)
        duration_ms: Full span including repeats
        iteration_ms: Length of one iteration
        parent_id: Enclosing group, if any
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    stage_id: str
    start_ms: float
    end_ms: float
    duration_ms: float
    iteration_ms: float
    parent_id: str | None = None


# ============================================================================
# Animation specs
# ============================================================================


class AnimationDescriptor(BaseModel):
    """Concrete keyframed animation, independent of any target.

    Example:
        >>> fade = AnimationDescriptor(name="fade", from_values={"opacity": 0},
        ...                            to_values={"opacity": 1}, duration_ms=200)
        >>> fade.to_stage("s1", ".card").duration_ms
        200.0
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    name: str = "custom"
    keyframes: list[Keyframe]
    duration_ms: float = Field(default=300.0, ge=0.0)
    easing: EasingLike = None
    properties: dict[str, PropertyConfig] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _expand_shorthand(cls, data: Any) -> Any:
        return _keyframes_from_shorthand(data)

    @model_validator(mode="after")
    def _validate_keyframes(self) -> AnimationDescriptor:
        _check_keyframes(self.keyframes)
        return self

    @property
    def final_values(self) -> dict[str, Any]:
        return dict(self.keyframes[-1].values)

    def with_overrides(
        self, duration_ms: float | None = None, easing: EasingLike = None
    ) -> AnimationDescriptor:
        """Copy with a different duration and/or easing."""
        update: dict[str, Any] = {}
        if duration_ms is not None:
            update["duration_ms"] = duration_ms
        if easing is not None:
            update["easing"] = easing
        return self.model_copy(update=update) if update else self

    def to_stage(self, stage_id: str, target: str, **overrides: Any) -> StyleStage:
        """Bind the animation to a target as a style stage."""
        fields: dict[str, Any] = {
            "keyframes": self.keyframes,
            "properties": self.properties,
            "duration_ms": self.duration_ms,
            "easing": self.easing,
            **overrides,
        }
        return StyleStage(id=stage_id, target=target, **fields)

    def to_stagger_stage(
        self, stage_id: str, targets: list[StaggerTarget | str], **overrides: Any
    ) -> StaggerStage:
        """Bind the animation to many targets as a stagger stage."""
        fields: dict[str, Any] = {
            "keyframes": self.keyframes,
            "properties": self.properties,
            "duration_ms": self.duration_ms,
            "easing": self.easing,
            **overrides,
        }
        return StaggerStage(id=stage_id, targets=targets, **fields)


class PresetRef(BaseModel):
    """Reference to a named preset with optional overrides."""

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    kind: Literal["preset"] = "preset"
    name: str
    duration_ms: float | None = Field(default=None, ge=0.0)
    easing: EasingLike = None


# A preset name, a preset reference or a concrete descriptor. Resolved once
# into an AnimationDescriptor by the preset library.
AnimationSpec = AnimationDescriptor | PresetRef | str
