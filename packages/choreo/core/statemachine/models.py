"""State machine models."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from choreo.core.interpolation.models import EasingLike
from choreo.core.timeline.models import AnimationDescriptor, PresetRef

ANY_STATE = "*"
TIMEOUT_EVENT = "timeout"
RESET_EVENT = "reset"


class State(BaseModel):
    """A discrete animation state.

    Attributes:
        id: Unique state id
        name: Display name (defaults to the id)
        enter_animation: Played when entering the state
        exit_animation: Played when leaving the state
        properties: Property snapshot applied on entry
        styles: Style snapshot applied on entry
        duration_ms: Auto-timeout after this long (0 = stay indefinitely)
        terminal: No further transitions are expected
        meta: Free-form metadata
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    id: str = Field(min_length=1)
    name: str = ""
    enter_animation: AnimationDescriptor | PresetRef | str | None = None
    exit_animation: AnimationDescriptor | PresetRef | str | None = None
    properties: dict[str, Any] = Field(default_factory=dict)
    styles: dict[str, Any] = Field(default_factory=dict)
    duration_ms: float = Field(default=0.0, ge=0.0)
    terminal: bool = False
    meta: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _default_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name") and data.get("id"):
            data = {**data, "name": data["id"]}
        return data


class Transition(BaseModel):
    """``(from_state, event) -> to_state`` with optional animation and hooks.

    ``from_state="*"`` matches any current state. A transition with
    ``duration_ms`` but no ``animation`` tweens the source state's styles
    into the target state's styles.

    Condition, guard and actions receive the machine's ``TransitionContext``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    from_state: str
    event: str
    to_state: str
    animation: AnimationDescriptor | PresetRef | str | None = None
    duration_ms: float | None = Field(default=None, ge=0.0)
    easing: EasingLike = None
    condition: Callable[[TransitionContext], bool] | None = None
    guard: Callable[[TransitionContext], bool] | None = None
    actions: list[Callable[[TransitionContext], Any]] = Field(default_factory=list)
    properties: dict[str, Any] = Field(default_factory=dict)
    interruptible: bool = True

    def matches(self, state_id: str, event: str) -> bool:
        return self.event == event and self.from_state in (state_id, ANY_STATE)


class TransitionRecord(BaseModel):
    """History entry (timestamp in epoch milliseconds)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    from_state: str
    to_state: str
    event: str
    timestamp: float


class MachineSnapshot(BaseModel):
    """Persisted machine state."""

    model_config = ConfigDict(extra="forbid")

    current_state: str
    previous_state: str = ""
    history: list[TransitionRecord] = Field(default_factory=list)
    data: dict[str, Any] = Field(default_factory=dict)


@dataclass
class TransitionContext:
    """Mutable view handed to conditions, guards, actions and callbacks."""

    current_state: str
    previous_state: str = ""
    event: str = ""
    params: dict[str, Any] = field(default_factory=dict)
    targets: list[str] = field(default_factory=list)
    history: list[TransitionRecord] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


Transition.model_rebuild()
