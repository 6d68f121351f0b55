"""Animation state machine with persistence."""

from choreo.core.statemachine.machine import AnimationHost, AnimationStateMachine
from choreo.core.statemachine.models import (
    ANY_STATE,
    RESET_EVENT,
    TIMEOUT_EVENT,
    MachineSnapshot,
    State,
    Transition,
    TransitionContext,
    TransitionRecord,
)
from choreo.core.statemachine.persistence import InMemoryStore, JsonFileStore, KeyValueStore

__all__ = [
    "ANY_STATE",
    "RESET_EVENT",
    "TIMEOUT_EVENT",
    "AnimationHost",
    "AnimationStateMachine",
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueStore",
    "MachineSnapshot",
    "State",
    "Transition",
    "TransitionContext",
    "TransitionRecord",
]
