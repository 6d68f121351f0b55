"""Animation state machine.

Discrete states joined by event-driven transitions. A transition can play
exit, transition and enter animations; those are chained through completion
tokens, and the machine refuses new events until the chain has finished.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from pydantic import ValidationError

from choreo.core.errors import InvalidStateError
from choreo.core.interpolation.state import StateInterpolator
from choreo.core.playback.clock import PlaybackClock
from choreo.core.playback.loop import FrameLoop
from choreo.core.playback.tokens import CompletionToken
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
from choreo.core.statemachine.persistence import KeyValueStore
from choreo.core.timeline.compiler import compile_timeline
from choreo.core.timeline.models import AnimationSpec, CallbackStage

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50

EventHandler = Callable[[dict[str, Any]], Any]
StateChangeCallback = Callable[[str, str, TransitionContext], Any]
Step = Callable[[], CompletionToken | None]


class AnimationHost(Protocol):
    """What the machine needs from its orchestrator."""

    loop: FrameLoop

    def animate(self, targets: Sequence[str], spec: AnimationSpec) -> CompletionToken: ...

    def apply_snapshot(
        self,
        targets: Sequence[str],
        styles: Mapping[str, Any] | None = None,
        properties: Mapping[str, Any] | None = None,
    ) -> None: ...


@dataclass
class _InFlight:
    transition: Transition
    source: State
    target: State
    event: str
    committed: bool = False
    step_token: CompletionToken | None = None


class AnimationStateMachine:
    """Event-driven state machine with animated transitions.

    Args:
        states: State definitions
        transitions: Transition definitions (declaration order matters)
        initial_state: Starting state id
        host: Orchestrator used for animations, snapshots and timeouts
        targets: Target references the machine animates
        name: Label for logs and token names
        store: Snapshot store (persistence is off without one)
        storage_key: Key under which snapshots are stored
        on_state_change: ``callback(from_state, to_state, context)``
        history_limit: Maximum history entries kept

    Raises:
        InvalidStateError: If the initial state or a transition endpoint is unknown

    Example:
        >>> machine = AnimationStateMachine(
        ...     states=[State(id="idle"), State(id="active")],
        ...     transitions=[Transition(from_state="idle", event="go", to_state="active")],
        ...     initial_state="idle",
        ... )
        >>> machine.send("go")
        True
        >>> machine.state
        'active'
    """

    def __init__(
        self,
        states: Iterable[State],
        transitions: Iterable[Transition],
        initial_state: str,
        *,
        host: AnimationHost | None = None,
        targets: Sequence[str] = (),
        name: str = "machine",
        store: KeyValueStore | None = None,
        storage_key: str | None = None,
        on_state_change: StateChangeCallback | None = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        self.states: dict[str, State] = {}
        for state in states:
            if state.id in self.states:
                raise InvalidStateError(f"Duplicate state id '{state.id}'")
            self.states[state.id] = state
        self.transitions = list(transitions)
        self._validate(initial_state)

        self.name = name
        self.host = host
        self.targets = list(targets)
        self.store = store
        self.storage_key = storage_key
        self.on_state_change = on_state_change
        self.history_limit = history_limit

        self.initial_state = initial_state
        self.context = TransitionContext(current_state=initial_state, targets=self.targets)
        self.transition_token: CompletionToken | None = None

        self._transitioning = False
        self._in_flight: _InFlight | None = None
        self._timeout_token: CompletionToken | None = None
        self._handlers: dict[str, list[EventHandler]] = {}

        if self.persistence_enabled:
            self.restore()

        logger.debug(
            f"State machine '{name}': {len(self.states)} states, "
            f"{len(self.transitions)} transitions, initial '{self.state}'"
        )

    def _validate(self, initial_state: str) -> None:
        if initial_state not in self.states:
            raise InvalidStateError(
                f"Initial state '{initial_state}' is not defined. "
                f"Known states: {sorted(self.states)}"
            )
        for transition in self.transitions:
            if transition.to_state not in self.states:
                raise InvalidStateError(
                    f"Transition '{transition.event}' targets unknown state '{transition.to_state}'"
                )
            if transition.from_state != ANY_STATE and transition.from_state not in self.states:
                raise InvalidStateError(
                    f"Transition '{transition.event}' starts from unknown state "
                    f"'{transition.from_state}'"
                )

    # ========== QUERIES ==========

    @property
    def state(self) -> str:
        return self.context.current_state

    @property
    def previous_state(self) -> str:
        return self.context.previous_state

    @property
    def current(self) -> State:
        return self.states[self.state]

    @property
    def transitioning(self) -> bool:
        return self._transitioning

    @property
    def history(self) -> list[TransitionRecord]:
        return list(self.context.history)

    @property
    def persistence_enabled(self) -> bool:
        return self.store is not None and bool(self.storage_key)

    def is_in(self, state_id: str) -> bool:
        return self.state == state_id

    def can(self, event: str) -> bool:
        return self._find(self.state, event) is not None

    def available_transitions(self) -> list[Transition]:
        return [t for t in self.transitions if t.from_state in (self.state, ANY_STATE)]

    def _find(self, state_id: str, event: str) -> Transition | None:
        """First transition, in declaration order, matching the state or ``"*"``."""
        for transition in self.transitions:
            if transition.matches(state_id, event):
                return transition
        return None

    def set_data(self, key: str, value: Any) -> AnimationStateMachine:
        self.context.data[key] = value
        return self

    def get_data(self, key: str, default: Any = None) -> Any:
        return self.context.data.get(key, default)

    def clear_history(self) -> AnimationStateMachine:
        self.context.history = []
        return self

    # ========== EVENTS ==========

    def on(self, event: str, handler: EventHandler) -> AnimationStateMachine:
        """Listen for an event (``"*"`` receives every event as ``{event, params}``)."""
        self._handlers.setdefault(event, []).append(handler)
        return self

    def off(self, event: str, handler: EventHandler) -> AnimationStateMachine:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)
        return self

    def _emit(self, event: str, params: dict[str, Any] | None = None) -> None:
        params = params or {}
        for handler in list(self._handlers.get(event, [])):
            self._call_listener(event, handler, params)
        for handler in list(self._handlers.get(ANY_STATE, [])):
            self._call_listener(event, handler, {"event": event, "params": params})

    def _call_listener(self, event: str, handler: EventHandler, payload: dict[str, Any]) -> None:
        try:
            handler(payload)
        except Exception:
            logger.exception(f"State machine '{self.name}' listener for '{event}' failed")

    # ========== TRANSITIONS ==========

    def send(self, event: str, params: dict[str, Any] | None = None) -> bool:
        """Dispatch an event.

        Returns immediately; animations chain in the background and the
        machine stays busy until they finish (see ``transition_token``).

        Args:
            event: Event name
            params: Event parameters

        Returns:
            True if a transition was accepted. False when another transition
            is in flight, no transition matches, or a condition/guard rejects.
        """
        params = dict(params or {})
        if self._transitioning:
            logger.debug(f"State machine '{self.name}' busy; event '{event}' ignored")
            return False

        self._transitioning = True
        transition = self._find(self.state, event)
        if transition is None:
            self._emit(event, params)
            self._transitioning = False
            logger.debug(f"No transition for '{event}' from state '{self.state}'")
            return False

        self.context.event = event
        self.context.params = params
        if not self._passes(transition, "condition") or not self._passes(transition, "guard"):
            self._transitioning = False
            return False

        source = self.states[self.state]
        target = self.states[transition.to_state]
        logger.info(f"State machine '{self.name}': {source.id} → {target.id} on '{event}'")

        self._in_flight = _InFlight(transition, source, target, event)
        self.transition_token = CompletionToken(f"{self.name}:{event}")
        self._run_steps(
            [
                lambda: self._play(source.exit_animation),
                lambda: self._transition_step(transition, source, target),
                self._commit,
                lambda: self._play(target.enter_animation),
            ]
        )
        return True

    def reset(self) -> bool:
        """Send the ``reset`` event."""
        return self.send(RESET_EVENT)

    def cancel_transition(self) -> bool:
        """Interrupt the in-flight transition if it is interruptible.

        Before the state change commits, the transition is abandoned and the
        machine stays in its source state. After the commit, only the enter
        animation is cut short.
        """
        flight = self._in_flight
        if flight is None or not flight.transition.interruptible:
            return False
        if flight.step_token is not None and not flight.step_token.done:
            flight.step_token.cancel()
        return True

    def _passes(self, transition: Transition, kind: str) -> bool:
        check = getattr(transition, kind)
        if check is None:
            return True
        try:
            accepted = bool(check(self.context))
        except Exception:
            logger.exception(f"Transition {kind} for '{transition.event}' raised; rejecting")
            return False
        if not accepted:
            logger.debug(f"Transition {kind} rejected '{transition.event}'")
        return accepted

    def _run_steps(self, steps: list[Step]) -> None:
        flight = self._in_flight
        index = 0

        def advance(_: CompletionToken | None = None) -> None:
            nonlocal index
            while index < len(steps):
                if flight.step_token is not None and flight.step_token.cancelled:
                    flight.step_token = None
                    if not flight.committed:
                        self._abort(flight)
                        return
                try:
                    token = steps[index]()
                except Exception:
                    logger.exception(
                        f"State machine '{self.name}' step {index} of '{flight.event}' failed"
                    )
                    token = None
                index += 1
                flight.step_token = token
                if token is not None and not token.done:
                    token.add_done_callback(advance)
                    return
            self._finalize(flight)

        advance()

    def _play(self, spec: AnimationSpec | None) -> CompletionToken | None:
        if spec is None:
            return None
        if self.host is None:
            logger.debug(f"State machine '{self.name}' has no host; skipping animation {spec!r}")
            return None
        return self.host.animate(self.targets, spec)

    def _transition_step(
        self, transition: Transition, source: State, target: State
    ) -> CompletionToken | None:
        if self.host is not None and transition.properties:
            self._apply_snapshot(properties=transition.properties)
        if transition.animation is not None:
            return self._play(transition.animation)
        if transition.duration_ms and self.host is not None and (source.styles or target.styles):
            return self._tween(transition, source, target)
        return None

    def _tween(self, transition: Transition, source: State, target: State) -> CompletionToken:
        """Interpolate source styles into target styles over the transition duration."""
        tween = StateInterpolator(
            source.styles, target.styles, transition.duration_ms, easing=transition.easing or "linear"
        )
        host = self.host
        stage = CallbackStage(
            id=f"{self.name}:{transition.event}:tween",
            duration_ms=transition.duration_ms,
            easing="linear",
            callback=lambda progress: self._apply_snapshot(tween.at(progress)),
        )
        clock = PlaybackClock(compile_timeline([stage]), host.loop, name=stage.id)
        return clock.play()

    def _commit(self) -> None:
        flight = self._in_flight
        for action in flight.transition.actions:
            try:
                action(self.context)
            except Exception:
                logger.exception(f"Transition action for '{flight.event}' failed")

        self._cancel_timeout()
        self.context.previous_state = flight.source.id
        self.context.current_state = flight.target.id
        flight.committed = True

        if self.host is not None and (flight.target.styles or flight.target.properties):
            self._apply_snapshot(flight.target.styles, flight.target.properties)

    def _apply_snapshot(
        self, styles: dict[str, Any] | None = None, properties: dict[str, Any] | None = None
    ) -> None:
        try:
            self.host.apply_snapshot(self.targets, styles, properties)
        except Exception:
            logger.exception(f"State machine '{self.name}' failed to apply a snapshot")

    def _finalize(self, flight: _InFlight) -> None:
        from_state, to_state = flight.source.id, flight.target.id
        self.context.history.append(
            TransitionRecord(
                from_state=from_state,
                to_state=to_state,
                event=flight.event,
                timestamp=time.time() * 1000.0,
            )
        )
        if len(self.context.history) > self.history_limit:
            del self.context.history[: len(self.context.history) - self.history_limit]

        if self.persistence_enabled:
            self.persist()

        if self.on_state_change is not None:
            try:
                self.on_state_change(from_state, to_state, self.context)
            except Exception:
                logger.exception(f"State change callback of '{self.name}' failed")

        self._emit("stateChanged", {"from": from_state, "to": to_state})
        self._emit(f"state:{to_state}", {})

        self._in_flight = None
        self._transitioning = False
        self.transition_token.resolve(to_state)
        self._schedule_timeout(flight.target)

    def _abort(self, flight: _InFlight) -> None:
        logger.info(f"State machine '{self.name}': transition '{flight.event}' cancelled")
        self._in_flight = None
        self._transitioning = False
        self.transition_token.cancel()
        self._emit("transitionCancelled", {"event": flight.event, "from": flight.source.id})

    # ========== TIMEOUTS ==========

    def _schedule_timeout(self, state: State) -> None:
        if state.duration_ms <= 0 or self._find(state.id, TIMEOUT_EVENT) is None:
            return
        if self.host is None:
            logger.warning(f"State '{state.id}' has a timeout but the machine has no host")
            return
        self._timeout_token = self.host.loop.schedule(
            state.duration_ms, self._fire_timeout, name=f"{self.name}:{state.id}:timeout"
        )

    def _fire_timeout(self) -> None:
        self._timeout_token = None
        if self._find(self.state, TIMEOUT_EVENT) is not None:
            self.send(TIMEOUT_EVENT)

    def _cancel_timeout(self) -> None:
        if self._timeout_token is not None:
            self._timeout_token.cancel()
            self._timeout_token = None

    # ========== PERSISTENCE ==========

    def snapshot(self) -> MachineSnapshot:
        return MachineSnapshot(
            current_state=self.state,
            previous_state=self.previous_state,
            history=list(self.context.history),
            data=dict(self.context.data),
        )

    def persist(self) -> bool:
        """Write a snapshot to the store. Failures are logged, not raised."""
        if not self.persistence_enabled:
            return False
        try:
            self.store.set(self.storage_key, self.snapshot().model_dump(mode="json"))
        except Exception as e:
            logger.warning(f"Failed to persist state machine '{self.name}': {e}")
            return False
        return True

    def restore(self) -> bool:
        """Load a snapshot from the store.

        The snapshot is accepted only if its current state still exists.
        Failures are logged, not raised.
        """
        if not self.persistence_enabled:
            return False
        try:
            raw = self.store.get(self.storage_key)
        except Exception as e:
            logger.warning(f"Failed to read state machine '{self.name}' snapshot: {e}")
            return False
        if raw is None:
            return False

        try:
            snapshot = MachineSnapshot.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed snapshot for '{self.name}': {e}")
            return False

        if snapshot.current_state not in self.states:
            logger.debug(
                f"Ignoring snapshot for '{self.name}': state '{snapshot.current_state}' no longer exists"
            )
            return False

        self.context.current_state = snapshot.current_state
        self.context.previous_state = snapshot.previous_state
        self.context.history = list(snapshot.history)
        self.context.data = dict(snapshot.data)
        logger.debug(f"Restored state machine '{self.name}' to '{self.state}'")
        return True
