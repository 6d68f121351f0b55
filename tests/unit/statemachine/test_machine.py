"""Tests for the animation state machine."""

from __future__ import annotations

from typing import Any

import pytest

from choreo.core.capabilities import InMemorySurface
from choreo.core.config.models import AppConfig
from choreo.core.errors import InvalidStateError
from choreo.core.orchestrator import OrchestratorContext
from choreo.core.playback import FrameLoop
from choreo.core.statemachine import (
    AnimationStateMachine,
    State,
    Transition,
    TransitionContext,
)


def _toggle(**kwargs: Any) -> AnimationStateMachine:
    return AnimationStateMachine(
        states=[State(id="off"), State(id="on")],
        transitions=[
            Transition(from_state="off", event="toggle", to_state="on"),
            Transition(from_state="on", event="toggle", to_state="off"),
        ],
        initial_state="off",
        **kwargs,
    )


# ============================================================================
# Construction
# ============================================================================


class TestValidation:
    def test_unknown_initial_state(self) -> None:
        with pytest.raises(InvalidStateError):
            AnimationStateMachine([State(id="a")], [], "b")

    def test_unknown_transition_target(self) -> None:
        with pytest.raises(InvalidStateError):
            AnimationStateMachine(
                [State(id="a")], [Transition(from_state="a", event="go", to_state="b")], "a"
            )

    def test_unknown_transition_source(self) -> None:
        with pytest.raises(InvalidStateError):
            AnimationStateMachine(
                [State(id="a")], [Transition(from_state="z", event="go", to_state="a")], "a"
            )

    def test_duplicate_state(self) -> None:
        with pytest.raises(InvalidStateError):
            AnimationStateMachine([State(id="a"), State(id="a")], [], "a")

    def test_state_name_defaults_to_id(self) -> None:
        assert State(id="idle").name == "idle"


# ============================================================================
# Transitions without a host
# ============================================================================


class TestSend:
    def test_accepted_transition(self) -> None:
        machine = _toggle()

        assert machine.send("toggle") is True
        assert machine.state == "on"
        assert machine.previous_state == "off"
        assert not machine.transitioning
        assert machine.transition_token.value == "on"

    def test_unmatched_event_is_rejected_but_emitted(self) -> None:
        machine = _toggle()
        received: list[dict[str, Any]] = []
        machine.on("poke", received.append)

        assert machine.send("poke", {"n": 1}) is False
        assert machine.state == "off"
        assert received == [{"n": 1}]

    def test_can_and_available(self) -> None:
        machine = _toggle()
        assert machine.can("toggle")
        assert not machine.can("explode")
        assert [t.to_state for t in machine.available_transitions()] == ["on"]

    def test_first_declared_match_wins(self) -> None:
        machine = AnimationStateMachine(
            states=[State(id="a"), State(id="b"), State(id="c")],
            transitions=[
                Transition(from_state="*", event="go", to_state="c"),
                Transition(from_state="a", event="go", to_state="b"),
            ],
            initial_state="a",
        )

        machine.send("go")
        assert machine.state == "c"

    def test_exact_source_declared_first_wins(self) -> None:
        machine = AnimationStateMachine(
            states=[State(id="a"), State(id="b"), State(id="c")],
            transitions=[
                Transition(from_state="a", event="go", to_state="b"),
                Transition(from_state="*", event="go", to_state="c"),
            ],
            initial_state="a",
        )

        machine.send("go")
        assert machine.state == "b"
        machine.send("go")
        assert machine.state == "c"

    def test_condition_rejects(self) -> None:
        machine = AnimationStateMachine(
            states=[State(id="a"), State(id="b")],
            transitions=[
                Transition(
                    from_state="a",
                    event="go",
                    to_state="b",
                    condition=lambda ctx: ctx.params.get("ok", False),
                )
            ],
            initial_state="a",
        )

        assert machine.send("go") is False
        assert machine.send("go", {"ok": True}) is True
        assert machine.state == "b"

    def test_raising_guard_rejects(self) -> None:
        def guard(ctx: TransitionContext) -> bool:
            raise RuntimeError("nope")

        machine = AnimationStateMachine(
            states=[State(id="a"), State(id="b")],
            transitions=[Transition(from_state="a", event="go", to_state="b", guard=guard)],
            initial_state="a",
        )

        assert machine.send("go") is False
        assert machine.state == "a"
        assert not machine.transitioning

    def test_actions_and_callbacks(self) -> None:
        calls: list[Any] = []
        machine = AnimationStateMachine(
            states=[State(id="a"), State(id="b")],
            transitions=[
                Transition(
                    from_state="a",
                    event="go",
                    to_state="b",
                    actions=[lambda ctx: calls.append(("action", ctx.event))],
                )
            ],
            initial_state="a",
            on_state_change=lambda src, dst, ctx: calls.append(("changed", src, dst)),
        )
        machine.on("stateChanged", lambda payload: calls.append(("event", payload)))
        machine.on("state:b", lambda payload: calls.append("entered-b"))
        machine.on("*", lambda payload: calls.append(("any", payload["event"])))

        machine.send("go")

        assert calls == [
            ("action", "go"),
            ("changed", "a", "b"),
            ("event", {"from": "a", "to": "b"}),
            ("any", "stateChanged"),
            "entered-b",
            ("any", "state:b"),
        ]

    def test_off_removes_listener(self) -> None:
        machine = _toggle()
        received: list[dict[str, Any]] = []
        machine.on("stateChanged", received.append)
        machine.off("stateChanged", received.append)

        machine.send("toggle")

        assert received == []

    def test_history_is_bounded(self) -> None:
        machine = _toggle(history_limit=2)

        for _ in range(5):
            machine.send("toggle")

        assert len(machine.history) == 2
        assert machine.history[-1].to_state == "on"
        machine.clear_history()
        assert machine.history == []

    def test_data(self) -> None:
        machine = _toggle()
        machine.set_data("count", 3)
        assert machine.get_data("count") == 3
        assert machine.get_data("missing", "x") == "x"

    def test_reset_uses_wildcard(self) -> None:
        machine = AnimationStateMachine(
            states=[State(id="idle"), State(id="busy")],
            transitions=[
                Transition(from_state="idle", event="work", to_state="busy"),
                Transition(from_state="*", event="reset", to_state="idle"),
            ],
            initial_state="idle",
        )
        machine.send("work")

        assert machine.reset() is True
        assert machine.is_in("idle")


# ============================================================================
# Animated transitions
# ============================================================================


def _animated(context: OrchestratorContext, **transition: Any) -> AnimationStateMachine:
    return context.create_state_machine(
        "panel",
        states=[
            State(id="closed", exit_animation=transition.pop("exit", None)),
            State(id="open", enter_animation=transition.pop("enter", None)),
        ],
        transitions=[Transition(from_state="closed", event="open", to_state="open", **transition)],
        initial_state="closed",
        targets=["a"],
    )


class TestAnimatedTransitions:
    def test_busy_until_enter_animation_finishes(
        self, context: OrchestratorContext, surfaces: dict[str, InMemorySurface]
    ) -> None:
        machine = _animated(context, enter="fadeIn")

        assert machine.send("open") is True
        assert machine.state == "open"
        assert machine.transitioning
        assert machine.send("open") is False

        context.loop.advance(300)

        assert not machine.transitioning
        assert machine.transition_token.done
        assert surfaces["a"].styles["opacity"] == 1.0

    def test_state_commits_after_exit_animation(self, context: OrchestratorContext) -> None:
        machine = _animated(context, exit="fadeOut")

        machine.send("open")
        assert machine.state == "closed"

        context.loop.advance(300)
        assert machine.state == "open"

    def test_cancel_before_commit_stays_in_source(self, context: OrchestratorContext) -> None:
        cancelled: list[dict[str, Any]] = []
        machine = _animated(context, exit="fadeOut")
        machine.on("transitionCancelled", cancelled.append)
        machine.send("open")
        context.loop.advance(100)

        assert machine.cancel_transition() is True

        assert machine.state == "closed"
        assert not machine.transitioning
        assert machine.transition_token.cancelled
        assert cancelled == [{"event": "open", "from": "closed"}]
        assert machine.history == []

    def test_cancel_after_commit_cuts_enter_animation(self, context: OrchestratorContext) -> None:
        machine = _animated(context, enter="fadeIn")
        machine.send("open")
        context.loop.advance(100)

        assert machine.cancel_transition() is True

        assert machine.state == "open"
        assert not machine.transitioning
        assert machine.history[-1].to_state == "open"

    def test_non_interruptible(self, context: OrchestratorContext) -> None:
        machine = _animated(context, exit="fadeOut", interruptible=False)
        machine.send("open")

        assert machine.cancel_transition() is False
        context.loop.advance(300)
        assert machine.state == "open"

    def test_style_tween(
        self, context: OrchestratorContext, surfaces: dict[str, InMemorySurface]
    ) -> None:
        machine = context.create_state_machine(
            "dimmer",
            states=[
                State(id="dark", styles={"opacity": 0.0}),
                State(id="lit", styles={"opacity": 1.0}),
            ],
            transitions=[
                Transition(from_state="dark", event="light", to_state="lit", duration_ms=100)
            ],
            initial_state="dark",
            targets=["a"],
        )

        machine.send("light")
        context.loop.advance(50)
        assert surfaces["a"].styles["opacity"] == pytest.approx(0.5, abs=0.05)
        assert machine.state == "dark"

        context.loop.advance(50)
        assert machine.state == "lit"
        assert surfaces["a"].styles["opacity"] == 1.0

    def test_transition_properties_applied(
        self, context: OrchestratorContext, surfaces: dict[str, InMemorySurface]
    ) -> None:
        machine = _animated(context, properties={"aria-expanded": "true"})

        machine.send("open")

        assert surfaces["a"].properties["aria-expanded"] == "true"



class _BrokenApplier:
    def apply(self, handle: Any, styles: dict[str, Any], properties: dict[str, Any] | None) -> None:
        raise RuntimeError("surface gone")


class TestFailureIsolation:
    @pytest.fixture
    def broken_context(self, loop: FrameLoop) -> OrchestratorContext:
        context = OrchestratorContext(AppConfig(), loop=loop, applier=_BrokenApplier())
        context.resolver.register("a", InMemorySurface("a"))
        return context

    def _lamp(self, context: OrchestratorContext, **transition: Any) -> AnimationStateMachine:
        return context.create_state_machine(
            "lamp",
            states=[
                State(id="off", styles={"opacity": 0.0}),
                State(id="on", styles={"opacity": 1.0}),
            ],
            transitions=[
                Transition(from_state="off", event="go", to_state="on", **transition),
                Transition(from_state="on", event="go", to_state="off"),
            ],
            initial_state="off",
            targets=["a"],
        )

    def test_failing_applier_on_commit_releases_guard(
        self, broken_context: OrchestratorContext
    ) -> None:
        machine = self._lamp(broken_context)

        assert machine.send("go") is True

        assert machine.state == "on"
        assert not machine.transitioning
        assert machine.transition_token.done
        assert machine.send("go") is True
        assert machine.state == "off"

    def test_failing_applier_in_transition_properties(
        self, broken_context: OrchestratorContext
    ) -> None:
        machine = self._lamp(broken_context, properties={"aria-pressed": "true"})

        assert machine.send("go") is True
        assert machine.state == "on"
        assert not machine.transitioning

    def test_failing_applier_during_tween(self, broken_context: OrchestratorContext) -> None:
        machine = self._lamp(broken_context, duration_ms=100)

        machine.send("go")
        broken_context.loop.advance(100)

        assert machine.state == "on"
        assert not machine.transitioning
        assert machine.send("go") is True

    def test_failing_listener_does_not_block(self) -> None:
        machine = _toggle()

        def explode(payload: dict[str, Any]) -> None:
            raise ValueError("listener bug")

        machine.on("stateChanged", explode)

        assert machine.send("toggle") is True
        assert not machine.transitioning
        assert machine.send("toggle") is True
        assert machine.state == "off"


class TestTimeouts:
    def _machine(self, context: OrchestratorContext) -> AnimationStateMachine:
        return context.create_state_machine(
            "toast",
            states=[State(id="hidden"), State(id="shown", duration_ms=100)],
            transitions=[
                Transition(from_state="hidden", event="show", to_state="shown"),
                Transition(from_state="shown", event="dismiss", to_state="hidden"),
                Transition(from_state="shown", event="timeout", to_state="hidden"),
            ],
            initial_state="hidden",
        )

    def test_timeout_fires(self, context: OrchestratorContext) -> None:
        machine = self._machine(context)
        machine.send("show")

        context.loop.advance(90)
        assert machine.state == "shown"
        context.loop.advance(10)
        assert machine.state == "hidden"
        assert machine.history[-1].event == "timeout"

    def test_timeout_cancelled_by_state_change(self, context: OrchestratorContext) -> None:
        machine = self._machine(context)
        machine.send("show")
        context.loop.advance(50)
        machine.send("dismiss")
        machine.send("show")

        context.loop.advance(60)

        assert machine.state == "shown"
        assert context.loop.pending_count == 1
