"""Tests for sync groups and the sync coordinator."""

from __future__ import annotations

from typing import Any

import pytest

from choreo.core.capabilities import InMemorySurface
from choreo.core.errors import EmptyGroupError, GroupLockedError
from choreo.core.orchestrator import OrchestratorContext
from choreo.core.statemachine import State, Transition
from choreo.core.sync import (
    AnimationPhase,
    SyncCoordinator,
    SynchronizationStrategy,
    SyncedAnimation,
    SyncGroup,
    SyncGroupOptions,
    SyncGroupState,
    SyncPoint,
)


def _group(context: OrchestratorContext, **options: Any) -> SyncGroup:
    group = context.sync.create_group("hero", **options)
    group.add_animations(
        [
            SyncedAnimation(id="a", target="a", animation="fadeIn", duration_ms=300),
            SyncedAnimation(id="b", target="b", animation="fadeIn", duration_ms=500),
        ]
    )
    return group


class TestStructure:
    def test_initialize_locks_group(self, context: OrchestratorContext) -> None:
        group = _group(context).initialize()

        assert group.state is SyncGroupState.READY
        assert group.durations == {"a": 500, "b": 500}
        with pytest.raises(GroupLockedError):
            group.add_animation(
                SyncedAnimation(id="c", target="c", animation="fadeIn", duration_ms=100)
            )
        with pytest.raises(GroupLockedError):
            group.remove_animation("a")
        with pytest.raises(GroupLockedError):
            group.initialize()

    def test_empty_group(self, context: OrchestratorContext) -> None:
        with pytest.raises(EmptyGroupError):
            context.sync.create_group("empty").initialize()

    def test_remove_before_initialize(self, context: OrchestratorContext) -> None:
        group = _group(context).remove_animation("b").initialize()
        assert list(group.timings) == ["a"]


class TestPlayback:
    def test_members_finish_together(
        self, context: OrchestratorContext, surfaces: dict[str, InMemorySurface]
    ) -> None:
        completed: list[str] = []
        group = _group(context, on_complete=lambda: completed.append("done"))

        token = group.play()
        context.loop.advance(250)
        assert group.progress() == pytest.approx(0.5)

        context.loop.advance(250)

        assert token.done
        assert group.state is SyncGroupState.COMPLETED
        assert group.progress() == 1.0
        assert completed == ["done"]
        assert surfaces["a"].styles["opacity"] == 1.0
        assert surfaces["b"].styles["opacity"] == 1.0

    def test_standard_sync_points_fire_in_order(self, context: OrchestratorContext) -> None:
        group = _group(context)
        group.play()
        context.loop.advance(500)

        assert group.fired == [
            ("a", "start"),
            ("b", "start"),
            ("a", "middle"),
            ("b", "middle"),
            ("a", "end"),
            ("b", "end"),
        ]

    def test_unresolved_member_keeps_group_timing(self, context: OrchestratorContext) -> None:
        group = context.sync.create_group("ghosts")
        group.add_animations(
            [
                SyncedAnimation(id="a", target="a", animation="fadeIn", duration_ms=300),
                SyncedAnimation(id="g", target="ghost", animation="fadeIn", duration_ms=500),
            ]
        )

        token = group.play()
        context.loop.advance(500)

        assert token.done
        assert group.state is SyncGroupState.COMPLETED
        assert ("g", "end") in group.fired

    def test_sync_point_callbacks(self, context: OrchestratorContext) -> None:
        reached: list[tuple[str, list[str]]] = []
        listened: list[str] = []
        group = _group(
            context,
            sync_points=[SyncPoint(id="beat", position=0.2)],
            on_sync_point=lambda point, ids: reached.append((point.id, ids)),
        )
        group.add_sync_point_listener("a", lambda point: listened.append(point.id))

        group.play()
        context.loop.advance(100)

        assert reached == [("start", ["a"]), ("start", ["b"]), ("beat", ["a"]), ("beat", ["b"])]
        assert listened == ["start", "beat"]

    def test_sync_point_state_snapshot(
        self, context: OrchestratorContext, surfaces: dict[str, InMemorySurface]
    ) -> None:
        group = context.sync.create_group("g")
        group.add_animation(
            SyncedAnimation(
                id="a",
                target="a",
                animation="fadeIn",
                duration_ms=200,
                states={"middle": State(id="halfway", styles={"color": "red"})},
            )
        )

        group.play()
        context.loop.advance(90)
        assert "color" not in surfaces["a"].styles
        context.loop.advance(10)
        assert surfaces["a"].styles["color"] == "red"

    def test_pause_resume(self, context: OrchestratorContext) -> None:
        group = _group(context)
        token = group.play()
        context.loop.advance(100)

        assert group.pause() is True
        context.loop.advance(1000)
        assert group.progress() == pytest.approx(0.2)
        assert group.resume() is True

        context.loop.advance(390)
        assert not token.done
        context.loop.advance(10)
        assert token.done

    def test_cancel(self, context: OrchestratorContext) -> None:
        group = _group(context)
        token = group.play()
        context.loop.advance(100)

        assert group.cancel() is True
        assert group.cancel() is False

        context.loop.advance(500)
        assert token.cancelled
        assert group.state is SyncGroupState.CANCELED
        assert group.progress() == 0.0
        assert ("a", "end") not in group.fired

    def test_replay_after_completion(self, context: OrchestratorContext) -> None:
        group = _group(context)
        first = group.play()
        context.loop.advance(500)

        second = group.play()

        assert first.done
        assert second is not first
        assert group.state is SyncGroupState.PLAYING
        assert group.fired == [("a", "start"), ("b", "start")]

    def test_cascade_starts_members_late(
        self, context: OrchestratorContext, surfaces: dict[str, InMemorySurface]
    ) -> None:
        group = _group(context, strategy=SynchronizationStrategy.CASCADE)
        group.play()

        context.loop.advance(50)

        assert group.start_times == {"a": 0, "b": 100}
        assert "opacity" in surfaces["a"].styles
        assert "opacity" not in surfaces["b"].styles


class TestStateMachineBinding:
    def _machine(self, context: OrchestratorContext):
        return context.create_state_machine(
            "indicator",
            states=[State(id="waiting"), State(id="halfway")],
            transitions=[
                Transition(
                    from_state="waiting",
                    event="syncPoint",
                    to_state="halfway",
                    condition=lambda ctx: ctx.params["state_id"] == "halfway",
                )
            ],
            initial_state="waiting",
        )

    def test_sync_points_drive_machine(self, context: OrchestratorContext) -> None:
        machine = self._machine(context)
        group = _group(context).connect_state_machine("a", machine, {"middle": "halfway"})

        group.play()
        context.loop.advance(240)
        assert machine.state == "waiting"
        context.loop.advance(10)
        assert machine.state == "halfway"

    def test_disconnect(self, context: OrchestratorContext) -> None:
        machine = self._machine(context)
        group = _group(context).connect_state_machine("a", machine, {"middle": "halfway"})
        group.disconnect_state_machine("a")

        group.play()
        context.loop.advance(500)

        assert machine.state == "waiting"


class TestCoordinator:
    def test_registry(self, context: OrchestratorContext) -> None:
        coordinator = context.sync
        group = coordinator.create_group("g1", strategy=SynchronizationStrategy.CASCADE)

        assert group.options.cascade_offset_ms == context.config.sync.cascade_offset_ms
        assert coordinator.get_group("g1") is group
        assert coordinator.get_group("missing") is None
        assert coordinator.group_ids() == ["g1"]

    def test_create_from_options(self, context: OrchestratorContext) -> None:
        group = context.sync.create_group(SyncGroupOptions(id="opts", duration_ms=900))
        assert group.options.duration_ms == 900

    def test_remove_cancels_running_group(self, context: OrchestratorContext) -> None:
        group = _group(context)
        token = group.play()

        assert context.sync.remove_group("hero") is True
        assert context.sync.remove_group("hero") is False
        assert token.cancelled

    def test_cancel_all(self, context: OrchestratorContext) -> None:
        first = _group(context)
        token = first.play()
        context.sync.create_group("idle")

        context.sync.cancel_all()

        assert token.cancelled

    def test_default_sync_points(self) -> None:
        points = SyncCoordinator.default_sync_points()
        assert [p.id for p in points] == ["prep", "start", "middle", "end", "after"]
        assert SyncCoordinator.default_sync_points([AnimationPhase.MIDDLE])[0].position == 0.5
