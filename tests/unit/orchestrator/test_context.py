"""Tests for the orchestrator context."""

from __future__ import annotations

import pytest

from choreo.core.capabilities import InMemorySurface
from choreo.core.config.models import AppConfig
from choreo.core.errors import SequenceNotFoundError
from choreo.core.orchestrator import ChoreoEvent, OrchestratorContext
from choreo.core.playback import FrameLoop, PlaybackState
from choreo.core.stagger import StaggerOptions
from choreo.core.timeline import CallbackStage, PresetRef


def _stage(stage_id: str, duration_ms: float = 100.0) -> CallbackStage:
    return CallbackStage(id=stage_id, duration_ms=duration_ms, callback=lambda p: None)


class TestAnimate:
    def test_preset_by_name(
        self, context: OrchestratorContext, surfaces: dict[str, InMemorySurface]
    ) -> None:
        token = context.animate("a", "fadeIn")

        context.loop.advance(290)
        assert not token.done
        context.loop.advance(10)

        assert token.done
        assert surfaces["a"].styles["opacity"] == 1.0

    def test_overrides(self, context: OrchestratorContext) -> None:
        token = context.animate(["a", "b"], "fadeIn", duration_ms=100, delay_ms=50)

        context.loop.advance(150)

        assert token.done

    def test_preset_ref(self, context: OrchestratorContext) -> None:
        token = context.animate("a", PresetRef(name="fadeOut", duration_ms=120))
        context.loop.advance(120)
        assert token.done

    def test_stagger(
        self, context: OrchestratorContext, surfaces: dict[str, InMemorySurface]
    ) -> None:
        token = context.animate(
            ["a", "b", "c"],
            "fadeIn",
            duration_ms=100,
            easing="linear",
            stagger=StaggerOptions(delay_ms=100),
        )

        context.loop.advance(150)
        assert surfaces["a"].styles["opacity"] == 1.0
        assert surfaces["b"].styles["opacity"] == pytest.approx(0.5)
        assert surfaces["c"].styles["opacity"] == 0.0

        context.loop.advance(150)
        assert token.done

    def test_generated_ids_are_registered(self, context: OrchestratorContext) -> None:
        context.animate("a", "fadeIn")
        context.animate("b", "fadeIn")

        assert context.sequence_ids() == ["anim-1", "anim-2"]


class TestSequenceRegistry:
    def test_create_and_control(self, context: OrchestratorContext) -> None:
        clock = context.create_sequence("intro", [_stage("x"), _stage("y")])

        token = context.play("intro")
        context.loop.advance(50)
        assert context.pause("intro") is True
        assert clock.state is PlaybackState.PAUSED
        assert context.resume("intro") is True
        context.loop.advance(150)

        assert token.done
        assert context.has_sequence("intro")

    def test_auto_play(self, context: OrchestratorContext) -> None:
        clock = context.create_sequence("intro", [_stage("x")], auto_play=True)
        assert clock.is_playing

    def test_replacing_stops_previous(self, context: OrchestratorContext) -> None:
        first = context.create_sequence("intro", [_stage("x")], auto_play=True)
        token = first.completion

        second = context.create_sequence("intro", [_stage("y")])

        assert token.cancelled
        assert context.get_sequence("intro") is second

    def test_unknown_sequence(self, context: OrchestratorContext) -> None:
        with pytest.raises(SequenceNotFoundError):
            context.play("nope")
        with pytest.raises(KeyError):
            context.get_sequence("nope")

    def test_stop_and_remove(self, context: OrchestratorContext) -> None:
        token = context.create_sequence("intro", [_stage("x")], auto_play=True).completion

        assert context.stop("intro") is True
        assert token.cancelled
        assert context.remove_sequence("intro") is True
        assert context.remove_sequence("intro") is False
        assert not context.has_sequence("intro")

    def test_lifecycle_events_reach_bus(self, context: OrchestratorContext) -> None:
        seen: list[tuple[str, str]] = []
        context.events.subscribe("*", lambda e: seen.append((e.name, e.payload["sequence_id"])))

        context.create_sequence("intro", [_stage("x")], auto_play=True)
        context.pause("intro")
        context.resume("intro")
        context.loop.advance(100)

        assert seen == [
            ("start", "intro"),
            ("pause", "intro"),
            ("resume", "intro"),
            ("complete", "intro"),
        ]

    def test_clear(self, context: OrchestratorContext) -> None:
        token = context.create_sequence("intro", [_stage("x")], auto_play=True).completion
        context.sync.create_group("g")

        context.clear()

        assert token.cancelled
        assert context.sequence_ids() == []
        assert context.sync.group_ids() == []


class TestSnapshotsAndState:
    def test_apply_snapshot(
        self, context: OrchestratorContext, surfaces: dict[str, InMemorySurface]
    ) -> None:
        context.apply_snapshot(["a", "b"], {"rotate": 45}, {"hidden": False})

        assert surfaces["a"].styles["rotate"] == "45deg"
        assert surfaces["b"].properties["hidden"] is False

    def test_unresolved_snapshot_target_is_skipped(self, context: OrchestratorContext) -> None:
        context.apply_snapshot("ghost", {"opacity": 1})

    def test_shared_state(self, context: OrchestratorContext) -> None:
        context.set_state("user", "ada")
        assert context.get_state("user") == "ada"
        assert context.get_state("missing", 0) == 0


class TestConfiguration:
    def test_defaults_without_collaborators(self) -> None:
        context = OrchestratorContext()
        assert context.loop.frame_interval_ms == pytest.approx(1000.0 / 60.0)
        assert context.compiler.cascade_offset_ms == 100.0

    def test_config_feeds_collaborators(self, loop: FrameLoop) -> None:
        config = AppConfig.model_validate(
            {"sync": {"cascade_offset_ms": 40}, "motion": {"reduced_motion": True}}
        )
        context = OrchestratorContext(config, loop=loop)

        assert context.sync.cascade_offset_ms == 40
        assert context.motion.prefers_reduced_motion

    def test_reduced_motion_shortens_stages(self, loop: FrameLoop) -> None:
        config = AppConfig.model_validate({"motion": {"reduced_motion": True}})
        context = OrchestratorContext(config, loop=loop)
        stage = CallbackStage(
            id="hero",
            duration_ms=1000,
            callback=lambda p: None,
            reduced_motion_alternative=_stage("hero-lite", 50),
        )

        clock = context.create_sequence("s", [stage])

        assert clock.duration_ms == 50


@pytest.mark.asyncio
async def test_wait_drives_loop(context: OrchestratorContext) -> None:
    received: list[ChoreoEvent] = []
    context.events.subscribe("complete", received.append)
    token = context.animate("a", "fadeIn", duration_ms=100)

    assert await context.wait(token) is True
    assert context.loop.now() >= 100
    assert received[0].payload == {"sequence_id": "anim-1"}
