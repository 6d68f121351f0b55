"""Orchestrator context.

The one object an application constructs and passes around. It owns the
frame loop, the target capabilities, presets, the event bus, the sync
coordinator and the registry of named sequences.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from choreo.core.capabilities.defaults import (
    HandleStyleApplier,
    RegistryTargetResolver,
    StaticMotionPreference,
)
from choreo.core.capabilities.protocols import MotionPreference, StyleApplier, TargetResolver
from choreo.core.config.models import AppConfig
from choreo.core.errors import SequenceNotFoundError
from choreo.core.interpolation.codecs import PolylinePathCodec
from choreo.core.interpolation.easing import resolve_easing
from choreo.core.interpolation.models import BlendMode, EasingLike
from choreo.core.orchestrator.events import EventBus
from choreo.core.playback.clock import PlaybackClock
from choreo.core.playback.driver import RenderingStageDriver
from choreo.core.playback.loop import FrameLoop
from choreo.core.playback.tokens import CompletionToken
from choreo.core.stagger.models import StaggerOptions, StaggerTarget
from choreo.core.statemachine.machine import AnimationStateMachine
from choreo.core.statemachine.models import State, Transition
from choreo.core.statemachine.persistence import KeyValueStore
from choreo.core.sync.coordinator import SyncCoordinator
from choreo.core.timeline.compiler import TimelineCompiler
from choreo.core.timeline.models import (
    AnimationDescriptor,
    AnimationSpec,
    AnyStage,
    PlacementMode,
    PlaybackDirection,
)
from choreo.core.timeline.presets import PresetLibrary

logger = logging.getLogger(__name__)

LIFECYCLE_EVENTS = ("start", "complete", "pause", "resume", "cancel")


class OrchestratorContext:
    """Shared orchestration state, constructed once and passed by reference.

    Every collaborator is optional; defaults come from ``config``.

    Args:
        config: Application configuration
        loop: Frame loop (default: monotonic time, configured frame interval)
        resolver: Target resolution capability
        applier: Style application capability
        motion: Motion-preference provider
        presets: Animation preset library
        events: Event bus
        blend_mode: How same-frame writes to one key combine

    Example:
        >>> context = OrchestratorContext(loop=FrameLoop(ManualTimeSource()))
        >>> card = InMemorySurface("card")
        >>> context.resolver.register("card", card)
        >>> token = context.animate("card", "fadeIn")
        >>> context.loop.advance(300)
        >>> token.done, card.styles["opacity"]
        (True, 1.0)
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        loop: FrameLoop | None = None,
        resolver: TargetResolver | None = None,
        applier: StyleApplier | None = None,
        motion: MotionPreference | None = None,
        presets: PresetLibrary | None = None,
        events: EventBus | None = None,
        blend_mode: BlendMode = BlendMode.OVERRIDE,
    ):
        self.config = config or AppConfig()
        self.loop = loop or FrameLoop(frame_interval_ms=self.config.timing.frame_interval_ms)
        self.resolver = resolver or RegistryTargetResolver()
        self.applier = applier or HandleStyleApplier()
        self.motion = motion or StaticMotionPreference.from_config(self.config.motion)
        self.presets = presets or PresetLibrary()
        self.events = events or EventBus()
        self.blend_mode = blend_mode
        self.state: dict[str, Any] = {}

        self.compiler = TimelineCompiler(
            motion=self.motion,
            default_easing=resolve_easing(self.config.interpolation.default_easing),
            stagger=StaggerOptions(
                delay_ms=self.config.stagger.delay_ms,
                distance_band=self.config.stagger.distance_band,
            ),
            cascade_offset_ms=self.config.sync.cascade_offset_ms,
        )
        self.sync = SyncCoordinator(self, cascade_offset_ms=self.config.sync.cascade_offset_ms)

        self._sequences: dict[str, PlaybackClock] = {}
        self._ids = itertools.count(1)

    # ========== CAPABILITIES ==========

    def create_driver(self) -> RenderingStageDriver:
        """Stage driver wired to this context's capabilities and event bus."""
        settings = self.config.interpolation
        return RenderingStageDriver(
            self.resolver,
            self.applier,
            emit=self.events.emit,
            blend_mode=self.blend_mode,
            interpolator_options={
                "snap_threshold": settings.snap_threshold,
                "path_codec": PolylinePathCodec(resolution=settings.path_resolution),
            },
        )

    def resolve_animation(self, spec: AnimationSpec) -> AnimationDescriptor:
        return self.presets.resolve(spec)

    def apply_snapshot(
        self,
        targets: str | Sequence[str],
        styles: Mapping[str, Any] | None = None,
        properties: Mapping[str, Any] | None = None,
    ) -> None:
        """Commit a style/property snapshot to every handle of every target."""
        for ref in [targets] if isinstance(targets, str) else targets:
            handles = self.resolver.resolve(ref)
            if not handles:
                logger.warning(f"Snapshot target '{ref}' did not resolve; skipping")
                continue
            for handle in handles:
                self.applier.apply(handle, dict(styles or {}), dict(properties or {}) or None)

    # ========== ONE-SHOT ANIMATIONS ==========

    def animate(
        self,
        targets: str | Sequence[str],
        spec: AnimationSpec,
        *,
        duration_ms: float | None = None,
        easing: EasingLike = None,
        delay_ms: float = 0.0,
        stagger: StaggerOptions | None = None,
        sequence_id: str | None = None,
    ) -> CompletionToken:
        """Animate targets with a preset or descriptor.

        Each target gets its own style stage, all starting together. With
        ``stagger`` the targets share one stagger stage instead.

        Returns:
            Token resolved when the animation completes
        """
        refs = [targets] if isinstance(targets, str) else list(targets)
        descriptor = self.resolve_animation(spec).with_overrides(duration_ms, easing)
        sequence_id = sequence_id or f"anim-{next(self._ids)}"

        if stagger is not None:
            stages: list[AnyStage] = [
                descriptor.to_stagger_stage(
                    sequence_id,
                    [StaggerTarget(ref=ref) for ref in refs],
                    stagger=stagger,
                    delay_ms=delay_ms,
                )
            ]
        else:
            stages = [
                descriptor.to_stage(f"{sequence_id}:{index}", ref, delay_ms=delay_ms)
                for index, ref in enumerate(refs)
            ]

        clock = self.create_sequence(sequence_id, stages, mode=PlacementMode.PARALLEL)
        logger.debug(f"Animating {refs} with '{descriptor.name}' as '{sequence_id}'")
        return clock.play()

    # ========== SEQUENCE REGISTRY ==========

    def create_sequence(
        self,
        sequence_id: str,
        stages: Iterable[AnyStage],
        *,
        mode: PlacementMode = PlacementMode.SEQUENTIAL,
        repeat_count: int = 0,
        direction: PlaybackDirection = PlaybackDirection.NORMAL,
        yoyo: bool = False,
        rate: float = 1.0,
        auto_play: bool = False,
    ) -> PlaybackClock:
        """Compile stages into a named, playable sequence.

        An existing sequence with the same id is stopped and replaced.
        """
        previous = self._sequences.get(sequence_id)
        if previous is not None:
            logger.debug(f"Replacing sequence '{sequence_id}'")
            previous.stop()

        clock = PlaybackClock.from_stages(
            list(stages),
            self.loop,
            compiler=self.compiler,
            mode=mode,
            name=sequence_id,
            rate=rate,
            repeat_count=repeat_count,
            direction=direction,
            yoyo=yoyo,
            driver=self.create_driver(),
            min_rate=self.config.timing.min_playback_rate,
        )
        for kind in LIFECYCLE_EVENTS:
            clock.on(kind, self._lifecycle_emitter(kind, sequence_id))
        self._sequences[sequence_id] = clock

        if auto_play:
            clock.play()
        return clock

    def _lifecycle_emitter(self, kind: str, sequence_id: str) -> Any:
        def emit() -> None:
            self.events.emit(kind, {"sequence_id": sequence_id})

        return emit

    def get_sequence(self, sequence_id: str) -> PlaybackClock:
        """Look up a sequence.

        Raises:
            SequenceNotFoundError: If no sequence has that id
        """
        clock = self._sequences.get(sequence_id)
        if clock is None:
            raise SequenceNotFoundError(sequence_id)
        return clock

    def has_sequence(self, sequence_id: str) -> bool:
        return sequence_id in self._sequences

    def sequence_ids(self) -> list[str]:
        return list(self._sequences)

    def play(self, sequence_id: str) -> CompletionToken:
        return self.get_sequence(sequence_id).play()

    def pause(self, sequence_id: str) -> bool:
        return self.get_sequence(sequence_id).pause()

    def resume(self, sequence_id: str) -> bool:
        return self.get_sequence(sequence_id).resume()

    def stop(self, sequence_id: str) -> bool:
        return self.get_sequence(sequence_id).stop()

    def remove_sequence(self, sequence_id: str) -> bool:
        clock = self._sequences.pop(sequence_id, None)
        if clock is None:
            return False
        clock.stop()
        return True

    def clear(self) -> None:
        """Stop every sequence and sync group and empty the registries."""
        for clock in self._sequences.values():
            clock.stop()
        self._sequences.clear()
        for group_id in self.sync.group_ids():
            self.sync.remove_group(group_id)
        logger.debug("Orchestrator context cleared")

    # ========== STATE MACHINES ==========

    def create_state_machine(
        self,
        name: str,
        states: Iterable[State],
        transitions: Iterable[Transition],
        initial_state: str,
        *,
        targets: Sequence[str] = (),
        store: KeyValueStore | None = None,
        **kwargs: Any,
    ) -> AnimationStateMachine:
        """State machine bound to this context.

        With a ``store`` the machine persists under the configured key prefix.
        """
        settings = self.config.state_machine
        return AnimationStateMachine(
            states,
            transitions,
            initial_state,
            host=self,
            targets=targets,
            name=name,
            store=store,
            storage_key=f"{settings.storage_key_prefix}{name}" if store is not None else None,
            history_limit=settings.history_limit,
            **kwargs,
        )

    # ========== SHARED STATE ==========

    def get_state(self, key: str, default: Any = None) -> Any:
        """Get state value with optional default.

        Args:
            key: State key
            default: Default value if key not found

        Returns:
            State value or default
        """
        return self.state.get(key, default)

    def set_state(self, key: str, value: Any) -> None:
        self.state[key] = value

    # ========== ASYNC BRIDGE ==========

    async def wait(self, token: CompletionToken, timeout_ms: float | None = None) -> bool:
        """Await a token, driving the frame loop if nothing else is."""
        return await self.loop.wait_for(token, timeout_ms)
