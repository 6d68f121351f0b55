"""Playback clock.

Drives a compiled timeline against the frame loop. Elapsed time is derived,
never accumulated: ``elapsed = (now - start) * rate``. Pausing freezes
elapsed; resuming re-derives ``start`` from it, so pause/resume never drifts.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from choreo.core.interpolation.easing import EasingFn
from choreo.core.playback.driver import StageDriver
from choreo.core.playback.loop import FrameLoop
from choreo.core.playback.tokens import CompletionToken
from choreo.core.timeline.compiler import Timeline, TimelineCompiler
from choreo.core.timeline.models import (
    AnyStage,
    BaseStage,
    CallbackStage,
    PlacementMode,
    PlaybackDirection,
    TimelineEntry,
)
from choreo.core.utils.timing import clamp

logger = logging.getLogger(__name__)

DEFAULT_MIN_RATE = 0.01

CLOCK_EVENTS = frozenset(
    {
        "start",
        "update",
        "complete",
        "pause",
        "resume",
        "cancel",
        "iteration",
        "stage_start",
        "stage_complete",
        "stage_change",
    }
)


class PlaybackState(str, Enum):
    """Clock lifecycle. CANCELLING settles back to IDLE."""

    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    FINISHED = "finished"
    CANCELLING = "cancelling"


class StageState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    FINISHED = "finished"


@dataclass
class _StageRuntime:
    stage: BaseStage
    entry: TimelineEntry
    easing: EasingFn
    state: StageState = StageState.IDLE
    progress: float = 0.0


class PlaybackClock:
    """Plays a timeline.

    Args:
        timeline: Compiled timeline
        loop: Frame loop providing ticks and time
        name: Label for logs and the completion token
        rate: Playback rate (clamped to ``min_rate``)
        repeat_count: Extra cycles; -1 repeats forever
        direction: Cycle direction
        yoyo: Flip direction every completed cycle
        driver: Applies stage effects (None = hooks and callbacks only)
        min_rate: Lowest accepted playback rate

    Callbacks (``on(kind, callback)``):
        start, pause, resume, cancel, complete: no arguments
        update: overall progress
        iteration: cycle index
        stage_start, stage_complete: stage id
        stage_change: stage id, StageState

    Example:
        >>> loop = FrameLoop(ManualTimeSource())
        >>> clock = PlaybackClock(compile_timeline(stages), loop)
        >>> token = clock.play()
        >>> loop.advance(clock.duration_ms)
        >>> token.done, clock.state
        (True, <PlaybackState.FINISHED: 'finished'>)
    """

    def __init__(
        self,
        timeline: Timeline,
        loop: FrameLoop,
        *,
        name: str = "timeline",
        rate: float = 1.0,
        repeat_count: int = 0,
        direction: PlaybackDirection = PlaybackDirection.NORMAL,
        yoyo: bool = False,
        driver: StageDriver | None = None,
        min_rate: float = DEFAULT_MIN_RATE,
    ):
        if repeat_count < -1:
            raise ValueError(f"repeat_count must be >= -1, got {repeat_count}")

        self.name = name
        self.loop = loop
        self.driver = driver
        self.repeat_count = repeat_count
        self.direction = direction
        self.yoyo = yoyo
        self.min_rate = min_rate
        self.state = PlaybackState.IDLE
        self.completion = CompletionToken(name)

        self._rate = max(rate, min_rate)
        self._start_ms = 0.0
        self._offset_ms = 0.0
        self._last_tick_ms = loop.now()
        self._cycle: int | None = None
        self._callbacks: dict[str, list[Callable[..., Any]]] = {kind: [] for kind in CLOCK_EVENTS}
        self._stage_tokens: dict[str, list[CompletionToken]] = {}
        self._time_tokens: list[tuple[float, CompletionToken]] = []

        # Source stages, kept when built from stages so the timeline can be recompiled
        self._stages: list[AnyStage] | None = None
        self._compiler: TimelineCompiler | None = None
        self._mode = PlacementMode.SEQUENTIAL

        self._runtimes: list[_StageRuntime] = []
        self._set_timeline(timeline)

    @classmethod
    def from_stages(
        cls,
        stages: Sequence[AnyStage],
        loop: FrameLoop,
        *,
        compiler: TimelineCompiler | None = None,
        mode: PlacementMode = PlacementMode.SEQUENTIAL,
        **kwargs: Any,
    ) -> PlaybackClock:
        """Compile stages and build a clock that can later add/remove/update them."""
        compiler = compiler or TimelineCompiler()
        clock = cls(compiler.compile(stages, mode), loop, **kwargs)
        clock._stages = list(stages)
        clock._compiler = compiler
        clock._mode = mode
        return clock

    def __repr__(self) -> str:
        return f"PlaybackClock({self.name!r}, {self.state.value}, {self.elapsed_ms:.1f}ms)"

    # ========== QUERIES ==========

    @property
    def rate(self) -> float:
        return self._rate

    @property
    def duration_ms(self) -> float:
        """Length of one cycle."""
        return self.timeline.total_duration_ms

    @property
    def total_span_ms(self) -> float | None:
        """Length of all cycles, or None when repeating forever."""
        if self.repeat_count < 0:
            return None
        return self.duration_ms * (self.repeat_count + 1)

    @property
    def elapsed_ms(self) -> float:
        if self.state is PlaybackState.PLAYING:
            return (self.loop.now() - self._start_ms) * self._rate
        return self._offset_ms

    @property
    def cycle(self) -> int:
        return self._cycle or 0

    @property
    def is_playing(self) -> bool:
        return self.state is PlaybackState.PLAYING

    @property
    def progress(self) -> float:
        """Overall progress in [0, 1] (progress within the cycle when infinite)."""
        if self.state is PlaybackState.FINISHED:
            return 1.0
        return self._progress_at(self.elapsed_ms)

    def stage_state(self, stage_id: str) -> StageState:
        return self._runtime(stage_id).state

    def stage_progress(self, stage_id: str) -> float:
        """Last eased progress delivered to a stage."""
        return self._runtime(stage_id).progress

    def _runtime(self, stage_id: str) -> _StageRuntime:
        for runtime in self._runtimes:
            if runtime.stage.id == stage_id:
                return runtime
        raise KeyError(f"Unknown stage '{stage_id}'")

    def _progress_at(self, elapsed: float) -> float:
        duration = self.duration_ms
        if duration <= 0:
            return 0.0
        if self.repeat_count < 0:
            return (elapsed % duration) / duration
        return clamp(elapsed / (duration * (self.repeat_count + 1)))

    # ========== CONTROLS ==========

    def play(self) -> CompletionToken:
        """Start (or resume, or restart when finished).

        Returns:
            Token resolved when the clock finishes, cancelled on stop
        """
        if self.state is PlaybackState.PLAYING:
            return self.completion
        if self.state is PlaybackState.PAUSED:
            self.resume()
            return self.completion
        if self.state is PlaybackState.FINISHED:
            self.reset()

        if self.completion.done:
            self.completion = CompletionToken(self.name)

        now = self.loop.now()
        self._start_ms = now - self._offset_ms / self._rate
        self._last_tick_ms = now
        self.state = PlaybackState.PLAYING
        self.loop.subscribe(self)
        logger.debug(f"Clock '{self.name}' playing from {self._offset_ms:.1f}ms")
        self._emit("start")
        self.tick(now)
        return self.completion

    def pause(self) -> bool:
        if self.state is not PlaybackState.PLAYING:
            return False
        self._offset_ms = self.elapsed_ms
        self.state = PlaybackState.PAUSED
        self.loop.unsubscribe(self)
        self._emit("pause")
        return True

    def resume(self) -> bool:
        if self.state is not PlaybackState.PAUSED:
            return False
        now = self.loop.now()
        self._start_ms = now - self._offset_ms / self._rate
        self._last_tick_ms = now
        self.state = PlaybackState.PLAYING
        self.loop.subscribe(self)
        self._emit("resume")
        return True

    def stop(self) -> bool:
        """Cancel playback: pending tokens are cancelled and the clock rewinds.

        Returns:
            False if there was nothing to stop
        """
        if self.state in (PlaybackState.IDLE, PlaybackState.FINISHED):
            return False
        self.state = PlaybackState.CANCELLING
        self.loop.unsubscribe(self)
        self._cancel_tokens()
        self._emit("cancel")
        self._rewind()
        self.state = PlaybackState.IDLE
        logger.debug(f"Clock '{self.name}' stopped")
        return True

    def reset(self) -> None:
        """Rewind to IDLE at time 0 without firing cancel callbacks."""
        self.loop.unsubscribe(self)
        self._cancel_tokens()
        self._rewind()
        self.state = PlaybackState.IDLE

    def restart(self) -> CompletionToken:
        self.reset()
        return self.play()

    def set_playback_rate(self, rate: float) -> None:
        """Change the rate from the next tick on (elapsed so far is kept)."""
        rate = max(rate, self.min_rate)
        if self.state is PlaybackState.PLAYING:
            elapsed = (self._last_tick_ms - self._start_ms) * self._rate
            self._start_ms = self._last_tick_ms - elapsed / rate
        self._rate = rate

    def seek(self, time_ms: float) -> None:
        """Jump to an absolute time and render that frame.

        Stages jumped over still receive start, final update and complete.
        """
        span = self.total_span_ms
        time_ms = max(time_ms, 0.0)
        if span is not None:
            time_ms = min(time_ms, span)

        if self.state is PlaybackState.FINISHED:
            self.state = PlaybackState.PAUSED
            self.completion = CompletionToken(self.name)

        self._cycle = None
        for runtime in self._runtimes:
            runtime.state = StageState.IDLE
        self._offset_ms = time_ms
        if self.state is PlaybackState.PLAYING:
            now = self.loop.now()
            self._start_ms = now - time_ms / self._rate
            self._last_tick_ms = now
        self._advance(time_ms)

    def seek_progress(self, progress: float) -> None:
        span = self.total_span_ms
        self.seek(clamp(progress) * (self.duration_ms if span is None else span))

    def seek_label(self, label: str) -> bool:
        time_ms = self.timeline.label_time(label)
        if time_ms is None:
            logger.warning(f"Clock '{self.name}' has no label '{label}'")
            return False
        self.seek(time_ms)
        return True

    # ========== CALLBACKS & TOKENS ==========

    def on(self, kind: str, callback: Callable[..., Any]) -> None:
        if kind not in CLOCK_EVENTS:
            raise ValueError(f"Unknown clock event '{kind}'. Valid: {sorted(CLOCK_EVENTS)}")
        self._callbacks[kind].append(callback)

    def off(self, kind: str, callback: Callable[..., Any]) -> None:
        callbacks = self._callbacks.get(kind, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def stage_completion(self, stage_id: str) -> CompletionToken:
        """Token resolved when a stage next completes (now if it already has)."""
        runtime = self._runtime(stage_id)
        if runtime.state is StageState.FINISHED:
            return CompletionToken.completed(f"{self.name}:{stage_id}")
        token = CompletionToken(f"{self.name}:{stage_id}")
        self._stage_tokens.setdefault(stage_id, []).append(token)
        return token

    def when_elapsed(self, time_ms: float) -> CompletionToken:
        """Token resolved once elapsed time crosses ``time_ms``."""
        token = CompletionToken(f"{self.name}@{time_ms:g}ms")
        if self.elapsed_ms >= time_ms and self.state is not PlaybackState.IDLE:
            token.resolve()
        else:
            self._time_tokens.append((time_ms, token))
        return token

    def _emit(self, kind: str, *args: Any) -> None:
        for callback in list(self._callbacks[kind]):
            try:
                callback(*args)
            except Exception:
                logger.exception(f"Clock '{self.name}' {kind} callback failed")

    def _cancel_tokens(self) -> None:
        self.completion.cancel()
        for tokens in self._stage_tokens.values():
            for token in tokens:
                token.cancel()
        self._stage_tokens.clear()
        for _, token in self._time_tokens:
            token.cancel()
        self._time_tokens.clear()

    def _settle_time_tokens(self, elapsed: float) -> None:
        due = [(t, token) for t, token in self._time_tokens if t <= elapsed]
        if not due:
            return
        self._time_tokens = [(t, token) for t, token in self._time_tokens if t > elapsed]
        for _, token in sorted(due, key=lambda item: item[0]):
            token.resolve()

    # ========== TIMELINE EDITS ==========

    def add_stage(self, stage: AnyStage) -> None:
        self._require_source().append(stage)
        self._recompile()

    def remove_stage(self, stage_id: str) -> bool:
        stages = self._require_source()
        remaining = [s for s in stages if s.id != stage_id]
        if len(remaining) == len(stages):
            return False
        self._stages = remaining
        self._stage_tokens.pop(stage_id, None)
        self._recompile()
        return True

    def update_stage(self, stage_id: str, **changes: Any) -> bool:
        stages = self._require_source()
        for index, stage in enumerate(stages):
            if stage.id == stage_id:
                stages[index] = stage.model_copy(update=changes)
                self._recompile()
                return True
        return False

    def _require_source(self) -> list[AnyStage]:
        if self._stages is None:
            raise RuntimeError(
                f"Clock '{self.name}' was built from a compiled timeline; use from_stages() "
                "to edit stages"
            )
        return self._stages

    def _recompile(self) -> None:
        self._set_timeline(self._compiler.compile(self._stages, self._mode), keep_states=True)
        logger.debug(f"Clock '{self.name}' recompiled: {self.duration_ms:.1f}ms")

    def _set_timeline(self, timeline: Timeline, keep_states: bool = False) -> None:
        previous = {r.stage.id: r.state for r in self._runtimes} if keep_states else {}
        self.timeline = timeline
        self._runtimes = [
            _StageRuntime(
                stage=timeline.stages[stage_id],
                entry=timeline.entries[stage_id],
                easing=timeline.easings[stage_id],
                state=previous.get(stage_id, StageState.IDLE),
            )
            for stage_id in timeline.order
        ]
        if self.driver is not None:
            self.driver.bind(timeline)

    # ========== FRAME PROCESSING ==========

    def tick(self, now_ms: float) -> None:
        """Frame-loop entry point."""
        if self.state is not PlaybackState.PLAYING:
            return
        self._last_tick_ms = now_ms
        self._advance((now_ms - self._start_ms) * self._rate)

    def _advance(self, elapsed: float) -> None:
        if self.driver is not None:
            self.driver.begin_frame()
        try:
            finished = self._render_to(elapsed)
        finally:
            if self.driver is not None:
                self.driver.end_frame()
        if finished:
            self._finish()

    def _render_to(self, elapsed: float) -> bool:
        """Render the frame at ``elapsed``; returns True when playback is over."""
        duration = self.duration_ms
        if duration <= 0:
            self._cycle = 0
            self._render_cycle(0, 0.0)
            self._settle_time_tokens(elapsed)
            return True

        cycle = int(elapsed // duration)
        if self.repeat_count >= 0 and cycle > self.repeat_count:
            last = self.repeat_count
            if self._cycle is None:
                self._cycle = last
            elif self._cycle != last:
                self._render_cycle(self._cycle, duration)
                self._begin_cycle(last)
            self._render_cycle(last, duration)
            self._settle_time_tokens(elapsed)
            return True

        if self._cycle is None:
            self._cycle = cycle
        elif cycle != self._cycle:
            self._render_cycle(self._cycle, duration)
            self._begin_cycle(cycle)

        self._render_cycle(cycle, elapsed - cycle * duration)
        self._emit("update", self._progress_at(elapsed))
        self._settle_time_tokens(elapsed)
        return False

    def _begin_cycle(self, cycle: int) -> None:
        self._cycle = cycle
        for runtime in self._runtimes:
            runtime.state = StageState.IDLE
        self._emit("iteration", cycle)

    def _render_cycle(self, cycle: int, local_ms: float) -> None:
        reverse = self.direction.is_reversed(cycle, self.yoyo)
        time_ms = self.duration_ms - local_ms if reverse else local_ms
        runtimes = list(reversed(self._runtimes)) if reverse else list(self._runtimes)
        for runtime in runtimes:
            self._render_stage(runtime, time_ms, reverse)

    def _render_stage(self, runtime: _StageRuntime, time_ms: float, reverse: bool) -> None:
        if runtime.state is StageState.FINISHED:
            return
        entry = runtime.entry
        if reverse:
            entered, exited = time_ms <= entry.end_ms, time_ms <= entry.start_ms
        else:
            entered, exited = time_ms >= entry.start_ms, time_ms >= entry.end_ms
        if not entered:
            return

        if runtime.state is StageState.IDLE:
            self._start_stage(runtime)
        if exited:
            # Final boundary update before the stage flips to FINISHED
            self._update_stage(runtime, 0.0 if reverse else entry.duration_ms)
            self._complete_stage(runtime)
        else:
            self._update_stage(runtime, time_ms - entry.start_ms)

    def _start_stage(self, runtime: _StageRuntime) -> None:
        runtime.state = StageState.PLAYING
        stage = runtime.stage
        if self.driver is not None:
            self._guarded(stage.id, self.driver.start_stage, stage, runtime.entry)
        if stage.on_start is not None:
            self._guarded(stage.id, stage.on_start)
        self._emit("stage_start", stage.id)
        self._emit("stage_change", stage.id, StageState.PLAYING)

    def _update_stage(self, runtime: _StageRuntime, local_ms: float) -> None:
        stage = runtime.stage
        raw = stage.progress_at(local_ms, runtime.entry.iteration_ms)
        eased = runtime.easing(raw)
        runtime.progress = eased
        if isinstance(stage, CallbackStage):
            self._guarded(stage.id, stage.callback, eased)
        if self.driver is not None:
            self._guarded(
                stage.id, self.driver.update_stage, stage, runtime.entry, raw, eased, runtime.easing
            )
        if stage.on_update is not None:
            self._guarded(stage.id, stage.on_update, eased)

    def _complete_stage(self, runtime: _StageRuntime) -> None:
        runtime.state = StageState.FINISHED
        stage = runtime.stage
        if self.driver is not None:
            self._guarded(stage.id, self.driver.finish_stage, stage, runtime.entry)
        if stage.on_complete is not None:
            self._guarded(stage.id, stage.on_complete)
        self._emit("stage_complete", stage.id)
        self._emit("stage_change", stage.id, StageState.FINISHED)
        for token in self._stage_tokens.pop(stage.id, []):
            token.resolve()

    def _guarded(self, stage_id: str, fn: Callable[..., Any], *args: Any) -> None:
        try:
            fn(*args)
        except Exception:
            logger.exception(f"Clock '{self.name}' stage '{stage_id}' callback failed")

    def _finish(self) -> None:
        self.state = PlaybackState.FINISHED
        span = self.total_span_ms
        self._offset_ms = span if span is not None else self._offset_ms
        self.loop.unsubscribe(self)
        for _, token in self._time_tokens:
            token.cancel()
        self._time_tokens.clear()
        logger.debug(f"Clock '{self.name}' finished")
        self._emit("complete")
        self.completion.resolve()

    def _rewind(self) -> None:
        self._offset_ms = 0.0
        self._cycle = None
        for runtime in self._runtimes:
            runtime.state = StageState.IDLE
            runtime.progress = 0.0
