"""Playback: frame loop, completion tokens, playback clock and stage drivers."""

from choreo.core.playback.clock import CLOCK_EVENTS, PlaybackClock, PlaybackState, StageState
from choreo.core.playback.driver import RenderingStageDriver, StageDriver
from choreo.core.playback.loop import DEFAULT_FRAME_INTERVAL_MS, FrameLoop, FrameSubscriber
from choreo.core.playback.time_source import ManualTimeSource, MonotonicTimeSource, TimeSource
from choreo.core.playback.tokens import CompletionToken

__all__ = [
    "CLOCK_EVENTS",
    "DEFAULT_FRAME_INTERVAL_MS",
    "CompletionToken",
    "FrameLoop",
    "FrameSubscriber",
    "ManualTimeSource",
    "MonotonicTimeSource",
    "PlaybackClock",
    "PlaybackState",
    "RenderingStageDriver",
    "StageDriver",
    "StageState",
    "TimeSource",
]
