"""Timeline stages, presets and the timeline compiler."""

from choreo.core.timeline.compiler import Timeline, TimelineCompiler, compile_timeline
from choreo.core.timeline.models import (
    AnimationDescriptor,
    AnimationSpec,
    AnyStage,
    BaseStage,
    CallbackStage,
    EventStage,
    GroupRelationship,
    GroupStage,
    Keyframe,
    PlacementMode,
    PlaybackDirection,
    PresetRef,
    StageKind,
    StaggerStage,
    StyleStage,
    TimelineEntry,
)
from choreo.core.timeline.presets import PresetLibrary, builtin_presets

__all__ = [
    "AnimationDescriptor",
    "AnimationSpec",
    "AnyStage",
    "BaseStage",
    "CallbackStage",
    "EventStage",
    "GroupRelationship",
    "GroupStage",
    "Keyframe",
    "PlacementMode",
    "PlaybackDirection",
    "PresetLibrary",
    "PresetRef",
    "StageKind",
    "StaggerStage",
    "StyleStage",
    "Timeline",
    "TimelineCompiler",
    "TimelineEntry",
    "builtin_presets",
    "compile_timeline",
]
