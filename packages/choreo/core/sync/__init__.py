"""Synchronization of independently timed animations."""

from choreo.core.sync.coordinator import SyncCoordinator
from choreo.core.sync.group import SYNC_POINT_EVENT, SyncGroup, SyncHost
from choreo.core.sync.models import (
    PHASE_POSITIONS,
    AnimationPhase,
    ItemTiming,
    SynchronizationStrategy,
    SyncedAnimation,
    SyncGroupOptions,
    SyncGroupState,
    SyncPoint,
)
from choreo.core.sync.strategies import STRATEGIES, compute_timings, sync_point_times

__all__ = [
    "PHASE_POSITIONS",
    "STRATEGIES",
    "SYNC_POINT_EVENT",
    "AnimationPhase",
    "ItemTiming",
    "SyncCoordinator",
    "SyncGroup",
    "SyncGroupOptions",
    "SyncGroupState",
    "SyncHost",
    "SyncPoint",
    "SynchronizationStrategy",
    "SyncedAnimation",
    "compute_timings",
    "sync_point_times",
]
