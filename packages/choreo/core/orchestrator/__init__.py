"""Orchestrator context and event bus."""

from choreo.core.orchestrator.context import LIFECYCLE_EVENTS, OrchestratorContext
from choreo.core.orchestrator.events import ChoreoEvent, EventBus, EventHandler

__all__ = [
    "LIFECYCLE_EVENTS",
    "ChoreoEvent",
    "EventBus",
    "EventHandler",
    "OrchestratorContext",
]
