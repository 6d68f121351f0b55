"""Shared pytest fixtures for choreo tests."""

from __future__ import annotations

import pytest

from choreo.core.capabilities import InMemorySurface
from choreo.core.config.models import AppConfig
from choreo.core.orchestrator import OrchestratorContext
from choreo.core.playback import FrameLoop, ManualTimeSource

# ============================================================================
# Time Fixtures
# ============================================================================


@pytest.fixture
def time_source() -> ManualTimeSource:
    """Manual time starting at 0ms."""
    return ManualTimeSource()


@pytest.fixture
def loop(time_source: ManualTimeSource) -> FrameLoop:
    """Frame loop on manual time with a 10ms frame (easy arithmetic)."""
    return FrameLoop(time_source, frame_interval_ms=10.0)


# ============================================================================
# Orchestrator Fixtures
# ============================================================================


@pytest.fixture
def surfaces() -> dict[str, InMemorySurface]:
    """Three recording surfaces keyed by reference."""
    return {ref: InMemorySurface(ref) for ref in ("a", "b", "c")}


@pytest.fixture
def context(loop: FrameLoop, surfaces: dict[str, InMemorySurface]) -> OrchestratorContext:
    """Context on manual time with surfaces ``a``, ``b`` and ``c`` registered."""
    ctx = OrchestratorContext(AppConfig(), loop=loop)
    for ref, surface in surfaces.items():
        ctx.resolver.register(ref, surface)
    return ctx
