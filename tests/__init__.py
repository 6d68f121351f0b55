"""Test suite for choreo.

Test Structure:
- unit/: Unit tests per engine area (graph, interpolation, stagger, timeline,
  playback, statemachine, sync, orchestrator, sequencer, config, utils)
- conftest.py: Shared fixtures (manual time, frame loop, surfaces, context)

Every test runs on a ManualTimeSource, so frame timing is deterministic.
"""
