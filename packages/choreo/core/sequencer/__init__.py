"""Declarative command sequencer."""

from choreo.core.sequencer.executor import DeclarativeSequencer
from choreo.core.sequencer.result import SequenceResult

__all__ = [
    "DeclarativeSequencer",
    "SequenceResult",
]
