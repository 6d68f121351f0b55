"""Exception hierarchy for choreo.

Every error raised deliberately by the engine derives from ``ChoreoError`` so
callers can catch engine failures without catching unrelated exceptions.
"""

from __future__ import annotations


class ChoreoError(Exception):
    """Base class for all choreo errors."""


class CircularDependencyError(ChoreoError, ValueError):
    """Raised when a command or stage graph contains a cycle.

    Attributes:
        cycle: Ids along the detected cycle, first id repeated at the end
    """

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        super().__init__(f"Circular dependency detected: {' -> '.join(cycle)}")


class UnknownDependencyError(ChoreoError, ValueError):
    """Raised when a dependency id does not resolve to a declared node."""


class DuplicateIdError(ChoreoError, ValueError):
    """Raised when two nodes in one graph share an id."""


class InvalidStateError(ChoreoError, ValueError):
    """Raised when a state machine references an undeclared state."""


class GroupLockedError(ChoreoError, RuntimeError):
    """Raised on structural mutation of a sync group after initialization."""


class EmptyGroupError(ChoreoError, ValueError):
    """Raised when a sync group is initialized without animations."""


class SequenceNotFoundError(ChoreoError, KeyError):
    """Raised when a named sequence is missing from the orchestrator registry."""
