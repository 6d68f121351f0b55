"""Result type for declarative sequence runs."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SequenceResult(BaseModel):
    """Outcome of one ``DeclarativeSequencer.execute()`` run.

    Never raised; a failing command is captured in ``error``.

    Attributes:
        success: True when every reached command ran without error
        name: Sequencer name
        executed: Command ids in the order they ran (loop bodies repeat)
        skipped: Command ids skipped by a false branch
        stopped: True when ``stop()`` ended the run early
        failed_command: Id of the command that raised, if any
        error: Error message, if any
        duration_ms: Frame-loop time spent executing
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    success: bool
    name: str
    executed: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    stopped: bool = False
    failed_command: str | None = None
    error: str | None = None
    duration_ms: float = 0.0
