"""Command models for the declarative command graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class CommandType(str, Enum):
    """Declarative command vocabulary.

    Flow-control commands (IF family, FOR_EACH family) are always evaluated,
    even inside a false branch, so the branch stack stays balanced.
    """

    ANIMATE = "animate"
    STAGGER = "stagger"
    WAIT = "wait"
    SEQUENCE = "sequence"
    PARALLEL = "parallel"
    IF = "if"
    ELSE_IF = "else_if"
    ELSE = "else"
    END_IF = "end_if"
    FOR_EACH = "for_each"
    END_FOR_EACH = "end_for_each"
    CALL = "call"
    SET = "set"
    ON = "on"
    EMIT = "emit"


_TYPE_VALUES = frozenset(t.value for t in CommandType)

FLOW_CONTROL = frozenset(
    {
        CommandType.IF,
        CommandType.ELSE_IF,
        CommandType.ELSE,
        CommandType.END_IF,
        CommandType.FOR_EACH,
        CommandType.END_FOR_EACH,
    }
)


@dataclass
class Command:
    """A single schedulable command.

    Attributes:
        id: Unique command id
        type: Command type tag (unknown strings are kept and skipped at run time)
        params: Type-specific parameter bag
        delay_ms: Optional delay before the command runs
        depends_on: Ids that must precede this command in the plan
        labels: Free-form labels for lookup
    """

    id: str
    type: CommandType | str
    params: dict[str, Any] = field(default_factory=dict)
    delay_ms: float = 0.0
    depends_on: list[str] = field(default_factory=list)
    labels: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        if not isinstance(self.type, CommandType) and self.type in _TYPE_VALUES:
            self.type = CommandType(self.type)

    @property
    def is_flow_control(self) -> bool:
        """True for IF/ELSE_IF/ELSE/END_IF/FOR_EACH/END_FOR_EACH."""
        return self.type in FLOW_CONTROL
