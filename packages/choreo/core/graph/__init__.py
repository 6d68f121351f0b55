"""Command graph: command models and dependency resolution."""

from choreo.core.graph.models import FLOW_CONTROL, Command, CommandType
from choreo.core.graph.resolver import (
    build_execution_plan,
    topological_order,
    validate_commands,
)

__all__ = [
    "FLOW_CONTROL",
    "Command",
    "CommandType",
    "build_execution_plan",
    "topological_order",
    "validate_commands",
]
