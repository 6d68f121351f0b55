"""Dependency resolution for command and stage graphs.

Depth-first topological ordering with an on-stack marker set. Declaration
order is preserved among independent nodes, so the output is deterministic
for a fixed input order.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable, Iterable, Iterator, Sequence
from typing import TypeVar

from choreo.core.errors import (
    CircularDependencyError,
    DuplicateIdError,
    UnknownDependencyError,
)
from choreo.core.graph.models import Command

logger = logging.getLogger(__name__)

T = TypeVar("T")


def topological_order(
    nodes: Sequence[T],
    key: Callable[[T], str],
    dependencies: Callable[[T], Iterable[str]],
) -> list[str]:
    """Order node ids so every dependency precedes its dependents.

    Args:
        nodes: Nodes in declaration order
        key: Returns a node's id
        dependencies: Returns a node's dependency ids

    Returns:
        Node ids in execution order

    Raises:
        DuplicateIdError: If two nodes share an id
        UnknownDependencyError: If a dependency id is not declared
        CircularDependencyError: If the graph has a cycle
    """
    by_id: dict[str, T] = {}
    for node in nodes:
        node_id = key(node)
        if node_id in by_id:
            raise DuplicateIdError(f"Duplicate id: '{node_id}'")
        by_id[node_id] = node

    order: list[str] = []
    visited: set[str] = set()
    # Explicit stack so long dependency chains never hit the recursion limit
    path: list[str] = []
    on_path: set[str] = set()
    pending: list[Iterator[str]] = []

    def enter(node_id: str) -> None:
        path.append(node_id)
        on_path.add(node_id)
        pending.append(iter(dependencies(by_id[node_id])))

    for node in nodes:
        root = key(node)
        if root in visited:
            continue
        enter(root)
        while path:
            node_id = path[-1]
            dep_id = next(pending[-1], None)
            if dep_id is None:
                pending.pop()
                path.pop()
                on_path.discard(node_id)
                visited.add(node_id)
                order.append(node_id)
                continue
            if dep_id not in by_id:
                raise UnknownDependencyError(f"'{node_id}' depends on unknown id '{dep_id}'")
            if dep_id in on_path:
                cycle = path[path.index(dep_id) :] + [dep_id]
                raise CircularDependencyError(cycle)
            if dep_id not in visited:
                enter(dep_id)

    return order


def build_execution_plan(commands: Sequence[Command]) -> list[str]:
    """Build the execution plan for a command set.

    The plan is computed into a fresh list; on error nothing is returned and
    the caller's previous plan stays untouched.

    Args:
        commands: Commands in declaration order

    Returns:
        Command ids in dependency order

    Raises:
        CircularDependencyError: If the dependency relation has a cycle
        UnknownDependencyError: If a dependency id is not declared
        DuplicateIdError: If command ids collide

    Example:
        >>> plan = build_execution_plan([
        ...     Command("C", "wait", depends_on=["B"]),
        ...     Command("A", "wait"),
        ...     Command("B", "wait", depends_on=["A"]),
        ... ])
        >>> plan
        ['A', 'B', 'C']
    """
    plan = topological_order(commands, key=lambda c: c.id, dependencies=lambda c: c.depends_on)
    logger.debug(f"Execution plan ({len(plan)} commands): {' -> '.join(plan)}")
    return plan


def validate_commands(commands: Sequence[Command]) -> list[str]:
    """Validate a command set without raising.

    Checks:
    - All ids are unique
    - All dependencies reference declared commands
    - No circular dependencies

    Returns:
        List of error messages (empty if valid)
    """
    errors: list[str] = []

    ids = [c.id for c in commands]
    duplicates = sorted(cid for cid, n in Counter(ids).items() if n > 1)
    if duplicates:
        errors.append(f"Duplicate command IDs: {duplicates}")

    known = set(ids)
    for command in commands:
        for dep_id in command.depends_on:
            if dep_id not in known:
                errors.append(f"Command '{command.id}' depends on unknown command '{dep_id}'")

    if not errors:
        try:
            build_execution_plan(commands)
        except CircularDependencyError as e:
            errors.append(str(e))

    return errors
