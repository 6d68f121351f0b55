"""Declarative command sequencer.

Commands are recorded through a fluent builder, ordered by the command graph
resolver and run against an orchestrator context.

Example:
    >>> sequencer = (
    ...     DeclarativeSequencer(context, "intro")
    ...     .set("show_badge", True)
    ...     .animate("title", "fadeIn", duration="0.4s")
    ...     .if_("$show_badge")
    ...     .animate("badge", "zoomIn")
    ...     .end_if()
    ...     .for_each(["a", "b", "c"], "item")
    ...     .animate("$item", "slideInLeft")
    ...     .end_for_each()
    ... )
    >>> result = await sequencer.execute()
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from choreo.core.graph.models import Command, CommandType
from choreo.core.graph.resolver import build_execution_plan, validate_commands
from choreo.core.orchestrator.events import ChoreoEvent
from choreo.core.playback.tokens import CompletionToken
from choreo.core.sequencer.result import SequenceResult
from choreo.core.stagger.models import StaggerOptions
from choreo.core.timeline.models import AnimationSpec
from choreo.core.utils.timing import parse_duration

if TYPE_CHECKING:
    from choreo.core.orchestrator.context import OrchestratorContext

logger = logging.getLogger(__name__)

Condition = Callable[[dict[str, Any]], Any] | str | bool
BuildFn = Callable[["DeclarativeSequencer"], Any]


@dataclass
class _Branch:
    active: bool
    taken: bool


@dataclass
class _Loop:
    variable: str
    items: list[Any]
    start: int
    index: int = 0
    skipping: bool = False


class DeclarativeSequencer:
    """Fluent builder and async executor for declarative commands.

    Every builder method records one ``Command`` and returns the sequencer.
    Common keyword options on builder methods:

    - ``id``: explicit command id (default ``cmd-{n}``)
    - ``after``: delay before the command runs (ms or duration string)
    - ``depends_on``: command ids that must be planned first
    - ``labels``: free-form labels

    Args:
        context: Orchestrator context the commands run against
        name: Name used for logs and derived sequence ids
        functions: Named callables reachable from ``call("name")``
    """

    def __init__(
        self,
        context: OrchestratorContext,
        name: str = "sequence",
        *,
        functions: dict[str, Callable[..., Any]] | None = None,
    ):
        self.context = context
        self.name = name
        self.functions: dict[str, Callable[..., Any]] = dict(functions or {})
        self.variables: dict[str, Any] = {}
        self.commands: list[Command] = []

        self._ids: itertools.count[int] = itertools.count()
        self._plan: list[str] = []
        self._running = False
        self._stopped = False
        self._failure: tuple[str, str] | None = None
        self._driven = False
        self._in_flight: set[CompletionToken] = set()
        self._sequence_ids: set[str] = set()
        self._subscriptions: list[tuple[str, Callable[[ChoreoEvent], Any]]] = []
        self._executed: list[str] = []
        self._skipped: list[str] = []

        self._handlers = {
            CommandType.ANIMATE: self._run_animate,
            CommandType.STAGGER: self._run_stagger,
            CommandType.WAIT: self._run_wait,
            CommandType.SEQUENCE: self._run_sequence,
            CommandType.PARALLEL: self._run_parallel,
            CommandType.CALL: self._run_call,
            CommandType.SET: self._run_set,
            CommandType.ON: self._run_on,
            CommandType.EMIT: self._run_emit,
        }

    def __repr__(self) -> str:
        return f"DeclarativeSequencer({self.name!r}, {len(self.commands)} commands)"

    @property
    def running(self) -> bool:
        return self._running

    @property
    def plan(self) -> list[str]:
        return list(self._plan)

    # ========== BUILDER ==========

    def add(
        self,
        command_type: CommandType | str,
        params: dict[str, Any] | None = None,
        *,
        id: str | None = None,
        after: float | str | None = None,
        depends_on: Iterable[str] = (),
        labels: Iterable[str] = (),
    ) -> DeclarativeSequencer:
        """Record a command of any type (unknown types are skipped at run time)."""
        command = Command(
            id=id or f"cmd-{next(self._ids)}",
            type=command_type,
            params=dict(params or {}),
            delay_ms=parse_duration(after, default=0.0),
            depends_on=list(depends_on),
            labels=set(labels),
        )
        self.commands.append(command)
        return self

    def animate(
        self,
        target: str | Sequence[str],
        animation: AnimationSpec = "fadeIn",
        *,
        duration: float | str | None = None,
        delay: float | str | None = None,
        easing: Any = None,
        wait: bool = True,
        **options: Any,
    ) -> DeclarativeSequencer:
        """Animate one or more targets; ``"$var"`` targets read a variable."""
        params = {
            "target": target,
            "animation": animation,
            "duration": duration,
            "delay": delay,
            "easing": easing,
            "wait": wait,
        }
        return self.add(CommandType.ANIMATE, params, **options)

    def stagger(
        self,
        targets: str | Sequence[str],
        animation: AnimationSpec = "fadeIn",
        *,
        delay: float | str | None = None,
        duration: float | str | None = None,
        easing: Any = None,
        stagger: StaggerOptions | None = None,
        wait: bool = True,
        **options: Any,
    ) -> DeclarativeSequencer:
        """Animate targets with staggered starts.

        ``delay`` is the per-index step and overrides ``stagger.delay_ms``.
        """
        params = {
            "targets": targets,
            "animation": animation,
            "delay": delay,
            "duration": duration,
            "easing": easing,
            "stagger": stagger,
            "wait": wait,
        }
        return self.add(CommandType.STAGGER, params, **options)

    def wait(self, duration: float | str, **options: Any) -> DeclarativeSequencer:
        return self.add(CommandType.WAIT, {"duration": duration}, **options)

    def sequence(self, build: BuildFn, **options: Any) -> DeclarativeSequencer:
        """Record a nested block whose commands run one after another."""
        return self.add(CommandType.SEQUENCE, {"commands": self._nested(build)}, **options)

    def parallel(self, build: BuildFn, **options: Any) -> DeclarativeSequencer:
        """Record a nested block whose commands run concurrently.

        Flow-control commands inside a parallel block are ignored.
        """
        return self.add(CommandType.PARALLEL, {"commands": self._nested(build)}, **options)

    def _nested(self, build: BuildFn) -> list[Command]:
        child = DeclarativeSequencer(self.context, self.name)
        child._ids = self._ids
        build(child)
        return child.commands

    def if_(self, condition: Condition, **options: Any) -> DeclarativeSequencer:
        return self.add(CommandType.IF, {"condition": condition}, **options)

    def else_if(self, condition: Condition, **options: Any) -> DeclarativeSequencer:
        return self.add(CommandType.ELSE_IF, {"condition": condition}, **options)

    def else_(self, **options: Any) -> DeclarativeSequencer:
        return self.add(CommandType.ELSE, **options)

    def end_if(self, **options: Any) -> DeclarativeSequencer:
        return self.add(CommandType.END_IF, **options)

    def for_each(
        self, items: Sequence[Any] | str, variable: str, **options: Any
    ) -> DeclarativeSequencer:
        """Repeat the body up to ``end_for_each`` once per item.

        The current item is bound to ``variable`` and its index to
        ``{variable}_index``. ``items`` may be a ``"$var"`` reference.
        """
        return self.add(CommandType.FOR_EACH, {"items": items, "variable": variable}, **options)

    def end_for_each(self, **options: Any) -> DeclarativeSequencer:
        return self.add(CommandType.END_FOR_EACH, **options)

    def call(
        self, func: Callable[..., Any] | str, *args: Any, **options: Any
    ) -> DeclarativeSequencer:
        """Invoke a callable (or a registered function name) with ``args``.

        Coroutines are awaited; a returned CompletionToken is waited on.
        """
        return self.add(CommandType.CALL, {"func": func, "args": list(args)}, **options)

    def set(self, variable: str, value: Any, **options: Any) -> DeclarativeSequencer:
        return self.add(CommandType.SET, {"variable": variable, "value": value}, **options)

    def on(
        self, event: str, handler: Callable[[ChoreoEvent], Any], **options: Any
    ) -> DeclarativeSequencer:
        return self.add(CommandType.ON, {"event": event, "handler": handler}, **options)

    def emit(self, event: str, data: Any = None, **options: Any) -> DeclarativeSequencer:
        return self.add(CommandType.EMIT, {"event": event, "data": data}, **options)

    # ========== PLANNING ==========

    def validate(self) -> list[str]:
        """Validation errors for the recorded commands (empty if valid)."""
        return validate_commands(self.commands)

    def build_plan(self, force: bool = False) -> list[str]:
        """Build (once) the dependency-ordered execution plan.

        Raises:
            CircularDependencyError: If command dependencies form a cycle
            UnknownDependencyError: If a dependency id is not declared
        """
        if self._plan and not force:
            return list(self._plan)
        self._plan = build_execution_plan(self.commands)
        return list(self._plan)

    # ========== EXECUTION ==========

    async def execute(self) -> SequenceResult:
        """Run every command in plan order.

        Returns:
            SequenceResult describing what ran; command failures are captured
            there rather than raised
        """
        if self._running:
            logger.warning(f"Sequencer '{self.name}' is already running")
            return SequenceResult(success=False, name=self.name, error="already running")

        by_id = {command.id: command for command in self.commands}
        commands = [by_id[command_id] for command_id in self.build_plan()]

        self._running = True
        self._stopped = False
        self._failure = None
        self._executed = []
        self._skipped = []
        started = self.context.loop.now()
        logger.info(f"Executing sequence '{self.name}' ({len(commands)} commands)")

        try:
            await self._run_block(commands)
        finally:
            self._running = False

        duration_ms = self.context.loop.now() - started
        failed_command, error = self._failure or (None, None)
        if error is None:
            logger.info(f"Sequence '{self.name}' finished in {duration_ms:.0f}ms")
        else:
            logger.error(f"Sequence '{self.name}' failed at '{failed_command}': {error}")

        return SequenceResult(
            success=error is None and not self._stopped,
            name=self.name,
            executed=list(self._executed),
            skipped=list(self._skipped),
            stopped=self._stopped,
            failed_command=failed_command,
            error=error,
            duration_ms=duration_ms,
        )

    def stop(self) -> None:
        """Stop execution and cancel the in-flight command."""
        if not self._running:
            return
        self._stopped = True
        for token in list(self._in_flight):
            token.cancel()
        for sequence_id in self._sequence_ids:
            if self.context.has_sequence(sequence_id):
                self.context.stop(sequence_id)
        logger.info(f"Sequence '{self.name}' stopped")

    def dispose(self) -> None:
        """Remove event handlers registered by ON commands."""
        for event, handler in self._subscriptions:
            self.context.events.unsubscribe(event, handler)
        self._subscriptions.clear()

    @property
    def _halted(self) -> bool:
        return self._stopped or self._failure is not None

    async def _run_block(self, commands: list[Command]) -> None:
        conditions: list[_Branch] = []
        loops: list[_Loop] = []
        position = 0

        while position < len(commands) and not self._halted:
            command = commands[position]
            position += 1
            active = all(branch.active for branch in conditions)

            if not command.is_flow_control:
                if active:
                    await self._run_command(command)
                else:
                    self._skipped.append(command.id)
                continue

            kind = CommandType(command.type)
            if kind is CommandType.IF:
                result = self._evaluate(command.params.get("condition")) if active else False
                conditions.append(_Branch(active=result, taken=result or not active))

            elif kind is CommandType.ELSE_IF:
                if not conditions:
                    logger.warning(f"ELSE_IF without IF ({command.id}); ignoring")
                    continue
                branch = conditions[-1]
                if branch.taken:
                    branch.active = False
                else:
                    branch.active = branch.taken = self._evaluate(command.params.get("condition"))

            elif kind is CommandType.ELSE:
                if not conditions:
                    logger.warning(f"ELSE without IF ({command.id}); ignoring")
                    continue
                branch = conditions[-1]
                branch.active = not branch.taken
                branch.taken = True

            elif kind is CommandType.END_IF:
                if not conditions:
                    logger.warning(f"END_IF without IF ({command.id}); ignoring")
                    continue
                conditions.pop()

            elif kind is CommandType.FOR_EACH:
                variable = command.params.get("variable", "item")
                items = self._resolve_items(command.params.get("items")) if active else []
                loop = _Loop(variable=variable, items=items, start=position)
                if not items:
                    loop.skipping = True
                    conditions.append(_Branch(active=False, taken=True))
                else:
                    self._bind(loop)
                loops.append(loop)

            elif kind is CommandType.END_FOR_EACH:
                if not loops:
                    logger.warning(f"END_FOR_EACH without FOR_EACH ({command.id}); ignoring")
                    continue
                loop = loops[-1]
                if loop.skipping:
                    conditions.pop()
                    loops.pop()
                    continue
                loop.index += 1
                if loop.index < len(loop.items):
                    self._bind(loop)
                    position = loop.start
                else:
                    loops.pop()

        if (conditions or loops) and not self._halted:
            logger.warning(
                f"Sequence '{self.name}' ended with {len(conditions)} open IF/FOR_EACH blocks"
            )

    async def _run_command(self, command: Command) -> None:
        try:
            kind = CommandType(command.type)
        except ValueError:
            logger.warning(f"Unknown command type '{command.type}' ({command.id}); skipping")
            return

        handler = self._handlers.get(kind)
        if handler is None:
            logger.warning(f"Flow-control command '{command.id}' ignored in parallel block")
            return

        if command.delay_ms > 0:
            await self._await(self.context.loop.delay(command.delay_ms, name=f"{command.id}:delay"))
            if self._halted:
                return

        logger.debug(f"Running {kind.value} command '{command.id}'")
        try:
            await handler(command)
        except Exception as e:
            logger.exception(f"Command '{command.id}' failed")
            self._failure = (command.id, str(e))
            return
        self._executed.append(command.id)

    async def _await(self, token: CompletionToken) -> bool:
        self._in_flight.add(token)
        try:
            if self._driven:
                return await token.wait()
            return await self.context.wait(token)
        finally:
            self._in_flight.discard(token)

    # ========== COMMAND HANDLERS ==========

    async def _run_animate(self, command: Command) -> None:
        params = command.params
        sequence_id = f"{self.name}:{command.id}"
        self._sequence_ids.add(sequence_id)
        token = self.context.animate(
            self._resolve_targets(params.get("target")),
            params.get("animation", "fadeIn"),
            duration_ms=self._duration(params.get("duration")),
            easing=params.get("easing"),
            delay_ms=parse_duration(params.get("delay"), default=0.0),
            sequence_id=sequence_id,
        )
        if params.get("wait", True):
            await self._await(token)

    async def _run_stagger(self, command: Command) -> None:
        params = command.params
        options = params.get("stagger") or self.context.compiler.stagger
        if params.get("delay") is not None:
            options = options.model_copy(update={"delay_ms": parse_duration(params["delay"])})

        sequence_id = f"{self.name}:{command.id}"
        self._sequence_ids.add(sequence_id)
        token = self.context.animate(
            self._resolve_targets(params.get("targets")),
            params.get("animation", "fadeIn"),
            duration_ms=self._duration(params.get("duration")),
            easing=params.get("easing"),
            stagger=options,
            sequence_id=sequence_id,
        )
        if params.get("wait", True):
            await self._await(token)

    async def _run_wait(self, command: Command) -> None:
        duration_ms = parse_duration(command.params.get("duration"))
        if duration_ms > 0:
            await self._await(self.context.loop.delay(duration_ms, name=f"{command.id}:wait"))

    async def _run_sequence(self, command: Command) -> None:
        await self._run_block(list(command.params.get("commands", [])))

    async def _run_parallel(self, command: Command) -> None:
        children = list(command.params.get("commands", []))
        if not children:
            return

        done = CompletionToken(f"{command.id}:parallel")
        driving = not self._driven
        self._driven = True
        try:
            gathered = asyncio.gather(*(self._run_command(child) for child in children))
            gathered.add_done_callback(lambda _: done.resolve())
            if driving:
                await self.context.wait(done)
            await gathered
        finally:
            if driving:
                self._driven = False

    async def _run_call(self, command: Command) -> None:
        func = command.params.get("func")
        if isinstance(func, str):
            name = func
            func = self.functions.get(name)
            if func is None:
                logger.warning(f"Function '{name}' is not registered; skipping {command.id}")
                return
        if not callable(func):
            logger.warning(f"CALL target is not callable ({command.id}); skipping")
            return

        result = func(*command.params.get("args", []))
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, CompletionToken):
            await self._await(result)

    async def _run_set(self, command: Command) -> None:
        self.variables[command.params["variable"]] = command.params.get("value")

    async def _run_on(self, command: Command) -> None:
        event, handler = command.params["event"], command.params["handler"]
        self.context.events.subscribe(event, handler)
        self._subscriptions.append((event, handler))

    async def _run_emit(self, command: Command) -> None:
        data = command.params.get("data")
        if data is None:
            payload = {}
        elif isinstance(data, dict):
            payload = data
        else:
            payload = {"data": data}
        self.context.events.emit(command.params["event"], payload)

    # ========== RESOLUTION ==========

    def _evaluate(self, condition: Condition | None) -> bool:
        """Evaluate a condition; failures count as false."""
        if callable(condition):
            try:
                return bool(condition(self.variables))
            except Exception:
                logger.exception("Condition evaluation failed")
                return False
        if isinstance(condition, str) and condition.startswith("$"):
            return bool(self.variables.get(condition[1:]))
        return bool(condition)

    def _resolve_items(self, items: Any) -> list[Any]:
        if isinstance(items, str) and items.startswith("$"):
            items = self.variables.get(items[1:], [])
        if isinstance(items, list | tuple):
            return list(items)
        logger.warning(f"FOR_EACH items must be a sequence or variable reference: {items!r}")
        return []

    def _resolve_targets(self, target: Any) -> list[str]:
        if target is None:
            return []
        if isinstance(target, str):
            if target.startswith("$"):
                return self._resolve_targets(self.variables.get(target[1:]))
            return [target]
        resolved: list[str] = []
        for item in target:
            resolved.extend(self._resolve_targets(item))
        return resolved

    def _duration(self, value: float | str | None) -> float | None:
        return None if value is None else parse_duration(value)

    def _bind(self, loop: _Loop) -> None:
        self.variables[loop.variable] = loop.items[loop.index]
        self.variables[f"{loop.variable}_index"] = loop.index
