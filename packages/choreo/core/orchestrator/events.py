"""Event bus.

Publish/subscribe routing for orchestrator lifecycle events, event stages
and declarative ON/EMIT commands.

Features:
- Priority-ordered handlers (higher first)
- Per-handler filters
- Middleware that can rewrite or block events
- ``"*"`` subscribers receive every event
- A failing handler never stops the others
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

WILDCARD = "*"
DEFAULT_HISTORY_LIMIT = 100


@dataclass(frozen=True)
class ChoreoEvent:
    """Dispatched event (timestamp in epoch milliseconds)."""

    name: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=lambda: time.time() * 1000.0)


EventCallback = Callable[[ChoreoEvent], Any]
Middleware = Callable[[ChoreoEvent], "ChoreoEvent | None"]


@dataclass
class EventHandler:
    """Handler registration."""

    handler: EventCallback
    priority: int
    filter_fn: Callable[[ChoreoEvent], bool] | None


class EventBus:
    """Synchronous event bus.

    Coroutine handlers are scheduled as tasks on the running asyncio loop.

    Example:
        >>> bus = EventBus()
        >>> bus.subscribe("complete", lambda e: print(e.payload["sequence_id"]))
        >>> bus.emit("complete", {"sequence_id": "intro"})
        intro
    """

    def __init__(self, history_limit: int = DEFAULT_HISTORY_LIMIT):
        self._handlers: dict[str, list[EventHandler]] = {}
        self._middleware: list[Middleware] = []
        self._history: list[ChoreoEvent] = []
        self._history_limit = history_limit
        self._tasks: set[asyncio.Task[Any]] = set()

    def subscribe(
        self,
        event: str,
        handler: EventCallback,
        priority: int = 0,
        filter_fn: Callable[[ChoreoEvent], bool] | None = None,
    ) -> None:
        """Subscribe to an event name (``"*"`` for all events).

        Args:
            event: Event name
            handler: Called with the ChoreoEvent (sync or async)
            priority: Higher runs first (default: 0)
            filter_fn: Return False to skip the handler for an event
        """
        handlers = self._handlers.setdefault(event, [])
        handlers.append(EventHandler(handler, priority, filter_fn))
        handlers.sort(key=lambda h: h.priority, reverse=True)
        logger.debug(f"Handler subscribed to '{event}' (priority {priority})")

    def unsubscribe(self, event: str, handler: EventCallback) -> bool:
        handlers = self._handlers.get(event, [])
        for entry in handlers:
            if entry.handler is handler:
                handlers.remove(entry)
                return True
        return False

    def add_middleware(self, middleware: Middleware) -> None:
        """Add middleware; returning None from it blocks the event."""
        self._middleware.append(middleware)

    def handler_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    def emit(self, name: str, payload: dict[str, Any] | None = None) -> ChoreoEvent | None:
        """Dispatch an event to its subscribers, then to wildcard subscribers.

        Returns:
            The dispatched event, or None if middleware blocked it
        """
        event: ChoreoEvent | None = ChoreoEvent(name, dict(payload or {}))
        for middleware in self._middleware:
            event = middleware(event)
            if event is None:
                logger.debug(f"Event '{name}' blocked by middleware")
                return None

        self._history.append(event)
        if len(self._history) > self._history_limit:
            self._history.pop(0)

        handlers = list(self._handlers.get(event.name, []))
        if event.name != WILDCARD:
            handlers += self._handlers.get(WILDCARD, [])
        for entry in handlers:
            if entry.filter_fn is not None and not entry.filter_fn(event):
                continue
            self._dispatch(entry, event)
        return event

    def _dispatch(self, entry: EventHandler, event: ChoreoEvent) -> None:
        try:
            if inspect.iscoroutinefunction(entry.handler):
                self._schedule(entry.handler(event), event)
            else:
                entry.handler(event)
        except Exception:
            logger.exception(f"Event handler failed for '{event.name}'")

    def _schedule(self, coroutine: Any, event: ChoreoEvent) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coroutine.close()
            logger.warning(f"Async handler for '{event.name}' skipped: no running event loop")
            return
        task = loop.create_task(coroutine)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Async event handler failed", exc_info=task.exception())

    def get_history(self, limit: int = 10) -> list[ChoreoEvent]:
        """Most recent events, oldest first."""
        return self._history[-limit:]

    def clear_history(self) -> None:
        self._history.clear()
