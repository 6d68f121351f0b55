"""Frame loop.

The single recurring time signal everything animates against. Clocks
subscribe to it; deferred work is scheduled on it. Nothing blocks: work
happens inside ``tick()``, and the only suspension point is the wait for the
next frame.
"""

from __future__ import annotations

import asyncio
import bisect
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from choreo.core.playback.time_source import ManualTimeSource, MonotonicTimeSource, TimeSource
from choreo.core.playback.tokens import CompletionToken

logger = logging.getLogger(__name__)

DEFAULT_FRAME_INTERVAL_MS = 1000.0 / 60.0


class FrameSubscriber(Protocol):
    """Anything ticked once per frame (playback clocks)."""

    def tick(self, now_ms: float) -> None: ...


@dataclass(order=True)
class _Continuation:
    due_ms: float
    seq: int
    callback: Callable[[], Any] = field(compare=False)
    token: CompletionToken = field(compare=False)


class FrameLoop:
    """Cooperative frame loop with deferred continuations.

    Args:
        time_source: Time provider (monotonic wall clock by default)
        frame_interval_ms: Wait between ticks when running

    Example:
        >>> source = ManualTimeSource()
        >>> loop = FrameLoop(source)
        >>> token = loop.schedule(100, lambda: print("fired"))
        >>> loop.advance(100)
        fired
        >>> token.done
        True
    """

    def __init__(
        self,
        time_source: TimeSource | None = None,
        frame_interval_ms: float = DEFAULT_FRAME_INTERVAL_MS,
    ):
        self.time_source = time_source or MonotonicTimeSource()
        self.frame_interval_ms = frame_interval_ms
        self._subscribers: list[FrameSubscriber] = []
        self._pending: list[_Continuation] = []
        self._seq = itertools.count()
        self._running = False
        self._ticking = False
        self.last_tick_ms = self.time_source.now()
        self.frame_count = 0

    @property
    def running(self) -> bool:
        return self._running

    def now(self) -> float:
        return self.time_source.now()

    # ========== SUBSCRIBERS ==========

    def subscribe(self, subscriber: FrameSubscriber) -> None:
        if subscriber not in self._subscribers:
            self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: FrameSubscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    # ========== CONTINUATIONS ==========

    def schedule(
        self, delay_ms: float, callback: Callable[[], Any], name: str = "scheduled"
    ) -> CompletionToken:
        """Run ``callback`` once ``delay_ms`` has passed.

        The returned token resolves after the callback ran. Cancelling the
        token removes the continuation from the queue.
        """
        token = CompletionToken(name)
        entry = _Continuation(self.now() + max(delay_ms, 0.0), next(self._seq), callback, token)
        bisect.insort(self._pending, entry)

        def on_settled(t: CompletionToken) -> None:
            if t.cancelled and entry in self._pending:
                self._pending.remove(entry)

        token.add_done_callback(on_settled)
        return token

    def delay(self, delay_ms: float, name: str = "delay") -> CompletionToken:
        """Token that resolves after ``delay_ms``."""
        return self.schedule(delay_ms, lambda: None, name=name)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # ========== TICKING ==========

    def tick(self) -> None:
        """Process one frame: due continuations (in time order), then subscribers."""
        if self._ticking:
            logger.warning("Re-entrant tick ignored")
            return
        self._ticking = True
        try:
            now = self.now()
            while self._pending and self._pending[0].due_ms <= now:
                entry = self._pending.pop(0)
                try:
                    entry.callback()
                except Exception:
                    logger.exception(f"Scheduled continuation '{entry.token.name}' failed")
                entry.token.resolve()

            for subscriber in list(self._subscribers):
                if subscriber not in self._subscribers:
                    continue
                try:
                    subscriber.tick(now)
                except Exception:
                    logger.exception(f"Frame subscriber {subscriber!r} failed")

            self.last_tick_ms = now
            self.frame_count += 1
        finally:
            self._ticking = False

    def advance(self, ms: float, step_ms: float | None = None) -> None:
        """Move a manual time source forward, ticking every frame on the way.

        Raises:
            TypeError: If the loop is not driven by a ManualTimeSource
        """
        if not isinstance(self.time_source, ManualTimeSource):
            raise TypeError("advance() requires a ManualTimeSource")
        step = step_ms or self.frame_interval_ms
        target = self.time_source.now() + ms
        while self.time_source.now() + step < target:
            self.time_source.advance(step)
            self.tick()
        self.time_source.set(target)
        self.tick()

    async def run(self) -> None:
        """Tick until ``stop()`` is called."""
        if self._running:
            logger.warning("Frame loop already running")
            return
        self._running = True
        logger.debug(f"Frame loop started ({self.frame_interval_ms:.2f}ms interval)")
        try:
            while self._running:
                await self.time_source.sleep(self.frame_interval_ms)
                if self._running:
                    self.tick()
        finally:
            self._running = False
            logger.debug(f"Frame loop stopped after {self.frame_count} frames")

    def stop(self) -> None:
        self._running = False

    async def wait_for(self, token: CompletionToken, timeout_ms: float | None = None) -> bool:
        """Await a token from asyncio code.

        When the loop is running in another task this simply awaits the token;
        otherwise it drives ticks itself until the token settles.

        Args:
            token: Token to wait for
            timeout_ms: Give up after this much loop time (None = wait forever)

        Returns:
            True if the token resolved, False if cancelled or timed out
        """
        if self._running:
            if timeout_ms is None:
                return await token.wait()
            try:
                return await asyncio.wait_for(token.wait(), timeout_ms / 1000.0)
            except asyncio.TimeoutError:
                return False

        started = self.now()
        while not token.done:
            await self.time_source.sleep(self.frame_interval_ms)
            self.tick()
            if timeout_ms is not None and not token.done and self.now() - started >= timeout_ms:
                logger.debug(f"Timed out waiting for token '{token.name}'")
                return False
        return not token.cancelled
