"""Time sources for the frame loop (milliseconds)."""

from __future__ import annotations

import asyncio
import time
from typing import Protocol


class TimeSource(Protocol):
    """Clock plus a way to wait for the next frame."""

    def now(self) -> float:
        """Current time in milliseconds."""
        ...

    async def sleep(self, ms: float) -> None:
        """Suspend until roughly ``ms`` milliseconds have passed."""
        ...


class MonotonicTimeSource:
    """Wall-clock time from ``time.monotonic``."""

    def now(self) -> float:
        return time.monotonic() * 1000.0

    async def sleep(self, ms: float) -> None:
        await asyncio.sleep(max(ms, 0.0) / 1000.0)


class ManualTimeSource:
    """Deterministic time for tests and offline rendering.

    Time only moves when ``advance`` is called or a ``sleep`` completes;
    ``sleep`` advances instantly and yields once to the event loop.

    Example:
        >>> source = ManualTimeSource()
        >>> source.advance(16.0)
        >>> source.now()
        16.0
    """

    def __init__(self, start_ms: float = 0.0):
        self._now = start_ms

    def now(self) -> float:
        return self._now

    def advance(self, ms: float) -> None:
        if ms < 0:
            raise ValueError(f"Cannot move time backwards ({ms}ms)")
        self._now += ms

    def set(self, now_ms: float) -> None:
        if now_ms < self._now:
            raise ValueError(f"Cannot move time backwards ({self._now} -> {now_ms})")
        self._now = now_ms

    async def sleep(self, ms: float) -> None:
        self.advance(max(ms, 0.0))
        await asyncio.sleep(0)
