"""Completion tokens.

A token is an explicit "this finished" handle. Stages, clocks and scheduled
continuations hand one out; callers chain work with ``add_done_callback`` or
await it from asyncio code with ``wait()``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Any

logger = logging.getLogger(__name__)

DoneCallback = Callable[["CompletionToken"], Any]


class CompletionToken:
    """Single-shot completion handle.

    A token settles exactly once, either resolved (with an optional value) or
    cancelled. Callbacks added after settlement run immediately.

    Args:
        name: Label used in logs and reprs

    Example:
        >>> token = CompletionToken("fade")
        >>> token.add_done_callback(lambda t: print("done", t.value))
        >>> token.resolve(42)
        done 42
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._done = False
        self._cancelled = False
        self._value: Any = None
        self._callbacks: list[DoneCallback] = []

    def __repr__(self) -> str:
        status = "cancelled" if self._cancelled else "done" if self._done else "pending"
        return f"CompletionToken({self.name!r}, {status})"

    @property
    def done(self) -> bool:
        """True once resolved or cancelled."""
        return self._done

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def value(self) -> Any:
        return self._value

    def add_done_callback(self, callback: DoneCallback) -> None:
        """Run ``callback(token)`` when the token settles (now if already settled)."""
        if self._done:
            self._invoke(callback)
        else:
            self._callbacks.append(callback)

    def remove_done_callback(self, callback: DoneCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def resolve(self, value: Any = None) -> bool:
        """Mark the token complete.

        Returns:
            False if the token had already settled
        """
        if self._done:
            return False
        self._value = value
        self._settle()
        return True

    def cancel(self) -> bool:
        """Mark the token cancelled.

        Returns:
            False if the token had already settled
        """
        if self._done:
            return False
        self._cancelled = True
        self._settle()
        return True

    async def wait(self) -> bool:
        """Await settlement from asyncio code.

        Returns:
            True if resolved, False if cancelled
        """
        if not self._done:
            future: asyncio.Future[None] = asyncio.get_running_loop().create_future()

            def wake(_: CompletionToken) -> None:
                if not future.done():
                    future.set_result(None)

            self.add_done_callback(wake)
            await future
        return not self._cancelled

    def _settle(self) -> None:
        self._done = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            self._invoke(callback)

    def _invoke(self, callback: DoneCallback) -> None:
        try:
            callback(self)
        except Exception:
            logger.exception(f"Completion callback failed for token '{self.name}'")

    # ========== COMBINATORS ==========

    @classmethod
    def completed(cls, name: str = "", value: Any = None) -> CompletionToken:
        """Already-resolved token."""
        token = cls(name)
        token.resolve(value)
        return token

    @classmethod
    def all_of(cls, tokens: Iterable[CompletionToken], name: str = "all") -> CompletionToken:
        """Token that settles when every input has settled.

        The combined token resolves even if some inputs were cancelled; it is
        cancelled only when every input was.
        """
        pending = list(tokens)
        combined = cls(name)
        if not pending:
            combined.resolve()
            return combined

        remaining = len(pending)

        def on_done(_: CompletionToken) -> None:
            nonlocal remaining
            remaining -= 1
            if remaining == 0:
                if all(t.cancelled for t in pending):
                    combined.cancel()
                else:
                    combined.resolve()

        for token in pending:
            token.add_done_callback(on_done)
        return combined
