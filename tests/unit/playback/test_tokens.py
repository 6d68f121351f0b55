"""Tests for completion tokens."""

from __future__ import annotations

import pytest

from choreo.core.playback import CompletionToken


def test_resolve_settles_once() -> None:
    token = CompletionToken("fade")

    assert token.resolve(42) is True
    assert token.resolve(7) is False
    assert token.cancel() is False
    assert token.done
    assert not token.cancelled
    assert token.value == 42


def test_cancel_marks_cancelled() -> None:
    token = CompletionToken()

    assert token.cancel() is True
    assert token.done
    assert token.cancelled


def test_callbacks_run_on_settlement() -> None:
    token = CompletionToken()
    seen: list[CompletionToken] = []
    token.add_done_callback(seen.append)

    assert seen == []
    token.resolve()
    assert seen == [token]


def test_late_callback_runs_immediately() -> None:
    token = CompletionToken.completed("ready", value="ok")
    seen: list[str] = []

    token.add_done_callback(lambda t: seen.append(t.value))

    assert seen == ["ok"]


def test_removed_callback_not_called() -> None:
    token = CompletionToken()
    seen: list[CompletionToken] = []
    token.add_done_callback(seen.append)
    token.remove_done_callback(seen.append)

    token.resolve()

    assert seen == []


def test_failing_callback_does_not_block_others() -> None:
    token = CompletionToken()
    seen: list[str] = []

    def boom(_: CompletionToken) -> None:
        raise RuntimeError("boom")

    token.add_done_callback(boom)
    token.add_done_callback(lambda t: seen.append("after"))
    token.resolve()

    assert seen == ["after"]


class TestAllOf:
    def test_empty_resolves_immediately(self) -> None:
        combined = CompletionToken.all_of([])
        assert combined.done and not combined.cancelled

    def test_waits_for_every_input(self) -> None:
        a, b = CompletionToken("a"), CompletionToken("b")
        combined = CompletionToken.all_of([a, b])

        a.resolve()
        assert not combined.done
        b.cancel()
        assert combined.done
        assert not combined.cancelled

    def test_cancelled_only_when_all_cancelled(self) -> None:
        a, b = CompletionToken("a"), CompletionToken("b")
        combined = CompletionToken.all_of([a, b])

        a.cancel()
        b.cancel()

        assert combined.cancelled


@pytest.mark.asyncio
async def test_wait_returns_resolution_status() -> None:
    resolved = CompletionToken.completed()
    cancelled = CompletionToken()
    cancelled.cancel()

    assert await resolved.wait() is True
    assert await cancelled.wait() is False
