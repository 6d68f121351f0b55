"""Tests for the event bus."""

from __future__ import annotations

import asyncio

import pytest

from choreo.core.orchestrator import ChoreoEvent, EventBus


def test_emit_reaches_subscribers() -> None:
    bus = EventBus()
    received: list[ChoreoEvent] = []
    bus.subscribe("complete", received.append)

    event = bus.emit("complete", {"sequence_id": "intro"})

    assert received == [event]
    assert event.payload == {"sequence_id": "intro"}


def test_priority_order() -> None:
    bus = EventBus()
    order: list[str] = []
    bus.subscribe("x", lambda e: order.append("low"), priority=-1)
    bus.subscribe("x", lambda e: order.append("high"), priority=10)
    bus.subscribe("x", lambda e: order.append("default"))

    bus.emit("x")

    assert order == ["high", "default", "low"]


def test_wildcard_runs_after_named_handlers() -> None:
    bus = EventBus()
    order: list[str] = []
    bus.subscribe("*", lambda e: order.append(f"any:{e.name}"))
    bus.subscribe("x", lambda e: order.append("x"))

    bus.emit("x")
    bus.emit("y")

    assert order == ["x", "any:x", "any:y"]


def test_filter() -> None:
    bus = EventBus()
    received: list[ChoreoEvent] = []
    bus.subscribe("x", received.append, filter_fn=lambda e: e.payload.get("keep", False))

    bus.emit("x", {"keep": False})
    bus.emit("x", {"keep": True})

    assert len(received) == 1


def test_middleware_rewrites_and_blocks() -> None:
    bus = EventBus()
    received: list[ChoreoEvent] = []
    bus.subscribe("x", received.append)
    bus.add_middleware(lambda e: None if e.payload.get("block") else e)
    bus.add_middleware(lambda e: ChoreoEvent(e.name, {**e.payload, "seen": True}))

    assert bus.emit("x", {"block": True}) is None
    bus.emit("x")

    assert [e.payload for e in received] == [{"seen": True}]
    assert len(bus.get_history()) == 1


def test_failing_handler_does_not_stop_others() -> None:
    bus = EventBus()
    received: list[str] = []

    def boom(event: ChoreoEvent) -> None:
        raise RuntimeError("boom")

    bus.subscribe("x", boom, priority=1)
    bus.subscribe("x", lambda e: received.append("ok"))

    bus.emit("x")

    assert received == ["ok"]


def test_unsubscribe() -> None:
    bus = EventBus()

    def handler(event: ChoreoEvent) -> None:
        pass

    bus.subscribe("x", handler)
    assert bus.handler_count("x") == 1
    assert bus.unsubscribe("x", handler) is True
    assert bus.unsubscribe("x", handler) is False
    assert bus.handler_count("x") == 0


def test_history_is_bounded() -> None:
    bus = EventBus(history_limit=3)
    for index in range(5):
        bus.emit(f"e{index}")

    assert [e.name for e in bus.get_history()] == ["e2", "e3", "e4"]
    assert [e.name for e in bus.get_history(limit=1)] == ["e4"]
    bus.clear_history()
    assert bus.get_history() == []


@pytest.mark.asyncio
async def test_async_handler_scheduled_on_running_loop() -> None:
    bus = EventBus()
    received: list[str] = []

    async def handler(event: ChoreoEvent) -> None:
        received.append(event.name)

    bus.subscribe("x", handler)
    bus.emit("x")
    assert received == []

    await asyncio.sleep(0)
    assert received == ["x"]


def test_async_handler_without_loop_is_skipped() -> None:
    bus = EventBus()
    received: list[str] = []

    async def handler(event: ChoreoEvent) -> None:
        received.append(event.name)

    bus.subscribe("x", handler)
    bus.emit("x")

    assert received == []
