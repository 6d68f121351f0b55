"""Tests for the frame loop and manual time."""

from __future__ import annotations

import pytest

from choreo.core.playback import CompletionToken, FrameLoop, ManualTimeSource, MonotonicTimeSource


class _Recorder:
    def __init__(self) -> None:
        self.ticks: list[float] = []

    def tick(self, now_ms: float) -> None:
        self.ticks.append(now_ms)


class TestManualTimeSource:
    def test_advance_and_set(self) -> None:
        source = ManualTimeSource(start_ms=5.0)
        source.advance(10)
        assert source.now() == 15.0
        source.set(100)
        assert source.now() == 100.0

    @pytest.mark.asyncio
    async def test_sleep_advances_time(self) -> None:
        source = ManualTimeSource()
        await source.sleep(16)
        assert source.now() == 16.0


class TestSchedule:
    def test_continuation_runs_when_due(self, loop: FrameLoop) -> None:
        fired: list[float] = []
        token = loop.schedule(25, lambda: fired.append(loop.now()))

        loop.advance(20)
        assert fired == []
        assert not token.done

        loop.advance(10)
        assert fired == [30.0]
        assert token.done
        assert loop.pending_count == 0

    def test_continuations_run_in_due_order(self, loop: FrameLoop) -> None:
        order: list[str] = []
        loop.schedule(30, lambda: order.append("late"))
        loop.schedule(10, lambda: order.append("early"))
        loop.schedule(10, lambda: order.append("early-2"))

        loop.advance(50)

        assert order == ["early", "early-2", "late"]

    def test_cancel_removes_continuation(self, loop: FrameLoop) -> None:
        fired: list[str] = []
        token = loop.schedule(10, lambda: fired.append("x"))

        token.cancel()
        loop.advance(50)

        assert fired == []
        assert loop.pending_count == 0

    def test_failing_continuation_still_resolves(self, loop: FrameLoop) -> None:
        def boom() -> None:
            raise RuntimeError("boom")

        token = loop.schedule(0, boom)
        loop.tick()

        assert token.done

    def test_delay_token(self, loop: FrameLoop) -> None:
        token = loop.delay(100)
        loop.advance(100)
        assert token.done


class TestSubscribers:
    def test_subscribers_tick_every_frame(self, loop: FrameLoop) -> None:
        recorder = _Recorder()
        loop.subscribe(recorder)
        loop.subscribe(recorder)

        loop.advance(30)

        assert loop.subscriber_count == 1
        assert recorder.ticks == [10.0, 20.0, 30.0]

    def test_continuations_run_before_subscribers(self, loop: FrameLoop) -> None:
        order: list[str] = []

        class Sub:
            def tick(self, now_ms: float) -> None:
                order.append("subscriber")

        loop.subscribe(Sub())
        loop.schedule(0, lambda: order.append("continuation"))
        loop.tick()

        assert order == ["continuation", "subscriber"]

    def test_unsubscribe(self, loop: FrameLoop) -> None:
        recorder = _Recorder()
        loop.subscribe(recorder)
        loop.unsubscribe(recorder)

        loop.advance(20)

        assert recorder.ticks == []
        assert loop.frame_count == 2


class TestAdvance:
    def test_custom_step(self, loop: FrameLoop) -> None:
        recorder = _Recorder()
        loop.subscribe(recorder)

        loop.advance(25, step_ms=10)

        assert recorder.ticks == [10.0, 20.0, 25.0]

    def test_requires_manual_time(self) -> None:
        loop = FrameLoop(MonotonicTimeSource())
        with pytest.raises(TypeError):
            loop.advance(10)


class TestWaitFor:
    @pytest.mark.asyncio
    async def test_drives_ticks_until_settled(self, loop: FrameLoop) -> None:
        token = loop.delay(45)

        assert await loop.wait_for(token) is True
        assert loop.now() == pytest.approx(50.0)

    @pytest.mark.asyncio
    async def test_timeout(self, loop: FrameLoop) -> None:
        token = CompletionToken("never")

        assert await loop.wait_for(token, timeout_ms=30) is False
        assert not token.done

    @pytest.mark.asyncio
    async def test_cancelled_token_reports_false(self, loop: FrameLoop) -> None:
        token = loop.delay(20)
        loop.schedule(10, token.cancel)

        assert await loop.wait_for(token) is False
