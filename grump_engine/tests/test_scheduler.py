"""Tests for the cancellable scheduler implementations."""

from __future__ import annotations

import asyncio
import threading

import pytest

from grump_engine.core.scheduler import AsyncioScheduler, CancelToken, ManualScheduler


# ── ManualScheduler ──────────────────────────────────────────────


class TestManualScheduler:
    def test_fires_when_due(self):
        s = ManualScheduler()
        fired: list[float] = []
        s.schedule(100, lambda: fired.append(s.now_ms()))
        s.advance(99)
        assert fired == []
        s.advance(1)
        assert fired == [100.0]

    def test_now_lands_on_target(self):
        s = ManualScheduler(start_ms=50)
        s.advance(25)
        assert s.now_ms() == 75.0

    def test_cancelled_timer_never_fires(self):
        s = ManualScheduler()
        fired = []
        token = s.schedule(10, lambda: fired.append(1))
        token.cancel()
        s.advance(100)
        assert fired == []
        assert token.cancelled

    def test_cancel_is_idempotent(self):
        calls = []
        token = CancelToken(on_cancel=lambda: calls.append(1))
        token.cancel()
        token.cancel()
        assert calls == [1]

    def test_fires_in_due_order(self):
        s = ManualScheduler()
        order = []
        s.schedule(30, lambda: order.append("c"))
        s.schedule(10, lambda: order.append("a"))
        s.schedule(20, lambda: order.append("b"))
        s.advance(30)
        assert order == ["a", "b", "c"]

    def test_same_due_time_keeps_insertion_order(self):
        s = ManualScheduler()
        order = []
        s.schedule(10, lambda: order.append(1))
        s.schedule(10, lambda: order.append(2))
        s.advance(10)
        assert order == [1, 2]

    def test_timer_scheduled_inside_callback_fires_in_same_advance(self):
        s = ManualScheduler()
        fired = []
        s.schedule(10, lambda: s.schedule(10, lambda: fired.append(s.now_ms())))
        s.advance(25)
        assert fired == [20.0]

    def test_pending_counts_live_timers(self):
        s = ManualScheduler()
        s.schedule(10, lambda: None)
        t = s.schedule(20, lambda: None)
        t.cancel()
        assert s.pending == 1


class TestRunBlocking:
    def test_manual_runs_inline(self):
        s = ManualScheduler()
        ran = []
        assert s.run_blocking(lambda: ran.append(1)) is None
        assert ran == [1]


class TestInterval:
    def test_repeats_until_cancelled(self):
        s = ManualScheduler()
        ticks = []
        token = s.schedule_interval(100, lambda: ticks.append(s.now_ms()))
        s.advance(350)
        assert ticks == [100.0, 200.0, 300.0]
        token.cancel()
        s.advance(500)
        assert len(ticks) == 3

    def test_cancel_from_inside_callback(self):
        s = ManualScheduler()
        ticks = []
        holder: list = []

        def cb():
            ticks.append(1)
            if len(ticks) == 2:
                holder[0].cancel()

        holder.append(s.schedule_interval(10, cb))
        s.advance(100)
        assert len(ticks) == 2

    def test_non_positive_period_is_clamped(self):
        s = ManualScheduler()
        ticks = []
        token = s.schedule_interval(0, lambda: ticks.append(1))
        s.advance(5)
        token.cancel()
        assert len(ticks) == 5


# ── AsyncioScheduler ─────────────────────────────────────────────


class TestAsyncioScheduler:
    @pytest.mark.asyncio
    async def test_fires_on_loop(self):
        s = AsyncioScheduler()
        done = asyncio.Event()
        s.schedule(5, done.set)
        await asyncio.wait_for(done.wait(), timeout=1.0)

    @pytest.mark.asyncio
    async def test_cancel_prevents_fire(self):
        s = AsyncioScheduler()
        fired = []
        token = s.schedule(5, lambda: fired.append(1))
        token.cancel()
        await asyncio.sleep(0.03)
        assert fired == []

    @pytest.mark.asyncio
    async def test_callback_error_is_contained(self):
        s = AsyncioScheduler()
        done = asyncio.Event()

        def boom():
            raise RuntimeError("boom")

        s.schedule(1, boom)
        s.schedule(5, done.set)
        await asyncio.wait_for(done.wait(), timeout=1.0)

    @pytest.mark.asyncio
    async def test_now_ms_is_monotonic(self):
        s = AsyncioScheduler()
        a = s.now_ms()
        await asyncio.sleep(0.01)
        assert s.now_ms() > a

    @pytest.mark.asyncio
    async def test_run_blocking_uses_worker_thread_in_order(self):
        s = AsyncioScheduler()
        seen: list[tuple[int, int]] = []
        futs = [s.run_blocking(lambda i=i: seen.append((i, threading.get_ident()))) for i in range(5)]
        await asyncio.gather(*futs)
        s.close()
        assert [i for i, _ in seen] == [0, 1, 2, 3, 4]
        assert all(tid != threading.get_ident() for _, tid in seen)

    @pytest.mark.asyncio
    async def test_run_blocking_failure_is_logged(self, caplog):
        s = AsyncioScheduler()

        def boom():
            raise OSError("disk full")

        with pytest.raises(OSError):
            await s.run_blocking(boom)
        await asyncio.sleep(0)
        s.close()
        assert "disk full" in caplog.text
