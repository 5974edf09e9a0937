"""Cancellable timers for every timed behaviour in the engine.

All sub-animations arm their delays through a Scheduler and keep the
returned CancelToken, so ``stop()`` (or leaving the state that armed a
timer) can cancel it.  Two implementations:

  AsyncioScheduler: wraps ``loop.call_later`` for the running service.
  ManualScheduler:  virtual clock advanced explicitly by tests.

Callbacks run atomically on the owning loop; there is no ordering
guarantee between independent timers beyond due time.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

log = logging.getLogger(__name__)

Callback = Callable[[], None]


class CancelToken:
    """Handle returned by ``schedule``; ``cancel()`` is idempotent."""

    __slots__ = ("_cancelled", "_on_cancel")

    def __init__(self, on_cancel: Callback | None = None) -> None:
        self._cancelled = False
        self._on_cancel = on_cancel

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._on_cancel is not None:
            self._on_cancel()
            self._on_cancel = None


class Scheduler(ABC):
    @abstractmethod
    def now_ms(self) -> float: ...

    @abstractmethod
    def schedule(self, delay_ms: float, cb: Callback) -> CancelToken: ...

    def schedule_interval(self, period_ms: float, cb: Callback) -> CancelToken:
        """Run *cb* every *period_ms* until the returned token is cancelled."""
        period_ms = max(1.0, float(period_ms))
        token = CancelToken()
        inner: list[CancelToken] = []

        def _fire() -> None:
            if token.cancelled:
                return
            try:
                cb()
            finally:
                if not token.cancelled:
                    inner[0] = self.schedule(period_ms, _fire)

        inner.append(self.schedule(period_ms, _fire))
        token._on_cancel = lambda: inner[0].cancel()
        return token

    def run_blocking(self, fn: Callback) -> asyncio.Future | None:
        """Run blocking I/O (store writes).  Inline unless overridden."""
        fn()
        return None


# ── Runtime ──────────────────────────────────────────────────────


class AsyncioScheduler(Scheduler):
    """Timers on the running asyncio loop (resolved lazily)."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._t0 = time.monotonic()
        # One worker keeps writes in submission order.
        self._io = ThreadPoolExecutor(max_workers=1, thread_name_prefix="grump-io")

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now_ms(self) -> float:
        return (time.monotonic() - self._t0) * 1000.0

    def schedule(self, delay_ms: float, cb: Callback) -> CancelToken:
        token = CancelToken()

        def _run() -> None:
            if token.cancelled:
                return
            try:
                cb()
            except Exception:
                log.exception("scheduler: timer callback failed")

        handle = self._get_loop().call_later(max(0.0, delay_ms) / 1000.0, _run)
        token._on_cancel = handle.cancel
        return token

    def run_blocking(self, fn: Callback) -> asyncio.Future:
        fut = self._get_loop().run_in_executor(self._io, fn)
        fut.add_done_callback(_log_io_failure)
        return fut

    def close(self) -> None:
        """Wait for queued I/O, then release the worker thread."""
        self._io.shutdown(wait=True)


def _log_io_failure(fut: asyncio.Future) -> None:
    if not fut.cancelled() and fut.exception() is not None:
        log.error("scheduler: blocking call failed: %s", fut.exception())


# ── Virtual clock ────────────────────────────────────────────────


class ManualScheduler(Scheduler):
    """Deterministic scheduler; time moves only via ``advance``."""

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now = float(start_ms)
        self._seq = itertools.count()
        self._heap: list[tuple[float, int, Callback, CancelToken]] = []

    def now_ms(self) -> float:
        return self._now

    def schedule(self, delay_ms: float, cb: Callback) -> CancelToken:
        token = CancelToken()
        due = self._now + max(0.0, float(delay_ms))
        heapq.heappush(self._heap, (due, next(self._seq), cb, token))
        return token

    @property
    def pending(self) -> int:
        return sum(1 for _, _, _, t in self._heap if not t.cancelled)

    def advance(self, ms: float) -> None:
        """Move the clock forward, firing every timer that comes due."""
        target = self._now + ms
        while self._heap and self._heap[0][0] <= target:
            due, _, cb, token = heapq.heappop(self._heap)
            if token.cancelled:
                continue
            self._now = max(self._now, due)
            cb()
        self._now = target

    def run_all(self, limit_ms: float = 600_000.0) -> None:
        """Drain one-shot timers, bounded so intervals cannot spin forever."""
        end = self._now + limit_ms
        while self._heap and self._heap[0][0] <= end:
            self.advance(self._heap[0][0] - self._now)
