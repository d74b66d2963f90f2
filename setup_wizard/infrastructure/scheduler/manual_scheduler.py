from __future__ import annotations

import asyncio
import inspect
import itertools
from typing import Any, Awaitable

from setup_wizard.application.ports.scheduler import Callback, ScheduledTask, SchedulerPort


class _ManualTimer(ScheduledTask):
    def __init__(self, due: float, seq: int, callback: Callback) -> None:
        self.due = due
        self.seq = seq
        self.callback = callback
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(SchedulerPort):
    """Virtual-clock scheduler: timers only fire when ``advance`` moves time forward."""

    def __init__(self) -> None:
        self._now = 0.0
        self._seq = itertools.count()
        self._timers: list[_ManualTimer] = []
        self._tasks: set[asyncio.Future[Any]] = set()

    @property
    def now(self) -> float:
        return self._now

    @property
    def pending_timers(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled)

    def call_later(self, delay_seconds: float, callback: Callback) -> ScheduledTask:
        timer = _ManualTimer(self._now + max(0.0, delay_seconds), next(self._seq), callback)
        self._timers.append(timer)
        return timer

    def spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def advance(self, seconds: float) -> None:
        target = self._now + seconds
        while True:
            due = [t for t in self._timers if not t.cancelled and t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due, t.seq))
            self._timers.remove(timer)
            self._now = timer.due
            result = timer.callback()
            if inspect.isawaitable(result):
                self.spawn(result)
        self._timers = [t for t in self._timers if not t.cancelled]
        self._now = target
        # let spawned tasks start and run up to their first real suspension point
        for _ in range(3):
            await asyncio.sleep(0)

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
