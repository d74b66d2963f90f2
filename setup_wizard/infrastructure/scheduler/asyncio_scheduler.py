from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable

from setup_wizard.application.ports.scheduler import Callback, ScheduledTask, SchedulerPort


class _LoopTimer(ScheduledTask):
    def __init__(self, handle: asyncio.TimerHandle) -> None:
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled()


class AsyncioScheduler(SchedulerPort):
    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._tasks: set[asyncio.Future[Any]] = set()
        self._logger = logging.getLogger(__name__)

    def call_later(self, delay_seconds: float, callback: Callback) -> ScheduledTask:
        loop = self._loop or asyncio.get_running_loop()
        handle = loop.call_later(max(0.0, delay_seconds), self._fire, callback)
        return _LoopTimer(handle)

    def spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _fire(self, callback: Callback) -> None:
        result = callback()
        if inspect.isawaitable(result):
            self.spawn(result)

    def _on_done(self, task: asyncio.Future[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.error("Scheduled task failed", exc_info=exc, extra={"reason": type(exc).__name__})
