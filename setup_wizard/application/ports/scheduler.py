from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable


Callback = Callable[[], "Awaitable[Any] | None"]


class ScheduledTask(ABC):
    @abstractmethod
    def cancel(self) -> None:
        """Cancel the timer if it has not fired yet. Already running work is not interrupted."""
        raise NotImplementedError

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        raise NotImplementedError


class SchedulerPort(ABC):
    @abstractmethod
    def call_later(self, delay_seconds: float, callback: Callback) -> ScheduledTask:
        """Run ``callback`` after ``delay_seconds``. A returned coroutine is run as a task."""
        raise NotImplementedError

    @abstractmethod
    def spawn(self, coro: Awaitable[Any]) -> None:
        """Run a coroutine in the background on the scheduler's loop."""
        raise NotImplementedError
