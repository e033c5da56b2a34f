"""Timer abstraction for delayed and recurring supervisor work.

WHY: The supervisor fires every 10 minutes and schedules recovery after
delays of seconds. Hiding the event loop behind a small interface lets
tests record and fire timers deterministically instead of sleeping.

HOW: AsyncioScheduler uses loop.call_later for one-shot callbacks and an
asyncio task with a sleep loop for recurring work. Callbacks may be plain
functions or coroutine functions; coroutines are run as tasks.

RULES:
- A recurring job keeps running after its callback raises (logged)
- cancel() on a handle is idempotent
- shutdown() cancels every outstanding timer
- One-shot timers are forgotten once they fire or are cancelled
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Set

logger = logging.getLogger(__name__)


class TimerHandle(ABC):
    @abstractmethod
    def cancel(self) -> None:
        """Stop the timer if it has not fired yet."""


class Scheduler(ABC):
    """Schedules one-shot and recurring callbacks."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        """Run callback once after delay seconds."""

    @abstractmethod
    def every(self, interval: float, callback: Callable[[], Any]) -> TimerHandle:
        """Run callback every interval seconds, first run after one interval."""

    @abstractmethod
    def shutdown(self) -> None:
        """Cancel every outstanding timer."""


class _LoopTimer(TimerHandle):
    """One-shot timer; removes itself from its owner's set once done."""

    def __init__(self, owner: Set["_LoopTimer"]) -> None:
        self._owner = owner
        self._handle: Optional[asyncio.TimerHandle] = None
        owner.add(self)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._owner.discard(self)


class _TaskTimer(TimerHandle):
    def __init__(self, task: "asyncio.Task[None]") -> None:
        self._task = task

    def cancel(self) -> None:
        if not self._task.done():
            self._task.cancel()


class AsyncioScheduler(Scheduler):
    """Scheduler bound to the running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop
        self._tasks: Set["asyncio.Task[Any]"] = set()
        self._timers: Set[_LoopTimer] = set()

    @property
    def pending(self) -> int:
        """Number of one-shot timers that have neither fired nor been cancelled."""
        return len(self._timers)

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        timer = _LoopTimer(self._timers)
        timer._handle = self._get_loop().call_later(delay, self._fire, timer, callback)
        return timer

    def every(self, interval: float, callback: Callable[[], Any]) -> TimerHandle:
        task = self._get_loop().create_task(self._repeat(interval, callback))
        self._track(task)
        return _TaskTimer(task)

    def shutdown(self) -> None:
        for timer in list(self._timers):
            timer.cancel()
        for task in list(self._tasks):
            task.cancel()

    def _fire(self, timer: _LoopTimer, callback: Callable[[], Any]) -> None:
        self._timers.discard(timer)
        try:
            result = callback()
        except Exception:
            logger.exception("Scheduled callback %r failed", callback)
            return
        if inspect.isawaitable(result):
            self._track(asyncio.ensure_future(self._guard(result)))

    async def _repeat(self, interval: float, callback: Callable[[], Any]) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Recurring callback %r failed", callback)

    @staticmethod
    async def _guard(awaitable: Any) -> None:
        try:
            await awaitable
        except Exception:
            logger.exception("Scheduled coroutine failed")

    def _track(self, task: "asyncio.Task[Any]") -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
