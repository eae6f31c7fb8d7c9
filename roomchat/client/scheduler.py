"""Cancellable, named timers on the running asyncio loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger("roomchat.client.scheduler")

Job = Callable[[], Awaitable[object]]


class TimerHandle:
    """A running timer; cancelling it stops future ticks, not an in-flight job."""

    def __init__(self, name: str, task: asyncio.Task) -> None:
        self.name = name
        self._task = task

    @property
    def active(self) -> bool:
        return not self._task.done()

    def cancel(self) -> None:
        self._task.cancel()


class Scheduler:
    """Owns every timer of a client so teardown can cancel them together.

    Registering a timer under a name that is already in use cancels the
    previous timer first.
    """

    def __init__(self) -> None:
        self._timers: dict[str, TimerHandle] = {}

    def every(self, name: str, interval: float, job: Job, *, immediate: bool = False) -> TimerHandle:
        return self._register(name, self._repeat(name, interval, job, immediate))

    def call_later(self, name: str, delay: float, job: Job) -> TimerHandle:
        return self._register(name, self._once(name, delay, job))

    def cancel(self, name: str) -> bool:
        handle = self._timers.pop(name, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

    def get(self, name: str) -> TimerHandle | None:
        handle = self._timers.get(name)
        return handle if handle and handle.active else None

    @property
    def names(self) -> list[str]:
        return [name for name, handle in self._timers.items() if handle.active]

    def _register(self, name: str, coro) -> TimerHandle:
        self.cancel(name)
        handle = TimerHandle(name, asyncio.get_running_loop().create_task(coro))
        self._timers[name] = handle
        return handle

    async def _repeat(self, name: str, interval: float, job: Job, immediate: bool) -> None:
        if not immediate:
            await asyncio.sleep(interval)
        while True:
            await _run(name, job)
            await asyncio.sleep(interval)

    async def _once(self, name: str, delay: float, job: Job) -> None:
        await asyncio.sleep(delay)
        await _run(name, job)
        current = self._timers.get(name)
        if current is not None and current._task is asyncio.current_task():
            del self._timers[name]


async def _run(name: str, job: Job) -> None:
    # A failing tick is logged and the timer keeps running
    try:
        await job()
    except asyncio.CancelledError:
        raise
    except Exception:
        logger.exception("Timer %s failed", name)
