"""
Coalescing timer.

Each ``trigger()`` cancels the pending call (if any) and schedules a
new one ``delay`` seconds later, so a burst of triggers produces one
call after the burst goes quiet.  The callback is a coroutine function;
it runs as its own task and is never cancelled once started.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class CoalescingTimer:
    def __init__(self, delay: float, callback: Callable[[], Awaitable[None]]) -> None:
        self.delay = delay
        self._callback = callback
        self._handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.get_running_loop().create_task(self._callback())
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Debounced call failed", exc_info=exc)

    async def drain(self) -> None:
        """Wait for callbacks that have already started."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
