"""Deferred scheduling helper used by the ensure dispatcher."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

LOG = logging.getLogger(__name__)


class DelayedRunner:
    """Run coroutines after a delay.

    By default every submission gets its own timer, so rapid submissions all
    fire. With ``coalesce=True`` a new submission cancels the pending one.
    """

    def __init__(self, delay: float = 0.0, *, coalesce: bool = False) -> None:
        self._delay = delay
        self._coalesce = coalesce
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def delay(self) -> float:
        return self._delay

    @delay.setter
    def delay(self, value: float) -> None:
        if value < 0:
            raise ValueError(f"delay must be >= 0, got {value}")
        self._delay = value

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, coro_factory: Callable[[], Awaitable[Any]]) -> asyncio.Task[Any]:
        """Schedule a coroutine to run once the current delay elapses."""

        if self._coalesce:
            self.cancel()
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._runner(self._delay, coro_factory))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def cancel(self) -> None:
        """Cancel every pending invocation."""

        for task in tuple(self._tasks):
            task.cancel()
        self._tasks.clear()

    async def drain(self) -> None:
        """Wait for all pending invocations to finish."""

        while self._tasks:
            await asyncio.gather(*tuple(self._tasks), return_exceptions=True)

    async def _runner(self, delay: float, coro_factory: Callable[[], Awaitable[Any]]) -> None:
        try:
            await asyncio.sleep(delay)
            await coro_factory()
        except asyncio.CancelledError:
            return
        except Exception:
            LOG.exception("Deferred task failed")


__all__ = ["DelayedRunner"]
