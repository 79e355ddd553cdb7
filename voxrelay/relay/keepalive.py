"""Periodic keepalive for an open upstream link."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger()


class KeepaliveTimer:
    """Repeating action run every ``interval`` seconds.

    The first action runs one full interval after ``start()``. Errors
    raised by the action are logged and the timer keeps running.
    ``cancel()`` takes effect immediately: ``active`` is False as soon as
    it returns.

    Example:
        timer = KeepaliveTimer(10.0, link.send_keepalive)
        timer.start()
        ...
        timer.cancel()
    """

    def __init__(
        self,
        interval: float,
        action: Callable[[], Awaitable[None]],
        name: str = "keepalive",
    ) -> None:
        self.interval = interval
        self.name = name
        self.ticks = 0
        self._action = action
        self._task: asyncio.Task | None = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.active:
            return
        self._task = asyncio.create_task(self._run(), name=self.name)

    def cancel(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.ticks += 1
            try:
                await self._action()
            except Exception as e:
                logger.warning("keepalive_failed", timer=self.name, error=str(e))
