from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, Set

from telemetry.logging_utils import get_logger

logger = get_logger(__name__)


class Debouncer:
    """
    Run an async callback once triggers have gone quiet for ``delay`` seconds.

    Each ``trigger()`` restarts the countdown, so a burst of edits produces a
    single call scheduled ``delay`` after the last one. The callback reads
    whatever state is current when it fires. Only the waiting phase can be
    cancelled; a callback that has started runs to completion.

    Must be used from inside a running event loop.
    """

    def __init__(self, delay: float, callback: Callable[[], Awaitable[None]]) -> None:
        self.delay = delay
        self._callback = callback
        self._timer: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def trigger(self) -> None:
        self.cancel()
        task = asyncio.get_running_loop().create_task(self._fire_later())
        self._timer = task
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def flush(self) -> None:
        """Fire a pending call now instead of waiting out the window."""
        if self._timer is None:
            return
        self.cancel()
        await self._callback()

    async def wait(self) -> None:
        """Wait until every scheduled or running call has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _fire_later(self) -> None:
        await asyncio.sleep(self.delay)
        self._timer = None
        logger.debug("debounce_fired", extra={"delay": self.delay})
        await self._callback()

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("debounce_callback_failed", exc_info=exc)
