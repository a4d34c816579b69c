"""Timer-reset debouncing for bursts of filesystem notifications."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger("agent_dashboard.debounce")


class Debouncer:
    """Collapse a burst of ``trigger()`` calls into one callback run.

    Every trigger re-arms a single pending timer; when it fires with no newer
    trigger, the callback runs once as a task. Must be used from the event
    loop thread.
    """

    def __init__(self, delay_seconds: float, callback: Callable[[], Awaitable[None]]):
        self.delay_seconds = delay_seconds
        self._callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()
        self.fired = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self.delay_seconds, self._fire)

    def _fire(self) -> None:
        self._handle = None
        self.fired += 1
        task = asyncio.get_running_loop().create_task(self._run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self) -> None:
        try:
            await self._callback()
        except Exception as e:  # noqa: BLE001
            logger.error(f"Debounced callback failed: {e}")

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    async def drain(self) -> None:
        """Wait for callback tasks that already started."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
