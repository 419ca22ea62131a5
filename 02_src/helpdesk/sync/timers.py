"""Cancellable delayed tasks for debouncing and throttling."""

import asyncio
from typing import Awaitable, Callable

from ..logging_config import get_logger

logger = get_logger(__name__)


class ScheduledTask:
    """Runs a coroutine function after a delay.

    Scheduling again before it fires replaces the pending run (debounce).
    Owners must ``cancel()`` it when the view it acts on goes away.
    """

    def __init__(self, name: str, callback: Callable[[], Awaitable[None]]):
        self._name = name
        self._callback = callback
        self._task: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, delay: float) -> None:
        """(Re)start the countdown."""
        self.cancel()
        self._task = asyncio.create_task(self._run(delay), name=self._name)

    def schedule_if_idle(self, delay: float) -> bool:
        """Start the countdown unless one is already running (throttle)."""
        if self.pending:
            return False
        self.schedule(delay)
        return True

    def cancel(self) -> None:
        """Drop the pending run. Safe to call more than once."""
        task = self._task
        self._task = None
        # A callback that reschedules itself must not cancel its own task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _run(self, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
            if self._task is asyncio.current_task():
                self._task = None
            await self._callback()
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error("Scheduled task %s failed: %s", self._name, e, exc_info=True)
