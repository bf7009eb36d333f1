"""Coalescing timer for follow-on work after bursts of writes."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable
from collections.abc import Callable

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 0.5


class Debouncer:
    """Run an action once, `delay` seconds after the last trigger.

    Each trigger cancels the pending run and schedules a new one, so a
    burst of triggers yields a single call. Must be used from a running
    event loop.
    """

    def __init__(
        self,
        action: Callable[[], Awaitable[None] | None],
        delay: float = DEFAULT_DELAY,
    ) -> None:
        self.action = action
        self.delay = delay
        self._task: asyncio.Task | None = None
        self.fire_count = 0

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def trigger(self) -> None:
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run_later())

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def flush(self) -> None:
        """Run a pending action now instead of waiting out the delay."""
        if not self.pending:
            return
        self.cancel()
        await self._fire()

    async def _run_later(self) -> None:
        await asyncio.sleep(self.delay)
        await self._fire()

    async def _fire(self) -> None:
        self.fire_count += 1
        logger.debug("Debounced action firing")
        try:
            result = self.action()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Debounced action failed")
