"""Periodic refresh trigger with an explicit start/stop lifecycle.

Usage:
    scheduler = RefreshScheduler(coordinator, interval=30.0)
    scheduler.start()
    ...
    await scheduler.stop()
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .coordinator import RefreshCoordinator

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 30.0


class RefreshScheduler:
    """Calls ``coordinator.trigger_periodic_refresh()`` every ``interval`` seconds.

    Each tick only schedules refresh tasks; the loop never waits for them, so
    a slow device cannot delay the next tick.
    """

    def __init__(
        self,
        coordinator: RefreshCoordinator,
        interval: float = DEFAULT_INTERVAL,
        fire_immediately: bool = False,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._coordinator = coordinator
        self._interval = interval
        self._fire_immediately = fire_immediately
        self._task: asyncio.Task[None] | None = None
        self.ticks = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start ticking on the running event loop. No-op if already running."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="refresh-scheduler")
        logger.debug("Refresh scheduler started with interval %.1fs", self._interval)

    async def stop(self) -> None:
        """Stop ticking. In-flight refresh tasks are left to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("Refresh scheduler stopped after %d tick(s)", self.ticks)

    def tick(self) -> None:
        self.ticks += 1
        self._coordinator.trigger_periodic_refresh()

    async def _loop(self) -> None:
        if self._fire_immediately:
            self.tick()
        while True:
            await asyncio.sleep(self._interval)
            self.tick()
