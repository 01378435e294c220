"""
Periodic background sweep.

Each in-memory store owns one Sweeper. It is started from the app lifespan
and cancelled on shutdown, so there is no ambient timer left running when a
store is discarded (tests build and drop stores freely).
"""

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Sweeper:
    def __init__(self, name: str, sweep: Callable[[], int], interval_seconds: float):
        self.name = name
        self._sweep = sweep
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop(), name=f"sweep:{self.name}")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                removed = self._sweep()
                if removed:
                    logger.info("Sweep %s removed %s entries", self.name, removed)
            except Exception as e:
                # Keep sweeping; one bad pass should not stop memory from being bounded
                logger.error("Sweep %s failed: %s", self.name, e)
