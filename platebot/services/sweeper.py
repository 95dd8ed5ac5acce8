"""
PeriodicSweep - a repeating asyncio task owned by a component.

Used by ResultCache and RateLimiter to purge stale state independently of
access patterns.
"""

import asyncio
from datetime import timedelta
from typing import Callable

from loguru import logger


class PeriodicSweep:
    """
    Runs a synchronous callback every `interval` on the running event loop.

    Usage:
        sweep = PeriodicSweep("cache", timedelta(minutes=1), cache.cleanup_expired)
        sweep.start()   # needs a running loop
        ...
        sweep.stop()
    """

    def __init__(
        self,
        name: str,
        interval: timedelta,
        callback: Callable[[], object],
    ):
        self.name = name
        self.interval = interval
        self._callback = callback
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """
        Schedule the sweep on the running loop.

        Returns False when no loop is running; the owner may call start()
        again later from async code.
        """
        if self.is_running:
            return True

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"[{self.name}] no running loop, sweep not started")
            return False

        self._task = loop.create_task(self._run(), name=f"sweep:{self.name}")
        logger.debug(
            f"[{self.name}] sweep started, every {self.interval.total_seconds()}s"
        )
        return True

    def stop(self) -> None:
        """Cancel the sweep task."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.debug(f"[{self.name}] sweep stopped")

    async def _run(self) -> None:
        seconds = self.interval.total_seconds()
        while True:
            await asyncio.sleep(seconds)
            try:
                self._callback()
            except Exception as e:
                logger.error(f"[{self.name}] sweep failed: {e}")
