"""
Periodic expired-snapshot sweep.

Runs ``MatchFinder.sweep_expired`` on a fixed interval in a background
asyncio task. The sweep only deletes rows that are already expired, so it
can run alongside match requests without coordination.

Example:
    sweeper = SnapshotSweeper(finder, interval_seconds=3600)
    await sweeper.start()
    ...
    await sweeper.close()
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from studymatch.core.finder import MatchFinder

logger = logging.getLogger(__name__)


class SnapshotSweeper:

    def __init__(self, finder: MatchFinder, interval_seconds: float = 3600.0):
        self._finder = finder
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self.last_deleted = 0
        self.runs = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info("SnapshotSweeper started (interval=%ss)", self._interval)

    async def run_once(self) -> int:
        self.last_deleted = await self._finder.sweep_expired()
        self.runs += 1
        return self.last_deleted

    async def _sweep_loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                # A failed sweep is retried on the next tick.
                logger.error("Snapshot sweep failed: %s", e, exc_info=True)
            await asyncio.sleep(self._interval)

    async def close(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("SnapshotSweeper stopped after %d runs", self.runs)
