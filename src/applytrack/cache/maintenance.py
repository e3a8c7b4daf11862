"""Periodic expiry sweep for the cache store.

Expired entries are skipped on read but only removed by cleanup(); the
janitor runs that sweep on a fixed interval, off the request path.

Example:
    janitor = CacheJanitor(store, interval=300)
    await janitor.start()
    ...
    await janitor.stop()
"""

from __future__ import annotations

import asyncio
import logging
from types import TracebackType

from applytrack.cache.store import TTLCacheStore

logger = logging.getLogger(__name__)

DEFAULT_CLEANUP_INTERVAL = 300.0


class CacheJanitor:
    """Background task calling store.cleanup() every `interval` seconds."""

    def __init__(self, store: TTLCacheStore, interval: float = DEFAULT_CLEANUP_INTERVAL) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.store = store
        self.interval = interval
        self.sweeps = 0
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the sweep loop."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info(f"Started cache janitor (interval {self.interval}s)")

    async def stop(self) -> None:
        """Stop the sweep loop."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Stopped cache janitor")

    async def _sweep_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.interval)
            self.sweep()

    def sweep(self) -> int:
        """Run one cleanup pass now."""
        removed = self.store.cleanup()
        self.sweeps += 1
        return removed

    async def __aenter__(self) -> CacheJanitor:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()
