"""Background connectivity probe feeding the sync coordinator."""

from __future__ import annotations

import asyncio
import contextlib

from loguru import logger

from src.pantry.client.coordinator import SyncCoordinator


class ConnectivityWatcher:
    """Polls the API's liveness endpoint and reports every observation.

    The coordinator turns an offline-to-online transition into one replay
    pass, so the watcher itself does not track transitions.
    """

    def __init__(self, coordinator: SyncCoordinator, interval: float = 5.0):
        self.coordinator = coordinator
        self.interval = interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def check(self) -> bool:
        online = await self.coordinator.remote.ping()
        await self.coordinator.connectivity_changed(online)
        return online

    async def _run(self) -> None:
        while True:
            try:
                await self.check()
            except Exception as e:
                logger.error("Connectivity check failed: {}", e)
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="pantry-connectivity")
        logger.debug("Connectivity watcher started (every {}s)", self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.debug("Connectivity watcher stopped")
