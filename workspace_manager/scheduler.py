"""Periodic pull cycles feeding the engine's event queue."""

from __future__ import annotations

import asyncio
from contextlib import suppress
from typing import Callable, Sequence

import structlog

from workspace_manager.discovery.base import SessionFetcher
from workspace_manager.events import PullBatchEvent
from workspace_manager.logwatch.source import LogWatchSource
from workspace_manager.registry import RegistrySnapshot
from workspace_manager.workspaces import WorkspaceCollection

logger = structlog.get_logger(__name__)


class PullScheduler:
    """Runs every pull source on a fixed interval.

    Each fetcher has its own task. A fetcher's next cycle starts only after
    its previous batch has been applied by the consumer, so batches from one
    source never overtake each other.
    """

    def __init__(
        self,
        fetchers: Sequence[SessionFetcher],
        queue: asyncio.Queue,
        workspaces: WorkspaceCollection,
        interval_seconds: float,
        log_watch: LogWatchSource | None = None,
        snapshot: Callable[[], RegistrySnapshot] | None = None,
    ) -> None:
        self.fetchers = list(fetchers)
        self._queue = queue
        self._workspaces = workspaces
        self.interval_seconds = interval_seconds
        self._log_watch = log_watch
        self._snapshot = snapshot
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        if self.running:
            return
        for fetcher in self.fetchers:
            self._tasks.append(
                asyncio.create_task(self._fetcher_loop(fetcher), name=f"pull-{fetcher.name}")
            )
        if self._log_watch is not None and self._snapshot is not None:
            self._tasks.append(asyncio.create_task(self._log_watch_loop(), name="pull-logwatch"))
        logger.info(
            "Pull scheduler started",
            fetchers=[fetcher.name for fetcher in self.fetchers],
            interval_seconds=self.interval_seconds,
            log_watch=self._log_watch is not None,
        )

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()
        logger.info("Pull scheduler stopped")

    async def run_fetcher_once(self, fetcher: SessionFetcher) -> bool:
        """Poll one fetcher and wait until its batch is applied.

        Returns False when the fetcher's store is not available.
        """
        available = await asyncio.to_thread(fetcher.is_available)
        if not available:
            logger.debug("Skipping unavailable pull source", tool=fetcher.name)
            return False
        batch = await asyncio.to_thread(fetcher.poll, self._workspaces.paths())
        applied = asyncio.Event()
        await self._queue.put(PullBatchEvent(batch=batch, applied=applied))
        await applied.wait()
        return True

    async def run_log_watch_once(self) -> int:
        if self._log_watch is None or self._snapshot is None:
            return 0
        events = await self._log_watch.run_cycle(self._snapshot())
        for event in events:
            await self._queue.put(event)
        return len(events)

    async def _fetcher_loop(self, fetcher: SessionFetcher) -> None:
        while True:
            try:
                await self.run_fetcher_once(fetcher)
            except Exception:
                logger.exception("Pull cycle failed", tool=fetcher.name)
            await asyncio.sleep(self.interval_seconds)

    async def _log_watch_loop(self) -> None:
        while True:
            try:
                await self.run_log_watch_once()
            except Exception:
                logger.exception("Log watch cycle failed")
            await asyncio.sleep(self.interval_seconds)
