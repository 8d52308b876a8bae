"""Wires the push listener, the pull scheduler and the registry together."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable, Iterable, Sequence

import structlog

from workspace_manager.discovery import default_fetchers
from workspace_manager.discovery.base import SessionFetcher
from workspace_manager.events import (
    PullBatchEvent,
    SyncEvent,
    TabFocusEvent,
    WorkspacesChangedEvent,
)
from workspace_manager.logwatch import default_log_watch
from workspace_manager.logwatch.source import LogWatchSource
from workspace_manager.models import Workspace
from workspace_manager.notify import socket_path as default_socket_path
from workspace_manager.notify.server import NotifyListener
from workspace_manager.projection import SessionProjection
from workspace_manager.registry import SessionRegistry
from workspace_manager.scheduler import PullScheduler
from workspace_manager.settings import settings
from workspace_manager.workspaces import WorkspaceCollection

logger = structlog.get_logger(__name__)

TabFocusHandler = Callable[[str], None]

_STOP = object()


class SyncEngine:
    """Owns the event queue and the only task that writes to the registry.

    Producers (the socket listener, the pull scheduler and the display layer)
    only put immutable events on ``queue``. The consumer applies them one by
    one in arrival order and publishes a snapshot after each.
    """

    def __init__(
        self,
        workspaces: WorkspaceCollection | None = None,
        registry: SessionRegistry | None = None,
        fetchers: Sequence[SessionFetcher] | None = None,
        socket_path: Path | None = None,
        poll_interval_seconds: float | None = None,
        log_watch: LogWatchSource | None = None,
        listen: bool = True,
    ) -> None:
        if workspaces is None:
            workspaces = registry.workspaces if registry is not None else WorkspaceCollection()
        self.workspaces = workspaces
        if registry is None:
            registry = SessionRegistry(
                workspaces, disconnect_threshold=settings.disconnect_threshold()
            )
        self.registry = registry
        self.projection = SessionProjection(self.registry, self.workspaces)
        self.queue: asyncio.Queue = asyncio.Queue()
        self.listener = (
            NotifyListener(socket_path or default_socket_path(), self.queue) if listen else None
        )
        self.scheduler = PullScheduler(
            default_fetchers() if fetchers is None else fetchers,
            self.queue,
            self.workspaces,
            poll_interval_seconds
            if poll_interval_seconds is not None
            else settings.poll_interval_seconds(),
            log_watch=log_watch,
            snapshot=lambda: self.registry.snapshot,
        )
        self._tab_focus_handlers: list[TabFocusHandler] = []
        self._consumer: asyncio.Task | None = None

    @classmethod
    def from_settings(cls) -> "SyncEngine":
        workspaces = WorkspaceCollection(
            Workspace(project_path=path) for path in settings.workspace_paths()
        )
        return cls(
            workspaces=workspaces,
            log_watch=default_log_watch() if settings.logwatch_enabled() else None,
        )

    @property
    def is_running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    async def start(self) -> None:
        if self.is_running:
            return
        self._consumer = asyncio.create_task(self._consume(), name="sync-consumer")
        if self.listener is not None:
            try:
                await self.listener.start()
            except OSError as exc:
                # Pull sources keep the registry current without push events.
                logger.error(
                    "Failed to start notification listener",
                    socket_path=str(self.listener.path),
                    error=str(exc),
                )
        self.scheduler.start()
        logger.info("Sync engine started", workspaces=len(self.workspaces))

    async def stop(self) -> None:
        """Stop producers first, then let the consumer drain the queue."""
        if self.listener is not None:
            await self.listener.stop(drain_timeout=settings.socket_drain_seconds())
        await self.scheduler.stop()
        if self._consumer is not None:
            await self.queue.put(_STOP)
            await self._consumer
            self._consumer = None
        logger.info("Sync engine stopped")

    async def submit(self, event: SyncEvent) -> None:
        """Enqueue an event from an in-process producer."""
        await self.queue.put(event)

    async def wait_idle(self) -> None:
        """Wait until every queued event has been applied."""
        await self.queue.join()

    def open_workspaces(self, workspaces: Iterable[Workspace]) -> None:
        """Replace the workspace collection after a display-layer scan."""
        self.workspaces.replace(workspaces)
        self.queue.put_nowait(WorkspacesChangedEvent())

    def add_tab_focus_handler(self, handler: TabFocusHandler) -> None:
        self._tab_focus_handlers.append(handler)

    def remove_tab_focus_handler(self, handler: TabFocusHandler) -> None:
        if handler in self._tab_focus_handlers:
            self._tab_focus_handlers.remove(handler)

    async def _consume(self) -> None:
        while True:
            event = await self.queue.get()
            try:
                if event is _STOP:
                    return
                self.apply(event)
            finally:
                self.queue.task_done()

    def apply(self, event: SyncEvent) -> None:
        """Apply one event; a failure is logged and does not stop the stream."""
        try:
            self.registry.apply(event)
        except Exception:
            logger.exception("Failed to apply event", event_type=type(event).__name__)
        finally:
            if isinstance(event, PullBatchEvent) and event.applied is not None:
                event.applied.set()
        if isinstance(event, TabFocusEvent):
            self._notify_tab_focus(event.tab_name)

    def _notify_tab_focus(self, tab_name: str) -> None:
        for handler in list(self._tab_focus_handlers):
            try:
                handler(tab_name)
            except Exception:
                logger.exception("Tab focus handler failed", tab_name=tab_name)
