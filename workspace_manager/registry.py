"""Single-writer session registry.

The registry owns every Session. Only the engine's consumer task calls
``apply``; readers go through the immutable snapshot published after each
applied event.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import structlog

from workspace_manager.events import (
    AnalysisEvent,
    EventSource,
    PullBatchEvent,
    RegisterEvent,
    StatusEvent,
    SyncEvent,
    TabFocusEvent,
    UnregisterEvent,
    WorkspacesChangedEvent,
)
from workspace_manager.identity import UnknownToolError, parse_external_id, project_path_hint
from workspace_manager.models import (
    AnalysisStatus,
    DiscoveryBatch,
    Session,
    StatusDetail,
    StatusState,
    Tool,
    truncate_summary,
    utc_now,
    validate_detail,
)
from workspace_manager.workspaces import WorkspaceCollection, normalize_path

logger = structlog.get_logger(__name__)

DEFAULT_DISCONNECT_THRESHOLD = 2

# Field groups carrying their own last-write clock.
STATUS_FIELD = "status"
SUMMARY_FIELD = "summary"
TASK_FIELD = "current_task"


@dataclass(frozen=True)
class RegistrySnapshot:
    """Point-in-time copy of the registry handed to readers."""
    sessions: tuple[Session, ...] = ()
    focused_tab: str | None = None
    version: int = 0


class SessionRegistry:
    """Owns session identity, status and workspace association."""

    def __init__(
        self,
        workspaces: WorkspaceCollection | None = None,
        disconnect_threshold: int = DEFAULT_DISCONNECT_THRESHOLD,
    ) -> None:
        self.workspaces = workspaces if workspaces is not None else WorkspaceCollection()
        self.disconnect_threshold = max(1, disconnect_threshold)
        self._sessions: dict[str, Session] = {}
        self._project_paths: dict[str, str] = {}
        self._clocks: dict[str, dict[str, tuple[datetime, EventSource]]] = {}
        self._missed_cycles: dict[str, int] = {}
        self._focused_tab: str | None = None
        self._version = 0
        self._snapshot = RegistrySnapshot()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, external_id: object) -> bool:
        return external_id in self._sessions

    @property
    def snapshot(self) -> RegistrySnapshot:
        return self._snapshot

    def get(self, external_id: str) -> Session | None:
        return self._sessions.get(external_id)

    def missed_cycles(self, external_id: str) -> int:
        return self._missed_cycles.get(external_id, 0)

    # ------------------------------------------------------------------
    # Event application
    # ------------------------------------------------------------------

    def apply(self, event: SyncEvent) -> None:
        """Apply one event and publish a fresh snapshot."""
        if isinstance(event, RegisterEvent):
            self._register(event)
        elif isinstance(event, StatusEvent):
            self._status(event)
        elif isinstance(event, UnregisterEvent):
            self._unregister(event)
        elif isinstance(event, PullBatchEvent):
            self._apply_batch(event.batch)
        elif isinstance(event, AnalysisEvent):
            self._analysis(event)
        elif isinstance(event, TabFocusEvent):
            self._focused_tab = event.tab_name
        elif isinstance(event, WorkspacesChangedEvent):
            self.resolve_workspaces()
        else:
            raise TypeError(f"Unsupported event: {type(event).__name__}")
        self._publish()

    def _register(self, event: RegisterEvent) -> None:
        existing = self._sessions.get(event.external_id)
        if existing is not None and existing.is_active:
            if event.external_id not in self._project_paths:
                self._set_project_path(existing, event.project_path)
            if existing.pane_id is None and event.pane_id is not None:
                existing.pane_id = event.pane_id
            return
        if existing is not None:
            logger.info("Reactivating disconnected session", external_id=event.external_id)
        self._create(
            event.external_id,
            event.tool,
            event.project_path,
            event.timestamp,
            pane_id=event.pane_id,
        )

    def _status(self, event: StatusEvent) -> None:
        session = self._sessions.get(event.external_id)
        if session is None:
            try:
                tool, _ = parse_external_id(event.external_id)
            except UnknownToolError:
                logger.warning("Ignoring status for unknown tool", external_id=event.external_id)
                return
            session = self._create(
                event.external_id,
                tool,
                project_path_hint(event.external_id),
                event.timestamp,
            )
        if not session.is_active:
            logger.debug("Ignoring status for disconnected session", external_id=event.external_id)
            return
        if event.status == StatusState.DISCONNECTED:
            self._disconnect(session, event.timestamp, reason="status")
            return
        self._set_status(
            session, event.status, event.detail, event.timestamp, EventSource.PUSH
        )
        if event.message:
            self._set_text(
                session, SUMMARY_FIELD, event.message, event.timestamp, EventSource.PUSH
            )
        self._touch(session, event.timestamp)

    def _unregister(self, event: UnregisterEvent) -> None:
        session = self._sessions.get(event.external_id)
        if session is None or not session.is_active:
            return
        self._disconnect(session, event.timestamp, reason="unregister")

    def _analysis(self, event: AnalysisEvent) -> None:
        session = self._sessions.get(event.external_id)
        if session is None or not session.is_active:
            return
        self._apply_pull_status(session, event.status, event.observed_at)

    def _apply_batch(self, batch: DiscoveryBatch) -> None:
        seen: set[str] = set()
        for discovered in batch.sessions:
            try:
                tool, _ = parse_external_id(discovered.external_id)
            except UnknownToolError:
                logger.warning(
                    "Ignoring discovered session with unknown tool",
                    external_id=discovered.external_id,
                )
                continue
            seen.add(discovered.external_id)
            self._missed_cycles.pop(discovered.external_id, None)
            session = self._sessions.get(discovered.external_id)
            if session is None:
                session = self._create(
                    discovered.external_id,
                    tool,
                    discovered.project_path,
                    discovered.status.last_activity or batch.observed_at,
                )
            elif not session.is_active:
                continue
            elif discovered.external_id not in self._project_paths:
                self._set_project_path(session, discovered.project_path)
            self._apply_pull_status(session, discovered.status, batch.observed_at)

        if not batch.reliable:
            logger.debug(
                "Skipping disconnect detection",
                tool=batch.tool.value,
                processes_probed=batch.processes_probed,
                sessions_read=batch.sessions_read,
            )
            return
        self._detect_disconnects(batch, seen)

    def _still_running(self, external_id: str, session: Session, batch: DiscoveryBatch) -> bool:
        """Whether a running process of the batch's tool accounts for the session."""
        _, raw_id = parse_external_id(external_id)
        process = batch.process_for_session(raw_id)
        if process is not None:
            if external_id not in self._project_paths:
                self._set_project_path(session, process.cwd)
            return True
        path = self._project_paths.get(external_id)
        if path is None:
            # Without a path only an idle tool proves the session gone.
            return bool(batch.processes)
        return batch.process_count(path) > 0

    def _detect_disconnects(self, batch: DiscoveryBatch, seen: set[str]) -> None:
        for external_id, session in list(self._sessions.items()):
            if session.tool != batch.tool or not session.is_active or external_id in seen:
                continue
            if self._still_running(external_id, session, batch):
                self._missed_cycles.pop(external_id, None)
                continue
            missed = self._missed_cycles.get(external_id, 0) + 1
            if missed >= self.disconnect_threshold:
                self._disconnect(session, batch.observed_at, reason="discovery")
            else:
                self._missed_cycles[external_id] = missed
                logger.debug(
                    "Session missing from discovery",
                    external_id=external_id,
                    missed_cycles=missed,
                )

    # ------------------------------------------------------------------
    # Workspace resolution
    # ------------------------------------------------------------------

    def resolve_workspaces(self) -> None:
        """Re-resolve every session against the current workspace collection."""
        for external_id, session in self._sessions.items():
            session.workspace_path = self._resolve(self._project_paths.get(external_id))

    def _resolve(self, project_path: str | None) -> str | None:
        workspace = self.workspaces.find_by_path(project_path)
        return workspace.project_path if workspace is not None else None

    def _set_project_path(self, session: Session, project_path: str | None) -> None:
        if not project_path:
            return
        normalized = normalize_path(project_path)
        self._project_paths[session.external_id] = normalized
        session.workspace_path = self._resolve(normalized)

    # ------------------------------------------------------------------
    # Mutation helpers
    # ------------------------------------------------------------------

    def _create(
        self,
        external_id: str,
        tool: Tool,
        project_path: str | None,
        timestamp: datetime,
        pane_id: int | None = None,
    ) -> Session:
        # Replacing a Disconnected session moves it to the end of the ordering.
        self._sessions.pop(external_id, None)
        self._project_paths.pop(external_id, None)
        self._clocks[external_id] = {}
        self._missed_cycles.pop(external_id, None)
        session = Session(
            external_id=external_id,
            tool=tool,
            last_activity=timestamp,
            created_at=timestamp,
            updated_at=timestamp,
            pane_id=pane_id,
        )
        self._sessions[external_id] = session
        self._set_project_path(session, project_path)
        logger.info(
            "Session registered",
            external_id=external_id,
            tool=tool.value,
            workspace_path=session.workspace_path,
        )
        return session

    def _accept(
        self, session: Session, field: str, timestamp: datetime, source: EventSource
    ) -> bool:
        clocks = self._clocks.setdefault(session.external_id, {})
        current = clocks.get(field)
        if current is not None and (timestamp, source) < current:
            return False
        clocks[field] = (timestamp, source)
        return True

    def _set_status(
        self,
        session: Session,
        status: StatusState,
        detail: StatusDetail | None,
        timestamp: datetime,
        source: EventSource,
    ) -> None:
        if not self._accept(session, STATUS_FIELD, timestamp, source):
            logger.debug(
                "Ignoring stale status",
                external_id=session.external_id,
                status=status.value,
                source=source.name.lower(),
            )
            return
        session.status = status
        session.status_detail = validate_detail(status, detail)
        session.updated_at = utc_now()

    def _set_text(
        self,
        session: Session,
        field: str,
        value: str | None,
        timestamp: datetime,
        source: EventSource,
    ) -> None:
        if value is None or not self._accept(session, field, timestamp, source):
            return
        if field == SUMMARY_FIELD:
            session.summary = truncate_summary(value)
        else:
            session.current_task = value
        session.updated_at = utc_now()

    def _apply_pull_status(
        self, session: Session, status: AnalysisStatus, observed_at: datetime
    ) -> None:
        # Store records carry their own modification time; that is what the
        # observation is as fresh as.
        timestamp = status.last_activity or observed_at
        if status.status != StatusState.DISCONNECTED:
            self._set_status(
                session, status.status, status.state_detail, timestamp, EventSource.PULL
            )
        self._set_text(session, SUMMARY_FIELD, status.summary, timestamp, EventSource.PULL)
        self._set_text(session, TASK_FIELD, status.current_task, timestamp, EventSource.PULL)
        if status.last_activity is not None:
            self._touch(session, status.last_activity)

    def _touch(self, session: Session, timestamp: datetime) -> None:
        if session.last_activity is None or timestamp > session.last_activity:
            session.last_activity = timestamp

    def _disconnect(self, session: Session, timestamp: datetime, reason: str) -> None:
        session.status = StatusState.DISCONNECTED
        session.status_detail = StatusDetail.SESSION_ENDED
        session.updated_at = utc_now()
        self._clocks.setdefault(session.external_id, {})[STATUS_FIELD] = (
            timestamp,
            EventSource.PUSH,
        )
        self._missed_cycles.pop(session.external_id, None)
        logger.info("Session disconnected", external_id=session.external_id, reason=reason)

    def _publish(self) -> None:
        self._version += 1
        self._snapshot = RegistrySnapshot(
            sessions=tuple(session.model_copy() for session in self._sessions.values()),
            focused_tab=self._focused_tab,
            version=self._version,
        )
