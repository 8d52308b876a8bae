"""Read-only views over the registry snapshot for the display layer."""

from __future__ import annotations

from dataclasses import dataclass

from workspace_manager.models import Session, StatusState, Workspace
from workspace_manager.registry import RegistrySnapshot, SessionRegistry
from workspace_manager.workspaces import WorkspaceCollection, normalize_path

# Higher ranks win when summarising a workspace.
_AGGREGATE_RANK = {
    StatusState.DISCONNECTED: 0,
    StatusState.IDLE: 1,
    StatusState.COMPLETED: 1,
    StatusState.ERROR: 1,
    StatusState.WAITING: 2,
    StatusState.WORKING: 3,
}


@dataclass(frozen=True)
class WorkspaceSummary:
    """Status-bar numbers for one workspace."""
    status: StatusState
    active_count: int
    working_count: int


class SessionProjection:
    """Pure queries over the most recently published snapshot.

    Every call reads ``registry.snapshot`` once, so a result never mixes two
    snapshots.
    """

    def __init__(self, registry: SessionRegistry, workspaces: WorkspaceCollection | None = None) -> None:
        self._registry = registry
        self._workspaces = workspaces if workspaces is not None else registry.workspaces

    @property
    def snapshot(self) -> RegistrySnapshot:
        return self._registry.snapshot

    def sessions_for_workspace(self, workspace: Workspace | str) -> list[Session]:
        """Live sessions resolved to ``workspace``, oldest first."""
        path = workspace.project_path if isinstance(workspace, Workspace) else workspace
        path = normalize_path(path)
        sessions = [
            session
            for session in self.snapshot.sessions
            if session.workspace_path == path and session.is_active
        ]
        return sorted(sessions, key=lambda session: session.created_at)

    def session_by_external_id(self, external_id: str) -> Session | None:
        """Look up a session in any status, Disconnected included."""
        for session in self.snapshot.sessions:
            if session.external_id == external_id:
                return session
        return None

    def all_sessions(self) -> list[Session]:
        return list(self.snapshot.sessions)

    def active_sessions(self) -> list[Session]:
        return [session for session in self.snapshot.sessions if session.is_active]

    def aggregate_status(self, workspace: Workspace | str) -> StatusState:
        """Most urgent status across the workspace's live sessions."""
        sessions = self.sessions_for_workspace(workspace)
        if not sessions:
            return StatusState.DISCONNECTED
        best = max(sessions, key=lambda session: _AGGREGATE_RANK[session.status])
        return best.status

    def summarize(self, workspace: Workspace | str) -> WorkspaceSummary:
        sessions = self.sessions_for_workspace(workspace)
        return WorkspaceSummary(
            status=self.aggregate_status(workspace),
            active_count=len(sessions),
            working_count=sum(1 for s in sessions if s.status == StatusState.WORKING),
        )

    @property
    def focused_tab(self) -> str | None:
        return self.snapshot.focused_tab

    def workspace_for_tab(self, tab_name: str) -> Workspace | None:
        """Find the workspace a multiplexer tab name refers to.

        Tabs are named ``repo/branch``. A repo name with a ``__`` suffix is
        matched on its base name, and a bare branch name matches too.
        """
        for workspace in self._workspaces:
            if workspace.display_name == tab_name:
                return workspace
        for workspace in self._workspaces:
            repo = (workspace.repo_name or "").split("__", 1)[0]
            if repo and workspace.branch and f"{repo}/{workspace.branch}" == tab_name:
                return workspace
        for workspace in self._workspaces:
            if workspace.branch and workspace.branch == tab_name:
                return workspace
        return None
