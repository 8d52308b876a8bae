"""Pydantic request/response models for API endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from workspace_manager.models import Session, StatusDetail, StatusState, Tool, Workspace
from workspace_manager.projection import SessionProjection


# --- Request Models ---


class WorkspaceRequest(BaseModel):
    """One workspace in an open-workspaces call."""

    project_path: str = Field(..., min_length=1)
    repo_name: str | None = None
    branch: str | None = None


class OpenWorkspacesRequest(BaseModel):
    """Request body replacing the workspace collection."""

    workspaces: list[WorkspaceRequest]


# --- Response Models ---


class HealthResponse(BaseModel):
    """Health check response."""

    ok: bool
    version: str
    listening: bool
    sessions: int
    workspaces: int


class SessionResponse(BaseModel):
    """Session data returned by API endpoints."""

    id: str
    external_id: str
    tool: Tool
    workspace_path: str | None
    status: StatusState
    status_detail: StatusDetail
    summary: str | None
    current_task: str | None
    last_activity: datetime | None
    created_at: datetime
    updated_at: datetime
    pane_id: int | None
    tab_name: str | None
    time_since_activity: str | None
    display_info: str

    @classmethod
    def from_session(cls, session: Session) -> "SessionResponse":
        return cls(
            **session.model_dump(),
            time_since_activity=session.time_since_activity(),
            display_info=session.display_info(),
        )


class WorkspaceResponse(BaseModel):
    """Workspace with its aggregate session status."""

    project_path: str
    repo_name: str | None
    branch: str | None
    display_name: str
    status: StatusState
    active_count: int
    working_count: int

    @classmethod
    def from_workspace(
        cls, workspace: Workspace, projection: SessionProjection
    ) -> "WorkspaceResponse":
        summary = projection.summarize(workspace)
        return cls(
            project_path=workspace.project_path,
            repo_name=workspace.repo_name,
            branch=workspace.branch,
            display_name=workspace.display_name,
            status=summary.status,
            active_count=summary.active_count,
            working_count=summary.working_count,
        )
