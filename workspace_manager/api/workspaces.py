"""Workspace endpoints: the open-workspaces call and per-workspace sessions."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query

from workspace_manager.api.deps import get_engine
from workspace_manager.api.errors import not_found
from workspace_manager.api.schemas import (
    OpenWorkspacesRequest,
    SessionResponse,
    WorkspaceResponse,
)
from workspace_manager.engine import SyncEngine
from workspace_manager.models import Workspace

router = APIRouter(tags=["workspaces"])
logger = structlog.get_logger(__name__)


@router.get("/workspaces", response_model=list[WorkspaceResponse])
async def list_workspaces(engine: SyncEngine = Depends(get_engine)) -> list[WorkspaceResponse]:
    """List workspaces with their aggregate session status."""
    return [
        WorkspaceResponse.from_workspace(workspace, engine.projection)
        for workspace in engine.workspaces
    ]


@router.post("/workspaces", response_model=list[WorkspaceResponse])
async def open_workspaces(
    payload: OpenWorkspacesRequest,
    engine: SyncEngine = Depends(get_engine),
) -> list[WorkspaceResponse]:
    """Replace the workspace collection; sessions are re-resolved asynchronously."""
    engine.open_workspaces(
        Workspace(**item.model_dump()) for item in payload.workspaces
    )
    logger.info("Workspaces replaced", count=len(payload.workspaces))
    return [
        WorkspaceResponse.from_workspace(workspace, engine.projection)
        for workspace in engine.workspaces
    ]


@router.get("/workspaces/sessions", response_model=list[SessionResponse])
async def workspace_sessions(
    path: str = Query(..., min_length=1),
    engine: SyncEngine = Depends(get_engine),
) -> list[SessionResponse]:
    """Live sessions of one workspace, oldest first."""
    if engine.workspaces.find_by_path(path) is None:
        not_found("Workspace", path=path)
    return [
        SessionResponse.from_session(session)
        for session in engine.projection.sessions_for_workspace(path)
    ]
