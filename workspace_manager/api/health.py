"""Health endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from workspace_manager import __version__
from workspace_manager.api.deps import get_engine
from workspace_manager.api.schemas import HealthResponse
from workspace_manager.engine import SyncEngine

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health(engine: SyncEngine = Depends(get_engine)) -> HealthResponse:
    """Health check endpoint."""
    listener = engine.listener
    return HealthResponse(
        ok=True,
        version=__version__,
        listening=listener is not None and listener.is_serving,
        sessions=len(engine.projection.active_sessions()),
        workspaces=len(engine.workspaces),
    )
