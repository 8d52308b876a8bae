"""Debug endpoints for local development."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from workspace_manager.api.deps import get_engine
from workspace_manager.api.schemas import SessionResponse
from workspace_manager.engine import SyncEngine

router = APIRouter(tags=["debug"])


@router.get("/debug/sessions", response_model=list[SessionResponse])
async def all_sessions(engine: SyncEngine = Depends(get_engine)) -> list[SessionResponse]:
    """Every session in the registry, Disconnected included."""
    return [SessionResponse.from_session(s) for s in engine.projection.all_sessions()]
