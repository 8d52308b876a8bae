"""Session lookup endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from workspace_manager.api.deps import get_engine
from workspace_manager.api.errors import not_found
from workspace_manager.api.schemas import SessionResponse
from workspace_manager.engine import SyncEngine

router = APIRouter(tags=["sessions"])


@router.get("/sessions/{external_id:path}", response_model=SessionResponse)
async def get_session(
    external_id: str, engine: SyncEngine = Depends(get_engine)
) -> SessionResponse:
    """Look up a session by external id, in any status."""
    session = engine.projection.session_by_external_id(external_id)
    if session is None:
        not_found("Session", external_id=external_id)
    return SessionResponse.from_session(session)
