"""Dependency helpers for API endpoints."""

from __future__ import annotations

from fastapi import Request

from workspace_manager.api.errors import raise_http_error
from workspace_manager.engine import SyncEngine


def get_engine(request: Request) -> SyncEngine:
    """Return the engine started by the application lifespan."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise_http_error("UNAVAILABLE", "Sync engine is not running", 503)
    return engine
