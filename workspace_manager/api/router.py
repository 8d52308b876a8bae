"""Composition of API routers."""

from __future__ import annotations

from fastapi import APIRouter

from workspace_manager.api.debug import router as debug_router
from workspace_manager.api.health import router as health_router
from workspace_manager.api.sessions import router as sessions_router
from workspace_manager.api.workspaces import router as workspaces_router

api_router = APIRouter(prefix="/api")
api_router.include_router(health_router)
api_router.include_router(workspaces_router)
api_router.include_router(sessions_router)
api_router.include_router(debug_router)
