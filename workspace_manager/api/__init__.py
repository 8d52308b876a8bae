"""Debug HTTP API over the session projection."""

from workspace_manager.api.router import api_router

__all__ = ["api_router"]
