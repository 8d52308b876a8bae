"""FastAPI application entrypoint for the sync daemon."""

from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError

from workspace_manager import __version__
from workspace_manager.api import api_router
from workspace_manager.engine import SyncEngine
from workspace_manager.log_config import configure_logging
from workspace_manager.middleware import (
    http_exception_handler,
    request_logging_middleware,
    validation_exception_handler,
)
from workspace_manager.settings import settings

configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = getattr(app.state, "engine", None)
    if engine is None:
        engine = SyncEngine.from_settings()
        app.state.engine = engine
    await engine.start()
    logger.info(
        "workspace-manager started",
        version=__version__,
        host=settings.host(),
        port=settings.port(),
    )
    try:
        yield
    finally:
        await engine.stop()
        app.state.engine = None


app = FastAPI(title="workspace-manager", version=__version__, lifespan=lifespan)

app.middleware("http")(request_logging_middleware)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

app.include_router(api_router)


def run() -> None:
    """Run the daemon with its debug API."""
    uvicorn.run(
        "workspace_manager.main:app",
        host=settings.host(),
        port=settings.port(),
        reload=False,
        log_config=None,
    )


if __name__ == "__main__":
    run()
