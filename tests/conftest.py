"""Shared pytest fixtures for workspace-manager tests."""

import os
import shutil
import tempfile
from pathlib import Path
from typing import AsyncGenerator, Generator

import httpx
import pytest

from workspace_manager.engine import SyncEngine
from workspace_manager.models import Workspace
from workspace_manager.projection import SessionProjection
from workspace_manager.registry import SessionRegistry
from workspace_manager.workspaces import WorkspaceCollection

APP_PATH = "/work/app"
OTHER_PATH = "/work/other"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove all WORKSPACE_MANAGER_ env vars so host config cannot leak in."""
    for key in list(os.environ.keys()):
        if key.startswith("WORKSPACE_MANAGER_"):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch


@pytest.fixture
def workspaces() -> WorkspaceCollection:
    return WorkspaceCollection(
        [
            Workspace(project_path=APP_PATH, repo_name="app", branch="main"),
            Workspace(project_path=OTHER_PATH, repo_name="other", branch="feature-x"),
        ]
    )


@pytest.fixture
def registry(workspaces: WorkspaceCollection) -> SessionRegistry:
    return SessionRegistry(workspaces, disconnect_threshold=2)


@pytest.fixture
def projection(registry: SessionRegistry) -> SessionProjection:
    return SessionProjection(registry)


@pytest.fixture
def socket_path() -> Generator[Path, None, None]:
    """Short socket path; unix socket paths are limited to ~100 bytes."""
    directory = tempfile.mkdtemp(prefix="wm-")
    yield Path(directory) / "notify.sock"
    shutil.rmtree(directory, ignore_errors=True)


@pytest.fixture
def engine(workspaces: WorkspaceCollection, socket_path: Path) -> SyncEngine:
    """Engine without pull sources, listening on a private socket."""
    return SyncEngine(
        workspaces=workspaces,
        fetchers=[],
        socket_path=socket_path,
        poll_interval_seconds=0.05,
    )


@pytest.fixture
async def api_client(engine: SyncEngine) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Async HTTP client bound to the app with ``engine`` installed."""
    from workspace_manager.main import app

    app.state.engine = engine
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.state.engine = None


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Force the AnyIO pytest plugin to run tests under asyncio.

    The engine uses asyncio primitives directly (queues, unix servers,
    subprocesses), which are incompatible with the trio backend.
    """
    return "asyncio"
