"""Tests for the debug HTTP API."""

import httpx
import pytest

from workspace_manager.engine import SyncEngine
from workspace_manager.events import RegisterEvent, StatusEvent, UnregisterEvent, WorkspacesChangedEvent
from workspace_manager.models import StatusState, Tool

APP_PATH = "/work/app"


class TestHealth:
    @pytest.mark.anyio
    async def test_health(self, api_client: httpx.AsyncClient, engine: SyncEngine) -> None:
        engine.registry.apply(RegisterEvent("claude:abc", APP_PATH, Tool.CLAUDE))
        response = await api_client.get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["sessions"] == 1
        assert data["workspaces"] == 2
        assert data["listening"] is False

    @pytest.mark.anyio
    async def test_no_engine_is_unavailable(self) -> None:
        from workspace_manager.main import app

        app.state.engine = None
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/health")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "UNAVAILABLE"


class TestWorkspaces:
    @pytest.mark.anyio
    async def test_list_with_aggregate_status(self, api_client: httpx.AsyncClient, engine: SyncEngine) -> None:
        engine.registry.apply(RegisterEvent("claude:abc", APP_PATH, Tool.CLAUDE))
        engine.registry.apply(StatusEvent("claude:abc", StatusState.WAITING))

        response = await api_client.get("/api/workspaces")

        assert response.status_code == 200
        by_name = {w["display_name"]: w for w in response.json()}
        assert by_name["app/main"]["status"] == "waiting"
        assert by_name["app/main"]["active_count"] == 1
        assert by_name["other/feature-x"]["status"] == "disconnected"

    @pytest.mark.anyio
    async def test_open_workspaces(self, api_client: httpx.AsyncClient, engine: SyncEngine) -> None:
        engine.registry.apply(RegisterEvent("claude:abc", "/work/new", Tool.CLAUDE))

        response = await api_client.post(
            "/api/workspaces",
            json={"workspaces": [{"project_path": "/work/new", "repo_name": "new", "branch": "dev"}]},
        )

        assert response.status_code == 200
        assert [w["display_name"] for w in response.json()] == ["new/dev"]
        queued = engine.queue.get_nowait()
        assert isinstance(queued, WorkspacesChangedEvent)

        engine.registry.apply(queued)
        sessions = await api_client.get("/api/workspaces/sessions", params={"path": "/work/new"})
        assert [s["external_id"] for s in sessions.json()] == ["claude:abc"]

    @pytest.mark.anyio
    async def test_open_workspaces_validation(self, api_client: httpx.AsyncClient) -> None:
        response = await api_client.post("/api/workspaces", json={"workspaces": [{"project_path": ""}]})
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.anyio
    async def test_workspace_sessions_excludes_disconnected(
        self, api_client: httpx.AsyncClient, engine: SyncEngine
    ) -> None:
        engine.registry.apply(RegisterEvent("kiro:/work/app:1", APP_PATH, Tool.KIRO))
        engine.registry.apply(RegisterEvent("kiro:/work/app:2", APP_PATH, Tool.KIRO))
        engine.registry.apply(UnregisterEvent("kiro:/work/app:1"))

        response = await api_client.get("/api/workspaces/sessions", params={"path": APP_PATH})

        assert response.status_code == 200
        data = response.json()
        assert [s["external_id"] for s in data] == ["kiro:/work/app:2"]
        assert data[0]["display_info"].startswith("[inactive]")

    @pytest.mark.anyio
    async def test_unknown_workspace_is_404(self, api_client: httpx.AsyncClient) -> None:
        response = await api_client.get("/api/workspaces/sessions", params={"path": "/nowhere"})
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"


class TestSessions:
    @pytest.mark.anyio
    async def test_lookup_by_external_id(self, api_client: httpx.AsyncClient, engine: SyncEngine) -> None:
        engine.registry.apply(RegisterEvent("kiro:/work/app:conv-1", APP_PATH, Tool.KIRO))
        response = await api_client.get("/api/sessions/kiro:/work/app:conv-1")

        assert response.status_code == 200
        data = response.json()
        assert data["tool"] == "kiro"
        assert data["workspace_path"] == APP_PATH

    @pytest.mark.anyio
    async def test_disconnected_still_visible(self, api_client: httpx.AsyncClient, engine: SyncEngine) -> None:
        engine.registry.apply(RegisterEvent("claude:abc", APP_PATH, Tool.CLAUDE))
        engine.registry.apply(UnregisterEvent("claude:abc"))

        response = await api_client.get("/api/sessions/claude:abc")
        assert response.json()["status"] == "disconnected"

        debug = await api_client.get("/api/debug/sessions")
        assert [s["external_id"] for s in debug.json()] == ["claude:abc"]

    @pytest.mark.anyio
    async def test_unknown_session_is_404(self, api_client: httpx.AsyncClient) -> None:
        response = await api_client.get("/api/sessions/claude:missing")
        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Session not found"
