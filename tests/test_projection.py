"""Tests for SessionProjection queries."""

from datetime import datetime, timedelta, timezone

from workspace_manager.events import RegisterEvent, StatusEvent, TabFocusEvent, UnregisterEvent
from workspace_manager.models import StatusState, Tool, Workspace
from workspace_manager.projection import SessionProjection
from workspace_manager.registry import SessionRegistry
from workspace_manager.workspaces import WorkspaceCollection

APP_PATH = "/work/app"
OTHER_PATH = "/work/other"
T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _register(registry, external_id, path=APP_PATH, tool=Tool.KIRO, offset=0):
    registry.apply(
        RegisterEvent(
            external_id=external_id,
            project_path=path,
            tool=tool,
            timestamp=T0 + timedelta(seconds=offset),
        )
    )


def _status(registry, external_id, state):
    registry.apply(StatusEvent(external_id=external_id, status=state, timestamp=T0 + timedelta(minutes=1)))


class TestSessionsForWorkspace:
    def test_two_sessions_then_one(self, registry: SessionRegistry, projection: SessionProjection) -> None:
        _register(registry, "kiro:/work/app:1")
        _register(registry, "kiro:/work/app:2", offset=1)
        assert len(projection.sessions_for_workspace(APP_PATH)) == 2

        registry.apply(UnregisterEvent("kiro:/work/app:1"))
        remaining = projection.sessions_for_workspace(APP_PATH)
        assert [s.external_id for s in remaining] == ["kiro:/work/app:2"]

    def test_accepts_workspace_object(self, registry, projection, workspaces) -> None:
        _register(registry, "claude:a", tool=Tool.CLAUDE)
        workspace = next(iter(workspaces))
        assert len(projection.sessions_for_workspace(workspace)) == 1

    def test_sorted_by_creation(self, registry, projection) -> None:
        _register(registry, "claude:late", tool=Tool.CLAUDE, offset=30)
        _register(registry, "claude:early", tool=Tool.CLAUDE, offset=10)
        ids = [s.external_id for s in projection.sessions_for_workspace(APP_PATH)]
        assert ids == ["claude:early", "claude:late"]

    def test_other_workspace_is_separate(self, registry, projection) -> None:
        _register(registry, "claude:a", tool=Tool.CLAUDE)
        _register(registry, "claude:b", path=OTHER_PATH, tool=Tool.CLAUDE)
        assert [s.external_id for s in projection.sessions_for_workspace(OTHER_PATH)] == ["claude:b"]

    def test_disconnected_still_found_by_id(self, registry, projection) -> None:
        _register(registry, "claude:a", tool=Tool.CLAUDE)
        registry.apply(UnregisterEvent("claude:a"))
        assert projection.active_sessions() == []
        session = projection.session_by_external_id("claude:a")
        assert session is not None
        assert session.status == StatusState.DISCONNECTED
        assert len(projection.all_sessions()) == 1

    def test_unknown_id(self, projection) -> None:
        assert projection.session_by_external_id("claude:none") is None


class TestAggregate:
    def test_empty_workspace_is_disconnected(self, projection) -> None:
        assert projection.aggregate_status(APP_PATH) == StatusState.DISCONNECTED

    def test_working_beats_waiting(self, registry, projection) -> None:
        _register(registry, "claude:a", tool=Tool.CLAUDE)
        _register(registry, "claude:b", tool=Tool.CLAUDE)
        _status(registry, "claude:a", StatusState.WAITING)
        _status(registry, "claude:b", StatusState.WORKING)
        assert projection.aggregate_status(APP_PATH) == StatusState.WORKING

    def test_waiting_beats_idle(self, registry, projection) -> None:
        _register(registry, "claude:a", tool=Tool.CLAUDE)
        _register(registry, "claude:b", tool=Tool.CLAUDE)
        _status(registry, "claude:a", StatusState.WAITING)
        assert projection.aggregate_status(APP_PATH) == StatusState.WAITING

    def test_summary_counts(self, registry, projection) -> None:
        _register(registry, "claude:a", tool=Tool.CLAUDE)
        _register(registry, "claude:b", tool=Tool.CLAUDE)
        _register(registry, "claude:c", tool=Tool.CLAUDE)
        _status(registry, "claude:a", StatusState.WORKING)
        registry.apply(UnregisterEvent("claude:c"))

        summary = projection.summarize(APP_PATH)
        assert summary.status == StatusState.WORKING
        assert summary.active_count == 2
        assert summary.working_count == 1


class TestTabs:
    def test_focused_tab(self, registry, projection) -> None:
        assert projection.focused_tab is None
        registry.apply(TabFocusEvent("app/main"))
        assert projection.focused_tab == "app/main"

    def test_workspace_for_tab_display_name(self, projection) -> None:
        assert projection.workspace_for_tab("other/feature-x").project_path == OTHER_PATH

    def test_workspace_for_tab_worktree_suffix(self) -> None:
        workspaces = WorkspaceCollection(
            [Workspace(project_path="/work/app__wt", repo_name="app__wt", branch="fix")]
        )
        projection = SessionProjection(SessionRegistry(workspaces))
        assert projection.workspace_for_tab("app/fix").project_path == "/work/app__wt"

    def test_workspace_for_tab_branch_only(self, projection) -> None:
        assert projection.workspace_for_tab("feature-x").project_path == OTHER_PATH

    def test_workspace_for_tab_no_match(self, projection) -> None:
        assert projection.workspace_for_tab("nothing/here") is None
