"""Tests for status vocabulary, display helpers and workspaces."""

from datetime import datetime, timedelta, timezone

import pytest

from workspace_manager.models import (
    ALLOWED_DETAILS,
    DiscoveryBatch,
    ProcessRecord,
    Session,
    StatusDetail,
    StatusState,
    Tool,
    Workspace,
    format_elapsed,
    parse_status,
    truncate_summary,
    validate_detail,
)
from workspace_manager.workspaces import WorkspaceCollection, normalize_path

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestStatusVocabulary:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("working", StatusState.WORKING),
            ("needs_input", StatusState.WAITING),
            ("SUCCESS", StatusState.COMPLETED),
            (" ended ", StatusState.DISCONNECTED),
            ("whatever", StatusState.IDLE),
        ],
    )
    def test_parse_status(self, raw: str, expected: StatusState) -> None:
        assert parse_status(raw) == expected

    def test_every_state_has_details(self) -> None:
        assert set(ALLOWED_DETAILS) == set(StatusState)

    def test_validate_detail_keeps_allowed(self) -> None:
        assert validate_detail(StatusState.ERROR, "api_error") == StatusDetail.API_ERROR

    def test_validate_detail_falls_back(self) -> None:
        assert validate_detail(StatusState.WORKING, StatusDetail.SUCCESS) == StatusDetail.THINKING
        assert validate_detail(StatusState.COMPLETED, "nonsense") == StatusDetail.SUCCESS
        assert validate_detail(StatusState.IDLE, None) == StatusDetail.INACTIVE


class TestDisplayHelpers:
    def test_truncate_summary(self) -> None:
        assert truncate_summary("short") == "short"
        assert truncate_summary("a" * 50) == "a" * 50
        cut = truncate_summary("b" * 51)
        assert cut == "b" * 47 + "..."
        assert truncate_summary("  line one\n line two ") == "line one line two"
        assert truncate_summary("   ") is None
        assert truncate_summary(None) is None

    @pytest.mark.parametrize(
        "delta, expected",
        [
            (timedelta(seconds=12), "12s ago"),
            (timedelta(minutes=3, seconds=5), "3m ago"),
            (timedelta(hours=2), "2h ago"),
            (timedelta(days=4, hours=1), "4d ago"),
            (timedelta(seconds=-5), "0s ago"),
        ],
    )
    def test_format_elapsed(self, delta: timedelta, expected: str) -> None:
        assert format_elapsed(NOW - delta, NOW) == expected

    def test_display_info(self) -> None:
        session = Session(
            external_id="claude:abc",
            tool=Tool.CLAUDE,
            status=StatusState.WAITING,
            status_detail=StatusDetail.CONFIRMATION,
            summary="Deploy to prod",
            last_activity=NOW - timedelta(minutes=2),
        )
        assert session.display_info(NOW) == "[confirm?] Deploy to prod (2m ago)"
        assert session.is_active

    def test_display_info_minimal(self) -> None:
        session = Session(external_id="kiro:/p:1", tool=Tool.KIRO)
        assert session.display_info(NOW) == "[inactive]"
        assert session.time_since_activity(NOW) is None

    def test_workspace_display_name(self) -> None:
        assert Workspace(project_path="/w/app", repo_name="app", branch="main").display_name == "app/main"
        assert Workspace(project_path="/w/app", repo_name="app").display_name == "app"
        assert Workspace(project_path="/w/app").display_name == "/w/app"

    def test_tool_display_name(self) -> None:
        assert Tool.OPENCODE.display_name == "OpenCode"


class TestDiscoveryBatch:
    def test_process_counts(self) -> None:
        batch = DiscoveryBatch(
            tool=Tool.CLAUDE,
            processes=[
                ProcessRecord(cwd="/w/app", session_id="s1"),
                ProcessRecord(cwd="/w/app"),
                ProcessRecord(cwd="/w/other", session_id="s2"),
            ],
        )
        assert batch.process_count("/w/app") == 2
        assert batch.process_for_session("s2").cwd == "/w/other"
        assert batch.process_for_session("s3") is None
        assert batch.reliable


class TestWorkspaceCollection:
    def test_paths_are_normalized(self) -> None:
        collection = WorkspaceCollection([Workspace(project_path="/w/app/../app/")])
        assert collection.paths() == ["/w/app"]
        assert collection.find_by_path("/w/app/") is not None
        assert collection.find_by_path(None) is None

    def test_replace_bumps_generation(self) -> None:
        collection = WorkspaceCollection()
        generation = collection.generation
        collection.add(Workspace(project_path="/w/a"))
        collection.replace([Workspace(project_path="/w/b")])
        assert collection.generation == generation + 2
        assert collection.paths() == ["/w/b"]
        assert len(collection) == 1

    def test_normalize_expands_user(self) -> None:
        assert not normalize_path("~/x").startswith("~")
