"""Tests for the Codex and OpenCode file-backed session stores."""

import json
import os
import time
from pathlib import Path

from workspace_manager.discovery.codex_sessions import CodexSessionsFetcher, parse_rollout
from workspace_manager.discovery.opencode import OpenCodeSessionsFetcher
from workspace_manager.models import StatusDetail, StatusState

APP_PATH = "/work/app"
SESSION_ID = "0199a1b2-c3d4-7e5f-8a9b-0c1d2e3f4a5b"


def _jsonl(path: Path, records: list[dict]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(json.dumps(r) for r in records) + "\n")
    return path


def _meta(cwd: str = APP_PATH) -> dict:
    return {
        "timestamp": "2026-01-01T10:00:00Z",
        "type": "session_meta",
        "payload": {"id": SESSION_ID, "cwd": cwd},
    }


def _message(role: str, text: str, ts: str = "2026-01-01T10:01:00Z") -> dict:
    kind = "input_text" if role == "user" else "output_text"
    return {
        "timestamp": ts,
        "type": "response_item",
        "payload": {"type": "message", "role": role, "content": [{"type": kind, "text": text}]},
    }


class TestParseRollout:
    def test_assistant_reply_is_completed(self, tmp_path: Path) -> None:
        rollout = _jsonl(
            tmp_path / "rollout.jsonl",
            [
                _meta(),
                _message("user", "<environment_context>cwd</environment_context>"),
                _message("user", "add a health endpoint"),
                _message("assistant", "Done.", ts="2026-01-01T10:02:00Z"),
            ],
        )
        session = parse_rollout(rollout)

        assert session is not None
        assert session.external_id == f"codex:{SESSION_ID}"
        assert session.project_path == APP_PATH
        assert session.message_count == 3
        assert session.status.status == StatusState.COMPLETED
        assert session.status.summary == "add a health endpoint"
        assert session.status.last_activity.minute == 2

    def test_function_call_is_executing(self, tmp_path: Path) -> None:
        rollout = _jsonl(
            tmp_path / "rollout.jsonl",
            [
                _meta(),
                _message("user", "run tests"),
                {
                    "timestamp": "2026-01-01T10:03:00Z",
                    "type": "response_item",
                    "payload": {"type": "function_call", "name": "shell"},
                },
            ],
        )
        status = parse_rollout(rollout).status
        assert status.status == StatusState.WORKING
        assert status.state_detail == StatusDetail.EXECUTING_TOOL

    def test_without_meta_is_skipped(self, tmp_path: Path) -> None:
        rollout = _jsonl(tmp_path / "rollout.jsonl", [_message("user", "hi")])
        assert parse_rollout(rollout) is None

    def test_bad_lines_are_ignored(self, tmp_path: Path) -> None:
        rollout = tmp_path / "rollout.jsonl"
        rollout.write_text("not json\n" + json.dumps(_meta()) + "\n[1]\n")
        assert parse_rollout(rollout) is not None


class TestCodexSessionsFetcher:
    def test_recent_rollouts_in_tracked_paths(self, tmp_path: Path) -> None:
        day = tmp_path / "2026" / "01" / "01"
        _jsonl(day / f"rollout-2026-01-01T10-00-00-{SESSION_ID}.jsonl", [_meta(), _message("user", "hi")])
        _jsonl(day / "rollout-other.jsonl", [_meta("/work/other")])
        stale = _jsonl(day / "rollout-stale.jsonl", [_meta()])
        old = time.time() - 3600
        os.utime(stale, (old, old))

        fetcher = CodexSessionsFetcher(sessions_dir=tmp_path, inactivity_threshold_seconds=60)
        sessions = fetcher.fetch_sessions({APP_PATH}, [])

        assert [s.external_id for s in sessions] == [f"codex:{SESSION_ID}"]

    def test_codex_home_env(self, monkeypatch, tmp_path: Path) -> None:
        monkeypatch.setenv("CODEX_HOME", str(tmp_path))
        assert CodexSessionsFetcher().sessions_dir == tmp_path / "sessions"

    def test_missing_dir(self, tmp_path: Path) -> None:
        fetcher = CodexSessionsFetcher(sessions_dir=tmp_path / "absent")
        assert fetcher.is_available() is False
        assert fetcher.fetch_sessions({APP_PATH}, []) == []

    def test_non_string_id_skips_only_that_rollout(self, monkeypatch, tmp_path: Path) -> None:
        _jsonl(tmp_path / f"rollout-2026-01-01T10-00-00-{SESSION_ID}.jsonl", [_meta()])
        _jsonl(
            tmp_path / "rollout-2026-01-01T11-00-00.jsonl",
            [{"type": "session_meta", "payload": {"id": 12345, "cwd": APP_PATH}}],
        )
        fetcher = CodexSessionsFetcher(sessions_dir=tmp_path, inactivity_threshold_seconds=60)
        monkeypatch.setattr(fetcher, "probe_processes", lambda: [])

        result = fetcher.poll([APP_PATH])

        assert [s.external_id for s in result.sessions] == [f"codex:{SESSION_ID}"]
        assert result.reliable


def _opencode_session(storage: Path, session_id: str, directory: str, updated_ms: int, title=None) -> None:
    path = storage / "session" / "proj1" / f"{session_id}.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {"id": session_id, "directory": directory, "time": {"created": updated_ms, "updated": updated_ms}}
    if title:
        data["title"] = title
    path.write_text(json.dumps(data))


class TestOpenCodeSessionsFetcher:
    def test_recent_sessions_in_tracked_paths(self, tmp_path: Path) -> None:
        now_ms = int(time.time() * 1000)
        _opencode_session(tmp_path, "ses_live", APP_PATH, now_ms, title="Refactor API")
        _opencode_session(tmp_path, "ses_stale", APP_PATH, now_ms - 3_600_000)
        _opencode_session(tmp_path, "ses_other", "/work/other", now_ms)
        (tmp_path / "session" / "proj1" / "ses_broken.json").write_text("{")

        fetcher = OpenCodeSessionsFetcher(storage_dir=tmp_path, inactivity_threshold_seconds=60)
        sessions = fetcher.fetch_sessions({APP_PATH}, [])

        assert [s.external_id for s in sessions] == ["opencode:ses_live"]
        assert sessions[0].status.summary == "Refactor API"
        assert sessions[0].status.status == StatusState.WORKING

    def test_xdg_data_home(self, monkeypatch, tmp_path: Path) -> None:
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
        assert OpenCodeSessionsFetcher().storage_dir == tmp_path / "opencode" / "storage"

    def test_missing_storage(self, tmp_path: Path) -> None:
        assert OpenCodeSessionsFetcher(storage_dir=tmp_path).fetch_sessions({APP_PATH}, []) == []

    def test_malformed_fields_skip_only_that_session(self, monkeypatch, tmp_path: Path) -> None:
        now_ms = int(time.time() * 1000)
        _opencode_session(tmp_path, "ses_live", APP_PATH, now_ms)
        numeric = tmp_path / "session" / "proj1" / "ses_numeric.json"
        numeric.write_text(
            json.dumps({"id": 42, "directory": APP_PATH, "title": ["x"], "time": {"updated": now_ms}})
        )
        fetcher = OpenCodeSessionsFetcher(storage_dir=tmp_path, inactivity_threshold_seconds=60)
        monkeypatch.setattr(fetcher, "probe_processes", lambda: [])

        result = fetcher.poll([APP_PATH])

        assert sorted(s.external_id for s in result.sessions) == [
            "opencode:ses_live",
            "opencode:ses_numeric",
        ]
        assert result.reliable
