"""Claude Code session discovery from ``sessions-index.json`` files."""

from __future__ import annotations

import json
import os
from pathlib import Path

import structlog

from workspace_manager.discovery.base import SessionFetcher, from_epoch_ms, parse_iso
from workspace_manager.discovery.running import find_running_claude_processes
from workspace_manager.identity import claude_external_id
from workspace_manager.models import (
    AnalysisStatus,
    DiscoveredSession,
    ProcessRecord,
    StatusDetail,
    StatusState,
    Tool,
    utc_now,
)
from workspace_manager.workspaces import normalize_path

logger = structlog.get_logger(__name__)

SESSIONS_INDEX = "sessions-index.json"


def claude_home() -> Path:
    """Resolve CLAUDE_CONFIG_DIR, defaulting to ~/.claude."""
    value = os.environ.get("CLAUDE_CONFIG_DIR")
    if value:
        return Path(value).expanduser()
    return Path.home() / ".claude"


def encode_project_path(path: str) -> str:
    """Convert /home/me/my.project to -home-me-my-project."""
    return path.replace("/", "-").replace(".", "-")


def read_sessions_index(index_path: Path) -> dict | None:
    """Load one index file; unreadable or malformed files yield None."""
    try:
        with open(index_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.debug("Failed to read sessions index", path=str(index_path), error=str(e))
        return None
    if not isinstance(data, dict):
        return None
    return data


class ClaudeSessionsFetcher(SessionFetcher):
    """Reads the per-project indexes Claude Code keeps under ``projects/``."""

    tool = Tool.CLAUDE

    def __init__(
        self,
        claude_dir: Path | None = None,
        inactivity_threshold_seconds: int | None = None,
    ) -> None:
        super().__init__(inactivity_threshold_seconds)
        self.claude_dir = Path(claude_dir) if claude_dir is not None else claude_home()

    @property
    def projects_dir(self) -> Path:
        return self.claude_dir / "projects"

    def is_available(self) -> bool:
        return self.projects_dir.is_dir()

    def probe_processes(self) -> list[ProcessRecord]:
        return find_running_claude_processes()

    def fetch_sessions(
        self, paths: set[str], processes: list[ProcessRecord]
    ) -> list[DiscoveredSession]:
        if not self.is_available():
            return []
        now = utc_now()
        sessions: list[DiscoveredSession] = []
        for project_dir in sorted(self.projects_dir.iterdir()):
            index_path = project_dir / SESSIONS_INDEX
            if not index_path.is_file():
                continue
            index = read_sessions_index(index_path)
            if index is None:
                continue
            original_path = index.get("originalPath")
            if not isinstance(original_path, str) or normalize_path(original_path) not in paths:
                continue
            for entry in index.get("entries") or []:
                session = self._entry_to_session(entry, original_path, now)
                if session is not None:
                    sessions.append(session)
        sessions.sort(
            key=lambda s: s.status.last_activity or now,
            reverse=True,
        )
        return sessions

    def _entry_to_session(
        self, entry: object, original_path: str, now
    ) -> DiscoveredSession | None:
        if not isinstance(entry, dict) or entry.get("isSidechain"):
            return None
        session_id = entry.get("sessionId")
        if not isinstance(session_id, str) or not session_id:
            return None
        file_mtime = from_epoch_ms(entry.get("fileMtime"))
        if not self.is_recent(file_mtime, now):
            return None
        project_path = entry.get("projectPath") or original_path
        last_activity = file_mtime or parse_iso(entry.get("modified"))
        return DiscoveredSession(
            external_id=claude_external_id(session_id),
            project_path=normalize_path(project_path),
            git_branch=entry.get("gitBranch") or None,
            message_count=int(entry.get("messageCount") or 0),
            status=AnalysisStatus(
                session_id=session_id,
                project_path=project_path,
                tool=self.tool.value,
                # A recently written transcript means the agent is busy.
                status=StatusState.WORKING,
                state_detail=StatusDetail.THINKING,
                summary=entry.get("summary") or entry.get("firstPrompt") or None,
                last_activity=last_activity,
            ),
        )
