"""OpenCode session discovery from its file storage.

Sessions live at ``storage/session/<project>/ses_*.json`` with ``id``,
``directory``, ``title`` and ``time.created``/``time.updated`` in ms.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

import structlog
from pydantic import ValidationError

from workspace_manager.discovery.base import SessionFetcher, from_epoch_ms
from workspace_manager.discovery.running import find_running_opencode_processes
from workspace_manager.identity import encode_external_id
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


def opencode_storage_dir() -> Path:
    base = os.environ.get("XDG_DATA_HOME", "").strip()
    root = Path(base) if base else Path.home() / ".local" / "share"
    return root / "opencode" / "storage"


def parse_session_file(ses_file: Path, data: dict) -> DiscoveredSession | None:
    """Build a session from one ``ses_*.json`` document; None without a directory."""
    directory = data.get("directory")
    if not isinstance(directory, str) or not directory:
        return None
    time_data = data.get("time") if isinstance(data.get("time"), dict) else {}
    updated = from_epoch_ms(time_data.get("updated")) or from_epoch_ms(time_data.get("created"))
    session_id = data.get("id")
    if not isinstance(session_id, str) or not session_id:
        session_id = ses_file.stem
    title = data.get("title")
    return DiscoveredSession(
        external_id=encode_external_id(Tool.OPENCODE, session_id),
        project_path=normalize_path(directory),
        status=AnalysisStatus(
            session_id=session_id,
            project_path=directory,
            tool=Tool.OPENCODE.value,
            status=StatusState.WORKING,
            state_detail=StatusDetail.THINKING,
            summary=title if isinstance(title, str) and title else None,
            last_activity=updated,
        ),
    )


class OpenCodeSessionsFetcher(SessionFetcher):
    tool = Tool.OPENCODE

    def __init__(
        self,
        storage_dir: Path | None = None,
        inactivity_threshold_seconds: int | None = None,
    ) -> None:
        super().__init__(inactivity_threshold_seconds)
        self.storage_dir = Path(storage_dir) if storage_dir is not None else opencode_storage_dir()

    def is_available(self) -> bool:
        return (self.storage_dir / "session").is_dir()

    def probe_processes(self) -> list[ProcessRecord]:
        return find_running_opencode_processes()

    def fetch_sessions(
        self, paths: set[str], processes: list[ProcessRecord]
    ) -> list[DiscoveredSession]:
        if not self.is_available():
            return []
        now = utc_now()
        sessions: list[DiscoveredSession] = []
        for ses_file in (self.storage_dir / "session").glob("*/ses_*.json"):
            try:
                data = json.loads(ses_file.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
                logger.debug("Failed to read OpenCode session file", path=str(ses_file), error=str(e))
                continue
            if not isinstance(data, dict):
                continue
            try:
                session = parse_session_file(ses_file, data)
            except ValidationError as e:
                logger.warning("Skipping invalid OpenCode session", path=str(ses_file), error=str(e))
                continue
            if session is None or session.project_path not in paths:
                continue
            if self.is_recent(session.status.last_activity, now):
                sessions.append(session)
        return sessions
