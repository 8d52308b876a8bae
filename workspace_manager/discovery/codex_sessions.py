"""Codex session discovery from rollout files."""

from __future__ import annotations

import json
import os
import re
from collections.abc import Iterator
from datetime import datetime, timezone
from pathlib import Path

import structlog
from pydantic import ValidationError

from workspace_manager.discovery.base import SessionFetcher, parse_iso
from workspace_manager.discovery.running import find_running_codex_processes
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

ROLLOUT_NAME = re.compile(r"rollout-.*-(?P<uuid>[0-9a-fA-F-]{32,})\.jsonl$")
_TOOL_CALL_ITEMS = frozenset({"function_call", "local_shell_call", "custom_tool_call"})
_TEXT_PARTS = frozenset({"input_text", "output_text", "text"})


def sessions_root() -> Path:
    """``$CODEX_HOME/sessions``, with CODEX_HOME defaulting to ``~/.codex``."""
    home = os.environ.get("CODEX_HOME")
    base = Path(home).expanduser() if home else Path.home() / ".codex"
    return base / "sessions"


def _file_mtime(path: Path) -> datetime:
    return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)


def _iter_records(session_file: Path) -> Iterator[dict]:
    """Yield the JSON objects of a rollout, skipping blank and corrupt lines."""
    with session_file.open(encoding="utf-8") as handle:
        for raw in handle:
            if not raw.strip():
                continue
            try:
                record = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if isinstance(record, dict):
                yield record


def _message_text(content: object) -> str:
    if not isinstance(content, list):
        return ""
    return "".join(
        part["text"]
        for part in content
        if isinstance(part, dict)
        and part.get("type") in _TEXT_PARTS
        and isinstance(part.get("text"), str)
    ).strip()


class _Rollout:
    """What one pass over a rollout has learned so far."""

    def __init__(self) -> None:
        self.session_id: str | None = None
        self.cwd: str | None = None
        self.prompt: str | None = None
        self.updated: datetime | None = None
        self.messages = 0
        self.state = StatusState.WORKING
        self.detail = StatusDetail.THINKING

    def feed(self, record: dict) -> None:
        self.updated = parse_iso(record.get("timestamp")) or self.updated
        payload = record.get("payload")
        if not isinstance(payload, dict):
            return
        kind = record.get("type")
        if kind == "session_meta":
            if isinstance(payload.get("id"), str) and payload["id"]:
                self.session_id = payload["id"]
            if isinstance(payload.get("cwd"), str):
                self.cwd = payload["cwd"]
        elif kind == "response_item":
            self._response_item(payload)

    def _response_item(self, item: dict) -> None:
        item_type = item.get("type")
        role = item.get("role")
        if item_type in _TOOL_CALL_ITEMS:
            self.state, self.detail = StatusState.WORKING, StatusDetail.EXECUTING_TOOL
        elif item_type == "message" and role == "assistant":
            self.state, self.detail = StatusState.COMPLETED, StatusDetail.SUCCESS
        else:
            self.state, self.detail = StatusState.WORKING, StatusDetail.THINKING

        if item_type != "message" or role not in ("user", "assistant"):
            return
        self.messages += 1
        text = _message_text(item.get("content"))
        # Codex injects an environment preamble as a user message.
        if role == "user" and text and not text.lstrip().startswith("<environment_context>"):
            self.prompt = text


def parse_rollout(session_file: Path) -> DiscoveredSession | None:
    """Parse one rollout file; files without a ``session_meta`` cwd yield None."""
    rollout = _Rollout()
    for record in _iter_records(session_file):
        rollout.feed(record)

    if rollout.session_id is None:
        match = ROLLOUT_NAME.match(session_file.name)
        rollout.session_id = match.group("uuid") if match else None
    if rollout.cwd is None or rollout.session_id is None:
        return None

    return DiscoveredSession(
        external_id=encode_external_id(Tool.CODEX, rollout.session_id),
        project_path=normalize_path(rollout.cwd),
        message_count=rollout.messages,
        status=AnalysisStatus(
            session_id=rollout.session_id,
            project_path=rollout.cwd,
            tool=Tool.CODEX.value,
            status=rollout.state,
            state_detail=rollout.detail,
            summary=rollout.prompt,
            last_activity=rollout.updated or _file_mtime(session_file),
        ),
    )


class CodexSessionsFetcher(SessionFetcher):
    """Lists rollouts under ``$CODEX_HOME/sessions`` written to recently."""

    tool = Tool.CODEX

    def __init__(
        self,
        sessions_dir: Path | None = None,
        inactivity_threshold_seconds: int | None = None,
    ) -> None:
        super().__init__(inactivity_threshold_seconds)
        self._sessions_dir = Path(sessions_dir) if sessions_dir is not None else None

    @property
    def sessions_dir(self) -> Path:
        return self._sessions_dir or sessions_root()

    def is_available(self) -> bool:
        return self.sessions_dir.is_dir()

    def probe_processes(self) -> list[ProcessRecord]:
        return find_running_codex_processes()

    def _recent_rollouts(self) -> Iterator[Path]:
        now = utc_now()
        for path in self.sessions_dir.rglob("rollout-*.jsonl"):
            try:
                recent = self.is_recent(_file_mtime(path), now)
            except OSError:
                continue
            if recent:
                yield path

    def fetch_sessions(
        self, paths: set[str], processes: list[ProcessRecord]
    ) -> list[DiscoveredSession]:
        if not self.is_available():
            return []
        found: list[DiscoveredSession] = []
        for path in self._recent_rollouts():
            try:
                session = parse_rollout(path)
            except (OSError, UnicodeDecodeError, ValidationError) as exc:
                logger.warning("Unreadable Codex rollout", path=str(path), error=str(exc))
                continue
            if session is not None and session.project_path in paths:
                found.append(session)
        return found
