"""Kiro CLI session discovery from its sqlite database."""

from __future__ import annotations

import json
import sqlite3
import sys
from pathlib import Path

import structlog
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from workspace_manager.discovery.base import SessionFetcher, StoreReadError, from_epoch_ms
from workspace_manager.discovery.running import find_running_kiro_processes
from workspace_manager.identity import kiro_external_id
from workspace_manager.models import (
    AnalysisStatus,
    DiscoveredSession,
    ProcessRecord,
    StatusDetail,
    StatusState,
    Tool,
)
from workspace_manager.settings import settings

logger = structlog.get_logger(__name__)

_MACOS_DB = Path("Library") / "Application Support" / "kiro-cli" / "data.sqlite3"
_LINUX_DB = Path(".local") / "share" / "kiro-cli" / "data.sqlite3"

_RECENT_CONVERSATIONS = text(
    "SELECT conversation_id, value, updated_at FROM conversations_v2 "
    "WHERE key = :key ORDER BY updated_at DESC LIMIT :limit"
)


def default_db_path() -> Path:
    """Kiro's database location; the setting overrides the platform default."""
    override = settings.kiro_db_path()
    if override:
        return Path(override).expanduser()
    home = Path.home()
    if sys.platform == "darwin":
        return home / _MACOS_DB
    linux = home / _LINUX_DB
    return linux if linux.exists() else home / _MACOS_DB


def _truncate(value: str, limit: int) -> str:
    if len(value) <= limit:
        return value
    return value[: max(0, limit - 3)] + "..."


def _tool_use_summary(tool_use: dict) -> str:
    content = tool_use.get("content")
    if isinstance(content, str) and content:
        return _truncate(content, 40)
    tool_uses = tool_use.get("tool_uses")
    names: list[str] = []
    if isinstance(tool_uses, list):
        for item in tool_uses[:3]:
            if isinstance(item, dict) and isinstance(item.get("name"), str):
                names.append(item["name"])
        if len(tool_uses) > 3:
            names.append(f"+{len(tool_uses) - 3}")
    if not names:
        return "Confirm?"
    return "Confirm: " + ", ".join(names)


def _response_summary(response: dict) -> str:
    content = response.get("content")
    if isinstance(content, str) and content:
        return _truncate(content.splitlines()[0], 40)
    return "Done"


def status_from_entry(entry: dict) -> tuple[StatusState, StatusDetail, str | None]:
    """Derive a status from the last history entry of a conversation.

    The assistant side decides when present: a ToolUse waits for y/n
    confirmation and a Response means the turn finished. Otherwise the
    assistant is still working on what the user sent.
    """
    assistant = entry.get("assistant")
    if isinstance(assistant, dict):
        tool_use = assistant.get("ToolUse")
        if isinstance(tool_use, dict):
            return StatusState.WAITING, StatusDetail.CONFIRMATION, _tool_use_summary(tool_use)
        response = assistant.get("Response")
        if isinstance(response, dict):
            return StatusState.COMPLETED, StatusDetail.SUCCESS, _response_summary(response)

    user = entry.get("user")
    content = user.get("content") if isinstance(user, dict) else None
    if isinstance(content, dict):
        if content.get("ToolUseResults") is not None:
            return StatusState.WORKING, StatusDetail.EXECUTING_TOOL, "Running tools..."
        prompt = content.get("Prompt")
        if isinstance(prompt, dict):
            prompt_text = prompt.get("prompt")
            summary = _truncate(prompt_text, 30) if isinstance(prompt_text, str) else "Thinking..."
            return StatusState.WORKING, StatusDetail.THINKING, summary

    return StatusState.WORKING, StatusDetail.THINKING, "Processing..."


def parse_conversation(value: str) -> tuple[StatusState, StatusDetail, str | None]:
    """Parse a ``conversations_v2.value`` JSON document.

    Raises:
        ValueError: The value is not a JSON object.
    """
    data = json.loads(value)
    if not isinstance(data, dict):
        raise ValueError("conversation value is not an object")
    history = data.get("history")
    if not isinstance(history, list) or not history:
        return StatusState.IDLE, StatusDetail.INACTIVE, None
    last = history[-1]
    if not isinstance(last, dict):
        return StatusState.WORKING, StatusDetail.THINKING, "Processing..."
    return status_from_entry(last)


class KiroSqliteFetcher(SessionFetcher):
    """Reads Kiro conversations for workspaces where ``kiro-cli`` is running.

    Kiro has no notion of a live session in its store, so for a workspace
    with N running processes the N most recently updated conversations are
    taken as its live sessions.
    """

    tool = Tool.KIRO

    def __init__(
        self,
        db_path: Path | None = None,
        timeout_seconds: float | None = None,
        inactivity_threshold_seconds: int | None = None,
    ) -> None:
        super().__init__(inactivity_threshold_seconds)
        self.db_path = Path(db_path) if db_path is not None else default_db_path()
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.db_timeout_seconds()
        )

    def is_available(self) -> bool:
        return self.db_path.is_file()

    def probe_processes(self) -> list[ProcessRecord]:
        return find_running_kiro_processes()

    def _connect(self) -> sqlite3.Connection:
        uri = self.db_path.resolve().as_uri() + "?mode=ro"
        return sqlite3.connect(uri, uri=True, timeout=self.timeout_seconds)

    def _engine(self) -> Engine:
        return create_engine("sqlite://", creator=self._connect, poolclass=NullPool)

    def fetch_sessions(
        self, paths: set[str], processes: list[ProcessRecord]
    ) -> list[DiscoveredSession]:
        counts: dict[str, int] = {}
        for proc in processes:
            if proc.cwd in paths:
                counts[proc.cwd] = counts.get(proc.cwd, 0) + 1
        if not counts or not self.is_available():
            return []

        sessions: list[DiscoveredSession] = []
        engine = self._engine()
        try:
            with engine.connect() as conn:
                for path, count in sorted(counts.items()):
                    rows = conn.execute(_RECENT_CONVERSATIONS, {"key": path, "limit": count})
                    for conversation_id, value, updated_at in rows:
                        session = self._row_to_session(path, conversation_id, value, updated_at)
                        if session is not None:
                            sessions.append(session)
        except SQLAlchemyError as exc:
            raise StoreReadError(str(exc)) from exc
        finally:
            engine.dispose()
        return sessions

    def _row_to_session(
        self, path: str, conversation_id: str, value: str, updated_at: object
    ) -> DiscoveredSession | None:
        try:
            state, detail, summary = parse_conversation(value)
        except (TypeError, ValueError) as e:
            logger.debug(
                "Failed to parse Kiro conversation",
                conversation_id=conversation_id,
                error=str(e),
            )
            return None
        return DiscoveredSession(
            external_id=kiro_external_id(path, conversation_id),
            project_path=path,
            status=AnalysisStatus(
                session_id=conversation_id,
                project_path=path,
                tool=self.tool.value,
                status=state,
                state_detail=detail,
                summary=summary,
                last_activity=from_epoch_ms(updated_at),
            ),
        )
