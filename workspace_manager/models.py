"""Pydantic models for sessions, workspaces and pull-source results."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

SUMMARY_MAX_CHARS = 50


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Tool(str, Enum):
    """AI CLI tools whose sessions are tracked."""
    CLAUDE = "claude"
    KIRO = "kiro"
    OPENCODE = "opencode"
    CODEX = "codex"

    @property
    def display_name(self) -> str:
        return _TOOL_NAMES[self]


_TOOL_NAMES = {
    Tool.CLAUDE: "Claude",
    Tool.KIRO: "Kiro",
    Tool.OPENCODE: "OpenCode",
    Tool.CODEX: "Codex",
}


class StatusState(str, Enum):
    """Coarse session state."""
    WORKING = "working"
    WAITING = "waiting"
    COMPLETED = "completed"
    ERROR = "error"
    IDLE = "idle"
    DISCONNECTED = "disconnected"


class StatusDetail(str, Enum):
    """Refinement of a coarse state; see ALLOWED_DETAILS."""
    THINKING = "thinking"
    EXECUTING_TOOL = "executing_tool"
    WRITING_CODE = "writing_code"
    USER_INPUT = "user_input"
    CONFIRMATION = "confirmation"
    SUCCESS = "success"
    PARTIAL = "partial"
    API_ERROR = "api_error"
    TOOL_ERROR = "tool_error"
    INACTIVE = "inactive"
    SESSION_ENDED = "session_ended"

    @property
    def label(self) -> str:
        """Human-readable label for display."""
        return _DETAIL_LABELS[self]


_DETAIL_LABELS = {
    StatusDetail.THINKING: "thinking",
    StatusDetail.EXECUTING_TOOL: "running tool",
    StatusDetail.WRITING_CODE: "writing code",
    StatusDetail.USER_INPUT: "needs input",
    StatusDetail.CONFIRMATION: "confirm?",
    StatusDetail.SUCCESS: "done",
    StatusDetail.PARTIAL: "partial",
    StatusDetail.API_ERROR: "API error",
    StatusDetail.TOOL_ERROR: "tool error",
    StatusDetail.INACTIVE: "inactive",
    StatusDetail.SESSION_ENDED: "ended",
}

ALLOWED_DETAILS: dict[StatusState, tuple[StatusDetail, ...]] = {
    StatusState.WORKING: (
        StatusDetail.THINKING,
        StatusDetail.EXECUTING_TOOL,
        StatusDetail.WRITING_CODE,
    ),
    StatusState.WAITING: (StatusDetail.USER_INPUT, StatusDetail.CONFIRMATION),
    StatusState.COMPLETED: (StatusDetail.SUCCESS, StatusDetail.PARTIAL),
    StatusState.ERROR: (StatusDetail.API_ERROR, StatusDetail.TOOL_ERROR),
    StatusState.IDLE: (StatusDetail.INACTIVE, StatusDetail.SESSION_ENDED),
    StatusState.DISCONNECTED: (StatusDetail.SESSION_ENDED, StatusDetail.INACTIVE),
}

# First entry of each allowed tuple is the state's default.
DEFAULT_DETAILS = {state: details[0] for state, details in ALLOWED_DETAILS.items()}

_STATUS_ALIASES = {
    "working": StatusState.WORKING,
    "idle": StatusState.IDLE,
    "needs_input": StatusState.WAITING,
    "waiting": StatusState.WAITING,
    "success": StatusState.COMPLETED,
    "completed": StatusState.COMPLETED,
    "error": StatusState.ERROR,
    "disconnected": StatusState.DISCONNECTED,
    "ended": StatusState.DISCONNECTED,
}


def parse_status(value: str) -> StatusState:
    """Parse a loosely-spelled status string; unknown values map to idle."""
    return _STATUS_ALIASES.get(value.strip().lower(), StatusState.IDLE)


def validate_detail(state: StatusState, detail: StatusDetail | str | None) -> StatusDetail:
    """Return ``detail`` when it belongs to ``state``, else the state's default."""
    if detail is not None and not isinstance(detail, StatusDetail):
        try:
            detail = StatusDetail(str(detail).strip().lower())
        except ValueError:
            detail = None
    if detail is not None and detail in ALLOWED_DETAILS[state]:
        return detail
    return DEFAULT_DETAILS[state]


def truncate_summary(text: str | None, limit: int = SUMMARY_MAX_CHARS) -> str | None:
    """Cap free text at ``limit`` characters, ending in '...' when cut."""
    if text is None:
        return None
    text = " ".join(text.split())
    if not text:
        return None
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def format_elapsed(since: datetime, now: datetime | None = None) -> str:
    """Render elapsed time as '12s ago', '3m ago', '2h ago' or '4d ago'."""
    now = now or utc_now()
    secs = max(0, int((now - since).total_seconds()))
    if secs < 60:
        return f"{secs}s ago"
    if secs < 3600:
        return f"{secs // 60}m ago"
    if secs < 86400:
        return f"{secs // 3600}h ago"
    return f"{secs // 86400}d ago"


class Session(BaseModel):
    """One AI CLI conversation tracked by the registry."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    external_id: str
    workspace_path: str | None = None  # weak relation, resolved on demand
    tool: Tool
    status: StatusState = StatusState.IDLE
    status_detail: StatusDetail = StatusDetail.INACTIVE
    summary: str | None = None
    current_task: str | None = None
    last_activity: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    pane_id: int | None = None
    tab_name: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status != StatusState.DISCONNECTED

    def time_since_activity(self, now: datetime | None = None) -> str | None:
        if self.last_activity is None:
            return None
        return format_elapsed(self.last_activity, now)

    def display_info(self, now: datetime | None = None) -> str:
        """Detail label, summary and activity age joined for a tree row."""
        parts = [f"[{self.status_detail.label}]"]
        if self.summary:
            parts.append(self.summary)
        elapsed = self.time_since_activity(now)
        if elapsed:
            parts.append(f"({elapsed})")
        return " ".join(parts)


class Workspace(BaseModel):
    """A tracked repository or worktree directory."""
    project_path: str
    repo_name: str | None = None
    branch: str | None = None

    @property
    def display_name(self) -> str:
        if self.repo_name and self.branch:
            return f"{self.repo_name}/{self.branch}"
        return self.repo_name or self.project_path


class AnalysisStatus(BaseModel):
    """Structured status extracted from a store record or a transcript."""
    session_id: str | None = None
    project_path: str | None = None
    tool: str | None = None
    status: StatusState = StatusState.IDLE
    state_detail: StatusDetail = StatusDetail.INACTIVE
    summary: str | None = None
    current_task: str | None = None
    last_activity: datetime | None = None
    error: str | None = None

    @property
    def display_summary(self) -> str | None:
        return truncate_summary(self.summary)


class DiscoveredSession(BaseModel):
    """A live session found in a tool's own session store."""
    external_id: str
    project_path: str
    status: AnalysisStatus = Field(default_factory=AnalysisStatus)
    git_branch: str | None = None
    message_count: int = 0


class ProcessRecord(BaseModel):
    """One running tool process: its working directory and resumed session id."""
    cwd: str
    session_id: str | None = None


class DiscoveryBatch(BaseModel):
    """Everything one pull cycle learned about one tool."""
    tool: Tool
    observed_at: datetime = Field(default_factory=utc_now)
    sessions: list[DiscoveredSession] = Field(default_factory=list)
    processes: list[ProcessRecord] = Field(default_factory=list)
    processes_probed: bool = True
    sessions_read: bool = True

    @property
    def reliable(self) -> bool:
        """Whether absence from this batch says anything about liveness."""
        return self.processes_probed and self.sessions_read

    def process_count(self, path: str) -> int:
        return sum(1 for proc in self.processes if proc.cwd == path)

    def process_for_session(self, session_id: str) -> ProcessRecord | None:
        """The running process that resumed ``session_id``, if any."""
        return next((proc for proc in self.processes if proc.session_id == session_id), None)


class ErrorDetail(BaseModel):
    """Structured error payload for API responses."""
    code: str
    message: str
    details: dict | list | None = None


class ErrorResponse(BaseModel):
    """Envelope for API error responses."""
    error: ErrorDetail
