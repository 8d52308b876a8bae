"""Wire messages exchanged over the notification socket.

One JSON object per line, tagged by ``type``::

    {"type": "register", "session_id": "abc", "project_path": "/src/app", "tool": "claude"}
    {"type": "status", "session_id": "claude:abc", "status": "working", "message": "Reading files"}
    {"type": "unregister", "session_id": "claude:abc"}
    {"type": "tab_focus", "tab_name": "app/main"}
"""

from __future__ import annotations

import json
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from workspace_manager.events import (
    PushEvent,
    RegisterEvent,
    StatusEvent,
    TabFocusEvent,
    UnregisterEvent,
)
from workspace_manager.identity import parse_external_id, parse_tool, to_external_id
from workspace_manager.models import parse_status


class ProtocolError(ValueError):
    """A line could not be decoded into a notification message."""


class RegisterMessage(BaseModel):
    type: Literal["register"] = "register"
    session_id: str = Field(..., min_length=1)
    project_path: str = Field(..., min_length=1)
    tool: str | None = None
    pane_id: int | None = None


class StatusMessage(BaseModel):
    type: Literal["status"] = "status"
    session_id: str = Field(..., min_length=1)
    status: str
    message: str | None = None
    tool: str | None = None


class UnregisterMessage(BaseModel):
    type: Literal["unregister"] = "unregister"
    session_id: str = Field(..., min_length=1)
    tool: str | None = None


class TabFocusMessage(BaseModel):
    type: Literal["tab_focus"] = "tab_focus"
    tab_name: str = Field(..., min_length=1)


NotifyMessage = Annotated[
    Union[RegisterMessage, StatusMessage, UnregisterMessage, TabFocusMessage],
    Field(discriminator="type"),
]

_message_adapter: TypeAdapter[NotifyMessage] = TypeAdapter(NotifyMessage)


def parse_line(line: str | bytes) -> NotifyMessage:
    """Decode one protocol line.

    Raises:
        ProtocolError: The line is not JSON or does not match any message.
    """
    if isinstance(line, bytes):
        try:
            line = line.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProtocolError(f"invalid utf-8: {exc}") from exc
    line = line.strip()
    if not line:
        raise ProtocolError("empty line")
    try:
        payload = json.loads(line)
    except json.JSONDecodeError as exc:
        raise ProtocolError(f"invalid json: {exc.msg}") from exc
    try:
        return _message_adapter.validate_python(payload)
    except ValidationError as exc:
        raise ProtocolError(f"invalid message: {exc.error_count()} error(s)") from exc


def encode_message(message: NotifyMessage) -> bytes:
    """Serialize a message as one newline-terminated line."""
    return (message.model_dump_json(exclude_none=True) + "\n").encode("utf-8")


def _session_external_id(session_id: str, tool: str | None) -> str:
    return to_external_id(session_id, parse_tool(tool) if tool else None)


def message_to_event(message: NotifyMessage) -> PushEvent:
    """Convert a decoded message into an internal event.

    Raises:
        UnknownToolError: The session id or ``tool`` names no known tool.
    """
    if isinstance(message, RegisterMessage):
        external_id = _session_external_id(message.session_id, message.tool)
        tool, _ = parse_external_id(external_id)
        return RegisterEvent(
            external_id=external_id,
            project_path=message.project_path,
            tool=tool,
            pane_id=message.pane_id,
        )
    if isinstance(message, StatusMessage):
        return StatusEvent(
            external_id=_session_external_id(message.session_id, message.tool),
            status=parse_status(message.status),
            message=message.message,
        )
    if isinstance(message, UnregisterMessage):
        return UnregisterEvent(
            external_id=_session_external_id(message.session_id, message.tool)
        )
    return TabFocusEvent(tab_name=message.tab_name)
