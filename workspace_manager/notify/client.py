"""Fire-and-forget notification sender used by hooks and the CLI."""

from __future__ import annotations

import socket
from pathlib import Path

import structlog

from workspace_manager.notify import socket_path
from workspace_manager.notify.protocol import (
    NotifyMessage,
    RegisterMessage,
    StatusMessage,
    TabFocusMessage,
    UnregisterMessage,
    encode_message,
)

logger = structlog.get_logger(__name__)

CONNECT_TIMEOUT_SECONDS = 5.0


def send_notification(message: NotifyMessage, path: Path | None = None) -> bool:
    """Send one message; returns False instead of raising when nobody listens."""
    target = Path(path) if path is not None else socket_path()
    if not target.exists():
        logger.debug("Notification socket missing", socket_path=str(target))
        return False
    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
            sock.settimeout(CONNECT_TIMEOUT_SECONDS)
            sock.connect(str(target))
            sock.sendall(encode_message(message))
    except OSError as exc:
        logger.debug("Notification not delivered", socket_path=str(target), error=str(exc))
        return False
    return True


def notify_register(
    session_id: str,
    project_path: str,
    tool: str | None = None,
    pane_id: int | None = None,
    path: Path | None = None,
) -> bool:
    return send_notification(
        RegisterMessage(
            session_id=session_id, project_path=project_path, tool=tool, pane_id=pane_id
        ),
        path,
    )


def notify_status(
    session_id: str,
    status: str,
    message: str | None = None,
    tool: str | None = None,
    path: Path | None = None,
) -> bool:
    return send_notification(
        StatusMessage(session_id=session_id, status=status, message=message, tool=tool),
        path,
    )


def notify_unregister(session_id: str, tool: str | None = None, path: Path | None = None) -> bool:
    return send_notification(UnregisterMessage(session_id=session_id, tool=tool), path)


def notify_tab_focus(tab_name: str, path: Path | None = None) -> bool:
    return send_notification(TabFocusMessage(tab_name=tab_name), path)
