"""Push channel: unix-socket listener and fire-and-forget sender."""

from __future__ import annotations

import tempfile
from pathlib import Path

from workspace_manager.config import APP_NAME, data_dir_default, runtime_dir
from workspace_manager.settings import settings

SOCKET_NAME = "notify.sock"


def socket_path() -> Path:
    """Resolve the notification socket path.

    Order: explicit setting, XDG runtime dir, data dir, then the temp dir.
    """
    explicit = settings.socket_path()
    if explicit:
        return Path(explicit).expanduser()
    runtime = runtime_dir()
    if runtime is not None:
        return runtime / SOCKET_NAME
    try:
        return data_dir_default() / SOCKET_NAME
    except RuntimeError:
        # Path.home() fails when no home directory can be determined.
        return Path(tempfile.gettempdir()) / APP_NAME / SOCKET_NAME
