"""Centralized environment configuration for workspace-manager.

All environment variables are read through this module using the
WORKSPACE_MANAGER_ prefix for consistency.

Usage:
    from workspace_manager.settings import settings

    interval = settings.poll_interval_seconds()
"""

from __future__ import annotations

import os


def _get(name: str, default: str = "") -> str:
    """Get an environment variable value."""
    return os.environ.get(name, "").strip() or default


def _get_bool(name: str, default: bool = False) -> bool:
    """Get a boolean environment variable."""
    value = os.environ.get(name, "").strip()
    if not value:
        return default
    return value.lower() in ("1", "true", "yes")


def _get_int(name: str, default: int = 0) -> int:
    """Get an integer environment variable."""
    value = os.environ.get(name, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(name: str, default: float = 0.0) -> float:
    value = os.environ.get(name, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


class Settings:
    """Centralized settings for the session sync daemon.

    Environment variables use the WORKSPACE_MANAGER_ prefix.
    """

    # -------------------------------------------------------------------------
    # Notification Channel Settings
    # -------------------------------------------------------------------------

    @staticmethod
    def socket_path() -> str:
        """Explicit path of the notification socket. Empty means auto-resolve.

        Env: WORKSPACE_MANAGER_SOCKET_PATH
        """
        return _get("WORKSPACE_MANAGER_SOCKET_PATH")

    @staticmethod
    def socket_drain_seconds() -> float:
        """Seconds to wait for in-flight connections on shutdown.

        Env: WORKSPACE_MANAGER_SOCKET_DRAIN_SECONDS (default: 2)
        """
        return _get_float("WORKSPACE_MANAGER_SOCKET_DRAIN_SECONDS", default=2.0)

    # -------------------------------------------------------------------------
    # Polling / Reconciliation Settings
    # -------------------------------------------------------------------------

    @staticmethod
    def poll_interval_seconds() -> float:
        """Interval between pull-source cycles.

        Env: WORKSPACE_MANAGER_POLL_INTERVAL_SECONDS (default: 5)
        """
        return _get_float("WORKSPACE_MANAGER_POLL_INTERVAL_SECONDS", default=5.0)

    @staticmethod
    def disconnect_threshold() -> int:
        """Consecutive missed discovery cycles before a session is disconnected.

        Values below 1 are clamped to 1.

        Env: WORKSPACE_MANAGER_DISCONNECT_THRESHOLD (default: 2)
        """
        return max(1, _get_int("WORKSPACE_MANAGER_DISCONNECT_THRESHOLD", default=2))

    @staticmethod
    def inactivity_threshold_seconds() -> int:
        """Sessions modified within this window count as active in file stores.

        Env: WORKSPACE_MANAGER_INACTIVITY_THRESHOLD_SECONDS (default: 60)
        """
        return _get_int("WORKSPACE_MANAGER_INACTIVITY_THRESHOLD_SECONDS", default=60)

    @staticmethod
    def db_timeout_seconds() -> float:
        """Busy timeout for reads against tool session databases.

        Env: WORKSPACE_MANAGER_DB_TIMEOUT_SECONDS (default: 5)
        """
        return _get_float("WORKSPACE_MANAGER_DB_TIMEOUT_SECONDS", default=5.0)

    @staticmethod
    def workspace_paths() -> list[str]:
        """Initial workspace paths, separated by os.pathsep.

        The display layer normally supplies workspaces through the API; this
        seeds the collection for headless use.

        Env: WORKSPACE_MANAGER_WORKSPACES
        """
        raw = _get("WORKSPACE_MANAGER_WORKSPACES")
        return [part.strip() for part in raw.split(os.pathsep) if part.strip()]

    @staticmethod
    def kiro_db_path() -> str:
        """Override for the Kiro CLI sqlite database location.

        Env: WORKSPACE_MANAGER_KIRO_DB_PATH
        """
        return _get("WORKSPACE_MANAGER_KIRO_DB_PATH")

    # -------------------------------------------------------------------------
    # Log Analysis Settings
    # -------------------------------------------------------------------------

    @staticmethod
    def logwatch_enabled() -> bool:
        """Enable transcript analysis for richer status detail.

        Env: WORKSPACE_MANAGER_LOGWATCH_ENABLED (default: 0)
        """
        return _get_bool("WORKSPACE_MANAGER_LOGWATCH_ENABLED")

    @staticmethod
    def analyzer_tool() -> str:
        """CLI used for log analysis ("claude" or "kiro-cli").

        Env: WORKSPACE_MANAGER_ANALYZER_TOOL (default: claude)
        """
        return _get("WORKSPACE_MANAGER_ANALYZER_TOOL", default="claude")

    @staticmethod
    def analyzer_timeout_seconds() -> float:
        """Hard bound on a single analysis call.

        Env: WORKSPACE_MANAGER_ANALYZER_TIMEOUT_SECONDS (default: 30)
        """
        return _get_float("WORKSPACE_MANAGER_ANALYZER_TIMEOUT_SECONDS", default=30.0)

    @staticmethod
    def analyzer_max_content_length() -> int:
        """Maximum characters of log content sent to the analyzer.

        Env: WORKSPACE_MANAGER_ANALYZER_MAX_CONTENT (default: 50000)
        """
        return _get_int("WORKSPACE_MANAGER_ANALYZER_MAX_CONTENT", default=50000)

    @staticmethod
    def logwatch_max_lines() -> int:
        """Maximum transcript lines collected per file.

        Env: WORKSPACE_MANAGER_LOGWATCH_MAX_LINES (default: 500)
        """
        return _get_int("WORKSPACE_MANAGER_LOGWATCH_MAX_LINES", default=500)

    # -------------------------------------------------------------------------
    # Debug API Settings
    # -------------------------------------------------------------------------

    @staticmethod
    def host() -> str:
        """Host to bind the debug HTTP API to.

        Env: WORKSPACE_MANAGER_HOST (default: 127.0.0.1)
        """
        return _get("WORKSPACE_MANAGER_HOST", default="127.0.0.1")

    @staticmethod
    def port() -> int:
        """Port to bind the debug HTTP API to.

        Env: WORKSPACE_MANAGER_PORT (default: 8797)
        """
        return _get_int("WORKSPACE_MANAGER_PORT", default=8797)

    # -------------------------------------------------------------------------
    # Logging Settings
    # -------------------------------------------------------------------------

    @staticmethod
    def log_level() -> str:
        """Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).

        Env: WORKSPACE_MANAGER_LOG_LEVEL (default: INFO)
        """
        return _get("WORKSPACE_MANAGER_LOG_LEVEL", default="INFO").upper()

    @staticmethod
    def log_format() -> str:
        """Log format: "console" for dev-friendly, "json" for structured.

        Env: WORKSPACE_MANAGER_LOG_FORMAT (default: console)
        """
        return _get("WORKSPACE_MANAGER_LOG_FORMAT", default="console").lower()

    @staticmethod
    def log_file() -> str:
        """Path to an optional log file. Empty means no file logging.

        A TUI owns the terminal, so file logging is the usual choice when the
        engine runs in-process with the display.

        Env: WORKSPACE_MANAGER_LOG_FILE
        """
        return _get("WORKSPACE_MANAGER_LOG_FILE")


# Singleton instance for convenient imports
settings = Settings()
