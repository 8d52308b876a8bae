"""Pull sources for Claude Code, Kiro, Codex and OpenCode sessions."""

from __future__ import annotations

from workspace_manager.discovery.base import SessionFetcher, StoreReadError
from workspace_manager.discovery.claude_code import ClaudeSessionsFetcher
from workspace_manager.discovery.codex_sessions import CodexSessionsFetcher
from workspace_manager.discovery.kiro import KiroSqliteFetcher
from workspace_manager.discovery.opencode import OpenCodeSessionsFetcher
from workspace_manager.discovery.running import ProcessProbeError


def default_fetchers() -> list[SessionFetcher]:
    """One fetcher per supported tool, configured from settings."""
    return [
        ClaudeSessionsFetcher(),
        KiroSqliteFetcher(),
        CodexSessionsFetcher(),
        OpenCodeSessionsFetcher(),
    ]


__all__ = [
    "ClaudeSessionsFetcher",
    "CodexSessionsFetcher",
    "KiroSqliteFetcher",
    "OpenCodeSessionsFetcher",
    "ProcessProbeError",
    "SessionFetcher",
    "StoreReadError",
    "default_fetchers",
]
