"""Canonical external ids: ``<tool>:<raw id>``.

Examples::

    claude:0f6c...            Claude Code session uuid
    kiro:/src/app:conv-1      Kiro project path + conversation id
    kiro:/src/app             legacy Kiro id (no conversation id)
    opencode:ses_abc          OpenCode session id
    codex:019b...             Codex rollout session id
"""

from __future__ import annotations

from workspace_manager.models import Tool


class UnknownToolError(ValueError):
    """Raised when an external id carries a prefix that names no known tool."""

    def __init__(self, external_id: str) -> None:
        super().__init__(f"Unknown tool prefix in external id: {external_id!r}")
        self.external_id = external_id


def encode_external_id(tool: Tool, raw: str) -> str:
    return f"{tool.value}:{raw}"


def parse_external_id(external_id: str) -> tuple[Tool, str]:
    """Split an external id into its tool and raw identifier.

    Raises:
        UnknownToolError: The prefix is missing or names no known tool.
    """
    prefix, sep, raw = external_id.partition(":")
    if not sep:
        raise UnknownToolError(external_id)
    try:
        tool = Tool(prefix)
    except ValueError:
        raise UnknownToolError(external_id) from None
    return tool, raw


def parse_tool(name: str | None, default: Tool = Tool.CLAUDE) -> Tool:
    """Resolve a user-supplied tool name; ``None`` or empty means ``default``.

    Raises:
        UnknownToolError: The name is set but names no known tool.
    """
    if not name or not name.strip():
        return default
    try:
        return Tool(name.strip().lower())
    except ValueError:
        raise UnknownToolError(name) from None


def claude_external_id(session_id: str) -> str:
    return encode_external_id(Tool.CLAUDE, session_id)


def kiro_external_id(project_path: str, conversation_id: str) -> str:
    return encode_external_id(Tool.KIRO, f"{project_path}:{conversation_id}")


def kiro_external_id_legacy(project_path: str) -> str:
    return encode_external_id(Tool.KIRO, project_path)


def parse_kiro_external_id(external_id: str) -> tuple[str, str | None]:
    """Return ``(project_path, conversation_id)`` for a Kiro external id.

    The conversation id follows the last colon. The legacy form (an absolute
    project path with no conversation id) yields ``None`` for it.

    Raises:
        UnknownToolError: The id is not a Kiro id.
    """
    tool, raw = parse_external_id(external_id)
    if tool != Tool.KIRO:
        raise UnknownToolError(external_id)
    project_path, sep, conversation_id = raw.rpartition(":")
    if not sep or not project_path or "/" in conversation_id:
        return raw, None
    return project_path, conversation_id


def to_external_id(session_id: str, tool: Tool | None = None) -> str:
    """Qualify a bare tool session id, leaving full external ids untouched.

    A bare id is anything without a known ``<tool>:`` prefix; it is combined
    with ``tool`` (default Claude).

    Raises:
        UnknownToolError: ``session_id`` looks prefixed but the prefix is
            not a known tool and ``tool`` was not given.
    """
    try:
        parse_external_id(session_id)
        return session_id
    except UnknownToolError:
        pass
    if tool is None:
        prefix, sep, _ = session_id.partition(":")
        if sep and prefix.isalpha():
            raise UnknownToolError(session_id)
        tool = Tool.CLAUDE
    return encode_external_id(tool, session_id)


def project_path_hint(external_id: str) -> str | None:
    """Workspace path encoded in the id itself, where the scheme carries one."""
    try:
        tool, _ = parse_external_id(external_id)
    except UnknownToolError:
        return None
    if tool != Tool.KIRO:
        return None
    project_path, _ = parse_kiro_external_id(external_id)
    return project_path or None
