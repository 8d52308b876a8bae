"""Layered ``.env`` loading and the XDG directories the daemon uses.

Precedence (highest wins):
    1. Already-set environment variables
    2. ``.env`` in the working directory
    3. ``$XDG_CONFIG_HOME/workspace-manager/config.env``
    4. Built-in defaults in ``settings``
"""

from __future__ import annotations

import os
import re
from pathlib import Path

APP_NAME = "workspace-manager"

_INLINE_COMMENT = re.compile(r"(?:^|\s)#.*$")
_QUOTES = ('"', "'")


def _xdg_base(variable: str, *fallback: str) -> Path:
    value = os.environ.get(variable, "").strip()
    return Path(value) if value else Path.home().joinpath(*fallback)


def config_dir() -> Path:
    return _xdg_base("XDG_CONFIG_HOME", ".config") / APP_NAME


def data_dir_default() -> Path:
    """Default data directory, ``~/.local/share/workspace-manager`` unless
    XDG_DATA_HOME says otherwise."""
    return _xdg_base("XDG_DATA_HOME", ".local", "share") / APP_NAME


def runtime_dir() -> Path | None:
    """``$XDG_RUNTIME_DIR/workspace-manager``; None when the variable is unset."""
    value = os.environ.get("XDG_RUNTIME_DIR", "").strip()
    return Path(value) / APP_NAME if value else None


def _parse_line(line: str) -> tuple[str, str] | None:
    line = line.strip()
    if not line or line.startswith("#"):
        return None
    line = line.removeprefix("export ").lstrip()
    key, sep, value = line.partition("=")
    key = key.strip()
    if not sep or not key:
        return None
    value = value.strip()
    if len(value) >= 2 and value[0] in _QUOTES and value[-1] == value[0]:
        return key, value[1:-1]
    return key, _INLINE_COMMENT.sub("", value).rstrip()


def parse_env_file(path: str | Path) -> dict[str, str]:
    """Read ``KEY=value`` pairs from a .env file.

    Accepts ``export`` prefixes, quoted values, full-line comments and
    ``#`` comments after unquoted values. An unreadable file yields ``{}``.
    """
    try:
        lines = Path(path).read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError):
        return {}
    return dict(pair for pair in map(_parse_line, lines) if pair is not None)


def env_files() -> list[Path]:
    """Candidate .env files, lowest precedence first."""
    return [config_dir() / "config.env", Path.cwd() / ".env"]


def load_config() -> None:
    """Apply the .env layers to ``os.environ`` without overriding set variables."""
    merged: dict[str, str] = {}
    for path in env_files():
        merged.update(parse_env_file(path))
    for key, value in merged.items():
        os.environ.setdefault(key, value)
