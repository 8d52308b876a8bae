"""Utilities for detecting running AI CLI processes and their working directories."""

from __future__ import annotations

import os
import subprocess

import structlog

from workspace_manager.models import ProcessRecord
from workspace_manager.workspaces import normalize_path

logger = structlog.get_logger(__name__)

PROBE_TIMEOUT_SECONDS = 5

# ``ps`` prints these for processes without a controlling terminal.
_NO_TTY = {"", "?", "??", "-"}


class ProcessProbeError(RuntimeError):
    """The process table could not be inspected."""


def _run(args: list[str]) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(
            args,
            capture_output=True,
            text=True,
            timeout=PROBE_TIMEOUT_SECONDS,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError, PermissionError) as exc:
        raise ProcessProbeError(f"{args[0]} failed: {exc}") from exc


def find_pids(process_name: str) -> list[int]:
    """Return PIDs whose executable name is exactly ``process_name``.

    Raises:
        ProcessProbeError: ``pgrep`` is missing, timed out or errored.
    """
    result = _run(["pgrep", "-x", process_name])
    # pgrep exits 1 when nothing matched.
    if result.returncode == 1:
        return []
    if result.returncode != 0:
        raise ProcessProbeError(
            f"pgrep exited {result.returncode}: {result.stderr.strip()}"
        )
    pids: list[int] = []
    for line in result.stdout.split():
        try:
            pids.append(int(line))
        except ValueError:
            continue
    return pids


def parse_ps_line(line: str) -> tuple[str, str, str] | None:
    """Split a ``ps -o stat=,tty=,args=`` line into (state, tty, args)."""
    parts = line.strip().split(None, 2)
    if len(parts) < 2:
        return None
    state, tty = parts[0], parts[1]
    args = parts[2] if len(parts) > 2 else ""
    return state, tty, args


def process_info(pid: int) -> tuple[str, str, str] | None:
    """Return (state, tty, args) for ``pid``, or None when it has exited."""
    result = _run(["ps", "-p", str(pid), "-o", "stat=,tty=,args="])
    if result.returncode != 0 or not result.stdout.strip():
        return None
    return parse_ps_line(result.stdout.splitlines()[0])


def parse_lsof_cwd(output: str) -> str | None:
    """Extract the cwd from ``lsof -Fn`` field output (``n/path`` lines)."""
    for line in output.splitlines():
        if line.startswith("n") and len(line) > 1:
            return line[1:]
    return None


def process_cwd(pid: int) -> str | None:
    """Working directory of ``pid`` via /proc, falling back to ``lsof``."""
    proc_link = f"/proc/{pid}/cwd"
    try:
        return os.readlink(proc_link)
    except OSError:
        pass
    try:
        result = _run(["lsof", "-a", "-p", str(pid), "-d", "cwd", "-Fn"])
    except ProcessProbeError:
        return None
    if result.returncode != 0:
        return None
    return parse_lsof_cwd(result.stdout)


def parse_flag_value(args: str, flags: tuple[str, ...]) -> str | None:
    """Return the value following the first of ``flags`` in a command line."""
    parts = args.split()
    for index, part in enumerate(parts):
        for flag in flags:
            if part == flag and index + 1 < len(parts):
                return parts[index + 1]
            if part.startswith(flag + "="):
                return part[len(flag) + 1 :] or None
    return None


def probe_processes(
    process_name: str,
    *,
    require_tty: bool = False,
    session_flags: tuple[str, ...] = (),
) -> list[ProcessRecord]:
    """List running ``process_name`` processes with their cwd and session id.

    Stopped (``T``) processes are skipped, and so are processes without a
    terminal when ``require_tty`` is set. A process that exits mid-probe is
    skipped.

    Raises:
        ProcessProbeError: The process table could not be listed.
    """
    records: list[ProcessRecord] = []
    for pid in find_pids(process_name):
        info = process_info(pid)
        if info is None:
            continue
        state, tty, args = info
        if state.startswith("T"):
            continue
        if require_tty and tty in _NO_TTY:
            continue
        cwd = process_cwd(pid)
        if not cwd:
            continue
        session_id = parse_flag_value(args, session_flags) if session_flags else None
        records.append(ProcessRecord(cwd=normalize_path(cwd), session_id=session_id))
    logger.debug("Probed processes", process=process_name, count=len(records))
    return records


def find_running_claude_processes() -> list[ProcessRecord]:
    """Interactive Claude Code processes, with the ``--resume`` id when given."""
    return probe_processes("claude", require_tty=True, session_flags=("--resume", "-r"))


def find_running_kiro_processes() -> list[ProcessRecord]:
    return probe_processes("kiro-cli")


def find_running_codex_processes() -> list[ProcessRecord]:
    """Codex processes; ``codex resume <id>`` carries the session id."""
    return probe_processes("codex", session_flags=("resume",))


def find_running_opencode_processes() -> list[ProcessRecord]:
    return probe_processes("opencode", session_flags=("--session", "-s"))
