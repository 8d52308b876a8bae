"""Collects the tail of Claude Code transcripts for analysis."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

import structlog

from workspace_manager.discovery.claude_code import claude_home, encode_project_path
from workspace_manager.models import utc_now

logger = structlog.get_logger(__name__)

# Rough average transcript line size used to seek near the end of big files.
BYTES_PER_LINE_ESTIMATE = 200


@dataclass
class LogContent:
    """A batch of transcript lines from one file."""
    source: Path
    project_path: str | None
    tool: str
    lines: list[str]
    collected_at: datetime = field(default_factory=utc_now)
    modified: datetime | None = None

    @property
    def session_id(self) -> str:
        return self.source.stem


@dataclass
class _TrackedFile:
    path: Path
    last_position: int
    last_modified: float


class LogCollector:
    """Reads transcripts only when they changed since the previous read."""

    def __init__(self, claude_dir: Path | None = None, max_lines: int = 500) -> None:
        self.claude_dir = Path(claude_dir) if claude_dir is not None else claude_home()
        self.max_lines = max(1, max_lines)
        # Keyed by project path.
        self._tracked: dict[str, _TrackedFile] = {}

    @property
    def projects_dir(self) -> Path:
        return self.claude_dir / "projects"

    def read_tail(self, path: Path, file_size: int | None = None) -> list[str]:
        """Return up to ``max_lines`` trailing lines of ``path``."""
        if file_size is None:
            file_size = path.stat().st_size
        max_bytes = self.max_lines * BYTES_PER_LINE_ESTIMATE
        with open(path, "rb") as f:
            if file_size > max_bytes:
                f.seek(-max_bytes, os.SEEK_END)
                # Discard the partial first line.
                f.readline()
            data = f.read()
        lines = [
            line for line in data.decode("utf-8", errors="replace").splitlines() if line.strip()
        ]
        return lines[-self.max_lines :]

    def newest_transcript(self, project_path: str) -> Path | None:
        """Most recently modified ``*.jsonl`` in the project's transcript dir."""
        project_dir = self.projects_dir / encode_project_path(project_path)
        if not project_dir.is_dir():
            return None
        newest: tuple[float, Path] | None = None
        for path in project_dir.glob("*.jsonl"):
            try:
                mtime = path.stat().st_mtime
            except OSError:
                continue
            if newest is None or mtime > newest[0]:
                newest = (mtime, path)
        return newest[1] if newest else None

    def read_for_project(self, project_path: str, only_changed: bool = True) -> LogContent | None:
        """Tail of the project's newest transcript.

        With ``only_changed`` a file that has not grown or been touched since
        the previous call yields None. Only the newest transcript of each
        project is tracked.
        """
        path = self.newest_transcript(project_path)
        if path is None:
            self._tracked.pop(project_path, None)
            return None
        tracked = self._tracked.get(project_path)
        if tracked is not None and tracked.path != path:
            tracked = None
        try:
            stat = path.stat()
            if (
                only_changed
                and tracked is not None
                and tracked.last_modified >= stat.st_mtime
                and tracked.last_position >= stat.st_size
            ):
                return None
            lines = self.read_tail(path, stat.st_size)
        except OSError as exc:
            logger.warning("Failed to read transcript", path=str(path), error=str(exc))
            return None
        if not lines:
            return None
        self._tracked[project_path] = _TrackedFile(
            path=path, last_position=stat.st_size, last_modified=stat.st_mtime
        )
        return LogContent(
            source=path,
            project_path=project_path,
            tool="claude",
            lines=lines,
            modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )

    @property
    def tracked_files(self) -> list[Path]:
        return [tracked.path for tracked in self._tracked.values()]
