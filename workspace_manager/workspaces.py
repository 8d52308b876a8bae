"""Workspace collection shared read-only with the sync engine."""

from __future__ import annotations

from pathlib import Path
from threading import Lock
from typing import Iterable

from workspace_manager.models import Workspace


def normalize_path(path: str) -> str:
    """Return a normalized absolute path for the provided directory string."""
    candidate = Path(path).expanduser()
    try:
        resolved = candidate.resolve(strict=False)
    except (OSError, RuntimeError):
        resolved = candidate
    return str(resolved)


class WorkspaceCollection:
    """The current set of workspaces, keyed by canonical project path.

    The display layer replaces the contents after each scan; the registry and
    the pull sources only read. Replacement swaps an immutable tuple, so a
    reader always sees one complete scan.
    """

    def __init__(self, workspaces: Iterable[Workspace] = ()) -> None:
        self._lock = Lock()
        self._workspaces: tuple[Workspace, ...] = ()
        self._by_path: dict[str, Workspace] = {}
        self.generation = 0
        self.replace(workspaces)

    def replace(self, workspaces: Iterable[Workspace]) -> None:
        items = tuple(
            ws.model_copy(update={"project_path": normalize_path(ws.project_path)})
            for ws in workspaces
        )
        by_path = {ws.project_path: ws for ws in items}
        with self._lock:
            self._workspaces = items
            self._by_path = by_path
            self.generation += 1

    def add(self, workspace: Workspace) -> None:
        self.replace([*self._workspaces, workspace])

    def __iter__(self):
        return iter(self._workspaces)

    def __len__(self) -> int:
        return len(self._workspaces)

    def paths(self) -> list[str]:
        return [ws.project_path for ws in self._workspaces]

    def find_by_path(self, path: str | None) -> Workspace | None:
        if not path:
            return None
        return self._by_path.get(normalize_path(path))
