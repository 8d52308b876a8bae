"""Common shape of a per-tool pull source."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Iterable

import structlog

from workspace_manager.discovery.running import ProcessProbeError
from workspace_manager.models import DiscoveredSession, DiscoveryBatch, ProcessRecord, Tool, utc_now
from workspace_manager.settings import settings
from workspace_manager.workspaces import normalize_path

logger = structlog.get_logger(__name__)


class StoreReadError(RuntimeError):
    """A tool's session store could not be read this cycle."""


def from_epoch_ms(value: object) -> datetime | None:
    """Convert a millisecond Unix timestamp to an aware datetime."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def parse_iso(value: object) -> datetime | None:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) to an aware datetime."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SessionFetcher(ABC):
    """Enumerates one tool's live sessions and probes its processes.

    Subclasses implement ``is_available``, ``fetch_sessions`` and
    ``probe_processes``; ``poll`` turns one cycle into a ``DiscoveryBatch``
    and never raises.
    """

    tool: Tool

    def __init__(self, inactivity_threshold_seconds: int | None = None) -> None:
        if inactivity_threshold_seconds is None:
            inactivity_threshold_seconds = settings.inactivity_threshold_seconds()
        self.inactivity_threshold = timedelta(seconds=inactivity_threshold_seconds)

    @property
    def name(self) -> str:
        return self.tool.value

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the tool's session store exists on this machine."""

    @abstractmethod
    def fetch_sessions(
        self, paths: set[str], processes: list[ProcessRecord]
    ) -> list[DiscoveredSession]:
        """Live sessions whose project path is in ``paths`` (normalized)."""

    @abstractmethod
    def probe_processes(self) -> list[ProcessRecord]:
        """Running processes of the tool.

        Raises:
            ProcessProbeError: The process table could not be inspected.
        """

    def is_recent(self, modified: datetime | None, now: datetime | None = None) -> bool:
        if modified is None:
            return False
        return (now or utc_now()) - modified < self.inactivity_threshold

    def poll(self, paths: Iterable[str]) -> DiscoveryBatch:
        """Run one discovery cycle; failures degrade to an unreliable batch."""
        observed_at = utc_now()
        normalized = {normalize_path(path) for path in paths}
        batch = DiscoveryBatch(tool=self.tool, observed_at=observed_at)

        try:
            batch.processes = self.probe_processes()
        except ProcessProbeError as exc:
            logger.warning("Process probe failed", tool=self.name, error=str(exc))
            batch.processes_probed = False

        try:
            batch.sessions = self.fetch_sessions(normalized, batch.processes)
        except StoreReadError as exc:
            logger.warning("Session store unavailable", tool=self.name, error=str(exc))
            batch.sessions_read = False
        except Exception:
            logger.exception("Session store read failed", tool=self.name)
            batch.sessions = []
            batch.sessions_read = False

        logger.debug(
            "Discovery cycle finished",
            tool=self.name,
            sessions=len(batch.sessions),
            processes=len(batch.processes),
        )
        return batch
