"""Immutable events flowing from producers to the registry's single consumer."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Union

from workspace_manager.models import (
    AnalysisStatus,
    DiscoveryBatch,
    StatusDetail,
    StatusState,
    Tool,
    utc_now,
)


class EventSource(IntEnum):
    """Trust level of an update; higher wins when timestamps tie."""
    PULL = 0
    PUSH = 1


@dataclass(frozen=True)
class RegisterEvent:
    external_id: str
    project_path: str
    tool: Tool
    pane_id: int | None = None
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class StatusEvent:
    external_id: str
    status: StatusState
    detail: StatusDetail | None = None
    message: str | None = None
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class UnregisterEvent:
    external_id: str
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class TabFocusEvent:
    tab_name: str
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class PullBatchEvent:
    """One pull cycle's results for one tool, applied as a single step.

    ``applied`` is set by the consumer once the batch has been applied so the
    producing source can start its next cycle.
    """
    batch: DiscoveryBatch
    applied: asyncio.Event | None = None


@dataclass(frozen=True)
class AnalysisEvent:
    """Pull-sourced status refresh for an existing session."""
    external_id: str
    status: AnalysisStatus
    observed_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class WorkspacesChangedEvent:
    timestamp: datetime = field(default_factory=utc_now)


PushEvent = Union[RegisterEvent, StatusEvent, UnregisterEvent, TabFocusEvent]
SyncEvent = Union[
    RegisterEvent,
    StatusEvent,
    UnregisterEvent,
    TabFocusEvent,
    PullBatchEvent,
    AnalysisEvent,
    WorkspacesChangedEvent,
]
