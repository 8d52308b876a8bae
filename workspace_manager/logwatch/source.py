"""Periodic transcript analysis feeding status refreshes into the event stream."""

from __future__ import annotations

import asyncio

import structlog

from workspace_manager.events import AnalysisEvent
from workspace_manager.identity import claude_external_id
from workspace_manager.logwatch.analyzer import StatusExtractor
from workspace_manager.logwatch.collector import LogCollector
from workspace_manager.models import Tool
from workspace_manager.registry import RegistrySnapshot

logger = structlog.get_logger(__name__)


class LogWatchSource:
    """Analyzes the newest transcript of each workspace with a live Claude session."""

    def __init__(self, collector: LogCollector, extractor: StatusExtractor) -> None:
        self.collector = collector
        self.extractor = extractor

    async def run_cycle(self, snapshot: RegistrySnapshot) -> list[AnalysisEvent]:
        live_ids = {
            session.external_id
            for session in snapshot.sessions
            if session.tool == Tool.CLAUDE and session.is_active
        }
        paths = sorted(
            {
                session.workspace_path
                for session in snapshot.sessions
                if session.external_id in live_ids and session.workspace_path
            }
        )
        events: list[AnalysisEvent] = []
        for path in paths:
            content = await asyncio.to_thread(self.collector.read_for_project, path)
            if content is None:
                continue
            external_id = claude_external_id(content.session_id)
            if external_id not in live_ids:
                continue
            status = await self.extractor.extract(content)
            logger.debug(
                "Transcript analyzed",
                external_id=external_id,
                status=status.status.value,
                detail=status.state_detail.value,
            )
            events.append(AnalysisEvent(external_id=external_id, status=status))
        return events
