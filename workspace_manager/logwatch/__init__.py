"""Optional transcript analysis for richer Claude session status."""

from __future__ import annotations

from workspace_manager.logwatch.analyzer import (
    AnalysisError,
    CliAnalyzer,
    StatusExtractor,
    extract_json,
    extract_status_heuristic,
)
from workspace_manager.logwatch.collector import LogCollector, LogContent
from workspace_manager.logwatch.source import LogWatchSource
from workspace_manager.settings import settings


def default_log_watch() -> LogWatchSource:
    return LogWatchSource(
        LogCollector(max_lines=settings.logwatch_max_lines()),
        StatusExtractor(CliAnalyzer()),
    )


__all__ = [
    "AnalysisError",
    "CliAnalyzer",
    "LogCollector",
    "LogContent",
    "LogWatchSource",
    "StatusExtractor",
    "default_log_watch",
    "extract_json",
    "extract_status_heuristic",
]
