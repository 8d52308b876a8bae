"""Transcript analysis: an external CLI call with a local heuristic fallback."""

from __future__ import annotations

import asyncio
import json
import re
from contextlib import suppress

import structlog

from workspace_manager.logwatch.collector import LogContent
from workspace_manager.models import (
    AnalysisStatus,
    StatusDetail,
    StatusState,
    parse_status,
    validate_detail,
)
from workspace_manager.settings import settings

logger = structlog.get_logger(__name__)

TRUNCATION_MARKER = "...[truncated]...\n"
HEURISTIC_WINDOW = 20

_PROMPT_TEMPLATE = """Analyze this CLI session log. Output ONLY a JSON object, no other text.

{content}

JSON format: {{"status":"<working|waiting|completed|error|idle|disconnected>","state_detail":"<thinking|executing_tool|writing_code|user_input|confirmation|success|api_error|tool_error|inactive|session_ended>","summary":"<brief 50 char max>"}}

Rules: working+thinking=AI responding, working+executing_tool=tool in progress, waiting+user_input=needs input, completed+success=done, error=failed, disconnected+session_ended=ended"""

STATUS_SCHEMA = {
    "type": "object",
    "properties": {
        "status": {"type": "string", "enum": [s.value for s in StatusState]},
        "state_detail": {"type": "string", "enum": [d.value for d in StatusDetail]},
        "summary": {"type": ["string", "null"], "maxLength": 50},
        "current_task": {"type": ["string", "null"]},
        "error": {"type": ["string", "null"]},
    },
    "required": ["status", "state_detail"],
}


class AnalysisError(RuntimeError):
    """The analyzer CLI failed, timed out or returned nothing usable."""


def _loads_object(candidate: str) -> dict | None:
    try:
        value = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def _longest_object_prefix(text: str) -> str | None:
    """Longest prefix of ``text`` ending in ``}`` that parses as a JSON object."""
    end = text.rfind("}")
    while end != -1:
        candidate = text[: end + 1]
        if _loads_object(candidate) is not None:
            return candidate
        end = text.rfind("}", 0, end)
    return None


_FENCE_JSON = re.compile(r"```json(.*?)```", re.DOTALL)
_FENCE_ANY = re.compile(r"```(.*?)```", re.DOTALL)


def extract_json(response: str) -> str:
    """Pull a JSON object out of free-form model output.

    Tries, in order: the whole reply starting with ``{``, a ```json fence,
    any fence, then the first embedded object.

    Raises:
        AnalysisError: No JSON object could be found.
    """
    trimmed = response.strip()
    if trimmed.startswith("{"):
        found = _longest_object_prefix(trimmed)
        if found is not None:
            return found

    match = _FENCE_JSON.search(trimmed)
    if match:
        return match.group(1).strip()

    match = _FENCE_ANY.search(trimmed)
    if match:
        inner = match.group(1).strip()
        if not inner.startswith("{") and "\n" in inner:
            # Drop a language tag on the fence line.
            inner = inner.split("\n", 1)[1].strip()
        if _loads_object(inner) is not None:
            return inner

    start = trimmed.find("{")
    if start != -1:
        found = _longest_object_prefix(trimmed[start:])
        if found is not None:
            return found

    raise AnalysisError("Could not extract valid JSON from response")


def _status_from_payload(payload: dict, log: LogContent) -> AnalysisStatus:
    raw_status = payload.get("status")
    if not isinstance(raw_status, str):
        raise AnalysisError("Response has no status")
    state = parse_status(raw_status)
    summary = payload.get("summary")
    current_task = payload.get("current_task")
    error = payload.get("error")
    return AnalysisStatus(
        session_id=log.session_id,
        project_path=payload.get("project_path") or log.project_path,
        tool=payload.get("tool") or log.tool,
        status=state,
        state_detail=validate_detail(state, payload.get("state_detail")),
        summary=summary if isinstance(summary, str) else None,
        current_task=current_task if isinstance(current_task, str) else None,
        error=error if isinstance(error, str) else None,
        last_activity=log.modified,
    )


def parse_response(response: str, log: LogContent) -> AnalysisStatus:
    """Parse CLI output: a ``structured_output`` or ``result`` wrapper, or bare JSON.

    Raises:
        AnalysisError: No status could be parsed.
    """
    wrapper = _loads_object(response.strip())
    if wrapper is not None:
        structured = wrapper.get("structured_output")
        if isinstance(structured, dict):
            return _status_from_payload(structured, log)
        result = wrapper.get("result")
        if isinstance(result, str):
            payload = _loads_object(extract_json(result))
        elif "status" in wrapper:
            payload = wrapper
        else:
            raise AnalysisError("No structured_output or result in response")
    else:
        payload = _loads_object(extract_json(response))
    if payload is None:
        raise AnalysisError("Response JSON is not an object")
    return _status_from_payload(payload, log)


def extract_status_heuristic(log: LogContent) -> AnalysisStatus:
    """Best-effort status from the last transcript lines. Never raises."""
    last_type = ""
    last_tool = ""
    last_text = ""
    has_error = False

    for line in reversed(log.lines[-HEURISTIC_WINDOW:]):
        try:
            record = json.loads(line)
        except (json.JSONDecodeError, TypeError):
            continue
        if not isinstance(record, dict):
            continue
        message = record.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if isinstance(content, list):
            for item in content:
                if not isinstance(item, dict):
                    continue
                item_type = item.get("type")
                if not isinstance(item_type, str):
                    continue
                if not last_type:
                    last_type = item_type
                if item_type == "tool_use" and not last_tool and isinstance(item.get("name"), str):
                    last_tool = item["name"]
                elif item_type == "text" and not last_text:
                    text = item.get("text")
                    if isinstance(text, str) and len(text) < 100:
                        last_text = text[:50]
        if record.get("type") == "error":
            has_error = True

    if has_error:
        state, detail, summary = StatusState.ERROR, StatusDetail.TOOL_ERROR, "Error occurred"
    elif last_type == "tool_use":
        summary = f"Running: {last_tool}" if last_tool else "Executing tool"
        state, detail = StatusState.WORKING, StatusDetail.EXECUTING_TOOL
    elif last_type == "thinking":
        state, detail, summary = StatusState.WORKING, StatusDetail.THINKING, "Thinking..."
    elif last_type == "text":
        state, detail = StatusState.WORKING, StatusDetail.WRITING_CODE
        summary = last_text or "Processing"
    else:
        content = "\n".join(log.lines).lower()
        if "error" in content or "failed" in content:
            state, detail, summary = StatusState.ERROR, StatusDetail.TOOL_ERROR, "Error detected"
        else:
            state, detail, summary = StatusState.IDLE, StatusDetail.INACTIVE, None

    return AnalysisStatus(
        session_id=log.session_id,
        project_path=log.project_path,
        tool=log.tool,
        status=state,
        state_detail=detail,
        summary=summary,
        last_activity=log.modified,
    )


class CliAnalyzer:
    """Asks an AI CLI (``claude --print``) to classify a transcript."""

    def __init__(
        self,
        tool: str | None = None,
        timeout_seconds: float | None = None,
        max_content_length: int | None = None,
    ) -> None:
        self.tool = tool or settings.analyzer_tool()
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.analyzer_timeout_seconds()
        )
        self.max_content_length = (
            max_content_length
            if max_content_length is not None
            else settings.analyzer_max_content_length()
        )

    def build_prompt(self, log: LogContent) -> str:
        content = "\n".join(log.lines)
        if len(content) > self.max_content_length:
            content = TRUNCATION_MARKER + content[-self.max_content_length :]
        return _PROMPT_TEMPLATE.format(content=content)

    def command(self) -> list[str]:
        args = [self.tool, "--print", "-"]
        if self.tool == "claude":
            args += [
                "--model",
                "haiku",
                "--output-format",
                "json",
                "--json-schema",
                json.dumps(STATUS_SCHEMA),
            ]
        return args

    async def is_available(self) -> bool:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.tool,
                "--version",
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            return await asyncio.wait_for(proc.wait(), timeout=self.timeout_seconds) == 0
        except (OSError, asyncio.TimeoutError):
            return False

    async def analyze(self, log: LogContent) -> AnalysisStatus:
        """Run the CLI on the transcript, bounded by ``timeout_seconds``.

        Raises:
            AnalysisError: The call failed, timed out or was unparseable.
        """
        prompt = self.build_prompt(log)
        logger.debug("Analyzing transcript", source=str(log.source), chars=len(prompt))
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.command(),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise AnalysisError(f"Failed to spawn {self.tool}: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(prompt.encode("utf-8")), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as exc:
            with suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
            raise AnalysisError("Analysis timed out") from exc

        if proc.returncode != 0:
            raise AnalysisError(
                f"{self.tool} exited with {proc.returncode}: "
                f"{stderr.decode('utf-8', errors='replace').strip()}"
            )
        return parse_response(stdout.decode("utf-8", errors="replace"), log)


class StatusExtractor:
    """Uses the CLI analyzer when it is installed, else the heuristic."""

    def __init__(self, analyzer: CliAnalyzer | None = None) -> None:
        self.analyzer = analyzer
        self._available: bool | None = None

    async def extract(self, log: LogContent) -> AnalysisStatus:
        if self.analyzer is not None:
            if self._available is None:
                self._available = await self.analyzer.is_available()
                logger.info(
                    "Log analyzer availability checked",
                    tool=self.analyzer.tool,
                    available=self._available,
                )
            if self._available:
                try:
                    return await self.analyzer.analyze(log)
                except AnalysisError as exc:
                    logger.warning("Log analysis failed, using heuristic", error=str(exc))
        return extract_status_heuristic(log)
