"""Unix-socket listener decoding notification lines into events."""

from __future__ import annotations

import asyncio
import contextlib
from pathlib import Path

import structlog

from workspace_manager.identity import UnknownToolError
from workspace_manager.notify.protocol import ProtocolError, message_to_event, parse_line

logger = structlog.get_logger(__name__)

# Longest accepted line; longer lines are dropped like malformed ones.
MAX_LINE_BYTES = 1024 * 1024


class NotifyListener:
    """Accepts notification connections and forwards decoded events.

    Every connection gets its own reader task. Lines are decoded in arrival
    order and put on ``queue``; a bad line is logged and skipped without
    closing the connection.
    """

    def __init__(self, path: Path, queue: asyncio.Queue) -> None:
        self.path = Path(path)
        self._queue = queue
        self._server: asyncio.AbstractServer | None = None
        self._handlers: set[asyncio.Task] = set()
        self.messages_received = 0
        self.messages_dropped = 0

    @property
    def is_serving(self) -> bool:
        return self._server is not None and self._server.is_serving()

    async def start(self) -> None:
        """Bind the socket, replacing a stale socket file left by a crash.

        Raises:
            OSError: The socket could not be bound.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if self.path.exists() or self.path.is_symlink():
            self.path.unlink()
        self._server = await asyncio.start_unix_server(
            self._handle_client, path=str(self.path), limit=MAX_LINE_BYTES
        )
        self.path.chmod(0o600)
        logger.info("Notification listener started", socket_path=str(self.path))

    async def stop(self, drain_timeout: float = 2.0) -> None:
        """Stop accepting, drain open connections, then remove the socket."""
        if self._server is None:
            return
        self._server.close()
        pending = {task for task in self._handlers if not task.done()}
        if pending:
            _, still_open = await asyncio.wait(pending, timeout=drain_timeout)
            for task in still_open:
                task.cancel()
            if still_open:
                await asyncio.gather(*still_open, return_exceptions=True)
                logger.warning(
                    "Closed notification connections after drain timeout",
                    count=len(still_open),
                )
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._server.wait_closed(), timeout=drain_timeout)
        self._server = None
        with contextlib.suppress(FileNotFoundError):
            self.path.unlink()
        logger.info("Notification listener stopped", socket_path=str(self.path))

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        task = asyncio.current_task()
        if task is not None:
            self._handlers.add(task)
        try:
            while True:
                try:
                    line = await reader.readline()
                except ValueError:
                    self.messages_dropped += 1
                    logger.warning("Dropped oversized notification line", limit=MAX_LINE_BYTES)
                    continue
                if not line:
                    break
                if not line.strip():
                    continue
                await self._handle_line(line)
        except (ConnectionError, OSError) as exc:
            logger.warning("Notification connection failed", error=str(exc))
        finally:
            if task is not None:
                self._handlers.discard(task)
            writer.close()
            with contextlib.suppress(ConnectionError, OSError):
                await writer.wait_closed()

    async def _handle_line(self, line: bytes) -> None:
        try:
            message = parse_line(line)
            event = message_to_event(message)
        except ProtocolError as exc:
            self.messages_dropped += 1
            logger.warning("Dropped malformed notification", error=str(exc))
            return
        except UnknownToolError as exc:
            self.messages_dropped += 1
            logger.warning("Dropped notification for unknown tool", external_id=exc.external_id)
            return
        self.messages_received += 1
        logger.debug("Notification received", type=message.type)
        await self._queue.put(event)
