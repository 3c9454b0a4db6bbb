"""LogLine: capture entries in memory, send them later in one request.

Useful where a background flush task cannot run, for example a short-lived
serverless handler::

    line = LogLine()
    trace = line.trace({"id": "req-1"})
    ...
    trace.end()
    await LogLine.push(api_key, "my-repo", line.drain())
"""

from __future__ import annotations

from collections.abc import Sequence

import httpx

from tracewire.components import CommitLog
from tracewire.config import DEFAULT_BASE_URL
from tracewire.diagnostics import get_logger
from tracewire.errors import LogLineError
from tracewire.logger import LoggingFacade
from tracewire.writer import CaptureWriter, LogsAPI

log = get_logger(__name__)

LOG_LINE_ID = "log-line"


class LogLine(LoggingFacade):
    """Full logging API backed by a :class:`CaptureWriter`."""

    writer: CaptureWriter

    def __init__(self, *, raise_exceptions: bool = False) -> None:
        self.writer = CaptureWriter(raise_exceptions=raise_exceptions)

    @property
    def id(self) -> str:
        return LOG_LINE_ID

    @property
    def logs(self) -> list[CommitLog]:
        """Captured entries, oldest first."""
        return self.writer.logs

    def drain(self) -> list[CommitLog]:
        """Return captured entries and clear the buffer."""
        return self.writer.drain()

    @staticmethod
    async def push(
        api_key: str,
        repository_id: str,
        logs: Sequence[CommitLog],
        base_url: str = DEFAULT_BASE_URL,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Send ``logs`` to ``repository_id`` in a single request.

        Raises:
            TracewireAPIError: If delivery fails after retries.
        """
        if not logs:
            return
        api = LogsAPI(base_url, api_key, transport=transport)
        try:
            await api.push_logs(repository_id, "\n".join(entry.serialize() for entry in logs))
            log.debug("log_line_pushed", repository_id=repository_id, entries=len(logs))
        finally:
            await api.aclose()

    async def flush(self) -> None:
        raise LogLineError("LogLine.flush() is not supported. Use LogLine.push() to send logs.")

    async def cleanup(self) -> None:
        raise LogLineError("LogLine.cleanup() is not supported. Use LogLine.push() to send logs.")
