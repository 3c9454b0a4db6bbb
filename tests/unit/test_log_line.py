"""Tests for LogLine capture and push."""

from __future__ import annotations

import httpx
import pytest

from tests.fixtures.backend import MockBackend
from tracewire.errors import LogLineError, TracewireAPIError
from tracewire.log_line import LOG_LINE_ID, LogLine
from tracewire.writer.apis import API_KEY_HEADER


def test_captures_entries() -> None:
    """Everything logged through a LogLine is kept in memory."""
    line = LogLine()
    trace = line.trace({"id": "t1"})
    trace.end()

    assert line.id == LOG_LINE_ID
    assert [e.action for e in line.logs] == ["create", "end"]


def test_drain_clears_buffer() -> None:
    """drain returns the captured entries and empties the buffer."""
    line = LogLine()
    line.trace({"id": "t1"})

    drained = line.drain()

    assert len(drained) == 1
    assert line.logs == []


def test_strict_mode() -> None:
    """A strict LogLine raises for malformed ids."""
    line = LogLine(raise_exceptions=True)

    with pytest.raises(ValueError):
        line.trace({"id": "not ok"})


@pytest.mark.asyncio
async def test_flush_not_supported() -> None:
    """flush points callers to push."""
    with pytest.raises(LogLineError, match="push"):
        await LogLine().flush()


@pytest.mark.asyncio
async def test_cleanup_not_supported() -> None:
    with pytest.raises(LogLineError):
        await LogLine().cleanup()


@pytest.mark.asyncio
async def test_push_sends_one_request(backend: MockBackend) -> None:
    """push delivers all entries in a single request."""
    line = LogLine()
    trace = line.trace({"id": "t1"})
    trace.input("hi")
    trace.end()

    await LogLine.push("key-1", "repo-9", line.drain(), "https://api.test", transport=backend.transport)

    requests = backend.log_requests()
    assert len(requests) == 1
    assert requests[0].url.params["id"] == "repo-9"
    assert requests[0].headers[API_KEY_HEADER] == "key-1"
    assert [e.action for e in backend.delivered()] == ["create", "update", "end"]


@pytest.mark.asyncio
async def test_push_nothing_is_noop(backend: MockBackend) -> None:
    """An empty push sends nothing."""
    await LogLine.push("key-1", "repo-9", [], "https://api.test", transport=backend.transport)

    assert backend.requests == []


@pytest.mark.asyncio
async def test_push_raises_on_rejection() -> None:
    """Unlike the buffered writer, push reports delivery failures."""
    line = LogLine()
    line.trace({"id": "t1"})
    transport = httpx.MockTransport(lambda request: httpx.Response(401, json={"error": "bad key"}))

    with pytest.raises(TracewireAPIError) as exc_info:
        await LogLine.push("wrong", "repo-9", line.logs, "https://api.test", transport=transport)

    assert exc_info.value.status_code == 401
