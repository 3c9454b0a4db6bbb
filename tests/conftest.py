"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from tests.fixtures.backend import MockBackend
from tracewire.writer import CaptureWriter, LogWriter, LogWriterConfig


@pytest.fixture(autouse=True)
def not_on_lambda(monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every test as if outside AWS Lambda unless it opts in."""
    monkeypatch.delenv("AWS_LAMBDA_FUNCTION_NAME", raising=False)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def writer() -> CaptureWriter:
    """Lenient in-memory writer."""
    return CaptureWriter()


@pytest.fixture
def strict_writer() -> CaptureWriter:
    """In-memory writer with ``raise_exceptions`` enabled."""
    return CaptureWriter(raise_exceptions=True)


@pytest.fixture
def backend() -> MockBackend:
    return MockBackend()


@pytest.fixture
def writer_config(tmp_path: Path) -> LogWriterConfig:
    """Writer settings with no background flushing and no retries."""
    return LogWriterConfig(
        base_url="https://api.test",
        api_key="test-key",
        repository_id="repo-1",
        auto_flush=False,
        spool_dir=tmp_path / "spool",
        max_retries=0,
        retry_base_delay=0.0,
    )


@pytest.fixture
def make_log_writer(writer_config: LogWriterConfig, backend: MockBackend) -> Callable[..., LogWriter]:
    """Factory for LogWriters wired to ``backend``; keyword overrides patch the config."""

    def factory(**overrides: Any) -> LogWriter:
        config = LogWriterConfig(**{**writer_config.__dict__, **overrides})
        return LogWriter(config, transport=backend.transport)

    return factory
