"""Tracewire client: turns configuration into per-repository loggers."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from types import TracebackType
from typing import Any

from tracewire.components.configs import coerce_config
from tracewire.config import LoggerConfig, TracewireConfig
from tracewire.diagnostics import get_logger
from tracewire.errors import ConfigurationError
from tracewire.logger import Logger
from tracewire.writer import LogWriter, LogWriterConfig

log = get_logger(__name__)


class Tracewire:
    """SDK entry point.

    Holds one :class:`Logger` per log repository, each with its own
    :class:`LogWriter`. Use as an async context manager to flush on exit::

        async with Tracewire(api_key="...") as client:
            logger = client.logger({"id": "my-repo"})
            ...

    Args:
        config: Resolved configuration. When omitted it is loaded from the
            environment and the user config file, with ``**overrides`` on top.
        spool_dir: Root for the on-disk spool of undelivered batches.
    """

    def __init__(
        self,
        config: TracewireConfig | None = None,
        *,
        spool_dir: str | Path | None = None,
        **overrides: Any,
    ) -> None:
        self.config = config if config is not None else TracewireConfig.load(**overrides)
        self.spool_dir = spool_dir
        self._loggers: dict[str, Logger] = {}

    def logger(self, config: LoggerConfig | Mapping[str, Any] | None = None) -> Logger:
        """Return the logger for a repository, creating it on first use.

        Raises:
            ConfigurationError: If no API key or repository id is available.
        """
        cfg = coerce_config(LoggerConfig, config)
        repository_id = cfg.id or self.config.repository_id
        if not repository_id:
            raise ConfigurationError(
                "Logger needs a repository id: pass {'id': ...} or set TRACEWIRE_LOG_REPO_ID"
            )
        if repository_id in self._loggers:
            return self._loggers[repository_id]
        if not self.config.api_key:
            raise ConfigurationError("API key is missing: pass api_key or set TRACEWIRE_API_KEY")

        writer = LogWriter(
            LogWriterConfig(
                base_url=self.config.base_url,
                api_key=self.config.api_key,
                repository_id=repository_id,
                auto_flush=cfg.auto_flush,
                flush_interval=cfg.flush_interval or self.config.flush_interval,
                is_debug=self.config.debug,
                max_in_memory_logs=self.config.max_in_memory_logs,
                raise_exceptions=self.config.raise_exceptions,
                spool_dir=self.spool_dir,
                max_retries=self.config.max_retries,
                timeout=self.config.timeout,
            )
        )
        logger = Logger(repository_id, writer)
        self._loggers[repository_id] = logger
        log.info("logger_initialized", repository_id=repository_id)
        return logger

    @property
    def loggers(self) -> dict[str, Logger]:
        return dict(self._loggers)

    async def cleanup(self) -> None:
        """Flush and close every logger created by this client."""
        loggers, self._loggers = list(self._loggers.values()), {}
        for logger in loggers:
            await logger.cleanup()

    async def __aenter__(self) -> Tracewire:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.cleanup()
