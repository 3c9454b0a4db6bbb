"""Diagnostic logging for the tracewire SDK.

The SDK never touches the host application's handlers or its structlog
configuration. Modules obtain a structlog logger through :func:`get_logger`,
which wraps a stdlib logger with the SDK's own processors; records flow into the
standard ``logging`` tree under the ``tracewire`` namespace, which carries a
``NullHandler`` until the application (or the CLI) calls
:func:`configure_logging`.

Two output modes are available once configured:

- Console logging: controlled by ``verbosity`` (rich handler on stderr)
- File logging: every record as a JSON line in ``{log_dir}/tracewire-debug.jsonl``
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path  # noqa: TC003 - Used at runtime for path operations
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from structlog.typing import Processor

ROOT_LOGGER_NAME = "tracewire"

# Module-level state
_configured = False
_file_handler: logging.FileHandler | None = None
_console_handler: logging.Handler | None = None
_logs_dir: Path | None = None

logging.getLogger(ROOT_LOGGER_NAME).addHandler(logging.NullHandler())

_SHARED_PROCESSORS: list[Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
]


class JSONLFileHandler(logging.FileHandler):
    """File handler that writes JSONL format."""

    def emit(self, record: logging.LogRecord) -> None:
        """Write log record as JSON line."""
        try:
            entry = {
                "timestamp": datetime.now(UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
            }

            # structlog passes the event dict via record.msg when using wrap_for_formatter
            if isinstance(record.msg, dict):
                event_dict = record.msg.copy()
                event_dict.pop("level", None)
                event_dict.pop("timestamp", None)
                event_dict.pop("logger", None)
                entry["message"] = event_dict.pop("event", str(record.msg))
                entry.update(event_dict)
            else:
                entry["message"] = record.getMessage()

            line = json.dumps(entry, default=str) + "\n"
            if self.stream:
                self.stream.write(line)
                self.stream.flush()
        except Exception:
            self.handleError(record)


def configure_logging(
    verbosity: int = 0,
    log_to_file: bool = False,
    log_dir: Path | None = None,
) -> None:
    """Attach console (and optionally file) handlers to the ``tracewire`` logger.

    Args:
        verbosity: 0=WARNING (default), 1=INFO, 2+=DEBUG
        log_to_file: If True, enable JSONL file logging to ``log_dir``.
        log_dir: Directory for the JSONL debug log. Required if log_to_file=True.

    Raises:
        ValueError: If log_to_file=True but log_dir is not provided.
    """
    global _configured, _file_handler, _console_handler, _logs_dir

    if log_to_file and log_dir is None:
        raise ValueError("log_dir is required when log_to_file=True")

    sdk_logger = logging.getLogger(ROOT_LOGGER_NAME)

    # Drop handlers from a previous configuration
    if _file_handler is not None:
        sdk_logger.removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None
    if _console_handler is not None:
        sdk_logger.removeHandler(_console_handler)
        _console_handler = None

    levels = {0: logging.WARNING, 1: logging.INFO}
    console_level = levels.get(verbosity, logging.DEBUG)

    console = Console(stderr=True)
    console_handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        tracebacks_show_locals=verbosity >= 2,
        show_time=verbosity >= 1,
        show_path=verbosity >= 2,
        markup=False,
        level=console_level,
    )
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=False),
            foreign_pre_chain=_SHARED_PROCESSORS,
        )
    )
    sdk_logger.addHandler(console_handler)
    _console_handler = console_handler

    if log_to_file and log_dir:
        _logs_dir = log_dir
        _logs_dir.mkdir(parents=True, exist_ok=True)

        _file_handler = JSONLFileHandler(str(_logs_dir / "tracewire-debug.jsonl"), mode="a")
        _file_handler.setLevel(logging.DEBUG)
        sdk_logger.addHandler(_file_handler)

    sdk_logger.setLevel(logging.DEBUG if (verbosity > 0 or log_to_file) else logging.WARNING)

    # Suppress noisy loggers from dependencies
    noisy_loggers = [
        "httpx",
        "httpcore",
        "langchain_core",
        "asyncio",
    ]
    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    The logger is wrapped on its own, leaving the global structlog
    configuration to the host application. Handlers are only attached by
    :func:`configure_logging`.

    Args:
        name: Logger name (typically __name__).

    Returns:
        Bound logger instance.
    """
    logger: structlog.stdlib.BoundLogger = structlog.wrap_logger(
        logging.getLogger(name or ROOT_LOGGER_NAME),
        processors=[*_SHARED_PROCESSORS, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    return logger


def get_logs_dir() -> Path | None:
    """Get the configured logs directory.

    Returns:
        Path to logs directory if file logging is enabled, None otherwise.
    """
    return _logs_dir


def close_file_logging() -> None:
    """Close file logging handler."""
    global _file_handler
    if _file_handler:
        logging.getLogger(ROOT_LOGGER_NAME).removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None
