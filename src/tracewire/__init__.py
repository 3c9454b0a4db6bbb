"""tracewire: observability SDK for LLM applications.

Record sessions, traces, spans, generations, retrievals, tool calls and
errors as an append-only stream of commit entries, delivered to the backend
in the background.
"""

from tracewire.client import Tracewire
from tracewire.components import (
    CommitLog,
    Entity,
    Error,
    ErrorConfig,
    FileAttachment,
    FileDataAttachment,
    Generation,
    GenerationConfig,
    GenerationError,
    Retrieval,
    RetrievalConfig,
    Session,
    SessionConfig,
    Span,
    SpanConfig,
    ToolCall,
    ToolCallConfig,
    ToolCallError,
    Trace,
    TraceConfig,
    UrlAttachment,
)
from tracewire.config import LoggerConfig, TracewireConfig
from tracewire.errors import (
    ConfigurationError,
    InvalidIdentifierError,
    LogLineError,
    TracewireAPIError,
    TracewireError,
)
from tracewire.log_line import LogLine
from tracewire.logger import Logger, LoggingFacade
from tracewire.writer import CaptureWriter, LogWriter, LogWriterConfig

__version__ = "0.1.0"

__all__ = [
    "CaptureWriter",
    "CommitLog",
    "ConfigurationError",
    "Entity",
    "Error",
    "ErrorConfig",
    "FileAttachment",
    "FileDataAttachment",
    "Generation",
    "GenerationConfig",
    "GenerationError",
    "InvalidIdentifierError",
    "LogLine",
    "LogLineError",
    "LogWriter",
    "LogWriterConfig",
    "Logger",
    "LoggerConfig",
    "LoggingFacade",
    "Retrieval",
    "RetrievalConfig",
    "Session",
    "SessionConfig",
    "Span",
    "SpanConfig",
    "ToolCall",
    "ToolCallConfig",
    "ToolCallError",
    "Trace",
    "TraceConfig",
    "TracewireAPIError",
    "TracewireConfig",
    "TracewireError",
    "UrlAttachment",
    "Tracewire",
    "__version__",
]
