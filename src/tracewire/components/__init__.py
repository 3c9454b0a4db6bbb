"""Loggable entity containers and the commit log entry they emit."""

from tracewire.components.attachment import (
    FileAttachment,
    FileDataAttachment,
    UrlAttachment,
    coerce_attachment,
    populate_attachment_fields,
)
from tracewire.components.base import BaseContainer, EvaluateContainer, EvaluatorBinding
from tracewire.components.configs import (
    ErrorConfig,
    GenerationConfig,
    GenerationError,
    RetrievalConfig,
    SessionConfig,
    SpanConfig,
    ToolCallConfig,
    ToolCallError,
    TraceConfig,
)
from tracewire.components.error import Error
from tracewire.components.generation import Generation, parse_attachments_from_messages
from tracewire.components.retrieval import Retrieval
from tracewire.components.session import Session
from tracewire.components.span import Span
from tracewire.components.tool_call import ToolCall
from tracewire.components.trace import Trace
from tracewire.components.types import CommitLog, Entity, WriterProtocol

__all__ = [
    "BaseContainer",
    "CommitLog",
    "Entity",
    "Error",
    "ErrorConfig",
    "EvaluateContainer",
    "EvaluatorBinding",
    "FileAttachment",
    "FileDataAttachment",
    "Generation",
    "GenerationConfig",
    "GenerationError",
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
    "UrlAttachment",
    "WriterProtocol",
    "coerce_attachment",
    "parse_attachments_from_messages",
    "populate_attachment_fields",
]
