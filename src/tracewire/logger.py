"""Logger: the entry point that owns a writer for one log repository.

:class:`LoggingFacade` holds the by-id API (``trace_end("t1")``,
``generation_result("g1", ...)``). It lets code that only knows an entity
id, such as a callback handler or a worker in another task, keep logging
without holding the container object. Every method delegates to the
matching container classmethod, so the payloads are the same as the ones
the instance methods produce.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from tracewire.components import (
    Error,
    Generation,
    Retrieval,
    Session,
    Span,
    ToolCall,
    Trace,
)
from tracewire.diagnostics import get_logger

if TYPE_CHECKING:
    from tracewire.components import (
        ErrorConfig,
        EvaluateContainer,
        GenerationConfig,
        GenerationError,
        RetrievalConfig,
        SessionConfig,
        SpanConfig,
        ToolCallConfig,
        ToolCallError,
        TraceConfig,
        WriterProtocol,
    )
    from tracewire.components.attachment import AnyAttachment, AttachmentInput
    from tracewire.writer import LogWriter

log = get_logger(__name__)

Config = Mapping[str, Any]


class LoggingFacade:
    """By-id logging API over ``self.writer``."""

    writer: WriterProtocol

    # -- roots ------------------------------------------------------------------

    def session(self, config: SessionConfig | Config | None = None) -> Session:
        return Session(config, self.writer)

    def trace(self, config: TraceConfig | Config | None = None) -> Trace:
        return Trace(config, self.writer)

    # -- session ----------------------------------------------------------------

    def session_tag(self, session_id: str, key: str, value: str) -> None:
        Session.add_tag_(self.writer, session_id, key, value)

    def session_end(self, session_id: str, data: Config | None = None) -> None:
        Session.end_(self.writer, session_id, data)

    def session_feedback(self, session_id: str, score: float, comment: str | None = None) -> None:
        Session.feedback_(self.writer, session_id, score, comment)

    def session_add_metric(self, session_id: str, name: str, value: float) -> None:
        Session.add_metric_(self.writer, session_id, name, value)

    def session_trace(self, session_id: str, config: TraceConfig | Config | None = None) -> Trace:
        return Session.trace_(self.writer, session_id, config)

    def session_evaluate(self, session_id: str) -> EvaluateContainer:
        return Session.evaluate_(self.writer, session_id)

    def session_metadata(self, session_id: str, metadata: Config) -> None:
        Session.add_metadata_(self.writer, session_id, metadata)

    # -- trace ------------------------------------------------------------------

    def trace_generation(self, trace_id: str, config: GenerationConfig | Config) -> Generation:
        return Trace.generation_(self.writer, trace_id, config)

    def trace_tool_call(self, trace_id: str, config: ToolCallConfig | Config) -> ToolCall:
        return Trace.tool_call_(self.writer, trace_id, config)

    def trace_retrieval(self, trace_id: str, config: RetrievalConfig | Config | None = None) -> Retrieval:
        return Trace.retrieval_(self.writer, trace_id, config)

    def trace_span(self, trace_id: str, config: SpanConfig | Config | None = None) -> Span:
        return Trace.span_(self.writer, trace_id, config)

    def trace_error(self, trace_id: str, config: ErrorConfig | Config | BaseException) -> Error:
        return Trace.error_(self.writer, trace_id, config)

    def trace_input(self, trace_id: str, input: str) -> None:
        Trace.input_(self.writer, trace_id, input)

    def trace_output(self, trace_id: str, output: str) -> None:
        Trace.output_(self.writer, trace_id, output)

    def trace_add_to_session(self, trace_id: str, session_id: str) -> None:
        Trace.add_to_session_(self.writer, trace_id, session_id)

    def trace_add_metric(self, trace_id: str, name: str, value: float) -> None:
        Trace.add_metric_(self.writer, trace_id, name, value)

    def trace_add_attachment(self, trace_id: str, attachment: AttachmentInput) -> AnyAttachment | None:
        return Trace.add_attachment_(self.writer, trace_id, attachment)

    def trace_tag(self, trace_id: str, key: str, value: str) -> None:
        Trace.add_tag_(self.writer, trace_id, key, value)

    def trace_event(
        self,
        trace_id: str,
        event_id: str,
        name: str,
        tags: Mapping[str, str] | None = None,
        metadata: Config | None = None,
    ) -> None:
        Trace.event_(self.writer, trace_id, event_id, name, tags, metadata)

    def trace_feedback(self, trace_id: str, score: float, comment: str | None = None) -> None:
        Trace.feedback_(self.writer, trace_id, score, comment)

    def trace_metadata(self, trace_id: str, metadata: Config) -> None:
        Trace.add_metadata_(self.writer, trace_id, metadata)

    def trace_evaluate(self, trace_id: str) -> EvaluateContainer:
        return Trace.evaluate_(self.writer, trace_id)

    def trace_end(self, trace_id: str, data: Config | None = None) -> None:
        Trace.end_(self.writer, trace_id, data)

    # -- generation -------------------------------------------------------------

    def generation_set_model(self, generation_id: str, model: str) -> None:
        Generation.set_model_(self.writer, generation_id, model)

    def generation_set_name(self, generation_id: str, name: str) -> None:
        Generation.set_name_(self.writer, generation_id, name)

    def generation_add_tag(self, generation_id: str, key: str, value: str) -> None:
        Generation.add_tag_(self.writer, generation_id, key, value)

    def generation_add_message(self, generation_id: str, messages: list[Config]) -> None:
        Generation.add_messages_(self.writer, generation_id, messages)

    def generation_set_model_parameters(self, generation_id: str, model_parameters: Config) -> None:
        Generation.set_model_parameters_(self.writer, generation_id, model_parameters)

    def generation_add_metric(self, generation_id: str, name: str, value: float) -> None:
        Generation.add_metric_(self.writer, generation_id, name, value)

    def generation_result(self, generation_id: str, result: Config) -> None:
        Generation.result_(self.writer, generation_id, result)

    def generation_error(
        self, generation_id: str, error: GenerationError | Config | BaseException
    ) -> None:
        Generation.error_(self.writer, generation_id, error)

    def generation_metadata(self, generation_id: str, metadata: Config) -> None:
        Generation.add_metadata_(self.writer, generation_id, metadata)

    def generation_evaluate(self, generation_id: str) -> EvaluateContainer:
        return Generation.evaluate_(self.writer, generation_id)

    def generation_end(self, generation_id: str, data: Config | None = None) -> None:
        Generation.end_(self.writer, generation_id, data)

    def generation_add_attachment(self, generation_id: str, attachment: AttachmentInput) -> AnyAttachment | None:
        return Generation.add_attachment_(self.writer, generation_id, attachment)

    # -- span -------------------------------------------------------------------

    def span_generation(self, span_id: str, config: GenerationConfig | Config) -> Generation:
        return Span.generation_(self.writer, span_id, config)

    def span_retrieval(self, span_id: str, config: RetrievalConfig | Config | None = None) -> Retrieval:
        return Span.retrieval_(self.writer, span_id, config)

    def span_tool_call(self, span_id: str, config: ToolCallConfig | Config) -> ToolCall:
        return Span.tool_call_(self.writer, span_id, config)

    def span_span(self, span_id: str, config: SpanConfig | Config | None = None) -> Span:
        return Span.span_(self.writer, span_id, config)

    def span_tag(self, span_id: str, key: str, value: str) -> None:
        Span.add_tag_(self.writer, span_id, key, value)

    def span_error(self, span_id: str, config: ErrorConfig | Config | BaseException) -> Error:
        return Span.error_(self.writer, span_id, config)

    def span_event(
        self,
        span_id: str,
        event_id: str,
        name: str,
        tags: Mapping[str, str] | None = None,
        metadata: Config | None = None,
    ) -> None:
        Span.event_(self.writer, span_id, event_id, name, tags, metadata)

    def span_metadata(self, span_id: str, metadata: Config) -> None:
        Span.add_metadata_(self.writer, span_id, metadata)

    def span_evaluate(self, span_id: str) -> EvaluateContainer:
        return Span.evaluate_(self.writer, span_id)

    def span_end(self, span_id: str, data: Config | None = None) -> None:
        Span.end_(self.writer, span_id, data)

    def span_add_attachment(self, span_id: str, attachment: AttachmentInput) -> AnyAttachment | None:
        return Span.add_attachment_(self.writer, span_id, attachment)

    # -- retrieval --------------------------------------------------------------

    def retrieval_end(self, retrieval_id: str) -> None:
        Retrieval.end_(self.writer, retrieval_id)

    def retrieval_add_tag(self, retrieval_id: str, key: str, value: str) -> None:
        Retrieval.add_tag_(self.writer, retrieval_id, key, value)

    def retrieval_input(self, retrieval_id: str, query: str) -> None:
        Retrieval.input_(self.writer, retrieval_id, query)

    def retrieval_add_metric(self, retrieval_id: str, name: str, value: float) -> None:
        Retrieval.add_metric_(self.writer, retrieval_id, name, value)

    def retrieval_output(self, retrieval_id: str, docs: str | Sequence[str]) -> None:
        Retrieval.output_(self.writer, retrieval_id, docs)

    def retrieval_metadata(self, retrieval_id: str, metadata: Config) -> None:
        Retrieval.add_metadata_(self.writer, retrieval_id, metadata)

    def retrieval_evaluate(self, retrieval_id: str) -> EvaluateContainer:
        return Retrieval.evaluate_(self.writer, retrieval_id)

    # -- tool call --------------------------------------------------------------

    def tool_call_result(self, tool_call_id: str, result: str) -> None:
        ToolCall.result_(self.writer, tool_call_id, result)

    def tool_call_error(self, tool_call_id: str, error: ToolCallError | Config | BaseException) -> None:
        ToolCall.error_(self.writer, tool_call_id, error)

    def tool_call_add_tag(self, tool_call_id: str, key: str, value: str) -> None:
        ToolCall.add_tag_(self.writer, tool_call_id, key, value)

    def tool_call_metadata(self, tool_call_id: str, metadata: Config) -> None:
        ToolCall.add_metadata_(self.writer, tool_call_id, metadata)


class Logger(LoggingFacade):
    """Logs to one repository through a buffered :class:`LogWriter`.

    Usually obtained from :meth:`tracewire.Tracewire.logger`.

    Example::

        logger = client.logger({"id": "my-repo"})
        trace = logger.trace({"id": "req-1", "name": "chat"})
        ...
        trace.end()
        await logger.flush()
    """

    writer: LogWriter

    def __init__(self, repository_id: str, writer: LogWriter) -> None:
        self._id = repository_id
        self.writer = writer
        log.debug("logger_created", repository_id=repository_id, writer_id=writer.id)

    @property
    def id(self) -> str:
        return self._id

    @property
    def raise_exceptions(self) -> bool:
        return self.writer.raise_exceptions

    async def flush(self) -> None:
        """Deliver everything queued so far."""
        await self.writer.flush()

    async def cleanup(self) -> None:
        """Flush and release the writer's background task and HTTP clients."""
        await self.writer.cleanup()
