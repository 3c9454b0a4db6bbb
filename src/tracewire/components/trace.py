"""Trace container: one end-to-end request/response interaction."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from tracewire.components.base import (
    AttachmentMixin,
    BaseContainer,
    EvaluatableMixin,
    EventEmittingMixin,
    MetricsMixin,
)
from tracewire.components.composite import ChildFactoryMixin
from tracewire.components.configs import SpanConfig, TraceConfig, coerce_config
from tracewire.components.span import Span
from tracewire.components.types import Entity, WriterProtocol


def feedback_payload(score: float, comment: str | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"score": score}
    if comment is not None:
        payload["comment"] = comment
    return payload


class Trace(
    ChildFactoryMixin,
    EventEmittingMixin,
    EvaluatableMixin,
    MetricsMixin,
    AttachmentMixin,
    BaseContainer,
):
    """Root of a logged interaction.

    Emits ``create`` on construction, including the owning session id when
    one is set.

    Example::

        trace = logger.trace({"id": "req-42", "name": "chat"})
        trace.input("What's the weather?")
        span = trace.span({"id": "retrieve"})
        ...
        trace.output("Sunny").end()
    """

    entity = Entity.TRACE

    def __init__(self, config: TraceConfig | Mapping[str, Any] | None, writer: WriterProtocol) -> None:
        cfg = coerce_config(TraceConfig, config)
        super().__init__(writer, id=cfg.id, name=cfg.name, span_id=cfg.span_id, tags=cfg.tags)
        self._session_id = cfg.session_id
        self._commit("create", {**self.data(), "sessionId": self._session_id})

    @property
    def session_id(self) -> str | None:
        return self._session_id

    def span(self, config: SpanConfig | Mapping[str, Any] | None = None) -> Span:
        return type(self).span_(self._writer, self._id, config)

    @classmethod
    def span_(
        cls, writer: WriterProtocol, entity_id: str, config: SpanConfig | Mapping[str, Any] | None = None
    ) -> Span:
        span = Span(config, writer)
        cls._add_child_(writer, entity_id, "add-span", span)
        return span

    def add_to_session(self, session_id: str) -> None:
        self._session_id = session_id
        type(self).add_to_session_(self._writer, self._id, session_id)

    @classmethod
    def add_to_session_(cls, writer: WriterProtocol, entity_id: str, session_id: str) -> None:
        cls._commit_(writer, entity_id, "update", {"sessionId": session_id})

    def feedback(self, score: float, comment: str | None = None) -> None:
        type(self).feedback_(self._writer, self._id, score, comment)

    @classmethod
    def feedback_(cls, writer: WriterProtocol, entity_id: str, score: float, comment: str | None = None) -> None:
        cls._commit_(writer, entity_id, "add-feedback", feedback_payload(score, comment))

    def input(self, input: str) -> Trace:
        type(self).input_(self._writer, self._id, input)
        return self

    @classmethod
    def input_(cls, writer: WriterProtocol, entity_id: str, input: str) -> None:
        cls._commit_(writer, entity_id, "update", {"input": input})

    def output(self, output: str) -> Trace:
        type(self).output_(self._writer, self._id, output)
        return self

    @classmethod
    def output_(cls, writer: WriterProtocol, entity_id: str, output: str) -> None:
        cls._commit_(writer, entity_id, "update", {"output": output})
