"""Span container: a named step inside a trace; spans nest."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from tracewire.components.base import (
    AttachmentMixin,
    BaseContainer,
    EvaluatableMixin,
    EventEmittingMixin,
)
from tracewire.components.composite import ChildFactoryMixin
from tracewire.components.configs import SpanConfig, coerce_config
from tracewire.components.types import Entity, WriterProtocol


class Span(
    ChildFactoryMixin,
    EventEmittingMixin,
    EvaluatableMixin,
    AttachmentMixin,
    BaseContainer,
):
    """Groups generations, retrievals and tool calls under one step.

    Emits ``create`` on construction.
    """

    entity = Entity.SPAN

    def __init__(self, config: SpanConfig | Mapping[str, Any] | None, writer: WriterProtocol) -> None:
        cfg = coerce_config(SpanConfig, config)
        super().__init__(writer, id=cfg.id, name=cfg.name, span_id=cfg.span_id, tags=cfg.tags)
        self._commit("create")

    def span(self, config: SpanConfig | Mapping[str, Any] | None = None) -> Span:
        """Open a nested span."""
        return type(self).span_(self._writer, self._id, config)

    @classmethod
    def span_(
        cls, writer: WriterProtocol, entity_id: str, config: SpanConfig | Mapping[str, Any] | None = None
    ) -> Span:
        span = Span(config, writer)
        cls._add_child_(writer, entity_id, "add-span", span)
        return span
