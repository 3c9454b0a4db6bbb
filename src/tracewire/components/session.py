"""Session container: groups the traces of one conversation."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any

from tracewire.components.base import BaseContainer, EvaluatableMixin, MetricsMixin
from tracewire.components.configs import SessionConfig, TraceConfig, coerce_config
from tracewire.components.trace import Trace, feedback_payload
from tracewire.components.types import Entity, WriterProtocol


class Session(EvaluatableMixin, MetricsMixin, BaseContainer):
    """A multi-turn conversation. Emits ``create`` on construction."""

    entity = Entity.SESSION

    def __init__(self, config: SessionConfig | Mapping[str, Any] | None, writer: WriterProtocol) -> None:
        cfg = coerce_config(SessionConfig, config)
        super().__init__(writer, id=cfg.id, name=cfg.name, tags=cfg.tags)
        self._commit("create")

    def trace(self, config: TraceConfig | Mapping[str, Any] | None = None) -> Trace:
        """Start a trace that belongs to this session."""
        return type(self).trace_(self._writer, self._id, config)

    @classmethod
    def trace_(
        cls, writer: WriterProtocol, entity_id: str, config: TraceConfig | Mapping[str, Any] | None = None
    ) -> Trace:
        cfg = dataclasses.replace(coerce_config(TraceConfig, config), session_id=entity_id)
        return Trace(cfg, writer)

    def feedback(self, score: float, comment: str | None = None) -> None:
        type(self).feedback_(self._writer, self._id, score, comment)

    @classmethod
    def feedback_(cls, writer: WriterProtocol, entity_id: str, score: float, comment: str | None = None) -> None:
        cls._commit_(writer, entity_id, "add-feedback", feedback_payload(score, comment))
