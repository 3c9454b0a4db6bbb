"""Retrieval (RAG lookup) container."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from tracewire.components.base import BaseContainer, EvaluatableMixin, MetricsMixin
from tracewire.components.configs import RetrievalConfig, coerce_config
from tracewire.components.types import Entity, WriterProtocol
from tracewire.utils import utc_now


def _normalize_docs(docs: str | Sequence[str]) -> list[str]:
    if isinstance(docs, str):
        return [docs]
    return list(docs)


class Retrieval(EvaluatableMixin, MetricsMixin, BaseContainer):
    """A document lookup: the query goes in, the matched documents come out.

    :meth:`output` is terminal; it carries the end timestamp itself.
    """

    entity = Entity.RETRIEVAL

    def __init__(self, config: RetrievalConfig | Mapping[str, Any] | None, writer: WriterProtocol) -> None:
        cfg = coerce_config(RetrievalConfig, config)
        super().__init__(writer, id=cfg.id, name=cfg.name, span_id=cfg.span_id, tags=cfg.tags)

    def input(self, query: str) -> None:
        type(self).input_(self._writer, self._id, query)

    @classmethod
    def input_(cls, writer: WriterProtocol, entity_id: str, query: str) -> None:
        cls._commit_(writer, entity_id, "update", {"input": query})

    def output(self, docs: str | Sequence[str]) -> None:
        self._end_timestamp = max(utc_now(), self._start_timestamp)
        type(self).output_(self._writer, self._id, docs, end_timestamp=self._end_timestamp)

    @classmethod
    def output_(
        cls,
        writer: WriterProtocol,
        entity_id: str,
        docs: str | Sequence[str],
        *,
        end_timestamp: Any = None,
    ) -> None:
        cls._commit_(
            writer,
            entity_id,
            "end",
            {"docs": _normalize_docs(docs), "endTimestamp": end_timestamp or utc_now()},
        )
