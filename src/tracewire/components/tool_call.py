"""Tool call container."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from tracewire.components.base import BaseContainer
from tracewire.components.configs import ToolCallConfig, ToolCallError, coerce_config, error_payload
from tracewire.components.types import Entity, WriterProtocol


class ToolCall(BaseContainer):
    """One tool invocation requested by a model.

    ``args`` and ``description`` are fixed at construction. Both
    :meth:`result` and :meth:`error` end the call.
    """

    entity = Entity.TOOL_CALL

    def __init__(self, config: ToolCallConfig | Mapping[str, Any] | None, writer: WriterProtocol) -> None:
        cfg = coerce_config(ToolCallConfig, config)
        super().__init__(writer, id=cfg.id, name=cfg.name, tags=cfg.tags)
        self._description = cfg.description
        self._args = cfg.args

    @property
    def args(self) -> str:
        return self._args

    @property
    def description(self) -> str:
        return self._description

    def data(self) -> dict[str, Any]:
        return {
            **super().data(),
            "description": self._description,
            "args": self._args,
        }

    def result(self, result: str) -> None:
        type(self).result_(self._writer, self._id, result, end=False)
        self.end()

    @classmethod
    def result_(cls, writer: WriterProtocol, entity_id: str, result: str, *, end: bool = True) -> None:
        cls._commit_(writer, entity_id, "result", {"result": result})
        if end:
            cls.end_(writer, entity_id)

    def error(self, error: ToolCallError | Mapping[str, Any] | BaseException) -> None:
        type(self).error_(self._writer, self._id, error, end=False)
        self.end()

    @classmethod
    def error_(
        cls,
        writer: WriterProtocol,
        entity_id: str,
        error: ToolCallError | Mapping[str, Any] | BaseException,
        *,
        end: bool = True,
    ) -> None:
        cls._commit_(writer, entity_id, "error", {"error": error_payload(error)})
        if end:
            cls.end_(writer, entity_id)
