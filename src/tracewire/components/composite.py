"""Child factories shared by traces and spans.

Each factory builds the child on the parent's writer, commits an
``add-<kind>`` entry on the parent embedding the child's id and
:meth:`~tracewire.components.base.BaseContainer.data` snapshot, and returns
the live child.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from tracewire.components.configs import (
    ErrorConfig,
    GenerationConfig,
    RetrievalConfig,
    ToolCallConfig,
)
from tracewire.components.error import Error
from tracewire.components.generation import Generation
from tracewire.components.retrieval import Retrieval
from tracewire.components.tool_call import ToolCall

if TYPE_CHECKING:
    from tracewire.components.base import BaseContainer
    from tracewire.components.types import WriterProtocol


class ChildFactoryMixin:
    """Adds ``generation``, ``retrieval``, ``tool_call`` and ``error``."""

    if TYPE_CHECKING:
        _writer: WriterProtocol
        _id: str

        @classmethod
        def _commit_(
            cls, writer: WriterProtocol, entity_id: str, action: str, data: dict[str, Any] | None = None
        ) -> None: ...

    @classmethod
    def _add_child_(
        cls,
        writer: WriterProtocol,
        entity_id: str,
        action: str,
        child: BaseContainer,
        **extra: Any,
    ) -> None:
        cls._commit_(writer, entity_id, action, {"id": child.id, **extra, **child.data()})

    def generation(self, config: GenerationConfig | Mapping[str, Any]) -> Generation:
        return type(self).generation_(self._writer, self._id, config)

    @classmethod
    def generation_(
        cls, writer: WriterProtocol, entity_id: str, config: GenerationConfig | Mapping[str, Any]
    ) -> Generation:
        generation = Generation(config, writer, commit_attachments=False)
        cls._add_child_(
            writer,
            entity_id,
            "add-generation",
            generation,
            messages=copy.deepcopy(generation.messages),
        )
        generation._commit_extracted_attachments()
        return generation

    def retrieval(self, config: RetrievalConfig | Mapping[str, Any] | None = None) -> Retrieval:
        return type(self).retrieval_(self._writer, self._id, config)

    @classmethod
    def retrieval_(
        cls, writer: WriterProtocol, entity_id: str, config: RetrievalConfig | Mapping[str, Any] | None = None
    ) -> Retrieval:
        retrieval = Retrieval(config, writer)
        cls._add_child_(writer, entity_id, "add-retrieval", retrieval)
        return retrieval

    def tool_call(self, config: ToolCallConfig | Mapping[str, Any]) -> ToolCall:
        return type(self).tool_call_(self._writer, self._id, config)

    @classmethod
    def tool_call_(
        cls, writer: WriterProtocol, entity_id: str, config: ToolCallConfig | Mapping[str, Any]
    ) -> ToolCall:
        tool_call = ToolCall(config, writer)
        cls._add_child_(writer, entity_id, "add-tool-call", tool_call)
        return tool_call

    def error(self, config: ErrorConfig | Mapping[str, Any] | BaseException) -> Error:
        return type(self).error_(self._writer, self._id, config)

    @classmethod
    def error_(
        cls,
        writer: WriterProtocol,
        entity_id: str,
        config: ErrorConfig | Mapping[str, Any] | BaseException,
    ) -> Error:
        if isinstance(config, BaseException):
            error = Error.from_exception(config, writer)
        else:
            error = Error(config, writer)
        cls._add_child_(writer, entity_id, "add-error", error)
        return error
