"""Error record container (leaf, immutable after construction)."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from tracewire.components.base import BaseContainer
from tracewire.components.configs import ErrorConfig, coerce_config
from tracewire.components.types import Entity, WriterProtocol
from tracewire.utils import sanitize_metadata


class Error(BaseContainer):
    """An exception or failure attached to a trace or span.

    Has no operations of its own beyond the base ones; the parent's
    ``add-error`` commit carries everything.
    """

    entity = Entity.ERROR

    def __init__(self, config: ErrorConfig | Mapping[str, Any] | None, writer: WriterProtocol) -> None:
        cfg = coerce_config(ErrorConfig, config)
        super().__init__(writer, id=cfg.id, name=cfg.name, tags=cfg.tags)
        self._message = cfg.message
        self._code = cfg.code
        self._error_type = cfg.type
        self._metadata = dict(cfg.metadata) if cfg.metadata else None

    @classmethod
    def from_exception(cls, exc: BaseException, writer: WriterProtocol, **config: Any) -> Error:
        """Build an error record from a raised exception."""
        config.setdefault("message", str(exc))
        config.setdefault("type", type(exc).__name__)
        return cls(config, writer)

    @property
    def message(self) -> str:
        return self._message

    @property
    def code(self) -> str | None:
        return self._code

    @property
    def error_type(self) -> str | None:
        return self._error_type

    def data(self) -> dict[str, Any]:
        data = {
            **super().data(),
            "message": self._message,
            "code": self._code,
            "errorType": self._error_type,
            "name": self._name,
        }
        if self._metadata:
            data["metadata"] = sanitize_metadata(self._metadata)
        return data
