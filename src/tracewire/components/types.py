"""Entity kinds and the commit log entry.

A ``CommitLog`` is the unit the writer transports: which entity changed
(kind + id), what happened (``action``), and the payload. The action
vocabulary is open; only the backend interprets it.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable

from tracewire.utils import json_default, make_object_serializable


class Entity(StrEnum):
    """Closed set of loggable entity kinds."""

    SESSION = "session"
    TRACE = "trace"
    SPAN = "span"
    GENERATION = "generation"
    FEEDBACK = "feedback"
    RETRIEVAL = "retrieval"
    TOOL_CALL = "tool_call"
    ERROR = "error"


_SERIALIZED_PATTERN = re.compile(
    r"^(?P<entity>[a-z_]+)\{id=(?P<id>[^,]*),action=(?P<action>[^,]*),data=(?P<data>.*)\}$",
    re.DOTALL,
)


def _dumps(data: Any) -> str:
    return json.dumps(data, default=json_default, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


@dataclass(frozen=True, slots=True)
class CommitLog:
    """Immutable record of one change to one entity.

    Attributes:
        entity: Kind of the entity the change applies to.
        entity_id: Id of that entity.
        action: Backend-interpreted verb (``create``, ``update``, ``end``, ...).
        data: Payload; copied on construction so later caller mutation of the
            source mapping does not leak into the entry.
    """

    entity: Entity
    entity_id: str
    action: str
    data: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.entity_id, str):
            raise TypeError(f"entity_id must be a string, got {type(self.entity_id).__name__}")
        object.__setattr__(self, "entity", Entity(self.entity))
        object.__setattr__(self, "data", dict(self.data) if self.data else {})

    @property
    def id(self) -> str:
        """Id of the entity this entry belongs to."""
        return self.entity_id

    @property
    def type(self) -> Entity:
        """Entity kind of this entry."""
        return self.entity

    def data_json(self) -> str:
        """Compact JSON encoding of the payload.

        Payloads that plain encoding rejects (reference cycles, non-finite
        floats) are first converted with :func:`make_object_serializable`.
        """
        try:
            return _dumps(self.data)
        except (ValueError, TypeError, RecursionError):
            return _dumps(make_object_serializable(self.data))

    def serialize(self) -> str:
        """Wire form: ``<entity>{id=<id>,action=<action>,data=<json>}``."""
        return f"{self.entity.value}{{id={self.entity_id},action={self.action},data={self.data_json()}}}"

    @classmethod
    def deserialize(cls, line: str) -> CommitLog:
        """Parse the output of :meth:`serialize`.

        Timestamps and binary payloads come back in their encoded string form.

        Raises:
            ValueError: If ``line`` is not a serialized commit entry.
        """
        match = _SERIALIZED_PATTERN.match(line.strip())
        if match is None:
            raise ValueError(f"Not a serialized commit log: {line[:80]!r}")
        try:
            data = json.loads(match["data"])
        except json.JSONDecodeError as e:
            raise ValueError(f"Malformed commit log payload: {e}") from e
        return cls(Entity(match["entity"]), match["id"], match["action"], data)

    def with_data(self, data: dict[str, Any]) -> CommitLog:
        """Copy of this entry with a different payload."""
        return CommitLog(self.entity, self.entity_id, self.action, data)


@runtime_checkable
class WriterProtocol(Protocol):
    """What containers need from a writer: a strictness flag and ``commit``.

    Implemented by :class:`tracewire.writer.LogWriter` (buffered delivery)
    and :class:`tracewire.writer.CaptureWriter` (in-memory capture).
    """

    @property
    def raise_exceptions(self) -> bool: ...

    def commit(self, log: CommitLog) -> None: ...
