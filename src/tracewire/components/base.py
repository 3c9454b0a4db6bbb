"""Container base class and the capability mixins layered on top of it.

Every operation exists twice: as an instance method on a live container and
as a classmethod with a trailing underscore that takes ``(writer, id, ...)``
instead. The instance method always delegates to the classmethod, so both
paths build the same payload through the same code.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import ValidationError

from tracewire.components.attachment import AnyAttachment, AttachmentInput, coerce_attachment
from tracewire.components.types import CommitLog, Entity, WriterProtocol
from tracewire.diagnostics import get_logger
from tracewire.errors import InvalidIdentifierError
from tracewire.utils import is_valid_id, sanitize_metadata, unique_id, utc_now

if TYPE_CHECKING:
    from datetime import datetime

log = get_logger(__name__)


class BaseContainer:
    """In-memory handle for one loggable entity.

    Subclasses set ``entity``. The container keeps a non-owning reference to
    the writer it was built with and routes every change through
    :meth:`_commit_`.
    """

    entity: ClassVar[Entity]

    def __init__(
        self,
        writer: WriterProtocol,
        *,
        id: str | None = None,
        name: str | None = None,
        span_id: str | None = None,
        tags: Mapping[str, str] | None = None,
    ) -> None:
        self._writer = writer
        self._id = self._resolve_id(id, writer)
        self._name = name
        self._span_id = span_id
        self._start_timestamp: datetime = utc_now()
        self._end_timestamp: datetime | None = None
        self._tags: dict[str, str] = dict(tags) if tags else {}

    @classmethod
    def _resolve_id(cls, candidate: str | None, writer: WriterProtocol) -> str:
        """Validate ``candidate`` or generate a replacement.

        Raises:
            InvalidIdentifierError: If the id is malformed and the writer is strict.
        """
        if candidate is None or candidate == "":
            return unique_id()
        if is_valid_id(candidate):
            return candidate
        if writer.raise_exceptions:
            raise InvalidIdentifierError(cls.entity.value, candidate)
        replacement = unique_id()
        log.warning(
            "invalid_entity_id",
            entity=cls.entity.value,
            id=repr(candidate),
            replacement=replacement,
        )
        return replacement

    @property
    def id(self) -> str:
        return self._id

    @property
    def name(self) -> str | None:
        return self._name

    @property
    def span_id(self) -> str | None:
        return self._span_id

    @property
    def start_timestamp(self) -> datetime:
        return self._start_timestamp

    @property
    def end_timestamp(self) -> datetime | None:
        return self._end_timestamp

    @property
    def tags(self) -> dict[str, str]:
        return dict(self._tags)

    @property
    def writer(self) -> WriterProtocol:
        return self._writer

    def data(self) -> dict[str, Any]:
        """Snapshot embedded in parent ``add-*`` commits and ``create`` commits."""
        return {
            "name": self._name,
            "spanId": self._span_id,
            "tags": dict(self._tags),
            "startTimestamp": self._start_timestamp,
            "endTimestamp": self._end_timestamp,
        }

    def _commit(self, action: str, data: dict[str, Any] | None = None) -> None:
        """Emit ``action`` for this container; ``data`` defaults to :meth:`data`."""
        type(self)._commit_(self._writer, self._id, action, self.data() if data is None else data)

    @classmethod
    def _commit_(
        cls,
        writer: WriterProtocol,
        entity_id: str,
        action: str,
        data: dict[str, Any] | None = None,
    ) -> None:
        writer.commit(CommitLog(cls.entity, entity_id, action, data or {}))

    def add_tag(self, key: str, value: str) -> None:
        """Attach a string tag. Repeated keys overwrite on the backend."""
        self._tags[key] = value
        type(self).add_tag_(self._writer, self._id, key, value)

    @classmethod
    def add_tag_(cls, writer: WriterProtocol, entity_id: str, key: str, value: str) -> None:
        cls._commit_(writer, entity_id, "update", {"tags": {key: value}})

    def add_metadata(self, metadata: Mapping[str, Any]) -> None:
        """Attach free-form metadata; each value is JSON-encoded independently."""
        type(self).add_metadata_(self._writer, self._id, metadata)

    @classmethod
    def add_metadata_(cls, writer: WriterProtocol, entity_id: str, metadata: Mapping[str, Any]) -> None:
        cls._commit_(writer, entity_id, "update", {"metadata": sanitize_metadata(metadata)})

    def end(self) -> None:
        """Stamp the end time and emit an ``end`` commit.

        Calling this again emits another ``end`` commit; the backend keeps
        the latest one.
        """
        self._end_timestamp = max(utc_now(), self._start_timestamp)
        type(self).end_(self._writer, self._id, {"endTimestamp": self._end_timestamp})

    @classmethod
    def end_(cls, writer: WriterProtocol, entity_id: str, data: Mapping[str, Any] | None = None) -> None:
        payload = dict(data) if data else {}
        if not payload.get("endTimestamp"):
            payload["endTimestamp"] = utc_now()
        cls._commit_(writer, entity_id, "end", payload)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self._id!r}, name={self._name!r})"


class EvaluatorBinding:
    """Returned by :meth:`EvaluateContainer.with_evaluators` for chaining."""

    def __init__(self, container: EvaluateContainer, evaluators: list[str]) -> None:
        self._container = container
        self.evaluators = evaluators

    def with_variables(self, variables: Mapping[str, str]) -> None:
        """Bind ``variables`` to the evaluators selected in the previous call."""
        self._container.with_variables(variables, self.evaluators)


class EvaluateContainer:
    """Evaluation handle bound to one entity.

    Example::

        generation.evaluate.with_evaluators("bias", "clarity").with_variables(
            {"output": completion_text, "input": user_input}
        )
    """

    def __init__(self, writer: WriterProtocol, entity: Entity, entity_id: str) -> None:
        self._writer = writer
        self._entity = entity
        self._id = entity_id

    def with_variables(self, variables: Mapping[str, str], for_evaluators: list[str] | tuple[str, ...]) -> None:
        """Provide variables for already attached evaluators.

        Emits nothing when ``for_evaluators`` is empty.
        """
        if not for_evaluators:
            return
        self._writer.commit(
            CommitLog(
                self._entity,
                self._id,
                "evaluate",
                {
                    "with": "variables",
                    "variables": dict(variables),
                    "evaluators": list(dict.fromkeys(for_evaluators)),
                    "timestamp": utc_now(),
                },
            )
        )

    def with_evaluators(self, *evaluators: str) -> EvaluatorBinding:
        """Attach evaluators by name (duplicates removed, order kept)."""
        unique_evaluators = list(dict.fromkeys(evaluators))
        if unique_evaluators:
            self._writer.commit(
                CommitLog(
                    self._entity,
                    self._id,
                    "evaluate",
                    {
                        "with": "evaluators",
                        "evaluators": unique_evaluators,
                        "timestamp": utc_now(),
                    },
                )
            )
        return EvaluatorBinding(self, unique_evaluators)


class EvaluatableMixin:
    """Adds the ``evaluate`` accessor."""

    if TYPE_CHECKING:
        entity: ClassVar[Entity]
        _writer: WriterProtocol
        _id: str

    @property
    def evaluate(self) -> EvaluateContainer:
        return EvaluateContainer(self._writer, self.entity, self._id)

    @classmethod
    def evaluate_(cls, writer: WriterProtocol, entity_id: str) -> EvaluateContainer:
        return EvaluateContainer(writer, cls.entity, entity_id)


class EventEmittingMixin:
    """Adds named point-in-time events."""

    if TYPE_CHECKING:
        _writer: WriterProtocol
        _id: str

        @classmethod
        def _commit_(
            cls, writer: WriterProtocol, entity_id: str, action: str, data: dict[str, Any] | None = None
        ) -> None: ...

    def event(
        self,
        event_id: str,
        name: str,
        tags: Mapping[str, str] | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        """Record an ``add-event`` commit stamped with the current time."""
        type(self).event_(self._writer, self._id, event_id, name, tags, metadata)

    @classmethod
    def event_(
        cls,
        writer: WriterProtocol,
        entity_id: str,
        event_id: str,
        name: str,
        tags: Mapping[str, str] | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        payload: dict[str, Any] = {
            "id": event_id,
            "name": name,
            "timestamp": utc_now(),
            "tags": dict(tags) if tags is not None else None,
        }
        if metadata:
            payload["metadata"] = sanitize_metadata(metadata)
        cls._commit_(writer, entity_id, "add-event", payload)


class MetricsMixin:
    """Adds numeric named metrics; each call is its own ``update`` commit."""

    if TYPE_CHECKING:
        _writer: WriterProtocol
        _id: str

        @classmethod
        def _commit_(
            cls, writer: WriterProtocol, entity_id: str, action: str, data: dict[str, Any] | None = None
        ) -> None: ...

    def add_metric(self, name: str, value: float) -> None:
        type(self).add_metric_(self._writer, self._id, name, value)

    @classmethod
    def add_metric_(cls, writer: WriterProtocol, entity_id: str, name: str, value: float) -> None:
        cls._commit_(writer, entity_id, "update", {"metrics": {name: value}})


class AttachmentMixin:
    """Adds ``add_attachment``; the writer uploads the payload on flush."""

    if TYPE_CHECKING:
        _writer: WriterProtocol
        _id: str

        @classmethod
        def _commit_(
            cls, writer: WriterProtocol, entity_id: str, action: str, data: dict[str, Any] | None = None
        ) -> None: ...

    def add_attachment(self, attachment: AttachmentInput) -> AnyAttachment | None:
        return type(self).add_attachment_(self._writer, self._id, attachment)

    @classmethod
    def add_attachment_(
        cls, writer: WriterProtocol, entity_id: str, attachment: AttachmentInput
    ) -> AnyAttachment | None:
        """Queue ``attachment`` for upload.

        Returns ``None`` when a mapping does not describe a valid attachment,
        unless the writer is strict.

        Raises:
            pydantic.ValidationError: If the attachment is invalid and the writer is strict.
        """
        try:
            resolved = coerce_attachment(attachment)
        except (ValidationError, TypeError) as e:
            if writer.raise_exceptions:
                raise
            log.error("attachment_invalid", entity_id=entity_id, error=str(e))
            return None
        cls._commit_(writer, entity_id, "upload-attachment", resolved.to_payload())
        return resolved
