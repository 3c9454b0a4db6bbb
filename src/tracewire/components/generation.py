"""LLM generation container and chat-message attachment extraction."""

from __future__ import annotations

import base64
import binascii
import copy
import re
from collections.abc import Mapping
from typing import Any

from tracewire.components.attachment import (
    FileDataAttachment,
    UrlAttachment,
)
from tracewire.components.base import (
    AttachmentMixin,
    BaseContainer,
    EvaluatableMixin,
    MetricsMixin,
)
from tracewire.components.configs import GenerationConfig, GenerationError, coerce_config, error_payload
from tracewire.components.types import Entity, WriterProtocol
from tracewire.diagnostics import get_logger
from tracewire.utils import unique_id, utc_now


log = get_logger(__name__)

_DATA_URI_PATTERN = re.compile(r"^data:image/(\w+);base64,(.+)$", re.DOTALL)


def _image_url(part: Mapping[str, Any]) -> str | None:
    image_url = part.get("image_url")
    if isinstance(image_url, Mapping):
        url = image_url.get("url")
        return url if isinstance(url, str) and url else None
    if isinstance(image_url, str) and image_url:
        return image_url
    return None


def parse_attachments_from_messages(
    messages: list[Mapping[str, Any]] | None,
) -> tuple[list[dict[str, Any]], list[FileDataAttachment | UrlAttachment]]:
    """Pull image parts out of chat messages.

    Returns a rewritten deep copy of ``messages`` and the extracted
    attachments. The input is never modified.

    - ``data:image/<ext>;base64,...`` parts become in-memory attachments named
      ``image.<ext>``.
    - Other image URLs become URL attachments.
    - Attachments are tagged ``attachedTo=output`` for assistant messages and
      ``attachedTo=input`` otherwise.
    - A message left with a single text part collapses to a plain string; a
      message left with no parts gets ``""``.
    """
    rewritten: list[dict[str, Any]] = []
    attachments: list[FileDataAttachment | UrlAttachment] = []

    for message in messages or []:
        msg = copy.deepcopy(dict(message))
        content = msg.get("content")
        if not isinstance(content, list):
            rewritten.append(msg)
            continue

        attached_to = "output" if msg.get("role") == "assistant" else "input"
        kept: list[Any] = []
        for part in content:
            if isinstance(part, str):
                kept.append({"type": "text", "text": part})
                continue
            if not isinstance(part, Mapping) or part.get("type") != "image_url":
                kept.append(part)
                continue
            url = _image_url(part)
            if url is None:
                kept.append(part)
                continue

            if url.startswith("data:image"):
                match = _DATA_URI_PATTERN.match(url)
                if match is None:
                    kept.append(part)
                    continue
                ext = match.group(1)
                try:
                    data = base64.b64decode(match.group(2))
                except (binascii.Error, ValueError) as e:
                    log.warning("inline_image_decode_failed", error=str(e))
                    kept.append(part)
                    continue
                attachments.append(
                    FileDataAttachment(
                        data=data,
                        name=f"image.{ext}",
                        mime_type=f"image/{ext}",
                        tags={"attachedTo": attached_to},
                    )
                )
            else:
                attachments.append(
                    UrlAttachment(url=url, mime_type="image/*", tags={"attachedTo": attached_to})
                )

        if not kept:
            msg["content"] = ""
        elif len(kept) == 1 and isinstance(kept[0], Mapping) and kept[0].get("type") == "text":
            msg["content"] = kept[0].get("text", "")
        else:
            msg["content"] = kept
        rewritten.append(msg)

    return rewritten, attachments


class Generation(EvaluatableMixin, MetricsMixin, AttachmentMixin, BaseContainer):
    """One LLM call: model, parameters, messages and the terminal result.

    A generation has no ``create`` commit of its own. Its parent's
    ``add-generation`` commit is the creation record, so build generations
    through :meth:`Trace.generation` or :meth:`Span.generation`.

    Example::

        generation = span.generation(
            {
                "id": "gen-1",
                "provider": "openai",
                "model": "gpt-4o",
                "messages": [{"role": "user", "content": "Hello"}],
                "model_parameters": {"temperature": 0.2},
            }
        )
        generation.result(completion)
    """

    entity = Entity.GENERATION

    def __init__(
        self,
        config: GenerationConfig | Mapping[str, Any] | None,
        writer: WriterProtocol,
        *,
        commit_attachments: bool = True,
    ) -> None:
        cfg = coerce_config(GenerationConfig, config)
        super().__init__(writer, id=cfg.id, name=cfg.name, span_id=cfg.span_id, tags=cfg.tags)
        self._messages, self._pending_attachments = parse_attachments_from_messages(cfg.messages)
        self._provider = cfg.provider
        self._model = cfg.model
        self._model_parameters = dict(cfg.model_parameters or {})
        self._prompt_id = cfg.prompt_id
        if commit_attachments:
            self._commit_extracted_attachments()

    @property
    def model(self) -> str | None:
        return self._model

    @property
    def provider(self) -> str | None:
        return self._provider

    @property
    def messages(self) -> list[dict[str, Any]]:
        """Messages as logged (images already extracted)."""
        return copy.deepcopy(self._messages)

    @property
    def model_parameters(self) -> dict[str, Any]:
        return dict(self._model_parameters)

    def _commit_extracted_attachments(self) -> None:
        pending, self._pending_attachments = self._pending_attachments, []
        for attachment in pending:
            self.add_attachment(attachment)

    def data(self) -> dict[str, Any]:
        return {
            **super().data(),
            "provider": self._provider,
            "model": self._model,
            "promptId": self._prompt_id,
            "modelParameters": dict(self._model_parameters),
        }

    def set_model(self, model: str) -> None:
        self._model = model
        type(self).set_model_(self._writer, self._id, model)

    @classmethod
    def set_model_(cls, writer: WriterProtocol, entity_id: str, model: str) -> None:
        cls._commit_(writer, entity_id, "update", {"model": model})

    def set_name(self, name: str) -> None:
        self._name = name
        type(self).set_name_(self._writer, self._id, name)

    @classmethod
    def set_name_(cls, writer: WriterProtocol, entity_id: str, name: str) -> None:
        cls._commit_(writer, entity_id, "update", {"name": name})

    def add_messages(self, messages: list[Mapping[str, Any]]) -> None:
        """Append messages, extracting any inline images as attachments."""
        rewritten = type(self).add_messages_(self._writer, self._id, messages)
        self._messages.extend(rewritten)

    @classmethod
    def add_messages_(
        cls, writer: WriterProtocol, entity_id: str, messages: list[Mapping[str, Any]]
    ) -> list[dict[str, Any]]:
        rewritten, attachments = parse_attachments_from_messages(messages)
        cls._commit_(writer, entity_id, "update", {"messages": copy.deepcopy(rewritten)})
        for attachment in attachments:
            cls.add_attachment_(writer, entity_id, attachment)
        return rewritten

    def set_model_parameters(self, model_parameters: Mapping[str, Any]) -> None:
        self._model_parameters = dict(model_parameters)
        type(self).set_model_parameters_(self._writer, self._id, model_parameters)

    @classmethod
    def set_model_parameters_(
        cls, writer: WriterProtocol, entity_id: str, model_parameters: Mapping[str, Any]
    ) -> None:
        cls._commit_(writer, entity_id, "update", {"modelParameters": dict(model_parameters)})

    def result(self, result: Mapping[str, Any]) -> None:
        """Record the completion (chat or text shaped) and end the generation."""
        self._end_timestamp = max(utc_now(), self._start_timestamp)
        type(self).result_(self._writer, self._id, result, end_timestamp=self._end_timestamp)

    @classmethod
    def result_(
        cls,
        writer: WriterProtocol,
        entity_id: str,
        result: Mapping[str, Any],
        *,
        end_timestamp: Any = None,
    ) -> None:
        cls._commit_(writer, entity_id, "result", {"result": copy.deepcopy(dict(result))})
        cls.end_(writer, entity_id, {"endTimestamp": end_timestamp or utc_now()})

    def error(self, error: GenerationError | Mapping[str, Any] | BaseException) -> None:
        """Record a failed call as a synthetic result and end the generation."""
        self._end_timestamp = max(utc_now(), self._start_timestamp)
        type(self).error_(self._writer, self._id, error, end_timestamp=self._end_timestamp)

    @classmethod
    def error_(
        cls,
        writer: WriterProtocol,
        entity_id: str,
        error: GenerationError | Mapping[str, Any] | BaseException,
        *,
        end_timestamp: Any = None,
    ) -> None:
        cls._commit_(
            writer,
            entity_id,
            "result",
            {"result": {"error": error_payload(error), "id": unique_id()}},
        )
        cls.end_(writer, entity_id, {"endTimestamp": end_timestamp or utc_now()})
