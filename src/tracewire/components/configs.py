"""Configuration objects accepted by container constructors and factories.

Every factory takes either one of these dataclasses or a plain mapping.
Mapping keys may be snake_case (``model_parameters``) or the camelCase used
on the wire (``modelParameters``).
"""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

from tracewire.diagnostics import get_logger

log = get_logger(__name__)

C = TypeVar("C")

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def coerce_config(config_cls: type[C], config: C | Mapping[str, Any] | None) -> C:
    """Return a fresh ``config_cls`` instance built from ``config``.

    Dataclass inputs are shallow-copied so the caller's object is never
    mutated by the container. Unknown mapping keys are logged and dropped.

    Raises:
        TypeError: If ``config`` is neither a ``config_cls`` nor a mapping.
    """
    if config is None:
        return config_cls()
    if isinstance(config, config_cls):
        return dataclasses.replace(config)  # type: ignore[type-var]
    if not isinstance(config, Mapping):
        raise TypeError(
            f"{config_cls.__name__} expected, got {type(config).__name__}"
        )

    known = {f.name for f in dataclasses.fields(config_cls)}  # type: ignore[arg-type]
    kwargs: dict[str, Any] = {}
    unknown: list[str] = []
    for key, value in config.items():
        name = _snake_case(str(key))
        if name in known:
            kwargs[name] = value
        else:
            unknown.append(str(key))
    if unknown:
        log.warning("unknown_config_keys", config=config_cls.__name__, keys=unknown)
    return config_cls(**kwargs)


@dataclass
class SessionConfig:
    """Configuration for a session (a group of related traces)."""

    id: str | None = None
    name: str | None = None
    tags: dict[str, str] | None = None


@dataclass
class TraceConfig:
    """Configuration for a trace (one request/response interaction)."""

    id: str | None = None
    name: str | None = None
    session_id: str | None = None
    span_id: str | None = None
    tags: dict[str, str] | None = None


@dataclass
class SpanConfig:
    """Configuration for a span (a named step inside a trace)."""

    id: str | None = None
    name: str | None = None
    span_id: str | None = None
    tags: dict[str, str] | None = None


@dataclass
class GenerationConfig:
    """Configuration for an LLM generation.

    Attributes:
        provider: Model provider, e.g. ``"openai"`` or ``"anthropic"``.
        model: Model identifier.
        messages: Chat messages (``{"role", "content"}`` mappings). Content may
            be a string or a list of multimodal parts.
        model_parameters: Sampling parameters (temperature, max_tokens, ...).
        prompt_id: Id of a managed prompt this generation was rendered from.
    """

    id: str | None = None
    name: str | None = None
    provider: str | None = None
    model: str | None = None
    messages: list[dict[str, Any]] = field(default_factory=list)
    model_parameters: dict[str, Any] = field(default_factory=dict)
    prompt_id: str | None = None
    span_id: str | None = None
    tags: dict[str, str] | None = None


@dataclass
class RetrievalConfig:
    """Configuration for a retrieval (RAG lookup)."""

    id: str | None = None
    name: str | None = None
    span_id: str | None = None
    tags: dict[str, str] | None = None


@dataclass
class ToolCallConfig:
    """Configuration for a tool call. ``args`` is the raw argument string."""

    id: str | None = None
    name: str | None = None
    description: str = ""
    args: str = ""
    tags: dict[str, str] | None = None


@dataclass
class ErrorConfig:
    """Configuration for an error record."""

    id: str | None = None
    message: str = ""
    code: str | None = None
    name: str | None = None
    type: str | None = None
    tags: dict[str, str] | None = None
    metadata: dict[str, Any] | None = None


@dataclass
class GenerationError:
    """Failure reported for an LLM call."""

    message: str
    code: str | None = None
    type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Payload form, omitting unset fields."""
        return {k: v for k, v in dataclasses.asdict(self).items() if v is not None}


@dataclass
class ToolCallError:
    """Failure reported for a tool invocation."""

    message: str
    code: str | None = None
    type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Payload form, omitting unset fields."""
        return {k: v for k, v in dataclasses.asdict(self).items() if v is not None}


def error_payload(error: GenerationError | ToolCallError | Mapping[str, Any] | BaseException) -> dict[str, Any]:
    """Normalize the accepted error shapes to a ``{message, code?, type?}`` dict."""
    if isinstance(error, (GenerationError, ToolCallError)):
        return error.to_dict()
    if isinstance(error, BaseException):
        return {"message": str(error), "type": type(error).__name__}
    return {k: v for k, v in dict(error).items() if v is not None}
