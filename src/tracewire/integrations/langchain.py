"""LangChain callback handler that records runs as tracewire entities.

Run mapping:

- root chain -> trace, nested chain -> span
- chat model / LLM run -> generation
- tool run -> tool call
- retriever run -> retrieval

Runs without a parent chain get an implicit trace that ends with the run.
"""

# ruff: noqa: ARG002 - Callback interface methods require unused parameters

from __future__ import annotations

import re
import time
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from langchain_core.callbacks import BaseCallbackHandler
from langchain_core.messages import ToolMessage

from tracewire.components import (
    Generation,
    GenerationError,
    Retrieval,
    Span,
    ToolCall,
    ToolCallError,
    Trace,
)
from tracewire.diagnostics import get_logger
from tracewire.utils import safe_json_dumps, unique_id

if TYPE_CHECKING:
    from uuid import UUID

    from langchain_core.documents import Document
    from langchain_core.messages import BaseMessage
    from langchain_core.outputs import LLMResult

    from tracewire.logger import LoggingFacade

log = get_logger(__name__)

_ROLE_BY_MESSAGE_TYPE = {
    "human": "user",
    "ai": "assistant",
    "system": "system",
    "tool": "tool",
    "function": "function",
}

_PROVIDER_MARKERS: tuple[tuple[str, str], ...] = (
    ("azure", "azure"),
    ("bedrock", "bedrock"),
    ("huggingface", "huggingface"),
    ("together", "together"),
    ("openai", "openai"),
    ("anthropic", "anthropic"),
    ("google", "google"),
    ("groq", "groq"),
    ("ollama", "ollama"),
)

_NON_PARAMETER_KEYS = frozenset({"model", "model_name", "_type", "stream", "streaming"})


def _parse_temperature_from_repr(repr_str: str) -> float | None:
    """Extract temperature from a model's repr string.

    Some models (e.g. ChatOllama) serialize with empty kwargs but include
    parameters in the repr: ``ChatOllama(model='qwen3:4b', temperature=0.7)``.
    """
    match = re.search(r"temperature=([\d.]+)", repr_str)
    if match:
        try:
            return float(match.group(1))
        except ValueError:
            pass
    return None


def _extract_message_tokens(gen_msg: object) -> tuple[int, int, int]:
    """Extract total, input, and output tokens from a message's usage_metadata.

    Handles both dict and object-style usage_metadata.
    """
    msg_usage = getattr(gen_msg, "usage_metadata", None)
    if not msg_usage:
        return 0, 0, 0

    if isinstance(msg_usage, dict):
        total = msg_usage.get("total_tokens")
        inp = msg_usage.get("input_tokens")
        out = msg_usage.get("output_tokens")
    else:
        total = getattr(msg_usage, "total_tokens", None)
        inp = getattr(msg_usage, "input_tokens", None)
        out = getattr(msg_usage, "output_tokens", None)

    return int(total or 0), int(inp or 0), int(out or 0)


def determine_provider(ids: Sequence[str] | None, metadata: Mapping[str, Any] | None = None) -> str:
    """Guess the provider from the serialized class path, then ``ls_provider``."""
    haystacks = [" ".join(ids or ()).lower()]
    if metadata and isinstance(metadata.get("ls_provider"), str):
        haystacks.append(metadata["ls_provider"].lower())
    for haystack in haystacks:
        for marker, provider in _PROVIDER_MARKERS:
            if marker in haystack:
                return provider
    return "openai"


def convert_message(message: BaseMessage) -> dict[str, Any]:
    """LangChain message -> ``{"role", "content"}`` chat message."""
    role = _ROLE_BY_MESSAGE_TYPE.get(message.type) or getattr(message, "role", None) or message.type
    converted: dict[str, Any] = {"role": role, "content": message.content}
    tool_calls = getattr(message, "tool_calls", None)
    if tool_calls:
        converted["tool_calls"] = [
            {
                "id": tc.get("id", ""),
                "type": "function",
                "function": {"name": tc.get("name", ""), "arguments": safe_json_dumps(tc.get("args", {}))},
            }
            for tc in tool_calls
        ]
    tool_call_id = getattr(message, "tool_call_id", None)
    if tool_call_id:
        converted["tool_call_id"] = tool_call_id
    return converted


def _token_usage(response: LLMResult) -> dict[str, int]:
    # Providers store tokens in different places:
    # - OpenAI: response.llm_output["token_usage"]
    # - Ollama/newer: gen.message.usage_metadata (dict or UsageMetadata)
    # - Some: response.llm_output["usage_metadata"]
    total_tokens = input_tokens = output_tokens = 0
    llm_output = response.llm_output or {}
    if "token_usage" in llm_output:
        usage = llm_output["token_usage"] or {}
        total_tokens = usage.get("total_tokens") or 0
        input_tokens = usage.get("prompt_tokens") or usage.get("input_tokens") or 0
        output_tokens = usage.get("completion_tokens") or usage.get("output_tokens") or 0
    elif "usage_metadata" in llm_output:
        usage = llm_output["usage_metadata"] or {}
        total_tokens = usage.get("total_tokens") or 0
        input_tokens = usage.get("input_tokens") or 0
        output_tokens = usage.get("output_tokens") or 0

    if total_tokens == 0 and response.generations and response.generations[0]:
        gen_msg = getattr(response.generations[0][0], "message", None)
        if gen_msg is not None:
            total_tokens, input_tokens, output_tokens = _extract_message_tokens(gen_msg)

    if total_tokens == 0:
        total_tokens = input_tokens + output_tokens
    return {
        "prompt_tokens": int(input_tokens),
        "completion_tokens": int(output_tokens),
        "total_tokens": int(total_tokens),
    }


def convert_llm_result(response: LLMResult, model: str | None) -> dict[str, Any]:
    """LangChain ``LLMResult`` -> chat-completion shaped result payload."""
    choices: list[dict[str, Any]] = []
    for index, gen in enumerate(response.generations[0] if response.generations else []):
        message = getattr(gen, "message", None)
        if message is not None:
            choice_message = convert_message(message)
            choice_message["role"] = "assistant"
            resp_meta = getattr(message, "response_metadata", None)
            if isinstance(resp_meta, dict) and isinstance(resp_meta.get("model_name") or resp_meta.get("model"), str):
                model = resp_meta.get("model_name") or resp_meta.get("model")
        else:
            choice_message = {"role": "assistant", "content": gen.text}
        info = gen.generation_info or {}
        choices.append(
            {
                "index": index,
                "message": choice_message,
                "logprobs": info.get("logprobs"),
                "finish_reason": info.get("finish_reason") or info.get("done_reason") or "stop",
            }
        )
    return {
        "id": unique_id(),
        "object": "chat.completion",
        "created": int(time.time()),
        "model": model or "unknown",
        "choices": choices,
        "usage": _token_usage(response),
    }


def _model_details(
    serialized: Mapping[str, Any] | None, invocation_params: Mapping[str, Any] | None
) -> tuple[str, dict[str, Any]]:
    serialized = serialized or {}
    params = dict(invocation_params or {})
    model_kwargs = serialized.get("kwargs") or {}
    model_name = (
        params.get("model")
        or params.get("model_name")
        or model_kwargs.get("model")
        or model_kwargs.get("model_name")
        or (serialized.get("id") or ["unknown"])[-1]
    )
    model_parameters = {k: v for k, v in params.items() if k not in _NON_PARAMETER_KEYS}
    if "temperature" not in model_parameters:
        temperature = model_kwargs.get("temperature")
        if temperature is None:
            temperature = _parse_temperature_from_repr(serialized.get("repr", ""))
        if temperature is not None:
            model_parameters["temperature"] = temperature
    return str(model_name), model_parameters


class TracewireLangchainTracer(BaseCallbackHandler):
    """Callback handler that records LangChain runs through a tracewire logger.

    Example::

        tracer = TracewireLangchainTracer(logger)
        chain.invoke({"question": "..."}, config={"callbacks": [tracer]})
    """

    def __init__(self, logger: LoggingFacade) -> None:
        super().__init__()
        self._logger = logger
        self._containers: dict[UUID, Trace | Span] = {}
        self._generations: dict[UUID, Generation] = {}
        self._tool_calls: dict[UUID, ToolCall] = {}
        self._retrievals: dict[UUID, Retrieval] = {}
        self._implicit_traces: dict[UUID, Trace] = {}

    # -- container resolution ---------------------------------------------------

    def _parent(self, run_id: UUID, parent_run_id: UUID | None, name: str) -> Trace | Span:
        if parent_run_id is not None and parent_run_id in self._containers:
            return self._containers[parent_run_id]
        if parent_run_id is not None:
            log.debug("langchain_parent_not_found", run_id=str(run_id), parent_run_id=str(parent_run_id))
        trace = self._logger.trace({"id": unique_id(), "name": name})
        self._implicit_traces[run_id] = trace
        return trace

    def _end_implicit_trace(self, run_id: UUID) -> None:
        trace = self._implicit_traces.pop(run_id, None)
        if trace is not None:
            trace.end()

    # -- chains -----------------------------------------------------------------

    def on_chain_start(
        self,
        serialized: dict[str, Any],
        inputs: dict[str, Any],
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        name = kwargs.get("name") or (serialized or {}).get("name") or "chain"
        run_tags = {"run_id": str(run_id)}
        for tag in tags or []:
            run_tags[tag] = "true"

        container: Trace | Span
        if parent_run_id is None or parent_run_id not in self._containers:
            container = self._logger.trace({"id": str(run_id), "name": name, "tags": run_tags})
            container.input(inputs if isinstance(inputs, str) else safe_json_dumps(inputs))
        else:
            run_tags["parent_run_id"] = str(parent_run_id)
            container = self._containers[parent_run_id].span({"id": str(run_id), "name": name, "tags": run_tags})
            container.add_metadata({"inputs": inputs})
        if metadata:
            container.add_metadata(metadata)
        self._containers[run_id] = container
        log.debug("chain_start", run_id=str(run_id), kind=type(container).__name__.lower())

    def on_chain_end(
        self,
        outputs: dict[str, Any],
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        container = self._containers.pop(run_id, None)
        if container is None:
            return
        if isinstance(container, Trace):
            container.output(outputs if isinstance(outputs, str) else safe_json_dumps(outputs))
        else:
            container.add_metadata({"outputs": outputs})
        container.end()

    def on_chain_error(
        self,
        error: BaseException,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        container = self._containers.pop(run_id, None)
        if container is None:
            return
        container.error(error)
        container.end()

    # -- models -----------------------------------------------------------------

    def _start_generation(
        self,
        serialized: dict[str, Any],
        messages: list[dict[str, Any]],
        run_id: UUID,
        parent_run_id: UUID | None,
        metadata: dict[str, Any] | None,
        kwargs: Mapping[str, Any],
    ) -> None:
        model, model_parameters = _model_details(serialized, kwargs.get("invocation_params"))
        provider = determine_provider((serialized or {}).get("id"), metadata)
        parent = self._parent(run_id, parent_run_id, kwargs.get("name") or model)
        generation = parent.generation(
            {
                "id": str(run_id),
                "name": kwargs.get("name"),
                "provider": provider,
                "model": model,
                "messages": messages,
                "model_parameters": model_parameters,
            }
        )
        self._generations[run_id] = generation
        log.debug("llm_call_start", run_id=str(run_id), model=model, message_count=len(messages))

    def on_chat_model_start(
        self,
        serialized: dict[str, Any],
        messages: list[list[BaseMessage]],
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        flat = [convert_message(msg) for batch in messages for msg in batch]
        self._start_generation(serialized, flat, run_id, parent_run_id, metadata, kwargs)

    def on_llm_start(
        self,
        serialized: dict[str, Any],
        prompts: list[str],
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        flat = [{"role": "user", "content": prompt} for prompt in prompts]
        self._start_generation(serialized, flat, run_id, parent_run_id, metadata, kwargs)

    def on_llm_end(
        self,
        response: LLMResult,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        generation = self._generations.pop(run_id, None)
        if generation is None:
            return
        result = convert_llm_result(response, generation.model)
        generation.result(result)
        log.debug("llm_call_end", run_id=str(run_id), tokens=result["usage"]["total_tokens"])
        self._end_implicit_trace(run_id)

    def on_llm_error(
        self,
        error: BaseException,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        generation = self._generations.pop(run_id, None)
        if generation is None:
            return
        generation.error(GenerationError(message=str(error), type=type(error).__name__))
        log.warning("llm_call_error", run_id=str(run_id), error=str(error))
        self._end_implicit_trace(run_id)

    # -- tools ------------------------------------------------------------------

    def on_tool_start(
        self,
        serialized: dict[str, Any],
        input_str: str,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
        inputs: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        serialized = serialized or {}
        name = serialized.get("name") or kwargs.get("name") or "tool"
        parent = self._parent(run_id, parent_run_id, name)
        self._tool_calls[run_id] = parent.tool_call(
            {
                "id": str(run_id),
                "name": name,
                "description": serialized.get("description") or "",
                "args": input_str if inputs is None else safe_json_dumps(inputs),
            }
        )
        log.debug("tool_start", tool=name, run_id=str(run_id))

    def on_tool_end(
        self,
        output: Any,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        tool_call = self._tool_calls.pop(run_id, None)
        if tool_call is None:
            return
        # Output may be a ToolMessage, a str, or anything else the tool returned
        if isinstance(output, ToolMessage):
            content = output.content
            result = content if isinstance(content, str) else safe_json_dumps(content)
        elif isinstance(output, str):
            result = output
        else:
            result = safe_json_dumps(output)
        tool_call.result(result)
        self._end_implicit_trace(run_id)

    def on_tool_error(
        self,
        error: BaseException,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        tool_call = self._tool_calls.pop(run_id, None)
        if tool_call is None:
            return
        tool_call.error(ToolCallError(message=str(error), type=type(error).__name__))
        self._end_implicit_trace(run_id)

    # -- retrievers -------------------------------------------------------------

    def on_retriever_start(
        self,
        serialized: dict[str, Any],
        query: str,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        name = kwargs.get("name") or (serialized or {}).get("name") or "retriever"
        parent = self._parent(run_id, parent_run_id, name)
        retrieval = parent.retrieval({"id": str(run_id), "name": name})
        retrieval.input(query)
        self._retrievals[run_id] = retrieval

    def on_retriever_end(
        self,
        documents: Sequence[Document],
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        retrieval = self._retrievals.pop(run_id, None)
        if retrieval is None:
            return
        retrieval.output([doc.page_content for doc in documents])
        self._end_implicit_trace(run_id)

    def on_retriever_error(
        self,
        error: BaseException,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        retrieval = self._retrievals.pop(run_id, None)
        if retrieval is None:
            return
        retrieval.add_metadata({"error": str(error)})
        retrieval.end()
        self._end_implicit_trace(run_id)
