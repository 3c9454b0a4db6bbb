"""Tests for the LangChain callback tracer."""

from __future__ import annotations

from uuid import uuid4

import pytest
from langchain_core.documents import Document
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_core.outputs import ChatGeneration, Generation, LLMResult

from tracewire.integrations.langchain import (
    TracewireLangchainTracer,
    _extract_message_tokens,
    _parse_temperature_from_repr,
    convert_llm_result,
    convert_message,
    determine_provider,
)
from tracewire.log_line import LogLine

OPENAI_SERIALIZED = {"id": ["langchain", "chat_models", "openai", "ChatOpenAI"], "kwargs": {"model_name": "gpt-4o"}}


@pytest.fixture
def line() -> LogLine:
    return LogLine()


@pytest.fixture
def tracer(line: LogLine) -> TracewireLangchainTracer:
    return TracewireLangchainTracer(line)


def kinds(line: LogLine) -> list[tuple[str, str]]:
    return [(e.entity.value, e.action) for e in line.logs]


# --- Helpers ---


def test_parse_temperature_from_repr() -> None:
    assert _parse_temperature_from_repr("ChatOllama(model='qwen3:4b', temperature=0.7)") == 0.7
    assert _parse_temperature_from_repr("ChatOllama(model='qwen3:4b')") is None


def test_extract_message_tokens_dict_and_object() -> None:
    """usage_metadata may be a dict or an object."""

    class Usage:
        total_tokens = 9
        input_tokens = 4
        output_tokens = 5

    class WithDict:
        usage_metadata = {"total_tokens": 3, "input_tokens": 1, "output_tokens": 2}

    class WithObject:
        usage_metadata = Usage()

    assert _extract_message_tokens(WithDict()) == (3, 1, 2)
    assert _extract_message_tokens(WithObject()) == (9, 4, 5)
    assert _extract_message_tokens(object()) == (0, 0, 0)


@pytest.mark.parametrize(
    ("ids", "metadata", "expected"),
    [
        (["langchain", "chat_models", "openai", "ChatOpenAI"], None, "openai"),
        (["langchain_anthropic", "ChatAnthropic"], None, "anthropic"),
        (["langchain", "chat_models", "azure_openai", "AzureChatOpenAI"], None, "azure"),
        (["custom", "MyModel"], {"ls_provider": "ollama"}, "ollama"),
        (["custom", "MyModel"], None, "openai"),
    ],
)
def test_determine_provider(ids: list[str], metadata: dict[str, str] | None, expected: str) -> None:
    """Provider comes from the class path, then ls_provider, else openai."""
    assert determine_provider(ids, metadata) == expected


def test_convert_message_roles() -> None:
    """LangChain message types map to chat roles."""
    assert convert_message(HumanMessage(content="hi")) == {"role": "user", "content": "hi"}
    assert convert_message(SystemMessage(content="sys")) == {"role": "system", "content": "sys"}
    tool = convert_message(ToolMessage(content="42", tool_call_id="call-1"))
    assert tool == {"role": "tool", "content": "42", "tool_call_id": "call-1"}


def test_convert_message_tool_calls() -> None:
    """Assistant tool calls become function-call entries."""
    message = AIMessage(content="", tool_calls=[{"id": "call-1", "name": "search", "args": {"q": "x"}}])

    converted = convert_message(message)

    assert converted["role"] == "assistant"
    assert converted["tool_calls"] == [
        {"id": "call-1", "type": "function", "function": {"name": "search", "arguments": '{"q": "x"}'}}
    ]


def test_convert_llm_result_chat() -> None:
    """Chat results become a chat.completion payload with token usage."""
    message = AIMessage(content="Paris", response_metadata={"model_name": "gpt-4o-2024"})
    response = LLMResult(
        generations=[[ChatGeneration(message=message, generation_info={"finish_reason": "stop"})]],
        llm_output={"token_usage": {"prompt_tokens": 7, "completion_tokens": 1, "total_tokens": 8}},
    )

    result = convert_llm_result(response, "gpt-4o")

    assert result["object"] == "chat.completion"
    assert result["model"] == "gpt-4o-2024"
    assert result["choices"][0]["message"] == {"role": "assistant", "content": "Paris"}
    assert result["choices"][0]["finish_reason"] == "stop"
    assert result["usage"] == {"prompt_tokens": 7, "completion_tokens": 1, "total_tokens": 8}


def test_convert_llm_result_text_with_message_usage() -> None:
    """Token usage falls back to the message's usage_metadata."""
    message = AIMessage(
        content="ok", usage_metadata={"input_tokens": 3, "output_tokens": 2, "total_tokens": 5}
    )
    response = LLMResult(generations=[[ChatGeneration(message=message)]])

    result = convert_llm_result(response, None)

    assert result["usage"] == {"prompt_tokens": 3, "completion_tokens": 2, "total_tokens": 5}
    assert result["model"] == "unknown"


def test_convert_llm_result_plain_generation() -> None:
    """Completion-style generations use their text."""
    response = LLMResult(generations=[[Generation(text="done")]])

    result = convert_llm_result(response, "davinci")

    assert result["choices"][0]["message"] == {"role": "assistant", "content": "done"}
    assert result["usage"]["total_tokens"] == 0


# --- Run mapping ---


def test_root_chain_becomes_trace(line: LogLine, tracer: TracewireLangchainTracer) -> None:
    """A chain without a parent is a trace with input and output."""
    run_id = uuid4()

    tracer.on_chain_start({"name": "qa"}, {"question": "?"}, run_id=run_id, tags=["prod"])
    tracer.on_chain_end({"answer": "!"}, run_id=run_id)

    assert kinds(line) == [("trace", "create"), ("trace", "update"), ("trace", "update"), ("trace", "end")]
    create = line.logs[0]
    assert create.entity_id == str(run_id)
    assert create.data["name"] == "qa"
    assert create.data["tags"] == {"run_id": str(run_id), "prod": "true"}
    assert line.logs[1].data == {"input": '{"question": "?"}'}
    assert line.logs[2].data == {"output": '{"answer": "!"}'}


def test_nested_chain_becomes_span(line: LogLine, tracer: TracewireLangchainTracer) -> None:
    """A chain under another chain is a span of the parent."""
    root, child = uuid4(), uuid4()

    tracer.on_chain_start({"name": "root"}, {}, run_id=root)
    tracer.on_chain_start({"name": "step"}, {"x": 1}, run_id=child, parent_run_id=root)
    tracer.on_chain_end({"y": 2}, run_id=child, parent_run_id=root)

    span_create = next(e for e in line.logs if e.entity.value == "span" and e.action == "create")
    assert span_create.entity_id == str(child)
    add_span = next(e for e in line.logs if e.action == "add-span")
    assert add_span.entity_id == str(root)
    assert kinds(line)[-1] == ("span", "end")


def test_chat_model_run_becomes_generation(line: LogLine, tracer: TracewireLangchainTracer) -> None:
    """Chat model runs log a generation with converted messages and the result."""
    root, llm = uuid4(), uuid4()
    tracer.on_chain_start({"name": "root"}, {}, run_id=root)

    tracer.on_chat_model_start(
        OPENAI_SERIALIZED,
        [[SystemMessage(content="be brief"), HumanMessage(content="capital of France?")]],
        run_id=llm,
        parent_run_id=root,
        invocation_params={"model": "gpt-4o", "temperature": 0.1, "stream": False},
    )
    tracer.on_llm_end(
        LLMResult(
            generations=[[ChatGeneration(message=AIMessage(content="Paris"))]],
            llm_output={"token_usage": {"prompt_tokens": 10, "completion_tokens": 1, "total_tokens": 11}},
        ),
        run_id=llm,
        parent_run_id=root,
    )

    add_generation = next(e for e in line.logs if e.action == "add-generation")
    assert add_generation.entity_id == str(root)
    assert add_generation.data["id"] == str(llm)
    assert add_generation.data["provider"] == "openai"
    assert add_generation.data["model"] == "gpt-4o"
    assert add_generation.data["modelParameters"] == {"temperature": 0.1}
    assert add_generation.data["messages"] == [
        {"role": "system", "content": "be brief"},
        {"role": "user", "content": "capital of France?"},
    ]
    result = next(e for e in line.logs if e.entity.value == "generation" and e.action == "result")
    assert result.data["result"]["usage"]["total_tokens"] == 11
    assert kinds(line)[-1] == ("generation", "end")


def test_llm_error_recorded(line: LogLine, tracer: TracewireLangchainTracer) -> None:
    """An LLM failure becomes a generation error result."""
    root, llm = uuid4(), uuid4()
    tracer.on_chain_start({"name": "root"}, {}, run_id=root)
    tracer.on_llm_start(OPENAI_SERIALIZED, ["hello"], run_id=llm, parent_run_id=root)

    tracer.on_llm_error(TimeoutError("deadline"), run_id=llm, parent_run_id=root)

    result = next(e for e in line.logs if e.entity.value == "generation" and e.action == "result")
    assert result.data["result"]["error"] == {"message": "deadline", "type": "TimeoutError"}


def test_orphan_llm_run_gets_implicit_trace(line: LogLine, tracer: TracewireLangchainTracer) -> None:
    """A model called outside any chain is wrapped in its own trace."""
    llm = uuid4()

    tracer.on_llm_start({"id": ["x", "ChatOllama"], "repr": "ChatOllama(temperature=0.3)"}, ["hi"], run_id=llm)
    tracer.on_llm_end(LLMResult(generations=[[Generation(text="hey")]]), run_id=llm)

    entities = kinds(line)
    assert entities[0] == ("trace", "create")
    assert entities[-1] == ("trace", "end")
    add_generation = next(e for e in line.logs if e.action == "add-generation")
    assert add_generation.data["provider"] == "ollama"
    assert add_generation.data["modelParameters"] == {"temperature": 0.3}


def test_tool_run(line: LogLine, tracer: TracewireLangchainTracer) -> None:
    """Tool runs become tool calls with args and result."""
    root, tool = uuid4(), uuid4()
    tracer.on_chain_start({"name": "agent"}, {}, run_id=root)

    tracer.on_tool_start(
        {"name": "search", "description": "web search"},
        "weather",
        run_id=tool,
        parent_run_id=root,
        inputs={"query": "weather"},
    )
    tracer.on_tool_end(ToolMessage(content="sunny", tool_call_id="call-1"), run_id=tool, parent_run_id=root)

    add_tool_call = next(e for e in line.logs if e.action == "add-tool-call")
    assert add_tool_call.data["name"] == "search"
    assert add_tool_call.data["description"] == "web search"
    assert add_tool_call.data["args"] == '{"query": "weather"}'
    result = next(e for e in line.logs if e.entity.value == "tool_call" and e.action == "result")
    assert result.data == {"result": "sunny"}


def test_tool_error(line: LogLine, tracer: TracewireLangchainTracer) -> None:
    """Tool failures record an error and end the call, no result."""
    root, tool = uuid4(), uuid4()
    tracer.on_chain_start({"name": "agent"}, {}, run_id=root)
    tracer.on_tool_start({"name": "search"}, "q", run_id=tool, parent_run_id=root)

    tracer.on_tool_error(RuntimeError("503"), run_id=tool, parent_run_id=root)

    tool_actions = [a for e, a in kinds(line) if e == "tool_call"]
    assert tool_actions == ["error", "end"]


def test_retriever_run(line: LogLine, tracer: TracewireLangchainTracer) -> None:
    """Retriever runs record the query and document contents."""
    root, retriever = uuid4(), uuid4()
    tracer.on_chain_start({"name": "rag"}, {}, run_id=root)

    tracer.on_retriever_start({"name": "kb"}, "what is rag", run_id=retriever, parent_run_id=root)
    tracer.on_retriever_end(
        [Document(page_content="doc one"), Document(page_content="doc two")], run_id=retriever, parent_run_id=root
    )

    retrieval = [e for e in line.logs if e.entity.value == "retrieval"]
    assert [e.action for e in retrieval] == ["update", "end"]
    assert retrieval[0].data == {"input": "what is rag"}
    assert retrieval[1].data["docs"] == ["doc one", "doc two"]


def test_chain_error(line: LogLine, tracer: TracewireLangchainTracer) -> None:
    """A failing chain logs an error child and ends."""
    run_id = uuid4()
    tracer.on_chain_start({"name": "qa"}, {}, run_id=run_id)

    tracer.on_chain_error(ValueError("bad input"), run_id=run_id)

    add_error = next(e for e in line.logs if e.action == "add-error")
    assert add_error.data["message"] == "bad input"
    assert add_error.data["errorType"] == "ValueError"
    assert kinds(line)[-1] == ("trace", "end")


def test_unknown_run_ids_ignored(line: LogLine, tracer: TracewireLangchainTracer) -> None:
    """End callbacks for runs that were never started are no-ops."""
    tracer.on_chain_end({}, run_id=uuid4())
    tracer.on_llm_end(LLMResult(generations=[]), run_id=uuid4())
    tracer.on_tool_end("x", run_id=uuid4())
    tracer.on_retriever_end([], run_id=uuid4())

    assert line.logs == []
