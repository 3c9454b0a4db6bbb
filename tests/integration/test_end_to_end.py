"""End-to-end tests from the logging facade to the (mocked) log backend.

Each test builds real writers wired to an in-process ``httpx.MockTransport``
and checks what the backend finally receives: entries, their order,
uploaded attachment bytes and recovery of spooled batches.
"""

from __future__ import annotations

from collections.abc import Callable
from uuid import uuid4

import pytest
from langchain_core.messages import AIMessage, HumanMessage
from langchain_core.outputs import ChatGeneration, LLMResult

from tests.fixtures.backend import MockBackend
from tracewire.components import FileDataAttachment
from tracewire.integrations.langchain import TracewireLangchainTracer
from tracewire.log_line import LogLine
from tracewire.logger import Logger
from tracewire.writer import LogWriter

pytestmark = pytest.mark.integration

MakeWriter = Callable[..., LogWriter]


def delivered_actions(backend: MockBackend) -> list[tuple[str, str, str]]:
    return [(e.entity.value, e.entity_id, e.action) for e in backend.delivered()]


@pytest.mark.asyncio
async def test_trace_flow_reaches_backend(make_log_writer: MakeWriter, backend: MockBackend) -> None:
    """A trace with a span, a generation and an attachment is delivered in commit order."""
    logger = Logger("repo-1", make_log_writer())

    trace = logger.trace({"id": "req-1", "name": "chat"})
    trace.input("What is the capital of France?")
    span = trace.span({"id": "sp-1", "name": "answer"})
    generation = span.generation(
        {
            "id": "gen-1",
            "provider": "openai",
            "model": "gpt-4o",
            "messages": [{"role": "user", "content": "What is the capital of France?"}],
            "modelParameters": {"temperature": 0},
        }
    )
    generation.result(
        {
            "id": "cmpl-1",
            "choices": [{"index": 0, "message": {"role": "assistant", "content": "Paris"}, "finish_reason": "stop"}],
            "usage": {"prompt_tokens": 12, "completion_tokens": 1, "total_tokens": 13},
        }
    )
    trace.add_attachment(FileDataAttachment(data=b"transcript", name="transcript.txt"))
    span.end()
    trace.output("Paris")
    trace.end()

    await logger.flush()

    actions = delivered_actions(backend)
    assert [a for a in actions if a[2] != "add-attachment"] == [
        ("trace", "req-1", "create"),
        ("trace", "req-1", "update"),
        ("span", "sp-1", "create"),
        ("trace", "req-1", "add-span"),
        ("span", "sp-1", "add-generation"),
        ("generation", "gen-1", "result"),
        ("generation", "gen-1", "end"),
        ("span", "sp-1", "end"),
        ("trace", "req-1", "update"),
        ("trace", "req-1", "end"),
    ]
    assert ("trace", "req-1", "add-attachment") in actions
    assert backend.uploads()[0].content == b"transcript"
    assert logger.writer.queue_size == 0
    await logger.cleanup()


@pytest.mark.asyncio
async def test_by_id_calls_match_instance_calls(make_log_writer: MakeWriter, backend: MockBackend) -> None:
    """The facade's by-id methods deliver the same entries as the container methods."""
    logger = Logger("repo-1", make_log_writer())

    logger.trace({"id": "t-1"})
    logger.trace_generation("t-1", {"id": "g-1", "model": "gpt-4o", "provider": "openai", "messages": []})
    logger.generation_result("g-1", {"choices": [{"message": {"role": "assistant", "content": "ok"}}]})
    logger.trace_feedback("t-1", 0.9, "helpful")
    logger.trace_end("t-1")
    await logger.flush()

    assert delivered_actions(backend) == [
        ("trace", "t-1", "create"),
        ("trace", "t-1", "add-generation"),
        ("generation", "g-1", "result"),
        ("generation", "g-1", "end"),
        ("trace", "t-1", "add-feedback"),
        ("trace", "t-1", "end"),
    ]
    await logger.cleanup()


@pytest.mark.asyncio
async def test_spooled_batch_recovered_by_new_writer(make_log_writer: MakeWriter, backend: MockBackend) -> None:
    """A batch spooled by one process is delivered by the next writer on the same spool."""
    first = Logger("repo-1", make_log_writer())
    backend.log_status = [502]
    first.trace({"id": "lost-1"}).end()
    await first.cleanup()

    assert backend.delivered() == []
    assert len(first.writer.spool.files()) == 1

    second = Logger("repo-1", make_log_writer())
    second.trace({"id": "new-1"})
    await second.flush()

    assert [a[1] for a in delivered_actions(backend)] == ["lost-1", "lost-1", "new-1"]
    assert second.writer.spool.files() == []
    await second.cleanup()


@pytest.mark.asyncio
async def test_log_line_capture_then_push(backend: MockBackend) -> None:
    """Entries captured by a LogLine can be pushed to a repository later."""
    line = LogLine()
    session = line.session({"id": "sess-1"})
    session.trace({"id": "t-1"}).end()
    session.end()

    await LogLine.push("key-1", "repo-2", line.drain(), "https://api.test", transport=backend.transport)

    assert [a[2] for a in delivered_actions(backend)] == ["create", "create", "end", "end"]
    assert backend.log_requests()[0].url.params["id"] == "repo-2"


@pytest.mark.asyncio
async def test_langchain_run_delivered(make_log_writer: MakeWriter, backend: MockBackend) -> None:
    """LangChain callbacks routed through a Logger end up at the backend."""
    logger = Logger("repo-1", make_log_writer())
    tracer = TracewireLangchainTracer(logger)
    root, llm = uuid4(), uuid4()

    tracer.on_chain_start({"name": "qa"}, {"question": "capital?"}, run_id=root)
    tracer.on_chat_model_start(
        {"id": ["langchain", "chat_models", "openai", "ChatOpenAI"], "kwargs": {"model_name": "gpt-4o"}},
        [[HumanMessage(content="capital?")]],
        run_id=llm,
        parent_run_id=root,
        invocation_params={"model": "gpt-4o"},
    )
    tracer.on_llm_end(
        LLMResult(generations=[[ChatGeneration(message=AIMessage(content="Paris"))]]),
        run_id=llm,
        parent_run_id=root,
    )
    tracer.on_chain_end({"answer": "Paris"}, run_id=root)
    await logger.flush()

    entities = [(entity, action) for entity, _, action in delivered_actions(backend)]
    assert entities[0] == ("trace", "create")
    assert ("trace", "add-generation") in entities
    assert ("generation", "result") in entities
    assert entities[-1] == ("trace", "end")
    await logger.cleanup()
