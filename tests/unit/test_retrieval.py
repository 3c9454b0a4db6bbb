"""Tests for the Retrieval container."""

from __future__ import annotations

from datetime import datetime

from tests.fixtures.backend import actions, last
from tracewire.components import Retrieval
from tracewire.writer import CaptureWriter


def test_input_is_update(writer: CaptureWriter) -> None:
    """input records the query as an update."""
    retrieval = Retrieval({"id": "r1"}, writer)

    retrieval.input("capital of France")

    assert actions(writer) == [("retrieval", "r1", "update")]
    assert last(writer).data == {"input": "capital of France"}


def test_output_is_single_end_commit(writer: CaptureWriter) -> None:
    """output emits exactly one end commit carrying the docs."""
    retrieval = Retrieval({"id": "r1"}, writer)

    retrieval.output(["Paris is the capital.", "France is in Europe."])

    assert actions(writer) == [("retrieval", "r1", "end")]
    data = last(writer).data
    assert data["docs"] == ["Paris is the capital.", "France is in Europe."]
    assert isinstance(data["endTimestamp"], datetime)
    assert retrieval.end_timestamp == data["endTimestamp"]


def test_output_single_document(writer: CaptureWriter) -> None:
    """A single string is wrapped in a list."""
    Retrieval.output_(writer, "r1", "only doc")

    assert last(writer).data["docs"] == ["only doc"]


def test_metrics_and_tags(writer: CaptureWriter) -> None:
    """Metrics and tags are plain updates."""
    retrieval = Retrieval({"id": "r1"}, writer)

    retrieval.add_metric("precision", 0.75)
    retrieval.add_tag("index", "faq")

    assert [e.data for e in writer.logs] == [{"metrics": {"precision": 0.75}}, {"tags": {"index": "faq"}}]


def test_by_id_input_matches_instance(writer: CaptureWriter) -> None:
    """Instance and by-id input emit identical entries."""
    Retrieval({"id": "r1"}, writer).input("q")
    Retrieval.input_(writer, "r1", "q")

    assert writer.logs[0] == writer.logs[1]
