"""Tests for the commit log entry and entity kinds."""

from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest

from tracewire.components import CommitLog, Entity


def test_serialize_wire_format() -> None:
    """Serialized form is entity{id=...,action=...,data=<compact json>}."""
    entry = CommitLog(Entity.TRACE, "t1", "update", {"tags": {"env": "prod"}})

    assert entry.serialize() == 'trace{id=t1,action=update,data={"tags":{"env":"prod"}}}'


def test_serialize_empty_payload() -> None:
    """Missing data serializes as an empty object."""
    entry = CommitLog(Entity.SESSION, "s1", "end")

    assert entry.serialize() == "session{id=s1,action=end,data={}}"


def test_tool_call_entity_value() -> None:
    """Tool call entries use the snake_case entity name."""
    entry = CommitLog(Entity.TOOL_CALL, "tc1", "result", {"result": "ok"})

    assert entry.serialize().startswith("tool_call{id=tc1,")


def test_datetime_payload_serialized_as_iso() -> None:
    """Datetimes in payloads render as ISO-8601 UTC with milliseconds."""
    when = datetime(2024, 5, 1, 12, 30, 45, 123456, tzinfo=UTC)
    entry = CommitLog(Entity.SPAN, "sp1", "end", {"endTimestamp": when})

    assert entry.data_json() == '{"endTimestamp":"2024-05-01T12:30:45.123Z"}'


def test_bytes_payload_base64_encoded() -> None:
    """Binary payload values are base64 encoded on the wire."""
    entry = CommitLog(Entity.TRACE, "t1", "upload-attachment", {"data": b"hi"})

    assert entry.data_json() == '{"data":"aGk="}'


def test_cyclic_payload_serializes_with_placeholder() -> None:
    """Reference cycles are broken instead of failing the whole entry."""
    data: dict[str, object] = {"name": "loop"}
    data["self"] = data
    entry = CommitLog(Entity.TRACE, "t1", "update", {"output": data})

    parsed = CommitLog.deserialize(entry.serialize())

    assert parsed.data == {"output": {"name": "loop", "self": "[Circular]"}}


def test_non_finite_floats_produce_valid_json() -> None:
    """NaN and infinities become strings so the payload stays strict JSON."""
    entry = CommitLog(Entity.GENERATION, "g1", "result", {"score": float("nan"), "max": float("inf")})

    encoded = entry.data_json()

    assert "NaN" not in encoded.replace('"NaN"', "")
    assert json.loads(encoded) == {"score": "NaN", "max": "Infinity"}


def test_data_is_copied_on_construction() -> None:
    """Mutating the source mapping after commit does not change the entry."""
    data = {"input": "first"}
    entry = CommitLog(Entity.TRACE, "t1", "update", data)
    data["input"] = "second"

    assert entry.data == {"input": "first"}


def test_entry_is_immutable() -> None:
    """Entries are frozen."""
    entry = CommitLog(Entity.TRACE, "t1", "end")

    with pytest.raises(AttributeError):
        entry.action = "create"  # type: ignore[misc]


def test_entity_string_coerced() -> None:
    """A string entity value is coerced to the Entity enum."""
    entry = CommitLog("generation", "g1", "result")  # type: ignore[arg-type]

    assert entry.entity is Entity.GENERATION
    assert entry.type is Entity.GENERATION
    assert entry.id == "g1"


def test_unknown_entity_rejected() -> None:
    """Entity kinds form a closed set."""
    with pytest.raises(ValueError):
        CommitLog("widget", "w1", "create")  # type: ignore[arg-type]


def test_non_string_id_rejected() -> None:
    """Entity ids must be strings."""
    with pytest.raises(TypeError):
        CommitLog(Entity.TRACE, 42, "create")  # type: ignore[arg-type]


def test_deserialize_parses_serialized_line() -> None:
    """Deserialize reads back entity, id, action and payload."""
    line = 'retrieval{id=r-1,action=end,data={"docs":["a","b"],"note":"x,y=z"}}'

    entry = CommitLog.deserialize(line)

    assert entry.entity is Entity.RETRIEVAL
    assert entry.entity_id == "r-1"
    assert entry.action == "end"
    assert entry.data == {"docs": ["a", "b"], "note": "x,y=z"}


def test_deserialize_rejects_garbage() -> None:
    """Lines that are not serialized entries raise ValueError."""
    with pytest.raises(ValueError, match="Not a serialized commit log"):
        CommitLog.deserialize("hello world")


def test_deserialize_rejects_bad_json() -> None:
    """A malformed payload raises ValueError."""
    with pytest.raises(ValueError, match="Malformed"):
        CommitLog.deserialize("trace{id=t1,action=update,data={not json}}")


def test_with_data_replaces_payload() -> None:
    """with_data keeps identity fields and swaps the payload."""
    entry = CommitLog(Entity.TRACE, "t1", "upload-attachment", {"id": "a1"})

    updated = entry.with_data({"id": "a1", "key": "k"})

    assert updated.entity_id == "t1"
    assert updated.action == "upload-attachment"
    assert updated.data == {"id": "a1", "key": "k"}
    assert entry.data == {"id": "a1"}
