"""Identifier, time and serialization helpers shared by every container.

The serialization helpers are deliberately total: whatever a caller hands to
``add_metadata`` or ``event`` comes back as JSON-representable data, with
cycles, exotic numerics and binary blobs replaced by placeholder strings.
"""

from __future__ import annotations

import base64
import dataclasses
import enum
import json
import math
import os
import re
import secrets
import socket
import time
import uuid
from collections.abc import Mapping
from datetime import UTC, date, datetime
from datetime import time as dt_time
from decimal import Decimal
from pathlib import PurePath
from typing import Any

from pydantic import BaseModel

ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

# Placeholders substituted by make_object_serializable
CIRCULAR_PLACEHOLDER = "[Circular]"
MAX_DEPTH_PLACEHOLDER = "[MaxDepth]"

DEFAULT_MAX_DEPTH = 20


def unique_id() -> str:
    """Return a random UUID4 string (matches ``ID_PATTERN``)."""
    return str(uuid.uuid4())


def generate_unique_id() -> str:
    """Return a host-scoped id of the form ``<time36>-<host>-<random hex>``.

    Used for naming writer instances, never for entities.
    """
    timestamp = _to_base36(int(time.time() * 1000))
    hostname = re.sub(r"[^A-Za-z0-9_-]", "-", socket.gethostname()) or "host"
    return f"{timestamp}-{hostname}-{secrets.token_hex(4)}"


def _to_base36(value: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if value == 0:
        return "0"
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(digits[rem])
    return "".join(reversed(out))


def is_valid_id(value: Any) -> bool:
    """Check that ``value`` is a non-empty string of ``[A-Za-z0-9_-]``."""
    return isinstance(value, str) and ID_PATTERN.match(value) is not None


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def format_timestamp(value: datetime) -> str:
    """Render a datetime as ISO-8601 with millisecond precision and ``Z`` suffix.

    Naive datetimes are assumed to already be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def is_on_aws_lambda() -> bool:
    """True when running inside an AWS Lambda function."""
    return os.environ.get("AWS_LAMBDA_FUNCTION_NAME") is not None


def _serialize_float(value: float) -> float | str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    return value


def make_object_serializable(
    obj: Any,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    _depth: int = 0,
    _seen: frozenset[int] = frozenset(),
) -> Any:
    """Convert an arbitrary value into JSON-representable data.

    Containers are walked recursively. A container that appears again on its
    own ancestor path becomes ``"[Circular]"``; anything nested deeper than
    ``max_depth`` becomes ``"[MaxDepth]"``. Binary buffers are replaced by a
    size description and non-finite floats by their names.

    Args:
        obj: Value to convert.
        max_depth: Maximum container nesting before truncation.

    Returns:
        A structure made only of dicts, lists, str, int, float, bool and None.
    """
    if obj is None or isinstance(obj, (bool, int, str)):
        return obj
    if isinstance(obj, float):
        return _serialize_float(obj)
    if isinstance(obj, enum.Enum):
        return make_object_serializable(obj.value, max_depth=max_depth, _depth=_depth, _seen=_seen)
    if isinstance(obj, datetime):
        return format_timestamp(obj)
    if isinstance(obj, (date, dt_time)):
        return obj.isoformat()
    if isinstance(obj, (Decimal, uuid.UUID, PurePath)):
        return str(obj)
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return f"<binary data: {len(bytes(obj))} bytes>"
    if callable(obj) and not isinstance(obj, type) and hasattr(obj, "__code__"):
        return {"type": "function", "functionName": getattr(obj, "__name__", None)}
    if isinstance(obj, type):
        return f"<class {obj.__module__}.{obj.__qualname__}>"

    if _depth >= max_depth:
        return MAX_DEPTH_PLACEHOLDER

    marker = id(obj)
    if marker in _seen:
        return CIRCULAR_PLACEHOLDER
    seen = _seen | {marker}

    def recurse(value: Any) -> Any:
        return make_object_serializable(value, max_depth=max_depth, _depth=_depth + 1, _seen=seen)

    if isinstance(obj, BaseException):
        cause = obj.__cause__ or obj.__context__
        return {
            "type": "error",
            "errorName": type(obj).__name__,
            "errorMessage": str(obj),
            "errorCause": recurse(cause) if cause is not None else None,
        }
    if isinstance(obj, BaseModel):
        return recurse(obj.model_dump())
    if dataclasses.is_dataclass(obj):
        return {f.name: recurse(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, Mapping):
        return {str(key): recurse(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [recurse(item) for item in obj]
    if hasattr(obj, "__dict__"):
        try:
            attributes = vars(obj)
        except TypeError:
            attributes = None
        if attributes:
            return {key: recurse(value) for key, value in attributes.items() if not key.startswith("_")}

    try:
        return repr(obj)
    except Exception:
        return f"<unrepresentable {type(obj).__name__}>"


def safe_json_dumps(value: Any) -> str:
    """JSON-encode ``value`` after making it serializable; never raises."""
    try:
        return json.dumps(make_object_serializable(value), ensure_ascii=False)
    except Exception:
        try:
            return json.dumps(repr(value))
        except Exception:
            return json.dumps(f"<unserializable {type(value).__name__}>")


def sanitize_metadata(metadata: Mapping[str, Any]) -> dict[str, str]:
    """Encode every metadata value independently as a JSON string.

    One bad value only degrades its own entry; the rest of the mapping is
    unaffected.
    """
    return {str(key): safe_json_dumps(value) for key, value in metadata.items()}


def json_default(obj: Any) -> Any:
    """``default=`` hook for ``json.dumps`` over commit payloads."""
    if isinstance(obj, datetime):
        return format_timestamp(obj)
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(obj)).decode("ascii")
    return make_object_serializable(obj)
