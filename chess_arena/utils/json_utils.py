"""JSON helpers backed by orjson.

Used for the stored bracket document, event payloads and HTTP responses.
``json_dumps`` output is compact and key order follows insertion order, so
two equal brackets always serialize to the same string.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any

import orjson
from fastapi.responses import JSONResponse

_OPTIONS = orjson.OPT_UTC_Z


def _default_serializer(obj: Any) -> Any:
    """Serializer for types orjson does not handle natively."""
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def json_dumps(data: Any) -> str:
    return orjson.dumps(data, default=_default_serializer, option=_OPTIONS).decode("utf-8")


def json_loads(data: str | bytes) -> Any:
    """Parse JSON.

    Raises:
        orjson.JSONDecodeError: (a ``ValueError``) on malformed input
    """
    return orjson.loads(data)


class ORJSONResponse(JSONResponse):
    """Response class using orjson for serialization."""

    media_type = "application/json"

    def render(self, content: Any) -> bytes:
        return orjson.dumps(content, default=_default_serializer, option=_OPTIONS)
