"""WebSocket frame envelope.

Every frame, in either direction, is a JSON object::

    {"type": ..., "ts": <ms>, "traceId": ..., "payload": {...}, "version": "v1",
     "requestId": ...}

``requestId`` is optional. Replies to a client frame echo its ``requestId``
and ``traceId`` so the client can correlate them.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from chess_arena.utils.errors import ActionResult
from chess_arena.ws.events import EventType

PROTOCOL_VERSION = "v1"


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_trace_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class MessageEnvelope:
    type: EventType
    payload: dict[str, Any]
    trace_id: str = field(default_factory=_new_trace_id)
    ts: int = field(default_factory=_now_ms)
    version: str = PROTOCOL_VERSION
    request_id: str | None = None

    @classmethod
    def create(
        cls,
        event_type: EventType,
        payload: dict[str, Any],
        request_id: str | None = None,
        trace_id: str | None = None,
    ) -> MessageEnvelope:
        return cls(
            type=event_type,
            payload=payload,
            trace_id=trace_id or _new_trace_id(),
            request_id=request_id,
        )

    @classmethod
    def from_dict(cls, data: Any) -> MessageEnvelope:
        """Parse a client frame.

        Raises:
            ValueError: not an object, missing or unknown ``type``, or a
                payload that is not an object
        """
        if not isinstance(data, dict) or "type" not in data:
            raise ValueError("message must be an object with a 'type' field")
        payload = data.get("payload") or {}
        if not isinstance(payload, dict):
            raise ValueError("payload must be an object")

        return cls(
            type=EventType(data["type"]),
            payload=payload,
            trace_id=data.get("traceId") or _new_trace_id(),
            ts=data.get("ts") or _now_ms(),
            version=data.get("version", PROTOCOL_VERSION),
            request_id=data.get("requestId"),
        )

    def to_dict(self) -> dict[str, Any]:
        frame: dict[str, Any] = {
            "type": self.type.value,
            "ts": self.ts,
            "traceId": self.trace_id,
            "payload": self.payload,
            "version": self.version,
        }
        if self.request_id:
            frame["requestId"] = self.request_id
        return frame

    def reply(self, event_type: EventType, payload: dict[str, Any]) -> MessageEnvelope:
        """Response frame correlated with this one."""
        return MessageEnvelope.create(
            event_type, payload, request_id=self.request_id, trace_id=self.trace_id
        )

    def error(
        self, code: str, message: str, details: dict[str, Any] | None = None
    ) -> MessageEnvelope:
        """ERROR frame correlated with this one."""
        return create_error_message(
            code, message, details, request_id=self.request_id, trace_id=self.trace_id
        )

    def error_from(self, result: ActionResult) -> MessageEnvelope:
        """ERROR frame carrying a rejected ``ActionResult``."""
        code = result.error_code.value if result.error_code else "INTERNAL_ERROR"
        return self.error(code, result.message, result.details)


def create_error_message(
    error_code: str,
    error_message: str,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
    trace_id: str | None = None,
) -> MessageEnvelope:
    """ERROR frame with payload ``{errorCode, errorMessage, details}``."""
    return MessageEnvelope.create(
        EventType.ERROR,
        {"errorCode": error_code, "errorMessage": error_message, "details": details or {}},
        request_id=request_id,
        trace_id=trace_id,
    )
