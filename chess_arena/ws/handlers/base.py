"""Handler contract for client frames."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from chess_arena.ws.connection import ObserverConnection
from chess_arena.ws.events import EventType
from chess_arena.ws.messages import MessageEnvelope

if TYPE_CHECKING:
    from chess_arena.ws.manager import LiveUpdateBroadcaster


class BaseHandler(ABC):
    """Owns a group of client event types.

    ``handle`` returns the frame to send back to the sender, or None.
    Broadcasts to rooms go through ``self.broadcaster``.
    """

    def __init__(self, broadcaster: "LiveUpdateBroadcaster"):
        self.broadcaster = broadcaster

    @property
    @abstractmethod
    def handled_events(self) -> tuple[EventType, ...]: ...

    @abstractmethod
    async def handle(
        self,
        conn: ObserverConnection,
        event: MessageEnvelope,
    ) -> MessageEnvelope | None: ...

    def can_handle(self, event_type: EventType) -> bool:
        return event_type in self.handled_events

    @staticmethod
    def require_int(event: MessageEnvelope, key: str) -> int | MessageEnvelope:
        """``payload[key]`` as an int (numeric strings accepted).

        Returns an INVALID_PAYLOAD error frame instead when the field is
        missing, a bool, or not numeric.
        """
        raw = event.payload.get(key)
        if isinstance(raw, int) and not isinstance(raw, bool):
            return raw
        if isinstance(raw, str):
            try:
                return int(raw)
            except ValueError:
                pass
        return event.error("INVALID_PAYLOAD", f"'{key}' must be an integer")
