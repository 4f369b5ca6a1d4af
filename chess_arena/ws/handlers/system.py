"""Heartbeat and connection-state frames."""

from datetime import datetime, timezone

from chess_arena.ws.connection import ConnectionState, ObserverConnection
from chess_arena.ws.events import EventType
from chess_arena.ws.handlers.base import BaseHandler
from chess_arena.ws.messages import MessageEnvelope


class SystemHandler(BaseHandler):
    """Answers client PING with PONG and records the heartbeat."""

    @property
    def handled_events(self) -> tuple[EventType, ...]:
        return (EventType.PING,)

    async def handle(
        self,
        conn: ObserverConnection,
        event: MessageEnvelope,
    ) -> MessageEnvelope | None:
        conn.last_ping_at = datetime.now(timezone.utc)
        return event.reply(EventType.PONG, {})


def create_connection_state_message(
    state: ConnectionState,
    conn: ObserverConnection,
) -> MessageEnvelope:
    # Sent once right after accept; tells the client who the server thinks it is.
    return MessageEnvelope.create(
        EventType.CONNECTION_STATE,
        {
            "state": state.value,
            "connectionId": conn.connection_id,
            "userId": conn.user_id,
            "anonymous": conn.principal is None,
        },
    )
