"""WebSocket gateway endpoint.

Connection flow:
1. Client connects to /ws. An upstream proxy may attach ``X-User-Id`` and
   ``X-User-Roles`` headers; without them the observer is anonymous.
2. Server sends CONNECTION_STATE(connected)
3. Client joins match / tournament rooms and, if authenticated, moves
4. On disconnect the observer leaves every room
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from chess_arena.container import ArenaServices
from chess_arena.utils.security import Principal
from chess_arena.ws.connection import ConnectionState, ObserverConnection
from chess_arena.ws.events import CLIENT_TO_SERVER_EVENTS, EventType
from chess_arena.ws.handlers.base import BaseHandler
from chess_arena.ws.handlers.match import MatchHandler
from chess_arena.ws.handlers.system import SystemHandler, create_connection_state_message
from chess_arena.ws.handlers.tournament import TournamentHandler
from chess_arena.ws.manager import ConnectionLimitExceeded
from chess_arena.ws.messages import MessageEnvelope, create_error_message

logger = logging.getLogger(__name__)
router = APIRouter(tags=["WebSocket"])


class HandlerRegistry:
    """Registry for event handlers."""

    def __init__(self, services: ArenaServices):
        broadcaster = services.broadcaster
        self._handlers: dict[EventType, BaseHandler] = {}
        self._register_handler(SystemHandler(broadcaster))
        self._register_handler(MatchHandler(broadcaster, services.matches))
        self._register_handler(TournamentHandler(broadcaster, services.tournaments))

    def _register_handler(self, handler: BaseHandler) -> None:
        for event_type in handler.handled_events:
            self._handlers[event_type] = handler

    def get_handler(self, event_type: EventType) -> BaseHandler | None:
        return self._handlers.get(event_type)

    async def dispatch(self, conn: ObserverConnection, data: Any) -> MessageEnvelope | None:
        """Parse one client frame and run its handler.

        Malformed frames and unknown events produce an ERROR envelope.
        """
        try:
            event = MessageEnvelope.from_dict(data)
        except ValueError as e:
            logger.warning(f"Invalid message format: {e}")
            return create_error_message(
                error_code="INVALID_MESSAGE",
                error_message=f"Invalid message format: {e}",
            )

        if event.type not in CLIENT_TO_SERVER_EVENTS:
            return event.error(
                "INVALID_EVENT_DIRECTION", f"Event {event.type.value} cannot be sent by client"
            )

        handler = self.get_handler(event.type)
        if handler is None:
            return event.error("UNKNOWN_EVENT", f"Unknown event type: {event.type.value}")

        return await handler.handle(conn, event)


def principal_from_websocket(websocket: WebSocket) -> Principal | None:
    user_id = websocket.headers.get("x-user-id")
    if not user_id or not user_id.strip():
        return None
    return Principal.from_header_values(user_id, websocket.headers.get("x-user-roles"))


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Main WebSocket endpoint."""
    services: ArenaServices = websocket.app.state.services
    broadcaster = services.broadcaster

    await websocket.accept()

    conn = ObserverConnection(
        websocket=websocket,
        connection_id=str(uuid4()),
        connected_at=datetime.now(timezone.utc),
        principal=principal_from_websocket(websocket),
    )

    try:
        await broadcaster.connect(conn)
    except ConnectionLimitExceeded:
        await conn.close(1013, "Too many connections")
        return

    await conn.send(create_connection_state_message(ConnectionState.CONNECTED, conn).to_dict())
    registry = HandlerRegistry(services)

    try:
        while True:
            data = await websocket.receive_json()
            try:
                response = await registry.dispatch(conn, data)
            except Exception as e:
                logger.exception(f"Handler error: {e}")
                response = create_error_message(
                    error_code="HANDLER_ERROR",
                    error_message="Internal handler error",
                )
            if response is not None:
                await conn.send(response.to_dict())

    except WebSocketDisconnect as e:
        logger.info(f"WebSocket disconnected: conn={conn.connection_id}, code={e.code}")

    except Exception as e:
        logger.exception(f"WebSocket error: {e}")

    finally:
        await broadcaster.disconnect(conn.connection_id)
