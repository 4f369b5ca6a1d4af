"""Match room handlers: JOIN_MATCH, LEAVE_MATCH, MOVE_REQUEST."""

import logging

from chess_arena.match.service import MatchService
from chess_arena.ws.connection import ObserverConnection
from chess_arena.ws.events import EventType
from chess_arena.ws.handlers.base import BaseHandler
from chess_arena.ws.manager import LiveUpdateBroadcaster, match_group
from chess_arena.ws.messages import MessageEnvelope

logger = logging.getLogger(__name__)


class MatchHandler(BaseHandler):
    """Match observation and move submission."""

    def __init__(self, broadcaster: LiveUpdateBroadcaster, matches: MatchService):
        super().__init__(broadcaster)
        self.matches = matches

    @property
    def handled_events(self) -> tuple[EventType, ...]:
        return (EventType.JOIN_MATCH, EventType.LEAVE_MATCH, EventType.MOVE_REQUEST)

    async def handle(
        self,
        conn: ObserverConnection,
        event: MessageEnvelope,
    ) -> MessageEnvelope | None:
        match_id = self.require_int(event, "matchId")
        if isinstance(match_id, MessageEnvelope):
            return match_id

        if event.type == EventType.JOIN_MATCH:
            return await self.join_match_room(conn, match_id, event)
        if event.type == EventType.LEAVE_MATCH:
            self.broadcaster.leave(conn.connection_id, match_group(match_id))
            return event.reply(EventType.ROOM_LEFT, {"room": match_group(match_id)})
        if event.type == EventType.MOVE_REQUEST:
            return await self.submit_move(conn, match_id, event)
        return None

    async def join_match_room(
        self,
        conn: ObserverConnection,
        match_id: int,
        event: MessageEnvelope,
    ) -> MessageEnvelope:
        """Subscribe to a match and return its current state.

        The snapshot is read after joining so no update can fall between
        the two.
        """
        room = match_group(match_id)
        if not self.broadcaster.join(conn.connection_id, room):
            return event.error("NOT_CONNECTED", "Connection is not registered")

        result = await self.matches.get_match(match_id)
        if not result.success:
            self.broadcaster.leave(conn.connection_id, room)
            return event.error_from(result)
        return event.reply(EventType.MATCH_SNAPSHOT, result.data.to_dict())

    async def submit_move(
        self,
        conn: ObserverConnection,
        match_id: int,
        event: MessageEnvelope,
    ) -> MessageEnvelope:
        if conn.principal is None:
            return event.error("UNAUTHORIZED", "Authentication required to move")

        move = event.payload.get("move")
        if not isinstance(move, str) or not move.strip():
            return event.error("INVALID_PAYLOAD", "'move' must be a non-empty string")

        # Game rule rejections travel inside MOVE_RESULT.
        result = await self.matches.submit_move(match_id, conn.principal.id, move)
        payload = result.to_dict()
        if result.success:
            payload["data"] = result.data.to_dict()
        else:
            logger.debug(
                f"Move rejected: match={match_id} user={conn.principal.id} "
                f"code={payload['error']['code']}"
            )
        return event.reply(EventType.MOVE_RESULT, payload)
