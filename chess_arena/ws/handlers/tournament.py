"""Tournament room handlers: JOIN_TOURNAMENT, LEAVE_TOURNAMENT."""

from chess_arena.tournament.engine import TournamentOrchestrator
from chess_arena.ws.connection import ObserverConnection
from chess_arena.ws.events import EventType
from chess_arena.ws.handlers.base import BaseHandler
from chess_arena.ws.manager import LiveUpdateBroadcaster, tournament_group
from chess_arena.ws.messages import MessageEnvelope


class TournamentHandler(BaseHandler):
    """Tournament bracket observation."""

    def __init__(self, broadcaster: LiveUpdateBroadcaster, tournaments: TournamentOrchestrator):
        super().__init__(broadcaster)
        self.tournaments = tournaments

    @property
    def handled_events(self) -> tuple[EventType, ...]:
        return (EventType.JOIN_TOURNAMENT, EventType.LEAVE_TOURNAMENT)

    async def handle(
        self,
        conn: ObserverConnection,
        event: MessageEnvelope,
    ) -> MessageEnvelope | None:
        tournament_id = self.require_int(event, "tournamentId")
        if isinstance(tournament_id, MessageEnvelope):
            return tournament_id

        room = tournament_group(tournament_id)
        if event.type == EventType.LEAVE_TOURNAMENT:
            self.broadcaster.leave(conn.connection_id, room)
            return event.reply(EventType.ROOM_LEFT, {"room": room})

        if not self.broadcaster.join(conn.connection_id, room):
            return event.error("NOT_CONNECTED", "Connection is not registered")
        result = await self.tournaments.get_tournament(tournament_id)
        if not result.success:
            self.broadcaster.leave(conn.connection_id, room)
            return event.error_from(result)
        return event.reply(EventType.TOURNAMENT_SNAPSHOT, result.data.to_dict())
