"""WebSocket live updates."""

from chess_arena.ws.manager import LiveUpdateBroadcaster, match_group, tournament_group

__all__ = ["LiveUpdateBroadcaster", "match_group", "tournament_group"]
