"""WebSocket event handlers."""

from chess_arena.ws.handlers.base import BaseHandler
from chess_arena.ws.handlers.match import MatchHandler
from chess_arena.ws.handlers.system import SystemHandler
from chess_arena.ws.handlers.tournament import TournamentHandler

__all__ = ["BaseHandler", "MatchHandler", "SystemHandler", "TournamentHandler"]
