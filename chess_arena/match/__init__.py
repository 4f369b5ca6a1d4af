"""Match state machine."""

from chess_arena.match.service import MatchService
from chess_arena.match.types import MatchSnapshot, TournamentRef

__all__ = ["MatchService", "MatchSnapshot", "TournamentRef"]
