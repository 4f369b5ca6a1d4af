"""
Single-elimination tournaments.

- models: immutable bracket types and tournament snapshots
- bracket: pure bracket construction and advancement
- engine: orchestration over storage, locks and events
"""

from chess_arena.tournament.bracket import BracketEngine
from chess_arena.tournament.engine import TournamentOrchestrator
from chess_arena.tournament.models import (
    AdvanceResult,
    Bracket,
    BracketRound,
    BracketSlot,
    ByePolicy,
    DrawPolicy,
    NextMatchRequest,
    TournamentSnapshot,
)

__all__ = [
    "AdvanceResult",
    "Bracket",
    "BracketEngine",
    "BracketRound",
    "BracketSlot",
    "ByePolicy",
    "DrawPolicy",
    "NextMatchRequest",
    "TournamentOrchestrator",
    "TournamentSnapshot",
]
