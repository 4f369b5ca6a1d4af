"""Immutable match views handed out of the service layer."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from chess_arena.models.match import Match, MatchStatus


@dataclass(frozen=True)
class TournamentRef:
    """Bracket coordinates of a tournament match."""

    tournament_id: int
    round: int
    match_number: int
    game_number: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "tournamentId": self.tournament_id,
            "round": self.round,
            "matchNumber": self.match_number,
            "gameNumber": self.game_number,
        }


@dataclass(frozen=True)
class MatchSnapshot:
    """Detached copy of a match row."""

    id: int
    white_player_id: str
    black_player_id: str
    status: MatchStatus
    position: str
    move_log: tuple[str, ...]
    tournament_ref: TournamentRef | None
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_model(cls, match: Match) -> MatchSnapshot:
        ref = None
        if match.tournament_id is not None:
            ref = TournamentRef(
                tournament_id=match.tournament_id,
                round=match.tournament_round or 0,
                match_number=match.tournament_match_number or 0,
                game_number=match.tournament_game_number or 1,
            )
        return cls(
            id=match.id,
            white_player_id=match.white_player_id,
            black_player_id=match.black_player_id,
            status=MatchStatus(match.status),
            position=match.position,
            move_log=tuple(match.moves or ()),
            tournament_ref=ref,
            created_at=match.created_at,
            updated_at=match.updated_at,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "white": self.white_player_id,
            "black": self.black_player_id,
            "status": self.status.value,
            "fen": self.position,
            "moves": list(self.move_log),
            "tournament": self.tournament_ref.to_dict() if self.tournament_ref else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
