"""
Tournament and bracket data models.

All bracket types are immutable. Any change (winner recorded, player
placed, match created) produces a new ``Bracket`` via ``dataclasses.replace``,
so the bracket engine stays a set of pure functions.

Serialized shape (stored on the tournament row):
{
    "rounds": [
        {"round": 1, "matches": [
            {"matchNumber": 1, "player1": "a", "player2": "b",
             "matchId": 7, "winner": "a", "status": "white_won"}
        ]}
    ]
}
Absent keys mean "not set".
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any

from chess_arena.models.tournament import Tournament, TournamentStatus
from chess_arena.utils.errors import BracketInvariantError, SlotNotFoundError
from chess_arena.utils.json_utils import json_dumps, json_loads

# Display status for a slot decided without a game
BYE_STATUS = "bye"


class DrawPolicy(str, Enum):
    """What a drawn tournament game means for the bracket."""

    REPLAY = "replay"  # new game, colors swapped, same slot
    COIN_FLIP = "coin_flip"  # seeded random pick between the two players


class ByePolicy(str, Enum):
    """What happens to a player without an opponent."""

    AUTO_ADVANCE = "auto_advance"
    NONE = "none"  # slot never produces a match


# =============================================================================
# Bracket
# =============================================================================


@dataclass(frozen=True)
class BracketSlot:
    """One match position within a round."""

    match_number: int
    player1_id: str | None = None
    player2_id: str | None = None
    match_id: int | None = None
    winner_id: str | None = None
    status: str | None = None

    @property
    def players(self) -> tuple[str, ...]:
        return tuple(p for p in (self.player1_id, self.player2_id) if p is not None)

    @property
    def is_paired(self) -> bool:
        return self.player1_id is not None and self.player2_id is not None

    @property
    def is_ready(self) -> bool:
        """Both players known, no game created yet."""
        return self.is_paired and self.match_id is None and self.winner_id is None

    @property
    def is_decided(self) -> bool:
        return self.winner_id is not None

    def seat(self, seat_number: int) -> str | None:
        return self.player1_id if seat_number == 1 else self.player2_id

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"matchNumber": self.match_number}
        if self.player1_id is not None:
            data["player1"] = self.player1_id
        if self.player2_id is not None:
            data["player2"] = self.player2_id
        if self.match_id is not None:
            data["matchId"] = self.match_id
        if self.winner_id is not None:
            data["winner"] = self.winner_id
        if self.status is not None:
            data["status"] = self.status
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BracketSlot:
        player1 = data.get("player1")
        player2 = data.get("player2")
        winner = data.get("winner")
        return cls(
            match_number=int(data["matchNumber"]),
            player1_id=str(player1) if player1 is not None else None,
            player2_id=str(player2) if player2 is not None else None,
            match_id=data.get("matchId"),
            winner_id=str(winner) if winner is not None else None,
            status=data.get("status"),
        )


@dataclass(frozen=True)
class BracketRound:
    """All slots of one round, in match-number order."""

    round_number: int
    matches: tuple[BracketSlot, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "round": self.round_number,
            "matches": [slot.to_dict() for slot in self.matches],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BracketRound:
        return cls(
            round_number=int(data["round"]),
            matches=tuple(BracketSlot.from_dict(m) for m in data.get("matches", [])),
        )


@dataclass(frozen=True)
class Bracket:
    """Single-elimination bracket; ``rounds[0]`` is round 1."""

    rounds: tuple[BracketRound, ...]

    @property
    def round_count(self) -> int:
        return len(self.rounds)

    @property
    def final_slot(self) -> BracketSlot:
        if not self.rounds or len(self.rounds[-1].matches) != 1:
            raise BracketInvariantError("Final round must contain exactly one slot")
        return self.rounds[-1].matches[0]

    @property
    def champion_id(self) -> str | None:
        return self.final_slot.winner_id

    @property
    def is_complete(self) -> bool:
        return self.champion_id is not None

    def is_last_round(self, round_number: int) -> bool:
        return round_number == self.round_count

    def get_slot(self, round_number: int, match_number: int) -> BracketSlot:
        """
        Raises:
            SlotNotFoundError: coordinates outside the bracket
        """
        if not 1 <= round_number <= self.round_count:
            raise SlotNotFoundError(round_number, match_number)
        matches = self.rounds[round_number - 1].matches
        if not 1 <= match_number <= len(matches):
            raise SlotNotFoundError(round_number, match_number)
        slot = matches[match_number - 1]
        if slot.match_number != match_number:
            raise BracketInvariantError(
                "Slot numbering out of order",
                details={"round": round_number, "expected": match_number, "found": slot.match_number},
            )
        return slot

    def with_slot(self, round_number: int, slot: BracketSlot) -> Bracket:
        """Copy of this bracket with ``slot`` replacing its namesake."""
        self.get_slot(round_number, slot.match_number)
        old_round = self.rounds[round_number - 1]
        matches = list(old_round.matches)
        matches[slot.match_number - 1] = slot
        rounds = list(self.rounds)
        rounds[round_number - 1] = replace(old_round, matches=tuple(matches))
        return Bracket(rounds=tuple(rounds))

    def slots(self):
        """Yield ``(round_number, slot)`` in round then match order."""
        for bracket_round in self.rounds:
            for slot in bracket_round.matches:
                yield bracket_round.round_number, slot

    def to_dict(self) -> dict[str, Any]:
        return {"rounds": [r.to_dict() for r in self.rounds]}

    def to_json(self) -> str:
        return json_dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Bracket:
        try:
            rounds = tuple(BracketRound.from_dict(r) for r in data["rounds"])
        except (KeyError, TypeError, ValueError) as e:
            raise BracketInvariantError(f"Malformed bracket data: {e}") from e
        for index, bracket_round in enumerate(rounds, start=1):
            if bracket_round.round_number != index:
                raise BracketInvariantError(
                    "Round numbering out of order",
                    details={"expected": index, "found": bracket_round.round_number},
                )
        return cls(rounds=rounds)

    @classmethod
    def from_json(cls, raw: str) -> Bracket:
        try:
            data = json_loads(raw)
        except ValueError as e:
            raise BracketInvariantError(f"Bracket data is not valid JSON: {e}") from e
        return cls.from_dict(data)


@dataclass(frozen=True)
class NextMatchRequest:
    """A slot that just became fully paired and needs a game."""

    round: int
    match_number: int
    player1_id: str
    player2_id: str


@dataclass(frozen=True)
class AdvanceResult:
    """Outcome of recording a winner."""

    bracket: Bracket
    next_match: NextMatchRequest | None
    is_final: bool


# =============================================================================
# Tournament view
# =============================================================================


@dataclass(frozen=True)
class TournamentSnapshot:
    """Detached copy of a tournament row with its parsed bracket."""

    id: int
    name: str
    description: str | None
    status: TournamentStatus
    max_participants: int
    participant_ids: tuple[str, ...]
    bracket: Bracket | None
    seed: int | None
    start_date: datetime | None
    end_date: datetime | None
    created_at: datetime | None

    @classmethod
    def from_model(cls, tournament: Tournament) -> TournamentSnapshot:
        return cls(
            id=tournament.id,
            name=tournament.name,
            description=tournament.description,
            status=TournamentStatus(tournament.status),
            max_participants=tournament.max_participants,
            participant_ids=tuple(tournament.participant_ids or ()),
            bracket=Bracket.from_json(tournament.bracket_data) if tournament.bracket_data else None,
            seed=tournament.seed,
            start_date=tournament.start_date,
            end_date=tournament.end_date,
            created_at=tournament.created_at,
        )

    @property
    def champion_id(self) -> str | None:
        if self.bracket is None:
            return None
        return self.bracket.champion_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "maxParticipants": self.max_participants,
            "participants": list(self.participant_ids),
            "bracket": self.bracket.to_dict() if self.bracket else None,
            "champion": self.champion_id,
            "seed": self.seed,
            "startDate": self.start_date.isoformat() if self.start_date else None,
            "endDate": self.end_date.isoformat() if self.end_date else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
