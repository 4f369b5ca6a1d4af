"""Arena event types."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Any
from uuid import uuid4

from chess_arena.utils.json_utils import json_dumps


class ArenaEventType(Enum):
    """Internal state-change notifications."""

    MATCH_CHANGED = auto()  # any accepted move or abort
    MATCH_COMPLETED = auto()  # tournament match decided by play
    TOURNAMENT_CHANGED = auto()  # bracket or tournament status changed


@dataclass(frozen=True)
class ArenaEvent:
    """
    State-change event.

    Emitted after the originating transaction commits, so every subscriber
    that re-reads the record observes the new state.
    """

    event_type: ArenaEventType
    match_id: int | None = None
    tournament_id: int | None = None
    data: dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.name,
            "match_id": self.match_id,
            "tournament_id": self.tournament_id,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }

    def to_json(self) -> str:
        return json_dumps(self.to_dict())


def match_changed(match_id: int, status: str, move: str | None = None) -> ArenaEvent:
    return ArenaEvent(
        event_type=ArenaEventType.MATCH_CHANGED,
        match_id=match_id,
        data={"matchId": match_id, "status": status, "move": move},
    )


def match_completed(match_id: int, tournament_id: int) -> ArenaEvent:
    return ArenaEvent(
        event_type=ArenaEventType.MATCH_COMPLETED,
        match_id=match_id,
        tournament_id=tournament_id,
        data={"matchId": match_id},
    )


def tournament_changed(tournament_id: int, match_id: int | None) -> ArenaEvent:
    return ArenaEvent(
        event_type=ArenaEventType.TOURNAMENT_CHANGED,
        match_id=match_id,
        tournament_id=tournament_id,
        data={"tournamentId": tournament_id, "matchId": match_id},
    )
