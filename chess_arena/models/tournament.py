"""Tournament model."""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from chess_arena.models.base import Base, TimestampMixin


class TournamentStatus(str, Enum):
    """Tournament status."""

    REGISTRATION = "registration"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (TournamentStatus.COMPLETED, TournamentStatus.CANCELLED)


class Tournament(Base, TimestampMixin):
    """Single-elimination tournament."""

    __tablename__ = "tournaments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Basic info
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        default=TournamentStatus.REGISTRATION.value,
        nullable=False,
        index=True,
    )

    # Registration
    max_participants: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    """0 = unlimited."""
    participant_ids: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    """Registration order. Always reassigned, never mutated in place."""

    # Bracket
    bracket_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    """
    Serialized bracket, null until start:
    {
        "rounds": [
            {"round": 1, "matches": [
                {"matchNumber": 1, "player1": "a", "player2": "b",
                 "matchId": 7, "winner": null, "status": "pending"}
            ]}
        ]
    }
    """
    seed: Mapped[int | None] = mapped_column(Integer, nullable=True)

    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Tournament {self.name} ({self.status})>"

    @property
    def tournament_status(self) -> TournamentStatus:
        return TournamentStatus(self.status)

    @property
    def participant_count(self) -> int:
        return len(self.participant_ids or [])
