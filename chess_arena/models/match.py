"""Match model."""

from enum import Enum

from sqlalchemy import (
    JSON,
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from chess_arena.models.base import Base, TimestampMixin

STARTING_POSITION = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"


class MatchStatus(str, Enum):
    """Match status."""

    PENDING = "pending"  # Created, no move yet
    IN_PROGRESS = "in_progress"
    WHITE_WON = "white_won"
    BLACK_WON = "black_won"
    DRAW = "draw"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self not in (MatchStatus.PENDING, MatchStatus.IN_PROGRESS)

    @property
    def is_decided(self) -> bool:
        """Terminal by play (not by abort)."""
        return self in (MatchStatus.WHITE_WON, MatchStatus.BLACK_WON, MatchStatus.DRAW)


class Match(Base, TimestampMixin):
    """A single game between two players."""

    __tablename__ = "matches"
    __table_args__ = (
        # At most one game per bracket coordinate; backstop for exactly-once
        # next-round creation.
        UniqueConstraint(
            "tournament_id",
            "tournament_round",
            "tournament_match_number",
            "tournament_game_number",
            name="uq_matches_bracket_slot_game",
        ),
        CheckConstraint(
            "white_player_id <> black_player_id",
            name="ck_matches_distinct_players",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Players
    white_player_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    black_player_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # State
    status: Mapped[str] = mapped_column(
        String(20),
        default=MatchStatus.PENDING.value,
        nullable=False,
        index=True,
    )
    position: Mapped[str] = mapped_column(
        Text,
        default=STARTING_POSITION,
        nullable=False,
    )
    moves: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    """Applied moves in SAN, oldest first. Always reassigned, never mutated in place."""

    # Bracket back-reference (tournament matches only)
    tournament_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    tournament_round: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tournament_match_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tournament_game_number: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def __repr__(self) -> str:
        return f"<Match {self.id} {self.white_player_id} vs {self.black_player_id} ({self.status})>"

    @property
    def match_status(self) -> MatchStatus:
        return MatchStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.match_status.is_terminal

    @property
    def in_tournament(self) -> bool:
        return self.tournament_id is not None

    def color_of(self, player_id: str) -> str | None:
        """Return "white", "black" or None for a non-participant."""
        if player_id == self.white_player_id:
            return "white"
        if player_id == self.black_player_id:
            return "black"
        return None

    def winner_id(self) -> str | None:
        if self.status == MatchStatus.WHITE_WON.value:
            return self.white_player_id
        if self.status == MatchStatus.BLACK_WON.value:
            return self.black_player_id
        return None
