"""Database models."""

from chess_arena.models.base import Base, TimestampMixin
from chess_arena.models.match import Match
from chess_arena.models.tournament import Tournament

__all__ = ["Base", "TimestampMixin", "Match", "Tournament"]
