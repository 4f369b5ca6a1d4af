"""HTTP API routers."""

from chess_arena.api import matches, tournaments

__all__ = ["matches", "tournaments"]
