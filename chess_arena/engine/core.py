"""python-chess wrapper for move validation.

This module wraps the python-chess library to provide:
- A pure ``apply_move(position, move_text)`` over FEN strings
- SAN input (``Nf3``) with a UCI fallback (``g1f3``)
- Checkmate / draw flags for the position after the move

Nothing here touches the database; a match row stores only the FEN and
the SAN move log.

Draw detection covers stalemate, insufficient material and the fifty-move
rule. Repetition is not detected because only the current FEN is known.
"""

import logging
from dataclasses import dataclass

import chess

from chess_arena.models.match import STARTING_POSITION

logger = logging.getLogger(__name__)

WHITE = "white"
BLACK = "black"


# =============================================================================
# Exceptions
# =============================================================================


class RulesEngineError(Exception):
    """Base rules engine error."""


class IllegalMoveError(RulesEngineError):
    """Move rejected by the rules engine.

    ``reason`` is the engine's diagnostic text.
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


# =============================================================================
# Result
# =============================================================================


@dataclass(frozen=True)
class MoveOutcome:
    """Position after a successfully applied move."""

    new_position: str
    side_to_move_after: str
    is_checkmate: bool
    is_draw: bool
    san: str
    draw_reason: str | None = None


# =============================================================================
# Engine
# =============================================================================


class ChessRulesEngine:
    """Stateless adapter over ``chess.Board``."""

    starting_position = STARTING_POSITION

    def side_to_move(self, position: str) -> str:
        """Return "white" or "black" for the side to move in ``position``."""
        board = self._load(position)
        return WHITE if board.turn == chess.WHITE else BLACK

    def apply_move(self, position: str, move_text: str) -> MoveOutcome:
        """Apply ``move_text`` to ``position``.

        Raises:
            IllegalMoveError: unparseable position, unparseable move, or a
                move that is not legal in the position
        """
        board = self._load(position)
        move = self._parse_move(board, move_text)

        san = board.san(move)
        board.push(move)

        is_checkmate = board.is_checkmate()
        draw_reason = None if is_checkmate else self._draw_reason(board)

        return MoveOutcome(
            new_position=board.fen(),
            side_to_move_after=WHITE if board.turn == chess.WHITE else BLACK,
            is_checkmate=is_checkmate,
            is_draw=draw_reason is not None,
            san=san,
            draw_reason=draw_reason,
        )

    def _load(self, position: str) -> chess.Board:
        try:
            return chess.Board(position)
        except ValueError as e:
            logger.error(f"Unparseable position {position!r}: {e}")
            raise IllegalMoveError(f"invalid position: {e}") from e

    def _parse_move(self, board: chess.Board, move_text: str) -> chess.Move:
        text = (move_text or "").strip()
        if not text:
            raise IllegalMoveError("empty move")

        try:
            return board.parse_san(text)
        except ValueError as san_error:
            try:
                return board.parse_uci(text.lower())
            except ValueError:
                raise IllegalMoveError(str(san_error)) from san_error

    @staticmethod
    def _draw_reason(board: chess.Board) -> str | None:
        if board.is_stalemate():
            return "stalemate"
        if board.is_insufficient_material():
            return "insufficient_material"
        if board.halfmove_clock >= 100:
            return "fifty_moves"
        return None
