"""Tests for the python-chess rules adapter."""

import pytest

from chess_arena.engine.core import BLACK, WHITE, ChessRulesEngine, IllegalMoveError
from chess_arena.models.match import STARTING_POSITION

AFTER_E4 = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"


@pytest.fixture
def rules() -> ChessRulesEngine:
    return ChessRulesEngine()


class TestSideToMove:
    def test_starting_position_is_white(self, rules: ChessRulesEngine):
        assert rules.side_to_move(STARTING_POSITION) == WHITE

    def test_after_first_move_is_black(self, rules: ChessRulesEngine):
        assert rules.side_to_move(AFTER_E4) == BLACK

    def test_invalid_position_rejected(self, rules: ChessRulesEngine):
        with pytest.raises(IllegalMoveError):
            rules.side_to_move("not a fen")


class TestApplyMove:
    def test_san_opening_move(self, rules: ChessRulesEngine):
        outcome = rules.apply_move(STARTING_POSITION, "e4")

        assert outcome.new_position == AFTER_E4
        assert outcome.san == "e4"
        assert outcome.side_to_move_after == BLACK
        assert not outcome.is_checkmate
        assert not outcome.is_draw

    def test_uci_input_normalized_to_san(self, rules: ChessRulesEngine):
        outcome = rules.apply_move(STARTING_POSITION, "g1f3")

        assert outcome.san == "Nf3"
        assert outcome.side_to_move_after == BLACK

    def test_uppercase_uci_accepted(self, rules: ChessRulesEngine):
        assert rules.apply_move(STARTING_POSITION, "E2E4").san == "e4"

    def test_apply_is_pure(self, rules: ChessRulesEngine):
        first = rules.apply_move(STARTING_POSITION, "d4")
        second = rules.apply_move(STARTING_POSITION, "d4")
        assert first == second

    @pytest.mark.parametrize("move", ["e5", "Ke2", "xyz", "e2e5", "Nf6"])
    def test_illegal_moves_rejected(self, rules: ChessRulesEngine, move: str):
        with pytest.raises(IllegalMoveError) as exc_info:
            rules.apply_move(STARTING_POSITION, move)
        assert exc_info.value.reason

    @pytest.mark.parametrize("move", ["", "   ", None])
    def test_empty_move_rejected(self, rules: ChessRulesEngine, move):
        with pytest.raises(IllegalMoveError, match="empty move"):
            rules.apply_move(STARTING_POSITION, move)

    def test_invalid_position_rejected(self, rules: ChessRulesEngine):
        with pytest.raises(IllegalMoveError, match="invalid position"):
            rules.apply_move("8/8/8 w - -", "e4")


class TestGameEnd:
    def test_checkmate(self, rules: ChessRulesEngine):
        back_rank = "6k1/5ppp/8/8/8/8/8/R5K1 w - - 0 1"
        outcome = rules.apply_move(back_rank, "Ra8")

        assert outcome.is_checkmate
        assert not outcome.is_draw
        assert outcome.san == "Ra8#"
        assert outcome.draw_reason is None

    def test_stalemate_is_draw(self, rules: ChessRulesEngine):
        outcome = rules.apply_move("7k/8/6K1/8/8/8/8/5Q2 w - - 0 1", "Qf7")

        assert outcome.is_draw
        assert not outcome.is_checkmate
        assert outcome.draw_reason == "stalemate"

    def test_insufficient_material_is_draw(self, rules: ChessRulesEngine):
        outcome = rules.apply_move("7k/8/8/8/8/8/6r1/7K w - - 0 1", "Kxg2")

        assert outcome.is_draw
        assert outcome.draw_reason == "insufficient_material"

    def test_fifty_move_rule_is_draw(self, rules: ChessRulesEngine):
        outcome = rules.apply_move("7k/8/8/8/8/8/8/R6K w - - 99 80", "Ra2")

        assert outcome.is_draw
        assert outcome.draw_reason == "fifty_moves"

    def test_check_is_not_game_end(self, rules: ChessRulesEngine):
        position = "4k3/8/8/8/8/8/8/R3K3 w - - 0 1"
        outcome = rules.apply_move(position, "Ra8")

        assert outcome.san == "Ra8+"
        assert not outcome.is_checkmate
        assert not outcome.is_draw
