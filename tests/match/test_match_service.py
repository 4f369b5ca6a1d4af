"""Tests for MatchService: creation, move validation, terminal states, events."""

import asyncio

import pytest

from chess_arena.container import ArenaServices
from chess_arena.events.models import ArenaEventType
from chess_arena.match.types import TournamentRef
from chess_arena.models.match import STARTING_POSITION, MatchStatus
from chess_arena.utils.db import session_scope
from chess_arena.utils.errors import ErrorCode, ErrorKind
from chess_arena.utils.security import Principal
from tests.conftest import FOOLS_MATE, SCHOLARS_MATE, draw_match, play_moves

AFTER_E4 = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"
AFTER_NC6 = "r1bqkbnr/pppp1ppp/2n5/4p3/4P3/5N2/PPPP1PPP/RNBQKB1R w KQkq - 2 3"


async def create_free_match(services: ArenaServices, admin: Principal, white="alice", black="bob"):
    result = await services.matches.create_match(admin, white, black)
    assert result.success, result.to_dict()
    return result.data


async def create_tournament_match(services: ArenaServices, white="alice", black="bob"):
    """Insert a match carrying bracket coordinates without a bracket."""
    tournament = await services.tournaments.create_tournament(
        Principal("root", frozenset({"admin"})), "Bracketless"
    )
    ref = TournamentRef(tournament_id=tournament.data.id, round=1, match_number=1)
    async with session_scope(services.session_factory) as session:
        match = services.matches.new_match(white, black, ref)
        session.add(match)
        await session.flush()
        match_id = match.id
    return match_id, tournament.data.id


# =============================================================================
# Creation
# =============================================================================


class TestCreateMatch:
    async def test_new_match_is_pending_at_start(self, services, admin):
        match = await create_free_match(services, admin)

        assert match.status == MatchStatus.PENDING
        assert match.position == STARTING_POSITION
        assert match.move_log == ()
        assert match.white_player_id == "alice"
        assert match.black_player_id == "bob"
        assert match.tournament_ref is None

    async def test_same_player_rejected(self, services, admin):
        result = await services.matches.create_match(admin, "alice", "alice")

        assert not result.success
        assert result.error_code == ErrorCode.SAME_PLAYER
        assert await services.matches.list_matches() == []

    async def test_blank_player_rejected(self, services, admin):
        result = await services.matches.create_match(admin, "alice", "  ")
        assert result.error_code == ErrorCode.INVALID_REQUEST

    async def test_requires_admin(self, services, player):
        result = await services.matches.create_match(player, "alice", "bob")
        assert result.error_code == ErrorCode.FORBIDDEN

        result = await services.matches.create_match(None, "alice", "bob")
        assert result.error_code == ErrorCode.UNAUTHORIZED

    async def test_list_newest_first(self, services, admin):
        first = await create_free_match(services, admin)
        second = await create_free_match(services, admin, "carol", "dave")

        ids = [m.id for m in await services.matches.list_matches()]
        assert ids == [second.id, first.id]

    async def test_get_unknown_match(self, services):
        result = await services.matches.get_match(9999)

        assert result.error_code == ErrorCode.MATCH_NOT_FOUND
        assert result.kind == ErrorKind.NOT_FOUND


# =============================================================================
# Moves
# =============================================================================


class TestSubmitMove:
    async def test_first_move_starts_match(self, services, admin, recorder):
        match = await create_free_match(services, admin)

        result = await services.matches.submit_move(match.id, "alice", "e4")

        assert result.success
        snapshot = result.data
        assert snapshot.position == AFTER_E4
        assert snapshot.status == MatchStatus.IN_PROGRESS
        assert snapshot.move_log == ("e4",)

        changed = recorder.of_type(ArenaEventType.MATCH_CHANGED)
        assert len(changed) == 1
        assert changed[0].match_id == match.id
        assert changed[0].data == {"matchId": match.id, "status": "in_progress", "move": "e4"}

    async def test_four_move_opening(self, services, admin):
        match = await create_free_match(services, admin, white="1", black="2")

        result = None
        for player_id, move in [("1", "e4"), ("2", "e5"), ("1", "Nf3"), ("2", "Nc6")]:
            result = await services.matches.submit_move(match.id, player_id, move)
            assert result.success, result.to_dict()

        assert result.data.position == AFTER_NC6
        assert result.data.status == MatchStatus.IN_PROGRESS
        assert result.data.move_log == ("e4", "e5", "Nf3", "Nc6")

    async def test_uci_move_logged_as_san(self, services, admin):
        match = await create_free_match(services, admin)

        result = await services.matches.submit_move(match.id, "alice", "g1f3")
        assert result.data.move_log == ("Nf3",)

    async def test_wrong_turn(self, services, admin, recorder):
        match = await create_free_match(services, admin)

        result = await services.matches.submit_move(match.id, "bob", "e5")

        assert result.error_code == ErrorCode.WRONG_TURN
        stored = (await services.matches.get_match(match.id)).data
        assert stored.position == STARTING_POSITION
        assert stored.status == MatchStatus.PENDING
        assert recorder.events == []

    async def test_not_a_participant(self, services, admin):
        match = await create_free_match(services, admin)

        result = await services.matches.submit_move(match.id, "mallory", "e4")
        assert result.error_code == ErrorCode.NOT_A_PARTICIPANT

    async def test_illegal_move(self, services, admin, recorder):
        match = await create_free_match(services, admin)

        result = await services.matches.submit_move(match.id, "alice", "e5")

        assert result.error_code == ErrorCode.ILLEGAL_MOVE
        assert result.message == "Illegal move"
        assert result.details["reason"]
        stored = (await services.matches.get_match(match.id)).data
        assert stored.move_log == ()
        assert recorder.events == []

    async def test_unknown_match(self, services):
        result = await services.matches.submit_move(404, "alice", "e4")
        assert result.error_code == ErrorCode.MATCH_NOT_FOUND

    async def test_rejection_order_completed_before_participant(self, services, admin):
        match = await create_free_match(services, admin)
        await play_moves(services, match.id, FOOLS_MATE)

        # A stranger on a finished match hears "completed", not "not a participant"
        result = await services.matches.submit_move(match.id, "mallory", "e4")
        assert result.error_code == ErrorCode.ALREADY_COMPLETED


class TestGameEnd:
    async def test_fools_mate_black_wins(self, services, admin):
        match = await create_free_match(services, admin)

        result = await play_moves(services, match.id, FOOLS_MATE)

        assert result.data.status == MatchStatus.BLACK_WON
        assert result.data.move_log == ("f3", "e5", "g4", "Qh4#")

    async def test_scholars_mate_white_wins(self, services, admin):
        match = await create_free_match(services, admin)

        result = await play_moves(services, match.id, SCHOLARS_MATE)
        assert result.data.status == MatchStatus.WHITE_WON

    async def test_stalemate_draw(self, services, admin):
        match = await create_free_match(services, admin)

        result = await draw_match(services, match.id)
        assert result.data.status == MatchStatus.DRAW

    async def test_terminal_match_is_immutable(self, services, admin):
        match = await create_free_match(services, admin)
        await play_moves(services, match.id, FOOLS_MATE)
        before = (await services.matches.get_match(match.id)).data

        result = await services.matches.submit_move(match.id, "alice", "e4")

        assert result.error_code == ErrorCode.ALREADY_COMPLETED
        after = (await services.matches.get_match(match.id)).data
        assert after.position == before.position
        assert after.move_log == before.move_log
        assert after.status == MatchStatus.BLACK_WON

    async def test_free_match_emits_no_completion(self, services, admin, recorder):
        match = await create_free_match(services, admin)
        await play_moves(services, match.id, FOOLS_MATE)

        assert recorder.of_type(ArenaEventType.MATCH_COMPLETED) == []
        statuses = [e.data["status"] for e in recorder.of_type(ArenaEventType.MATCH_CHANGED)]
        assert statuses == ["in_progress", "in_progress", "in_progress", "black_won"]

    async def test_tournament_match_emits_completion_after_change(self, services, recorder):
        match_id, tournament_id = await create_tournament_match(services)
        recorder.clear()

        await play_moves(services, match_id, FOOLS_MATE)

        completed = recorder.of_type(ArenaEventType.MATCH_COMPLETED)
        assert len(completed) == 1
        assert completed[0].match_id == match_id
        assert completed[0].tournament_id == tournament_id
        # Final MATCH_CHANGED precedes MATCH_COMPLETED
        types = [e.event_type for e in recorder.events if e.match_id == match_id]
        assert types[-2:] == [ArenaEventType.MATCH_CHANGED, ArenaEventType.MATCH_COMPLETED]


# =============================================================================
# Concurrency
# =============================================================================


class TestConcurrentMoves:
    async def test_same_player_twice_only_one_applies(self, services, admin):
        """Two concurrent first moves by white: exactly one is applied."""
        match = await create_free_match(services, admin)

        results = await asyncio.gather(
            services.matches.submit_move(match.id, "alice", "e4"),
            services.matches.submit_move(match.id, "alice", "d4"),
        )

        successes = [r for r in results if r.success]
        failures = [r for r in results if not r.success]
        assert len(successes) == 1
        assert len(failures) == 1
        assert failures[0].error_code == ErrorCode.WRONG_TURN

        stored = (await services.matches.get_match(match.id)).data
        assert len(stored.move_log) == 1

    async def test_racing_players_are_linearized(self, services, admin):
        """White's move and black's reply submitted together never interleave."""
        match = await create_free_match(services, admin)

        results = await asyncio.gather(
            services.matches.submit_move(match.id, "alice", "e4"),
            services.matches.submit_move(match.id, "bob", "e5"),
        )

        stored = (await services.matches.get_match(match.id)).data
        applied = [r for r in results if r.success]
        assert len(stored.move_log) == len(applied)
        assert stored.move_log[0] == "e4"


# =============================================================================
# Admin operations
# =============================================================================


class TestAbortAndDelete:
    async def test_abort_pending_match(self, services, admin, recorder):
        match = await create_free_match(services, admin)

        result = await services.matches.abort_match(admin, match.id)

        assert result.data.status == MatchStatus.ABORTED
        assert [e.data["status"] for e in recorder.of_type(ArenaEventType.MATCH_CHANGED)] == [
            "aborted"
        ]

    async def test_abort_finished_match_rejected(self, services, admin):
        match = await create_free_match(services, admin)
        await play_moves(services, match.id, FOOLS_MATE)

        result = await services.matches.abort_match(admin, match.id)
        assert result.error_code == ErrorCode.ALREADY_COMPLETED

    async def test_aborted_tournament_match_does_not_complete(self, services, admin, recorder):
        match_id, _ = await create_tournament_match(services)
        recorder.clear()

        await services.matches.abort_match(admin, match_id)

        assert recorder.of_type(ArenaEventType.MATCH_COMPLETED) == []
        result = await services.matches.submit_move(match_id, "alice", "e4")
        assert result.error_code == ErrorCode.ALREADY_COMPLETED

    async def test_delete_free_match(self, services, admin):
        match = await create_free_match(services, admin)

        result = await services.matches.delete_match(admin, match.id)

        assert result.success
        assert (await services.matches.get_match(match.id)).error_code == ErrorCode.MATCH_NOT_FOUND

    async def test_delete_tournament_match_rejected(self, services, admin):
        match_id, _ = await create_tournament_match(services)

        result = await services.matches.delete_match(admin, match_id)

        assert result.error_code == ErrorCode.MATCH_IN_TOURNAMENT
        assert (await services.matches.get_match(match_id)).success

    @pytest.mark.parametrize("operation", ["abort_match", "delete_match"])
    async def test_requires_admin(self, services, admin, player, operation):
        match = await create_free_match(services, admin)

        result = await getattr(services.matches, operation)(player, match.id)
        assert result.error_code == ErrorCode.FORBIDDEN
