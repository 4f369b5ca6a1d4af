"""Match lifecycle service.

Owns every mutation of a match's position, status and move log.

State machine:
    pending -> in_progress -> {white_won, black_won, draw}
    pending | in_progress -> aborted
Terminal states never change again.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chess_arena.engine.core import WHITE, ChessRulesEngine, IllegalMoveError
from chess_arena.events.bus import EventBus
from chess_arena.events.models import match_changed, match_completed
from chess_arena.match.types import MatchSnapshot, TournamentRef
from chess_arena.models.match import Match, MatchStatus
from chess_arena.utils.db import session_scope
from chess_arena.utils.errors import ActionResult, ErrorCode
from chess_arena.utils.locks import LockManager, LockType
from chess_arena.utils.security import ADMIN_ROLE, Principal, require_roles

logger = logging.getLogger(__name__)


class MatchService:
    """Service for match operations."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        rules: ChessRulesEngine,
        locks: LockManager,
        events: EventBus,
    ):
        self._session_factory = session_factory
        self._rules = rules
        self._locks = locks
        self._events = events

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_match(self, match_id: int) -> ActionResult:
        async with self._session_factory() as session:
            match = await session.get(Match, match_id)
            if match is None:
                return _not_found(match_id)
            return ActionResult.ok(MatchSnapshot.from_model(match))

    async def list_matches(self, tournament_id: int | None = None) -> list[MatchSnapshot]:
        """All matches, newest first."""
        stmt = select(Match).order_by(Match.created_at.desc(), Match.id.desc())
        if tournament_id is not None:
            stmt = stmt.where(Match.tournament_id == tournament_id)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [MatchSnapshot.from_model(m) for m in result.scalars()]

    # =========================================================================
    # Admin operations
    # =========================================================================

    async def create_match(
        self,
        actor: Principal | None,
        white_player_id: str,
        black_player_id: str,
    ) -> ActionResult:
        """Create a free (non-tournament) match in ``pending``."""
        auth = require_roles(actor, [ADMIN_ROLE])
        if not auth.success:
            return auth

        white_player_id = (white_player_id or "").strip()
        black_player_id = (black_player_id or "").strip()
        if not white_player_id or not black_player_id:
            return ActionResult.fail(ErrorCode.INVALID_REQUEST, "Both player ids are required")
        if white_player_id == black_player_id:
            return ActionResult.fail(
                ErrorCode.SAME_PLAYER,
                "White and black must be different players",
                details={"playerId": white_player_id},
            )

        async with session_scope(self._session_factory) as session:
            match = self.new_match(white_player_id, black_player_id)
            session.add(match)
            await session.flush()
            snapshot = MatchSnapshot.from_model(match)

        logger.info(f"Match {snapshot.id} created: {white_player_id} vs {black_player_id}")
        return ActionResult.ok(snapshot)

    async def abort_match(self, actor: Principal | None, match_id: int) -> ActionResult:
        """Force a non-terminal match into ``aborted``.

        Aborted tournament matches never advance the bracket.
        """
        auth = require_roles(actor, [ADMIN_ROLE])
        if not auth.success:
            return auth

        async with self._locks.lock(LockType.MATCH, match_id):
            async with session_scope(self._session_factory) as session:
                match = await session.get(Match, match_id)
                if match is None:
                    return _not_found(match_id)
                if match.is_terminal:
                    return _already_completed(match)

                match.status = MatchStatus.ABORTED.value
                await session.flush()
                snapshot = MatchSnapshot.from_model(match)

            logger.info(f"Match {match_id} aborted by {actor.id}")
            await self._events.publish(match_changed(match_id, snapshot.status.value))

        return ActionResult.ok(snapshot)

    async def delete_match(self, actor: Principal | None, match_id: int) -> ActionResult:
        """Delete a free match. Bracket-referenced matches are never deleted."""
        auth = require_roles(actor, [ADMIN_ROLE])
        if not auth.success:
            return auth

        async with self._locks.lock(LockType.MATCH, match_id):
            async with session_scope(self._session_factory) as session:
                match = await session.get(Match, match_id)
                if match is None:
                    return _not_found(match_id)
                if match.in_tournament:
                    return ActionResult.fail(
                        ErrorCode.MATCH_IN_TOURNAMENT,
                        "Tournament matches cannot be deleted",
                        details={"matchId": match_id, "tournamentId": match.tournament_id},
                    )
                await session.delete(match)

        logger.info(f"Match {match_id} deleted by {actor.id}")
        return ActionResult.ok({"matchId": match_id})

    # =========================================================================
    # Play
    # =========================================================================

    async def submit_move(self, match_id: int, player_id: str, move_text: str) -> ActionResult:
        """Validate and apply one move.

        Checks run in order: not found, already completed, not a participant,
        wrong turn, illegal move. Every rejection leaves the row untouched.

        Moves on one match are linearized by the match lock; the second of
        two concurrent submissions sees the first one's position.
        """
        async with self._locks.lock(LockType.MATCH, match_id):
            async with session_scope(self._session_factory) as session:
                match = await session.get(Match, match_id)
                if match is None:
                    return _not_found(match_id)
                if match.is_terminal:
                    return _already_completed(match)

                color = match.color_of(player_id)
                if color is None:
                    return ActionResult.fail(
                        ErrorCode.NOT_A_PARTICIPANT,
                        "You are not a player in this match",
                        details={"matchId": match_id},
                    )

                try:
                    side_to_move = self._rules.side_to_move(match.position)
                    if side_to_move != color:
                        return ActionResult.fail(
                            ErrorCode.WRONG_TURN,
                            "It's not your turn",
                            details={"matchId": match_id, "sideToMove": side_to_move},
                        )
                    outcome = self._rules.apply_move(match.position, move_text)
                except IllegalMoveError as e:
                    logger.debug(f"Match {match_id}: rejected {move_text!r}: {e.reason}")
                    return ActionResult.fail(
                        ErrorCode.ILLEGAL_MOVE,
                        "Illegal move",
                        details={"matchId": match_id, "move": move_text, "reason": e.reason},
                    )

                status = match.match_status
                if status == MatchStatus.PENDING:
                    status = MatchStatus.IN_PROGRESS
                if outcome.is_checkmate:
                    status = MatchStatus.WHITE_WON if color == WHITE else MatchStatus.BLACK_WON
                elif outcome.is_draw:
                    status = MatchStatus.DRAW

                match.position = outcome.new_position
                match.moves = [*(match.moves or []), outcome.san]
                match.status = status.value
                await session.flush()
                snapshot = MatchSnapshot.from_model(match)

            logger.debug(
                f"Match {match_id}: {player_id} played {outcome.san} -> {status.value}"
            )

            # Published under the match lock so observers see moves in order
            await self._events.publish(match_changed(match_id, status.value, outcome.san))
            if status.is_decided and snapshot.tournament_ref is not None:
                logger.info(f"Tournament match {match_id} finished: {status.value}")
                await self._events.publish(
                    match_completed(match_id, snapshot.tournament_ref.tournament_id)
                )

        return ActionResult.ok(snapshot)

    # =========================================================================
    # Tournament helpers (called inside the orchestrator's transaction)
    # =========================================================================

    @staticmethod
    def new_match(
        white_player_id: str,
        black_player_id: str,
        ref: TournamentRef | None = None,
    ) -> Match:
        match = Match(
            white_player_id=white_player_id,
            black_player_id=black_player_id,
            status=MatchStatus.PENDING.value,
            position=ChessRulesEngine.starting_position,
            moves=[],
        )
        if ref is not None:
            match.tournament_id = ref.tournament_id
            match.tournament_round = ref.round
            match.tournament_match_number = ref.match_number
            match.tournament_game_number = ref.game_number
        return match

    @staticmethod
    async def find_bracket_match(
        session: AsyncSession,
        ref: TournamentRef,
    ) -> Match | None:
        """Existing match at exactly these bracket coordinates, if any."""
        result = await session.execute(
            select(Match).where(
                Match.tournament_id == ref.tournament_id,
                Match.tournament_round == ref.round,
                Match.tournament_match_number == ref.match_number,
                Match.tournament_game_number == ref.game_number,
            )
        )
        return result.scalar_one_or_none()


def _not_found(match_id: int) -> ActionResult:
    return ActionResult.fail(
        ErrorCode.MATCH_NOT_FOUND,
        f"Match not found: {match_id}",
        details={"matchId": match_id},
    )


def _already_completed(match: Match) -> ActionResult:
    return ActionResult.fail(
        ErrorCode.ALREADY_COMPLETED,
        "Match is already completed",
        details={"matchId": match.id, "status": match.status},
    )


