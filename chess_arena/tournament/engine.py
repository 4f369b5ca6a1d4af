"""
Tournament orchestrator.

Drives a tournament from registration to champion:

    registration --start--> in_progress --final decided--> completed
    registration | in_progress --cancel--> cancelled

Concurrency
─────────────────────────────────────────────────────────────────
Every read-modify-write of a tournament row (registration, start, bracket
advance, cancel) runs under ``lock(LockType.TOURNAMENT, id)`` inside one
transaction, so two results from the same round can never both write the
next-round slot from a stale bracket.

Match completions arrive from ``MatchService.submit_move`` while it still
holds the match lock. Lock order is therefore match -> tournament, and
nothing here takes a match lock while holding a tournament lock.

Next-round games are created check-then-create: an existing match at the
same (tournament, round, matchNumber, gameNumber) is reused, so a
redelivered completion never creates a second game.
─────────────────────────────────────────────────────────────────
"""

import logging
import random
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chess_arena.events.bus import EventBus
from chess_arena.events.models import ArenaEvent, tournament_changed
from chess_arena.match.service import MatchService
from chess_arena.match.types import TournamentRef
from chess_arena.models.match import Match, MatchStatus
from chess_arena.models.tournament import Tournament, TournamentStatus
from chess_arena.tournament.bracket import BracketEngine
from chess_arena.tournament.models import (
    Bracket,
    ByePolicy,
    DrawPolicy,
    NextMatchRequest,
    TournamentSnapshot,
)
from chess_arena.utils.db import session_scope
from chess_arena.utils.errors import ActionResult, ErrorCode
from chess_arena.utils.locks import LockManager, LockType
from chess_arena.utils.security import ADMIN_ROLE, Principal, require_roles

logger = logging.getLogger(__name__)

MAX_SEED = 2**31 - 1


class TournamentOrchestrator:
    """Tournament lifecycle and bracket progression."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        matches: MatchService,
        locks: LockManager,
        events: EventBus,
        bracket_engine: BracketEngine | None = None,
        draw_policy: DrawPolicy = DrawPolicy.REPLAY,
        bye_policy: ByePolicy = ByePolicy.AUTO_ADVANCE,
        default_max_participants: int = 0,
    ):
        self._session_factory = session_factory
        self._matches = matches
        self._locks = locks
        self._events = events
        self._brackets = bracket_engine or BracketEngine()
        self.draw_policy = DrawPolicy(draw_policy)
        self.bye_policy = ByePolicy(bye_policy)
        self.default_max_participants = default_max_participants

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_tournament(self, tournament_id: int) -> ActionResult:
        async with self._session_factory() as session:
            tournament = await session.get(Tournament, tournament_id)
            if tournament is None:
                return _not_found(tournament_id)
            return ActionResult.ok(TournamentSnapshot.from_model(tournament))

    async def list_tournaments(self) -> list[TournamentSnapshot]:
        """All tournaments, newest first."""
        stmt = select(Tournament).order_by(Tournament.created_at.desc(), Tournament.id.desc())
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [TournamentSnapshot.from_model(t) for t in result.scalars()]

    async def get_tournament_bracket(self, tournament_id: int) -> ActionResult:
        result = await self.get_tournament(tournament_id)
        if not result.success:
            return result
        snapshot: TournamentSnapshot = result.data
        if snapshot.bracket is None:
            return ActionResult.fail(
                ErrorCode.BRACKET_NOT_FOUND,
                "Tournament has not started",
                details={"tournamentId": tournament_id},
            )
        return ActionResult.ok(snapshot.bracket)

    # =========================================================================
    # Admin operations
    # =========================================================================

    async def create_tournament(
        self,
        actor: Principal | None,
        name: str,
        description: str | None = None,
        max_participants: int | None = None,
    ) -> ActionResult:
        auth = require_roles(actor, [ADMIN_ROLE])
        if not auth.success:
            return auth

        name = (name or "").strip()
        if not name:
            return ActionResult.fail(ErrorCode.INVALID_REQUEST, "Tournament name is required")
        if max_participants is None:
            max_participants = self.default_max_participants
        if max_participants < 0:
            return ActionResult.fail(ErrorCode.INVALID_REQUEST, "max_participants must be >= 0")

        async with session_scope(self._session_factory) as session:
            tournament = Tournament(
                name=name,
                description=description,
                status=TournamentStatus.REGISTRATION.value,
                max_participants=max_participants,
                participant_ids=[],
            )
            session.add(tournament)
            await session.flush()
            snapshot = TournamentSnapshot.from_model(tournament)

        logger.info(f"Tournament {snapshot.id} created: {name!r}")
        return ActionResult.ok(snapshot)

    async def update_tournament(
        self,
        actor: Principal | None,
        tournament_id: int,
        name: str | None = None,
        description: str | None = None,
        max_participants: int | None = None,
    ) -> ActionResult:
        """Edit tournament details while registration is open."""
        auth = require_roles(actor, [ADMIN_ROLE])
        if not auth.success:
            return auth
        if name is not None and not name.strip():
            return ActionResult.fail(ErrorCode.INVALID_REQUEST, "Tournament name is required")
        if max_participants is not None and max_participants < 0:
            return ActionResult.fail(ErrorCode.INVALID_REQUEST, "max_participants must be >= 0")

        async with self._locks.lock(LockType.TOURNAMENT, tournament_id):
            async with session_scope(self._session_factory) as session:
                tournament = await session.get(Tournament, tournament_id)
                if tournament is None:
                    return _not_found(tournament_id)
                if tournament.status != TournamentStatus.REGISTRATION.value:
                    return _not_open(tournament)
                if max_participants is not None and 0 < max_participants < tournament.participant_count:
                    return ActionResult.fail(
                        ErrorCode.INVALID_REQUEST,
                        "Cap is below the number of registered participants",
                        details={"registered": tournament.participant_count},
                    )

                # All checks done; nothing below returns early
                if name is not None:
                    tournament.name = name.strip()
                if description is not None:
                    tournament.description = description
                if max_participants is not None:
                    tournament.max_participants = max_participants

                await session.flush()
                snapshot = TournamentSnapshot.from_model(tournament)

        return ActionResult.ok(snapshot)

    async def start_tournament(
        self,
        actor: Principal | None,
        tournament_id: int,
        seed: int | None = None,
    ) -> ActionResult:
        """Build the bracket and create every playable first-round game.

        The seed is stored on the tournament; omitting it draws a random one.
        """
        auth = require_roles(actor, [ADMIN_ROLE])
        if not auth.success:
            return auth

        async with self._locks.lock(LockType.TOURNAMENT, tournament_id):
            async with session_scope(self._session_factory) as session:
                tournament = await session.get(Tournament, tournament_id)
                if tournament is None:
                    return _not_found(tournament_id)
                if tournament.status != TournamentStatus.REGISTRATION.value:
                    return _not_open(tournament)
                if tournament.participant_count < 2:
                    return ActionResult.fail(
                        ErrorCode.TOO_FEW_PARTICIPANTS,
                        "At least 2 participants are required",
                        details={"registered": tournament.participant_count},
                    )

                if seed is None:
                    seed = random.SystemRandom().randint(0, MAX_SEED)

                bracket = self._brackets.build_single_elimination(
                    list(tournament.participant_ids), seed
                )
                if self.bye_policy == ByePolicy.AUTO_ADVANCE:
                    bracket = self._brackets.resolve_byes(bracket)
                bracket = await self._create_ready_matches(session, tournament.id, bracket)

                tournament.bracket_data = bracket.to_json()
                tournament.seed = seed
                tournament.status = TournamentStatus.IN_PROGRESS.value
                tournament.start_date = datetime.now(timezone.utc)
                await session.flush()
                snapshot = TournamentSnapshot.from_model(tournament)

            logger.info(
                f"Tournament {tournament_id} started: {len(snapshot.participant_ids)} players, "
                f"{bracket.round_count} rounds, seed={seed}"
            )
            await self._events.publish(tournament_changed(tournament_id, None))

        return ActionResult.ok(snapshot)

    async def cancel_tournament(self, actor: Principal | None, tournament_id: int) -> ActionResult:
        """Stop a tournament and abort its unfinished games."""
        auth = require_roles(actor, [ADMIN_ROLE])
        if not auth.success:
            return auth

        async with self._locks.lock(LockType.TOURNAMENT, tournament_id):
            async with session_scope(self._session_factory) as session:
                tournament = await session.get(Tournament, tournament_id)
                if tournament is None:
                    return _not_found(tournament_id)
                if tournament.tournament_status.is_terminal:
                    return ActionResult.fail(
                        ErrorCode.ALREADY_FINISHED,
                        "Tournament is already finished",
                        details={"tournamentId": tournament_id, "status": tournament.status},
                    )

                tournament.status = TournamentStatus.CANCELLED.value
                tournament.end_date = datetime.now(timezone.utc)
                await session.flush()
                snapshot = TournamentSnapshot.from_model(tournament)

        # Match locks are taken only after the tournament lock is released
        aborted = 0
        for match in await self._matches.list_matches(tournament_id=tournament_id):
            if match.is_terminal:
                continue
            result = await self._matches.abort_match(actor, match.id)
            if result.success:
                aborted += 1

        logger.info(f"Tournament {tournament_id} cancelled, {aborted} matches aborted")
        await self._events.publish(tournament_changed(tournament_id, None))
        return ActionResult.ok(snapshot)

    async def resync_match(
        self,
        actor: Principal | None,
        tournament_id: int,
        match_id: int,
    ) -> ActionResult:
        """Re-deliver a match completion to the bracket."""
        auth = require_roles(actor, [ADMIN_ROLE])
        if not auth.success:
            return auth

        result = await self._matches.get_match(match_id)
        if not result.success:
            return result
        match = result.data
        if match.tournament_ref is None or match.tournament_ref.tournament_id != tournament_id:
            return ActionResult.fail(
                ErrorCode.MATCH_NOT_IN_TOURNAMENT,
                "Match does not belong to this tournament",
                details={"tournamentId": tournament_id, "matchId": match_id},
            )
        if not match.status.is_decided:
            return ActionResult.fail(
                ErrorCode.INVALID_REQUEST,
                "Match has not been decided",
                details={"matchId": match_id, "status": match.status.value},
            )

        await self.process_match_result(match_id)
        return await self.get_tournament(tournament_id)

    # =========================================================================
    # Participant operations
    # =========================================================================

    async def register_participant(self, tournament_id: int, user_id: str) -> ActionResult:
        user_id = (user_id or "").strip()
        if not user_id:
            return ActionResult.fail(ErrorCode.INVALID_REQUEST, "User id is required")

        async with self._locks.lock(LockType.TOURNAMENT, tournament_id):
            async with session_scope(self._session_factory) as session:
                tournament = await session.get(Tournament, tournament_id)
                if tournament is None:
                    return _not_found(tournament_id)
                if tournament.status != TournamentStatus.REGISTRATION.value:
                    return _not_open(tournament)

                participants = list(tournament.participant_ids or [])
                cap = tournament.max_participants
                if cap > 0 and len(participants) >= cap:
                    return ActionResult.fail(
                        ErrorCode.TOURNAMENT_FULL,
                        "Tournament is full",
                        details={"tournamentId": tournament_id, "maxParticipants": cap},
                    )
                if user_id in participants:
                    return ActionResult.fail(
                        ErrorCode.ALREADY_REGISTERED,
                        "Already registered",
                        details={"tournamentId": tournament_id, "userId": user_id},
                    )

                tournament.participant_ids = [*participants, user_id]
                await session.flush()
                snapshot = TournamentSnapshot.from_model(tournament)

            await self._events.publish(tournament_changed(tournament_id, None))

        logger.debug(f"{user_id} registered for tournament {tournament_id}")
        return ActionResult.ok(snapshot)

    # =========================================================================
    # Bracket progression
    # =========================================================================

    async def on_match_completed(self, event: ArenaEvent) -> None:
        """Event bus handler for ``MATCH_COMPLETED``."""
        if event.match_id is None:
            logger.warning(f"MATCH_COMPLETED without match id (event_id={event.event_id})")
            return
        await self.process_match_result(event.match_id)

    async def process_match_result(self, match_id: int) -> bool:
        """Advance the bracket for a decided tournament match.

        Returns True if the bracket changed. Redelivery of an already applied
        result, a superseded replay game, or a result for a tournament that
        is no longer in progress changes nothing.

        Raises:
            BracketInvariantError: stored bracket disagrees with the match
        """
        async with self._session_factory() as session:
            match = await session.get(Match, match_id)
            if match is None:
                logger.warning(f"Completed match {match_id} no longer exists")
                return False
            if not match.in_tournament:
                return False
            tournament_id = match.tournament_id

        async with self._locks.lock(LockType.TOURNAMENT, tournament_id):
            async with session_scope(self._session_factory) as session:
                changed = await self._apply_match_result(session, tournament_id, match_id)

            if changed:
                await self._events.publish(tournament_changed(tournament_id, match_id))
        return changed

    async def _apply_match_result(
        self,
        session: AsyncSession,
        tournament_id: int,
        match_id: int,
    ) -> bool:
        tournament = await session.get(Tournament, tournament_id)
        match = await session.get(Match, match_id)
        if tournament is None or match is None:
            return False

        if tournament.status != TournamentStatus.IN_PROGRESS.value:
            logger.info(
                f"Ignoring result of match {match_id}: tournament {tournament_id} is {tournament.status}"
            )
            return False
        if not tournament.bracket_data:
            logger.error(f"Tournament {tournament_id} is in progress without a bracket")
            return False

        status = match.match_status
        if not status.is_decided:
            return False

        round_number = match.tournament_round
        match_number = match.tournament_match_number
        bracket = Bracket.from_json(tournament.bracket_data)
        slot = bracket.get_slot(round_number, match_number)

        if slot.match_id != match.id:
            logger.info(
                f"Ignoring result of match {match_id}: slot ({round_number}, {match_number}) "
                f"now tracks match {slot.match_id}"
            )
            return False

        before = bracket.to_json()

        winner_id = match.winner_id()
        if status == MatchStatus.DRAW:
            if self.draw_policy == DrawPolicy.REPLAY:
                bracket = await self._schedule_replay(session, tournament, match, bracket)
                winner_id = None
            else:
                winner_id = self._coin_flip(tournament, match)
                logger.info(f"Match {match_id} drawn; coin flip advances {winner_id}")

        if winner_id is not None:
            result = self._brackets.advance(
                bracket, round_number, match_number, winner_id, status.value
            )
            bracket = result.bracket
            if self.bye_policy == ByePolicy.AUTO_ADVANCE:
                bracket = self._brackets.resolve_byes(bracket)
            bracket = await self._create_ready_matches(session, tournament.id, bracket)

        if bracket.to_json() == before:
            logger.debug(f"Result of match {match_id} already applied")
            return False

        tournament.bracket_data = bracket.to_json()
        if bracket.is_complete:
            tournament.status = TournamentStatus.COMPLETED.value
            tournament.end_date = datetime.now(timezone.utc)
            logger.info(f"Tournament {tournament_id} completed, champion {bracket.champion_id}")
        return True

    async def _schedule_replay(
        self,
        session: AsyncSession,
        tournament: Tournament,
        match: Match,
        bracket: Bracket,
    ) -> Bracket:
        """Replace a drawn game with a new one, colors swapped."""
        ref = TournamentRef(
            tournament_id=tournament.id,
            round=match.tournament_round,
            match_number=match.tournament_match_number,
            game_number=(match.tournament_game_number or 1) + 1,
        )
        replay = await self._get_or_create_match(
            session, ref, white=match.black_player_id, black=match.white_player_id
        )
        logger.info(f"Match {match.id} drawn; replay is match {replay.id}")
        return self._brackets.assign_match(
            bracket, ref.round, ref.match_number, replay.id, status=MatchStatus.DRAW.value
        )

    @staticmethod
    def _coin_flip(tournament: Tournament, match: Match) -> str:
        rng = random.Random(f"{tournament.seed}:{match.id}")
        return rng.choice([match.white_player_id, match.black_player_id])

    async def _create_ready_matches(
        self,
        session: AsyncSession,
        tournament_id: int,
        bracket: Bracket,
    ) -> Bracket:
        """Create a game for every slot holding two players and no game yet.

        Covers ``AdvanceResult.next_match`` as well as slots filled by a bye
        cascade, so the advance path does not consult ``next_match`` itself.
        """
        for request in self._brackets.ready_slots(bracket):
            match = await self._get_or_create_next(session, tournament_id, request)
            bracket = self._brackets.assign_match(
                bracket, request.round, request.match_number, match.id
            )
        return bracket

    async def _get_or_create_next(
        self,
        session: AsyncSession,
        tournament_id: int,
        request: NextMatchRequest,
    ) -> Match:
        ref = TournamentRef(
            tournament_id=tournament_id,
            round=request.round,
            match_number=request.match_number,
        )
        return await self._get_or_create_match(
            session, ref, white=request.player1_id, black=request.player2_id
        )

    async def _get_or_create_match(
        self,
        session: AsyncSession,
        ref: TournamentRef,
        white: str,
        black: str,
    ) -> Match:
        existing = await MatchService.find_bracket_match(session, ref)
        if existing is not None:
            logger.info(
                f"Match for tournament {ref.tournament_id} slot ({ref.round}, {ref.match_number}) "
                f"game {ref.game_number} already exists: {existing.id}"
            )
            return existing

        match = MatchService.new_match(white, black, ref)
        session.add(match)
        await session.flush()
        logger.info(
            f"Created match {match.id} for tournament {ref.tournament_id} "
            f"slot ({ref.round}, {ref.match_number}): {white} vs {black}"
        )
        return match


def _not_found(tournament_id: int) -> ActionResult:
    return ActionResult.fail(
        ErrorCode.TOURNAMENT_NOT_FOUND,
        f"Tournament not found: {tournament_id}",
        details={"tournamentId": tournament_id},
    )


def _not_open(tournament: Tournament) -> ActionResult:
    return ActionResult.fail(
        ErrorCode.NOT_OPEN_FOR_REGISTRATION,
        "Tournament is not open for registration",
        details={"tournamentId": tournament.id, "status": tournament.status},
    )
