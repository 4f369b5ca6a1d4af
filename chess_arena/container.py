"""Service container.

Everything with process lifetime (database engine, locks, event bus,
services, broadcaster) is built here once at startup, wired together
explicitly and torn down at shutdown.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from chess_arena.config import Settings
from chess_arena.engine.core import ChessRulesEngine
from chess_arena.events.bus import EventBus
from chess_arena.events.models import ArenaEventType
from chess_arena.match.service import MatchService
from chess_arena.tournament.engine import TournamentOrchestrator
from chess_arena.tournament.models import ByePolicy, DrawPolicy
from chess_arena.utils.db import close_db, create_engine, create_session_factory, init_db
from chess_arena.utils.locks import LockManager, create_lock_manager
from chess_arena.ws.manager import LiveUpdateBroadcaster

logger = logging.getLogger(__name__)


@dataclass
class ArenaServices:
    """Process-wide collaborators."""

    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    locks: LockManager
    events: EventBus
    rules: ChessRulesEngine
    matches: MatchService
    tournaments: TournamentOrchestrator
    broadcaster: LiveUpdateBroadcaster

    async def close(self) -> None:
        await self.broadcaster.shutdown()
        await self.locks.close()
        await close_db(self.engine)


async def build_services(settings: Settings) -> ArenaServices:
    """Create tables, construct every service and connect the event flow.

    MATCH_COMPLETED -> TournamentOrchestrator.on_match_completed
    MATCH_CHANGED / TOURNAMENT_CHANGED -> LiveUpdateBroadcaster
    """
    engine = create_engine(settings.database_url, echo=settings.db_echo)
    await init_db(engine)
    session_factory = create_session_factory(engine)

    locks = create_lock_manager(
        settings.redis_url,
        settings.lock_timeout_ms,
        settings.lock_acquire_timeout_ms,
    )
    events = EventBus()
    rules = ChessRulesEngine()

    matches = MatchService(session_factory, rules, locks, events)
    tournaments = TournamentOrchestrator(
        session_factory,
        matches,
        locks,
        events,
        draw_policy=DrawPolicy(settings.tournament_draw_policy),
        bye_policy=ByePolicy(settings.tournament_bye_policy),
        default_max_participants=settings.tournament_max_participants,
    )
    broadcaster = LiveUpdateBroadcaster(max_connections=settings.ws_max_connections)

    events.subscribe(
        {ArenaEventType.MATCH_COMPLETED},
        tournaments.on_match_completed,
        name="tournaments.on_match_completed",
    )
    broadcaster.attach(events)

    logger.info(
        f"Services ready (draw_policy={tournaments.draw_policy.value}, "
        f"bye_policy={tournaments.bye_policy.value})"
    )
    return ArenaServices(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        locks=locks,
        events=events,
        rules=rules,
        matches=matches,
        tournaments=tournaments,
        broadcaster=broadcaster,
    )
