"""Shared test fixtures and helpers."""

from __future__ import annotations

import asyncio
import time
from typing import Any

import pytest
import pytest_asyncio

from chess_arena.config import Settings
from chess_arena.container import ArenaServices, build_services
from chess_arena.events.models import ArenaEvent, ArenaEventType
from chess_arena.models.match import Match, MatchStatus
from chess_arena.utils.db import session_scope
from chess_arena.utils.security import ADMIN_ROLE, Principal

# White mates on move 4
SCHOLARS_MATE = ["e4", "e5", "Qh5", "Nc6", "Bc4", "Nf6", "Qxf7#"]
# Black mates on move 2
FOOLS_MATE = ["f3", "e5", "g4", "Qh4#"]
# White to move; Qf7 stalemates the black king on h8
STALEMATE_IN_ONE = "7k/8/6K1/8/8/8/8/5Q2 w - - 0 1"


# =============================================================================
# Settings & services
# =============================================================================


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a fresh SQLite file per test."""
    return Settings(
        app_env="test",
        app_debug=False,
        log_level="WARNING",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'arena.db'}",
        redis_url=None,
        lock_acquire_timeout_ms=5000,
        tournament_draw_policy="replay",
        tournament_bye_policy="auto_advance",
    )


@pytest_asyncio.fixture
async def services(settings: Settings):
    """Fully wired service container."""
    svc = await build_services(settings)
    yield svc
    await svc.close()


@pytest.fixture
def admin() -> Principal:
    return Principal(id="admin-1", roles=frozenset({ADMIN_ROLE}))


@pytest.fixture
def player() -> Principal:
    return Principal(id="alice", roles=frozenset())


# =============================================================================
# Event recording
# =============================================================================


class EventRecorder:
    """Collects every event published on a bus."""

    def __init__(self) -> None:
        self.events: list[ArenaEvent] = []

    async def __call__(self, event: ArenaEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: ArenaEventType) -> list[ArenaEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def clear(self) -> None:
        self.events.clear()


@pytest.fixture
def recorder(services: ArenaServices) -> EventRecorder:
    rec = EventRecorder()
    services.events.subscribe(set(ArenaEventType), rec, name="test.recorder")
    return rec


# =============================================================================
# Game helpers
# =============================================================================


async def play_moves(services: ArenaServices, match_id: int, moves: list[str]):
    """Submit ``moves`` alternately as whichever player is to move."""
    result = None
    for move in moves:
        snapshot = (await services.matches.get_match(match_id)).data
        side = services.rules.side_to_move(snapshot.position)
        player_id = snapshot.white_player_id if side == "white" else snapshot.black_player_id
        result = await services.matches.submit_move(match_id, player_id, move)
        assert result.success, result.to_dict()
    return result


async def win_match(services: ArenaServices, match_id: int, winner_id: str):
    """Play a short mating line that ends with ``winner_id`` winning."""
    snapshot = (await services.matches.get_match(match_id)).data
    if winner_id == snapshot.white_player_id:
        return await play_moves(services, match_id, SCHOLARS_MATE)
    assert winner_id == snapshot.black_player_id
    return await play_moves(services, match_id, FOOLS_MATE)


async def set_position(services: ArenaServices, match_id: int, fen: str) -> None:
    """Overwrite a match position directly in the database."""
    async with session_scope(services.session_factory) as session:
        match = await session.get(Match, match_id)
        match.position = fen
        match.status = MatchStatus.IN_PROGRESS.value


async def draw_match(services: ArenaServices, match_id: int):
    """Reach a stalemate through a real move."""
    await set_position(services, match_id, STALEMATE_IN_ONE)
    return await play_moves(services, match_id, ["Qf7"])


async def registered_tournament(
    services: ArenaServices,
    admin: Principal,
    players: list[str],
    **kwargs: Any,
):
    """Create a tournament and register ``players`` in order."""
    result = await services.tournaments.create_tournament(admin, "Test Cup", **kwargs)
    assert result.success, result.to_dict()
    tournament_id = result.data.id
    for player_id in players:
        reg = await services.tournaments.register_participant(tournament_id, player_id)
        assert reg.success, reg.to_dict()
    return tournament_id


def player_ids(count: int) -> list[str]:
    return [f"p{i:02d}" for i in range(1, count + 1)]


# =============================================================================
# Mock Classes
# =============================================================================


class MockWebSocket:
    """Mock WebSocket for testing."""

    def __init__(self, fail_sends: bool = False):
        self.accepted = False
        self.closed = False
        self.close_code = None
        self.close_reason = None
        self.fail_sends = fail_sends
        self.sent_messages: list[dict[str, Any]] = []
        self.receive_queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    async def accept(self) -> None:
        self.accepted = True

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed = True
        self.close_code = code
        self.close_reason = reason

    async def send_json(self, data: dict[str, Any]) -> None:
        if self.closed or self.fail_sends:
            raise RuntimeError("WebSocket closed")
        self.sent_messages.append(data)

    async def receive_json(self) -> dict[str, Any]:
        if self.closed:
            raise RuntimeError("WebSocket closed")
        return await self.receive_queue.get()

    def add_message(self, message: dict[str, Any]) -> None:
        """Add message to receive queue."""
        self.receive_queue.put_nowait(message)

    def messages_of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [m for m in self.sent_messages if m.get("type") == event_type]


class MockScript:
    """Stand-in for a registered Lua script (owner-checked delete only)."""

    def __init__(self, redis: MockRedis):
        self._redis = redis

    async def __call__(self, keys: list[str], args: list[str]) -> int:
        key, token = keys[0], args[0]
        if self._redis.get_raw(key) == token:
            self._redis._data.pop(key, None)
            return 1
        return 0


class MockRedis:
    """Mock Redis client for testing."""

    def __init__(self):
        self._data: dict[str, str] = {}
        self._expires: dict[str, float] = {}
        self.closed = False

    def _expire_if_needed(self, key: str) -> None:
        expires_at = self._expires.get(key)
        if expires_at is not None and time.monotonic() >= expires_at:
            self._data.pop(key, None)
            self._expires.pop(key, None)

    def get_raw(self, key: str) -> str | None:
        self._expire_if_needed(key)
        return self._data.get(key)

    async def get(self, key: str) -> str | None:
        return self.get_raw(key)

    async def set(
        self,
        key: str,
        value: str,
        nx: bool = False,
        px: int | None = None,
        ex: int | None = None,
    ) -> bool | None:
        self._expire_if_needed(key)
        if nx and key in self._data:
            return None
        self._data[key] = value
        if px is not None:
            self._expires[key] = time.monotonic() + px / 1000
        elif ex is not None:
            self._expires[key] = time.monotonic() + ex
        return True

    def register_script(self, script: str) -> MockScript:
        return MockScript(self)

    async def aclose(self) -> None:
        self.closed = True
