"""Live update broadcaster.

Keeps observer connections and their group memberships, and fans match and
tournament notifications out to the matching group:

- ``match:{id}``       -> MATCH_UPDATE {matchId, status, move}
- ``tournament:{id}``  -> TOURNAMENT_UPDATE {tournamentId, matchId}

Delivery is best-effort, at most once per observer per event. An observer
whose send fails is disconnected and removed from every group; there is
no redelivery buffer, so a reconnecting client re-fetches state.
"""

from __future__ import annotations

import logging
from typing import Any

from chess_arena.events.bus import EventBus
from chess_arena.events.models import ArenaEvent, ArenaEventType
from chess_arena.ws.connection import ConnectionState, ObserverConnection
from chess_arena.ws.events import EventType
from chess_arena.ws.messages import MessageEnvelope

logger = logging.getLogger(__name__)


def match_group(match_id: int) -> str:
    return f"match:{match_id}"


def tournament_group(tournament_id: int) -> str:
    return f"tournament:{tournament_id}"


class ConnectionLimitExceeded(Exception):
    """Raised when connection limits are exceeded."""


class LiveUpdateBroadcaster:
    """Per-match and per-tournament observer groups."""

    def __init__(self, max_connections: int = 5000):
        self._max_connections = max_connections

        self._connections: dict[str, ObserverConnection] = {}  # connection_id -> Connection
        self._channel_members: dict[str, set[str]] = {}  # channel -> set[connection_id]

        self._subscription_ids: list[str] = []
        self._bus: EventBus | None = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def attach(self, bus: EventBus) -> None:
        """Start receiving match and tournament notifications."""
        self._bus = bus
        self._subscription_ids = [
            bus.subscribe({ArenaEventType.MATCH_CHANGED}, self.on_match_changed, name="broadcaster.match"),
            bus.subscribe(
                {ArenaEventType.TOURNAMENT_CHANGED},
                self.on_tournament_changed,
                name="broadcaster.tournament",
            ),
        ]

    async def shutdown(self) -> None:
        """Detach from the bus and close every observer."""
        if self._bus is not None:
            for subscription_id in self._subscription_ids:
                self._bus.unsubscribe(subscription_id)
        self._subscription_ids = []
        self._bus = None

        for conn in list(self._connections.values()):
            await conn.close(1001, "Server shutting down")
            await self.disconnect(conn.connection_id)
        logger.info("Live update broadcaster stopped")

    # =========================================================================
    # Connections
    # =========================================================================

    async def connect(self, conn: ObserverConnection) -> None:
        """Register a new connection with connection limit enforcement."""
        if len(self._connections) >= self._max_connections:
            logger.warning(
                f"Connection limit reached ({self._max_connections}). "
                f"Rejecting connection {conn.connection_id}"
            )
            raise ConnectionLimitExceeded(
                f"Maximum connections ({self._max_connections}) reached"
            )

        self._connections[conn.connection_id] = conn
        logger.info(
            f"Connection {conn.connection_id} registered "
            f"(user: {conn.user_id or 'anonymous'}, total: {len(self._connections)})"
        )

    async def disconnect(self, connection_id: str) -> None:
        """Unregister a connection and drop it from all groups."""
        conn = self._connections.pop(connection_id, None)
        if conn is None:
            return

        conn.state = ConnectionState.DISCONNECTED
        channels = list(conn.subscribed_channels)
        for channel in channels:
            self._remove_member(channel, connection_id)
        conn.subscribed_channels.clear()

        logger.info(
            f"Connection {connection_id} disconnected - groups left: {len(channels)}, "
            f"remaining connections: {len(self._connections)}"
        )

    def get_connection(self, connection_id: str) -> ObserverConnection | None:
        return self._connections.get(connection_id)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    # =========================================================================
    # Group membership
    # =========================================================================

    def join(self, connection_id: str, channel: str) -> bool:
        """Add an observer to a group. Joining twice is a no-op."""
        conn = self._connections.get(connection_id)
        if conn is None:
            return False

        self._channel_members.setdefault(channel, set()).add(connection_id)
        conn.subscribed_channels.add(channel)
        logger.debug(f"Connection {connection_id} joined {channel}")
        return True

    def leave(self, connection_id: str, channel: str) -> bool:
        """Remove an observer from a group. Leaving twice is a no-op."""
        conn = self._connections.get(connection_id)
        if conn is None:
            return False

        self._remove_member(channel, connection_id)
        conn.subscribed_channels.discard(channel)
        logger.debug(f"Connection {connection_id} left {channel}")
        return True

    def _remove_member(self, channel: str, connection_id: str) -> None:
        members = self._channel_members.get(channel)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self._channel_members[channel]

    def get_channel_subscribers(self, channel: str) -> list[str]:
        return list(self._channel_members.get(channel, set()))

    # =========================================================================
    # Broadcasting
    # =========================================================================

    async def broadcast_to_channel(self, channel: str, message: dict[str, Any]) -> int:
        """Send to every member of ``channel``. Returns count delivered."""
        delivered = 0
        failed: list[str] = []

        for conn_id in list(self._channel_members.get(channel, set())):
            conn = self._connections.get(conn_id)
            if conn is None:
                continue
            if await conn.send(message):
                delivered += 1
            else:
                failed.append(conn_id)

        for conn_id in failed:
            await self.disconnect(conn_id)

        return delivered

    async def on_match_changed(self, event: ArenaEvent) -> None:
        """Event bus handler for ``MATCH_CHANGED``."""
        message = MessageEnvelope.create(
            event_type=EventType.MATCH_UPDATE,
            payload={
                "matchId": event.match_id,
                "status": event.data.get("status"),
                "move": event.data.get("move"),
            },
        )
        await self.broadcast_to_channel(match_group(event.match_id), message.to_dict())

    async def on_tournament_changed(self, event: ArenaEvent) -> None:
        """Event bus handler for ``TOURNAMENT_CHANGED``."""
        message = MessageEnvelope.create(
            event_type=EventType.TOURNAMENT_UPDATE,
            payload={
                "tournamentId": event.tournament_id,
                "matchId": event.match_id,
            },
        )
        await self.broadcast_to_channel(
            tournament_group(event.tournament_id), message.to_dict()
        )
