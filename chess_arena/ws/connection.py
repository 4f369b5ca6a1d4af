"""One observer socket and the rooms it has joined."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from fastapi import WebSocket

from chess_arena.utils.security import Principal

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass
class ObserverConnection:
    """A connected spectator or player.

    Anonymous sockets (``principal is None``) may join rooms but any
    MOVE_REQUEST they send is refused.
    """

    websocket: WebSocket
    connection_id: str
    connected_at: datetime
    principal: Principal | None = None
    state: ConnectionState = ConnectionState.CONNECTED
    subscribed_channels: set[str] = field(default_factory=set)
    last_ping_at: datetime | None = None

    @property
    def user_id(self) -> str | None:
        return None if self.principal is None else self.principal.id

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def is_subscribed(self, channel: str) -> bool:
        return channel in self.subscribed_channels

    async def send(self, message: dict[str, Any]) -> bool:
        """Write one JSON frame; False when the socket is closed or the write fails."""
        if not self.is_open:
            return False
        try:
            await self.websocket.send_json(message)
        except Exception as e:
            logger.warning(f"Send to {self.connection_id} failed: {e}")
            return False
        return True

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.state = ConnectionState.DISCONNECTED
        try:
            await self.websocket.close(code, reason)
        except Exception as e:
            # Peer may already be gone.
            logger.debug(f"Close of {self.connection_id} failed: {e}")
