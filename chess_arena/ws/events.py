"""WebSocket event types."""

from enum import Enum


class EventType(str, Enum):
    """All WebSocket event types."""

    # System events
    PING = "PING"
    PONG = "PONG"
    CONNECTION_STATE = "CONNECTION_STATE"
    ERROR = "ERROR"

    # Match room events
    JOIN_MATCH = "JOIN_MATCH"
    LEAVE_MATCH = "LEAVE_MATCH"
    MATCH_SNAPSHOT = "MATCH_SNAPSHOT"
    MATCH_UPDATE = "MATCH_UPDATE"
    MOVE_REQUEST = "MOVE_REQUEST"
    MOVE_RESULT = "MOVE_RESULT"

    # Tournament room events
    JOIN_TOURNAMENT = "JOIN_TOURNAMENT"
    LEAVE_TOURNAMENT = "LEAVE_TOURNAMENT"
    TOURNAMENT_SNAPSHOT = "TOURNAMENT_SNAPSHOT"
    TOURNAMENT_UPDATE = "TOURNAMENT_UPDATE"

    ROOM_LEFT = "ROOM_LEFT"


# Event direction mapping
CLIENT_TO_SERVER_EVENTS = frozenset([
    EventType.PING,
    EventType.JOIN_MATCH,
    EventType.LEAVE_MATCH,
    EventType.MOVE_REQUEST,
    EventType.JOIN_TOURNAMENT,
    EventType.LEAVE_TOURNAMENT,
])

SERVER_TO_CLIENT_EVENTS = frozenset([
    EventType.PONG,
    EventType.CONNECTION_STATE,
    EventType.ERROR,
    EventType.MATCH_SNAPSHOT,
    EventType.MATCH_UPDATE,
    EventType.MOVE_RESULT,
    EventType.TOURNAMENT_SNAPSHOT,
    EventType.TOURNAMENT_UPDATE,
    EventType.ROOM_LEFT,
])
