"""Internal state-change events."""

from chess_arena.events.bus import EventBus, EventHandler, EventMetrics
from chess_arena.events.models import ArenaEvent, ArenaEventType

__all__ = ["ArenaEvent", "ArenaEventType", "EventBus", "EventHandler", "EventMetrics"]
