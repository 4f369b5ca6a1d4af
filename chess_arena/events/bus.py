"""
In-process event bus.

Match play raises events here; bracket advancement and the live
broadcaster consume them.

Delivery rules:
─────────────────────────────────────────────────────────────────
- ``publish`` awaits each matching subscriber in subscription order, so
  events raised in order reach every subscriber in that order.
- A subscriber that raises is logged with its traceback and counted in
  the metrics; the remaining subscribers still run.
- No persistence, no replay. A lost event is recovered by the caller
  re-reading authoritative state.
─────────────────────────────────────────────────────────────────
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable
from uuid import uuid4

from chess_arena.events.models import ArenaEvent, ArenaEventType

logger = logging.getLogger(__name__)

EventHandler = Callable[[ArenaEvent], Awaitable[None]]


@dataclass(frozen=True)
class _Listener:
    types: frozenset[ArenaEventType]
    handler: EventHandler
    label: str


@dataclass
class EventMetrics:
    events_published: int = 0
    events_processed: int = 0
    events_failed: int = 0
    avg_processing_time_ms: float = 0.0
    last_event_time: datetime | None = None

    def record_success(self, elapsed_ms: float) -> None:
        done = self.events_processed
        self.avg_processing_time_ms = (self.avg_processing_time_ms * done + elapsed_ms) / (done + 1)
        self.events_processed = done + 1


class EventBus:
    """Sequential fan-out of ``ArenaEvent``s to async subscribers."""

    def __init__(self) -> None:
        # Insertion order is delivery order.
        self._listeners: dict[str, _Listener] = {}
        self._metrics = EventMetrics()

    def subscribe(
        self,
        event_types: set[ArenaEventType],
        handler: EventHandler,
        name: str | None = None,
    ) -> str:
        """Register ``handler`` for ``event_types``.

        ``name`` labels the handler in failure logs. Returns the id to
        pass to ``unsubscribe``.
        """
        token = uuid4().hex
        self._listeners[token] = _Listener(
            types=frozenset(event_types),
            handler=handler,
            label=name or getattr(handler, "__qualname__", repr(handler)),
        )
        return token

    def unsubscribe(self, subscription_id: str) -> bool:
        return self._listeners.pop(subscription_id, None) is not None

    async def publish(self, event: ArenaEvent) -> None:
        """Deliver ``event`` to every subscriber of its type."""
        self._metrics.events_published += 1
        self._metrics.last_event_time = datetime.now(timezone.utc)

        # Listeners added during delivery see the next event only.
        targets = [
            (token, listener)
            for token, listener in self._listeners.items()
            if event.event_type in listener.types
        ]
        for token, listener in targets:
            if token not in self._listeners:
                continue
            await self._deliver(listener, event)

    async def _deliver(self, listener: _Listener, event: ArenaEvent) -> None:
        started = time.perf_counter()
        try:
            await listener.handler(event)
        except Exception:
            self._metrics.events_failed += 1
            logger.exception(
                f"Subscriber {listener.label} failed on "
                f"{event.event_type.name} (event_id={event.event_id})"
            )
            return
        self._metrics.record_success((time.perf_counter() - started) * 1000)

    def get_metrics(self) -> EventMetrics:
        return self._metrics

    @property
    def subscription_count(self) -> int:
        return len(self._listeners)
