"""Bounded in-memory log of accepted events, used for deduplication and rebuilds."""

from __future__ import annotations

import logging
from collections import OrderedDict
from collections.abc import Iterator
from threading import Lock

from chorus_council.core.settings import settings
from chorus_council.models.common import Origin, supersedes_origin
from chorus_council.schemas.event import Event

logger = logging.getLogger(__name__)


class EventLog:
    """Accepted events by id, oldest evicted first once ``max_events`` is reached."""

    def __init__(self, max_events: int | None = None) -> None:
        self.max_events = settings.event_log_max_events if max_events is None else max_events
        self._lock = Lock()
        self._events: OrderedDict[str, tuple[Event, Origin]] = OrderedDict()

    def add(self, event: Event, origin: Origin = Origin.CONFIRMED) -> bool:
        """Record ``event``.

        Returns:
            False when the id is already logged and the new copy adds nothing,
            True when it is new or confirms an optimistic copy.
        """
        with self._lock:
            known = self._events.get(event.id)
            if known is not None and not supersedes_origin(origin, known[1]):
                return False
            self._events[event.id] = (event, origin)
            while len(self._events) > self.max_events:
                evicted, _ = self._events.popitem(last=False)
                logger.debug("Event log full; evicted %s", evicted)
            return True

    def get(self, event_id: str) -> Event | None:
        with self._lock:
            entry = self._events.get(event_id)
        return entry[0] if entry is not None else None

    def origin_of(self, event_id: str) -> Origin | None:
        with self._lock:
            entry = self._events.get(event_id)
        return entry[1] if entry is not None else None

    def replay(self) -> Iterator[tuple[Event, Origin]]:
        """Yield logged events in ``(created_at, id)`` order."""
        with self._lock:
            entries = list(self._events.values())
        yield from sorted(entries, key=lambda entry: (entry[0].created_at, entry[0].id))

    def __contains__(self, event_id: object) -> bool:
        with self._lock:
            return event_id in self._events

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
