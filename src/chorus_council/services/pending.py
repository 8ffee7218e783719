"""Bounded holding area for events whose parent entity has not arrived yet.

Independent relay connections deliver out of order, so a vote can show up
before the proposal it targets. Such events wait here for a bounded window
and are dropped with a warning if the parent never appears.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock

from chorus_council.core.settings import settings
from chorus_council.models.common import Origin
from chorus_council.schemas.content import EventContent
from chorus_council.schemas.event import Event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingEvent:
    event: Event
    content: EventContent | None
    origin: Origin
    received_at: float


class PendingEventBuffer:
    """Orphan events grouped by the id of the parent they reference."""

    def __init__(
        self,
        *,
        ttl_seconds: float | None = None,
        max_per_target: int | None = None,
        max_total: int | None = None,
        clock: Callable[[], float] = time.monotonic,
        label: str = "event",
    ) -> None:
        self.ttl_seconds = (
            settings.pending_vote_ttl_seconds if ttl_seconds is None else ttl_seconds
        )
        self.max_per_target = (
            settings.pending_vote_max_per_target if max_per_target is None else max_per_target
        )
        self.max_total = settings.pending_max_total if max_total is None else max_total
        self._clock = clock
        self._label = label
        self._lock = Lock()
        self._pending: dict[str, OrderedDict[str, PendingEvent]] = {}
        self._size = 0
        self._last_sweep = clock()

    def add(
        self,
        target_id: str,
        event: Event,
        content: EventContent | None,
        origin: Origin = Origin.CONFIRMED,
    ) -> bool:
        """Hold ``event`` until ``target_id`` shows up.

        Returns:
            False if the same event id was already waiting for this target.
        """
        self.sweep()
        with self._lock:
            queue = self._pending.get(target_id)
            if queue is not None and event.id in queue:
                return False
            if queue is not None and len(queue) >= self.max_per_target:
                dropped_id, _ = queue.popitem(last=False)
                self._size -= 1
                logger.warning(
                    "Pending %s buffer full for %s; dropping oldest %s",
                    self._label,
                    target_id,
                    dropped_id,
                )
            elif self._pending and self._size >= self.max_total:
                self._drop_oldest_locked()
            queue = self._pending.setdefault(target_id, OrderedDict())
            queue[event.id] = PendingEvent(event, content, origin, self._clock())
            self._size += 1
            logger.debug("Buffered %s %s waiting for %s", self._label, event.id, target_id)
            return True

    def drain(self, target_id: str) -> list[PendingEvent]:
        """Remove and return the still-fresh events waiting for ``target_id``."""
        with self._lock:
            queue = self._pending.pop(target_id, None)
            if queue:
                self._size -= len(queue)
        if not queue:
            return []
        cutoff = self._clock() - self.ttl_seconds
        fresh = [item for item in queue.values() if item.received_at >= cutoff]
        stale = len(queue) - len(fresh)
        if stale:
            logger.warning(
                "Dropped %d expired pending %s(s) for %s",
                stale,
                self._label,
                target_id,
            )
        return fresh

    def expire(self) -> int:
        """Drop every held event older than the window.

        Returns:
            Number of events dropped.
        """
        now = self._clock()
        cutoff = now - self.ttl_seconds
        dropped = 0
        with self._lock:
            self._last_sweep = now
            for target_id in list(self._pending):
                queue = self._pending[target_id]
                for event_id in [key for key, item in queue.items() if item.received_at < cutoff]:
                    del queue[event_id]
                    dropped += 1
                    self._size -= 1
                if not queue:
                    del self._pending[target_id]
        if dropped:
            logger.warning("Dropped %d unresolved pending %s(s) after %.0fs",
                           dropped, self._label, self.ttl_seconds)
        return dropped

    def sweep(self) -> int:
        """Run ``expire`` at most once per window.

        Returns:
            Number of events dropped, 0 when the window has not elapsed yet.
        """
        if self._clock() - self._last_sweep < self.ttl_seconds:
            return 0
        return self.expire()

    def _drop_oldest_locked(self) -> None:
        target_id = min(
            (key for key, queue in self._pending.items() if queue),
            key=lambda key: next(iter(self._pending[key].values())).received_at,
        )
        queue = self._pending[target_id]
        dropped_id, _ = queue.popitem(last=False)
        self._size -= 1
        if not queue:
            del self._pending[target_id]
        logger.warning(
            "Pending %s buffer holds %d events; dropping oldest %s",
            self._label,
            self.max_total,
            dropped_id,
        )

    def waiting_for(self, target_id: str) -> int:
        with self._lock:
            return len(self._pending.get(target_id, ()))

    def __len__(self) -> int:
        with self._lock:
            return self._size
