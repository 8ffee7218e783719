"""In-memory relay used for local runs and tests.

Drafts are signed with an Ed25519 key, stored, and fanned out to every open
subscription whose filters match.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import AsyncIterator, Sequence

from nacl.signing import SigningKey

from chorus_council.core.errors import PublishError
from chorus_council.core.security import public_key_hex, sign_draft
from chorus_council.schemas.event import Event, EventDraft, SubscriptionFilter

logger = logging.getLogger(__name__)


class LoopbackRelay:
    """Single-process relay implementing ``RelayTransport``."""

    def __init__(self, signing_key: SigningKey | None = None, *, fail_publishes: bool = False) -> None:
        self.signing_key = signing_key or SigningKey.generate()
        self.fail_publishes = fail_publishes
        self.published: list[Event] = []
        self._events: dict[str, Event] = {}
        self._subscriptions: dict[str, tuple[list[SubscriptionFilter], asyncio.Queue[Event | None]]] = {}
        self._ids = itertools.count(1)

    @property
    def public_key(self) -> str:
        return public_key_hex(self.signing_key)

    def stored(self, filters: Sequence[SubscriptionFilter]) -> list[Event]:
        """Return stored events matching any filter, oldest first."""
        matched: dict[str, Event] = {}
        for subscription_filter in filters:
            hits = sorted(
                (event for event in self._events.values() if subscription_filter.matches(event)),
                key=lambda event: (event.created_at, event.id),
            )
            if subscription_filter.limit is not None:
                hits = hits[-subscription_filter.limit:] if subscription_filter.limit > 0 else []
            matched.update((event.id, event) for event in hits)
        return sorted(matched.values(), key=lambda event: (event.created_at, event.id))

    async def subscribe(
        self, filters: Sequence[SubscriptionFilter]
    ) -> tuple[str, AsyncIterator[Event]]:
        subscription_id = f"loopback-{next(self._ids)}"
        queue: asyncio.Queue[Event | None] = asyncio.Queue()
        for event in self.stored(filters):
            queue.put_nowait(event)
        self._subscriptions[subscription_id] = (list(filters), queue)
        logger.debug("Opened subscription %s with %d filter(s)", subscription_id, len(filters))
        return subscription_id, self._stream(queue)

    @staticmethod
    async def _stream(queue: asyncio.Queue[Event | None]) -> AsyncIterator[Event]:
        while True:
            event = await queue.get()
            if event is None:
                return
            yield event

    async def unsubscribe(self, subscription_id: str) -> None:
        entry = self._subscriptions.pop(subscription_id, None)
        if entry is not None:
            entry[1].put_nowait(None)
            logger.debug("Closed subscription %s", subscription_id)

    async def publish_event(self, draft: EventDraft) -> str:
        if self.fail_publishes:
            raise PublishError(f"loopback relay refused kind {draft.kind} event")
        event = sign_draft(draft, self.signing_key)
        self.published.append(event)
        self.deliver(event)
        return event.id

    def deliver(self, event: Event) -> None:
        """Store ``event`` and push it to matching subscriptions."""
        self._events[event.id] = event
        for filters, queue in self._subscriptions.values():
            if any(subscription_filter.matches(event) for subscription_filter in filters):
                queue.put_nowait(event)

    async def get_event_by_id(self, event_id: str) -> Event | None:
        return self._events.get(event_id)

    async def close(self) -> None:
        for subscription_id in list(self._subscriptions):
            await self.unsubscribe(subscription_id)
