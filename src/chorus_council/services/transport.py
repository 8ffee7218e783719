"""Relay transport contract consumed by the event processor."""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from typing import Protocol, runtime_checkable

from chorus_council.schemas.event import Event, EventDraft, SubscriptionFilter


@runtime_checkable
class RelayTransport(Protocol):
    """Asynchronous access to one or more relays.

    Delivery is at-least-once and unordered across subscriptions; the
    processor tolerates both.
    """

    @property
    def public_key(self) -> str:
        """Hex pubkey the transport signs drafts with."""
        ...

    async def subscribe(
        self, filters: Sequence[SubscriptionFilter]
    ) -> tuple[str, AsyncIterator[Event]]:
        """Open a subscription and return its id with the event stream."""
        ...

    async def unsubscribe(self, subscription_id: str) -> None:
        """Close a subscription; its stream ends."""
        ...

    async def publish_event(self, draft: EventDraft) -> str:
        """Sign and publish ``draft``.

        Returns:
            The published event id.

        Raises:
            PublishError: If no relay accepted the event.
        """
        ...

    async def get_event_by_id(self, event_id: str) -> Event | None:
        """Fetch one event by id, or None when no relay has it."""
        ...
