"""Community reducer: folds community-definition events into one projection per key.

A community is addressed by ``<creator>:<d tag>``. Definition events are
parameterized-replaceable, so each accepted event replaces the whole
projection; there is no field-level merge.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from threading import Lock

from chorus_council.models.common import FoldOutcome, FoldResult, Origin, supersedes_origin
from chorus_council.models.community import ROLE_BANNED, ROLE_MODERATOR, Community
from chorus_council.schemas.content import CommunityContent
from chorus_council.schemas.event import Event, strip_coordinate
from chorus_council.services.validator import PUBKEY_HEX_LENGTH, is_hex
from chorus_council.utils.locks import KeyedLock

logger = logging.getLogger(__name__)


def community_creator(event: Event, content: CommunityContent) -> str:
    """Return the pubkey that owns the community key.

    Membership changes are signed by whoever performs them, so the owner is
    taken from the content when it names a valid key.
    """
    if is_hex(content.creator, PUBKEY_HEX_LENGTH):
        return content.creator  # type: ignore[return-value]
    return event.pubkey


def unique_key_for(event: Event, content: CommunityContent) -> str | None:
    """Return ``<creator>:<d>`` for a definition event, or None without a usable ``d`` tag."""
    identifier = event.tag_value("d")
    if identifier is None or not identifier.strip():
        return None
    return f"{community_creator(event, content)}:{identifier}"


def _build(event: Event, content: CommunityContent, unique_key: str, origin: Origin) -> Community:
    members: set[str] = set()
    moderators: set[str] = set()
    banned: set[str] = set()
    for tag in event.tags_named("p"):
        pubkey = tag[1]
        if not pubkey:
            continue
        role = tag[2] if len(tag) >= 3 else ""
        if role == ROLE_BANNED:
            banned.add(pubkey)
            continue
        members.add(pubkey)
        if role == ROLE_MODERATOR:
            moderators.add(pubkey)

    identifier = unique_key.split(":", 1)[1]
    return Community(
        id=event.id,
        unique_key=unique_key,
        identifier=identifier,
        name=content.name,
        description=content.description,
        image=content.image,
        creator=community_creator(event, content),
        created_at=event.created_at,
        founded_at=content.founded_at if content.founded_at is not None else event.created_at,
        members=frozenset(members - banned),
        moderators=frozenset(moderators - banned),
        banned_members=frozenset(banned),
        is_private=content.is_private,
        guidelines=content.guidelines,
        tags=tuple(content.tags),
        deleted=content.deleted,
        origin=origin,
    )


class CommunityReducer:
    """Owns every community projection and the event-id aliases pointing at them."""

    def __init__(self) -> None:
        self._locks = KeyedLock()
        self._lock = Lock()
        self._communities: dict[str, Community] = {}
        self._aliases: dict[str, str] = {}

    def apply(
        self,
        event: Event,
        content: CommunityContent | None = None,
        origin: Origin = Origin.CONFIRMED,
    ) -> FoldResult:
        """Fold one community-definition event.

        The event replaces the projection when none exists or when its
        ``created_at`` is not older than the current one. Older events are
        dropped but their ids still resolve to the community.
        """
        if content is None:
            try:
                content = CommunityContent.from_event(event)
            except ValueError as exc:
                return FoldResult(FoldOutcome.REJECTED, event.id, f"invalid content: {exc}")

        unique_key = unique_key_for(event, content)
        if unique_key is None:
            return FoldResult(FoldOutcome.REJECTED, event.id, "missing 'd' tag")

        with self._locks.hold(unique_key):
            with self._lock:
                self._aliases[event.id] = unique_key
                current = self._communities.get(unique_key)

            if current is not None:
                if current.id == event.id and not supersedes_origin(origin, current.origin):
                    return FoldResult(FoldOutcome.UNCHANGED, unique_key)
                if event.created_at < current.created_at:
                    logger.debug(
                        "Dropping stale definition %s for %s (%d < %d)",
                        event.id,
                        unique_key,
                        event.created_at,
                        current.created_at,
                    )
                    return FoldResult(FoldOutcome.STALE, unique_key)

            community = _build(event, content, unique_key, origin)
            if community == current:
                return FoldResult(FoldOutcome.UNCHANGED, unique_key)
            with self._lock:
                self._communities[unique_key] = community

        logger.debug("Community %s now at %s (%s)", unique_key, event.id, origin.value)
        return FoldResult(FoldOutcome.APPLIED, unique_key)

    def _resolve(self, reference: str) -> str | None:
        key = strip_coordinate(reference)
        with self._lock:
            if key in self._communities:
                return key
            return self._aliases.get(key)

    def get(self, reference: str) -> Community | None:
        """Look up a community by unique key, ``34550:`` coordinate or definition event id."""
        key = self._resolve(reference)
        if key is None:
            return None
        with self._lock:
            return self._communities.get(key)

    def refs_for(self, reference: str) -> frozenset[str]:
        """Return every reference other events may use for the same community.

        Posts and reports address a community by coordinate, proposals and
        kicks by definition event id. Unknown references map to themselves.
        """
        key = self._resolve(reference)
        if key is None:
            return frozenset({strip_coordinate(reference)})
        with self._lock:
            aliases = {event_id for event_id, target in self._aliases.items() if target == key}
        return frozenset(aliases | {key})

    def all(self) -> list[Community]:
        with self._lock:
            return list(self._communities.values())

    def list(self, *, include_deleted: bool = False) -> Sequence[Community]:
        """Return communities newest first, hiding deleted ones unless asked."""
        communities = [
            community
            for community in self.all()
            if include_deleted or not community.deleted
        ]
        return sorted(communities, key=lambda community: community.created_at, reverse=True)

    def clear(self) -> None:
        with self._lock:
            self._communities.clear()
            self._aliases.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._communities)
