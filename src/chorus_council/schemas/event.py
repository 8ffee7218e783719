# src/chorus_council/schemas/event.py
"""Wire-level event schemas shared by the transport and the reducers."""

from __future__ import annotations

import time
from enum import IntEnum

from pydantic import BaseModel, ConfigDict, Field

COMMUNITY_COORDINATE_PREFIX = "34550:"


class EventKind(IntEnum):
    """Event kinds understood by the governance engine.

    Tag names and kind numbers are part of the interop contract with other
    clients, so they must stay bit-exact.
    """

    TEXT_NOTE = 1
    COMMENT = 1111
    POST_APPROVAL = 4550
    POST_REJECTION = 4551
    REPORT_REVIEW = 4552
    CONTENT_REPORT = 4553
    MEMBER_BAN = 4554
    COMMUNITY = 34550
    PROPOSAL = 34551
    VOTE = 34552
    KICK_PROPOSAL = 34554
    KICK_VOTE = 34555


POST_SUBMISSION_KINDS = frozenset({EventKind.TEXT_NOTE, EventKind.COMMENT})


def now_ts() -> int:
    """Return the current unix time in whole seconds."""
    return int(time.time())


def strip_coordinate(reference: str) -> str:
    """Return a community reference without its ``34550:`` coordinate prefix."""
    if reference.startswith(COMMUNITY_COORDINATE_PREFIX):
        return reference[len(COMMUNITY_COORDINATE_PREFIX):]
    return reference


class Event(BaseModel):
    """Signed, content-addressed event as delivered by a relay.

    Events are immutable; the engine only ever accumulates them.
    """

    model_config = ConfigDict(frozen=True)

    id: str = ""
    pubkey: str = ""
    created_at: int
    kind: int
    tags: list[list[str]] = Field(default_factory=list)
    content: str = ""
    sig: str = ""

    def tags_named(self, name: str, *, min_length: int = 2) -> list[list[str]]:
        """Return every tag called ``name`` carrying at least ``min_length`` elements."""
        return [tag for tag in self.tags if len(tag) >= min_length and tag[0] == name]

    def first_tag(self, name: str, *, min_length: int = 2) -> list[str] | None:
        """Return the first tag called ``name`` or None."""
        for tag in self.tags:
            if len(tag) >= min_length and tag[0] == name:
                return tag
        return None

    def tag_value(self, name: str) -> str | None:
        """Return the value of the first ``name`` tag, or None when absent or empty."""
        tag = self.first_tag(name)
        if tag is None or not tag[1]:
            return None
        return tag[1]


class EventDraft(BaseModel):
    """Unsigned event handed to the transport for signing and publishing.

    The transport fills in ``id``, ``pubkey`` and ``sig``.
    """

    kind: int
    tags: list[list[str]] = Field(default_factory=list)
    content: str = ""
    created_at: int = Field(default_factory=now_ts)


class SubscriptionFilter(BaseModel):
    """Relay subscription filter.

    Tag constraints are keyed the way they appear on the wire, e.g. ``#e``.
    """

    model_config = ConfigDict(populate_by_name=True)

    ids: list[str] | None = None
    authors: list[str] | None = None
    kinds: list[int] | None = None
    tags: dict[str, list[str]] = Field(default_factory=dict)
    since: int | None = None
    until: int | None = None
    limit: int | None = None

    def matches(self, event: Event) -> bool:
        """Return True when ``event`` satisfies every constraint of this filter."""
        if self.ids is not None and event.id not in self.ids:
            return False
        if self.authors is not None and event.pubkey not in self.authors:
            return False
        if self.kinds is not None and event.kind not in self.kinds:
            return False
        if self.since is not None and event.created_at < self.since:
            return False
        if self.until is not None and event.created_at > self.until:
            return False
        for key, wanted in self.tags.items():
            name = key.removeprefix("#")
            values = {tag[1] for tag in event.tags_named(name)}
            if not values.intersection(wanted):
                return False
        return True
