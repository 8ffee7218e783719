"""Community projection folded from community-definition events."""

from __future__ import annotations

from dataclasses import dataclass

from chorus_council.models.common import Origin
from chorus_council.schemas.event import COMMUNITY_COORDINATE_PREFIX

ROLE_MODERATOR = "moderator"
ROLE_BANNED = "banned"


@dataclass(frozen=True)
class Community:
    """Authoritative view of one community, keyed by ``unique_key``.

    The whole object is replaced on every accepted definition event; it is
    never patched field by field.
    """

    id: str  # id of the definition event currently winning
    unique_key: str  # "<creator>:<d tag>"
    identifier: str  # the d tag
    name: str
    description: str
    image: str
    creator: str
    created_at: int  # created_at of the winning event; drives last-write-wins
    founded_at: int
    members: frozenset[str]
    moderators: frozenset[str]
    banned_members: frozenset[str]
    is_private: bool
    guidelines: str | None
    tags: tuple[str, ...]
    deleted: bool = False
    origin: Origin = Origin.CONFIRMED

    @property
    def coordinate(self) -> str:
        """Return the ``a`` tag value addressing this community."""
        return f"{COMMUNITY_COORDINATE_PREFIX}{self.unique_key}"

    @property
    def member_count(self) -> int:
        return len(self.members)

    def is_member(self, pubkey: str) -> bool:
        return pubkey in self.members
