"""Kick proposals and the membership-removal decisions they produce."""

from __future__ import annotations

from dataclasses import dataclass

from chorus_council.models.common import Origin


@dataclass(frozen=True)
class KickProposal:
    """A proposal to remove ``target_member`` from a community.

    The creator's vote is implicit, so ``votes`` always contains ``creator``.
    """

    id: str
    community_id: str
    target_member: str
    creator: str
    votes: frozenset[str]
    created_at: int
    reason: str = ""
    executed: bool = False
    origin: Origin = Origin.CONFIRMED

    @property
    def vote_count(self) -> int:
        return len(self.votes)


@dataclass(frozen=True)
class KickDecision:
    """Intent to publish a community definition without ``target_member``."""

    proposal_id: str
    community_id: str
    community_key: str
    target_member: str
    votes: int
    members: int

    @property
    def ratio(self) -> float:
        return self.votes / self.members if self.members else 0.0
