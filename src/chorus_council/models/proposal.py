"""Proposal projection with per-voter ballots and on-demand tallies."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from chorus_council.models.common import Origin, supersedes_origin
from chorus_council.schemas.event import now_ts


class ProposalStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"


@dataclass(frozen=True)
class Ballot:
    """One voter's current choice and the event that produced it."""

    option_index: int
    created_at: int
    event_id: str
    origin: Origin = Origin.CONFIRMED

    def supersedes(self, current: Ballot) -> bool:
        """Return True if this ballot should replace ``current`` for the same voter.

        The larger ``created_at`` wins regardless of processing order. Equal
        timestamps fall back to the smaller event id so every observer picks
        the same ballot.
        """
        if self.event_id == current.event_id:
            return supersedes_origin(self.origin, current.origin)
        if self.created_at != current.created_at:
            return self.created_at > current.created_at
        return self.event_id < current.event_id


@dataclass(frozen=True)
class Tally:
    """Vote counts per option."""

    counts: tuple[int, ...]
    total: int

    @property
    def percentages(self) -> tuple[float, ...]:
        if self.total == 0:
            return tuple(0.0 for _ in self.counts)
        return tuple(count / self.total for count in self.counts)


@dataclass(frozen=True)
class Proposal:
    """A community proposal; never redefined once created."""

    id: str
    community_id: str
    identifier: str
    title: str
    description: str
    options: tuple[str, ...]
    created_at: int
    ends_at: int
    creator: str
    category: str | None = None
    ballots: Mapping[str, Ballot] = field(default_factory=dict)
    origin: Origin = Origin.CONFIRMED

    @property
    def votes(self) -> dict[str, int]:
        """Return the current choice of every voter."""
        return {voter: ballot.option_index for voter, ballot in self.ballots.items()}

    def tally(self) -> Tally:
        counts = [0] * len(self.options)
        for ballot in self.ballots.values():
            counts[ballot.option_index] += 1
        return Tally(counts=tuple(counts), total=len(self.ballots))

    def is_active(self, now: int | None = None) -> bool:
        return self.ends_at > (now_ts() if now is None else now)

    def status(self, now: int | None = None) -> ProposalStatus:
        return ProposalStatus.ACTIVE if self.is_active(now) else ProposalStatus.CLOSED

    def winning_option(self, now: int | None = None) -> int | None:
        """Return the index of the leading option once closed; None while open, on ties or without votes."""
        if self.is_active(now):
            return None
        counts = self.tally().counts
        if not counts:
            return None
        best = max(counts)
        if best == 0 or counts.count(best) > 1:
            return None
        return counts.index(best)
