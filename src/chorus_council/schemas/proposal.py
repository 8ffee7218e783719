# src/chorus_council/schemas/proposal.py
"""Proposal, vote and kick Pydantic schemas."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from chorus_council.models.kick import KickProposal
    from chorus_council.models.proposal import Proposal, Tally


class ProposalCreate(BaseModel):
    """Schema for opening a proposal in a community."""

    title: str = Field(..., min_length=1)
    options: list[str] = Field(..., min_length=2)
    description: str = ""
    ends_at: int | None = Field(default=None, description="Unix time; defaults to one week")
    category: str | None = None


class VoteCreate(BaseModel):
    """Schema for casting a vote."""

    option_index: int = Field(..., ge=0)


class TallyResponse(BaseModel):
    proposal_id: str
    counts: list[int]
    total: int
    percentages: list[float]

    @classmethod
    def from_tally(cls, proposal_id: str, tally: Tally) -> TallyResponse:
        return cls(
            proposal_id=proposal_id,
            counts=list(tally.counts),
            total=tally.total,
            percentages=list(tally.percentages),
        )


class ProposalResponse(BaseModel):
    """Schema for proposal information returned by the API."""

    id: str
    community_id: str
    identifier: str
    title: str
    description: str
    options: list[str]
    created_at: int
    ends_at: int
    creator: str
    category: str | None
    votes: dict[str, int]
    status: str
    winning_option: int | None
    origin: str

    @classmethod
    def from_projection(cls, proposal: Proposal, now: int | None = None) -> ProposalResponse:
        return cls(
            id=proposal.id,
            community_id=proposal.community_id,
            identifier=proposal.identifier,
            title=proposal.title,
            description=proposal.description,
            options=list(proposal.options),
            created_at=proposal.created_at,
            ends_at=proposal.ends_at,
            creator=proposal.creator,
            category=proposal.category,
            votes=proposal.votes,
            status=proposal.status(now).value,
            winning_option=proposal.winning_option(now),
            origin=proposal.origin.value,
        )


class KickCreate(BaseModel):
    """Schema for proposing to remove a member."""

    target: str = Field(..., min_length=1)
    reason: str | None = None


class KickResponse(BaseModel):
    id: str
    community_id: str
    target_member: str
    creator: str
    votes: list[str]
    vote_count: int
    created_at: int
    reason: str
    executed: bool
    origin: str

    @classmethod
    def from_projection(cls, kick: KickProposal) -> KickResponse:
        return cls(
            id=kick.id,
            community_id=kick.community_id,
            target_member=kick.target_member,
            creator=kick.creator,
            votes=sorted(kick.votes),
            vote_count=kick.vote_count,
            created_at=kick.created_at,
            reason=kick.reason,
            executed=kick.executed,
            origin=kick.origin.value,
        )
