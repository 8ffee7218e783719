"""Proposal and voting endpoints for the Chorus Council API."""

from __future__ import annotations

from fastapi import APIRouter, status

from chorus_council.api.v1.dependencies import ProcessorDep, engine_errors
from chorus_council.schemas.proposal import ProposalResponse, TallyResponse, VoteCreate

router = APIRouter(prefix="/proposals", tags=["proposals"])


@router.get("/{proposal_id}", response_model=ProposalResponse)
async def get_proposal(proposal_id: str, processor: ProcessorDep) -> ProposalResponse:
    with engine_errors():
        proposal = processor.require_proposal(proposal_id)
    return ProposalResponse.from_projection(proposal)


@router.get("/{proposal_id}/tally", response_model=TallyResponse)
async def get_tally(proposal_id: str, processor: ProcessorDep) -> TallyResponse:
    """Return current vote counts for every option."""
    with engine_errors():
        proposal = processor.require_proposal(proposal_id)
    return TallyResponse.from_tally(proposal.id, proposal.tally())


@router.post(
    "/{proposal_id}/votes",
    response_model=TallyResponse,
    status_code=status.HTTP_201_CREATED,
)
async def cast_vote(
    proposal_id: str,
    vote_data: VoteCreate,
    processor: ProcessorDep,
) -> TallyResponse:
    """Cast or replace the engine key's vote and return the updated tally."""
    with engine_errors():
        await processor.vote(proposal_id, vote_data.option_index)
        proposal = processor.require_proposal(proposal_id)
    return TallyResponse.from_tally(proposal.id, proposal.tally())
