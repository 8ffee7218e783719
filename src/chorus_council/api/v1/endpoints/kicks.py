"""Kick proposal endpoints for the Chorus Council API."""

from __future__ import annotations

from fastapi import APIRouter, status

from chorus_council.api.v1.dependencies import ProcessorDep, engine_errors
from chorus_council.schemas.proposal import KickResponse

router = APIRouter(prefix="/kicks", tags=["kicks"])


@router.get("/{kick_id}", response_model=KickResponse)
async def get_kick(kick_id: str, processor: ProcessorDep) -> KickResponse:
    with engine_errors():
        kick = processor.require_kick(kick_id)
    return KickResponse.from_projection(kick)


@router.post("/{kick_id}/votes", response_model=KickResponse, status_code=status.HTTP_201_CREATED)
async def vote_kick(kick_id: str, processor: ProcessorDep) -> KickResponse:
    """Support a kick; reaching quorum publishes the membership change."""
    with engine_errors():
        await processor.vote_kick(kick_id)
        kick = processor.require_kick(kick_id)
    return KickResponse.from_projection(kick)
