"""Community-related endpoints for the Chorus Council API."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from chorus_council.api.v1.dependencies import ProcessorDep, engine_errors, folded_entity_id
from chorus_council.models.community import Community
from chorus_council.models.moderation import PostStatus, ReportStatus
from chorus_council.schemas.community import CommunityCreate, CommunityResponse, MembershipChange
from chorus_council.schemas.moderation import (
    BanCreate,
    BanResponse,
    PostCreate,
    PostResponse,
    ReportCreate,
    ReportResponse,
)
from chorus_council.schemas.proposal import (
    KickCreate,
    KickResponse,
    ProposalCreate,
    ProposalResponse,
)
from chorus_council.services.processor import EventProcessor

router = APIRouter(prefix="/communities", tags=["communities"])


def _community_or_404(processor: EventProcessor, community_ref: str) -> Community:
    community = processor.communities.get(community_ref)
    if community is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Community not found",
        )
    return community


@router.get("/", response_model=list[CommunityResponse])
async def list_communities(
    processor: ProcessorDep,
    include_deleted: bool = False,
) -> list[CommunityResponse]:
    """List known communities, newest first."""
    return [
        CommunityResponse.from_projection(community)
        for community in processor.communities.list(include_deleted=include_deleted)
    ]


@router.post("/", response_model=CommunityResponse, status_code=status.HTTP_201_CREATED)
async def create_community(
    community_data: CommunityCreate,
    processor: ProcessorDep,
) -> CommunityResponse:
    """Publish a new community owned by the engine's key."""
    existing = processor.communities.get(f"{processor.transport.public_key}:{community_data.identifier}")
    if existing is not None and not existing.deleted:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Community identifier already exists",
        )
    with engine_errors():
        processed = await processor.create_community(
            community_data.identifier,
            community_data.name,
            description=community_data.description,
            image=community_data.image,
            is_private=community_data.is_private,
            guidelines=community_data.guidelines,
            tags=community_data.tags,
        )
    return CommunityResponse.from_projection(
        _community_or_404(processor, folded_entity_id(processed))
    )


@router.get("/{community_ref}", response_model=CommunityResponse)
async def get_community(community_ref: str, processor: ProcessorDep) -> CommunityResponse:
    """Get a community by unique key, coordinate or definition event id."""
    return CommunityResponse.from_projection(_community_or_404(processor, community_ref))


@router.post("/{community_ref}/join", response_model=CommunityResponse)
async def join_community(
    community_ref: str,
    change: MembershipChange,
    processor: ProcessorDep,
) -> CommunityResponse:
    """Add a member by re-publishing the community definition."""
    with engine_errors():
        processed = await processor.join_community(community_ref, change.pubkey)
    return CommunityResponse.from_projection(
        _community_or_404(processor, folded_entity_id(processed))
    )


@router.post("/{community_ref}/leave", response_model=CommunityResponse)
async def leave_community(
    community_ref: str,
    change: MembershipChange,
    processor: ProcessorDep,
) -> CommunityResponse:
    """Remove a member by re-publishing the community definition."""
    with engine_errors():
        processed = await processor.leave_community(community_ref, change.pubkey)
    return CommunityResponse.from_projection(
        _community_or_404(processor, folded_entity_id(processed))
    )


@router.delete("/{community_ref}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_community(community_ref: str, processor: ProcessorDep) -> None:
    """Publish a deletion marker for a community the engine created."""
    with engine_errors():
        await processor.delete_community(community_ref)


@router.get("/{community_ref}/proposals", response_model=list[ProposalResponse])
async def list_proposals(community_ref: str, processor: ProcessorDep) -> list[ProposalResponse]:
    refs = processor.communities.refs_for(community_ref)
    return [ProposalResponse.from_projection(p) for p in processor.proposals.proposals_for(refs)]


@router.post(
    "/{community_ref}/proposals",
    response_model=ProposalResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_proposal(
    community_ref: str,
    proposal_data: ProposalCreate,
    processor: ProcessorDep,
) -> ProposalResponse:
    """Open a proposal in a community."""
    with engine_errors():
        processed = await processor.create_proposal(
            community_ref,
            proposal_data.title,
            proposal_data.options,
            description=proposal_data.description,
            ends_at=proposal_data.ends_at,
            category=proposal_data.category,
        )
        proposal = processor.require_proposal(folded_entity_id(processed))
    return ProposalResponse.from_projection(proposal)


@router.get("/{community_ref}/kicks", response_model=list[KickResponse])
async def list_kicks(community_ref: str, processor: ProcessorDep) -> list[KickResponse]:
    refs = processor.communities.refs_for(community_ref)
    return [KickResponse.from_projection(kick) for kick in processor.kicks.kicks_for(refs)]


@router.post(
    "/{community_ref}/kicks",
    response_model=KickResponse,
    status_code=status.HTTP_201_CREATED,
)
async def propose_kick(
    community_ref: str,
    kick_data: KickCreate,
    processor: ProcessorDep,
) -> KickResponse:
    """Propose removing a member; the proposer's vote is counted immediately."""
    with engine_errors():
        processed = await processor.propose_kick(community_ref, kick_data.target, kick_data.reason)
        kick = processor.require_kick(folded_entity_id(processed))
    return KickResponse.from_projection(kick)


@router.get("/{community_ref}/posts", response_model=list[PostResponse])
async def list_posts(
    community_ref: str,
    processor: ProcessorDep,
    post_status: PostStatus | None = Query(default=None, alias="status"),
) -> list[PostResponse]:
    """List a community's posts, optionally only those in one moderation state."""
    refs = processor.communities.refs_for(community_ref)
    return [
        PostResponse.from_projection(post)
        for post in processor.moderation.posts_for(refs, post_status)
    ]


@router.post(
    "/{community_ref}/posts",
    response_model=PostResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_post(
    community_ref: str,
    post_data: PostCreate,
    processor: ProcessorDep,
) -> PostResponse:
    with engine_errors():
        processed = await processor.submit_post(community_ref, post_data.content, title=post_data.title)
        post = processor.require_post(folded_entity_id(processed))
    return PostResponse.from_projection(post)


@router.get("/{community_ref}/reports", response_model=list[ReportResponse])
async def list_reports(
    community_ref: str,
    processor: ProcessorDep,
    report_status: ReportStatus | None = Query(default=None, alias="status"),
) -> list[ReportResponse]:
    refs = processor.communities.refs_for(community_ref)
    return [
        ReportResponse.from_projection(report)
        for report in processor.moderation.reports_for(refs, report_status)
    ]


@router.post(
    "/{community_ref}/reports",
    response_model=ReportResponse,
    status_code=status.HTTP_201_CREATED,
)
async def report_content(
    community_ref: str,
    report_data: ReportCreate,
    processor: ProcessorDep,
) -> ReportResponse:
    with engine_errors():
        processed = await processor.report_content(
            community_ref,
            report_data.target_id,
            report_data.target_type,
            report_data.reason,
            report_data.category,
        )
        report = processor.require_report(folded_entity_id(processed))
    return ReportResponse.from_projection(report)


@router.get("/{community_ref}/bans", response_model=list[BanResponse])
async def list_bans(
    community_ref: str,
    processor: ProcessorDep,
    active_only: bool = False,
) -> list[BanResponse]:
    """List bans; expiry is evaluated at request time."""
    refs = processor.communities.refs_for(community_ref)
    return [
        BanResponse.from_projection(ban)
        for ban in processor.moderation.bans_for(refs, active_only=active_only)
    ]


@router.post(
    "/{community_ref}/bans",
    response_model=BanResponse,
    status_code=status.HTTP_201_CREATED,
)
async def ban_member(
    community_ref: str,
    ban_data: BanCreate,
    processor: ProcessorDep,
) -> BanResponse:
    with engine_errors():
        processed = await processor.ban_member(
            community_ref,
            ban_data.pubkey,
            ban_data.reason,
            ban_data.expires_at,
        )
        ban = processor.require_ban(folded_entity_id(processed))
    return BanResponse.from_projection(ban)
