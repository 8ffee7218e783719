"""Moderation-related endpoints for the Chorus Council API."""

from __future__ import annotations

from fastapi import APIRouter

from chorus_council.api.v1.dependencies import ProcessorDep, engine_errors
from chorus_council.schemas.moderation import (
    BanResponse,
    PostRejection,
    PostResponse,
    ReportResponse,
    ReportReview,
)

router = APIRouter(tags=["moderation"])


@router.get("/posts/{post_id}", response_model=PostResponse)
async def get_post(post_id: str, processor: ProcessorDep) -> PostResponse:
    with engine_errors():
        post = processor.require_post(post_id)
    return PostResponse.from_projection(post)


@router.post("/posts/{post_id}/approve", response_model=PostResponse)
async def approve_post(post_id: str, processor: ProcessorDep) -> PostResponse:
    """Approve a pending post; approved and rejected posts are final."""
    with engine_errors():
        await processor.approve_post(post_id)
        post = processor.require_post(post_id)
    return PostResponse.from_projection(post)


@router.post("/posts/{post_id}/reject", response_model=PostResponse)
async def reject_post(
    post_id: str,
    rejection: PostRejection,
    processor: ProcessorDep,
) -> PostResponse:
    """Reject a pending post with an optional reason."""
    with engine_errors():
        await processor.reject_post(post_id, rejection.reason)
        post = processor.require_post(post_id)
    return PostResponse.from_projection(post)


@router.get("/reports/{report_id}", response_model=ReportResponse)
async def get_report(report_id: str, processor: ProcessorDep) -> ReportResponse:
    with engine_errors():
        report = processor.require_report(report_id)
    return ReportResponse.from_projection(report)


@router.post("/reports/{report_id}/review", response_model=ReportResponse)
async def review_report(
    report_id: str,
    review: ReportReview,
    processor: ProcessorDep,
) -> ReportResponse:
    """Close a pending report as reviewed, resolved or dismissed."""
    with engine_errors():
        await processor.review_report(report_id, review.status, review.resolution)
        report = processor.require_report(report_id)
    return ReportResponse.from_projection(report)


@router.get("/bans/{ban_id}", response_model=BanResponse)
async def get_ban(ban_id: str, processor: ProcessorDep) -> BanResponse:
    with engine_errors():
        ban = processor.require_ban(ban_id)
    return BanResponse.from_projection(ban)


@router.post("/bans/{ban_id}/revoke", response_model=BanResponse)
async def revoke_ban(ban_id: str, processor: ProcessorDep) -> BanResponse:
    with engine_errors():
        await processor.unban_member(ban_id)
        ban = processor.require_ban(ban_id)
    return BanResponse.from_projection(ban)
