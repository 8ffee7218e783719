# src/chorus_council/schemas/moderation.py
"""Moderation-related Pydantic schemas."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from chorus_council.schemas.content import ReportCategory, ReportTargetType, ReviewStatus

if TYPE_CHECKING:
    from chorus_council.models.moderation import ContentReport, MemberBan, ModeratedPost


class PostCreate(BaseModel):
    content: str = Field(..., min_length=1)
    title: str | None = None


class PostRejection(BaseModel):
    reason: str = ""


class PostResponse(BaseModel):
    """Schema for a moderated post returned by the API."""

    id: str
    community_id: str
    author: str
    content: str
    created_at: int
    kind: int
    title: str | None
    status: str
    moderator: str | None
    decided_at: int | None
    reason: str | None
    origin: str

    @classmethod
    def from_projection(cls, post: ModeratedPost) -> PostResponse:
        moderator = decided_at = reason = None
        if post.approval is not None:
            moderator, decided_at = post.approval.moderator, post.approval.approved_at
        elif post.rejection is not None:
            moderator, decided_at = post.rejection.moderator, post.rejection.rejected_at
            reason = post.rejection.reason
        return cls(
            id=post.id,
            community_id=post.community_id,
            author=post.author,
            content=post.content,
            created_at=post.created_at,
            kind=post.kind,
            title=post.title,
            status=post.status.value,
            moderator=moderator,
            decided_at=decided_at,
            reason=reason,
            origin=post.origin.value,
        )


class ReportCreate(BaseModel):
    target_id: str = Field(..., min_length=1)
    target_type: ReportTargetType
    reason: str = Field(..., min_length=1)
    category: ReportCategory = "other"


class ReportReview(BaseModel):
    status: ReviewStatus
    resolution: str | None = None


class ReportResponse(BaseModel):
    id: str
    community_id: str
    reporter: str
    target_id: str
    target_type: str
    category: str
    reason: str
    reported_at: int
    status: str
    reviewed_by: str | None
    reviewed_at: int | None
    resolution: str | None

    @classmethod
    def from_projection(cls, report: ContentReport) -> ReportResponse:
        return cls(
            id=report.id,
            community_id=report.community_id,
            reporter=report.reporter,
            target_id=report.target_id,
            target_type=report.target_type,
            category=report.category,
            reason=report.reason,
            reported_at=report.reported_at,
            status=report.status.value,
            reviewed_by=report.reviewed_by,
            reviewed_at=report.reviewed_at,
            resolution=report.resolution,
        )


class BanCreate(BaseModel):
    pubkey: str = Field(..., min_length=1)
    reason: str = ""
    expires_at: int | None = None


class BanResponse(BaseModel):
    id: str
    community_id: str
    banned_user: str
    moderator: str
    reason: str
    banned_at: int
    expires_at: int | None
    is_active: bool
    revoked_by: str | None

    @classmethod
    def from_projection(cls, ban: MemberBan, now: int | None = None) -> BanResponse:
        return cls(
            id=ban.id,
            community_id=ban.community_id,
            banned_user=ban.banned_user,
            moderator=ban.moderator,
            reason=ban.reason,
            banned_at=ban.banned_at,
            expires_at=ban.expires_at,
            is_active=ban.is_active(now),
            revoked_by=ban.revoked_by,
        )
