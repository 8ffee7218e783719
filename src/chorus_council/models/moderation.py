# src/chorus_council/models/moderation.py
"""Projections tracking post moderation, content reports and member bans."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from chorus_council.models.common import Origin
from chorus_council.schemas.event import now_ts


class PostStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReportStatus(str, Enum):
    PENDING = "pending"
    REVIEWED = "reviewed"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


@dataclass(frozen=True)
class Approval:
    moderator: str
    approved_at: int
    event_id: str


@dataclass(frozen=True)
class Rejection:
    moderator: str
    rejected_at: int
    reason: str
    event_id: str


@dataclass(frozen=True)
class ModeratedPost:
    """A community post; Pending until exactly one approval or rejection lands.

    Approved and Rejected are terminal: there is no un-approve or un-reject.
    """

    id: str
    community_id: str
    author: str
    content: str
    created_at: int
    kind: int
    title: str | None = None
    approval: Approval | None = None
    rejection: Rejection | None = None
    origin: Origin = Origin.CONFIRMED

    @property
    def status(self) -> PostStatus:
        if self.approval is not None:
            return PostStatus.APPROVED
        if self.rejection is not None:
            return PostStatus.REJECTED
        return PostStatus.PENDING

    @property
    def is_resolved(self) -> bool:
        return self.status is not PostStatus.PENDING

    def approve(self, approval: Approval) -> ModeratedPost:
        return replace(self, approval=approval)

    def reject(self, rejection: Rejection) -> ModeratedPost:
        return replace(self, rejection=rejection)


@dataclass(frozen=True)
class ContentReport:
    """A user report; moves out of ``pending`` exactly once."""

    id: str
    community_id: str
    reporter: str
    target_id: str
    target_type: str
    category: str
    reason: str
    reported_at: int
    status: ReportStatus = ReportStatus.PENDING
    reviewed_by: str | None = None
    reviewed_at: int | None = None
    resolution: str | None = None
    origin: Origin = Origin.CONFIRMED


@dataclass(frozen=True)
class MemberBan:
    """A ban on one member of one community.

    Expiry is evaluated when read; there is no background timer that flips
    the stored state.
    """

    id: str
    community_id: str
    banned_user: str
    moderator: str
    reason: str
    banned_at: int
    expires_at: int | None = None
    revoked_by: str | None = None
    revoked_at: int | None = None
    origin: Origin = Origin.CONFIRMED

    @property
    def is_permanent(self) -> bool:
        return self.expires_at is None

    def is_active(self, now: int | None = None) -> bool:
        if self.revoked_at is not None:
            return False
        if self.expires_at is None:
            return True
        return (now_ts() if now is None else now) <= self.expires_at
