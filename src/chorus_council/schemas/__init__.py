# src/chorus_council/schemas/__init__.py
"""
Pydantic schemas for wire events, parsed event content and API models.

Event and content schemas are shared with the reducers; the remaining
schemas define the request and response bodies of the HTTP API.
"""

from .community import CommunityCreate, CommunityResponse, MembershipChange
from .event import Event, EventDraft, EventKind, SubscriptionFilter
from .moderation import (
    BanCreate,
    BanResponse,
    PostCreate,
    PostRejection,
    PostResponse,
    ReportCreate,
    ReportResponse,
    ReportReview,
)
from .proposal import (
    KickCreate,
    KickResponse,
    ProposalCreate,
    ProposalResponse,
    TallyResponse,
    VoteCreate,
)
from .validation import ValidationResult

__all__ = [
    "Event", "EventDraft", "EventKind", "SubscriptionFilter", "ValidationResult",
    "CommunityCreate", "CommunityResponse", "MembershipChange",
    "ProposalCreate", "ProposalResponse", "TallyResponse", "VoteCreate",
    "KickCreate", "KickResponse",
    "PostCreate", "PostRejection", "PostResponse",
    "ReportCreate", "ReportReview", "ReportResponse",
    "BanCreate", "BanResponse",
]
