"""In-memory projections derived from the event log.

Every projection is a frozen dataclass owned by exactly one reducer and
replaced as a whole on update.
"""

from .common import FoldOutcome, FoldResult, Origin
from .community import Community
from .kick import KickDecision, KickProposal
from .moderation import (
    Approval,
    ContentReport,
    MemberBan,
    ModeratedPost,
    PostStatus,
    Rejection,
    ReportStatus,
)
from .proposal import Ballot, Proposal, ProposalStatus, Tally

__all__ = [
    "Approval",
    "Ballot",
    "Community",
    "ContentReport",
    "FoldOutcome",
    "FoldResult",
    "KickDecision",
    "KickProposal",
    "MemberBan",
    "ModeratedPost",
    "Origin",
    "PostStatus",
    "Proposal",
    "ProposalStatus",
    "Rejection",
    "ReportStatus",
    "Tally",
]
