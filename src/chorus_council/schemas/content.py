# src/chorus_council/schemas/content.py
"""Typed content schemas, one per event kind.

Each event's content is parsed exactly once (by the validator) into one of
these models; reducers consume the parsed model and never re-read the raw
JSON blob.
"""

from __future__ import annotations

import math
import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chorus_council.schemas.event import Event, EventKind

_NON_NEGATIVE_INT = re.compile(r"[0-9]+")

ReportTargetType = Literal["post", "comment", "user"]
ReportCategory = Literal["spam", "harassment", "inappropriate", "misinformation", "other"]
ReviewStatus = Literal["reviewed", "resolved", "dismissed"]

REPORT_TARGET_TYPES: tuple[str, ...] = ("post", "comment", "user")
REPORT_CATEGORIES: tuple[str, ...] = (
    "spam",
    "harassment",
    "inappropriate",
    "misinformation",
    "other",
)
REVIEW_STATUSES: tuple[str, ...] = ("reviewed", "resolved", "dismissed")


def _as_int(value: Any) -> int | None:
    # JSON numbers arrive as int or float; booleans are not timestamps.
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return int(value)


class EventContent(BaseModel):
    """Base class for parsed event content."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    @classmethod
    def from_event(cls, event: Event) -> EventContent:
        """Parse the content of ``event``.

        Raises:
            ValueError: If the content does not match the schema.
        """
        return cls.model_validate_json(event.content)


class CommunityContent(EventContent):
    """Content of a community definition event (kind 34550)."""

    name: str = ""
    description: str = ""
    image: str = ""
    creator: str | None = None
    founded_at: int | None = Field(default=None, alias="createdAt")
    deleted: bool = False
    is_private: bool = Field(default=False, alias="isPrivate")
    guidelines: str | None = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("name", "description", "image", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return value if isinstance(value, str) else ""

    @field_validator("creator", "guidelines", mode="before")
    @classmethod
    def _coerce_optional_text(cls, value: Any) -> str | None:
        return value if isinstance(value, str) else None

    @field_validator("founded_at", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> int | None:
        return _as_int(value)

    @field_validator("deleted", "is_private", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        return value is True

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, str)]


class ProposalContent(EventContent):
    """Content of a proposal event (kind 34551)."""

    title: str
    description: str = ""
    options: list[str]
    ends_at: int | None = Field(default=None, alias="endsAt")
    category: str | None = None

    @field_validator("description", mode="before")
    @classmethod
    def _coerce_description(cls, value: Any) -> str:
        return value if isinstance(value, str) else ""

    @field_validator("options", mode="before")
    @classmethod
    def _coerce_options(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [item if isinstance(item, str) else str(item) for item in value]
        return value

    @field_validator("ends_at", mode="before")
    @classmethod
    def _coerce_ends_at(cls, value: Any) -> int | None:
        return _as_int(value)

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: Any) -> str | None:
        return value if isinstance(value, str) else None


class VoteContent(EventContent):
    """Content of a vote event (kind 34552): a stringified option index."""

    option_index: int = Field(ge=0)

    @classmethod
    def from_event(cls, event: Event) -> VoteContent:
        text = event.content.strip()
        if not _NON_NEGATIVE_INT.fullmatch(text):
            raise ValueError(f"vote content {event.content!r} is not a non-negative integer")
        return cls(option_index=int(text))


class KickProposalContent(EventContent):
    """Content of a kick proposal event (kind 34554)."""

    reason: str = ""

    @field_validator("reason", mode="before")
    @classmethod
    def _coerce_reason(cls, value: Any) -> str:
        return value if isinstance(value, str) else ""

    @classmethod
    def from_event(cls, event: Event) -> KickProposalContent:
        if not event.content.strip():
            return cls()
        return cls.model_validate_json(event.content)


class KickVoteContent(EventContent):
    """Content of a kick vote event (kind 34555); only votes in favor exist."""

    in_favor: bool = True

    @classmethod
    def from_event(cls, event: Event) -> KickVoteContent:
        if event.content.strip() != "1":
            raise ValueError("kick vote content must be '1'")
        return cls(in_favor=True)


class PostSubmissionContent(EventContent):
    """A community post awaiting moderation (kind 1 or 1111 with an ``a`` tag)."""

    content: str
    title: str | None = None

    @classmethod
    def from_event(cls, event: Event) -> PostSubmissionContent:
        title = event.tag_value("title") or event.tag_value("subject")
        return cls(content=event.content, title=title)


class ModerationDecisionContent(EventContent):
    """Content of a post approval (4550) or rejection (4551).

    The content embeds the original post; rejections may add a ``reason``.
    """

    id: str
    content: str
    pubkey: str
    created_at: int | None = None
    kind: int | None = None
    tags: list[list[str]] = Field(default_factory=list)
    reason: str = ""

    @field_validator("created_at", "kind", mode="before")
    @classmethod
    def _coerce_number(cls, value: Any) -> int | None:
        return _as_int(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_post_tags(cls, value: Any) -> list[list[str]]:
        if not isinstance(value, list):
            return []
        return [
            [str(part) for part in tag]
            for tag in value
            if isinstance(tag, list)
        ]

    @field_validator("reason", mode="before")
    @classmethod
    def _coerce_reason(cls, value: Any) -> str:
        return value if isinstance(value, str) else ""

    @property
    def title(self) -> str | None:
        """Return the original post's title tag, if any."""
        for tag in self.tags:
            if len(tag) >= 2 and tag[0] in ("title", "subject") and tag[1]:
                return tag[1]
        return None


class ContentReportContent(EventContent):
    """Content of a content report event (kind 4553)."""

    reason: str
    target_type: ReportTargetType = Field(alias="targetType")
    category: str = "other"

    @classmethod
    def from_event(cls, event: Event) -> ContentReportContent:
        report = cls.model_validate_json(event.content)
        category_tag = event.tag_value("report")
        if category_tag and "category" not in report.model_fields_set:
            report = report.model_copy(update={"category": category_tag})
        return report


class ReportReviewContent(EventContent):
    """Content of a report review event (kind 4552)."""

    status: ReviewStatus
    resolution: str | None = None


class MemberBanContent(EventContent):
    """Content of a member ban or unban event (kind 4554)."""

    action: Literal["ban", "unban"] = "ban"
    reason: str = ""
    expires_at: int | None = Field(default=None, alias="expiresAt")

    @field_validator("expires_at", mode="before")
    @classmethod
    def _coerce_expiry(cls, value: Any) -> int | None:
        return _as_int(value)


CONTENT_SCHEMAS: dict[int, type[EventContent]] = {
    EventKind.COMMUNITY: CommunityContent,
    EventKind.PROPOSAL: ProposalContent,
    EventKind.VOTE: VoteContent,
    EventKind.KICK_PROPOSAL: KickProposalContent,
    EventKind.KICK_VOTE: KickVoteContent,
    EventKind.TEXT_NOTE: PostSubmissionContent,
    EventKind.COMMENT: PostSubmissionContent,
    EventKind.POST_APPROVAL: ModerationDecisionContent,
    EventKind.POST_REJECTION: ModerationDecisionContent,
    EventKind.CONTENT_REPORT: ContentReportContent,
    EventKind.REPORT_REVIEW: ReportReviewContent,
    EventKind.MEMBER_BAN: MemberBanContent,
}


def parse_content(event: Event) -> EventContent:
    """Parse ``event.content`` with the schema registered for its kind.

    Raises:
        ValueError: If the kind is unsupported or the content is malformed.
    """
    schema = CONTENT_SCHEMAS.get(event.kind)
    if schema is None:
        raise ValueError(f"unsupported kind: {event.kind}")
    return schema.from_event(event)
