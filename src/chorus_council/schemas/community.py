# src/chorus_council/schemas/community.py
"""Community-related Pydantic schemas."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from chorus_council.models.community import Community


class CommunityCreate(BaseModel):
    """Schema for creating a new community."""

    identifier: str = Field(..., min_length=1, description="Value of the 'd' tag")
    name: str = Field(..., min_length=1)
    description: str = ""
    image: str = ""
    is_private: bool = False
    guidelines: str | None = None
    tags: list[str] = Field(default_factory=list)


class MembershipChange(BaseModel):
    """Schema for joining or leaving a community."""

    pubkey: str | None = Field(default=None, description="Defaults to the engine's own key")


class CommunityResponse(BaseModel):
    """Schema for community information returned by the API."""

    id: str
    unique_key: str
    coordinate: str
    identifier: str
    name: str
    description: str
    image: str
    creator: str
    created_at: int
    founded_at: int
    members: list[str]
    moderators: list[str]
    banned_members: list[str]
    member_count: int
    is_private: bool
    guidelines: str | None
    tags: list[str]
    deleted: bool
    origin: str

    @classmethod
    def from_projection(cls, community: Community) -> CommunityResponse:
        return cls(
            id=community.id,
            unique_key=community.unique_key,
            coordinate=community.coordinate,
            identifier=community.identifier,
            name=community.name,
            description=community.description,
            image=community.image,
            creator=community.creator,
            created_at=community.created_at,
            founded_at=community.founded_at,
            members=sorted(community.members),
            moderators=sorted(community.moderators),
            banned_members=sorted(community.banned_members),
            member_count=community.member_count,
            is_private=community.is_private,
            guidelines=community.guidelines,
            tags=list(community.tags),
            deleted=community.deleted,
            origin=community.origin.value,
        )
