"""Event draft builders for every write the engine supports.

Membership changes re-publish the full community definition with an updated
``p`` list, keeping the original creator in the content so the community
key stays stable whoever signs the update.
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Iterable, Sequence
from typing import Any

from chorus_council.core.errors import InvalidDraftError
from chorus_council.models.community import ROLE_BANNED, ROLE_MODERATOR, Community
from chorus_council.models.moderation import ContentReport, MemberBan, ModeratedPost
from chorus_council.schemas.content import REPORT_CATEGORIES, REPORT_TARGET_TYPES, REVIEW_STATUSES
from chorus_council.schemas.event import COMMUNITY_COORDINATE_PREFIX, EventDraft, EventKind, now_ts
from chorus_council.services.kicks import KICK_MARKER
from chorus_council.services.validator import MIN_PROPOSAL_OPTIONS

ROLE_CREATOR = "creator"


def _dumps(payload: dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def _coordinate(community_ref: str) -> str:
    if community_ref.startswith(COMMUNITY_COORDINATE_PREFIX):
        return community_ref
    return f"{COMMUNITY_COORDINATE_PREFIX}{community_ref}"


def community_definition(
    identifier: str,
    name: str,
    *,
    creator: str,
    description: str = "",
    image: str = "",
    founded_at: int | None = None,
    members: Iterable[str] = (),
    moderators: Iterable[str] = (),
    banned: Iterable[str] = (),
    is_private: bool = False,
    guidelines: str | None = None,
    tags: Sequence[str] = (),
    deleted: bool = False,
    created_at: int | None = None,
) -> EventDraft:
    """Build a kind 34550 draft from scratch."""
    if not identifier.strip():
        raise InvalidDraftError("community identifier must not be empty")
    if not deleted and not name.strip():
        raise InvalidDraftError("community name must not be empty")

    created_at = now_ts() if created_at is None else created_at
    content: dict[str, Any] = {
        "name": name,
        "description": description,
        "image": image,
        "creator": creator,
        "createdAt": founded_at if founded_at is not None else created_at,
        "isPrivate": is_private,
        "tags": list(tags),
    }
    if guidelines is not None:
        content["guidelines"] = guidelines
    if deleted:
        content["deleted"] = True

    moderator_set = set(moderators)
    p_tags: list[list[str]] = []
    seen: set[str] = set()
    for member in members:
        if member in seen:
            continue
        seen.add(member)
        if member == creator:
            p_tags.append(["p", member, ROLE_CREATOR])
        elif member in moderator_set:
            p_tags.append(["p", member, ROLE_MODERATOR])
        else:
            p_tags.append(["p", member])
    p_tags.extend(["p", pubkey, ROLE_BANNED] for pubkey in banned if pubkey not in seen)

    return EventDraft(
        kind=EventKind.COMMUNITY,
        tags=[["d", identifier], *p_tags],
        content=_dumps(content),
        created_at=created_at,
    )


def create_community(creator: str, identifier: str, name: str, **fields: Any) -> EventDraft:
    """Build the first definition of a community with its creator as sole member."""
    members = [creator, *fields.pop("members", ())]
    return community_definition(identifier, name, creator=creator, members=members, **fields)


def update_community(community: Community, **changes: Any) -> EventDraft:
    """Re-publish ``community`` with ``changes`` applied.

    The draft is never older than the current definition, so it replaces it.
    """
    fields: dict[str, Any] = {
        "description": community.description,
        "image": community.image,
        "founded_at": community.founded_at,
        "members": sorted(community.members),
        "moderators": sorted(community.moderators),
        "banned": sorted(community.banned_members),
        "is_private": community.is_private,
        "guidelines": community.guidelines,
        "tags": list(community.tags),
        "deleted": community.deleted,
    }
    name = changes.pop("name", community.name)
    fields.update(changes)
    fields.setdefault("created_at", max(now_ts(), community.created_at))
    return community_definition(
        community.identifier,
        name,
        creator=community.creator,
        **fields,
    )


def join_community(community: Community, pubkey: str) -> EventDraft:
    if pubkey in community.banned_members:
        raise InvalidDraftError(f"{pubkey} is banned from {community.unique_key}")
    if community.is_member(pubkey):
        raise InvalidDraftError(f"{pubkey} is already a member of {community.unique_key}")
    return update_community(community, members=[*sorted(community.members), pubkey])


def leave_community(community: Community, pubkey: str) -> EventDraft:
    if not community.is_member(pubkey):
        raise InvalidDraftError(f"{pubkey} is not a member of {community.unique_key}")
    if pubkey == community.creator:
        raise InvalidDraftError("the creator cannot leave; delete the community instead")
    return remove_member(community, pubkey)


def remove_member(community: Community, pubkey: str) -> EventDraft:
    """Build the definition that executes a kick."""
    return update_community(
        community,
        members=sorted(community.members - {pubkey}),
        moderators=sorted(community.moderators - {pubkey}),
    )


def delete_community(community: Community, requester: str) -> EventDraft:
    """Build a deletion marker; only the creator may delete, and only when alone."""
    if requester != community.creator:
        raise InvalidDraftError("only the creator can delete this community")
    if community.members - {community.creator}:
        raise InvalidDraftError("a community can only be deleted when the creator is the only member")
    return update_community(community, members=[community.creator], moderators=[], deleted=True)


def proposal(
    community: Community,
    title: str,
    options: Sequence[str],
    *,
    description: str = "",
    ends_at: int | None = None,
    category: str | None = None,
    identifier: str | None = None,
    created_at: int | None = None,
) -> EventDraft:
    if not title.strip():
        raise InvalidDraftError("proposal title must not be empty")
    if len(options) < MIN_PROPOSAL_OPTIONS:
        raise InvalidDraftError("a proposal needs at least two options")
    created_at = now_ts() if created_at is None else created_at
    if ends_at is not None and ends_at <= created_at:
        raise InvalidDraftError("proposal must end after it is created")

    content: dict[str, Any] = {"title": title, "description": description, "options": list(options)}
    if ends_at is not None:
        content["endsAt"] = ends_at
    if category is not None:
        content["category"] = category
    return EventDraft(
        kind=EventKind.PROPOSAL,
        tags=[
            ["e", community.id],
            ["a", community.coordinate],
            ["d", identifier or uuid.uuid4().hex],
            ["title", title],
        ],
        content=_dumps(content),
        created_at=created_at,
    )


def vote(proposal_id: str, option_index: int) -> EventDraft:
    if option_index < 0:
        raise InvalidDraftError("option index must not be negative")
    return EventDraft(kind=EventKind.VOTE, tags=[["e", proposal_id]], content=str(option_index))


def kick_proposal(community: Community, target: str, reason: str = "Community member vote to remove") -> EventDraft:
    if not community.is_member(target):
        raise InvalidDraftError(f"{target} is not a member of {community.unique_key}")
    return EventDraft(
        kind=EventKind.KICK_PROPOSAL,
        tags=[["e", community.id], ["a", community.coordinate], ["p", target, KICK_MARKER]],
        content=_dumps({"reason": reason}),
    )


def kick_vote(kick_id: str) -> EventDraft:
    return EventDraft(kind=EventKind.KICK_VOTE, tags=[["e", kick_id]], content="1")


def post_submission(
    community: Community,
    content: str,
    *,
    title: str | None = None,
    kind: int = EventKind.TEXT_NOTE,
) -> EventDraft:
    if kind not in (EventKind.TEXT_NOTE, EventKind.COMMENT):
        raise InvalidDraftError(f"kind {kind} is not a community post kind")
    tags = [["a", community.coordinate]]
    if title:
        tags.append(["title", title])
    return EventDraft(kind=kind, tags=tags, content=content)


def _decision(kind: EventKind, post: ModeratedPost, extra: dict[str, Any]) -> EventDraft:
    original: dict[str, Any] = {
        "id": post.id,
        "pubkey": post.author,
        "content": post.content,
        "created_at": post.created_at,
        "kind": post.kind,
        "tags": [["a", _coordinate(post.community_id)]],
    }
    if post.title:
        original["tags"].append(["title", post.title])
    original.update(extra)
    return EventDraft(
        kind=kind,
        tags=[
            ["a", _coordinate(post.community_id)],
            ["e", post.id],
            ["p", post.author],
            ["k", str(post.kind)],
        ],
        content=_dumps(original),
    )


def post_approval(post: ModeratedPost) -> EventDraft:
    if post.is_resolved:
        raise InvalidDraftError(f"post {post.id} is already {post.status.value}")
    return _decision(EventKind.POST_APPROVAL, post, {})


def post_rejection(post: ModeratedPost, reason: str = "") -> EventDraft:
    if post.is_resolved:
        raise InvalidDraftError(f"post {post.id} is already {post.status.value}")
    return _decision(EventKind.POST_REJECTION, post, {"reason": reason} if reason else {})


def content_report(
    community: Community,
    target_id: str,
    target_type: str,
    reason: str,
    category: str = "other",
) -> EventDraft:
    if target_type not in REPORT_TARGET_TYPES:
        raise InvalidDraftError(f"unknown report target type: {target_type}")
    if category not in REPORT_CATEGORIES:
        raise InvalidDraftError(f"unknown report category: {category}")
    if not reason.strip():
        raise InvalidDraftError("a report needs a reason")
    return EventDraft(
        kind=EventKind.CONTENT_REPORT,
        tags=[
            ["a", community.coordinate],
            ["e", target_id, target_type],
            ["report", category],
        ],
        content=_dumps({"reason": reason, "targetType": target_type, "category": category}),
    )


def report_review(report: ContentReport, status: str, resolution: str | None = None) -> EventDraft:
    if status not in REVIEW_STATUSES:
        raise InvalidDraftError(f"unknown review status: {status}")
    content: dict[str, Any] = {"status": status}
    if resolution is not None:
        content["resolution"] = resolution
    return EventDraft(
        kind=EventKind.REPORT_REVIEW,
        tags=[["a", _coordinate(report.community_id)], ["e", report.id]],
        content=_dumps(content),
    )


def member_ban(
    community: Community,
    pubkey: str,
    reason: str = "",
    expires_at: int | None = None,
) -> EventDraft:
    content: dict[str, Any] = {"action": "ban", "reason": reason}
    if expires_at is not None:
        if expires_at <= now_ts():
            raise InvalidDraftError("ban expiry must be in the future")
        content["expiresAt"] = expires_at
    return EventDraft(
        kind=EventKind.MEMBER_BAN,
        tags=[["a", community.coordinate], ["p", pubkey]],
        content=_dumps(content),
    )


def member_unban(ban: MemberBan) -> EventDraft:
    if ban.revoked_at is not None:
        raise InvalidDraftError(f"ban {ban.id} is already revoked")
    return EventDraft(
        kind=EventKind.MEMBER_BAN,
        tags=[["a", _coordinate(ban.community_id)], ["p", ban.banned_user], ["e", ban.id]],
        content=_dumps({"action": "unban"}),
    )
