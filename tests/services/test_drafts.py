"""Tests for event draft builders."""

import json

import pytest

from chorus_council.core.errors import InvalidDraftError
from chorus_council.models.moderation import Approval
from chorus_council.schemas.event import EventKind, now_ts
from chorus_council.services import drafts
from chorus_council.services.communities import CommunityReducer
from chorus_council.services.moderation import ModerationPipeline


@pytest.fixture
def community(alice, bob):
    reducer = CommunityReducer()
    event = alice.community(members=[alice.pubkey, bob.pubkey])
    reducer.apply(event)
    return reducer.get(event.id)


def test_create_community_marks_creator(alice) -> None:
    draft = drafts.create_community(alice.pubkey, "council", "Council", guidelines="Be kind")
    content = json.loads(draft.content)

    assert draft.kind == EventKind.COMMUNITY
    assert ["d", "council"] in draft.tags
    assert ["p", alice.pubkey, "creator"] in draft.tags
    assert content["creator"] == alice.pubkey
    assert content["guidelines"] == "Be kind"
    assert content["createdAt"] == draft.created_at


def test_empty_identifier_or_name_is_refused(alice) -> None:
    with pytest.raises(InvalidDraftError):
        drafts.create_community(alice.pubkey, " ", "Council")
    with pytest.raises(InvalidDraftError):
        drafts.create_community(alice.pubkey, "council", "")


def test_update_keeps_creator_and_never_goes_back_in_time(community, alice) -> None:
    draft = drafts.update_community(community, name="Renamed")
    content = json.loads(draft.content)

    assert content["name"] == "Renamed"
    assert content["creator"] == alice.pubkey
    assert draft.created_at >= community.created_at


def test_membership_changes(community, alice, bob, carol) -> None:
    joined = drafts.join_community(community, carol.pubkey)
    members = {tag[1] for tag in joined.tags if tag[0] == "p"}
    assert members == {alice.pubkey, bob.pubkey, carol.pubkey}

    with pytest.raises(InvalidDraftError):
        drafts.join_community(community, bob.pubkey)
    with pytest.raises(InvalidDraftError):
        drafts.leave_community(community, alice.pubkey)
    with pytest.raises(InvalidDraftError):
        drafts.leave_community(community, carol.pubkey)

    left = drafts.leave_community(community, bob.pubkey)
    assert {tag[1] for tag in left.tags if tag[0] == "p"} == {alice.pubkey}


def test_delete_requires_lone_creator(community, alice, bob) -> None:
    with pytest.raises(InvalidDraftError):
        drafts.delete_community(community, bob.pubkey)
    with pytest.raises(InvalidDraftError):
        drafts.delete_community(community, alice.pubkey)


def test_proposal_draft(community) -> None:
    draft = drafts.proposal(community, "Budget", ["Yes", "No"], ends_at=now_ts() + 60)
    tags = {tag[0]: tag[1] for tag in draft.tags}

    assert tags["e"] == community.id
    assert tags["a"] == community.coordinate
    assert tags["title"] == "Budget"
    assert len(tags["d"]) == 32

    with pytest.raises(InvalidDraftError):
        drafts.proposal(community, "Budget", ["Yes"])
    with pytest.raises(InvalidDraftError):
        drafts.proposal(community, "Budget", ["Yes", "No"], ends_at=1)


def test_kick_drafts(community, bob, carol) -> None:
    draft = drafts.kick_proposal(community, bob.pubkey)
    assert ["p", bob.pubkey, "kick"] in draft.tags
    assert json.loads(draft.content) == {"reason": "Community member vote to remove"}

    with pytest.raises(InvalidDraftError):
        drafts.kick_proposal(community, carol.pubkey)
    assert drafts.kick_vote("f" * 64).content == "1"


def test_vote_draft_rejects_negative_option() -> None:
    assert drafts.vote("f" * 64, 2).content == "2"
    with pytest.raises(InvalidDraftError):
        drafts.vote("f" * 64, -1)


def test_decision_embeds_original_post(community, alice, bob) -> None:
    pipeline = ModerationPipeline()
    post_event = bob.post(community.coordinate, content="hello")
    pipeline.apply_submission(post_event)
    post = pipeline.get_post(post_event.id)

    draft = drafts.post_rejection(post, "off topic")
    content = json.loads(draft.content)
    assert draft.kind == EventKind.POST_REJECTION
    assert content["id"] == post.id
    assert content["pubkey"] == bob.pubkey
    assert content["reason"] == "off topic"
    assert ["e", post.id] in draft.tags
    assert ["k", "1"] in draft.tags

    approved = post.approve(Approval(alice.pubkey, 1, "f" * 64))
    with pytest.raises(InvalidDraftError):
        drafts.post_approval(approved)


def test_report_and_ban_drafts(community, bob) -> None:
    report = drafts.content_report(community, "f" * 64, "post", "spam link", "spam")
    assert ["e", "f" * 64, "post"] in report.tags
    assert ["report", "spam"] in report.tags

    with pytest.raises(InvalidDraftError):
        drafts.content_report(community, "f" * 64, "thread", "spam link")
    with pytest.raises(InvalidDraftError):
        drafts.content_report(community, "f" * 64, "post", "  ")
    with pytest.raises(InvalidDraftError):
        drafts.member_ban(community, bob.pubkey, expires_at=1)

    ban = drafts.member_ban(community, bob.pubkey, "spam", expires_at=now_ts() + 3600)
    assert json.loads(ban.content)["action"] == "ban"
