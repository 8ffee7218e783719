"""Tests for the per-kind event validator."""

from chorus_council.schemas.content import (
    CommunityContent,
    ContentReportContent,
    ModerationDecisionContent,
    VoteContent,
)
from chorus_council.schemas.event import Event, EventKind
from chorus_council.services.validator import UNSUPPORTED_KIND, EventValidator, is_hex


def test_community_with_empty_d_tag_is_invalid(alice) -> None:
    event = alice.sign(EventKind.COMMUNITY, [["d", ""], ["p", alice.pubkey]], {"name": "X"})
    result = EventValidator.validate(event)
    assert result.valid is False
    assert any("'d' tag" in error for error in result.errors)


def test_community_with_d_tag_and_member_is_valid(alice) -> None:
    event = alice.sign(EventKind.COMMUNITY, [["d", "abc"], ["p", alice.pubkey]], {"name": "X"})
    result = EventValidator.validate(event)
    assert result.valid is True
    assert result.errors == []
    assert result.event_type == "community"
    assert isinstance(result.content, CommunityContent)
    assert result.content.name == "X"


def test_community_missing_p_tag_and_name(alice) -> None:
    event = alice.sign(EventKind.COMMUNITY, [["d", "abc"]], {"description": 3})
    result = EventValidator.validate(event)
    assert not result.valid
    assert "Missing required 'p' tag for at least one member" in result.errors
    assert "Missing or invalid 'name' field in content" in result.errors
    assert "Description field should be a string" in result.warnings


def test_deleted_community_does_not_need_name(alice) -> None:
    event = alice.sign(
        EventKind.COMMUNITY,
        [["d", "abc"], ["p", alice.pubkey, "creator"]],
        {"deleted": True},
    )
    assert EventValidator.validate(event).valid


def test_community_warnings_for_short_pubkey_and_unknown_role(alice) -> None:
    event = alice.sign(
        EventKind.COMMUNITY,
        [["d", "abc"], ["p", "abcd"], ["p", alice.pubkey, "overlord"]],
        {"name": "X", "creator": "someone-else", "tags": "nope"},
    )
    result = EventValidator.validate(event)
    assert result.valid
    assert "P tag at index 0: pubkey should be 64 hex characters" in result.warnings
    assert "P tag at index 1: unknown role 'overlord'" in result.warnings
    assert "Creator in content doesn't match event pubkey" in result.warnings
    assert "Tags field should be an array" in result.warnings


def test_invalid_json_content(alice) -> None:
    event = alice.sign(EventKind.COMMUNITY, [["d", "abc"], ["p", alice.pubkey]], "{not json")
    result = EventValidator.validate(event)
    assert "Invalid JSON in content" in result.errors


def test_signature_fields_must_be_hex(alice) -> None:
    event = alice.sign(EventKind.COMMUNITY, [["d", "abc"], ["p", alice.pubkey]], {"name": "X"})
    tampered = event.model_copy(update={"sig": "zz", "id": "short"})
    result = EventValidator.validate(tampered)
    assert "Invalid or missing event ID" in result.errors
    assert "Invalid or missing event signature" in result.errors


def test_relaxed_mode_skips_signature_check(alice) -> None:
    event = alice.sign(EventKind.COMMUNITY, [["d", "abc"], ["p", alice.pubkey]], {"name": "X"})
    unsigned = event.model_copy(update={"sig": ""})
    assert not EventValidator.validate(unsigned).valid
    assert EventValidator.validate(unsigned, require_signature=False).valid


def test_unknown_kind_is_rejected(alice) -> None:
    result = EventValidator.validate(alice.sign(30023, [], "article"))
    assert result.valid is False
    assert result.errors == [UNSUPPORTED_KIND]


def test_proposal_rules(alice) -> None:
    community_id = "a" * 64
    good = alice.proposal(community_id, endsAt=1_700_100_000)
    assert EventValidator.validate(good).valid

    one_option = alice.proposal(community_id, options=["Only"])
    assert "Proposal must have at least 2 options" in EventValidator.validate(one_option).errors

    bad_ref = alice.sign(
        EventKind.PROPOSAL,
        [["e", "not-an-id"], ["d", "p1"]],
        {"title": "T", "options": ["a", "b"]},
    )
    assert "Invalid community reference in 'e' tag" in EventValidator.validate(bad_ref).errors

    past_end = alice.proposal(community_id, endsAt=1)
    result = EventValidator.validate(past_end)
    assert result.valid
    assert "Invalid or past end time for proposal" in result.warnings


def test_vote_content_must_be_non_negative_integer(alice) -> None:
    proposal_id = "b" * 64
    ok = EventValidator.validate(alice.vote(proposal_id, 2))
    assert ok.valid
    assert isinstance(ok.content, VoteContent)
    assert ok.content.option_index == 2

    for content in ("-1", "one", "1.5", ""):
        assert not EventValidator.validate(alice.vote(proposal_id, content)).valid


def test_approval_requires_matching_embedded_post(alice, bob) -> None:
    coordinate = f"34550:{alice.pubkey}:council"
    post = bob.post(coordinate)
    approval = alice.decision(post, coordinate)
    result = EventValidator.validate(approval)
    assert result.valid
    assert isinstance(result.content, ModerationDecisionContent)
    assert result.content.id == post.id

    mismatched = alice.sign(
        EventKind.POST_APPROVAL,
        [["a", coordinate], ["e", "c" * 64], ["p", bob.pubkey], ["k", "1"]],
        {"id": post.id, "pubkey": bob.pubkey, "content": post.content},
    )
    errors = EventValidator.validate(mismatched).errors
    assert "Post reference in 'e' tag does not match the embedded post id" in errors


def test_approval_without_original_post_data(alice) -> None:
    coordinate = f"34550:{alice.pubkey}:council"
    event = alice.sign(
        EventKind.POST_REJECTION,
        [["a", coordinate], ["e", "c" * 64], ["p", alice.pubkey]],
        {"reason": "spam"},
    )
    result = EventValidator.validate(event)
    assert "Content must contain valid original post data" in result.errors
    assert "Missing 'k' tag for original post kind" in result.warnings


def test_approval_with_wrong_address(alice, bob) -> None:
    post = bob.post(f"34550:{alice.pubkey}:council")
    event = alice.decision(post, "30023:whatever")
    assert "Invalid 'a' tag format, should start with '34550:'" in EventValidator.validate(event).errors


def test_content_report(alice) -> None:
    coordinate = f"34550:{alice.pubkey}:council"
    event = alice.sign(
        EventKind.CONTENT_REPORT,
        [["a", coordinate], ["e", "d" * 64, "post"], ["report", "spam"]],
        {"reason": "buy now", "targetType": "post"},
    )
    result = EventValidator.validate(event)
    assert result.valid
    assert isinstance(result.content, ContentReportContent)
    assert result.content.category == "spam"

    untyped = alice.sign(
        EventKind.CONTENT_REPORT,
        [["a", coordinate], ["e", "d" * 64], ["report", "gossip"]],
        {"reason": "meh", "targetType": "thread"},
    )
    result = EventValidator.validate(untyped)
    assert "Missing or invalid 'targetType' field in content" in result.errors
    assert "E tag should specify target type (post, comment, user)" in result.warnings
    assert "Unknown report category: gossip" in result.warnings


def test_kick_events(alice, bob) -> None:
    community_id = "e" * 64
    assert EventValidator.validate(alice.kick(community_id, bob.pubkey)).valid
    assert EventValidator.validate(alice.kick_vote("f" * 64)).valid

    no_marker = alice.sign(EventKind.KICK_PROPOSAL, [["e", community_id], ["p", bob.pubkey]], "")
    assert not EventValidator.validate(no_marker).valid

    against = alice.sign(EventKind.KICK_VOTE, [["e", "f" * 64]], "0")
    assert "Kick vote content must be '1'" in EventValidator.validate(against).errors


def test_unban_requires_ban_reference(alice, bob) -> None:
    coordinate = f"34550:{alice.pubkey}:council"
    event = alice.sign(
        EventKind.MEMBER_BAN,
        [["a", coordinate], ["p", bob.pubkey]],
        {"action": "unban"},
    )
    assert "Unban requires an 'e' tag referencing the ban" in EventValidator.validate(event).errors


def test_validate_raw_rejects_malformed_structure() -> None:
    event, result = EventValidator.validate_raw({"kind": "community", "tags": 5})
    assert event is None
    assert result.errors == ["Invalid event structure"]


def test_compliance_report_counts(alice) -> None:
    good = alice.sign(EventKind.COMMUNITY, [["d", "abc"], ["p", alice.pubkey]], {"name": "X"})
    bad = alice.sign(EventKind.COMMUNITY, [["d", ""], ["p", alice.pubkey]], {"name": "X"})
    unknown = Event(kind=7, created_at=1, content="+")

    report = EventValidator.compliance_report([good, bad, unknown])

    assert report.summary.total_events == 3
    assert report.summary.compliant_events == 1
    assert round(report.summary.compliance_rate, 2) == 33.33
    assert report.event_breakdown == {"community": 2, "unknown": 1}
    assert any(issue.event_id == "event_2" for issue in report.issues)


def test_is_hex() -> None:
    assert is_hex("ab" * 32, 64)
    assert not is_hex("xy" * 32, 64)
    assert not is_hex(None, 64)


def test_non_finite_numbers_are_reported_not_raised(alice, bob) -> None:
    community_id = "a" * 64
    huge_end = alice.sign(
        EventKind.PROPOSAL,
        [["e", community_id], ["d", "p1"]],
        '{"title":"T","options":["a","b"],"endsAt":1e400}',
    )
    result = EventValidator.validate(huge_end)
    assert result.valid
    assert "Invalid or past end time for proposal" in result.warnings
    assert result.content.ends_at is None

    community = EventValidator.validate(alice.community(createdAt=float("inf")))
    assert community.valid
    assert community.content.founded_at is None

    post_id = "c" * 64
    decision = alice.sign(
        EventKind.POST_APPROVAL,
        [["a", f"34550:{alice.pubkey}:council"], ["e", post_id], ["p", bob.pubkey], ["k", "1"]],
        f'{{"id":"{post_id}","pubkey":"{bob.pubkey}","content":"hi","created_at":1e400,"kind":Infinity}}',
    )
    approved = EventValidator.validate(decision)
    assert approved.valid
    assert approved.content.created_at is None
    assert approved.content.kind is None


def test_non_finite_ban_expiry_is_an_error(alice, bob) -> None:
    event = alice.sign(
        EventKind.MEMBER_BAN,
        [["a", f"34550:{alice.pubkey}:council"], ["p", bob.pubkey]],
        '{"action":"ban","expiresAt":Infinity}',
    )
    result = EventValidator.validate(event)
    assert not result.valid
    assert "Invalid 'expiresAt' field in content" in result.errors
