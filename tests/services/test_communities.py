"""Tests for the community reducer."""

import pytest

from chorus_council.models.common import FoldOutcome, Origin
from chorus_council.schemas.event import EventKind
from chorus_council.services.communities import CommunityReducer

BASE = 1_700_000_000


@pytest.fixture
def reducer() -> CommunityReducer:
    return CommunityReducer()


@pytest.mark.parametrize("order", [(0, 1), (1, 0)])
def test_last_write_wins_in_either_order(reducer, alice, order) -> None:
    events = [
        alice.community(name="Old name", created_at=100),
        alice.community(name="New name", created_at=200),
    ]
    for index in order:
        reducer.apply(events[index])

    community = reducer.get(f"{alice.pubkey}:council")
    assert community is not None
    assert community.name == "New name"
    assert community.created_at == 200


def test_stale_event_is_dropped_but_id_still_resolves(reducer, alice) -> None:
    newer = alice.community(name="New", created_at=200)
    older = alice.community(name="Old", created_at=100)
    reducer.apply(newer)

    result = reducer.apply(older)

    assert result.outcome is FoldOutcome.STALE
    assert reducer.get(older.id).name == "New"
    assert reducer.get(older.id) == reducer.get(newer.id)


def test_equal_timestamp_replaces(reducer, alice) -> None:
    reducer.apply(alice.community(name="First", created_at=100))
    second = alice.community(name="Second", created_at=100)
    assert reducer.apply(second).applied
    assert reducer.get(f"{alice.pubkey}:council").id == second.id


def test_apply_is_idempotent(reducer, alice, bob) -> None:
    event = alice.community(members=[alice.pubkey, bob.pubkey])
    assert reducer.apply(event).outcome is FoldOutcome.APPLIED
    before = reducer.get(event.id)

    assert reducer.apply(event).outcome is FoldOutcome.UNCHANGED
    assert reducer.get(event.id) == before
    assert len(reducer) == 1


def test_lookup_by_key_coordinate_and_event_id(reducer, alice) -> None:
    event = alice.community()
    reducer.apply(event)
    key = f"{alice.pubkey}:council"

    assert reducer.get(key).unique_key == key
    assert reducer.get(f"34550:{key}").unique_key == key
    assert reducer.get(event.id).unique_key == key
    assert reducer.get("unknown") is None
    assert reducer.get(key).coordinate == f"34550:{key}"


def test_roles_from_p_tags(reducer, alice, bob, carol, dave) -> None:
    event = alice.sign(
        EventKind.COMMUNITY,
        [
            ["d", "council"],
            ["p", alice.pubkey, "creator"],
            ["p", bob.pubkey, "moderator"],
            ["p", carol.pubkey],
            ["p", dave.pubkey, "banned"],
        ],
        {"name": "Council"},
    )
    reducer.apply(event)
    community = reducer.get(event.id)

    assert community.members == {alice.pubkey, bob.pubkey, carol.pubkey}
    assert community.moderators == {bob.pubkey}
    assert community.banned_members == {dave.pubkey}
    assert community.is_moderator(alice.pubkey)
    assert community.is_moderator(bob.pubkey)
    assert not community.is_moderator(carol.pubkey)


def test_member_update_signed_by_joiner_keeps_key(reducer, alice, bob) -> None:
    reducer.apply(alice.community(created_at=100))
    join = bob.community(
        members=[alice.pubkey, bob.pubkey],
        created_at=200,
        creator=alice.pubkey,
    )
    reducer.apply(join)

    community = reducer.get(f"{alice.pubkey}:council")
    assert community.creator == alice.pubkey
    assert community.members == {alice.pubkey, bob.pubkey}
    assert len(reducer) == 1
    assert reducer.refs_for(community.unique_key) >= {join.id, community.unique_key}


def test_deletion_hides_community_from_listing(reducer, alice) -> None:
    reducer.apply(alice.community(created_at=100))
    reducer.apply(alice.community(created_at=200, deleted=True))

    assert reducer.get(f"{alice.pubkey}:council").deleted
    assert reducer.list() == []
    assert len(reducer.list(include_deleted=True)) == 1


def test_confirmed_copy_replaces_optimistic(reducer, alice) -> None:
    event = alice.community()
    reducer.apply(event, origin=Origin.OPTIMISTIC)
    assert reducer.get(event.id).origin is Origin.OPTIMISTIC

    assert reducer.apply(event, origin=Origin.CONFIRMED).applied
    assert reducer.get(event.id).origin is Origin.CONFIRMED

    assert reducer.apply(event, origin=Origin.OPTIMISTIC).outcome is FoldOutcome.UNCHANGED
    assert reducer.get(event.id).origin is Origin.CONFIRMED


def test_missing_d_tag_is_rejected(reducer, alice) -> None:
    event = alice.sign(EventKind.COMMUNITY, [["p", alice.pubkey]], {"name": "X"})
    assert reducer.apply(event).outcome is FoldOutcome.REJECTED
    assert len(reducer) == 0
