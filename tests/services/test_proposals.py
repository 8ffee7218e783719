"""Tests for the proposal and vote tally engine."""

import pytest

from chorus_council.models.common import FoldOutcome, Origin
from chorus_council.models.proposal import ProposalStatus
from chorus_council.services.pending import PendingEventBuffer
from chorus_council.services.proposals import ProposalEngine

BASE = 1_700_000_000
COMMUNITY_ID = "a" * 64


@pytest.fixture
def clock() -> list[float]:
    return [1000.0]


@pytest.fixture
def engine(clock) -> ProposalEngine:
    pending = PendingEventBuffer(ttl_seconds=30, max_per_target=4, clock=lambda: clock[0], label="vote")
    return ProposalEngine(pending=pending, default_duration_seconds=3600)


def test_non_member_votes_are_counted(engine, alice, bob) -> None:
    proposal = alice.proposal(COMMUNITY_ID, options=["Yes", "No"])
    engine.apply_proposal(proposal)
    engine.apply_vote(alice.vote(proposal.id, 0))
    engine.apply_vote(bob.vote(proposal.id, 1))

    tally = engine.get_tally(proposal.id)
    assert tally.total == 2
    assert tally.counts == (1, 1)
    assert tally.percentages == (0.5, 0.5)


def test_later_vote_wins_even_when_delivered_first(engine, alice) -> None:
    proposal = alice.proposal(COMMUNITY_ID)
    engine.apply_proposal(proposal)
    early = alice.vote(proposal.id, 0, created_at=100)
    late = alice.vote(proposal.id, 1, created_at=200)

    assert engine.apply_vote(late).applied
    assert engine.apply_vote(early).outcome is FoldOutcome.STALE

    tally = engine.get_tally(proposal.id)
    assert tally.counts == (0, 1)
    assert tally.total == 1
    assert engine.get_proposal(proposal.id).votes == {alice.pubkey: 1}


def test_vote_overwrite_in_order(engine, alice) -> None:
    proposal = alice.proposal(COMMUNITY_ID)
    engine.apply_proposal(proposal)
    engine.apply_vote(alice.vote(proposal.id, 0, created_at=100))
    engine.apply_vote(alice.vote(proposal.id, 1, created_at=200))
    assert engine.get_tally(proposal.id).counts == (0, 1)


def test_equal_timestamps_resolve_to_smaller_event_id(engine, alice) -> None:
    proposal = alice.proposal(COMMUNITY_ID)
    engine.apply_proposal(proposal)
    first = alice.vote(proposal.id, 0, created_at=150)
    second = alice.vote(proposal.id, 1, created_at=150)
    winner = min(first, second, key=lambda event: event.id)

    engine.apply_vote(first)
    engine.apply_vote(second)
    assert engine.get_proposal(proposal.id).ballots[alice.pubkey].event_id == winner.id


def test_out_of_range_option_is_rejected(engine, alice) -> None:
    proposal = alice.proposal(COMMUNITY_ID, options=["Yes", "No"])
    engine.apply_proposal(proposal)
    result = engine.apply_vote(alice.vote(proposal.id, 2))
    assert result.outcome is FoldOutcome.REJECTED
    assert engine.get_tally(proposal.id).total == 0


def test_orphan_vote_is_buffered_until_proposal_arrives(engine, alice, bob) -> None:
    proposal = alice.proposal(COMMUNITY_ID)
    result = engine.apply_vote(bob.vote(proposal.id, 1))
    assert result.outcome is FoldOutcome.BUFFERED
    assert engine.pending.waiting_for(proposal.id) == 1

    engine.apply_proposal(proposal)

    assert engine.get_tally(proposal.id).counts == (0, 1)
    assert len(engine.pending) == 0


def test_expired_orphan_votes_are_dropped(engine, clock, alice, bob) -> None:
    proposal = alice.proposal(COMMUNITY_ID)
    engine.apply_vote(bob.vote(proposal.id, 1))
    clock[0] += 31

    engine.apply_proposal(proposal)

    assert engine.get_tally(proposal.id).total == 0


def test_first_proposal_wins(engine, alice) -> None:
    proposal = alice.proposal(COMMUNITY_ID)
    assert engine.apply_proposal(proposal).applied
    engine.apply_vote(alice.vote(proposal.id, 0))

    assert engine.apply_proposal(proposal).outcome is FoldOutcome.UNCHANGED
    assert engine.get_tally(proposal.id).total == 1


def test_vote_is_idempotent(engine, alice) -> None:
    proposal = alice.proposal(COMMUNITY_ID)
    engine.apply_proposal(proposal)
    vote = alice.vote(proposal.id, 1)
    engine.apply_vote(vote)
    before = engine.get_proposal(proposal.id)

    assert engine.apply_vote(vote).outcome is FoldOutcome.UNCHANGED
    assert engine.get_proposal(proposal.id) == before


def test_optimistic_proposal_is_confirmed_without_losing_votes(engine, alice) -> None:
    proposal = alice.proposal(COMMUNITY_ID)
    engine.apply_proposal(proposal, origin=Origin.OPTIMISTIC)
    engine.apply_vote(alice.vote(proposal.id, 0))

    assert engine.apply_proposal(proposal).applied
    stored = engine.get_proposal(proposal.id)
    assert stored.origin is Origin.CONFIRMED
    assert stored.tally().total == 1


def test_default_end_and_status(engine, alice, bob) -> None:
    proposal = alice.proposal(COMMUNITY_ID, created_at=BASE)
    engine.apply_proposal(proposal)
    stored = engine.get_proposal(proposal.id)

    assert stored.ends_at == BASE + 3600
    assert stored.is_active(BASE + 10)
    assert stored.status(BASE + 10) is ProposalStatus.ACTIVE
    assert stored.winning_option(BASE + 10) is None

    engine.apply_vote(alice.vote(proposal.id, 1))
    assert stored.status(BASE + 3600) is ProposalStatus.CLOSED
    assert engine.get_proposal(proposal.id).winning_option(BASE + 3600) == 1


def test_tied_proposal_has_no_winner(engine, alice, bob) -> None:
    proposal = alice.proposal(COMMUNITY_ID, endsAt=BASE + 5)
    engine.apply_proposal(proposal)
    engine.apply_vote(alice.vote(proposal.id, 0))
    engine.apply_vote(bob.vote(proposal.id, 1))
    assert engine.get_proposal(proposal.id).winning_option(BASE + 10) is None


def test_proposals_for_community(engine, alice) -> None:
    first = alice.proposal(COMMUNITY_ID, created_at=BASE)
    second = alice.proposal(COMMUNITY_ID, created_at=BASE + 1)
    other = alice.proposal("b" * 64, created_at=BASE + 2)
    for event in (first, second, other):
        engine.apply_proposal(event)

    assert [p.id for p in engine.proposals_for(COMMUNITY_ID)] == [second.id, first.id]
    assert engine.proposals_for({"c" * 64}) == []


def test_injected_buffer_is_kept() -> None:
    pending = PendingEventBuffer(ttl_seconds=5, max_per_target=1, label="vote")
    assert ProposalEngine(pending=pending).pending is pending
