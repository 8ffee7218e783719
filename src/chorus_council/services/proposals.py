"""Proposal and vote tally engine.

Proposals are first-writer-wins; each voter holds exactly one ballot per
proposal and the ballot with the larger ``created_at`` wins no matter which
order the votes were delivered in.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace
from threading import Lock

from chorus_council.core.settings import settings
from chorus_council.models.common import FoldOutcome, FoldResult, Origin, supersedes_origin
from chorus_council.models.proposal import Ballot, Proposal, Tally
from chorus_council.schemas.content import ProposalContent, VoteContent
from chorus_council.schemas.event import Event
from chorus_council.services.pending import PendingEventBuffer
from chorus_council.utils.locks import KeyedLock

logger = logging.getLogger(__name__)


class ProposalEngine:
    """Owns proposal projections and their ballots."""

    def __init__(
        self,
        *,
        pending: PendingEventBuffer | None = None,
        default_duration_seconds: int | None = None,
    ) -> None:
        self.pending = pending if pending is not None else PendingEventBuffer(label="vote")
        self.default_duration_seconds = (
            settings.default_proposal_duration_seconds
            if default_duration_seconds is None
            else default_duration_seconds
        )
        self._locks = KeyedLock()
        self._lock = Lock()
        self._proposals: dict[str, Proposal] = {}

    def apply_proposal(
        self,
        event: Event,
        content: ProposalContent | None = None,
        origin: Origin = Origin.CONFIRMED,
    ) -> FoldResult:
        """Create a proposal, then fold any votes that arrived before it."""
        if content is None:
            try:
                content = ProposalContent.from_event(event)
            except ValueError as exc:
                return FoldResult(FoldOutcome.REJECTED, event.id, f"invalid content: {exc}")

        community_id = event.tag_value("e")
        if community_id is None:
            return FoldResult(FoldOutcome.REJECTED, event.id, "missing community reference")

        with self._locks.hold(event.id):
            with self._lock:
                current = self._proposals.get(event.id)
            if current is not None:
                if not supersedes_origin(origin, current.origin):
                    logger.warning("Duplicate proposal %s ignored", event.id)
                    return FoldResult(FoldOutcome.UNCHANGED, event.id)
                with self._lock:
                    self._proposals[event.id] = replace(current, origin=origin)
                return FoldResult(FoldOutcome.APPLIED, event.id)

            ends_at = content.ends_at
            if ends_at is None:
                ends_at = event.created_at + self.default_duration_seconds
            proposal = Proposal(
                id=event.id,
                community_id=community_id,
                identifier=event.tag_value("d") or event.id,
                title=content.title,
                description=content.description,
                options=tuple(content.options),
                created_at=event.created_at,
                ends_at=ends_at,
                creator=event.pubkey,
                category=content.category,
                ballots={},
                origin=origin,
            )
            with self._lock:
                self._proposals[event.id] = proposal

        logger.debug("Proposal %s created in %s", event.id, community_id)
        for waiting in self.pending.drain(event.id):
            self.apply_vote(waiting.event, waiting.content, waiting.origin)  # type: ignore[arg-type]
        return FoldResult(FoldOutcome.APPLIED, event.id)

    def apply_vote(
        self,
        event: Event,
        content: VoteContent | None = None,
        origin: Origin = Origin.CONFIRMED,
    ) -> FoldResult:
        """Record the voter's ballot, or buffer it until its proposal is known."""
        if content is None:
            try:
                content = VoteContent.from_event(event)
            except ValueError as exc:
                return FoldResult(FoldOutcome.REJECTED, event.id, f"invalid content: {exc}")

        proposal_id = event.tag_value("e")
        if proposal_id is None:
            return FoldResult(FoldOutcome.REJECTED, event.id, "missing proposal reference")

        with self._locks.hold(proposal_id):
            with self._lock:
                proposal = self._proposals.get(proposal_id)
            if proposal is None:
                self.pending.add(proposal_id, event, content, origin)
                return FoldResult(FoldOutcome.BUFFERED, proposal_id)

            if content.option_index >= len(proposal.options):
                logger.warning(
                    "Vote %s picks option %d but proposal %s has %d options",
                    event.id,
                    content.option_index,
                    proposal_id,
                    len(proposal.options),
                )
                return FoldResult(FoldOutcome.REJECTED, proposal_id, "option index out of range")

            ballot = Ballot(
                option_index=content.option_index,
                created_at=event.created_at,
                event_id=event.id,
                origin=origin,
            )
            current = proposal.ballots.get(event.pubkey)
            if current is not None and not ballot.supersedes(current):
                if current.event_id == event.id:
                    return FoldResult(FoldOutcome.UNCHANGED, proposal_id)
                logger.debug("Ignoring older vote %s from %s", event.id, event.pubkey)
                return FoldResult(FoldOutcome.STALE, proposal_id)

            ballots = dict(proposal.ballots)
            ballots[event.pubkey] = ballot
            with self._lock:
                self._proposals[proposal_id] = replace(proposal, ballots=ballots)

        return FoldResult(FoldOutcome.APPLIED, proposal_id)

    def get_proposal(self, proposal_id: str) -> Proposal | None:
        with self._lock:
            return self._proposals.get(proposal_id)

    def get_tally(self, proposal_id: str) -> Tally | None:
        proposal = self.get_proposal(proposal_id)
        return proposal.tally() if proposal is not None else None

    def proposals_for(self, community_refs: str | Iterable[str]) -> list[Proposal]:
        """Return the proposals of a community, newest first."""
        refs = {community_refs} if isinstance(community_refs, str) else set(community_refs)
        with self._lock:
            found = [p for p in self._proposals.values() if p.community_id in refs]
        return sorted(found, key=lambda proposal: proposal.created_at, reverse=True)

    def all(self) -> list[Proposal]:
        with self._lock:
            return list(self._proposals.values())

    def clear(self) -> None:
        with self._lock:
            self._proposals.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._proposals)
