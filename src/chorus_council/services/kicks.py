"""Kick-consensus engine.

A kick proposal collects in-favor votes from members. Once the supporters
reach the quorum ratio of the community's current member set, the engine
emits one ``KickDecision``; the processor turns it into a community update
without the target.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from threading import Lock

from chorus_council.core.settings import settings
from chorus_council.models.common import FoldOutcome, FoldResult, Origin, supersedes_origin
from chorus_council.models.community import Community
from chorus_council.models.kick import KickDecision, KickProposal
from chorus_council.schemas.content import KickProposalContent, KickVoteContent
from chorus_council.schemas.event import Event
from chorus_council.services.pending import PendingEventBuffer
from chorus_council.utils.locks import KeyedLock

logger = logging.getLogger(__name__)

KICK_MARKER = "kick"

CommunityLookup = Callable[[str], Community | None]


def kick_target(event: Event) -> str | None:
    """Return the pubkey in the first ``["p", <pubkey>, "kick"]`` tag."""
    for tag in event.tags_named("p", min_length=3):
        if tag[2] == KICK_MARKER and tag[1]:
            return tag[1]
    return None


class KickConsensusEngine:
    """Owns kick proposals and decides when one has reached quorum."""

    def __init__(
        self,
        community_lookup: CommunityLookup,
        *,
        quorum_ratio: float | None = None,
        pending: PendingEventBuffer | None = None,
    ) -> None:
        self.community_lookup = community_lookup
        self.quorum_ratio = settings.kick_quorum_ratio if quorum_ratio is None else quorum_ratio
        self.pending = pending if pending is not None else PendingEventBuffer(label="kick vote")
        self._locks = KeyedLock()
        self._lock = Lock()
        self._kicks: dict[str, KickProposal] = {}

    def apply_kick_proposal(
        self,
        event: Event,
        content: KickProposalContent | None = None,
        origin: Origin = Origin.CONFIRMED,
    ) -> FoldResult:
        """Create a kick proposal with the creator's implicit vote and evaluate it."""
        if content is None:
            try:
                content = KickProposalContent.from_event(event)
            except ValueError as exc:
                return FoldResult(FoldOutcome.REJECTED, event.id, f"invalid content: {exc}")

        community_id = event.tag_value("e")
        target = kick_target(event)
        if community_id is None or target is None:
            return FoldResult(FoldOutcome.REJECTED, event.id, "missing community or kick target")

        decisions: list[KickDecision] = []
        with self._locks.hold(event.id):
            with self._lock:
                current = self._kicks.get(event.id)
            if current is not None:
                if not supersedes_origin(origin, current.origin):
                    logger.warning("Duplicate kick proposal %s ignored", event.id)
                    return FoldResult(FoldOutcome.UNCHANGED, event.id)
                self._store(replace(current, origin=origin))
                return FoldResult(FoldOutcome.APPLIED, event.id)

            proposal = KickProposal(
                id=event.id,
                community_id=community_id,
                target_member=target,
                creator=event.pubkey,
                votes=frozenset({event.pubkey}),
                created_at=event.created_at,
                reason=content.reason,
                origin=origin,
            )
            self._store(proposal)
            decision = self._evaluate_locked(proposal)
            if decision is not None:
                decisions.append(decision)

        for waiting in self.pending.drain(event.id):
            result = self.apply_kick_vote(waiting.event, waiting.content, waiting.origin)  # type: ignore[arg-type]
            decisions.extend(result.decisions)
        return FoldResult(FoldOutcome.APPLIED, event.id, decisions=tuple(decisions))

    def apply_kick_vote(
        self,
        event: Event,
        content: KickVoteContent | None = None,
        origin: Origin = Origin.CONFIRMED,
    ) -> FoldResult:
        """Add the voter to the proposal's supporters and re-evaluate quorum.

        Quorum is evaluated even for a repeated vote, so a proposal whose
        earlier execution failed to publish can trigger again.
        """
        if content is None:
            try:
                content = KickVoteContent.from_event(event)
            except ValueError as exc:
                return FoldResult(FoldOutcome.REJECTED, event.id, f"invalid content: {exc}")

        proposal_id = event.tag_value("e")
        if proposal_id is None:
            return FoldResult(FoldOutcome.REJECTED, event.id, "missing kick proposal reference")

        with self._locks.hold(proposal_id):
            with self._lock:
                proposal = self._kicks.get(proposal_id)
            if proposal is None:
                self.pending.add(proposal_id, event, content, origin)
                return FoldResult(FoldOutcome.BUFFERED, proposal_id)

            outcome = FoldOutcome.UNCHANGED
            if event.pubkey not in proposal.votes:
                proposal = replace(proposal, votes=proposal.votes | {event.pubkey})
                self._store(proposal)
                outcome = FoldOutcome.APPLIED
            decision = self._evaluate_locked(proposal)

        decisions = (decision,) if decision is not None else ()
        return FoldResult(outcome, proposal_id, decisions=decisions)

    def _evaluate_locked(self, proposal: KickProposal) -> KickDecision | None:
        if proposal.executed:
            return None
        community = self.community_lookup(proposal.community_id)
        if community is None or not community.members:
            logger.debug("Kick %s waits for community %s", proposal.id, proposal.community_id)
            return None
        if not community.is_member(proposal.target_member):
            logger.info(
                "Kick %s closed: %s is no longer a member of %s",
                proposal.id,
                proposal.target_member,
                community.unique_key,
            )
            self._store(replace(proposal, executed=True))
            return None

        ratio = len(proposal.votes) / len(community.members)
        if ratio < self.quorum_ratio:
            return None

        self._store(replace(proposal, executed=True))
        logger.info(
            "Kick %s reached quorum (%d/%d) to remove %s from %s",
            proposal.id,
            len(proposal.votes),
            len(community.members),
            proposal.target_member,
            community.unique_key,
        )
        return KickDecision(
            proposal_id=proposal.id,
            community_id=proposal.community_id,
            community_key=community.unique_key,
            target_member=proposal.target_member,
            votes=len(proposal.votes),
            members=len(community.members),
        )

    def release(self, proposal_id: str) -> None:
        """Un-mark an executed proposal after its community update failed to publish."""
        with self._locks.hold(proposal_id):
            with self._lock:
                proposal = self._kicks.get(proposal_id)
            if proposal is not None and proposal.executed:
                self._store(replace(proposal, executed=False))
                logger.warning("Kick %s released after failed publish", proposal_id)

    def _store(self, proposal: KickProposal) -> None:
        with self._lock:
            self._kicks[proposal.id] = proposal

    def get_kick_proposal(self, proposal_id: str) -> KickProposal | None:
        with self._lock:
            return self._kicks.get(proposal_id)

    def kicks_for(self, community_refs: str | Iterable[str]) -> list[KickProposal]:
        """Return the kick proposals of a community, newest first."""
        refs = {community_refs} if isinstance(community_refs, str) else set(community_refs)
        with self._lock:
            found = [kick for kick in self._kicks.values() if kick.community_id in refs]
        return sorted(found, key=lambda kick: kick.created_at, reverse=True)

    def all(self) -> list[KickProposal]:
        with self._lock:
            return list(self._kicks.values())

    def clear(self) -> None:
        with self._lock:
            self._kicks.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._kicks)
