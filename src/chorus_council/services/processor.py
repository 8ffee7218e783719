"""Event processor: validates incoming events and routes them to their reducer.

The processor owns every reducer, the event log, the registered listeners
and the subscription consumer tasks. Reads go straight to the reducers;
writes publish through the transport first and are folded optimistically
only once the transport has accepted them.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from chorus_council.core.errors import InvalidDraftError, PublishError, UnknownEntityError
from chorus_council.core.security import verify_event_signature
from chorus_council.core.settings import Settings, settings
from chorus_council.models.common import FoldOutcome, FoldResult, Origin
from chorus_council.models.community import Community
from chorus_council.models.kick import KickDecision, KickProposal
from chorus_council.models.moderation import ContentReport, MemberBan, ModeratedPost
from chorus_council.models.proposal import Proposal
from chorus_council.schemas.content import EventContent
from chorus_council.schemas.event import (
    COMMUNITY_COORDINATE_PREFIX,
    POST_SUBMISSION_KINDS,
    Event,
    EventDraft,
    EventKind,
    SubscriptionFilter,
    strip_coordinate,
)
from chorus_council.schemas.validation import ValidationResult
from chorus_council.services import drafts
from chorus_council.services.communities import CommunityReducer
from chorus_council.services.event_log import EventLog
from chorus_council.services.kicks import KickConsensusEngine
from chorus_council.services.loopback import LoopbackRelay
from chorus_council.services.moderation import ModerationPipeline
from chorus_council.services.pending import PendingEventBuffer
from chorus_council.services.proposals import ProposalEngine
from chorus_council.services.transport import RelayTransport
from chorus_council.services.validator import EventValidator

logger = logging.getLogger(__name__)

Listener = Callable[[Event, FoldResult], None]

MODERATION_KINDS = [
    EventKind.TEXT_NOTE,
    EventKind.COMMENT,
    EventKind.POST_APPROVAL,
    EventKind.POST_REJECTION,
    EventKind.REPORT_REVIEW,
    EventKind.CONTENT_REPORT,
    EventKind.MEMBER_BAN,
]


@dataclass(frozen=True)
class ProcessedEvent:
    """What happened to one event handed to the processor."""

    event: Event
    validation: ValidationResult
    result: FoldResult | None = None
    duplicate: bool = False
    origin: Origin = Origin.CONFIRMED

    @property
    def accepted(self) -> bool:
        return self.validation.valid and not self.duplicate

    @property
    def decisions(self) -> tuple[KickDecision, ...]:
        return self.result.decisions if self.result is not None else ()


class EventProcessor:
    """Routes events to the reducers and exposes the resulting projections."""

    def __init__(self, transport: RelayTransport, config: Settings | None = None) -> None:
        self.transport = transport
        self.config = config or settings

        def buffer(label: str) -> PendingEventBuffer:
            return PendingEventBuffer(
                ttl_seconds=self.config.pending_vote_ttl_seconds,
                max_per_target=self.config.pending_vote_max_per_target,
                max_total=self.config.pending_max_total,
                label=label,
            )

        self.communities = CommunityReducer()
        self.proposals = ProposalEngine(
            pending=buffer("vote"),
            default_duration_seconds=self.config.default_proposal_duration_seconds,
        )
        self.kicks = KickConsensusEngine(
            self.communities.get,
            quorum_ratio=self.config.kick_quorum_ratio,
            pending=buffer("kick vote"),
        )
        self.moderation = ModerationPipeline(pending=buffer("moderation event"))
        self.log = EventLog(self.config.event_log_max_events)

        self._listeners: list[Listener] = []
        self._subscriptions: dict[str, asyncio.Task[None]] = {}
        self._followers: dict[str, list[str]] = {}
        self._followed: dict[str, set[str]] = {}
        self._watched: dict[str, str] = {}
        self._stats: Counter[str] = Counter()
        self._routes: dict[int, Callable[[Event, Any, Origin], FoldResult]] = {
            EventKind.COMMUNITY: self.communities.apply,
            EventKind.PROPOSAL: self.proposals.apply_proposal,
            EventKind.VOTE: self.proposals.apply_vote,
            EventKind.KICK_PROPOSAL: self.kicks.apply_kick_proposal,
            EventKind.KICK_VOTE: self.kicks.apply_kick_vote,
            EventKind.POST_APPROVAL: self.moderation.apply_decision,
            EventKind.POST_REJECTION: self.moderation.apply_decision,
            EventKind.CONTENT_REPORT: self.moderation.apply_report,
            EventKind.REPORT_REVIEW: self.moderation.apply_review,
            EventKind.MEMBER_BAN: self.moderation.apply_ban,
        }
        for kind in POST_SUBMISSION_KINDS:
            self._routes[kind] = self.moderation.apply_submission

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for every folded event and return its remover."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self, event: Event, result: FoldResult) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, result)
            except Exception:  # noqa: BLE001 - listener bugs must not stop folding
                logger.exception("Listener %r failed on event %s", listener, event.id)

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------
    def validate(self, event: Event, origin: Origin = Origin.CONFIRMED) -> ValidationResult:
        """Validate ``event`` the way ``ingest`` does."""
        confirmed = origin is Origin.CONFIRMED
        validation = EventValidator.validate(event, require_signature=confirmed)
        if validation.valid and confirmed and self.config.require_signatures:
            if not verify_event_signature(event):
                return validation.model_copy(
                    update={"valid": False, "errors": ["Invalid event signature"], "content": None}
                )
        return validation

    def ingest(self, event: Event, origin: Origin = Origin.CONFIRMED) -> ProcessedEvent:
        """Validate, deduplicate and fold one event.

        Kick decisions are returned on the result but not executed; use
        ``process`` for that.
        """
        self._stats["received"] += 1
        self._sweep_pending()
        validation = self.validate(event, origin)
        if not validation.valid:
            self._stats["rejected"] += 1
            logger.warning(
                "Rejected %s event %s: %s",
                validation.event_type,
                event.id or "<no id>",
                "; ".join(validation.errors),
            )
            return ProcessedEvent(event, validation, origin=origin)

        if not self.log.add(event, origin):
            self._stats["duplicates"] += 1
            return ProcessedEvent(event, validation, duplicate=True, origin=origin)

        result = self._fold(event, validation.content, origin)
        self._stats[result.outcome.value] += 1
        self._notify(event, result)
        return ProcessedEvent(event, validation, result=result, origin=origin)

    def _sweep_pending(self) -> None:
        for buffer in (self.proposals.pending, self.kicks.pending, self.moderation.pending):
            buffer.sweep()

    def _fold(self, event: Event, content: EventContent | None, origin: Origin) -> FoldResult:
        route = self._routes.get(event.kind)
        if route is None:
            return FoldResult(FoldOutcome.REJECTED, event.id, "unsupported kind")
        result = route(event, content, origin)
        if result.outcome is FoldOutcome.REJECTED:
            logger.warning("Event %s not applied: %s", event.id, result.reason)
        return result

    async def process(self, event: Event, origin: Origin = Origin.CONFIRMED) -> ProcessedEvent:
        """Ingest ``event`` and carry out any kick it pushed over quorum."""
        processed = self.ingest(event, origin)
        for decision in processed.decisions:
            await self._execute_kick(decision)
        return processed

    async def process_raw(self, raw: Mapping[str, Any]) -> ProcessedEvent | ValidationResult:
        """Process an untrusted event mapping, returning the validation on malformed input."""
        event, validation = EventValidator.validate_raw(raw)
        if event is None:
            self._stats["received"] += 1
            self._stats["rejected"] += 1
            return validation
        return await self.process(event)

    async def _execute_kick(self, decision: KickDecision) -> None:
        community = self.communities.get(decision.community_key)
        if community is None or not community.is_member(decision.target_member):
            return
        try:
            await self.publish(drafts.remove_member(community, decision.target_member))
        except PublishError as exc:
            self.kicks.release(decision.proposal_id)
            logger.warning(
                "Could not publish removal of %s from %s: %s",
                decision.target_member,
                decision.community_key,
                exc,
            )
            return
        logger.info("Removed %s from %s by kick %s", decision.target_member,
                    decision.community_key, decision.proposal_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def publish(self, draft: EventDraft) -> ProcessedEvent:
        """Publish ``draft`` and fold it optimistically once the transport accepts it.

        Raises:
            PublishError: If the transport fails; nothing is folded.
        """
        event_id = await self.transport.publish_event(draft)
        event = Event(
            id=event_id,
            pubkey=self.transport.public_key,
            created_at=draft.created_at,
            kind=draft.kind,
            tags=[list(tag) for tag in draft.tags],
            content=draft.content,
        )
        processed = self.ingest(event, Origin.OPTIMISTIC)
        for decision in processed.decisions:
            await self._execute_kick(decision)
        return processed

    def require_community(self, reference: str) -> Community:
        community = self.communities.get(reference)
        if community is None or community.deleted:
            raise UnknownEntityError(f"community {reference} not found")
        return community

    def require_proposal(self, proposal_id: str) -> Proposal:
        proposal = self.proposals.get_proposal(proposal_id)
        if proposal is None:
            raise UnknownEntityError(f"proposal {proposal_id} not found")
        return proposal

    def require_kick(self, kick_id: str) -> KickProposal:
        kick = self.kicks.get_kick_proposal(kick_id)
        if kick is None:
            raise UnknownEntityError(f"kick proposal {kick_id} not found")
        return kick

    def require_post(self, post_id: str) -> ModeratedPost:
        post = self.moderation.get_post(post_id)
        if post is None:
            raise UnknownEntityError(f"post {post_id} not found")
        return post

    def require_report(self, report_id: str) -> ContentReport:
        report = self.moderation.get_report(report_id)
        if report is None:
            raise UnknownEntityError(f"report {report_id} not found")
        return report

    def require_ban(self, ban_id: str) -> MemberBan:
        ban = self.moderation.get_ban(ban_id)
        if ban is None:
            raise UnknownEntityError(f"ban {ban_id} not found")
        return ban

    async def create_community(self, identifier: str, name: str, **fields: Any) -> ProcessedEvent:
        return await self.publish(
            drafts.create_community(self.transport.public_key, identifier, name, **fields)
        )

    async def update_community(self, reference: str, **changes: Any) -> ProcessedEvent:
        return await self.publish(drafts.update_community(self.require_community(reference), **changes))

    async def join_community(self, reference: str, pubkey: str | None = None) -> ProcessedEvent:
        community = self.require_community(reference)
        return await self.publish(drafts.join_community(community, pubkey or self.transport.public_key))

    async def leave_community(self, reference: str, pubkey: str | None = None) -> ProcessedEvent:
        community = self.require_community(reference)
        return await self.publish(drafts.leave_community(community, pubkey or self.transport.public_key))

    async def delete_community(self, reference: str) -> ProcessedEvent:
        community = self.require_community(reference)
        return await self.publish(drafts.delete_community(community, self.transport.public_key))

    async def create_proposal(
        self, reference: str, title: str, options: Sequence[str], **fields: Any
    ) -> ProcessedEvent:
        community = self.require_community(reference)
        return await self.publish(drafts.proposal(community, title, options, **fields))

    async def vote(self, proposal_id: str, option_index: int) -> ProcessedEvent:
        proposal = self.require_proposal(proposal_id)
        if option_index >= len(proposal.options):
            raise InvalidDraftError(
                f"option {option_index} does not exist on proposal {proposal_id}"
            )
        return await self.publish(drafts.vote(proposal_id, option_index))

    async def propose_kick(self, reference: str, target: str, reason: str | None = None) -> ProcessedEvent:
        community = self.require_community(reference)
        draft = (
            drafts.kick_proposal(community, target)
            if reason is None
            else drafts.kick_proposal(community, target, reason)
        )
        return await self.publish(draft)

    async def vote_kick(self, kick_id: str) -> ProcessedEvent:
        self.require_kick(kick_id)
        return await self.publish(drafts.kick_vote(kick_id))

    async def submit_post(self, reference: str, content: str, **fields: Any) -> ProcessedEvent:
        community = self.require_community(reference)
        return await self.publish(drafts.post_submission(community, content, **fields))

    async def approve_post(self, post_id: str) -> ProcessedEvent:
        return await self.publish(drafts.post_approval(self.require_post(post_id)))

    async def reject_post(self, post_id: str, reason: str = "") -> ProcessedEvent:
        return await self.publish(drafts.post_rejection(self.require_post(post_id), reason))

    async def report_content(
        self,
        reference: str,
        target_id: str,
        target_type: str,
        reason: str,
        category: str = "other",
    ) -> ProcessedEvent:
        community = self.require_community(reference)
        return await self.publish(
            drafts.content_report(community, target_id, target_type, reason, category)
        )

    async def review_report(
        self, report_id: str, status: str, resolution: str | None = None
    ) -> ProcessedEvent:
        report = self.require_report(report_id)
        return await self.publish(drafts.report_review(report, status, resolution))

    async def ban_member(
        self,
        reference: str,
        pubkey: str,
        reason: str = "",
        expires_at: int | None = None,
    ) -> ProcessedEvent:
        community = self.require_community(reference)
        return await self.publish(drafts.member_ban(community, pubkey, reason, expires_at))

    async def unban_member(self, ban_id: str) -> ProcessedEvent:
        return await self.publish(drafts.member_unban(self.require_ban(ban_id)))

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------
    async def watch(self, filters: Sequence[SubscriptionFilter]) -> str:
        """Subscribe with ``filters`` and fold everything the stream delivers."""
        subscription_id, stream = await self.transport.subscribe(filters)
        self._subscriptions[subscription_id] = asyncio.create_task(
            self._consume(subscription_id, stream),
            name=f"council-subscription-{subscription_id}",
        )
        return subscription_id

    async def watch_community(self, reference: str) -> str:
        """Follow one community's definition, governance and moderation events.

        Votes are followed per proposal as proposals of the community arrive.
        """
        refs = self.communities.refs_for(reference)
        community = self.communities.get(reference)
        unique_key = community.unique_key if community else strip_coordinate(reference)
        coordinate = f"{COMMUNITY_COORDINATE_PREFIX}{unique_key}"

        filters = [
            SubscriptionFilter(
                kinds=[EventKind.PROPOSAL, EventKind.KICK_PROPOSAL],
                tags={"#a": [coordinate]},
            ),
            SubscriptionFilter(kinds=MODERATION_KINDS, tags={"#a": [coordinate]}),
        ]
        if ":" in unique_key:
            filters.append(
                SubscriptionFilter(kinds=[EventKind.COMMUNITY], tags={"#d": [unique_key.split(":", 1)[1]]})
            )
        event_refs = sorted(ref for ref in refs if ":" not in ref)
        if event_refs:
            filters.append(
                SubscriptionFilter(
                    kinds=[EventKind.PROPOSAL, EventKind.KICK_PROPOSAL],
                    tags={"#e": event_refs},
                )
            )

        subscription_id = await self.watch(filters)
        self._watched[subscription_id] = unique_key
        self._followers[subscription_id] = []

        parents = [p.id for p in self.proposals.proposals_for(refs)]
        parents += [k.id for k in self.kicks.kicks_for(refs)]
        if parents:
            await self._follow_votes(subscription_id, parents)
        logger.info("Watching community %s on subscription %s", unique_key, subscription_id)
        return subscription_id

    async def _follow_votes(self, subscription_id: str, parent_ids: Iterable[str]) -> None:
        followed = self._followed.setdefault(subscription_id, set())
        fresh = sorted(set(parent_ids) - followed)
        if not fresh:
            return
        followed.update(fresh)
        child_id = await self.watch(
            [SubscriptionFilter(kinds=[EventKind.VOTE, EventKind.KICK_VOTE], tags={"#e": fresh})]
        )
        self._followers.setdefault(subscription_id, []).append(child_id)

    async def _consume(self, subscription_id: str, stream: Any) -> None:
        async for event in stream:
            try:
                processed = await self.process(event)
            except (ValueError, TypeError, KeyError, AttributeError, OverflowError) as exc:
                logger.error("Failed to process event %s from %s: %s", event.id, subscription_id, exc)
                continue
            # community watches only deliver that community's proposals
            if (
                subscription_id in self._watched
                and event.kind in (EventKind.PROPOSAL, EventKind.KICK_PROPOSAL)
                and processed.result is not None
                and processed.result.outcome is FoldOutcome.APPLIED
            ):
                await self._follow_votes(subscription_id, [event.id])
        logger.debug("Subscription %s ended", subscription_id)

    async def unwatch(self, subscription_id: str) -> None:
        """Stop routing events from ``subscription_id``; projections are kept."""
        for child_id in self._followers.pop(subscription_id, []):
            await self.unwatch(child_id)
        self._watched.pop(subscription_id, None)
        self._followed.pop(subscription_id, None)
        task = self._subscriptions.pop(subscription_id, None)
        await self.transport.unsubscribe(subscription_id)
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def close(self) -> None:
        for subscription_id in list(self._subscriptions):
            if subscription_id in self._subscriptions:
                await self.unwatch(subscription_id)

    @property
    def subscriptions(self) -> list[str]:
        return list(self._subscriptions)

    # ------------------------------------------------------------------
    # Log maintenance
    # ------------------------------------------------------------------
    def rebuild(self) -> int:
        """Rebuild every projection by replaying the event log.

        Kick decisions produced during the replay are not executed; their
        outcome is already in the log as community definitions.

        Returns:
            Number of events replayed.
        """
        self.communities.clear()
        self.proposals.clear()
        self.kicks.clear()
        self.moderation.clear()
        replayed = 0
        for event, origin in self.log.replay():
            content = EventValidator.validate(event, require_signature=False).content
            self._fold(event, content, origin)
            replayed += 1
        logger.info("Rebuilt projections from %d logged events", replayed)
        return replayed

    def stats(self) -> dict[str, int]:
        counts = {
            "received": self._stats["received"],
            "duplicates": self._stats["duplicates"],
            "rejected": self._stats["rejected"],
            "applied": self._stats[FoldOutcome.APPLIED.value],
            "buffered": self._stats[FoldOutcome.BUFFERED.value],
            "stale": self._stats[FoldOutcome.STALE.value],
            "logged_events": len(self.log),
            "communities": len(self.communities),
            "proposals": len(self.proposals),
            "kick_proposals": len(self.kicks),
            "pending_votes": len(self.proposals.pending) + len(self.kicks.pending),
            "subscriptions": len(self._subscriptions),
        }
        counts.update(self.moderation.counts())
        return counts


_processor: EventProcessor | None = None


def get_event_processor() -> EventProcessor:
    """Return the process-wide processor, creating it over a loopback relay if needed."""
    global _processor
    if _processor is None:
        _processor = EventProcessor(LoopbackRelay())
    return _processor


def set_event_processor(processor: EventProcessor | None) -> None:
    global _processor
    _processor = processor
