# src/chorus_council/services/moderation.py
"""Moderation pipeline: post approval state, content reports and member bans.

Posts move from pending to approved or rejected exactly once and the first
decision processed wins. Reports leave ``pending`` exactly once. Bans stay
active until revoked by an unban or until their expiry passes, which is
checked whenever a ban is read.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace
from threading import Lock

from chorus_council.models.common import FoldOutcome, FoldResult, Origin, supersedes_origin
from chorus_council.models.moderation import (
    Approval,
    ContentReport,
    MemberBan,
    ModeratedPost,
    PostStatus,
    Rejection,
    ReportStatus,
)
from chorus_council.schemas.content import (
    ContentReportContent,
    MemberBanContent,
    ModerationDecisionContent,
    PostSubmissionContent,
    ReportReviewContent,
)
from chorus_council.schemas.event import Event, EventKind, now_ts, strip_coordinate
from chorus_council.services.pending import PendingEventBuffer
from chorus_council.utils.locks import KeyedLock

logger = logging.getLogger(__name__)


def _refs(community_refs: str | Iterable[str]) -> frozenset[str]:
    if isinstance(community_refs, str):
        return frozenset({strip_coordinate(community_refs)})
    return frozenset(strip_coordinate(ref) for ref in community_refs)


def _community_of(event: Event) -> str | None:
    reference = event.tag_value("a")
    return strip_coordinate(reference) if reference is not None else None


class ModerationPipeline:
    """Owns moderated posts, reports and bans."""

    def __init__(self, *, pending: PendingEventBuffer | None = None) -> None:
        self.pending = pending if pending is not None else PendingEventBuffer(label="moderation event")
        self._locks = KeyedLock()
        self._lock = Lock()
        self._posts: dict[str, ModeratedPost] = {}
        self._reports: dict[str, ContentReport] = {}
        self._bans: dict[str, MemberBan] = {}

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------
    def apply_submission(
        self,
        event: Event,
        content: PostSubmissionContent | None = None,
        origin: Origin = Origin.CONFIRMED,
    ) -> FoldResult:
        """Track a community post as pending unless it is already known."""
        content = content or PostSubmissionContent.from_event(event)
        community_id = _community_of(event)
        if community_id is None:
            return FoldResult(FoldOutcome.REJECTED, event.id, "missing community address")

        with self._locks.hold(event.id):
            with self._lock:
                current = self._posts.get(event.id)
            if current is not None:
                if not supersedes_origin(origin, current.origin):
                    return FoldResult(FoldOutcome.UNCHANGED, event.id)
                post = replace(current, origin=origin)
            else:
                post = ModeratedPost(
                    id=event.id,
                    community_id=community_id,
                    author=event.pubkey,
                    content=content.content,
                    created_at=event.created_at,
                    kind=event.kind,
                    title=content.title,
                    origin=origin,
                )
            with self._lock:
                self._posts[event.id] = post
        return FoldResult(FoldOutcome.APPLIED, event.id)

    def apply_decision(
        self,
        event: Event,
        content: ModerationDecisionContent | None = None,
        origin: Origin = Origin.CONFIRMED,
    ) -> FoldResult:
        """Approve or reject a post; a resolved post never changes again."""
        if content is None:
            try:
                content = ModerationDecisionContent.from_event(event)
            except ValueError as exc:
                return FoldResult(FoldOutcome.REJECTED, event.id, f"invalid content: {exc}")

        community_id = _community_of(event)
        if community_id is None:
            return FoldResult(FoldOutcome.REJECTED, event.id, "missing community address")

        post_id = content.id
        with self._locks.hold(post_id):
            with self._lock:
                post = self._posts.get(post_id)
            if post is None:
                post = ModeratedPost(
                    id=post_id,
                    community_id=community_id,
                    author=content.pubkey,
                    content=content.content,
                    created_at=content.created_at if content.created_at is not None else event.created_at,
                    kind=content.kind if content.kind is not None else EventKind.TEXT_NOTE,
                    title=content.title,
                    origin=origin,
                )
            elif post.is_resolved:
                logger.debug(
                    "Post %s already %s; ignoring decision %s",
                    post_id,
                    post.status.value,
                    event.id,
                )
                return FoldResult(FoldOutcome.UNCHANGED, post_id)

            if event.kind == EventKind.POST_APPROVAL:
                post = post.approve(Approval(event.pubkey, event.created_at, event.id))
            else:
                post = post.reject(Rejection(event.pubkey, event.created_at, content.reason, event.id))
            with self._lock:
                self._posts[post_id] = post

        logger.info("Post %s %s by %s", post_id, post.status.value, event.pubkey)
        return FoldResult(FoldOutcome.APPLIED, post_id)

    def get_post(self, post_id: str) -> ModeratedPost | None:
        with self._lock:
            return self._posts.get(post_id)

    def posts_for(
        self,
        community_refs: str | Iterable[str],
        status: PostStatus | None = None,
    ) -> list[ModeratedPost]:
        """Return a community's posts, newest first, optionally filtered by status."""
        refs = _refs(community_refs)
        with self._lock:
            posts = [post for post in self._posts.values() if post.community_id in refs]
        if status is not None:
            posts = [post for post in posts if post.status is status]
        return sorted(posts, key=lambda post: post.created_at, reverse=True)

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------
    def apply_report(
        self,
        event: Event,
        content: ContentReportContent | None = None,
        origin: Origin = Origin.CONFIRMED,
    ) -> FoldResult:
        """Record a new pending report, then fold any review that arrived first."""
        if content is None:
            try:
                content = ContentReportContent.from_event(event)
            except ValueError as exc:
                return FoldResult(FoldOutcome.REJECTED, event.id, f"invalid content: {exc}")

        community_id = _community_of(event)
        target_id = event.tag_value("e")
        if community_id is None or target_id is None:
            return FoldResult(FoldOutcome.REJECTED, event.id, "missing community or target")

        with self._locks.hold(event.id):
            with self._lock:
                current = self._reports.get(event.id)
            if current is not None:
                if not supersedes_origin(origin, current.origin):
                    return FoldResult(FoldOutcome.UNCHANGED, event.id)
                report = replace(current, origin=origin)
            else:
                report = ContentReport(
                    id=event.id,
                    community_id=community_id,
                    reporter=event.pubkey,
                    target_id=target_id,
                    target_type=content.target_type,
                    category=content.category,
                    reason=content.reason,
                    reported_at=event.created_at,
                    origin=origin,
                )
            with self._lock:
                self._reports[event.id] = report

        if current is None:
            logger.info("Report %s filed against %s %s", event.id, content.target_type, target_id)
            self._drain(event.id)
        return FoldResult(FoldOutcome.APPLIED, event.id)

    def apply_review(
        self,
        event: Event,
        content: ReportReviewContent | None = None,
        origin: Origin = Origin.CONFIRMED,
    ) -> FoldResult:
        """Move a pending report to its reviewed state; later reviews are ignored."""
        if content is None:
            try:
                content = ReportReviewContent.from_event(event)
            except ValueError as exc:
                return FoldResult(FoldOutcome.REJECTED, event.id, f"invalid content: {exc}")

        report_id = event.tag_value("e")
        if report_id is None:
            return FoldResult(FoldOutcome.REJECTED, event.id, "missing report reference")

        with self._locks.hold(report_id):
            with self._lock:
                report = self._reports.get(report_id)
            if report is None:
                self.pending.add(report_id, event, content, origin)
                return FoldResult(FoldOutcome.BUFFERED, report_id)
            if report.status is not ReportStatus.PENDING:
                logger.debug("Report %s already %s", report_id, report.status.value)
                return FoldResult(FoldOutcome.UNCHANGED, report_id)

            report = replace(
                report,
                status=ReportStatus(content.status),
                reviewed_by=event.pubkey,
                reviewed_at=event.created_at,
                resolution=content.resolution,
            )
            with self._lock:
                self._reports[report_id] = report
        return FoldResult(FoldOutcome.APPLIED, report_id)

    def get_report(self, report_id: str) -> ContentReport | None:
        with self._lock:
            return self._reports.get(report_id)

    def reports_for(
        self,
        community_refs: str | Iterable[str],
        status: ReportStatus | None = None,
    ) -> list[ContentReport]:
        refs = _refs(community_refs)
        with self._lock:
            reports = [report for report in self._reports.values() if report.community_id in refs]
        if status is not None:
            reports = [report for report in reports if report.status is status]
        return sorted(reports, key=lambda report: report.reported_at, reverse=True)

    # ------------------------------------------------------------------
    # Bans
    # ------------------------------------------------------------------
    def apply_ban(
        self,
        event: Event,
        content: MemberBanContent | None = None,
        origin: Origin = Origin.CONFIRMED,
    ) -> FoldResult:
        """Fold a ban or an unban event."""
        if content is None:
            try:
                content = MemberBanContent.from_event(event)
            except ValueError as exc:
                return FoldResult(FoldOutcome.REJECTED, event.id, f"invalid content: {exc}")

        if content.action == "unban":
            return self._apply_unban(event, content, origin)

        community_id = _community_of(event)
        banned_user = event.tag_value("p")
        if community_id is None or banned_user is None:
            return FoldResult(FoldOutcome.REJECTED, event.id, "missing community or member")

        with self._locks.hold(event.id):
            with self._lock:
                current = self._bans.get(event.id)
            if current is not None:
                if not supersedes_origin(origin, current.origin):
                    return FoldResult(FoldOutcome.UNCHANGED, event.id)
                ban = replace(current, origin=origin)
            else:
                ban = MemberBan(
                    id=event.id,
                    community_id=community_id,
                    banned_user=banned_user,
                    moderator=event.pubkey,
                    reason=content.reason,
                    banned_at=event.created_at,
                    expires_at=content.expires_at,
                    origin=origin,
                )
            with self._lock:
                self._bans[event.id] = ban

        if current is None:
            logger.info("Member %s banned from %s by %s", banned_user, community_id, event.pubkey)
            self._drain(event.id)
        return FoldResult(FoldOutcome.APPLIED, event.id)

    def _apply_unban(self, event: Event, content: MemberBanContent, origin: Origin) -> FoldResult:
        ban_id = event.tag_value("e")
        if ban_id is None:
            return FoldResult(FoldOutcome.REJECTED, event.id, "unban without ban reference")

        with self._locks.hold(ban_id):
            with self._lock:
                ban = self._bans.get(ban_id)
            if ban is None:
                self.pending.add(ban_id, event, content, origin)
                return FoldResult(FoldOutcome.BUFFERED, ban_id)
            if ban.revoked_at is not None:
                return FoldResult(FoldOutcome.UNCHANGED, ban_id)
            ban = replace(ban, revoked_by=event.pubkey, revoked_at=event.created_at)
            with self._lock:
                self._bans[ban_id] = ban

        logger.info("Ban %s revoked by %s", ban_id, event.pubkey)
        return FoldResult(FoldOutcome.APPLIED, ban_id)

    def get_ban(self, ban_id: str) -> MemberBan | None:
        with self._lock:
            return self._bans.get(ban_id)

    def bans_for(
        self,
        community_refs: str | Iterable[str],
        *,
        active_only: bool = False,
        now: int | None = None,
    ) -> list[MemberBan]:
        refs = _refs(community_refs)
        now = now_ts() if now is None else now
        with self._lock:
            bans = [ban for ban in self._bans.values() if ban.community_id in refs]
        if active_only:
            bans = [ban for ban in bans if ban.is_active(now)]
        return sorted(bans, key=lambda ban: ban.banned_at, reverse=True)

    def is_banned(
        self,
        community_refs: str | Iterable[str],
        pubkey: str,
        now: int | None = None,
    ) -> bool:
        return any(
            ban.banned_user == pubkey
            for ban in self.bans_for(community_refs, active_only=True, now=now)
        )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------
    def _drain(self, target_id: str) -> None:
        for waiting in self.pending.drain(target_id):
            if waiting.event.kind == EventKind.REPORT_REVIEW:
                self.apply_review(waiting.event, waiting.content, waiting.origin)  # type: ignore[arg-type]
            else:
                self.apply_ban(waiting.event, waiting.content, waiting.origin)  # type: ignore[arg-type]

    def clear(self) -> None:
        with self._lock:
            self._posts.clear()
            self._reports.clear()
            self._bans.clear()

    def counts(self) -> dict[str, int]:
        with self._lock:
            return {
                "posts": len(self._posts),
                "reports": len(self._reports),
                "bans": len(self._bans),
            }
