# src/chorus_council/services/validator.py
"""Per-kind structural and schema compliance checks for incoming events.

The validator is stateless: every check is a pure function of one event. It
never raises; problems are reported as ``errors`` (the event must not be
folded) or ``warnings`` (informational).
"""

from __future__ import annotations

import json
import logging
import math
import string
from collections import Counter
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from chorus_council.schemas.content import (
    REPORT_CATEGORIES,
    REPORT_TARGET_TYPES,
    REVIEW_STATUSES,
    parse_content,
)
from chorus_council.schemas.event import COMMUNITY_COORDINATE_PREFIX, Event, EventKind
from chorus_council.schemas.validation import (
    BatchValidation,
    ComplianceIssue,
    ComplianceReport,
    ComplianceSummary,
    ValidationResult,
)

logger = logging.getLogger(__name__)

EVENT_ID_HEX_LENGTH = 64
PUBKEY_HEX_LENGTH = 64
SIGNATURE_HEX_LENGTH = 128
MIN_PROPOSAL_OPTIONS = 2

MEMBER_ROLES = frozenset({"", "member", "moderator", "banned", "creator"})
UNSUPPORTED_KIND = "unsupported kind"

_HEX_DIGITS = frozenset(string.hexdigits)

Check = Callable[[Event, list[str], list[str]], None]


def is_hex(value: Any, length: int) -> bool:
    """Return True if ``value`` is a hex string of exactly ``length`` characters."""
    return (
        isinstance(value, str)
        and len(value) == length
        and all(char in _HEX_DIGITS for char in value)
    )


def is_timestamp(value: Any) -> bool:
    """Return True for a finite JSON number that is not a boolean."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    return not isinstance(value, float) or math.isfinite(value)


def _load_json_object(event: Event, errors: list[str]) -> dict[str, Any] | None:
    try:
        data = json.loads(event.content)
    except (json.JSONDecodeError, TypeError):
        errors.append("Invalid JSON in content")
        return None
    if not isinstance(data, dict):
        errors.append("Content must be a JSON object")
        return None
    return data


def _require_community_address(event: Event, errors: list[str]) -> None:
    a_tag = event.first_tag("a")
    if a_tag is None:
        errors.append("Missing required 'a' tag referencing the community")
    elif not a_tag[1].startswith(COMMUNITY_COORDINATE_PREFIX):
        errors.append(f"Invalid 'a' tag format, should start with '{COMMUNITY_COORDINATE_PREFIX}'")


def _check_community(event: Event, errors: list[str], warnings: list[str]) -> None:
    d_tag = event.first_tag("d")
    if d_tag is None:
        errors.append("Missing required 'd' tag for unique identifier")
    elif not d_tag[1].strip():
        errors.append("Empty 'd' tag value")

    p_tags = event.tags_named("p")
    if not p_tags:
        errors.append("Missing required 'p' tag for at least one member")
    for index, tag in enumerate(p_tags):
        if not tag[1]:
            errors.append(f"Invalid p tag at index {index}: missing pubkey")
        elif not is_hex(tag[1], PUBKEY_HEX_LENGTH):
            warnings.append(f"P tag at index {index}: pubkey should be 64 hex characters")
        if len(tag) >= 3 and tag[2] not in MEMBER_ROLES:
            warnings.append(f"P tag at index {index}: unknown role '{tag[2]}'")

    content = _load_json_object(event, errors)
    if content is None:
        return

    name = content.get("name")
    if content.get("deleted") is not True:
        if not isinstance(name, str) or not name:
            errors.append("Missing or invalid 'name' field in content")
        elif not name.strip():
            errors.append("Empty 'name' field in content")

    description = content.get("description")
    if description is not None and not isinstance(description, str):
        warnings.append("Description field should be a string")

    creator = content.get("creator")
    if creator and creator != event.pubkey:
        warnings.append("Creator in content doesn't match event pubkey")

    if "tags" in content and not isinstance(content["tags"], list):
        warnings.append("Tags field should be an array")


def _check_proposal(event: Event, errors: list[str], warnings: list[str]) -> None:
    e_tag = event.first_tag("e")
    if e_tag is None:
        errors.append("Missing required 'e' tag referencing the community")
    elif not is_hex(e_tag[1], EVENT_ID_HEX_LENGTH):
        errors.append("Invalid community reference in 'e' tag")

    if event.first_tag("d") is None:
        errors.append("Missing required 'd' tag for proposal unique identifier")

    content = _load_json_object(event, errors)
    if content is None:
        return

    title = content.get("title")
    if not isinstance(title, str) or not title:
        errors.append("Missing or invalid 'title' field in content")

    options = content.get("options")
    if not isinstance(options, list):
        errors.append("Missing or invalid 'options' array in content")
    elif len(options) < MIN_PROPOSAL_OPTIONS:
        errors.append("Proposal must have at least 2 options")

    ends_at = content.get("endsAt")
    if ends_at is not None:
        if not is_timestamp(ends_at) or ends_at <= event.created_at:
            warnings.append("Invalid or past end time for proposal")


def _check_vote(event: Event, errors: list[str], warnings: list[str]) -> None:
    if event.first_tag("e") is None:
        errors.append("Missing required 'e' tag referencing the proposal")

    text = event.content.strip()
    if not text.isdigit() or not text.isascii():
        errors.append("Content must be a valid non-negative option index")


def _check_kick_proposal(event: Event, errors: list[str], warnings: list[str]) -> None:
    e_tag = event.first_tag("e")
    if e_tag is None:
        errors.append("Missing required 'e' tag referencing the community")
    elif not is_hex(e_tag[1], EVENT_ID_HEX_LENGTH):
        warnings.append("Community reference in 'e' tag should be a 64 character event id")

    targets = [tag for tag in event.tags_named("p", min_length=3) if tag[2] == "kick"]
    if not targets:
        errors.append("Missing required 'p' tag with 'kick' marker for the target member")
    elif not targets[0][1]:
        errors.append("Kick target 'p' tag has an empty pubkey")

    if event.content.strip():
        _load_json_object(event, errors)


def _check_kick_vote(event: Event, errors: list[str], warnings: list[str]) -> None:
    if event.first_tag("e") is None:
        errors.append("Missing required 'e' tag referencing the kick proposal")
    if event.content.strip() != "1":
        errors.append("Kick vote content must be '1'")


def _check_post_submission(event: Event, errors: list[str], warnings: list[str]) -> None:
    _require_community_address(event, errors)
    if not event.content.strip():
        warnings.append("Post content is empty")


def _check_moderation_decision(event: Event, errors: list[str], warnings: list[str]) -> None:
    _require_community_address(event, errors)

    e_tag = event.first_tag("e")
    if e_tag is None:
        errors.append("Missing required 'e' tag referencing the post")

    if event.first_tag("p") is None:
        errors.append("Missing required 'p' tag for post author")

    if event.first_tag("k") is None:
        warnings.append("Missing 'k' tag for original post kind")

    original = _load_json_object(event, errors)
    if original is None:
        return
    if not all(isinstance(original.get(field), str) and original.get(field)
               for field in ("id", "content", "pubkey")):
        errors.append("Content must contain valid original post data")
        return
    if e_tag is not None and e_tag[1] != original["id"]:
        errors.append("Post reference in 'e' tag does not match the embedded post id")
    if event.kind == EventKind.POST_REJECTION and not original.get("reason"):
        warnings.append("Rejection has no reason")


def _check_content_report(event: Event, errors: list[str], warnings: list[str]) -> None:
    if event.first_tag("a") is None:
        errors.append("Missing required 'a' tag referencing the community")

    e_tag = event.first_tag("e")
    if e_tag is None:
        errors.append("Missing required 'e' tag for target content")
    elif len(e_tag) < 3 or e_tag[2] not in REPORT_TARGET_TYPES:
        warnings.append("E tag should specify target type (post, comment, user)")

    report_tag = event.first_tag("report")
    if report_tag is None:
        warnings.append("Missing 'report' tag for category")
    elif report_tag[1] not in REPORT_CATEGORIES:
        warnings.append(f"Unknown report category: {report_tag[1]}")

    content = _load_json_object(event, errors)
    if content is None:
        return
    reason = content.get("reason")
    if not isinstance(reason, str) or not reason:
        errors.append("Missing or invalid 'reason' field in content")
    if content.get("targetType") not in REPORT_TARGET_TYPES:
        errors.append("Missing or invalid 'targetType' field in content")


def _check_report_review(event: Event, errors: list[str], warnings: list[str]) -> None:
    if event.first_tag("a") is None:
        errors.append("Missing required 'a' tag referencing the community")
    if event.first_tag("e") is None:
        errors.append("Missing required 'e' tag referencing the report")

    content = _load_json_object(event, errors)
    if content is None:
        return
    if content.get("status") not in REVIEW_STATUSES:
        errors.append("Missing or invalid 'status' field in content")
    resolution = content.get("resolution")
    if resolution is not None and not isinstance(resolution, str):
        warnings.append("Resolution field should be a string")


def _check_member_ban(event: Event, errors: list[str], warnings: list[str]) -> None:
    _require_community_address(event, errors)
    if event.first_tag("p") is None:
        errors.append("Missing required 'p' tag for the affected member")

    content = _load_json_object(event, errors)
    if content is None:
        return
    action = content.get("action", "ban")
    if action not in ("ban", "unban"):
        errors.append("Invalid 'action' field in content, expected 'ban' or 'unban'")
    elif action == "unban" and event.first_tag("e") is None:
        errors.append("Unban requires an 'e' tag referencing the ban")

    expires_at = content.get("expiresAt")
    if expires_at is not None:
        if not is_timestamp(expires_at):
            errors.append("Invalid 'expiresAt' field in content")
        elif expires_at <= event.created_at:
            warnings.append("Ban expires before it was issued")


_RULES: dict[int, tuple[str, Check]] = {
    EventKind.COMMUNITY: ("community", _check_community),
    EventKind.PROPOSAL: ("proposal", _check_proposal),
    EventKind.VOTE: ("vote", _check_vote),
    EventKind.KICK_PROPOSAL: ("kick_proposal", _check_kick_proposal),
    EventKind.KICK_VOTE: ("kick_vote", _check_kick_vote),
    EventKind.TEXT_NOTE: ("post", _check_post_submission),
    EventKind.COMMENT: ("post", _check_post_submission),
    EventKind.POST_APPROVAL: ("post_approval", _check_moderation_decision),
    EventKind.POST_REJECTION: ("post_rejection", _check_moderation_decision),
    EventKind.CONTENT_REPORT: ("content_report", _check_content_report),
    EventKind.REPORT_REVIEW: ("report_review", _check_report_review),
    EventKind.MEMBER_BAN: ("member_ban", _check_member_ban),
}


class EventValidator:
    """Stateless per-kind compliance checker."""

    @staticmethod
    def validate(event: Event, *, require_signature: bool = True) -> ValidationResult:
        """Validate one event.

        Args:
            event: Event to check.
            require_signature: When False the ``sig`` length check is skipped;
                used for locally produced optimistic events whose signature is
                held by the transport.

        Returns:
            The validation result; ``content`` carries the parsed content model
            when the event is valid.
        """
        rule = _RULES.get(event.kind)
        if rule is None:
            return ValidationResult(valid=False, errors=[UNSUPPORTED_KIND], event_type="unknown")

        event_type, check = rule
        errors: list[str] = []
        warnings: list[str] = []
        check(event, errors, warnings)

        if not is_hex(event.id, EVENT_ID_HEX_LENGTH):
            errors.append("Invalid or missing event ID")
        if require_signature and not is_hex(event.sig, SIGNATURE_HEX_LENGTH):
            errors.append("Invalid or missing event signature")
        if not is_hex(event.pubkey, PUBKEY_HEX_LENGTH):
            errors.append("Invalid or missing event pubkey")

        content = None
        if not errors:
            try:
                content = parse_content(event)
            except ValueError as exc:
                errors.append(f"Content does not match the {event_type} schema: {exc}")

        return ValidationResult(
            valid=not errors,
            errors=errors,
            warnings=warnings,
            event_type=event_type,
            content=content,
        )

    @staticmethod
    def validate_raw(raw: Mapping[str, Any]) -> tuple[Event | None, ValidationResult]:
        """Build an event from an untrusted mapping and validate it."""
        try:
            event = Event.model_validate(raw)
        except ValidationError as exc:
            logger.debug("Rejected structurally invalid event: %s", exc)
            return None, ValidationResult(
                valid=False,
                errors=["Invalid event structure"],
                event_type="unknown",
            )
        return event, EventValidator.validate(event)

    @staticmethod
    def validate_many(events: Iterable[Event]) -> BatchValidation:
        """Validate a batch of events and count how many passed."""
        results = [EventValidator.validate(event) for event in events]
        valid = sum(1 for result in results if result.valid)
        return BatchValidation(
            total_events=len(results),
            valid_events=valid,
            invalid_events=len(results) - valid,
            results=results,
        )

    @staticmethod
    def compliance_report(events: Iterable[Event]) -> ComplianceReport:
        """Generate a diagnostic compliance report for a batch of events."""
        events = list(events)
        batch = EventValidator.validate_many(events)
        issues: list[ComplianceIssue] = []
        for index, (event, result) in enumerate(zip(events, batch.results, strict=True)):
            event_id = event.id or f"event_{index}"
            issues.extend(
                ComplianceIssue(
                    event_id=event_id,
                    event_type=result.event_type,
                    severity="error",
                    message=message,
                )
                for message in result.errors
            )
            issues.extend(
                ComplianceIssue(
                    event_id=event_id,
                    event_type=result.event_type,
                    severity="warning",
                    message=message,
                )
                for message in result.warnings
            )

        breakdown = Counter(result.event_type for result in batch.results)
        rate = (
            batch.valid_events / batch.total_events * 100
            if batch.total_events > 0
            else 100.0
        )
        return ComplianceReport(
            summary=ComplianceSummary(
                total_events=batch.total_events,
                compliant_events=batch.valid_events,
                compliance_rate=rate,
                critical_errors=sum(1 for issue in issues if issue.severity == "error"),
                warnings=sum(1 for issue in issues if issue.severity == "warning"),
            ),
            event_breakdown=dict(breakdown),
            issues=issues,
        )
