"""Shared projection vocabulary: event origin and fold outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from chorus_council.models.kick import KickDecision


class Origin(str, Enum):
    """Where the event behind a projection came from.

    An optimistic projection was folded from our own write right after the
    transport accepted it; the relay's copy of the same event id later
    replaces it as confirmed.
    """

    CONFIRMED = "confirmed"
    OPTIMISTIC = "optimistic"


def supersedes_origin(incoming: Origin, current: Origin) -> bool:
    """Return True if an event with ``incoming`` origin should replace ``current`` for the same id."""
    return incoming is Origin.CONFIRMED and current is Origin.OPTIMISTIC


class FoldOutcome(str, Enum):
    """What a reducer did with one event."""

    APPLIED = "applied"
    UNCHANGED = "unchanged"  # duplicate or no-op on a terminal state
    STALE = "stale"  # superseded by a newer event for the same key
    BUFFERED = "buffered"  # parent entity not seen yet
    REJECTED = "rejected"  # structurally valid but not applicable


@dataclass(frozen=True)
class FoldResult:
    """Result of folding one event into a projection."""

    outcome: FoldOutcome
    entity_id: str | None = None
    reason: str | None = None
    decisions: tuple[KickDecision, ...] = ()

    @property
    def applied(self) -> bool:
        return self.outcome is FoldOutcome.APPLIED
