"""Tests for event id computation and signatures."""

from chorus_council.core.security import (
    compute_event_id,
    serialize_event,
    verify_event_id,
    verify_event_signature,
)
from chorus_council.schemas.event import EventKind


def test_serialization_is_compact_and_ordered() -> None:
    payload = serialize_event("ab", 5, 1, [["a", "x"]], "hé")
    assert payload == '[0,"ab",5,1,[["a","x"]],"hé"]'.encode("utf-8")


def test_signed_event_verifies(alice) -> None:
    event = alice.sign(EventKind.TEXT_NOTE, [["a", "34550:x:y"]], "hello")
    assert event.id == compute_event_id(event.pubkey, event.created_at, event.kind, event.tags, event.content)
    assert verify_event_id(event)
    assert verify_event_signature(event)


def test_tampering_is_detected(alice, bob) -> None:
    event = alice.sign(EventKind.TEXT_NOTE, [], "hello")

    assert not verify_event_signature(event.model_copy(update={"content": "bye"}))
    assert not verify_event_signature(event.model_copy(update={"pubkey": bob.pubkey}))
    assert not verify_event_signature(event.model_copy(update={"sig": "00" * 64}))
    assert not verify_event_signature(event.model_copy(update={"sig": "not hex"}))
