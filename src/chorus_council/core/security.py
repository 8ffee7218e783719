"""Event id and signature utilities built on Ed25519 primitives."""
from __future__ import annotations

import binascii
import hashlib
import json

from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from chorus_council.schemas.event import Event, EventDraft


def serialize_event(pubkey: str, created_at: int, kind: int, tags: list[list[str]], content: str) -> bytes:
    """Return the canonical bytes an event id is computed over."""
    payload = [0, pubkey, created_at, kind, tags, content]
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def compute_event_id(pubkey: str, created_at: int, kind: int, tags: list[list[str]], content: str) -> str:
    """Return the hex SHA-256 event id."""
    return hashlib.sha256(serialize_event(pubkey, created_at, kind, tags, content)).hexdigest()


def public_key_hex(signing_key: SigningKey) -> str:
    """Return the hex-encoded public half of ``signing_key``."""
    return signing_key.verify_key.encode().hex()


def sign_draft(draft: EventDraft, signing_key: SigningKey) -> Event:
    """Turn a draft into a signed event.

    Args:
        draft: Unsigned kind, tags, content and timestamp.
        signing_key: Key of the publishing identity.

    Returns:
        Event with ``id``, ``pubkey`` and ``sig`` filled in.
    """
    pubkey = public_key_hex(signing_key)
    tags = [list(tag) for tag in draft.tags]
    event_id = compute_event_id(pubkey, draft.created_at, draft.kind, tags, draft.content)
    signature = signing_key.sign(bytes.fromhex(event_id)).signature.hex()
    return Event(
        id=event_id,
        pubkey=pubkey,
        created_at=draft.created_at,
        kind=draft.kind,
        tags=tags,
        content=draft.content,
        sig=signature,
    )


def verify_event_id(event: Event) -> bool:
    """Return True if ``event.id`` matches its serialized fields."""
    expected = compute_event_id(event.pubkey, event.created_at, event.kind, event.tags, event.content)
    return event.id == expected


def verify_event_signature(event: Event) -> bool:
    """Verify an event's id and its Ed25519 signature over that id.

    Returns:
        True if both checks pass; False on any mismatch or malformed hex.
    """
    if not verify_event_id(event):
        return False
    try:
        pubkey = VerifyKey(binascii.unhexlify(event.pubkey))
        pubkey.verify(binascii.unhexlify(event.id), binascii.unhexlify(event.sig))
        return True
    except (BadSignatureError, binascii.Error, ValueError):
        return False
