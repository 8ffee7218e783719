# tests/conftest.py
from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from nacl.signing import SigningKey

from chorus_council.core.security import public_key_hex, sign_draft
from chorus_council.core.settings import Settings
from chorus_council.main import app as fastapi_app
from chorus_council.schemas.event import Event, EventDraft, EventKind
from chorus_council.services.loopback import LoopbackRelay
from chorus_council.services.processor import EventProcessor, set_event_processor

BASE_TS = 1_700_000_000


@dataclass
class Identity:
    """A keypair that signs test events."""

    name: str
    signing_key: SigningKey

    @property
    def pubkey(self) -> str:
        return public_key_hex(self.signing_key)

    def sign(
        self,
        kind: int,
        tags: list[list[str]] | None = None,
        content: str | dict[str, Any] = "",
        created_at: int = BASE_TS,
    ) -> Event:
        if isinstance(content, dict):
            content = json.dumps(content)
        draft = EventDraft(kind=kind, tags=tags or [], content=content, created_at=created_at)
        return sign_draft(draft, self.signing_key)

    def community(
        self,
        identifier: str = "council",
        members: list[str] | None = None,
        created_at: int = BASE_TS,
        name: str = "Council",
        creator: str | None = None,
        **content: Any,
    ) -> Event:
        """Sign a community definition listing ``members`` as plain ``p`` tags."""
        body = {"name": name, "description": "", "creator": creator or self.pubkey, **content}
        tags = [["d", identifier]]
        tags.extend(["p", member] for member in (members if members is not None else [self.pubkey]))
        return self.sign(EventKind.COMMUNITY, tags, body, created_at)

    def proposal(
        self,
        community_id: str,
        options: list[str] | None = None,
        created_at: int = BASE_TS,
        **content: Any,
    ) -> Event:
        body = {"title": "Adopt guidelines", "options": options or ["Yes", "No"], **content}
        return self.sign(
            EventKind.PROPOSAL,
            [["e", community_id], ["d", f"proposal-{created_at}"]],
            body,
            created_at,
        )

    def vote(self, proposal_id: str, option_index: int | str, created_at: int = BASE_TS) -> Event:
        return self.sign(EventKind.VOTE, [["e", proposal_id]], str(option_index), created_at)

    def kick(self, community_id: str, target: str, created_at: int = BASE_TS) -> Event:
        return self.sign(
            EventKind.KICK_PROPOSAL,
            [["e", community_id], ["p", target, "kick"]],
            {"reason": "Community member vote to remove"},
            created_at,
        )

    def kick_vote(self, kick_id: str, created_at: int = BASE_TS) -> Event:
        return self.sign(EventKind.KICK_VOTE, [["e", kick_id]], "1", created_at)

    def post(self, coordinate: str, content: str = "hello council", created_at: int = BASE_TS) -> Event:
        return self.sign(EventKind.TEXT_NOTE, [["a", coordinate]], content, created_at)

    def decision(
        self,
        post: Event,
        coordinate: str,
        *,
        approve: bool = True,
        reason: str = "",
        created_at: int = BASE_TS,
    ) -> Event:
        body: dict[str, Any] = {
            "id": post.id,
            "pubkey": post.pubkey,
            "content": post.content,
            "created_at": post.created_at,
            "kind": post.kind,
            "tags": post.tags,
        }
        if reason:
            body["reason"] = reason
        kind = EventKind.POST_APPROVAL if approve else EventKind.POST_REJECTION
        tags = [["a", coordinate], ["e", post.id], ["p", post.pubkey], ["k", str(post.kind)]]
        return self.sign(kind, tags, body, created_at)


@pytest.fixture()
def make_identity() -> Callable[[str], Identity]:
    def _make(name: str) -> Identity:
        return Identity(name, SigningKey.generate())

    return _make


@pytest.fixture()
def alice(make_identity) -> Identity:
    return make_identity("alice")


@pytest.fixture()
def bob(make_identity) -> Identity:
    return make_identity("bob")


@pytest.fixture()
def carol(make_identity) -> Identity:
    return make_identity("carol")


@pytest.fixture()
def dave(make_identity) -> Identity:
    return make_identity("dave")


@pytest.fixture()
def test_settings() -> Settings:
    """Settings with tight buffering limits for orphan-event tests."""
    return Settings(
        CHORUS_COUNCIL_PENDING_VOTE_TTL_SECONDS=60,
        CHORUS_COUNCIL_PENDING_VOTE_MAX_PER_TARGET=8,
        CHORUS_COUNCIL_EVENT_LOG_MAX_EVENTS=1000,
    )


@pytest.fixture()
def relay() -> LoopbackRelay:
    return LoopbackRelay()


@pytest.fixture()
def processor(relay: LoopbackRelay, test_settings: Settings) -> EventProcessor:
    return EventProcessor(relay, test_settings)


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def client(app: FastAPI, processor: EventProcessor) -> Iterator[TestClient]:
    set_event_processor(processor)
    try:
        with TestClient(app, base_url="http://test") as test_client:
            yield test_client
    finally:
        set_event_processor(None)
