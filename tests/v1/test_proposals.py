"""Tests for proposal, vote and kick endpoints."""

from fastapi import status


def _community_with_proposal(client, alice) -> tuple[str, dict]:
    event = alice.community()
    client.post("/api/v1/events/", json=event.model_dump())
    proposal = alice.proposal(event.id, options=["Yes", "No", "Abstain"], endsAt=4_000_000_000)
    client.post("/api/v1/events/", json=proposal.model_dump())
    return event.id, client.get(f"/api/v1/proposals/{proposal.id}").json()


def test_get_proposal(client, alice) -> None:
    community_id, proposal = _community_with_proposal(client, alice)
    assert proposal["community_id"] == community_id
    assert proposal["options"] == ["Yes", "No", "Abstain"]
    assert proposal["ends_at"] == 4_000_000_000
    assert proposal["status"] == "active"
    assert proposal["winning_option"] is None


def test_unknown_proposal(client) -> None:
    assert client.get(f"/api/v1/proposals/{'f' * 64}").status_code == status.HTTP_404_NOT_FOUND
    response = client.post(f"/api/v1/proposals/{'f' * 64}/votes", json={"option_index": 0})
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_cast_and_replace_vote(client, relay, alice) -> None:
    _, proposal = _community_with_proposal(client, alice)
    url = f"/api/v1/proposals/{proposal['id']}/votes"

    first = client.post(url, json={"option_index": 0})
    assert first.status_code == status.HTTP_201_CREATED
    assert first.json()["counts"] == [1, 0, 0]

    out_of_range = client.post(url, json={"option_index": 3})
    assert out_of_range.status_code == status.HTTP_400_BAD_REQUEST

    negative = client.post(url, json={"option_index": -1})
    assert negative.status_code == 422

    votes = client.get(f"/api/v1/proposals/{proposal['id']}").json()["votes"]
    assert votes == {relay.public_key: 0}


def test_tally_counts_every_voter(client, alice, bob) -> None:
    _, proposal = _community_with_proposal(client, alice)
    client.post("/api/v1/events/", json=alice.vote(proposal["id"], 2).model_dump())
    client.post("/api/v1/events/", json=bob.vote(proposal["id"], 2).model_dump())

    tally = client.get(f"/api/v1/proposals/{proposal['id']}/tally").json()
    assert tally["counts"] == [0, 0, 2]
    assert tally["total"] == 2
    assert tally["percentages"] == [0.0, 0.0, 1.0]


def test_kick_votes(client, alice, bob, carol) -> None:
    community = alice.community(members=[alice.pubkey, bob.pubkey, carol.pubkey])
    client.post("/api/v1/events/", json=community.model_dump())
    kick = alice.kick(community.id, carol.pubkey)
    client.post("/api/v1/events/", json=kick.model_dump())

    response = client.post(f"/api/v1/kicks/{kick.id}/votes")
    assert response.status_code == status.HTTP_201_CREATED
    # the engine key is not a member; its support still counts toward 2/3
    assert response.json()["vote_count"] == 2
    assert response.json()["executed"] is True

    members = client.get(f"/api/v1/communities/{community.id}").json()["members"]
    assert sorted(members) == sorted([alice.pubkey, bob.pubkey])


def test_unknown_kick(client) -> None:
    assert client.get(f"/api/v1/kicks/{'f' * 64}").status_code == status.HTTP_404_NOT_FOUND
