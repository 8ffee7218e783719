"""Tests for system endpoints."""

from fastapi import status
from fastapi.testclient import TestClient


def test_health(client: TestClient, relay) -> None:
    """Test the versioned health endpoint."""
    r = client.get("/api/v1/health")
    assert r.status_code == status.HTTP_200_OK
    data = r.json()
    assert data["status"] == "ok"
    assert data["public_key"] == relay.public_key
    assert data["stats"]["communities"] == 0


def test_root_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/").json()["docs"] == "/docs"


def test_system_config(client: TestClient) -> None:
    """Test system configuration endpoint."""
    r = client.get("/api/v1/config")
    assert r.status_code == status.HTTP_200_OK
    data = r.json()
    assert "app" in data and "pending_window" in data
    assert data["kick_quorum_ratio"] == 0.51
    assert set(data["pending_window"]) == {"ttl_seconds", "max_per_target", "max_total"}
