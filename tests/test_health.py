"""Health endpoint tests."""

from __future__ import annotations


def test_health_ok(client):
    """Health reports liveness and admission state."""
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["uptime_seconds"] >= 0
    assert data["blacklisted"] == 3
    # The health request itself passed the limiter
    assert data["tracked_clients"] == 1


def test_health_is_rate_limited(make_client):
    c = make_client(rate_limit_max_requests=1)
    assert c.get("/health").status_code == 200
    assert c.get("/health").status_code == 429


def test_health_blocked_for_blacklisted(client):
    assert client.get("/health", headers={"X-Forwarded-For": "192.168.1.100"}).status_code == 403
