"""Shared test fixtures."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

ADMIN_KEY = "test-admin-key"


@pytest.fixture(autouse=True)
def _mock_settings(monkeypatch):
    """Provide default settings for all tests."""
    monkeypatch.setenv("GATEKEEPER_ADMIN_API_KEY", ADMIN_KEY)
    monkeypatch.setenv("GATEKEEPER_LOG_JSON", "false")
    monkeypatch.setenv("GATEKEEPER_LOG_LEVEL", "debug")
    monkeypatch.delenv("GATEKEEPER_CONFIG_FILE", raising=False)

    # Reset cached settings
    import gatekeeper.config.loader as loader
    loader._settings = None
    yield
    loader._settings = None


@pytest.fixture
def make_client():
    """Factory for test clients backed by a fresh app; kwargs override settings."""
    clients = []

    def _make(**overrides) -> TestClient:
        from gatekeeper.config.loader import GatekeeperSettings
        from gatekeeper.main import create_app

        app = create_app(GatekeeperSettings(**overrides))
        c = TestClient(app, raise_server_exceptions=False)
        c.__enter__()
        clients.append(c)
        return c

    yield _make
    for c in clients:
        c.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    """Test client with default settings."""
    return make_client()


@pytest.fixture
def admin_headers():
    """Headers with valid admin API key."""
    return {"Authorization": f"Bearer {ADMIN_KEY}"}
