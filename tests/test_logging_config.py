"""Tests for the structlog setup."""

from __future__ import annotations

import json
import logging

import pytest

from gatekeeper.logging_config import PAYLOAD_LOGGER, _add_component, setup_logging


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logging.getLogger().handlers.clear()
    logging.getLogger(PAYLOAD_LOGGER).setLevel(logging.NOTSET)


def _json_events(captured: str) -> list[dict]:
    return [json.loads(line) for line in captured.splitlines() if line.startswith("{")]


def test_component_strips_package_prefix():
    event = _add_component(None, "info", {"event": "x", "logger": "gatekeeper.admission.sanitize"})
    assert event == {"event": "x", "component": "admission.sanitize"}


def test_component_keeps_foreign_logger_names():
    assert _add_component(None, "info", {"logger": "uvicorn.error"})["component"] == "uvicorn.error"


def test_payload_logger_follows_flag():
    payload_logger = logging.getLogger(PAYLOAD_LOGGER)

    setup_logging(log_level="info", payload_logging=True)
    assert payload_logger.isEnabledFor(logging.DEBUG)
    assert not logging.getLogger("gatekeeper.admission.sanitize").isEnabledFor(logging.DEBUG)

    setup_logging(log_level="info")
    assert not payload_logger.isEnabledFor(logging.DEBUG)


def test_uvicorn_access_log_quieted():
    setup_logging(log_level="debug")
    assert not logging.getLogger("uvicorn.access").isEnabledFor(logging.INFO)


def test_startup_logs_pipeline_order(make_client, capsys):
    make_client(log_json=True, log_level="info")
    started = [e for e in _json_events(capsys.readouterr().out) if e["event"] == "gatekeeper_started"]
    assert started
    assert started[0]["pipeline"] == ["BlacklistGuard", "RateLimiter", "RequestSanitizer"]


def test_payloads_logged_under_info_root_when_enabled(make_client, capsys):
    c = make_client(log_json=True, log_level="info", log_payloads=True)
    c.post("/api/echo", json={"$where": "1", "name": "Bob"})

    events = [e for e in _json_events(capsys.readouterr().out) if e["event"] == "request_body_sanitized"]
    assert events
    assert events[0]["component"] == "middleware.request_sanitizer"
    assert events[0]["sanitized"] == {"name": "Bob"}
