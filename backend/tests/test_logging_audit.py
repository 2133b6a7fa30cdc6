from __future__ import annotations

import json
import logging

import pytest
from fastapi.testclient import TestClient

import app.core.config as config_mod
from api_helpers import PROCESS_SECRET, FakePipeline, clear_overrides, install_overrides
from app.main import app


@pytest.fixture(autouse=True)
def _env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(config_mod, "load_env_if_present", lambda **_: None)
    monkeypatch.setenv("COCKPIT_PROCESS_SECRET", PROCESS_SECRET)
    install_overrides(FakePipeline())
    yield
    clear_overrides()


def _cockpit_messages(caplog: pytest.LogCaptureFixture) -> list[str]:
    return [rec.getMessage() for rec in caplog.records if rec.name.startswith("cockpit")]


def _access_lines(caplog: pytest.LogCaptureFixture) -> list[dict]:
    return [
        json.loads(rec.getMessage())
        for rec in caplog.records
        if rec.name == "cockpit" and '"event": "access"' in rec.getMessage()
    ]


def test_request_id_propagates_and_logs_are_sanitized(caplog: pytest.LogCaptureFixture):
    caplog.set_level(logging.INFO, logger="cockpit")
    c = TestClient(app)
    r = c.get(f"/api/process?secret={PROCESS_SECRET}&limit=2", headers={"x-request-id": "req-123"})
    assert r.status_code == 200
    assert r.headers["x-request-id"] == "req-123"

    lines = _access_lines(caplog)
    assert lines, "No access logs captured."
    payload = lines[-1]
    assert payload["event"] == "access"
    assert payload["request_id"] == "req-123"
    assert payload["method"] == "GET"
    assert payload["path"] == "/api/process"
    assert payload["status_code"] == 200
    assert isinstance(payload["duration_ms"], int)
    assert not any(PROCESS_SECRET in m for m in _cockpit_messages(caplog))


def test_request_id_is_generated_and_failures_are_logged(caplog: pytest.LogCaptureFixture):
    caplog.set_level(logging.INFO, logger="cockpit")
    r = TestClient(app).get("/api/process", headers={"x-cockpit-secret": "wrong"})
    assert r.status_code == 401
    assert r.headers.get("x-request-id")
    assert _access_lines(caplog)[-1]["status_code"] == 401
    assert not any("wrong" in m for m in _cockpit_messages(caplog))
