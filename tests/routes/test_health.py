"""Tests for the health probe."""
from __future__ import annotations

import pytest

from lectio.db.engine import reset_for_tests
from lectio.routes import health
from lectio.startup.wiring import create_app


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("LECTIO_DB_PATH", ":memory:")
    monkeypatch.setenv("LECTIO_COVERS_DIR", str(tmp_path / "covers"))
    reset_for_tests(drop=True)
    app = create_app({"TESTING": True})
    yield app.test_client()
    reset_for_tests(drop=True)


def test_healthz_reports_ok(client, tmp_path):
    resp = client.get("/healthz")

    assert resp.status_code == 200
    payload = resp.get_json()
    assert payload["status"] == "ok"
    assert payload["db"] is True
    # startup creates the covers directory
    assert (tmp_path / "covers").is_dir()


def test_healthz_reports_degraded_when_db_unreachable(client, monkeypatch):
    def broken_engine():
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(health, "get_engine", broken_engine)

    resp = client.get("/healthz")

    assert resp.status_code == 500
    assert resp.get_json()["status"] == "degraded"
    assert resp.get_json()["db"] is False
