"""Tests for the HTTP API.

All tests use an in-memory SQLite database via the FastAPI TestClient; the
background runners are patched at the router modules so no browser, network
or chat model is touched.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from funnelcap.api.app import create_app
from funnelcap.capture.models import PageCapture
from funnelcap.config import settings
from funnelcap.db import get_connection, init_db
from funnelcap.errors import ConfigurationError, NavigationError
from funnelcap.jobs import InMemoryJobStore, create_job, update_job
from funnelcap.jobs.store import set_store


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def client(tmp_path, monkeypatch):
    """TestClient with an isolated workspace and an in-memory DB."""
    monkeypatch.setattr(settings, "workspace_dir", tmp_path)
    set_store(InMemoryJobStore())
    conn = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(conn)

    with TestClient(create_app(), raise_server_exceptions=True) as c:
        c.app.state.db = conn
        yield c

    conn.close()
    set_store(None)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestHealth:
    def test_ok(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


class TestCrawl:
    def test_start(self, client, monkeypatch):
        started = MagicMock(return_value="job-1")
        monkeypatch.setattr("funnelcap.api.routers.crawl.start_crawl_job", started)
        resp = client.post("/crawl", json={"entry_url": "https://shop.test/", "max_steps": 3})
        assert resp.status_code == 202
        assert resp.json() == {"job_id": "job-1"}
        params = started.call_args.args[0]
        assert params.entry_url == "https://shop.test/"
        assert params.max_steps == 3

    def test_rejects_bad_url(self, client):
        assert client.post("/crawl", json={"entry_url": "ftp://x"}).status_code == 400

    def test_rejects_quiz_steps_over_ceiling(self, client):
        body = {"entry_url": "https://shop.test/", "quiz_mode": True, "quiz_max_steps": 500}
        assert client.post("/crawl", json=body).status_code == 400

    def test_rejects_zero_steps(self, client):
        assert client.post("/crawl", json={"entry_url": "https://shop.test/", "max_steps": 0}).status_code == 422

    def test_poll_running_then_completed(self, client):
        job_id = create_job("https://shop.test/", {})
        update_job(job_id, status="running", current_step=1, total_steps=4)
        data = client.get(f"/crawl/{job_id}").json()
        assert data["status"] == "running"
        assert data["current_step"] == 1
        assert "result" not in data

        update_job(job_id, status="completed", result={"total_steps": 4})
        assert client.get(f"/crawl/{job_id}").json()["result"] == {"total_steps": 4}

    def test_poll_failed_shows_error(self, client):
        job_id = create_job("https://shop.test/", {})
        update_job(job_id, status="failed", error="boom")
        assert client.get(f"/crawl/{job_id}").json()["error"] == "boom"

    def test_unknown_or_wrong_kind(self, client):
        assert client.get("/crawl/nope").status_code == 404
        clone_id = create_job("https://shop.test/", {}, kind="clone")
        assert client.get(f"/crawl/{clone_id}").status_code == 404


class TestCapture:
    def test_capture(self, client, monkeypatch):
        page = PageCapture(url="https://shop.test/", html="<html></html>", title="T", css_count=1, img_count=0)
        monkeypatch.setattr("funnelcap.api.routers.capture.capture_page", MagicMock(return_value=page))
        data = client.post("/capture", json={"url": "https://shop.test/"}).json()
        assert data["rendered_size"] == len("<html></html>")
        assert data["method_used"] == "browser"

    def test_capture_failure(self, client, monkeypatch):
        monkeypatch.setattr(
            "funnelcap.api.routers.capture.capture_page",
            MagicMock(side_effect=NavigationError("unreachable")),
        )
        assert client.post("/capture", json={"url": "https://shop.test/"}).status_code == 502

    def test_bad_url(self, client):
        assert client.post("/capture", json={"url": "javascript:alert(1)"}).status_code == 400


class TestClone:
    _BODY = {"url": "https://shop.test/", "product_name": "Zenith", "product_description": "Shoes"}

    def test_start(self, client, monkeypatch):
        started = MagicMock(return_value="clone-1")
        monkeypatch.setattr("funnelcap.api.routers.clone.start_clone_job", started)
        resp = client.post("/clone", json=self._BODY)
        assert resp.status_code == 202
        assert resp.json() == {"job_id": "clone-1"}
        url, brief, mode = started.call_args.args
        assert brief.product_name == "Zenith"
        assert mode == "rewrite"
        assert started.call_args.kwargs["conn"] is client.app.state.db

    def test_rewrite_requires_product(self, client):
        assert client.post("/clone", json={"url": "https://shop.test/"}).status_code == 400

    def test_identical_needs_no_product(self, client, monkeypatch):
        monkeypatch.setattr("funnelcap.api.routers.clone.start_clone_job", MagicMock(return_value="c"))
        resp = client.post("/clone", json={"url": "https://shop.test/", "clone_mode": "identical"})
        assert resp.status_code == 202

    def test_unknown_mode(self, client):
        assert client.post("/clone", json={**self._BODY, "clone_mode": "fancy"}).status_code == 400

    def test_missing_credentials(self, client, monkeypatch):
        monkeypatch.setattr(
            "funnelcap.api.routers.clone.start_clone_job",
            MagicMock(side_effect=ConfigurationError("ANTHROPIC_API_KEY is not configured")),
        )
        resp = client.post("/clone", json=self._BODY)
        assert resp.status_code == 500
        assert "ANTHROPIC_API_KEY" in resp.json()["detail"]

    def test_report(self, client):
        job_id = create_job("https://shop.test/", {}, kind="clone")
        update_job(job_id, status="running")
        assert client.get(f"/clone/{job_id}/report").status_code == 409

        report = {"total": 1, "replaced": 1, "not_replaced": 0, "details": []}
        update_job(job_id, status="completed", result={"html": "<p>x</p>", "report": report})
        assert client.get(f"/clone/{job_id}/report").json() == report
        assert client.get(f"/clone/{job_id}").json()["result"]["html"] == "<p>x</p>"


class TestCancel:
    def test_cancel_running(self, client):
        job_id = create_job("https://shop.test/", {})
        update_job(job_id, status="running")
        resp = client.post(f"/jobs/{job_id}/cancel")
        assert resp.status_code == 200
        assert resp.json()["cancel_requested"] is True

    def test_cancel_finished(self, client):
        job_id = create_job("https://shop.test/", {})
        update_job(job_id, status="completed")
        assert client.post(f"/jobs/{job_id}/cancel").status_code == 409

    def test_cancel_unknown(self, client):
        assert client.post("/jobs/nope/cancel").status_code == 404
