"""Tests for the clone graph and the job runners.

The source capture and the chat model are injected, so no browser or
network is involved; the database is in-memory.
"""

from __future__ import annotations

import json
import sqlite3
from types import SimpleNamespace
from typing import Generator

import pytest

from funnelcap.capture.models import CrawlParams, CrawlResult, Step
from funnelcap.config import settings
from funnelcap.db import clone_jobs, get_connection, init_db, text_units
from funnelcap.errors import ConfigurationError, NavigationError
from funnelcap.jobs import InMemoryJobStore, cancel_event_for, create_job, get_job
from funnelcap.jobs.store import set_store
from funnelcap.pipeline import runner
from funnelcap.pipeline.runner import create_clone, run_clone_job, run_crawl_job, start_crawl_job
from funnelcap.rewrite.client import ProductBrief
from funnelcap.transplant.models import TextUnit

_URL = "https://shop.test/"
_HTML = (
    "<html><head><title>Shop</title></head><body>"
    "<h1>Great shoes</h1><p>Buy them today</p><p>Free returns</p>"
    "</body></html>"
)
_BRIEF = ProductBrief(product_name="Zenith", product_description="Trail running shoes")


def _capture(url: str):
    texts = ["Great shoes", "Buy them today", "Free returns"]
    units = [TextUnit(index=i, original_text=t, raw_text=t, tag_name="p") for i, t in enumerate(texts)]
    return _HTML, "Shop", units


class _UpperLLM:
    """Answers every batch with the upper-cased original texts."""

    def __init__(self, fail_on: tuple[int, ...] = ()):
        self.fail_on = fail_on
        self.calls = 0

    def invoke(self, prompt: str):
        self.calls += 1
        body = prompt.split("TEXTS TO REWRITE:\n", 1)[1].split("\n\nReturn ONLY", 1)[0]
        batch = json.loads(body)
        if any(item["index"] in self.fail_on for item in batch):
            raise ConnectionError("service unavailable")
        return SimpleNamespace(
            content=json.dumps([{"index": i["index"], "text": i["text"].upper()} for i in batch])
        )


@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    connection = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(connection)
    yield connection
    connection.close()


@pytest.fixture(autouse=True)
def fresh_store(monkeypatch):
    set_store(InMemoryJobStore())
    monkeypatch.setattr(settings, "llm_provider", "ollama")
    yield
    set_store(None)


class _SyncExecutor:
    def submit(self, fn, *args, **kwargs):
        fn(*args, **kwargs)


# ---------------------------------------------------------------------------
# Clone
# ---------------------------------------------------------------------------

class TestCreateClone:
    def test_creates_job_and_row(self, conn):
        job_id = create_clone(conn, _URL, _BRIEF)
        assert get_job(job_id).kind == "clone"
        assert clone_jobs.get_clone_job(conn, job_id).product_name == "Zenith"

    def test_unknown_mode(self, conn):
        with pytest.raises(ValueError):
            create_clone(conn, _URL, _BRIEF, "fancy")

    def test_missing_credentials(self, conn, monkeypatch):
        monkeypatch.setattr(settings, "llm_provider", "anthropic")
        monkeypatch.setattr(settings, "anthropic_api_key", "")
        with pytest.raises(ConfigurationError):
            create_clone(conn, _URL, _BRIEF)

    def test_identical_needs_no_credentials(self, conn, monkeypatch):
        monkeypatch.setattr(settings, "llm_provider", "anthropic")
        monkeypatch.setattr(settings, "anthropic_api_key", "")
        assert create_clone(conn, _URL, ProductBrief("", ""), "identical")


class TestRunCloneJob:
    def test_rewrite_mode(self, conn, monkeypatch):
        monkeypatch.setattr(settings, "rewrite_batch_size", 2)
        job_id = create_clone(conn, _URL, _BRIEF)
        llm = _UpperLLM()
        final = run_clone_job(job_id, _URL, _BRIEF, conn=conn, capture=_capture, llm=llm)

        assert llm.calls == 2
        assert "<h1>GREAT SHOES</h1><p>BUY THEM TODAY</p><p>FREE RETURNS</p>" in final["final_html"]
        assert "<title>Zenith</title>" in final["final_html"]
        assert final["report"]["replaced"] == 3

        job = get_job(job_id)
        assert job.status == "completed"
        assert job.current_step == 3 and job.total_steps == 3
        assert job.result["html"] == final["final_html"]
        record = clone_jobs.get_clone_job(conn, job_id)
        assert record.status == "completed"
        assert record.original_html == _HTML
        assert record.completed_at is not None

    def test_failed_batch_keeps_original_text(self, conn, monkeypatch):
        monkeypatch.setattr(settings, "rewrite_batch_size", 1)
        job_id = create_clone(conn, _URL, _BRIEF)
        final = run_clone_job(job_id, _URL, _BRIEF, conn=conn, capture=_capture, llm=_UpperLLM(fail_on=(1,)))

        assert "<p>Buy them today</p>" in final["final_html"]
        assert "<h1>GREAT SHOES</h1>" in final["final_html"]
        assert "<p>FREE RETURNS</p>" in final["final_html"]
        assert get_job(job_id).status == "completed"
        assert text_units.count_units(conn, job_id, processed=False) == 1

    def test_identical_mode_returns_snapshot(self, conn):
        job_id = create_clone(conn, _URL, ProductBrief("", ""), "identical")
        llm = _UpperLLM()
        final = run_clone_job(job_id, _URL, ProductBrief("", ""), "identical", conn=conn, capture=_capture, llm=llm)

        assert final["final_html"] == _HTML
        assert final["report"]["total"] == 0
        assert llm.calls == 0
        assert text_units.count_units(conn, job_id) == 0

    def test_cancelled_before_capture(self, conn):
        job_id = create_clone(conn, _URL, _BRIEF)
        cancel_event_for(job_id).set()
        assert run_clone_job(job_id, _URL, _BRIEF, conn=conn, capture=_capture, llm=_UpperLLM()) is None

        job = get_job(job_id)
        assert job.status == "failed"
        assert job.error == "cancelled"
        assert clone_jobs.get_clone_job(conn, job_id).status == "failed"

    def test_capture_failure_marks_job_failed(self, conn):
        def _broken(url):
            raise NavigationError("entry unreachable")

        job_id = create_clone(conn, _URL, _BRIEF)
        assert run_clone_job(job_id, _URL, _BRIEF, conn=conn, capture=_broken) is None
        assert get_job(job_id).error == "entry unreachable"


# ---------------------------------------------------------------------------
# Crawl
# ---------------------------------------------------------------------------

def _fake_crawl(params, *, context=None, on_progress=None, cancel_event=None):
    on_progress(1, 2)
    step = Step(step_index=1, url=params.entry_url, title="Home", timestamp="2024-01-01T00:00:00+00:00")
    return CrawlResult(entry_url=params.entry_url, steps=[step], visited_urls=[params.entry_url])


class TestCrawlJobs:
    def test_completed(self, monkeypatch):
        monkeypatch.setattr(runner, "crawl", _fake_crawl)
        monkeypatch.setattr(runner, "_executor", _SyncExecutor())
        job_id = start_crawl_job(CrawlParams(entry_url=_URL, max_steps=2))

        job = get_job(job_id)
        assert job.status == "completed"
        assert job.result["total_steps"] == 1
        assert job.result["steps"][0]["title"] == "Home"
        assert job.current_step == job.total_steps == 1
        assert job.params["max_steps"] == 2

    def test_failed(self, monkeypatch):
        def _boom(params, **kwargs):
            raise NavigationError("Could not load entry URL")

        monkeypatch.setattr(runner, "crawl", _boom)

        job_id = create_job(_URL, {})
        run_crawl_job(job_id, CrawlParams(entry_url=_URL))
        job = get_job(job_id)
        assert job.status == "failed"
        assert job.error == "Could not load entry URL"
