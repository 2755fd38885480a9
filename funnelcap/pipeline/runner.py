"""High-level runners for the clone and crawl pipelines.

``start_*`` functions create a job and hand the work to a background
``ThreadPoolExecutor``; ``run_*`` functions do the work synchronously and
are what the CLI and tests call.  Every runner owns its job: it is the only
writer of that job's status.
"""

from __future__ import annotations

import sqlite3
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict
from typing import Any, Optional

from funnelcap.capture.models import CrawlParams
from funnelcap.capture.navigator import crawl
from funnelcap.config import settings
from funnelcap.db import clone_jobs, get_connection, init_db
from funnelcap.errors import JobCancelledError
from funnelcap.jobs import cancel_event_for, create_job, update_job
from funnelcap.jobs.store import release_cancel_event
from funnelcap.pipeline.graph import build_graph
from funnelcap.pipeline.nodes import SourceCapture
from funnelcap.pipeline.state import CloneState
from funnelcap.rewrite.client import ProductBrief

CLONE_MODES = ("rewrite", "identical")

_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="funnelcap")

# Every rewrite batch is one graph step.
_RECURSION_LIMIT = 10_000


def _fail(job_id: str, exc: BaseException) -> None:
    error = "cancelled" if isinstance(exc, JobCancelledError) else str(exc) or type(exc).__name__
    print(f"[JOB] {job_id} failed: {error}")
    update_job(job_id, status="failed", error=error)


# ---------------------------------------------------------------------------
# Crawl
# ---------------------------------------------------------------------------

def run_crawl_job(job_id: str, params: CrawlParams, context: Any = None) -> None:
    """Run a crawl for an existing job and record the outcome on it."""
    total = params.quiz_max_steps if params.quiz_mode else params.max_steps
    update_job(job_id, status="running", total_steps=total or 0)

    def _progress(current: int, total_steps: int) -> None:
        update_job(job_id, current_step=current, total_steps=total_steps)

    try:
        result = crawl(
            params,
            context=context,
            on_progress=_progress,
            cancel_event=cancel_event_for(job_id),
        )
    except Exception as exc:  # noqa: BLE001
        _fail(job_id, exc)
        return
    finally:
        release_cancel_event(job_id)

    update_job(
        job_id,
        status="completed",
        result=result.to_dict(),
        current_step=result.total_steps,
        total_steps=result.total_steps,
    )
    print(f"[JOB] Crawl {job_id} completed with {result.total_steps} step(s)")


def start_crawl_job(params: CrawlParams) -> str:
    """Create a crawl job and run it in the background.  Returns the job id."""
    job_id = create_job(params.entry_url, params.to_dict(), kind="crawl")
    _executor.submit(run_crawl_job, job_id, params)
    return job_id


# ---------------------------------------------------------------------------
# Clone
# ---------------------------------------------------------------------------

def create_clone(
    conn: sqlite3.Connection,
    url: str,
    brief: ProductBrief,
    clone_mode: str = "rewrite",
) -> str:
    """Validate the request and create both the tracker job and its DB row.

    Raises:
        ValueError: For an unknown clone mode.
        ConfigurationError: If ``rewrite`` mode lacks rewrite credentials.
    """
    if clone_mode not in CLONE_MODES:
        raise ValueError(f"Unknown clone mode {clone_mode!r}")
    if clone_mode == "rewrite":
        settings.require_rewrite_credentials()

    job_id = create_job(url, {"clone_mode": clone_mode, **asdict(brief)}, kind="clone")
    clone_jobs.create_clone_job(
        conn,
        url,
        product_name=brief.product_name,
        product_description=brief.product_description,
        framework=brief.framework,
        target=brief.target,
        custom_prompt=brief.custom_prompt,
        clone_mode=clone_mode,
        job_id=job_id,
    )
    return job_id


def run_clone_job(
    job_id: str,
    url: str,
    brief: ProductBrief,
    clone_mode: str = "rewrite",
    conn: Optional[sqlite3.Connection] = None,
    capture: Optional[SourceCapture] = None,
    llm: Any = None,
) -> Optional[CloneState]:
    """Drive the clone graph for *job_id* and record its outcome.

    Opens its own DB connection when *conn* is omitted and closes it on exit.

    Returns:
        The final graph state, or ``None`` when the job failed.
    """
    own_conn = conn is None
    if own_conn:
        conn = get_connection()
        init_db(conn)
    cancel_event = cancel_event_for(job_id)
    update_job(job_id, status="running")

    try:
        graph = build_graph(conn, capture=capture, llm=llm, cancel_event=cancel_event)
        run_config: dict[str, Any] = {
            "configurable": {"thread_id": str(uuid.uuid4())},
            "recursion_limit": _RECURSION_LIMIT,
        }
        initial: CloneState = {
            "job_id": job_id,
            "url": url,
            "clone_mode": clone_mode,
            "brief": asdict(brief),
            "status": "capturing",
        }
        for event in graph.stream(initial, config=run_config):
            node_name = next(iter(event), None)
            if node_name:
                print(f"[JOB] {job_id}: {node_name} finished")
        final: CloneState = graph.get_state(run_config).values  # type: ignore[assignment]
    except Exception as exc:  # noqa: BLE001
        _fail(job_id, exc)
        clone_jobs.update_clone_job(conn, job_id, status="failed")
        return None
    finally:
        release_cancel_event(job_id)
        if own_conn:
            conn.close()

    update_job(
        job_id,
        status="completed",
        result={"html": final.get("final_html", ""), "report": final.get("report", {})},
    )
    print(f"[JOB] Clone {job_id} completed")
    return final


def start_clone_job(
    url: str,
    brief: ProductBrief,
    clone_mode: str = "rewrite",
    conn: Optional[sqlite3.Connection] = None,
) -> str:
    """Create a clone job and run it in the background.  Returns the job id.

    The background run opens its own connection; *conn* is only used to
    create the job row.

    Raises:
        ConfigurationError: Before any job exists, if credentials are missing.
    """
    if conn is not None:
        job_id = create_clone(conn, url, brief, clone_mode)
    else:
        conn = get_connection()
        try:
            init_db(conn)
            job_id = create_clone(conn, url, brief, clone_mode)
        finally:
            conn.close()
    _executor.submit(run_clone_job, job_id, url, brief, clone_mode)
    return job_id
