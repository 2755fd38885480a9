"""LangGraph node functions for the clone (swipe) pipeline.

Each public symbol is a *factory* that accepts an open DB connection and
returns a callable ``(CloneState) -> dict`` suitable for use as a LangGraph
node.  The connection, the cancel flag and the injectable collaborators
(source capture, chat model) stay out of the state bag.

Public factories
----------------
``make_capturer``      - snapshots the source page and extracts text units.
``make_rewriter``      - rewrites the next batch of units via the chat model.
``make_reconstructor`` - transplants the rewritten text into the snapshot.
"""

from __future__ import annotations

import sqlite3
import threading
from time import time
from typing import Any, Callable, Optional

from funnelcap.config import settings
from funnelcap.db import clone_jobs, text_units
from funnelcap.errors import JobCancelledError, RewriteError
from funnelcap.jobs import update_job
from funnelcap.pipeline.state import CloneState
from funnelcap.rewrite.client import ProductBrief, rewrite_batch
from funnelcap.transplant.brand import replace_brand_text
from funnelcap.transplant.engine import apply_replacements
from funnelcap.transplant.models import ReplacementReport, TextUnit

SourceCapture = Callable[[str], tuple[str, str, list[TextUnit]]]


def capture_source(url: str) -> tuple[str, str, list[TextUnit]]:
    """Open *url* once and return ``(snapshot_html, title, text_units)``.

    Units are read from the live page (visibility needs computed styles);
    the snapshot is the normalised document they will be transplanted into.
    """
    from funnelcap.capture.browser import browser_context  # noqa: PLC0415
    from funnelcap.capture.navigator import open_page  # noqa: PLC0415
    from funnelcap.capture.snapshot import serialize_normalized_document  # noqa: PLC0415
    from funnelcap.transplant.extractor import extract_text_units  # noqa: PLC0415

    with browser_context() as context:
        page = open_page(context, url)
        try:
            snapshot = serialize_normalized_document(page)
            units = extract_text_units(page)
        finally:
            page.close()
    return snapshot.html, snapshot.title, units


def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise JobCancelledError("cancelled")


# ---------------------------------------------------------------------------
# Node factories
# ---------------------------------------------------------------------------

def make_capturer(
    conn: sqlite3.Connection,
    capture: Optional[SourceCapture] = None,
    cancel_event: Optional[threading.Event] = None,
):
    """Return a *capturer* node function.

    Stores the snapshot on the clone job and, in ``rewrite`` mode, persists
    the extracted units under the job id.
    """
    capture = capture or capture_source

    def capturer(state: CloneState) -> dict:
        _check_cancelled(cancel_event)
        job_id = state["job_id"]
        print(f"[CAPTURE] Snapshotting {state['url']} …")
        html, title, units = capture(state["url"])
        clone_jobs.update_clone_job(conn, job_id, original_html=html, status="running")

        if state.get("clone_mode") == "identical":
            units = []
        text_units.save_text_units(conn, job_id, units)
        update_job(job_id, current_step=0, total_steps=len(units))
        print(f"[CAPTURE] {len(html)} chars, {len(units)} text unit(s)")
        return {
            "original_html": html,
            "title": title,
            "units_total": len(units),
            "cursor": -1,
            "has_more": bool(units),
            "status": "rewriting" if units else "reconstructing",
        }

    return capturer


def make_rewriter(
    conn: sqlite3.Connection,
    llm: Any = None,
    cancel_event: Optional[threading.Event] = None,
):
    """Return a *rewriter* node function.

    Each call handles one batch of ``settings.rewrite_batch_size`` units past
    the cursor.  A failed batch leaves its units without ``new_text``; the
    cursor still advances so the loop always terminates.
    """

    def rewriter(state: CloneState) -> dict:
        _check_cancelled(cancel_event)
        job_id = state["job_id"]
        cursor = state.get("cursor", -1)
        batch = text_units.next_unprocessed(conn, job_id, settings.rewrite_batch_size, cursor)
        if not batch:
            return {"has_more": False, "status": "reconstructing"}

        try:
            rewritten = rewrite_batch(
                batch, ProductBrief(**state["brief"]), source_url=state["url"], llm=llm
            )
        except RewriteError as exc:
            print(f"[REWRITE] Batch starting at {batch[0].index} failed: {exc}")
            rewritten = {}

        for index, new_text in rewritten.items():
            text_units.mark_processed(conn, job_id, index, new_text)

        cursor = batch[-1].index
        processed = text_units.count_units(conn, job_id, processed=True)
        update_job(job_id, current_step=processed)
        has_more = bool(text_units.next_unprocessed(conn, job_id, 1, cursor))
        return {
            "cursor": cursor,
            "has_more": has_more,
            "status": "rewriting" if has_more else "reconstructing",
        }

    return rewriter


def make_reconstructor(conn: sqlite3.Connection):
    """Return a *reconstructor* node function.

    Runs the replacement engine over every processed unit, then the brand
    post-pass.  ``identical`` mode returns the snapshot untouched.
    """

    def reconstructor(state: CloneState) -> dict:
        job_id = state["job_id"]
        original = state.get("original_html", "")

        if state.get("clone_mode") == "identical":
            html, report = original, ReplacementReport()
        else:
            units = [u for u in text_units.list_text_units(conn, job_id) if u.processed]
            html, report = apply_replacements(original, units)
            html = replace_brand_text(
                html, state["url"], original, state["brief"].get("product_name", "")
            )

        clone_jobs.update_clone_job(
            conn, job_id, final_html=html, status="completed", completed_at=int(time())
        )
        print(f"[TRANSPLANT] Final document: {len(html)} chars")
        return {"final_html": html, "report": report.to_dict(), "status": "done"}

    return reconstructor
