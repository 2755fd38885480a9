"""CRUD operations for the ``clone_jobs`` table."""

from __future__ import annotations

import sqlite3
import uuid
from dataclasses import dataclass
from time import time
from typing import Any, Optional


@dataclass
class CloneJobRecord:
    id: str
    url: str
    product_name: str
    product_description: str
    framework: Optional[str]
    target: Optional[str]
    custom_prompt: Optional[str]
    clone_mode: str
    original_html: Optional[str]
    final_html: Optional[str]
    status: str
    created_at: int
    completed_at: Optional[int]


def _row_to_job(row: sqlite3.Row) -> CloneJobRecord:
    return CloneJobRecord(**{key: row[key] for key in row.keys()})


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def create_clone_job(
    conn: sqlite3.Connection,
    url: str,
    product_name: str = "",
    product_description: str = "",
    framework: Optional[str] = None,
    target: Optional[str] = None,
    custom_prompt: Optional[str] = None,
    clone_mode: str = "rewrite",
    job_id: Optional[str] = None,
) -> CloneJobRecord:
    """Insert a new clone job in ``pending`` state and return it."""
    jid = job_id or str(uuid.uuid4())
    with conn:
        conn.execute(
            """
            INSERT INTO clone_jobs (id, url, product_name, product_description, framework,
                                    target, custom_prompt, clone_mode, status, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'pending', ?)
            """,
            (
                jid,
                url,
                product_name,
                product_description,
                framework,
                target,
                custom_prompt,
                clone_mode,
                int(time()),
            ),
        )
    return get_clone_job(conn, jid)  # type: ignore[return-value]


def get_clone_job(conn: sqlite3.Connection, job_id: str) -> Optional[CloneJobRecord]:
    row = conn.execute("SELECT * FROM clone_jobs WHERE id = ?", (job_id,)).fetchone()
    return _row_to_job(row) if row else None


def update_clone_job(conn: sqlite3.Connection, job_id: str, **kwargs: Any) -> CloneJobRecord:
    """Update ``original_html``, ``final_html``, ``status`` or ``completed_at``.

    Raises:
        ValueError: If ``job_id`` does not exist or a field is not updatable.
    """
    if get_clone_job(conn, job_id) is None:
        raise ValueError(f"Clone job not found: {job_id!r}")

    allowed = {"original_html", "final_html", "status", "completed_at"}
    unknown = set(kwargs) - allowed
    if unknown:
        raise ValueError(f"Cannot update field(s) {sorted(unknown)!r}")
    if not kwargs:
        raise ValueError("No valid fields provided to update_clone_job()")

    set_clause = ", ".join(f"{col} = ?" for col in kwargs)
    with conn:
        conn.execute(
            f"UPDATE clone_jobs SET {set_clause} WHERE id = ?",  # noqa: S608
            [*kwargs.values(), job_id],
        )
    return get_clone_job(conn, job_id)  # type: ignore[return-value]
