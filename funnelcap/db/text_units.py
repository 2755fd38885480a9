"""Persistence of extracted text units, keyed by clone job id."""

from __future__ import annotations

import sqlite3
from time import time
from typing import Iterable, Optional

from funnelcap.transplant.models import TextUnit


def _row_to_unit(row: sqlite3.Row) -> TextUnit:
    return TextUnit(
        index=row["index"],
        original_text=row["original_text"],
        raw_text=row["raw_text"],
        tag_name=row["tag_name"],
        full_tag=row["full_tag"],
        classes=row["classes"],
        attributes=row["attributes"],
        context=row["context"],
        position=row["position"],
        processed=bool(row["processed"]),
        new_text=row["new_text"],
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def save_text_units(conn: sqlite3.Connection, job_id: str, units: Iterable[TextUnit]) -> int:
    """Insert (or replace) *units* under *job_id*.  Returns the row count."""
    rows = [
        (
            job_id,
            u.index,
            u.original_text,
            u.raw_text,
            u.tag_name,
            u.full_tag,
            u.classes,
            u.attributes,
            u.context,
            u.position,
            int(u.processed),
            u.new_text,
        )
        for u in units
    ]
    with conn:
        conn.executemany(
            """
            INSERT OR REPLACE INTO text_units
                (job_id, "index", original_text, raw_text, tag_name, full_tag, classes,
                 attributes, context, position, processed, new_text)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
    return len(rows)


def list_text_units(conn: sqlite3.Connection, job_id: str) -> list[TextUnit]:
    rows = conn.execute(
        'SELECT * FROM text_units WHERE job_id = ? ORDER BY "index"', (job_id,)
    ).fetchall()
    return [_row_to_unit(r) for r in rows]


def next_unprocessed(
    conn: sqlite3.Connection,
    job_id: str,
    limit: int,
    after_index: int = -1,
) -> list[TextUnit]:
    """Return up to *limit* unprocessed units with ``index > after_index``."""
    rows = conn.execute(
        """
        SELECT * FROM text_units
        WHERE job_id = ? AND processed = 0 AND "index" > ?
        ORDER BY "index"
        LIMIT ?
        """,
        (job_id, after_index, limit),
    ).fetchall()
    return [_row_to_unit(r) for r in rows]


def mark_processed(conn: sqlite3.Connection, job_id: str, index: int, new_text: str) -> None:
    """Store the rewritten text of one unit."""
    with conn:
        conn.execute(
            """
            UPDATE text_units
            SET new_text = ?, processed = 1, processed_at = ?
            WHERE job_id = ? AND "index" = ?
            """,
            (new_text, int(time()), job_id, index),
        )


def count_units(conn: sqlite3.Connection, job_id: str, processed: Optional[bool] = None) -> int:
    if processed is None:
        row = conn.execute(
            "SELECT COUNT(*) FROM text_units WHERE job_id = ?", (job_id,)
        ).fetchone()
    else:
        row = conn.execute(
            "SELECT COUNT(*) FROM text_units WHERE job_id = ? AND processed = ?",
            (job_id, int(processed)),
        ).fetchone()
    return row[0]
