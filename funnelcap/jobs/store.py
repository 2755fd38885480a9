"""Job/batch tracker.

A pipeline owner creates a job, advances it with :func:`update_job` and
callers poll :func:`get_job`.  Each job has exactly one writer (the task that
runs it), so stores only need to make single writes atomic with respect to
concurrent readers.

The default :class:`InMemoryJobStore` lives as long as the process; job state
is **not** durable across restarts unless ``JOB_STORE=sqlite`` selects
:class:`SqliteJobStore`.
"""

from __future__ import annotations

import copy
import json
import sqlite3
import threading
import uuid
from dataclasses import asdict, dataclass, field
from time import time
from typing import Any, Optional, Protocol

from funnelcap.config import settings
from funnelcap.errors import JobNotFoundError

JOB_STATUSES = ("pending", "running", "completed", "failed")
_UPDATABLE = {"status", "result", "error", "current_step", "total_steps"}


@dataclass
class Job:
    id: str
    entry_url: str
    kind: str = "crawl"
    status: str = "pending"
    params: dict[str, Any] = field(default_factory=dict)
    result: Any = None
    error: Optional[str] = None
    current_step: int = 0
    total_steps: int = 0
    created_at: int = 0
    updated_at: int = 0

    @property
    def finished(self) -> bool:
        return self.status in ("completed", "failed")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class JobStore(Protocol):
    def create(self, entry_url: str, params: dict[str, Any], kind: str = "crawl") -> str: ...

    def get(self, job_id: str) -> Optional[Job]: ...

    def update(self, job_id: str, **changes: Any) -> Job: ...


def _validate(changes: dict[str, Any]) -> None:
    unknown = set(changes) - _UPDATABLE
    if unknown:
        raise ValueError(f"Cannot update job field(s) {sorted(unknown)!r}")
    status = changes.get("status")
    if status is not None and status not in JOB_STATUSES:
        raise ValueError(f"Unknown job status {status!r}")


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------

class InMemoryJobStore:
    """Process-lifetime map of jobs guarded by one lock."""

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}
        self._lock = threading.Lock()

    def create(self, entry_url: str, params: dict[str, Any], kind: str = "crawl") -> str:
        now = int(time())
        job = Job(
            id=str(uuid.uuid4()),
            entry_url=entry_url,
            kind=kind,
            params=dict(params),
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._jobs[job.id] = job
        return job.id

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            return copy.deepcopy(job) if job else None

    def update(self, job_id: str, **changes: Any) -> Job:
        _validate(changes)
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            for key, value in changes.items():
                setattr(job, key, value)
            job.updated_at = int(time())
            return copy.deepcopy(job)


# ---------------------------------------------------------------------------
# SQLite store
# ---------------------------------------------------------------------------

class SqliteJobStore:
    """Jobs persisted in the ``jobs`` table of the funnelcap database."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.Lock()

    @staticmethod
    def _row_to_job(row: sqlite3.Row) -> Job:
        return Job(
            id=row["id"],
            entry_url=row["entry_url"],
            kind=row["kind"],
            status=row["status"],
            params=json.loads(row["params"] or "{}"),
            result=json.loads(row["result"]) if row["result"] is not None else None,
            error=row["error"],
            current_step=row["current_step"],
            total_steps=row["total_steps"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def create(self, entry_url: str, params: dict[str, Any], kind: str = "crawl") -> str:
        job_id = str(uuid.uuid4())
        now = int(time())
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO jobs (id, kind, status, entry_url, params, created_at, updated_at)
                VALUES (?, ?, 'pending', ?, ?, ?, ?)
                """,
                (job_id, kind, entry_url, json.dumps(params), now, now),
            )
        return job_id

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            row = self._conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
        return self._row_to_job(row) if row else None

    def update(self, job_id: str, **changes: Any) -> Job:
        _validate(changes)
        values = {
            key: json.dumps(value) if key == "result" and value is not None else value
            for key, value in changes.items()
        }
        values["updated_at"] = int(time())
        set_clause = ", ".join(f"{col} = ?" for col in values)
        with self._lock, self._conn:
            cursor = self._conn.execute(
                f"UPDATE jobs SET {set_clause} WHERE id = ?",  # noqa: S608
                [*values.values(), job_id],
            )
            if cursor.rowcount == 0:
                raise JobNotFoundError(job_id)
        return self.get(job_id)  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Cooperative cancellation
# ---------------------------------------------------------------------------

_cancel_flags: dict[str, threading.Event] = {}
_cancel_lock = threading.Lock()


def cancel_event_for(job_id: str) -> threading.Event:
    """Return the cancel flag of *job_id*, creating it on first use."""
    with _cancel_lock:
        return _cancel_flags.setdefault(job_id, threading.Event())


def request_cancel(job_id: str) -> bool:
    """Ask the pipeline owning *job_id* to stop.

    Returns ``False`` when the job does not exist or has already finished.
    """
    job = get_job(job_id)
    if job is None or job.finished:
        return False
    cancel_event_for(job_id).set()
    print(f"[JOB] Cancel requested for {job_id}")
    return True


def release_cancel_event(job_id: str) -> None:
    with _cancel_lock:
        _cancel_flags.pop(job_id, None)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

_store: Optional[JobStore] = None
_store_lock = threading.Lock()


def get_store() -> JobStore:
    """Return the process-wide store selected by ``settings.job_store``."""
    global _store
    with _store_lock:
        if _store is None:
            if settings.job_store.lower() == "sqlite":
                from funnelcap.db import get_connection, init_db  # noqa: PLC0415

                conn = get_connection()
                init_db(conn)
                _store = SqliteJobStore(conn)
            else:
                _store = InMemoryJobStore()
        return _store


def set_store(store: Optional[JobStore]) -> None:
    """Swap the process-wide store (``None`` resets to the configured one)."""
    global _store
    with _store_lock:
        _store = store


def create_job(entry_url: str, params: dict[str, Any], kind: str = "crawl") -> str:
    job_id = get_store().create(entry_url, params, kind)
    print(f"[JOB] Created {kind} job {job_id} for {entry_url}")
    return job_id


def get_job(job_id: str) -> Optional[Job]:
    return get_store().get(job_id)


def update_job(job_id: str, **changes: Any) -> Job:
    """Apply *changes* to a job.

    Raises:
        JobNotFoundError: If *job_id* is unknown.
        ValueError: For unknown fields or statuses.
    """
    return get_store().update(job_id, **changes)
