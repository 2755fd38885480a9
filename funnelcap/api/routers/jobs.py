"""Job polling helpers and the cancel endpoint.

Routes
------
POST /jobs/{id}/cancel     Set the cooperative cancel flag of a running job
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException

from funnelcap.jobs import Job, get_job, request_cancel

router = APIRouter()


def job_snapshot(job: Job) -> dict[str, Any]:
    """Polling view of a job: ``result`` when completed, ``error`` when failed."""
    snapshot: dict[str, Any] = {
        "job_id": job.id,
        "kind": job.kind,
        "status": job.status,
        "entry_url": job.entry_url,
        "current_step": job.current_step,
        "total_steps": job.total_steps,
        "created_at": job.created_at,
        "updated_at": job.updated_at,
    }
    if job.status == "completed":
        snapshot["result"] = job.result
    elif job.status == "failed":
        snapshot["error"] = job.error
    return snapshot


def require_job(job_id: str, kind: str | None = None) -> Job:
    job = get_job(job_id)
    if job is None or (kind is not None and job.kind != kind):
        raise HTTPException(status_code=404, detail=f"Job '{job_id}' not found.")
    return job


@router.post("/{job_id}/cancel", response_model=dict[str, Any])
def cancel_job_endpoint(job_id: str) -> dict[str, Any]:
    """Ask the pipeline that owns *job_id* to stop at its next checkpoint."""
    job = require_job(job_id)
    if not request_cancel(job_id):
        raise HTTPException(
            status_code=409, detail=f"Job '{job_id}' already {job.status}."
        )
    return {"job_id": job_id, "cancel_requested": True}
