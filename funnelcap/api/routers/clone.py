"""Clone (swipe) endpoints.

Routes
------
POST /clone                Start a clone job in the background
GET  /clone/{id}           Poll a clone job
GET  /clone/{id}/report    Per-unit replacement report of a finished job
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from funnelcap.api.routers.jobs import job_snapshot, require_job
from funnelcap.errors import ConfigurationError
from funnelcap.pipeline.runner import CLONE_MODES, start_clone_job
from funnelcap.rewrite.client import ProductBrief

router = APIRouter()


class CloneRequest(BaseModel):
    url: str
    product_name: str = ""
    product_description: str = ""
    framework: Optional[str] = None
    target: Optional[str] = None
    custom_prompt: Optional[str] = None
    clone_mode: str = "rewrite"


@router.post("", status_code=202, response_model=dict[str, Any])
def start_clone_endpoint(body: CloneRequest, request: Request) -> dict[str, Any]:
    if not body.url.lower().startswith(("http://", "https://")):
        raise HTTPException(status_code=400, detail="url must be an http(s) URL.")
    if body.clone_mode not in CLONE_MODES:
        raise HTTPException(
            status_code=400, detail=f"clone_mode must be one of {list(CLONE_MODES)}."
        )
    if body.clone_mode == "rewrite" and not (body.product_name and body.product_description):
        raise HTTPException(
            status_code=400,
            detail="product_name and product_description are required in rewrite mode.",
        )

    brief = ProductBrief(
        product_name=body.product_name,
        product_description=body.product_description,
        framework=body.framework,
        target=body.target,
        custom_prompt=body.custom_prompt,
    )
    try:
        job_id = start_clone_job(body.url, brief, body.clone_mode, conn=request.app.state.db)
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {"job_id": job_id}


@router.get("/{job_id}", response_model=dict[str, Any])
def get_clone_endpoint(job_id: str) -> dict[str, Any]:
    return job_snapshot(require_job(job_id, kind="clone"))


@router.get("/{job_id}/report", response_model=dict[str, Any])
def get_clone_report_endpoint(job_id: str) -> dict[str, Any]:
    job = require_job(job_id, kind="clone")
    if job.status != "completed":
        raise HTTPException(
            status_code=409, detail=f"Job '{job_id}' is {job.status}; no report yet."
        )
    return (job.result or {}).get("report", {})
