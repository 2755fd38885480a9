"""Funnel crawl endpoints.

Routes
------
POST /crawl                Start a crawl job in the background
GET  /crawl/{id}           Poll a crawl job
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from funnelcap.api.routers.jobs import job_snapshot, require_job
from funnelcap.capture.models import CrawlParams
from funnelcap.config import settings
from funnelcap.pipeline.runner import start_crawl_job

router = APIRouter()


class CrawlRequest(BaseModel):
    entry_url: str
    headless: Optional[bool] = None
    max_steps: Optional[int] = Field(default=None, ge=1)
    max_depth: Optional[int] = Field(default=None, ge=0)
    follow_same_origin_only: bool = True
    capture_screenshots: bool = True
    capture_network: bool = True
    capture_cookies: bool = True
    capture_snapshots: bool = False
    viewport_width: Optional[int] = Field(default=None, ge=200)
    viewport_height: Optional[int] = Field(default=None, ge=200)
    quiz_mode: bool = False
    quiz_max_steps: Optional[int] = Field(default=None, ge=1)


@router.post("", status_code=202, response_model=dict[str, Any])
def start_crawl_endpoint(body: CrawlRequest) -> dict[str, Any]:
    """Validate the crawl options and start the crawl in the background."""
    if not body.entry_url.lower().startswith(("http://", "https://")):
        raise HTTPException(status_code=400, detail="entry_url must be an http(s) URL.")
    if body.quiz_max_steps is not None and body.quiz_max_steps > settings.quiz_steps_ceiling:
        raise HTTPException(
            status_code=400,
            detail=f"quiz_max_steps may not exceed {settings.quiz_steps_ceiling}.",
        )
    job_id = start_crawl_job(CrawlParams(**body.model_dump()))
    return {"job_id": job_id}


@router.get("/{job_id}", response_model=dict[str, Any])
def get_crawl_endpoint(job_id: str) -> dict[str, Any]:
    return job_snapshot(require_job(job_id, kind="crawl"))
