"""Liveness endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from funnelcap import __version__
from funnelcap.config import settings

router = APIRouter()


@router.get("", response_model=dict[str, Any])
def health_endpoint() -> dict[str, Any]:
    return {
        "status": "ok",
        "version": __version__,
        "llm_provider": settings.llm_provider,
        "job_store": settings.job_store,
    }
