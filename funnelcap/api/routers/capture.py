"""Single-page capture endpoint.

Routes
------
POST /capture              Capture one page as a self-contained document
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
from fastapi import APIRouter, HTTPException
from playwright.sync_api import Error as PlaywrightError
from pydantic import BaseModel

from funnelcap.capture.snapshot import capture_page
from funnelcap.errors import NavigationError

router = APIRouter()


class CaptureRequest(BaseModel):
    url: str
    render: Optional[bool] = None


@router.post("", response_model=dict[str, Any])
def capture_endpoint(body: CaptureRequest) -> dict[str, Any]:
    """Capture *url*; ``render`` forces (true) or skips (false) the browser."""
    if not body.url.lower().startswith(("http://", "https://")):
        raise HTTPException(status_code=400, detail="url must be an http(s) URL.")
    try:
        page = capture_page(body.url, render=body.render)
    except (httpx.HTTPError, NavigationError, PlaywrightError) as exc:
        raise HTTPException(status_code=502, detail=f"Capture failed: {exc}") from exc
    return page.to_dict()
