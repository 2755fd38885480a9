"""FastAPI application factory.

Lifespan
--------
On startup the app opens a single SQLite connection (shared across requests
via ``request.app.state.db``) and initialises the schema.  On shutdown it
closes the connection cleanly.

Routers
-------
    /crawl     - start and poll funnel crawls
    /capture   - single-page capture
    /clone     - start and poll clone (swipe) jobs, replacement reports
    /jobs      - cooperative cancellation
    /health    - liveness
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from funnelcap import __version__
from funnelcap.db import get_connection, init_db

from funnelcap.api.routers import capture as capture_router
from funnelcap.api.routers import clone as clone_router
from funnelcap.api.routers import crawl as crawl_router
from funnelcap.api.routers import health as health_router
from funnelcap.api.routers import jobs as jobs_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the DB on startup and close it on shutdown."""
    conn = get_connection()
    init_db(conn)
    app.state.db = conn
    try:
        yield
    finally:
        conn.close()


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="funnelcap API",
        description=(
            "Capture marketing funnels with a headless browser, snapshot single "
            "pages and clone them with rewritten copy."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(crawl_router.router, prefix="/crawl", tags=["crawl"])
    app.include_router(capture_router.router, prefix="/capture", tags=["capture"])
    app.include_router(clone_router.router, prefix="/clone", tags=["clone"])
    app.include_router(jobs_router.router, prefix="/jobs", tags=["jobs"])
    app.include_router(health_router.router, prefix="/health", tags=["health"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn funnelcap.api.app:app --reload
app = create_app()
