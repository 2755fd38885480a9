"""Crawl runner and LangGraph clone pipeline.

Public API::

    from funnelcap.pipeline import start_clone_job, start_crawl_job
"""

from funnelcap.pipeline.runner import (
    run_clone_job,
    run_crawl_job,
    start_clone_job,
    start_crawl_job,
)

__all__ = ["run_clone_job", "run_crawl_job", "start_clone_job", "start_crawl_job"]
