"""Job/batch tracker package.

Public API::

    from funnelcap.jobs import create_job, get_job, update_job
"""

from funnelcap.jobs.store import (
    InMemoryJobStore,
    Job,
    SqliteJobStore,
    cancel_event_for,
    create_job,
    get_job,
    request_cancel,
    update_job,
)

__all__ = [
    "InMemoryJobStore",
    "Job",
    "SqliteJobStore",
    "cancel_event_for",
    "create_job",
    "get_job",
    "request_cancel",
    "update_job",
]
