"""Database layer package.

Public re-exports so callers can write::

    from funnelcap.db import get_connection, init_db
    from funnelcap.db import text_units
"""

from funnelcap.db.connection import get_connection
from funnelcap.db.migrations import init_db
from funnelcap.db import clone_jobs, text_units

__all__ = ["get_connection", "init_db", "clone_jobs", "text_units"]
