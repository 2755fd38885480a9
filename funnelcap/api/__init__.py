"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from funnelcap.api import app

    uvicorn funnelcap.api:app --reload
"""

from funnelcap.api.app import app

__all__ = ["app"]
