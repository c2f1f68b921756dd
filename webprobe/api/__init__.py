"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from webprobe.api import app

    uvicorn webprobe.api:app
"""

from webprobe.api.app import app, create_app

__all__ = ["app", "create_app"]
