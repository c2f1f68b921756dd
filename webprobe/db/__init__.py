"""Database layer package.

Public re-exports so callers can write::

    from webprobe.db import JobStore, get_connection, init_db
"""

from webprobe.db.connection import get_connection
from webprobe.db.jobs import JobNotFound, JobStore
from webprobe.db.migrations import init_db
from webprobe.db.models import Job, JobState

__all__ = ["get_connection", "init_db", "JobStore", "JobNotFound", "Job", "JobState"]
