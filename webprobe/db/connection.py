"""Opening the webprobe SQLite database.

One connection is opened per process and handed to
:class:`~webprobe.db.jobs.JobStore`, which serialises every access to it.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional

from webprobe.config import settings

MEMORY = ":memory:"

# Applied, in order, to every new connection.
_PRAGMAS = (
    "PRAGMA foreign_keys = ON",   # broken_links rows cascade with their analysis
    "PRAGMA journal_mode = WAL",
    "PRAGMA busy_timeout = 5000",
)


def get_connection(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """Return a configured connection to *db_path* (``settings.db_path`` by default).

    The workspace directory is created on demand unless *db_path* is
    ``":memory:"``.  Rows come back as :class:`sqlite3.Row`.  Threads may
    share the connection (``check_same_thread=False``); callers are
    responsible for locking.
    """
    target = str(db_path or settings.db_path)
    if target != MEMORY:
        settings.ensure_workspace()

    conn = sqlite3.connect(target, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    for pragma in _PRAGMAS:
        conn.execute(pragma)
    return conn
