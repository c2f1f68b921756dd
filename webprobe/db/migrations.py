"""Schema bootstrap and incremental migrations.

:func:`init_db` runs the bundled ``schema.sql`` (every statement there is
``IF NOT EXISTS``) and then applies whatever entries of :data:`MIGRATIONS`
are newer than the highest version recorded in ``schema_version``.
"""

from __future__ import annotations

import sqlite3
from typing import Iterator

from webprobe.config import settings

# (version, statement) pairs; versions must increase.
MIGRATIONS: list[tuple[int, str]] = []


def init_db(conn: sqlite3.Connection) -> None:
    """Bring *conn* up to the current schema.  Safe to call repeatedly."""
    # executescript() commits any open transaction before it runs.
    conn.executescript(settings.schema_path.read_text(encoding="utf-8"))
    migrate(conn)


def current_version(conn: sqlite3.Connection) -> int:
    (version,) = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return version or 0


def _pending(conn: sqlite3.Connection) -> Iterator[tuple[int, str]]:
    applied = current_version(conn)
    return (m for m in MIGRATIONS if m[0] > applied)


def migrate(conn: sqlite3.Connection) -> int:
    """Apply pending migrations, each in its own transaction.

    Returns:
        The schema version after migrating.
    """
    for version, statement in _pending(conn):
        with conn:
            conn.execute(statement)
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))
    return current_version(conn)
