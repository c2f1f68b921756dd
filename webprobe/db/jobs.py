"""Job Store: persistence for analysis jobs and their results.

A :class:`JobStore` wraps one open SQLite connection.  The scheduler, every
job execution and the HTTP layer receive the same store explicitly, so a
single re-entrant lock serialises their access to the connection.
"""

from __future__ import annotations

import sqlite3
import threading
import uuid
from collections import defaultdict
from pathlib import Path
from time import time
from typing import Any, Iterable, Optional

from webprobe.db.connection import get_connection
from webprobe.db.migrations import init_db
from webprobe.db.models import Job, JobState
from webprobe.scraper.models import AnalysisResult, HtmlVersion


class JobNotFound(LookupError):
    """Raised when an operation names a job id that does not exist."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Analysis not found: {job_id!r}")
        self.job_id = job_id


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_result(row: sqlite3.Row, broken_links: list[str]) -> Optional[AnalysisResult]:
    if row["analysed_at"] is None:
        return None
    return AnalysisResult(
        url=row["url"],
        html_version=HtmlVersion(row["html_version"]),
        title=row["title"],
        h1_count=row["h1_count"],
        h2_count=row["h2_count"],
        h3_count=row["h3_count"],
        h4_count=row["h4_count"],
        h5_count=row["h5_count"],
        h6_count=row["h6_count"],
        internal_links=row["internal_links"],
        external_links=row["external_links"],
        broken_links=tuple(broken_links),
        has_login_form=bool(row["has_login_form"]),
    )


def _row_to_job(row: sqlite3.Row, broken_links: Optional[list[str]] = None) -> Job:
    return Job(
        id=row["id"],
        url=row["url"],
        state=JobState(row["state"]),
        created_at=row["created_at"],
        started_at=row["started_at"],
        finished_at=row["finished_at"],
        result=_row_to_result(row, broken_links or []),
    )


def _timestamp_columns(state: JobState, now: int) -> dict[str, Any]:
    """Bookkeeping columns that change together with ``state``."""
    if state is JobState.QUEUED:
        return {"started_at": None, "finished_at": None}
    if state is JobState.RUNNING:
        return {"started_at": now, "finished_at": None}
    return {"finished_at": now}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

class JobStore:
    """CRUD and state transitions for the ``analyses`` table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.RLock()

    @classmethod
    def open(cls, db_path: Optional[Path] = None) -> JobStore:
        """Open a connection, initialise the schema and wrap it in a store."""
        conn = get_connection(db_path)
        init_db(conn)
        return cls(conn)

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ------------------------------------------------------------------
    # Creation / lookup
    # ------------------------------------------------------------------
    def create(self, url: str) -> Job:
        """Insert a new ``queued`` job for *url* and return it.

        The URL is stored as given; reachability is only discovered when the
        job runs.
        """
        job_id = str(uuid.uuid4())
        now = int(time())
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT INTO analyses (id, url, state, created_at) VALUES (?, ?, ?, ?)",
                (job_id, url, JobState.QUEUED.value, now),
            )
        return self.get(job_id)  # type: ignore[return-value]

    def get(self, job_id: str) -> Optional[Job]:
        """Fetch a single job with its last committed result, or ``None``."""
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM analyses WHERE id = ?", (job_id,)
            ).fetchone()
            if row is None:
                return None
            links = [
                r["link"]
                for r in self._conn.execute(
                    "SELECT link FROM broken_links WHERE analysis_id = ? ORDER BY position",
                    (job_id,),
                ).fetchall()
            ]
        return _row_to_job(row, links)

    def get_state(self, job_id: str) -> JobState:
        """Return the current state of *job_id*.

        Raises:
            JobNotFound: If the job does not exist.
        """
        with self._lock:
            row = self._conn.execute(
                "SELECT state FROM analyses WHERE id = ?", (job_id,)
            ).fetchone()
        if row is None:
            raise JobNotFound(job_id)
        return JobState(row["state"])

    def list_by_state(self, state: JobState) -> list[Job]:
        """Return every job currently in *state*, oldest first.

        Results are not attached; the scheduler only needs id and URL.
        """
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM analyses WHERE state = ? ORDER BY created_at, rowid",
                (state.value,),
            ).fetchall()
        return [_row_to_job(r) for r in rows]

    def list_all(self) -> list[Job]:
        """Return every job, newest first, with results attached."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM analyses ORDER BY created_at DESC, rowid DESC"
            ).fetchall()
            link_rows = self._conn.execute(
                "SELECT analysis_id, link FROM broken_links ORDER BY analysis_id, position"
            ).fetchall()

        links: dict[str, list[str]] = defaultdict(list)
        for r in link_rows:
            links[r["analysis_id"]].append(r["link"])
        return [_row_to_job(r, links.get(r["id"])) for r in rows]

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------
    def set_state(self, job_id: str, state: JobState) -> None:
        """Unconditionally move *job_id* to *state*.

        Raises:
            JobNotFound: If the job does not exist.
        """
        if not self.transition(job_id, state, from_states=list(JobState)):
            raise JobNotFound(job_id)

    def transition(
        self,
        job_id: str,
        state: JobState,
        from_states: Iterable[JobState],
    ) -> bool:
        """Move *job_id* to *state* only if it is currently in *from_states*.

        The check and the write are one ``UPDATE`` statement, so concurrent
        callers cannot both succeed from the same starting state.

        Returns:
            ``True`` if the row was updated.
        """
        allowed = [s.value for s in from_states]
        if not allowed:
            return False

        updates: dict[str, Any] = {"state": state.value}
        updates.update(_timestamp_columns(state, int(time())))
        set_clause = ", ".join(f"{col} = ?" for col in updates)
        placeholders = ", ".join("?" for _ in allowed)
        values = list(updates.values()) + [job_id] + allowed

        with self._lock, self._conn:
            cursor = self._conn.execute(
                f"UPDATE analyses SET {set_clause} "  # noqa: S608
                f"WHERE id = ? AND state IN ({placeholders})",
                values,
            )
        return cursor.rowcount == 1

    def claim(self, job_id: str) -> bool:
        """Atomically move a job from ``queued`` to ``running``.

        Returns ``False`` when another execution already claimed it, or when
        it was stopped or deleted in the meantime.
        """
        return self.transition(job_id, JobState.RUNNING, from_states=[JobState.QUEUED])

    def commit_result(self, job_id: str, result: AnalysisResult) -> bool:
        """Store *result* and mark the job ``done`` in a single transaction.

        The previous broken-link rows are replaced, never merged.  Nothing is
        written unless the job is still ``running``.

        Returns:
            ``True`` if the result was committed, ``False`` if the job had
            left the ``running`` state.

        Raises:
            sqlite3.Error: If the write fails.  The transaction is rolled back
                in full and the job keeps its previous state.
        """
        now = int(time())
        with self._lock, self._conn:
            cursor = self._conn.execute(
                """
                UPDATE analyses SET
                    html_version = ?, title = ?,
                    h1_count = ?, h2_count = ?, h3_count = ?,
                    h4_count = ?, h5_count = ?, h6_count = ?,
                    internal_links = ?, external_links = ?, inaccessible_links = ?,
                    has_login_form = ?, state = ?, finished_at = ?, analysed_at = ?
                WHERE id = ? AND state = ?
                """,
                (
                    result.html_version.value,
                    result.title,
                    *result.heading_counts,
                    result.internal_links,
                    result.external_links,
                    result.inaccessible_links,
                    int(result.has_login_form),
                    JobState.DONE.value,
                    now,
                    now,
                    job_id,
                    JobState.RUNNING.value,
                ),
            )
            if cursor.rowcount != 1:
                return False

            self._conn.execute(
                "DELETE FROM broken_links WHERE analysis_id = ?", (job_id,)
            )
            self._conn.executemany(
                "INSERT INTO broken_links (analysis_id, position, link) VALUES (?, ?, ?)",
                [(job_id, i, link) for i, link in enumerate(result.broken_links)],
            )
        return True

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------
    def delete(self, job_id: str) -> None:
        """Delete a job (and its broken links via CASCADE).

        This is a no-op if the job does not exist.
        """
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM analyses WHERE id = ?", (job_id,))
