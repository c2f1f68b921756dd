"""Tests for the database layer and the Job Store.

All tests use an in-memory SQLite database so they are:
- Fast (no disk I/O)
- Isolated (each fixture gets a fresh DB)
- Side-effect free (nothing written to ~/.webprobe_data)
"""

from __future__ import annotations

import sqlite3
from typing import Generator

import pytest

from webprobe.db.connection import get_connection
from webprobe.db.jobs import JobNotFound, JobStore
from webprobe.db.migrations import current_version, init_db, migrate
from webprobe.db.models import Job, JobState
from webprobe.scraper.models import AnalysisResult, HtmlVersion


# ---------------------------------------------------------------------------
# Fixtures / helpers
# ---------------------------------------------------------------------------

@pytest.fixture()
def store() -> Generator[JobStore, None, None]:
    """In-memory Job Store with the schema initialised."""
    job_store = JobStore.open(db_path=":memory:")  # type: ignore[arg-type]
    yield job_store
    job_store.close()


def _result(url: str = "https://example.com/", broken: tuple[str, ...] = ()) -> AnalysisResult:
    return AnalysisResult(
        url=url,
        html_version=HtmlVersion.HTML_401,
        title="Example",
        h1_count=1,
        h2_count=3,
        internal_links=4,
        external_links=2,
        broken_links=broken,
        has_login_form=True,
    )


def _running(store: JobStore, url: str = "https://example.com/") -> Job:
    job = store.create(url)
    assert store.claim(job.id)
    return job


# ---------------------------------------------------------------------------
# connection / init
# ---------------------------------------------------------------------------

class TestConnection:
    def test_foreign_keys_enabled(self) -> None:
        conn = get_connection(db_path=":memory:")  # type: ignore[arg-type]
        row = conn.execute("PRAGMA foreign_keys").fetchone()
        conn.close()
        assert row[0] == 1

    def test_row_factory(self) -> None:
        conn = get_connection(db_path=":memory:")  # type: ignore[arg-type]
        row = conn.execute("SELECT 1 AS one").fetchone()
        conn.close()
        assert row["one"] == 1


class TestInitDb:
    def test_tables_exist(self, store: JobStore) -> None:
        tables = {
            r[0]
            for r in store.connection.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table'"
            ).fetchall()
        }
        assert {"analyses", "broken_links", "schema_version"} <= tables

    def test_current_version_zero_on_fresh_db(self, store: JobStore) -> None:
        assert current_version(store.connection) == 0

    def test_init_db_is_idempotent(self, store: JobStore) -> None:
        init_db(store.connection)

    def test_migrate_applies_pending_once(self, store: JobStore, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            "webprobe.db.migrations.MIGRATIONS",
            [(1, "ALTER TABLE analyses ADD COLUMN note TEXT")],
        )
        assert migrate(store.connection) == 1
        assert migrate(store.connection) == 1
        columns = {r["name"] for r in store.connection.execute("PRAGMA table_info(analyses)")}
        assert "note" in columns


# ---------------------------------------------------------------------------
# Creation / lookup
# ---------------------------------------------------------------------------

class TestCreateAndGet:
    def test_create_returns_queued_job(self, store: JobStore) -> None:
        job = store.create("https://example.com/")
        assert isinstance(job, Job)
        assert job.state is JobState.QUEUED
        assert job.url == "https://example.com/"
        assert len(job.id) == 36
        assert job.result is None

    def test_url_is_not_validated(self, store: JobStore) -> None:
        assert store.create("definitely not a url").url == "definitely not a url"

    def test_get_missing_returns_none(self, store: JobStore) -> None:
        assert store.get("nope") is None

    def test_get_state_missing_raises(self, store: JobStore) -> None:
        with pytest.raises(JobNotFound):
            store.get_state("nope")

    def test_list_by_state(self, store: JobStore) -> None:
        a = store.create("https://a.example/")
        b = store.create("https://b.example/")
        store.set_state(b.id, JobState.STOPPED)

        queued = store.list_by_state(JobState.QUEUED)
        assert [j.id for j in queued] == [a.id]

    def test_list_all_newest_first(self, store: JobStore) -> None:
        first = store.create("https://first.example/")
        second = store.create("https://second.example/")
        third = store.create("https://third.example/")
        assert [j.id for j in store.list_all()] == [third.id, second.id, first.id]


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

class TestTransitions:
    def test_claim_moves_to_running(self, store: JobStore) -> None:
        job = store.create("https://example.com/")
        assert store.claim(job.id) is True
        claimed = store.get(job.id)
        assert claimed.state is JobState.RUNNING
        assert claimed.started_at is not None

    def test_second_claim_loses(self, store: JobStore) -> None:
        job = store.create("https://example.com/")
        assert store.claim(job.id) is True
        assert store.claim(job.id) is False

    def test_stopped_job_cannot_be_claimed(self, store: JobStore) -> None:
        job = store.create("https://example.com/")
        store.set_state(job.id, JobState.STOPPED)
        assert store.claim(job.id) is False
        assert store.get_state(job.id) is JobState.STOPPED

    def test_conditional_transition(self, store: JobStore) -> None:
        job = store.create("https://example.com/")
        assert store.transition(job.id, JobState.ERROR, from_states=[JobState.RUNNING]) is False
        assert store.get_state(job.id) is JobState.QUEUED

    def test_set_state_missing_raises(self, store: JobStore) -> None:
        with pytest.raises(JobNotFound):
            store.set_state("nope", JobState.STOPPED)

    def test_requeue_clears_timestamps(self, store: JobStore) -> None:
        job = _running(store)
        store.set_state(job.id, JobState.ERROR)
        assert store.get(job.id).finished_at is not None

        store.set_state(job.id, JobState.QUEUED)
        requeued = store.get(job.id)
        assert requeued.started_at is None
        assert requeued.finished_at is None


# ---------------------------------------------------------------------------
# Result commit
# ---------------------------------------------------------------------------

class TestCommitResult:
    def test_commit_sets_done_and_fields(self, store: JobStore) -> None:
        job = _running(store)
        broken = ("https://example.com/x", "https://dead.example.org/")
        assert store.commit_result(job.id, _result(broken=broken)) is True

        done = store.get(job.id)
        assert done.state is JobState.DONE
        assert done.result is not None
        assert done.result.title == "Example"
        assert done.result.html_version is HtmlVersion.HTML_401
        assert done.result.heading_counts == (1, 3, 0, 0, 0, 0)
        assert done.result.internal_links == 4
        assert done.result.external_links == 2
        assert done.result.has_login_form is True
        assert done.result.broken_links == broken

    def test_inaccessible_column_matches_rows(self, store: JobStore) -> None:
        job = _running(store)
        store.commit_result(job.id, _result(broken=("a", "b", "a")))
        row = store.connection.execute(
            "SELECT inaccessible_links FROM analyses WHERE id = ?", (job.id,)
        ).fetchone()
        count = store.connection.execute(
            "SELECT COUNT(*) FROM broken_links WHERE analysis_id = ?", (job.id,)
        ).fetchone()
        assert row[0] == count[0] == 3

    def test_commit_requires_running(self, store: JobStore) -> None:
        job = store.create("https://example.com/")
        store.set_state(job.id, JobState.STOPPED)
        assert store.commit_result(job.id, _result(broken=("x",))) is False

        stopped = store.get(job.id)
        assert stopped.state is JobState.STOPPED
        assert stopped.result is None

    def test_rerun_replaces_broken_links(self, store: JobStore) -> None:
        job = _running(store)
        store.commit_result(job.id, _result(broken=("https://old.example/1", "https://old.example/2")))

        store.set_state(job.id, JobState.QUEUED)
        # Previous result stays visible while the re-run is pending.
        assert store.get(job.id).result.broken_links == (
            "https://old.example/1",
            "https://old.example/2",
        )

        assert store.claim(job.id)
        store.commit_result(job.id, _result(broken=("https://new.example/1",)))
        assert store.get(job.id).result.broken_links == ("https://new.example/1",)

    def test_failed_commit_rolls_back(self, store: JobStore) -> None:
        job = _running(store)
        store.connection.executescript(
            """
            CREATE TRIGGER reject_boom BEFORE INSERT ON broken_links
            WHEN NEW.link = 'boom'
            BEGIN
                SELECT RAISE(ABORT, 'rejected');
            END;
            """
        )

        with pytest.raises(sqlite3.Error):
            store.commit_result(job.id, _result(broken=("fine", "boom")))

        after = store.get(job.id)
        assert after.state is JobState.RUNNING
        assert after.result is None
        assert store.connection.execute("SELECT COUNT(*) FROM broken_links").fetchone()[0] == 0


# ---------------------------------------------------------------------------
# Deletion / listing
# ---------------------------------------------------------------------------

class TestDeleteAndList:
    def test_delete_cascades_broken_links(self, store: JobStore) -> None:
        job = _running(store)
        store.commit_result(job.id, _result(broken=("x", "y")))
        store.delete(job.id)

        assert store.get(job.id) is None
        remaining = store.connection.execute("SELECT COUNT(*) FROM broken_links").fetchone()[0]
        assert remaining == 0

    def test_delete_missing_is_noop(self, store: JobStore) -> None:
        store.delete("not-there")

    def test_list_all_attaches_results(self, store: JobStore) -> None:
        pending = store.create("https://pending.example/")
        done = _running(store, "https://done.example/")
        store.commit_result(done.id, _result(broken=("https://done.example/dead",)))

        by_id = {j.id: j for j in store.list_all()}
        assert by_id[pending.id].result is None
        assert by_id[done.id].result.broken_links == ("https://done.example/dead",)

    def test_to_dict_flattens_result(self, store: JobStore) -> None:
        job = _running(store)
        store.commit_result(job.id, _result(broken=("https://example.com/x",)))
        data = store.get(job.id).to_dict()

        assert data["status"] == "done"
        assert data["title"] == "Example"
        assert data["inaccessible_links"] == 1
        assert data["broken_links"] == ["https://example.com/x"]
