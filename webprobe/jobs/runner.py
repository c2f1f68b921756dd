"""Execution of a single analysis job."""

from __future__ import annotations

import logging
import sqlite3
import threading
from typing import Callable, Optional

from webprobe.db.jobs import JobNotFound, JobStore
from webprobe.db.models import JobState
from webprobe.jobs import lifecycle
from webprobe.scraper.analyzer import analyze_url
from webprobe.scraper.errors import AnalysisCancelled, AnalysisError
from webprobe.scraper.models import AnalysisResult

logger = logging.getLogger(__name__)

Analyzer = Callable[..., AnalysisResult]


class StopSignal(threading.Event):
    """Stop flag for one execution.

    Besides being set locally by :meth:`JobRunner.cancel`, it reports set
    once the stored job is no longer ``running``, so a stop issued by another
    process (CLI, a separate API server) is seen at the next probe boundary.
    """

    def __init__(self, store: JobStore, job_id: str) -> None:
        super().__init__()
        self._store = store
        self._job_id = job_id

    def is_set(self) -> bool:
        if super().is_set():
            return True
        try:
            state = self._store.get_state(self._job_id)
        except JobNotFound:
            state = None
        if state is not JobState.RUNNING:
            self.set()
            return True
        return False


class JobRunner:
    """Runs jobs against a :class:`JobStore` and tracks their stop signals.

    Each in-flight execution owns a :class:`StopSignal`; :meth:`cancel`
    sets it, and the link checker polls it between probes.
    """

    def __init__(self, store: JobStore, analyze: Analyzer = analyze_url) -> None:
        self.store = store
        self._analyze = analyze
        self._tokens: dict[str, StopSignal] = {}
        self._lock = threading.Lock()

    def _register(self, job_id: str) -> StopSignal:
        token = StopSignal(self.store, job_id)
        with self._lock:
            self._tokens[job_id] = token
        return token

    def _unregister(self, job_id: str, token: StopSignal) -> None:
        with self._lock:
            if self._tokens.get(job_id) is token:
                del self._tokens[job_id]

    def cancel(self, job_id: str) -> bool:
        """Signal the in-flight execution of *job_id*, if there is one."""
        with self._lock:
            token = self._tokens.get(job_id)
        if token is None:
            return False
        token.set()
        return True

    def is_running(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._tokens

    def execute(self, job_id: str, url: str) -> Optional[JobState]:
        """Claim, analyse and finalise one job.

        Returns the state the job was left in, or ``None`` if the claim was
        lost or the job disappeared.
        """
        if not self.store.claim(job_id):
            logger.info("Job %s is no longer queued; skipping", job_id)
            return None

        token = self._register(job_id)
        try:
            return self._run_claimed(job_id, url, token)
        finally:
            self._unregister(job_id, token)

    def _stored_state(self, job_id: str) -> Optional[JobState]:
        try:
            return self.store.get_state(job_id)
        except JobNotFound:
            return None

    def _fail(self, job_id: str) -> Optional[JobState]:
        if lifecycle.fail(self.store, job_id):
            return JobState.ERROR
        # Stopped, re-queued or deleted while the analysis ran.
        state = self._stored_state(job_id)
        logger.info(
            "Job %s left running before its failure was recorded; now %s",
            job_id,
            state.value if state else "deleted",
        )
        return state

    def _run_claimed(self, job_id: str, url: str, token: StopSignal) -> Optional[JobState]:
        state = self._stored_state(job_id)
        if state is None:
            logger.info("Job %s was deleted before analysis started", job_id)
            return None
        if state is JobState.STOPPED or token.is_set():
            logger.info("Job %s was stopped before analysis started", job_id)
            return self._stored_state(job_id)

        try:
            result = self._analyze(url, cancel=token)
        except AnalysisCancelled as exc:
            logger.info("Job %s stopped mid-analysis: %s", job_id, exc)
            return self._stored_state(job_id)
        except AnalysisError as exc:
            logger.warning("Job %s failed: %s", job_id, exc)
            return self._fail(job_id)
        except Exception:  # noqa: BLE001
            logger.exception("Job %s failed with an unexpected error", job_id)
            return self._fail(job_id)

        try:
            committed = self.store.commit_result(job_id, result)
        except sqlite3.Error:
            logger.exception("Could not commit result for job %s; it stays running", job_id)
            return JobState.RUNNING

        if not committed:
            logger.info("Job %s left the running state; result discarded", job_id)
            return None

        logger.info(
            "Job %s done: %d link(s), %d broken",
            job_id,
            result.internal_links + result.external_links,
            result.inaccessible_links,
        )
        return JobState.DONE
