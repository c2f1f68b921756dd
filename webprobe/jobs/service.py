"""Submission and administration operations on analysis jobs.

These are thin pass-throughs to the Job Store and the lifecycle; nothing is
analysed synchronously.  Failures of a job are only visible through its
state.
"""

from __future__ import annotations

import logging
from typing import Optional

from webprobe.db.jobs import JobNotFound, JobStore
from webprobe.db.models import Job, JobState
from webprobe.jobs import lifecycle
from webprobe.jobs.runner import JobRunner

logger = logging.getLogger(__name__)


class JobService:
    def __init__(self, store: JobStore, runner: Optional[JobRunner] = None) -> None:
        self.store = store
        self.runner = runner

    def submit(self, url: str) -> Job:
        """Queue a new analysis of *url*.

        Raises:
            ValueError: If *url* is blank.
        """
        url = url.strip()
        if not url:
            raise ValueError("url must not be empty")
        job = self.store.create(url)
        logger.info("Queued job %s for %s", job.id, url)
        return job

    def rerun(self, job_id: str) -> Job:
        """Put *job_id* back in the queue.

        The previous result stays attached until the new run commits.
        """
        lifecycle.transition(self.store, job_id, JobState.QUEUED)
        logger.info("Re-queued job %s", job_id)
        return self.get(job_id)

    def stop(self, job_id: str) -> Job:
        """Stop a queued or running job.

        A running execution is signalled and abandons its link checks at the
        next probe boundary.
        """
        lifecycle.transition(self.store, job_id, JobState.STOPPED)
        if self.runner is not None and self.runner.cancel(job_id):
            logger.info("Signalled running job %s to stop", job_id)
        logger.info("Stopped job %s", job_id)
        return self.get(job_id)

    def get(self, job_id: str) -> Job:
        job = self.store.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    def list_jobs(self) -> list[Job]:
        return self.store.list_all()

    def delete(self, job_id: str) -> None:
        if self.runner is not None:
            self.runner.cancel(job_id)
        self.store.delete(job_id)
        logger.info("Deleted job %s", job_id)
