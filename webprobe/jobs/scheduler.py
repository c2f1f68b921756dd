"""Job Scheduler: the background worker loop.

Every ``settings.poll_interval`` seconds the loop lists ``queued`` jobs and
hands each one to a thread pool without waiting for it.  Whether an execution
actually runs is decided by :meth:`JobStore.claim`, so a job seen by two
consecutive polls is still analysed only once.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from webprobe.config import settings
from webprobe.db.jobs import JobStore
from webprobe.db.models import JobState
from webprobe.jobs.runner import JobRunner

logger = logging.getLogger(__name__)


class Scheduler:
    def __init__(
        self,
        store: JobStore,
        runner: Optional[JobRunner] = None,
        interval: Optional[float] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        self.store = store
        self.runner = runner or JobRunner(store)
        self.interval = interval if interval is not None else settings.poll_interval
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.max_concurrent_jobs,
            thread_name_prefix="analysis",
        )
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        # Job ids submitted to the pool and not finished yet.
        self._pending: set[str] = set()
        self._pending_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------
    def poll_once(self) -> list[Future]:
        """Dispatch every currently queued job and return the new futures."""
        jobs = self.store.list_by_state(JobState.QUEUED)
        futures: list[Future] = []
        for job in jobs:
            with self._pending_lock:
                if job.id in self._pending:
                    continue
                self._pending.add(job.id)
            future = self._executor.submit(self.runner.execute, job.id, job.url)
            future.add_done_callback(lambda f, job_id=job.id: self._finished(job_id, f))
            futures.append(future)

        if futures:
            logger.debug("Dispatched %d queued job(s)", len(futures))
        return futures

    def _finished(self, job_id: str, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(job_id)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Execution of job %s crashed: %r", job_id, exc)

    # ------------------------------------------------------------------
    # Loop control
    # ------------------------------------------------------------------
    def run_forever(self) -> None:
        """Poll until :meth:`stop` is called.  Poll errors never end the loop."""
        logger.info("Worker started, polling every %.1fs", self.interval)
        while not self._stop.is_set():
            try:
                self.poll_once()
            except Exception:  # noqa: BLE001
                logger.exception("Worker poll failed; retrying in %.1fs", self.interval)
            self._stop.wait(self.interval)
        logger.info("Worker stopped")

    def start(self) -> threading.Thread:
        """Run :meth:`run_forever` on a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._stop.clear()
        self._thread = threading.Thread(target=self.run_forever, name="scheduler", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, wait: bool = True) -> None:
        """Stop polling and shut down the execution pool.

        Executions not yet started are dropped; running ones are either
        awaited (``wait=True``) or left to finish in the background.
        """
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.interval + 1 if wait else 0)
        self._executor.shutdown(wait=wait, cancel_futures=True)
