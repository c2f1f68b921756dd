"""Job lifecycle, execution and scheduling.

Public API::

    from webprobe.jobs import JobRunner, JobService, Scheduler

    store = JobStore.open()
    runner = JobRunner(store)
    Scheduler(store, runner).start()
    JobService(store, runner).submit("https://example.com")
"""

from webprobe.jobs.lifecycle import InvalidTransition
from webprobe.jobs.runner import JobRunner
from webprobe.jobs.scheduler import Scheduler
from webprobe.jobs.service import JobService

__all__ = ["InvalidTransition", "JobRunner", "JobService", "Scheduler"]
