"""Job lifecycle: the allowed state transitions.

::

    queued ──claim──▶ running ──▶ done | error
      │                  │
      └──── stop ────────┴──▶ stopped

    done | error | stopped | running ──rerun──▶ queued

Re-queuing a ``running`` job is allowed so a job left stuck by a failed
result commit can be recovered.
"""

from __future__ import annotations

from webprobe.db.jobs import JobStore
from webprobe.db.models import JobState

# target state -> states it may be entered from
ALLOWED_SOURCES: dict[JobState, frozenset[JobState]] = {
    JobState.QUEUED: frozenset(JobState),
    JobState.RUNNING: frozenset({JobState.QUEUED}),
    JobState.DONE: frozenset({JobState.RUNNING}),
    JobState.ERROR: frozenset({JobState.RUNNING}),
    JobState.STOPPED: frozenset({JobState.QUEUED, JobState.RUNNING}),
}


class InvalidTransition(ValueError):
    """Raised when a job cannot move from its current state to the target."""

    def __init__(self, job_id: str, current: JobState, target: JobState) -> None:
        super().__init__(
            f"Cannot move analysis {job_id!r} from {current.value!r} to {target.value!r}"
        )
        self.job_id = job_id
        self.current = current
        self.target = target


def can_transition(current: JobState, target: JobState) -> bool:
    return current in ALLOWED_SOURCES[target]


def transition(store: JobStore, job_id: str, target: JobState) -> None:
    """Move *job_id* to *target* if the state machine allows it.

    Raises:
        JobNotFound: If the job does not exist.
        InvalidTransition: If the job's current state does not lead to
            *target*.
    """
    if store.transition(job_id, target, from_states=ALLOWED_SOURCES[target]):
        return
    current = store.get_state(job_id)
    raise InvalidTransition(job_id, current, target)


def fail(store: JobStore, job_id: str) -> bool:
    """Mark a running job as ``error``; a no-op if it already left ``running``."""
    return store.transition(job_id, JobState.ERROR, from_states=ALLOWED_SOURCES[JobState.ERROR])
