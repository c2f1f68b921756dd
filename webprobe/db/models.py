"""Dataclass models representing DB rows.

These are plain Python objects, not ORM models.  The Job Store serialises /
deserialises to and from these types.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from webprobe.scraper.models import AnalysisResult


class JobState(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"
    STOPPED = "stopped"


@dataclass
class Job:
    id: str
    url: str
    state: JobState
    created_at: int
    started_at: Optional[int] = None
    finished_at: Optional[int] = None
    # Last committed analysis; survives a re-run until the new run commits.
    result: Optional[AnalysisResult] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "url": self.url,
            "status": self.state.value,
            "created_at": self.created_at,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }
        if self.result is not None:
            result = self.result.to_dict()
            result.pop("url")
            payload.update(result)
        return payload
