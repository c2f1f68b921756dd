"""Analysis job endpoints.

Routes
------
POST   /api/analyze          Body: {"url": "..."}   Queue a new analysis
POST   /api/analyze/rerun    Body: {"id": "..."}    Re-queue an analysis
POST   /api/analyze/start    Body: {"id": "..."}    Alias of rerun
POST   /api/analyze/stop     Body: {"id": "..."}    Stop a queued/running analysis
GET    /api/analyses                                 List analyses, newest first
GET    /api/analyses/{id}                            Fetch one analysis
DELETE /api/analyses/{id}                            Delete an analysis (links cascade)

None of these run an analysis inline; the background scheduler picks up
queued jobs.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel

from webprobe.db.jobs import JobNotFound
from webprobe.db.models import Job
from webprobe.jobs.lifecycle import InvalidTransition
from webprobe.jobs.service import JobService

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class AnalyzeRequest(BaseModel):
    url: str


class AnalyzeResponse(BaseModel):
    id: str


class JobRequest(BaseModel):
    id: str


class AnalysisResponse(BaseModel):
    id: str
    url: str
    status: str
    created_at: int
    started_at: Optional[int] = None
    finished_at: Optional[int] = None
    html_version: Optional[str] = None
    title: Optional[str] = None
    h1_count: int = 0
    h2_count: int = 0
    h3_count: int = 0
    h4_count: int = 0
    h5_count: int = 0
    h6_count: int = 0
    internal_links: int = 0
    external_links: int = 0
    inaccessible_links: int = 0
    broken_links: list[str] = []
    has_login_form: bool = False


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _service(request: Request) -> JobService:
    return request.app.state.service


def _apply(action: Callable[[str], Job], job_id: str) -> dict[str, Any]:
    try:
        job = action(job_id)
    except JobNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return job.to_dict()


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/analyze", response_model=AnalyzeResponse)
def analyze(body: AnalyzeRequest, request: Request) -> dict[str, Any]:
    """Queue *url* for analysis and return the new job id."""
    try:
        job = _service(request).submit(body.url)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return {"id": job.id}


@router.post("/analyze/rerun", response_model=AnalysisResponse)
def rerun(body: JobRequest, request: Request) -> dict[str, Any]:
    """Re-queue an analysis; its previous result stays until replaced."""
    return _apply(_service(request).rerun, body.id)


@router.post("/analyze/start", response_model=AnalysisResponse)
def start(body: JobRequest, request: Request) -> dict[str, Any]:
    """Queue an analysis again (same as rerun)."""
    return _apply(_service(request).rerun, body.id)


@router.post("/analyze/stop", response_model=AnalysisResponse)
def stop(body: JobRequest, request: Request) -> dict[str, Any]:
    """Stop a queued or running analysis."""
    return _apply(_service(request).stop, body.id)


@router.get("/analyses", response_model=list[AnalysisResponse])
def list_all(request: Request) -> list[dict[str, Any]]:
    """Return every analysis, newest first, with results attached."""
    return [job.to_dict() for job in _service(request).list_jobs()]


@router.get("/analyses/{job_id}", response_model=AnalysisResponse)
def get_one(job_id: str, request: Request) -> dict[str, Any]:
    """Fetch a single analysis by id."""
    return _apply(_service(request).get, job_id)


@router.delete("/analyses/{job_id}")
def remove(job_id: str, request: Request) -> Response:
    """Delete an analysis and its broken links.  No-op for unknown ids."""
    _service(request).delete(job_id)
    return Response(status_code=200)
