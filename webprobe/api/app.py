"""FastAPI application factory.

Lifespan
--------
On startup the app opens the Job Store (one SQLite connection shared by all
requests and worker threads), and, when ``settings.worker_enabled`` is set,
starts the background :class:`~webprobe.jobs.Scheduler`.  On shutdown it
stops the scheduler and closes the store.

Routers
-------
All endpoints live under ``/api`` and require a bearer header.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from webprobe import __version__
from webprobe.api.auth import require_bearer
from webprobe.api.routers import analyses as analyses_router
from webprobe.config import settings
from webprobe.db.jobs import JobStore
from webprobe.jobs import JobRunner, JobService, Scheduler
from webprobe.logging_setup import configure_logging

logger = logging.getLogger(__name__)


def create_app(store: Optional[JobStore] = None) -> FastAPI:
    """Return a fully-configured FastAPI application instance.

    Args:
        store: Use this store instead of opening ``settings.db_path``.  The
            caller keeps ownership and must close it.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging()
        owned = store is None
        job_store = JobStore.open() if owned else store
        runner = JobRunner(job_store)
        scheduler: Optional[Scheduler] = None

        app.state.service = JobService(job_store, runner)
        if settings.worker_enabled:
            scheduler = Scheduler(job_store, runner)
            scheduler.start()
            logger.info("Background scheduler started")
        else:
            logger.info("WORKER_ENABLED is off; jobs stay queued until a worker runs")
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.stop(wait=False)
                logger.info("Background scheduler stopped")
            if owned:
                job_store.close()

    app = FastAPI(
        title="webprobe API",
        description=(
            "Queue single-page analyses (headings, link classification, "
            "login-form detection, HTML version, broken links) and inspect "
            "their results."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    # Allow browser frontends on any origin.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.include_router(
        analyses_router.router,
        prefix="/api",
        tags=["analyses"],
        dependencies=[Depends(require_bearer)],
    )

    return app


# Module-level instance used by uvicorn:
#   uvicorn webprobe.api.app:app
app = create_app()
