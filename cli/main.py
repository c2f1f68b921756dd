"""webprobe CLI: entry-point for all service operations.

Usage:
    python cli/main.py --help

Command groups:
    db        database initialisation
    analyze   one-off synchronous analysis, nothing persisted
    submit / list / rerun / stop / delete
              job administration against the local database
    worker    run the scheduler in the foreground
    serve     run the HTTP API (scheduler included)
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from webprobe.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import json
from typing import Callable, Optional

import typer

from webprobe.config import settings
from webprobe.db.jobs import JobNotFound, JobStore
from webprobe.db.models import Job
from webprobe.jobs import InvalidTransition, JobService
from webprobe.logging_setup import configure_logging

app = typer.Typer(
    name="webprobe",
    help="webprobe page analysis CLI.",
    no_args_is_help=True,
)


def _print_job(job: Job) -> None:
    line = f"  {job.id}  [{job.state.value}]  {job.url}"
    if job.result is not None:
        line += (
            f"  title={job.result.title!r}"
            f"  links={job.result.internal_links}/{job.result.external_links}"
            f"  broken={job.result.inaccessible_links}"
        )
    typer.echo(line)


def _with_service(action: Callable[[JobService], None]) -> None:
    """Open the store, run *action*, map lookup/transition errors to exit 1."""
    store = JobStore.open()
    try:
        action(JobService(store))
    except (JobNotFound, InvalidTransition, ValueError) as exc:
        typer.echo(f"[error] {exc}")
        raise typer.Exit(1)
    finally:
        store.close()


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    JobStore.open().close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


# ---------------------------------------------------------------------------
# One-off analysis
# ---------------------------------------------------------------------------
@app.command("analyze")
def analyze(
    url: str = typer.Argument(..., help="URL of the page to analyse."),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
) -> None:
    """Fetch and analyse a page now, without queuing a job."""
    from webprobe.scraper import AnalysisError, analyze_url

    configure_logging()
    typer.echo(f"[analyze] Fetching {url!r} …")
    try:
        result = analyze_url(url)
    except AnalysisError as exc:
        typer.echo(f"[analyze] Failed: {exc}")
        raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        return

    typer.echo(f"[analyze] HTML version : {result.html_version.value}")
    typer.echo(f"[analyze] Title        : {result.title or '(none)'}")
    headings = "  ".join(f"h{i}={n}" for i, n in enumerate(result.heading_counts, start=1))
    typer.echo(f"[analyze] Headings     : {headings}")
    typer.echo(f"[analyze] Links        : {result.internal_links} internal, {result.external_links} external")
    typer.echo(f"[analyze] Login form   : {'yes' if result.has_login_form else 'no'}")
    typer.echo(f"[analyze] Broken links : {result.inaccessible_links}")
    for link in result.broken_links:
        typer.echo(f"  {link}")


# ---------------------------------------------------------------------------
# Job administration
# ---------------------------------------------------------------------------
@app.command("submit")
def submit(url: str = typer.Argument(..., help="URL to queue for analysis.")) -> None:
    """Queue a page for the worker to analyse."""

    def _run(service: JobService) -> None:
        job = service.submit(url)
        typer.echo(f"[submit] Queued {job.id}  {job.url}")

    _with_service(_run)


@app.command("list")
def list_jobs() -> None:
    """List all jobs, newest first."""

    def _run(service: JobService) -> None:
        jobs = service.list_jobs()
        if not jobs:
            typer.echo("[list] No analyses found.")
            return
        for job in jobs:
            _print_job(job)

    _with_service(_run)


@app.command("rerun")
def rerun(job_id: str = typer.Argument(..., help="Job id.")) -> None:
    """Put a job back in the queue."""
    _with_service(lambda service: _print_job(service.rerun(job_id)))


@app.command("stop")
def stop(job_id: str = typer.Argument(..., help="Job id.")) -> None:
    """Stop a queued or running job."""
    _with_service(lambda service: _print_job(service.stop(job_id)))


@app.command("delete")
def delete(job_id: str = typer.Argument(..., help="Job id.")) -> None:
    """Delete a job and its broken links."""

    def _run(service: JobService) -> None:
        service.delete(job_id)
        typer.echo(f"[delete] Deleted {job_id}")

    _with_service(_run)


# ---------------------------------------------------------------------------
# Long-running processes
# ---------------------------------------------------------------------------
@app.command("worker")
def worker(
    interval: Optional[float] = typer.Option(None, help="Poll interval in seconds."),
) -> None:
    """Run the scheduler in the foreground until interrupted."""
    from webprobe.jobs import Scheduler

    configure_logging()
    store = JobStore.open()
    scheduler = Scheduler(store, interval=interval)
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        typer.echo("[worker] Interrupted, shutting down …")
    finally:
        scheduler.stop(wait=True)
        store.close()


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address."),
    port: Optional[int] = typer.Option(None, help="Port (defaults to $PORT or 8080)."),
) -> None:
    """Run the HTTP API with the background scheduler."""
    import uvicorn

    configure_logging()
    uvicorn.run("webprobe.api.app:app", host=host, port=port or settings.port)


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
