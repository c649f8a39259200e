"""Job Commands - Create, watch, list and cancel generation jobs"""

import typer
from rich.console import Console
from rich.panel import Panel

from ..client.endpoints import BackOfficeClient, BackOfficeError
from ..client.poller import CONNECTION_STATUS_INTERVAL_S, StatusPoller
from ..utils.config_manager import config
from ..utils.formatting import (
    create_dispatch_panel,
    create_job_status_panel,
    create_jobs_table,
    print_error,
    print_info,
    print_success,
    print_warning,
    styled_status,
)
from .queue import parse_payload

console = Console()
app = typer.Typer(name="jobs", help="Generation job commands")


@app.command("create")
def create_job(
    work_type: str = typer.Argument(..., help="Work type, e.g. marketing-image"),
    payload: str = typer.Option("{}", "--payload", "-p", help="JSON payload"),
    max_attempts: int = typer.Option(
        ..., "--max-attempts", "-m", min=1, help="Attempts before the job fails"
    ),
    idempotency_key: str | None = typer.Option(
        None, "--key", "-k", help="Idempotency key for deduplication"
    ),
):
    """🎨 Create a job"""
    base_url = config.get("api.base_url")
    data = parse_payload(payload)

    try:
        with BackOfficeClient(base_url) as client:
            result = client.create_job(work_type, data, max_attempts, idempotency_key)

            if result.get("deduplicated"):
                print_warning(f"Job already exists: {result.get('id')}")
            else:
                print_success(f"Created {work_type} job: {result.get('id')}")
            console.print(f"💡 Follow it with [cyan]backoffice-queue jobs watch {result.get('id')}[/cyan]")

    except BackOfficeError as e:
        print_error(f"Failed to create job: {e}")
        raise typer.Exit(1) from None


@app.command("status")
def job_status(
    job_id: str = typer.Argument(..., help="Job ID"),
):
    """🔍 Show a job's status"""
    base_url = config.get("api.base_url")

    try:
        with BackOfficeClient(base_url) as client:
            console.print(create_job_status_panel(client.get_job_status(job_id)))

    except BackOfficeError as e:
        print_error(f"Failed to get job status: {e}")
        raise typer.Exit(1) from None


@app.command("watch")
def watch_job(
    job_id: str = typer.Argument(..., help="Job ID"),
    interval: float | None = typer.Option(
        None, "--interval", "-i", help="Seconds between polls"
    ),
    window: float | None = typer.Option(
        None, "--window", "-w", help="Stop polling after this many seconds"
    ),
    connection: bool = typer.Option(
        False, "--connection", help="Use the slower connection status interval"
    ),
    refresh: bool = typer.Option(
        False, "--refresh", help="Manual refresh: poll now for the refresh window"
    ),
):
    """👀 Poll a job until it finishes or the polling window closes"""
    base_url = config.get("api.base_url")

    if interval is None:
        interval = (
            CONNECTION_STATUS_INTERVAL_S if connection else config.get("poller.interval_s")
        )

    try:
        with BackOfficeClient(base_url) as client:
            poller = StatusPoller(
                client.get_job_status,
                interval_s=float(interval),
                window_s=float(window if window is not None else config.get("poller.window_s")),
                refresh_window_s=float(config.get("poller.refresh_window_s")),
            )

            def show(status: dict) -> None:
                console.print(
                    f"{styled_status(status.get('status', ''))} "
                    f"[cyan]{status.get('progress', 0)}%[/cyan]"
                )

            print_info(f"Watching job {job_id}")
            result = poller.refresh(job_id, show) if refresh else poller.poll(job_id, show)

            if result.status:
                console.print(create_job_status_panel(result.status))

            if result.timed_out:
                print_warning(
                    f"Stopped polling after {result.requests} requests; "
                    "run again with --refresh to keep watching"
                )
                raise typer.Exit(2)

            if result.status and result.status.get("status") != "done":
                raise typer.Exit(1)

    except BackOfficeError as e:
        print_error(f"Failed to watch job: {e}")
        raise typer.Exit(1) from None


@app.command("cancel")
def cancel_job(
    job_id: str = typer.Argument(..., help="Job ID"),
):
    """🛑 Cancel a queued or processing job"""
    base_url = config.get("api.base_url")

    try:
        with BackOfficeClient(base_url) as client:
            result = client.cancel_job(job_id)
            print_success(
                f"Job {result.get('job_id')} canceled (was {result.get('previous_status')})"
            )

    except BackOfficeError as e:
        if e.error_code == "JOB_ALREADY_TERMINAL":
            print_warning(f"Job cannot be canceled: {e.message}")
        else:
            print_error(f"Failed to cancel job: {e}")
        raise typer.Exit(1) from None


@app.command("dispatch")
def dispatch_jobs(
    work_type: str = typer.Argument(..., help="Work type to dispatch"),
    limit: int | None = typer.Option(None, "--limit", "-l", min=1, help="Jobs to claim"),
):
    """🚚 Run one job dispatch for a work type"""
    base_url = config.get("api.base_url")

    try:
        with BackOfficeClient(base_url) as client:
            summary = client.dispatch_jobs(work_type, limit)
            console.print(create_dispatch_panel(summary, title="Job Dispatch Summary"))

    except BackOfficeError as e:
        print_error(f"Job dispatch failed: {e}")
        raise typer.Exit(1) from None


@app.command("list")
def list_jobs(
    work_type: str | None = typer.Option(None, "--type", "-t", help="Filter by work type"),
    status: list[str] | None = typer.Option(None, "--status", "-s", help="Filter by status"),
    limit: int = typer.Option(20, "--limit", "-l", help="Number of jobs to show"),
    offset: int = typer.Option(0, "--offset", "-o", help="Skip first N jobs"),
):
    """📋 List jobs"""
    base_url = config.get("api.base_url")

    try:
        with BackOfficeClient(base_url) as client:
            data = client.list_jobs(
                work_type=work_type,
                status=[s.lower() for s in status] if status else None,
                limit=limit,
                offset=offset,
            )

            jobs = data.get("items", [])
            total = data.get("total", len(jobs))

            if not jobs:
                console.print(Panel(
                    "📭 [yellow]No jobs found![/yellow]",
                    title="Empty Results",
                    border_style="yellow",
                ))
                return

            console.print(create_jobs_table(jobs))
            console.print(f"\n📊 Showing [cyan]{len(jobs)}[/cyan] of [yellow]{total}[/yellow] jobs")

            if offset + limit < total:
                console.print(f"💡 Use [cyan]--offset {offset + limit}[/cyan] to see more")

    except BackOfficeError as e:
        print_error(f"Failed to list jobs: {e}")
        raise typer.Exit(1) from None


@app.command("requeue")
def requeue_job(
    job_id: str = typer.Argument(..., help="ID of a failed job"),
):
    """🔁 Send a failed job back to the queue"""
    base_url = config.get("api.base_url")

    try:
        with BackOfficeClient(base_url) as client:
            job = client.requeue_job(job_id)
            print_success(f"Requeued {job.get('id')} ({job.get('status')})")

    except BackOfficeError as e:
        print_error(f"Failed to requeue job: {e}")
        raise typer.Exit(1) from None
