"""Back Office Queue CLI - Main Entry Point"""

import typer
from typing import Optional
from rich.console import Console
from rich.panel import Panel

from .commands import config, jobs, queue
from .utils.formatting import print_error, print_info
from .utils.config_manager import config as config_manager
from .client.endpoints import BackOfficeClient, BackOfficeError

console = Console()

app = typer.Typer(
    name="backoffice-queue",
    help="📬 Back Office Queue - work queue and job status CLI",
    rich_markup_mode="rich",
)

app.add_typer(queue.app, name="queue")
app.add_typer(jobs.app, name="jobs")
app.add_typer(config.app, name="config")


@app.command()
def status():
    """📊 Check API connectivity and queue health"""
    base_url = config_manager.get("api.base_url")
    print_info(f"Checking connection to: {base_url}")

    try:
        with BackOfficeClient(base_url) as client:
            health = client.health_check()
    except BackOfficeError as e:
        print_error(f"Failed to connect: {e}")
        console.print(Panel(
            f"🚫 [red]Connection Failed[/red]\n\n"
            f"Make sure the Back Office Queue API is running at:\n"
            f"[blue]{base_url}[/blue]\n\n"
            f"You can update the API URL with:\n"
            f"[cyan]backoffice-queue config set api.base_url <url>[/cyan]",
            title="Connection Error",
            border_style="red"
        ))
        raise typer.Exit(1) from None

    queue_health = health.get("queue") or {}
    console.print(Panel(
        f"🚀 [green]Connected Successfully![/green]\n\n"
        f"• Version: [cyan]{health.get('version', 'unknown')}[/cyan]\n"
        f"• Environment: [yellow]{health.get('environment', 'unknown')}[/yellow]\n"
        f"• Queue depth: [cyan]{queue_health.get('queue_depth', 0)}[/cyan] "
        f"(stale claims: {queue_health.get('stale_claims', 0)})\n"
        f"• Job queue depth: [cyan]{queue_health.get('job_queue_depth', 0)}[/cyan] "
        f"(stale claims: {queue_health.get('stale_job_claims', 0)})\n"
        f"• API URL: [blue]{base_url}[/blue]",
        title="System Status",
        border_style="green" if health.get("ok") else "yellow"
    ))


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None, "--version", "-v", help="Show version and exit"
    ),
):
    """
    📬 Back Office Queue CLI

    Enqueue work, trigger dispatch runs, inspect queue health and follow
    long-running generation jobs.
    """
    if version:
        from . import __version__
        console.print(f"Back Office Queue CLI v{__version__}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


if __name__ == "__main__":
    app()
