"""Rich Formatting Utilities for CLI Output"""

from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

STATUS_STYLES = {
    "PENDING": "yellow",
    "PROCESSING": "cyan",
    "SENT": "green",
    "SKIPPED": "dim",
    "FAILED": "red",
    "queued": "yellow",
    "processing": "cyan",
    "done": "green",
    "failed": "red",
    "canceled": "dim",
}


def print_success(message: str):
    """Print success message with green styling"""
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str):
    """Print error message with red styling"""
    console.print(f"[red]✗ {message}[/red]")


def print_warning(message: str):
    """Print warning message with yellow styling"""
    console.print(f"[yellow]⚠ {message}[/yellow]")


def print_info(message: str):
    """Print info message with blue styling"""
    console.print(f"[blue]ℹ {message}[/blue]")


def styled_status(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def create_queue_items_table(items: list[dict[str, Any]]) -> Table:
    """Create a formatted table for queue items"""
    table = Table(title="Queue Items", box=box.ROUNDED)

    table.add_column("ID", justify="left", style="cyan", no_wrap=True)
    table.add_column("Work Type", justify="left", style="magenta")
    table.add_column("Status", justify="center")
    table.add_column("Attempts", justify="center", style="yellow")
    table.add_column("Created", justify="left", style="blue")
    table.add_column("Error", justify="left", style="white")

    for item in items:
        error = item.get("error_message") or "—"
        table.add_row(
            str(item.get("id", ""))[:8],  # Short ID
            item.get("work_type", ""),
            styled_status(item.get("status", "")),
            f"{item.get('attempts', 0)}/{item.get('max_attempts', 0)}",
            str(item.get("created_at", ""))[:19],
            error[:50] + "..." if len(error) > 50 else error,
        )

    return table


def create_jobs_table(jobs: list[dict[str, Any]]) -> Table:
    """Create a formatted table for jobs"""
    table = Table(title="Jobs", box=box.ROUNDED)

    table.add_column("ID", justify="left", style="cyan", no_wrap=True)
    table.add_column("Work Type", justify="left", style="magenta")
    table.add_column("Status", justify="center")
    table.add_column("Progress", justify="right", style="green")
    table.add_column("Attempts", justify="center", style="yellow")
    table.add_column("Created", justify="left", style="blue")
    table.add_column("Error", justify="left", style="white")

    for job in jobs:
        error = job.get("error_message") or "—"
        table.add_row(
            str(job.get("id", ""))[:8],
            job.get("work_type", ""),
            styled_status(job.get("status", "")),
            f"{job.get('progress', 0)}%",
            f"{job.get('attempts', 0)}/{job.get('max_attempts', 0)}",
            str(job.get("created_at", ""))[:19],
            error[:50] + "..." if len(error) > 50 else error,
        )

    return table


def create_dispatch_panel(summary: dict[str, Any], title: str = "Dispatch Summary") -> Panel:
    """Create formatted panel for a dispatch summary"""
    content = f"""
🚚 [bold blue]{summary.get("work_type", "")}[/bold blue]

• Processed: [cyan]{summary.get("processed", 0)}[/cyan]
• Succeeded: [green]{summary.get("succeeded", 0)}[/green]
• Skipped: [dim]{summary.get("skipped", 0)}[/dim]
• Retried: [yellow]{summary.get("retried", 0)}[/yellow]
• Failed: [red]{summary.get("failed", 0)}[/red]
• Discarded: [magenta]{summary.get("discarded", 0)}[/magenta]
• Abandoned: [red]{summary.get("abandoned", 0)}[/red]
"""
    border = "green" if not summary.get("failed") else "yellow"
    return Panel(content.strip(), title=title, border_style=border)


def create_stats_table(stats: dict[str, Any]) -> Table:
    """Create formatted table for queue statistics"""
    table = Table(title="Queue Statistics", box=box.ROUNDED)

    table.add_column("Status", justify="left")
    table.add_column("Count", justify="right", style="cyan")

    for status, count in sorted(stats.get("by_status", {}).items()):
        table.add_row(styled_status(status), str(count))

    table.add_section()
    table.add_row("[bold]Total[/bold]", str(stats.get("total", 0)))
    table.add_row("[bold]Queue depth[/bold]", str(stats.get("queue_depth", 0)))
    table.add_row("[bold]Stale claims[/bold]", str(stats.get("stale_claims", 0)))

    return table


def create_job_status_panel(status: dict[str, Any]) -> Panel:
    """Create formatted panel for a job status projection"""
    progress = status.get("progress", 0) or 0
    lines = [
        f"🆔 [bold]Job:[/bold] [cyan]{status.get('job_id', 'unknown')}[/cyan]",
        f"📝 [bold]Work type:[/bold] [magenta]{status.get('work_type', 'unknown')}[/magenta]",
        f"✅ [bold]Status:[/bold] {styled_status(status.get('status', 'unknown'))}",
        f"📊 [bold]Progress:[/bold] {progress}%",
    ]

    result = status.get("result")
    if result:
        lines.append(f"🖼️ [bold]Result:[/bold] [green]{result.get('mediaUrl', result)}[/green]")

    error = status.get("error")
    if error:
        lines.append(
            f"⚠️ [bold]Error:[/bold] [red]{error.get('message')}[/red] [dim]({error.get('code')})[/dim]"
        )

    return Panel("\n".join(lines), title="Job Status", border_style="blue")

