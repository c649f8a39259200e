"""Queue Commands - Enqueue, inspect and dispatch queue items"""

import json

import typer
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm

from ..client.endpoints import BackOfficeClient, BackOfficeError
from ..utils.config_manager import config
from ..utils.formatting import (
    create_dispatch_panel,
    create_queue_items_table,
    create_stats_table,
    print_error,
    print_info,
    print_success,
    print_warning,
    styled_status,
)

console = Console()
app = typer.Typer(name="queue", help="Queue item management and dispatch commands")


def parse_payload(raw: str) -> dict:
    """Parse a JSON object given on the command line"""
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"Payload is not valid JSON: {e}") from None
    if not isinstance(payload, dict):
        raise typer.BadParameter("Payload must be a JSON object")
    return payload


@app.command("enqueue")
def enqueue(
    work_type: str = typer.Argument(..., help="Work type, e.g. cashback-whatsapp"),
    payload: str = typer.Option("{}", "--payload", "-p", help="JSON payload"),
    max_attempts: int = typer.Option(
        ..., "--max-attempts", "-m", min=1, help="Attempts before the item fails"
    ),
    idempotency_key: str | None = typer.Option(
        None, "--key", "-k", help="Idempotency key for deduplication"
    ),
):
    """📥 Enqueue a queue item"""
    base_url = config.get("api.base_url")
    data = parse_payload(payload)

    try:
        with BackOfficeClient(base_url) as client:
            result = client.enqueue(work_type, data, max_attempts, idempotency_key)

            if result.get("deduplicated"):
                print_warning(f"Already enqueued: {result.get('id')}")
            else:
                print_success(f"Enqueued {work_type}: {result.get('id')}")

    except BackOfficeError as e:
        print_error(f"Failed to enqueue item: {e}")
        raise typer.Exit(1) from None


@app.command("list")
def list_items(
    work_type: str | None = typer.Option(None, "--type", "-t", help="Filter by work type"),
    status: list[str] | None = typer.Option(None, "--status", "-s", help="Filter by status"),
    limit: int = typer.Option(20, "--limit", "-l", help="Number of items to show"),
    offset: int = typer.Option(0, "--offset", "-o", help="Skip first N items"),
):
    """📋 List queue items"""
    base_url = config.get("api.base_url")

    try:
        with BackOfficeClient(base_url) as client:
            data = client.list_items(
                work_type=work_type,
                status=[s.upper() for s in status] if status else None,
                limit=limit,
                offset=offset,
            )

            items = data.get("items", [])
            total = data.get("total", len(items))

            if not items:
                console.print(Panel(
                    "📭 [yellow]No queue items found![/yellow]",
                    title="Empty Results",
                    border_style="yellow",
                ))
                return

            console.print(create_queue_items_table(items))
            console.print(f"\n📊 Showing [cyan]{len(items)}[/cyan] of [yellow]{total}[/yellow] items")

            if offset + limit < total:
                console.print(f"💡 Use [cyan]--offset {offset + limit}[/cyan] to see more")

    except BackOfficeError as e:
        print_error(f"Failed to list items: {e}")
        raise typer.Exit(1) from None


@app.command("show")
def show_item(
    item_id: str = typer.Argument(..., help="Queue item ID"),
):
    """🔍 Show a queue item"""
    base_url = config.get("api.base_url")

    try:
        with BackOfficeClient(base_url) as client:
            item = client.get_item(item_id)

            content = (
                f"🆔 [bold]ID:[/bold] [cyan]{item.get('id')}[/cyan]\n"
                f"📝 [bold]Work type:[/bold] [magenta]{item.get('work_type')}[/magenta]\n"
                f"✅ [bold]Status:[/bold] {styled_status(item.get('status', ''))}\n"
                f"🔁 [bold]Attempts:[/bold] {item.get('attempts')}/{item.get('max_attempts')}\n"
                f"📅 [bold]Created:[/bold] [blue]{item.get('created_at')}[/blue]\n"
                f"⏱️ [bold]Last attempt:[/bold] [blue]{item.get('last_attempt_at') or '—'}[/blue]\n"
                f"⚠️ [bold]Error:[/bold] {item.get('error_message') or '—'}\n"
                f"📦 [bold]Payload:[/bold] {json.dumps(item.get('payload', {}), ensure_ascii=False)}"
            )
            console.print(Panel(content, title="Queue Item", border_style="blue"))

    except BackOfficeError as e:
        print_error(f"Failed to get item: {e}")
        raise typer.Exit(1) from None


@app.command("requeue")
def requeue(
    item_id: str = typer.Argument(..., help="ID of a FAILED queue item"),
):
    """🔁 Send a failed item back to the queue"""
    base_url = config.get("api.base_url")

    try:
        with BackOfficeClient(base_url) as client:
            item = client.requeue(item_id)
            print_success(f"Requeued {item.get('id')} ({item.get('status')})")

    except BackOfficeError as e:
        print_error(f"Failed to requeue item: {e}")
        raise typer.Exit(1) from None


@app.command("dispatch")
def dispatch(
    work_type: str = typer.Argument(..., help="Work type to dispatch"),
    limit: int | None = typer.Option(None, "--limit", "-l", min=1, help="Items to claim"),
):
    """🚚 Run one dispatch for a work type"""
    base_url = config.get("api.base_url")
    limit = limit or config.get("dispatch.default_limit")

    try:
        with BackOfficeClient(base_url) as client:
            print_info(f"Dispatching {work_type} (limit: {limit})")
            summary = client.dispatch(work_type, limit)

            if not summary.get("processed"):
                print_info("Nothing to dispatch")
            console.print(create_dispatch_panel(summary))

    except BackOfficeError as e:
        print_error(f"Dispatch failed: {e}")
        raise typer.Exit(1) from None


@app.command("stats")
def stats(
    work_type: str | None = typer.Option(None, "--type", "-t", help="Limit to one work type"),
):
    """📊 Show queue statistics"""
    base_url = config.get("api.base_url")

    try:
        with BackOfficeClient(base_url) as client:
            data = client.stats(work_type)
            console.print(create_stats_table(data))

            if data.get("stale_claims"):
                print_warning(
                    f"{data['stale_claims']} claims outlived the claim timeout; "
                    "the next dispatch will reclaim or fail them"
                )

    except BackOfficeError as e:
        print_error(f"Failed to get statistics: {e}")
        raise typer.Exit(1) from None


@app.command("purge")
def purge(
    older_than_days: int | None = typer.Option(
        None, "--older-than", help="Retention window in days"
    ),
    include_jobs: bool = typer.Option(False, "--include-jobs", help="Also purge jobs"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """🧹 Delete old terminal records"""
    if not yes and not Confirm.ask("⚠️ Delete terminal records past the retention window?"):
        console.print("Purge cancelled.")
        return

    base_url = config.get("api.base_url")

    try:
        with BackOfficeClient(base_url) as client:
            result = client.purge(older_than_days, include_jobs)
            print_success(
                f"Deleted {result.get('deleted', 0)} records older than "
                f"{result.get('retention_days')} days"
            )

    except BackOfficeError as e:
        print_error(f"Purge failed: {e}")
        raise typer.Exit(1) from None
