"""
Command line interface for the document change tracker.

Usage:
    doc-tracker --tenant acme watch doxcnABCDEFGHIJ oc_chat_1 --type docx
    doc-tracker --tenant acme list
    doc-tracker run
"""

import asyncio
import logging
import logging.config
from collections.abc import Coroutine
from datetime import UTC, datetime
from typing import Any

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from doc_change_tracker.config import get_config
from doc_change_tracker.detection import analyze_change_pattern
from doc_change_tracker.factory import create_document_poller
from doc_change_tracker.models import BaseError, DocType
from doc_change_tracker.monitoring import DocumentPoller

logger = logging.getLogger(__name__)

console = Console()

DOC_TYPE_CHOICE = click.Choice([t.value for t in DocType])

_HEALTH_STYLES = {"healthy": "green", "degraded": "yellow", "unhealthy": "red"}


def _format_unix(value: int | None) -> str:
    if value is None:
        return "-"
    return datetime.fromtimestamp(value, tz=UTC).strftime("%Y-%m-%d %H:%M:%S")


def _format_datetime(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "-"


def _get_poller(ctx: click.Context) -> DocumentPoller:
    if ctx.obj.get("poller") is None:
        ctx.obj["poller"] = create_document_poller(ctx.obj["config"])
    return ctx.obj["poller"]


def _run(ctx: click.Context, coro: Coroutine[Any, Any, Any]) -> Any:
    """Run a coroutine, turning tracker errors into a failed exit."""
    try:
        return asyncio.run(coro)
    except BaseError as e:
        console.print(f"❌ [red]{e.message}[/red]")
        logger.debug("Command failed: %s", e)
        ctx.exit(1)


@click.group()
@click.option('--tenant', envvar='DOC_TRACKER_TENANT', default='default', show_default=True, help='Tenant scope')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx: click.Context, tenant: str, verbose: bool):
    """Track document metadata changes and notify chat destinations."""
    config = get_config()
    logging.config.dictConfig(config.get_log_config())
    if verbose:
        logging.getLogger("doc_change_tracker").setLevel(logging.DEBUG)

    ctx.ensure_object(dict)
    ctx.obj.setdefault("poller", None)
    ctx.obj["config"] = config
    ctx.obj["tenant"] = tenant


@cli.command()
@click.argument('doc_id')
@click.argument('destination')
@click.option('--type', '-t', 'doc_type', type=DOC_TYPE_CHOICE, default='doc', show_default=True)
@click.option('--owner', help='User who requested tracking')
@click.option('--notes', help='Free-form notes stored with the tracking row')
@click.pass_context
def watch(ctx: click.Context, doc_id: str, destination: str, doc_type: str, owner: str | None, notes: str | None):
    """Start tracking DOC_ID and notify DESTINATION on changes."""
    poller = _get_poller(ctx)
    tracked = _run(
        ctx,
        poller.start_tracking_doc(
            ctx.obj["tenant"], doc_id, doc_type, destination, owner_user_id=owner, notes=notes
        ),
    )

    console.print(f"✅ Now tracking [cyan]{tracked.doc_id}[/cyan] for [bold]{tracked.notify_destination}[/bold]")
    if tracked.has_known_state:
        console.print(
            f"   Baseline: {tracked.title or '-'} by {tracked.last_known_modifier} "
            f"at {_format_unix(tracked.last_known_modified_at)} UTC"
        )
    else:
        console.print("   [yellow]No baseline yet, the first poll will report the document as new[/yellow]")


@cli.command()
@click.argument('doc_id')
@click.pass_context
def unwatch(ctx: click.Context, doc_id: str):
    """Stop tracking DOC_ID."""
    stopped = _run(ctx, _get_poller(ctx).stop_tracking_doc(ctx.obj["tenant"], doc_id))
    if stopped:
        console.print(f"🛑 Stopped tracking [cyan]{doc_id}[/cyan]")
    else:
        console.print(f"[yellow]{doc_id} was not being tracked[/yellow]")


@cli.command(name='list')
@click.option('--all', 'show_all', is_flag=True, help='Include documents no longer tracked')
@click.pass_context
def list_documents(ctx: click.Context, show_all: bool):
    """List tracked documents."""
    tracked_docs = _run(ctx, _get_poller(ctx).list_tracked(ctx.obj["tenant"], active_only=not show_all))
    if not tracked_docs:
        console.print("No tracked documents")
        return

    table = Table(title=f"📄 Tracked documents ({ctx.obj['tenant']})", show_header=True)
    table.add_column("Document", style="cyan", no_wrap=True)
    table.add_column("Type")
    table.add_column("Destination", no_wrap=True)
    table.add_column("Last modifier")
    table.add_column("Last modified (UTC)")
    table.add_column("Active")

    for tracked in tracked_docs:
        table.add_row(
            tracked.doc_id,
            tracked.doc_type.value,
            tracked.notify_destination,
            tracked.last_known_modifier or "-",
            _format_unix(tracked.last_known_modified_at),
            "yes" if tracked.active else "no",
        )

    console.print(table)


@cli.command()
@click.argument('doc_id')
@click.option('--type', '-t', 'doc_type', type=DOC_TYPE_CHOICE, default='doc', show_default=True)
@click.option('--json', 'as_json', is_flag=True, help='Print the fetched metadata as JSON')
@click.pass_context
def check(ctx: click.Context, doc_id: str, doc_type: str, as_json: bool):
    """Fetch DOC_ID now and compare it with the stored state."""
    metadata, detection = _run(ctx, _get_poller(ctx).check_document(ctx.obj["tenant"], doc_id, doc_type))

    if as_json:
        console.print_json(
            data={
                "metadata": metadata.to_display_dict(),
                "has_changed": detection.has_changed,
                "change_type": detection.change_type.value if detection.change_type else None,
                "debounced": detection.debounced,
                "reason": detection.reason,
            }
        )
        return

    if not detection.has_changed:
        status = "[green]No change[/green]"
    elif detection.debounced:
        status = "[yellow]Changed (debounced)[/yellow]"
    else:
        status = "[bold red]Changed[/bold red]"

    console.print(
        Panel.fit(
            f"[bold]{metadata.title}[/bold]\n"
            f"Modified by: {metadata.last_modified_by}\n"
            f"Modified at: {_format_unix(metadata.last_modified_at)} UTC\n"
            f"Document type: {metadata.doc_type.value}\n\n"
            f"Status: {status}\n"
            f"Reason: {detection.reason}",
            title=f"🔍 {doc_id}",
            border_style="blue",
        )
    )


@cli.command()
@click.argument('doc_id')
@click.option('--limit', '-n', type=int, default=20, show_default=True)
@click.pass_context
def history(ctx: click.Context, doc_id: str, limit: int):
    """Show the change history of DOC_ID, newest first."""
    records = _run(ctx, _get_poller(ctx).get_change_history(ctx.obj["tenant"], doc_id, limit=limit))
    if not records:
        console.print(f"No changes recorded for {doc_id}")
        return

    table = Table(title=f"🕘 Change history for {doc_id}", show_header=True)
    table.add_column("Detected (UTC)", no_wrap=True)
    table.add_column("Change")
    table.add_column("Modifier")
    table.add_column("Modified (UTC)")
    table.add_column("Notified")

    for record in records:
        if record.notification_sent:
            notified = "[green]yes[/green]"
        elif record.debounced:
            notified = "[yellow]debounced[/yellow]"
        else:
            notified = f"[red]failed[/red] {record.error_message or ''}".rstrip()
        table.add_row(
            _format_datetime(record.detected_at),
            record.change_type.value,
            record.new_modifier,
            _format_unix(record.new_modified_at),
            notified,
        )

    console.print(table)


@cli.command()
@click.argument('doc_id')
@click.pass_context
def stats(ctx: click.Context, doc_id: str):
    """Show change statistics for DOC_ID."""
    change_stats = _run(ctx, _get_poller(ctx).get_change_stats(ctx.obj["tenant"], doc_id))

    table = Table(title=f"📊 Change statistics for {doc_id}", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value")
    table.add_row("Total changes", str(change_stats.total_changes))
    table.add_row("Notified", str(change_stats.notified_changes))
    table.add_row("Debounced", str(change_stats.debounced_changes))
    table.add_row("Unique modifiers", str(len(change_stats.unique_modifiers)))
    table.add_row("Last change (UTC)", _format_datetime(change_stats.last_change_at))
    console.print(table)


@cli.command()
@click.pass_context
def status(ctx: click.Context):
    """Show store health and the poller metrics of this process."""
    poller = _get_poller(ctx)
    store_ok = _run(ctx, poller.store.health_check())
    report = poller.get_health()
    metrics = report.metrics

    style = _HEALTH_STYLES.get(report.status.value, "white")
    console.print(
        Panel.fit(
            f"Poller: [{style}]{report.status.value}[/{style}] ({report.reason})\n"
            f"Store: {'[green]ok[/green]' if store_ok else '[red]unreachable[/red]'}",
            title="🩺 Health",
            border_style=style,
        )
    )

    table = Table(title="📈 Polling metrics", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value")
    table.add_row("Documents tracked", str(metrics.docs_tracked))
    table.add_row("Cycles", str(metrics.total_cycles))
    table.add_row("Last poll (UTC)", _format_datetime(metrics.last_poll_at))
    table.add_row("Last poll duration", f"{metrics.last_poll_duration_ms}ms")
    table.add_row("Success rate", f"{metrics.success_rate:.0%}")
    table.add_row("Error rate", f"{metrics.error_rate:.0%}")
    table.add_row("API calls (1h)", str(metrics.api_calls_in_last_hour))
    table.add_row("Notifications (1h)", str(metrics.notifications_in_last_hour))
    table.add_row("Rate limited (1h)", str(metrics.rate_limit_errors_in_last_hour))
    table.add_row("Failed notifications", str(metrics.failed_notifications))
    table.add_row("Cached documents", str(poller.fetcher.cache.stats()["size"]))
    console.print(table)

    if not store_ok:
        ctx.exit(1)


async def _run_forever(poller: DocumentPoller) -> None:
    await poller.start()
    try:
        await asyncio.Event().wait()
    finally:
        await poller.stop()


@cli.command()
@click.option('--once', is_flag=True, help='Run a single poll cycle and exit')
@click.pass_context
def run(ctx: click.Context, once: bool):
    """Run the polling loop."""
    poller = _get_poller(ctx)

    if once:
        report = _run(ctx, poller.poll_once())
        table = Table(title="🔁 Poll cycle", show_header=True)
        table.add_column("Metric", style="cyan")
        table.add_column("Value")
        table.add_row("Tenants", str(report.tenants))
        table.add_row("Documents polled", str(report.docs_polled))
        table.add_row("Successful", str(report.successful))
        table.add_row("Failed", str(report.failed))
        table.add_row("Changes", str(report.changes_detected))
        table.add_row("Notifications sent", str(report.notifications_sent))
        table.add_row("Debounced", str(report.debounced))
        modifiers = analyze_change_pattern(report.detections).unique_modifiers
        table.add_row("Modifiers", ", ".join(sorted(modifiers)) or "-")
        table.add_row("Duration", f"{report.duration_ms}ms")
        console.print(table)
        return

    console.print(f"🚀 Polling every [yellow]{poller.config.poll_interval_seconds}s[/yellow], press Ctrl+C to stop")
    try:
        _run(ctx, _run_forever(poller))
    except KeyboardInterrupt:
        console.print("\n⚡ [yellow]Stopped by user[/yellow]")


if __name__ == "__main__":
    cli()
