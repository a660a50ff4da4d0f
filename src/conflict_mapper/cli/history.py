"""History CLI commands -- list, show, prune and summarize past scans."""

import json
from datetime import datetime, timedelta, timezone
from typing import Optional

import typer
from rich.table import Table

from ..analysis.report import snapshot_report
from ..config import MapperConfig
from ..exceptions import MapperError
from ..persistence.store import SnapshotStore
from . import app
from ._common import console, fail, resolve_config, short_timestamp
from .scan import render_snapshot


def _require_history(config: MapperConfig) -> None:
    if not config.db_path.exists():
        console.print(
            "[yellow]No history found.[/yellow] "
            "Run [bold]conflict-mapper scan[/bold] first to create a snapshot."
        )
        raise typer.Exit(0)


@app.command()
def history(
    ctx: typer.Context,
    limit: int = typer.Option(
        20,
        "--limit",
        "-n",
        help="Maximum number of scans to list",
        min=1,
        max=1000,
    ),
    offset: int = typer.Option(0, "--offset", help="Skip this many of the newest scans", min=0),
    json_output: bool = typer.Option(False, "--json", help="Output in machine-readable JSON format"),
):
    """
    List past scans stored in history.db, newest first.

    [bold cyan]Examples:[/bold cyan]

      conflict-mapper history

      conflict-mapper history --limit 5 --offset 5 --json
    """
    config = resolve_config(ctx)
    _require_history(config)

    try:
        with SnapshotStore(config.db_path) as store:
            scans = store.list_scans(limit=limit, offset=offset)
    except MapperError as e:
        fail(e)

    if json_output:
        print(
            json.dumps(
                [
                    {
                        "id": s.id,
                        "timestamp": s.timestamp,
                        "plugin_count": s.plugin_count,
                        "conflict_count": s.conflict_count,
                        "overlap_count": s.overlap_count,
                        "scan_type": s.scan_type,
                        "fingerprint": s.fingerprint,
                    }
                    for s in scans
                ],
                indent=2,
            )
        )
        return

    if not scans:
        console.print("[yellow]No scans recorded yet.[/yellow]")
        return

    table = Table(title="Scan History", show_lines=False, pad_edge=True)
    table.add_column("ID", style="bold", justify="right")
    table.add_column("Timestamp", style="green")
    table.add_column("Plugins", justify="right")
    table.add_column("Conflicts", justify="right", style="yellow")
    table.add_column("Overlaps", justify="right", style="magenta")
    table.add_column("Type", style="dim")

    for s in scans:
        table.add_row(
            str(s.id),
            short_timestamp(s.timestamp),
            str(s.plugin_count),
            str(s.conflict_count),
            str(s.overlap_count),
            s.scan_type,
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def show(
    ctx: typer.Context,
    scan_id: int = typer.Argument(..., help="Scan ID (see `conflict-mapper history`)"),
    json_output: bool = typer.Option(False, "--json", help="Output in machine-readable JSON format"),
):
    """Show the full report of a saved scan."""
    config = resolve_config(ctx)
    _require_history(config)

    try:
        with SnapshotStore(config.db_path) as store:
            snapshot = store.get_scan(scan_id)
    except MapperError as e:
        fail(e)

    if snapshot is None:
        console.print(f"[red]Scan {scan_id} not found.[/red]")
        raise typer.Exit(1)

    if json_output:
        print(json.dumps(snapshot_report(snapshot), indent=2))
        return

    render_snapshot(snapshot)


@app.command()
def cleanup(
    ctx: typer.Context,
    days: Optional[int] = typer.Option(
        None,
        "--days",
        "-d",
        help="Delete scans older than this many days (default: history_retention_days)",
        min=1,
    ),
):
    """Delete old scans from history.db."""
    config = resolve_config(ctx)
    _require_history(config)
    keep_days = days if days is not None else config.history_retention_days
    cutoff = datetime.now(timezone.utc) - timedelta(days=keep_days)

    try:
        with SnapshotStore(config.db_path) as store:
            deleted = store.delete_old_scans(cutoff)
    except MapperError as e:
        fail(e)

    console.print(f"[green]Deleted {deleted} scans older than {keep_days} days[/green]")


@app.command()
def stats(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Output in machine-readable JSON format"),
):
    """Show aggregate figures across all saved scans."""
    config = resolve_config(ctx)
    _require_history(config)

    try:
        with SnapshotStore(config.db_path) as store:
            figures = store.statistics()
    except MapperError as e:
        fail(e)

    if json_output:
        print(json.dumps(figures, indent=2))
        return

    console.print("[bold cyan]Scan History Statistics[/bold cyan]")
    console.print()
    console.print(f"Total scans: [yellow]{figures['total_scans']}[/yellow]")
    console.print(f"Average plugins per scan: [yellow]{figures['average_plugins']}[/yellow]")
    console.print(f"Average conflicts per scan: [yellow]{figures['average_conflicts']}[/yellow]")
    console.print(f"High/critical conflicts recorded: [red]{figures['high_severity_conflicts']}[/red]")
    console.print(f"Last scan: [green]{short_timestamp(figures['last_scan'])}[/green]")
