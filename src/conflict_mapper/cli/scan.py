"""Scan command -- run the full pipeline and report."""

import json
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table

from ..analysis.conflicts import summarize
from ..analysis.overlap import similar_hook_footprints
from ..analysis.ranking import priority_actions
from ..analysis.report import overlap_alternatives, snapshot_report
from ..context import Mode
from ..exceptions import MapperError
from ..models import ScanSnapshot
from . import app
from ._common import RECOMMENDATION_STYLE, SEVERITY_STYLE, console, fail, open_context, resolve_config


@app.command()
def scan(
    ctx: typer.Context,
    plugins_dir: Optional[Path] = typer.Argument(
        None,
        help="Plugins directory to scan (default: from config)",
        file_okay=False,
        dir_okay=True,
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Ignore cached results"),
    read_only: bool = typer.Option(False, "--read-only", help="Do not save the snapshot to history"),
    include_inactive: Optional[bool] = typer.Option(
        None,
        "--include-inactive/--active-only",
        help="Consider inactive plugins during analysis",
    ),
    json_output: bool = typer.Option(False, "--json", help="Output in machine-readable JSON format"),
):
    """
    Scan installed plugins for conflicts, overlaps and rankings.

    [bold cyan]Examples:[/bold cyan]

      conflict-mapper scan wp-content/plugins

      conflict-mapper scan --force --json
    """
    config = resolve_config(
        ctx,
        plugins_dir=str(plugins_dir) if plugins_dir is not None else None,
        include_inactive=include_inactive,
    )
    mode = Mode.READ_ONLY if read_only else Mode.FULL

    with open_context(config, mode) as app_ctx:
        try:
            if json_output:
                snapshot = app_ctx.run_full_scan(force=force)
            else:
                with console.status("Scanning plugins...") as status:
                    snapshot = app_ctx.run_full_scan(
                        force=force, on_progress=lambda msg: status.update(msg)
                    )
        except MapperError as e:
            fail(e)

    if json_output:
        print(json.dumps(snapshot_report(snapshot), indent=2))
        return

    render_snapshot(snapshot)


def render_snapshot(snapshot: ScanSnapshot) -> None:
    """Human-readable report of one snapshot."""
    summary = summarize(snapshot.conflicts)
    scan_label = f"#{snapshot.id}" if snapshot.id is not None else "(not saved)"
    console.print()
    console.print(
        f"[bold]Scan {scan_label}[/bold]  {snapshot.timestamp}  "
        f"[cyan]{snapshot.plugin_count}[/cyan] plugins, "
        f"[yellow]{summary['total']}[/yellow] conflicts "
        f"([red]{summary['high_or_critical']}[/red] high/critical), "
        f"[magenta]{snapshot.overlap_count}[/magenta] overlaps"
    )

    if snapshot.conflicts:
        table = Table(title="Conflicts", show_lines=False, pad_edge=True)
        table.add_column("Severity")
        table.add_column("Type", style="cyan")
        table.add_column("Hook", style="blue")
        table.add_column("Plugins")
        table.add_column("Description", overflow="fold")
        for c in snapshot.conflicts:
            style = SEVERITY_STYLE.get(c.severity.value, "")
            table.add_row(
                f"[{style}]{c.severity.value}[/{style}]" if style else c.severity.value,
                c.type.value,
                escape(c.hook_name or "-"),
                escape(", ".join(sorted(c.plugin_ids))),
                escape(c.description),
            )
        console.print(table)

    if snapshot.overlaps:
        table = Table(title="Overlaps", show_lines=False, pad_edge=True)
        table.add_column("Capability", style="magenta")
        table.add_column("Plugins")
        table.add_column("Redundancy", justify="right")
        table.add_column("Advice", overflow="fold")
        for o in snapshot.overlaps:
            table.add_row(
                o.capability_tag,
                escape(", ".join(o.member_plugin_ids)),
                f"{o.redundancy_score:.2f}",
                escape(o.advice),
            )
        console.print(table)

        for tag, options in overlap_alternatives(snapshot).items():
            names = ", ".join(sorted(options))
            console.print(f"  [magenta]{tag}[/magenta] alternatives: {escape(names)}")

    footprints = similar_hook_footprints(snapshot.plugins)
    if footprints:
        table = Table(title="Similar Hook Footprints", show_lines=False, pad_edge=True)
        table.add_column("Plugin A")
        table.add_column("Plugin B")
        table.add_column("Common hooks", justify="right")
        table.add_column("Similarity", justify="right")
        for m in footprints:
            table.add_row(escape(m.plugin_a), escape(m.plugin_b), str(m.common_hooks), f"{m.similarity:.2f}")
        console.print(table)

    if snapshot.ranked:
        table = Table(title="Ranking", show_lines=False, pad_edge=True)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Plugin", style="bold")
        table.add_column("Score", justify="right")
        table.add_column("Recommendation")
        for index, r in enumerate(snapshot.ranked, start=1):
            style = RECOMMENDATION_STYLE.get(r.recommendation.value, "")
            table.add_row(
                str(index),
                escape(r.name),
                f"{r.score:.1f}",
                f"[{style}]{r.recommendation.value}[/{style}]",
            )
        console.print(table)

    actions = priority_actions(snapshot.ranked)
    if actions:
        console.print()
        console.print("[bold red]Review first:[/bold red]")
        for action in actions:
            console.print(f"  - {escape(str(action['name']))} (score {action['score']:.1f})")

    if snapshot.warnings:
        console.print()
        console.print(f"[yellow]{len(snapshot.warnings)} warnings:[/yellow]")
        for warning in snapshot.warnings:
            console.print(f"  [dim]{escape(warning)}[/dim]")
    console.print()
