"""Health command -- performance footprint and security risk per plugin."""

import json
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table

from ..analysis.report import health_report
from ..context import Mode
from ..exceptions import MapperError
from . import app
from ._common import console, fail, open_context, resolve_config

RATING_STYLE = {
    "excellent": "green",
    "good": "cyan",
    "fair": "yellow",
    "poor": "red",
}

RISK_STYLE = {
    "safe": "green",
    "low": "cyan",
    "medium": "yellow",
    "high": "red",
    "critical": "bold red",
}


@app.command()
def health(
    ctx: typer.Context,
    plugins_dir: Optional[Path] = typer.Argument(
        None,
        help="Plugins directory to read (default: from config)",
        file_okay=False,
        dir_okay=True,
    ),
    plugin: Optional[str] = typer.Option(None, "--plugin", "-p", help="Only this plugin slug, with its findings"),
    json_output: bool = typer.Option(False, "--json", help="Output in machine-readable JSON format"),
):
    """
    Rate each plugin's performance footprint and security risk.

    Nothing is saved to history.

    [bold cyan]Examples:[/bold cyan]

      conflict-mapper health wp-content/plugins

      conflict-mapper health --plugin contact-form-7 --json
    """
    config = resolve_config(ctx, plugins_dir=str(plugins_dir) if plugins_dir is not None else None)

    with open_context(config, Mode.READ_ONLY) as app_ctx:
        try:
            result = app_ctx.scanner.scan()
        except MapperError as e:
            fail(e)

    reports = health_report(result.plugins)
    if plugin is not None:
        reports = {pid: r for pid, r in reports.items() if pid == plugin}

    if json_output:
        print(json.dumps(reports, indent=2))
        return

    if not reports:
        console.print("[yellow]No plugin source to assess.[/yellow]")
        return

    table = Table(title="Plugin Health", show_lines=False, pad_edge=True)
    table.add_column("Plugin", style="bold")
    table.add_column("Performance", justify="right")
    table.add_column("Rating")
    table.add_column("Security")
    table.add_column("Issues", justify="right")
    for pid, report in reports.items():
        perf, sec = report["performance"], report["security"]
        rating_style = RATING_STYLE[perf["overall_rating"]]
        risk_style = RISK_STYLE[sec["risk_level"]]
        table.add_row(
            escape(pid),
            f"{perf['overall_score']:.1f}",
            f"[{rating_style}]{perf['overall_rating']}[/{rating_style}]",
            f"[{risk_style}]{sec['risk_level']}[/{risk_style}]",
            str(sec["total_issues"]),
        )
    console.print(table)

    if plugin is not None:
        for issue in reports.get(plugin, {}).get("security", {}).get("issues", []):
            console.print(
                f"  [dim]{escape(issue['file'])}:{issue['line']}[/dim] "
                f"{issue['severity']}  {escape(issue['message'])}"
            )
