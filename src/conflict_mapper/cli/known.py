"""Known-conflicts command -- inspect the compatibility dataset."""

import json
from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table

from ..exceptions import MapperError
from ..knowledge import CompatibilityTable
from . import app
from ._common import SEVERITY_STYLE, console, fail, resolve_config


@app.command()
def known_conflicts(
    ctx: typer.Context,
    plugin: Optional[str] = typer.Option(None, "--plugin", "-p", help="Only entries involving this slug"),
    json_output: bool = typer.Option(False, "--json", help="Output in machine-readable JSON format"),
):
    """List the known-incompatible plugin pairs the detector checks."""
    config = resolve_config(ctx)
    try:
        table_data = CompatibilityTable.load(config.known_conflicts_file)
    except MapperError as e:
        fail(e)

    entries = [e for e in table_data if plugin is None or plugin in e.pair]

    if json_output:
        print(
            json.dumps(
                [
                    {
                        "plugin_a": e.plugin_a,
                        "plugin_b": e.plugin_b,
                        "kind": e.kind,
                        "reported_severity": e.reported_severity.value,
                        "description": e.description,
                        "resolution": e.resolution,
                        "affected_versions": {k: str(v) for k, v in e.affected_versions.items()},
                    }
                    for e in entries
                ],
                indent=2,
            )
        )
        return

    table = Table(
        title=f"Known Conflicts (dataset v{table_data.version}, {len(entries)} entries)",
        show_lines=False,
        pad_edge=True,
    )
    table.add_column("Plugin A", style="cyan")
    table.add_column("Plugin B", style="cyan")
    table.add_column("Kind", style="dim")
    table.add_column("Reported")
    table.add_column("Resolution", overflow="fold")
    for e in entries:
        style = SEVERITY_STYLE.get(e.reported_severity.value, "")
        table.add_row(
            e.plugin_a,
            e.plugin_b,
            e.kind,
            f"[{style}]{e.reported_severity.value}[/{style}]",
            escape(e.resolution),
        )
    console.print(table)
