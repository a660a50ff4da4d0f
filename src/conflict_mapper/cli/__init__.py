"""CLI entry point -- registers all subcommands."""

from pathlib import Path
from typing import Optional

import typer

from .. import __version__
from ..logging_config import setup_logging
from ._common import console

app = typer.Typer(
    name="conflict-mapper",
    help="Plugin Conflict Mapper - find conflicting and redundant plugins",
    add_completion=False,
    rich_markup_mode="rich",
)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "-c",
        "--config",
        help="Configuration file (TOML)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    data_dir: Optional[Path] = typer.Option(
        None,
        "--data-dir",
        help="Directory holding history.db and the cache (default: .conflict-mapper)",
        file_okay=False,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log errors"),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Also append log records to this file",
        dir_okay=False,
    ),
    version: bool = typer.Option(False, "--version", help="Show version and exit"),
):
    """
    Map conflicts, overlaps and keep/review/replace rankings for installed plugins.

    [bold cyan]Examples:[/bold cyan]

      conflict-mapper scan wp-content/plugins

      conflict-mapper history --limit 5

      conflict-mapper show 3 --json
    """
    if version:
        console.print(f"conflict-mapper {__version__}")
        raise typer.Exit(0)

    setup_logging(verbose=verbose, quiet=quiet, log_file=str(log_file) if log_file is not None else None)
    ctx.ensure_object(dict)
    ctx.obj.update(
        {
            "config_file": config,
            "data_dir": str(data_dir) if data_dir is not None else None,
            "verbose": verbose,
            "quiet": quiet,
        }
    )

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


def main() -> None:
    app()


# Import subcommands to register them
from .scan import scan as _scan  # noqa: F401, E402
from .history import cleanup as _cleanup, history as _history, show as _show, stats as _stats  # noqa: F401, E402
from .known import known_conflicts as _known_conflicts  # noqa: F401, E402
from .cache import cache_clear as _cache_clear, cache_info as _cache_info  # noqa: F401, E402
from .health import health as _health  # noqa: F401, E402
