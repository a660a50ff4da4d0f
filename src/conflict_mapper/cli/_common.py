"""Shared CLI helpers."""

from contextlib import contextmanager
from typing import Any, Iterator, NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape

from ..config import MapperConfig, load_config
from ..context import AppContext, Mode, create_context
from ..exceptions import MapperError

console = Console()


def resolve_config(ctx: typer.Context, **overrides: Any) -> MapperConfig:
    """Build config from the global CLI options plus command-specific overrides."""
    obj = ctx.obj or {}
    try:
        return load_config(
            config_file=obj.get("config_file"),
            data_dir=obj.get("data_dir"),
            verbose=obj.get("verbose", False),
            quiet=obj.get("quiet", False),
            **overrides,
        )
    except MapperError as e:
        fail(e)


@contextmanager
def open_context(config: MapperConfig, mode: Mode = Mode.FULL) -> Iterator[AppContext]:
    """Create an application context, exiting with code 1 on startup errors."""
    try:
        app_ctx = create_context(config, mode=mode)
    except MapperError as e:
        fail(e)
    try:
        yield app_ctx
    finally:
        app_ctx.close()


def fail(error: MapperError) -> NoReturn:
    """Print a diagnostic with its stable code and exit 1."""
    console.print(f"[red]Error[/red] [bold]{error.code.value}[/bold]: {escape(error.message)}")
    if error.recovery_hint:
        console.print(f"[dim]{escape(error.recovery_hint)}[/dim]")
    raise typer.Exit(1)


SEVERITY_STYLE = {
    "Critical": "bold red",
    "High": "red",
    "Medium": "yellow",
    "Low": "dim",
}

RECOMMENDATION_STYLE = {
    "Keep": "green",
    "Review": "yellow",
    "Replace": "red",
}


def short_timestamp(ts: Optional[str]) -> str:
    """Trim an ISO timestamp to date + time for tables."""
    if not ts:
        return "-"
    ts = ts.replace("T", " ")
    if "+" in ts:
        ts = ts[: ts.index("+")]
    if "." in ts:
        ts = ts[: ts.index(".")]
    return ts
