"""Cache management commands."""

import typer

from ..cache import DiskCache
from . import app
from ._common import console, resolve_config


@app.command()
def cache_info(ctx: typer.Context):
    """Show cache information and statistics."""
    config = resolve_config(ctx)

    console.print("[bold cyan]Plugin Conflict Mapper Cache Info[/bold cyan]")
    console.print()

    if not config.cache_enabled or config.cache_backend != "disk":
        console.print("Status: [red]Disabled[/red] (no persistent cache)")
        return

    cache = DiskCache(config.cache_dir, ttl_seconds=config.cache_ttl_seconds)
    try:
        stats = cache.stats()
    finally:
        cache.close()

    console.print("Status: [green]Enabled[/green]")
    console.print(f"Directory: [blue]{stats.get('directory', 'N/A')}[/blue]")
    console.print(f"Entries: [yellow]{stats.get('size', 0)}[/yellow]")
    console.print(f"Size: [yellow]{stats.get('volume', 0)} bytes[/yellow]")
    console.print(f"TTL: [yellow]{config.cache_ttl_seconds}s[/yellow]")


@app.command()
def cache_clear(ctx: typer.Context):
    """Clear the scan cache."""
    config = resolve_config(ctx)

    if not config.cache_enabled or config.cache_backend != "disk":
        console.print("[yellow]Cache is disabled[/yellow]")
        raise typer.Exit(0)

    cache = DiskCache(config.cache_dir, ttl_seconds=config.cache_ttl_seconds)
    try:
        cache.clear()
    finally:
        cache.close()
    console.print("[green]Cache cleared successfully[/green]")
