"""CLI commands for ToolVault."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from toolvault.client import AssetServiceError
from toolvault.grid import TileStatus
from toolvault.models.asset import AssetType
from toolvault.models.config import VaultConfig
from toolvault.thumbnails import ThumbnailGenerationError
from toolvault.vault import ToolVault

console = Console()

STATUS_STYLES = {
    TileStatus.CACHED: "cyan",
    TileStatus.READY: "green",
    TileStatus.LOADING: "yellow",
    TileStatus.PLACEHOLDER: "red",
}


def get_vault(data_dir: str, config_path: str | None) -> ToolVault:
    config = VaultConfig.load(Path(config_path) if config_path else None)
    return ToolVault(data_dir, config)


@click.group()
@click.option("--data-dir", default="./data", help="Data directory")
@click.option("--config", "config_path", default=None, help="YAML config file")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, data_dir: str, config_path: str | None, verbose: bool) -> None:
    """ToolVault - Equipment asset thumbnails CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    ctx.ensure_object(dict)
    ctx.obj["vault"] = get_vault(data_dir, config_path)


@main.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show thumbnail cache statistics."""
    vault: ToolVault = ctx.obj["vault"]

    try:
        cache_stats = vault.get_cache_stats()
        limits = vault.cache.limits
    finally:
        asyncio.run(vault.close())

    console.print("[bold]Thumbnail Cache[/bold]")
    console.print(f"  Entries: {cache_stats.count} / {limits.max_items}")
    console.print(f"  Size: {cache_stats.size_formatted}")
    console.print(f"  TTL: {limits.max_age_seconds / 86400:g} days")


@main.command()
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def clear(ctx: click.Context, yes: bool) -> None:
    """Clear all cached thumbnails."""
    vault: ToolVault = ctx.obj["vault"]

    if not yes and not click.confirm("Clear all cached thumbnails?"):
        console.print("[yellow]Cancelled[/yellow]")
        return

    try:
        count = vault.clear_cache()
    finally:
        asyncio.run(vault.close())
    console.print(f"[green]Cleared {count} thumbnail entries[/green]")


@main.command()
@click.pass_context
def purge(ctx: click.Context) -> None:
    """Remove expired thumbnails."""
    vault: ToolVault = ctx.obj["vault"]

    try:
        count = vault.purge_expired()
    finally:
        asyncio.run(vault.close())
    console.print(f"[green]Purged {count} expired thumbnails[/green]")


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--type", "-t", "asset_type",
    type=click.Choice([t.value for t in AssetType]),
    required=True,
    help="Asset type",
)
@click.option("--output", "-o", default=None, help="Output PNG path")
@click.option("--cache-as", default=None, help="Also cache the thumbnail under this asset id")
@click.pass_context
def render(
    ctx: click.Context,
    file: str,
    asset_type: str,
    output: str | None,
    cache_as: str | None,
) -> None:
    """Render a thumbnail for a local file."""
    vault: ToolVault = ctx.obj["vault"]

    async def run() -> bytes:
        try:
            return await vault.render_file(file, AssetType(asset_type), cache_as=cache_as)
        finally:
            await vault.close()

    try:
        with console.status(f"Rendering {file}..."):
            payload = asyncio.run(run())
    except ThumbnailGenerationError as e:
        console.print(f"[red]Failed: {e}[/red]")
        raise SystemExit(1)

    out_path = Path(output) if output else Path(file).with_suffix(".thumb.png")
    out_path.write_bytes(payload)
    console.print(f"[green]Wrote {out_path} ({len(payload)} bytes)[/green]")


@main.command()
@click.pass_context
def grid(ctx: click.Context) -> None:
    """Load thumbnails for every asset on the service."""
    vault: ToolVault = ctx.obj["vault"]

    async def run():
        try:
            assets = await vault.list_assets()
            tiles = await vault.grid.refresh(assets)
            return assets, tiles
        finally:
            await vault.close()

    try:
        with console.status("Loading thumbnails..."):
            assets, tiles = asyncio.run(run())
    except AssetServiceError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)

    table = Table(title="Assets")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Thumbnail")

    for asset in assets:
        tile = tiles.get(asset.id)
        if tile is None:
            continue
        style = STATUS_STYLES[tile.status]
        label = tile.status.value
        if tile.placeholder_icon:
            label = f"{label} ({tile.placeholder_icon})"
        table.add_row(asset.id, asset.name or "-", asset.asset_type.value, f"[{style}]{label}[/{style}]")

    console.print(table)


@main.command()
@click.argument("asset_id")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def delete(ctx: click.Context, asset_id: str, yes: bool) -> None:
    """Delete an asset and its cached thumbnail."""
    vault: ToolVault = ctx.obj["vault"]

    if not yes and not click.confirm(f"Delete {asset_id}?"):
        console.print("[yellow]Cancelled[/yellow]")
        return

    async def run() -> None:
        try:
            await vault.grid.delete(asset_id)
        finally:
            await vault.close()

    try:
        asyncio.run(run())
    except AssetServiceError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)

    console.print(f"[green]Deleted {asset_id}[/green]")


if __name__ == "__main__":
    main()
