"""Local catalog snapshot commands."""

from __future__ import annotations

import asyncio
from pathlib import Path

import click
from rich.markup import escape

from tubedesk import dependencies
from tubedesk.cli.commands.common import console, fail, print_video_table
from tubedesk.workflow import load_channel_catalog

_PATH_OPTION = click.option(
    "--path",
    "backup_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Backup file (defaults to TUBEDESK_BACKUP_PATH).",
)


@click.group()
def backup() -> None:
    """Save or inspect a local snapshot of the channel catalog."""


@backup.command()
@_PATH_OPTION
def save(backup_path: Path | None) -> None:
    """Fetch the catalog and write it to the backup file."""
    settings = dependencies.get_settings()
    outcome = asyncio.run(
        load_channel_catalog(
            dependencies.get_token_manager(),
            dependencies.get_thumbnail_cache(),
            settings,
        )
    )
    if not outcome.success:
        fail(outcome.error or "Failed to load the channel catalog.")

    target = backup_path or settings.backup_path
    result = dependencies.get_catalog_repository().save(outcome.videos, target)
    if not result.success:
        fail(result.error or "Failed to save the catalog.")
    console.print(f"[green]Saved {len(outcome.videos)} video(s) to[/green] {escape(str(target))}")


@backup.command()
@_PATH_OPTION
def load(backup_path: Path | None) -> None:
    """Show the catalog stored in the backup file."""
    target = backup_path or dependencies.get_settings().backup_path
    result = dependencies.get_catalog_repository().load(target)
    if not result.found:
        console.print(f"[yellow]No backup found at[/yellow] {escape(str(target))}")
        raise click.exceptions.Exit(1)
    if result.error is not None:
        fail(result.error)
    print_video_table(result.videos)
