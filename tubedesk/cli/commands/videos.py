"""Catalog listing and metadata edit commands."""

from __future__ import annotations

import asyncio
from pathlib import Path

import click
from pydantic import TypeAdapter, ValidationError
from rich.markup import escape

from tubedesk import dependencies
from tubedesk.cli.commands.common import PRIVACY_CHOICES, console, fail, print_video_table
from tubedesk.models.catalog import BatchUpdateResult, VideoUpdate
from tubedesk.workflow import CatalogLoadOutcome, load_channel_catalog, open_catalog_service

_UPDATES_ADAPTER = TypeAdapter(list[VideoUpdate])


@click.group()
def videos() -> None:
    """List and edit videos on the authenticated channel."""


@videos.command(name="list")
@click.option("--channel-id", default=None, help="Channel to list instead of your own.")
@click.option(
    "--max-results",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum uploads to fetch.",
)
@click.option("--save", is_flag=True, help="Also write the catalog to the backup file.")
def list_videos(channel_id: str | None, max_results: int | None, save: bool) -> None:
    """Fetch the channel uploads with full metadata."""
    settings = dependencies.get_settings()
    outcome: CatalogLoadOutcome = asyncio.run(
        load_channel_catalog(
            dependencies.get_token_manager(),
            dependencies.get_thumbnail_cache(),
            settings,
            channel_id=channel_id,
            max_results=max_results,
        )
    )
    if not outcome.success:
        fail(outcome.error or "Failed to load the channel catalog.")

    print_video_table(outcome.videos)

    if save:
        result = dependencies.get_catalog_repository().save(outcome.videos, settings.backup_path)
        if not result.success:
            fail(result.error or "Failed to save the catalog.")
        console.print(f"[green]Saved catalog to[/green] {escape(str(settings.backup_path))}")


@videos.command()
@click.argument("video_id")
@click.option("--title", required=True, help="New title.")
@click.option("--description", required=True, help="New description.")
@click.option(
    "--privacy",
    type=click.Choice(PRIVACY_CHOICES),
    default=None,
    help="New privacy status.",
)
@click.option("--category-id", default=None, help="New category id; defaults to the current one.")
def update(
    video_id: str,
    title: str,
    description: str,
    privacy: str | None,
    category_id: str | None,
) -> None:
    """Update the metadata of a single video."""

    async def _run() -> bool:
        opened = await open_catalog_service(
            dependencies.get_token_manager(),
            dependencies.get_thumbnail_cache(),
            dependencies.get_settings(),
        )
        if opened.service is None:
            fail(opened.error or "Authentication failed.")
        return await opened.service.update_video(video_id, title, description, privacy, category_id)

    if not asyncio.run(_run()):
        fail(f"Failed to update video {video_id}. See the log for details.")
    console.print(f"[green]Updated[/green] {escape(video_id)}")


@videos.command(name="batch-update")
@click.argument("updates_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def batch_update(updates_file: Path) -> None:
    """Apply a JSON array of updates (video_id, title, description, privacy_status, category_id)."""
    try:
        updates = _UPDATES_ADAPTER.validate_json(updates_file.read_bytes())
    except (OSError, ValidationError) as exc:
        fail(f"Cannot read updates from {updates_file}: {exc}")

    async def _run() -> BatchUpdateResult:
        opened = await open_catalog_service(
            dependencies.get_token_manager(),
            dependencies.get_thumbnail_cache(),
            dependencies.get_settings(),
        )
        if opened.service is None:
            fail(opened.error or "Authentication failed.")
        return await opened.service.update_videos_batch(updates)

    result = asyncio.run(_run())
    for updated in result.results.successful:
        console.print(f"[green]ok[/green]     {escape(updated.video_id)}  {escape(updated.title)}")
    for failed in result.results.failed:
        console.print(f"[red]failed[/red] {escape(failed.video_id)}  {escape(failed.error)}")

    summary = result.summary
    console.print(
        f"\n[bold]{summary.successful}[/bold] of {summary.total} updated, "
        f"[bold]{summary.failed}[/bold] failed"
    )
    if summary.failed:
        raise click.exceptions.Exit(1)
