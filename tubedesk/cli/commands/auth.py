"""Authorization and channel-level commands."""

from __future__ import annotations

import asyncio

import click
from rich.markup import escape
from rich.table import Table

from tubedesk import dependencies
from tubedesk.cli.commands.common import console, fail
from tubedesk.models.catalog import VideoCategory
from tubedesk.workflow import open_catalog_service


@click.command()
def auth() -> None:
    """Authorize against YouTube, reusing or refreshing the stored token."""
    token_manager = dependencies.get_token_manager()
    result = asyncio.run(token_manager.authenticate())
    if not result.success:
        fail(result.error or "Authentication failed.")
    token_path = escape(str(token_manager.token_path))
    console.print(f"[green]Authenticated.[/green] Token stored at {token_path}")


@click.command()
def categories() -> None:
    """List the video categories assignable on this channel."""

    async def _run() -> dict[str, VideoCategory]:
        opened = await open_catalog_service(
            dependencies.get_token_manager(),
            dependencies.get_thumbnail_cache(),
            dependencies.get_settings(),
        )
        if opened.service is None:
            fail(opened.error or "Authentication failed.")
        return await opened.service.get_video_categories()

    found = asyncio.run(_run())
    if not found:
        fail("No categories could be retrieved.")

    table = Table()
    table.add_column("ID", justify="right")
    table.add_column("Title")
    ordered = sorted(found.values(), key=lambda item: int(item.id) if item.id.isdigit() else 0)
    for category in ordered:
        table.add_row(category.id, escape(category.title))
    console.print(table)
