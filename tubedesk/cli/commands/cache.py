"""Thumbnail cache commands."""

from __future__ import annotations

import asyncio
from pathlib import Path

import click
from rich.markup import escape

from tubedesk import dependencies
from tubedesk.cli.commands.common import console, fail
from tubedesk.services.thumbnail_cache import filename_from_cache_url
from tubedesk.workflow import load_channel_catalog


@click.group()
def cache() -> None:
    """Inspect and clear the thumbnail cache."""


@cache.command()
def clear() -> None:
    """Delete every cached thumbnail."""
    result = dependencies.get_thumbnail_cache().clear()
    if not result.success:
        fail(result.error or "Failed to clear the thumbnail cache.")
    console.print("[green]Thumbnail cache cleared.[/green]")


@cache.command()
@click.argument("filename")
def resolve(filename: str) -> None:
    """Print the local path of a thumbnail, downloading it if needed.

    FILENAME may be a bare cache filename or a cache:// reference.
    """
    name = filename_from_cache_url(filename) or filename
    thumbnail_cache = dependencies.get_thumbnail_cache()
    if thumbnail_cache.path_for(name) is None:
        fail(f"Invalid thumbnail filename: {name}")

    async def _run() -> Path | None:
        cached = await thumbnail_cache.resolve(name)
        if cached is not None:
            return cached
        # The remote URL registry is filled by a catalog fetch.
        outcome = await load_channel_catalog(
            dependencies.get_token_manager(),
            thumbnail_cache,
            dependencies.get_settings(),
        )
        if not outcome.success:
            fail(outcome.error or "Failed to load the channel catalog.")
        return await thumbnail_cache.resolve(name)

    path = asyncio.run(_run())
    if path is None:
        fail(f"Thumbnail not available: {name}")
    console.print(escape(str(path)), soft_wrap=True)
