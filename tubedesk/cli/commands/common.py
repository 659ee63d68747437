from __future__ import annotations

from collections.abc import Sequence
from typing import NoReturn

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from tubedesk.models.catalog import VideoRecord

console = Console()

PRIVACY_CHOICES = ("public", "private", "unlisted")


def fail(message: str) -> NoReturn:
    console.print(f"[red]Error:[/red] {escape(message)}")
    raise click.exceptions.Exit(1)


def print_video_table(videos: Sequence[VideoRecord]) -> None:
    if not videos:
        console.print("[yellow]No videos found.[/yellow]")
        return

    table = Table(show_lines=False)
    table.add_column("ID", no_wrap=True)
    table.add_column("Title")
    table.add_column("Privacy")
    table.add_column("Category")
    table.add_column("Published")
    table.add_column("Views", justify="right")
    for video in videos:
        table.add_row(
            video.id,
            escape(video.title),
            video.privacy_status,
            video.category_id or "-",
            video.published_at[:10],
            video.statistics.view_count if video.statistics else "0",
        )
    console.print(table)
    console.print(f"{len(videos)} video(s)")
