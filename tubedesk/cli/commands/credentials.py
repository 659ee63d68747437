"""Client-secret management commands."""

from __future__ import annotations

from pathlib import Path

import click
from rich.markup import escape

from tubedesk import dependencies
from tubedesk.cli.commands.common import console, fail


@click.group()
def credentials() -> None:
    """Manage the OAuth client secret and stored token."""


@credentials.command()
def check() -> None:
    """Validate the installed credentials file."""
    result = dependencies.get_credential_store().check()
    if not result.valid:
        console.print(f"Credentials file: {escape(str(result.path))}")
        fail(result.error or "Credentials file is invalid.")
    console.print(f"[green]Credentials OK:[/green] {escape(str(result.path))}")


@credentials.command()
@click.argument(
    "source",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
def install(source: Path) -> None:
    """Copy a downloaded client secret JSON into the data directory."""
    store = dependencies.get_credential_store()
    result = store.install(source)
    if not result.success:
        fail(result.error or "Failed to install credentials.")

    check_result = store.check()
    if not check_result.valid:
        console.print(
            "[yellow]Installed, but the file is not usable:[/yellow] "
            f"{escape(check_result.error or '')}"
        )
        raise click.exceptions.Exit(1)
    console.print(f"[green]Installed credentials to[/green] {escape(str(store.locate()))}")


@credentials.command()
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
def remove(yes: bool) -> None:
    """Delete the stored credentials and OAuth token."""
    if not yes:
        click.confirm("Remove stored credentials and token?", abort=True)
    result = dependencies.get_credential_store().remove()
    if not result.success:
        fail(result.error or "Failed to remove credentials.")
    console.print("[green]Removed stored credentials and token.[/green]")
