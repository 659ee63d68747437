"""Main CLI entry point for TubeDesk."""

from __future__ import annotations

import click

from tubedesk import dependencies
from tubedesk.cli.commands import auth, backup, cache, credentials, videos
from tubedesk.logging_config import configure_application_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="tubedesk")
def main() -> None:
    """TubeDesk - bulk metadata editor for your own YouTube channel."""
    configure_application_logging(dependencies.get_settings())


main.add_command(credentials.credentials)
main.add_command(auth.auth)
main.add_command(auth.categories)
main.add_command(videos.videos)
main.add_command(backup.backup)
main.add_command(cache.cache)


if __name__ == "__main__":
    main()
