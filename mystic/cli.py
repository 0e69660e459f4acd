#!/usr/bin/env python3
"""mystic CLI - offline transfer toolkit for the Mystic Home Server."""
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from mystic import __version__
from mystic.cli_bundle_commands import register_bundle_commands
from mystic.cli_deploy_commands import register_deploy_commands
from mystic.cli_image_commands import register_image_commands
from mystic.cli_support import HELP_OPTIONS, setup_file_logging
from mystic.cli_volume_commands import register_volume_commands
from mystic.core.catalog import Service
from mystic.core.logger import get_logger

app = typer.Typer(
    name="mystic",
    help="""mystic - Offline transfer toolkit for the Mystic Home Server

Move a Docker Compose stack to an air-gapped machine.

Online machine:
  mystic bundle --all /mnt/usb/mystic     # Repo files + images + volumes

Offline machine:
  sudo mystic deploy                      # Load, set up, import, start

More commands: mystic --help
""",
    add_completion=False,
    context_settings=HELP_OPTIONS,
)

console = Console()
logger = get_logger(__name__)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging and tracebacks on errors"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Write a log file (default: /var/log/mystic/mystic.log)"),
) -> None:
    ctx.obj = {"verbose": verbose}
    if verbose or log_file:
        setup_file_logging(log_file=log_file, verbose=verbose)


@app.command()
def services() -> None:
    """List known services with their data directory ownership."""
    table = Table(title=f"Known Services ({len(Service)})", show_header=True, header_style="bold cyan")
    table.add_column("Service", style="bold")
    table.add_column("UID:GID", justify="right")
    table.add_column("Mode", justify="right")
    table.add_column("Hostname")
    table.add_column("Description", style="dim")

    for service in Service:
        descriptor = service.descriptor
        table.add_row(
            descriptor.name,
            descriptor.owner,
            descriptor.mode_str,
            descriptor.hostname or "-",
            descriptor.description,
        )
    console.print(table)


@app.command()
def version() -> None:
    """Show mystic version."""
    console.print(f"mystic {__version__}")


# Attach modular subcommands
register_image_commands(app, console)
register_volume_commands(app, console)
register_bundle_commands(app, console)
register_deploy_commands(app, console)

if __name__ == "__main__":
    app()
