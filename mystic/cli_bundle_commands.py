"""Bundle command: package services for an offline machine."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from mystic.cli_support import get_config, handle_cli_error, is_verbose, print_header
from mystic.core.bundler import Bundler
from mystic.core.catalog import parse_service_selection
from mystic.core.errors import MysticError

console = Console()


def bundle(
    ctx: typer.Context,
    output_dir: Path = typer.Argument(..., help="Directory to create the bundle in"),
    all_services: bool = typer.Option(False, "--all", help="Bundle every known service"),
    services: Optional[str] = typer.Option(None, "--services", help="Comma-separated services to bundle"),
    skip_images: bool = typer.Option(False, "--skip-images", help="Do not save Docker images"),
    skip_volumes: bool = typer.Option(False, "--skip-volumes", help="Do not export volume data"),
    dry_run: bool = typer.Option(False, "--dry-run", "-d", help="Show what would be bundled without changes"),
    project_dir: Optional[str] = typer.Option(None, "--project-dir", help="Project directory holding docker-compose.yml and .env"),
) -> None:
    """Package repo files, images and volume data into one directory.

    The result can be copied to an offline machine and deployed there
    with `mystic deploy`. Must run as root outside --dry-run.
    """
    print_header(console, "Service Bundle")
    try:
        selection = parse_service_selection(all_services, services)
        config = get_config(project_dir=project_dir)
        bundler = Bundler(
            config,
            console=console,
            dry_run=dry_run,
            skip_images=skip_images,
            skip_volumes=skip_volumes,
        )
        bundler.run(selection, output_dir)
    except MysticError as e:
        handle_cli_error(e, console, is_verbose(ctx))


def register_bundle_commands(app: typer.Typer, shared_console: Console) -> None:
    """Register the bundle command with the main Typer app."""
    global console
    console = shared_console

    app.command()(bundle)
