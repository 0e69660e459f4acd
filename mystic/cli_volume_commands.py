"""Volume export/import/setup command group."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from mystic.cli_support import (
    HELP_OPTIONS,
    finish_batch,
    get_config,
    handle_cli_error,
    is_verbose,
    print_header,
)
from mystic.core.catalog import parse_service_selection
from mystic.core.errors import MysticError
from mystic.core.volume_setup import VolumeSetup
from mystic.core.volumes import VolumeExporter, VolumeImporter

VolumesApp = typer.Typer(
    help="Export, import and prepare service data volumes",
    add_completion=False,
    context_settings=HELP_OPTIONS,
)

_console: Console = Console()


def register_volume_commands(app: typer.Typer, console: Console) -> None:
    """Attach volume commands to the primary CLI."""
    global _console
    _console = console
    app.add_typer(VolumesApp, name="volumes")


@VolumesApp.command("export")
def volumes_export(
    ctx: typer.Context,
    output_dir: Optional[Path] = typer.Argument(None, help="Directory to write volume archives (default: ./volume-exports)"),
    all_services: bool = typer.Option(False, "--all", help="Export every known service"),
    services: Optional[str] = typer.Option(None, "--services", help="Comma-separated services to export"),
    root: Optional[str] = typer.Option(None, "--root", "-r", help="Volume root directory (default: $MYSTIC_ROOT or /data/docker)"),
    compose_file: Optional[str] = typer.Option(None, "--file", "-f", help="Compose file used to resolve container names"),
    force: bool = typer.Option(False, "--force", help="Stop running containers without asking"),
    dry_run: bool = typer.Option(False, "--dry-run", "-d", help="Show what would be exported without changes"),
    strict: bool = typer.Option(False, "--strict", help="Exit with status 2 if any volume fails to export"),
) -> None:
    """Archive service data directories with their numeric ownership.

    Running containers are stopped for the duration of their archive and
    restarted afterwards. Must run as root outside --dry-run.
    """
    print_header(_console, "Volume Export")
    try:
        selection = parse_service_selection(all_services, services)
        config = get_config(root_path=root, compose_file=compose_file)
        exporter = VolumeExporter(config, console=_console, dry_run=dry_run, force=force)
        report = exporter.run(selection, output_dir or config.volumes_dir)
    except MysticError as e:
        handle_cli_error(e, _console, is_verbose(ctx))
    finish_batch(report, strict)


@VolumesApp.command("import")
def volumes_import(
    ctx: typer.Context,
    input_dir: Optional[Path] = typer.Argument(None, help="Directory holding *-volume.tar.gz archives (default: ./volume-exports)"),
    root: Optional[str] = typer.Option(None, "--root", "-r", help="Volume root directory (default: $MYSTIC_ROOT or /data/docker)"),
    pattern: Optional[str] = typer.Option(None, "--filter", help="Only import archives whose filename contains this text"),
    force: bool = typer.Option(False, "--force", "--yes", "-y", help="Skip prompts and overwrite existing directories"),
    dry_run: bool = typer.Option(False, "--dry-run", "-d", help="Show what would be imported without changes"),
    strict: bool = typer.Option(False, "--strict", help="Exit with status 2 if any archive fails to extract"),
) -> None:
    """Extract volume archives under the volume root, preserving ownership."""
    print_header(_console, "Volume Import")
    try:
        config = get_config(root_path=root)
        importer = VolumeImporter(config, console=_console, dry_run=dry_run, force=force)
        report = importer.run(input_dir or config.volumes_dir, pattern)
    except MysticError as e:
        handle_cli_error(e, _console, is_verbose(ctx))
    finish_batch(report, strict)


@VolumesApp.command("setup")
def volumes_setup(
    ctx: typer.Context,
    root_path: Optional[str] = typer.Argument(None, help="Volume root directory (default: $MYSTIC_ROOT or /data/docker)"),
    compose_file: Optional[str] = typer.Option(None, "--file", "-f", help="Docker compose file to read bind mounts from"),
    dry_run: bool = typer.Option(False, "--dry-run", "-d", help="Show what would be created without changes"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show every path and the ownership applied"),
) -> None:
    """Create bind-mount directories with per-service ownership and permissions."""
    print_header(_console, "Volume Setup")
    try:
        config = get_config(root_path=root_path, compose_file=compose_file)
        setup = VolumeSetup(config, console=_console, dry_run=dry_run, verbose=verbose)
        setup.run()
    except MysticError as e:
        handle_cli_error(e, _console, verbose or is_verbose(ctx))
