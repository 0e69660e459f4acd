"""Image save/load command group."""
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
from mystic.core.errors import MysticError
from mystic.core.images import ImageLoader, ImageSaver

ImagesApp = typer.Typer(
    help="Save and load Docker images for offline transfer",
    add_completion=False,
    context_settings=HELP_OPTIONS,
)

_console: Console = Console()


def register_image_commands(app: typer.Typer, console: Console) -> None:
    """Attach image commands to the primary CLI."""
    global _console
    _console = console
    app.add_typer(ImagesApp, name="images")


@ImagesApp.command("save")
def images_save(
    ctx: typer.Context,
    output_dir: Optional[Path] = typer.Argument(None, help="Directory to write image archives (default: ./docker-images)"),
    compose_file: Optional[str] = typer.Option(None, "--file", "-f", help="Docker compose file (default: ./docker-compose.yml)"),
    pattern: Optional[str] = typer.Option(None, "--filter", help="Only save images containing this text"),
    dry_run: bool = typer.Option(False, "--dry-run", "-d", help="Show what would be saved without saving"),
    project_dir: Optional[str] = typer.Option(None, "--project-dir", help="Project directory holding docker-compose.yml and .env"),
) -> None:
    """Pull every image in the compose file and save each as a .tar archive."""
    print_header(_console, "Docker Image Export")
    try:
        config = get_config(project_dir=project_dir, compose_file=compose_file)
        saver = ImageSaver(config, console=_console, dry_run=dry_run)
        report = saver.run(output_dir or config.images_dir, pattern)
    except MysticError as e:
        handle_cli_error(e, _console, is_verbose(ctx))
    finish_batch(report)


@ImagesApp.command("load")
def images_load(
    ctx: typer.Context,
    input_dir: Optional[Path] = typer.Argument(None, help="Directory holding image .tar archives (default: ./docker-images)"),
    pattern: Optional[str] = typer.Option(None, "--filter", help="Only load archives whose filename contains this text"),
    dry_run: bool = typer.Option(False, "--dry-run", "-d", help="Show what would be loaded without loading"),
    strict: bool = typer.Option(False, "--strict", help="Exit with status 2 if any archive fails to load"),
) -> None:
    """Load image archives into the local Docker runtime."""
    print_header(_console, "Docker Image Import")
    try:
        config = get_config()
        loader = ImageLoader(console=_console, dry_run=dry_run)
        report = loader.run(input_dir or config.images_dir, pattern)
    except MysticError as e:
        handle_cli_error(e, _console, is_verbose(ctx))
    finish_batch(report, strict)
