"""Deploy command: bring the stack up on an offline machine."""
from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console

from mystic.cli_support import get_config, handle_cli_error, is_verbose, print_header
from mystic.core.deployer import Deployer
from mystic.core.errors import MysticError

console = Console()


def deploy(
    ctx: typer.Context,
    skip_images: bool = typer.Option(False, "--skip-images", help="Do not load image archives"),
    skip_volumes: bool = typer.Option(False, "--skip-volumes", help="Do not import volume archives"),
    dry_run: bool = typer.Option(False, "--dry-run", "-d", help="Show every step without making changes"),
    project_dir: Optional[str] = typer.Option(None, "--project-dir", help="Project (or bundle) directory to deploy from"),
) -> None:
    """Preflight, load images, set up and import volumes, then start services.

    Image archives are read from docker-images/ and volume archives from
    volume-exports/ inside the project directory.
    """
    print_header(console, "Offline Deployment")
    try:
        config = get_config(project_dir=project_dir)
        deployer = Deployer(
            config,
            console=console,
            dry_run=dry_run,
            skip_images=skip_images,
            skip_volumes=skip_volumes,
        )
        deployer.run()
    except MysticError as e:
        handle_cli_error(e, console, is_verbose(ctx))


def register_deploy_commands(app: typer.Typer, shared_console: Console) -> None:
    """Register the deploy command with the main Typer app."""
    global console
    console = shared_console

    app.command()(deploy)
