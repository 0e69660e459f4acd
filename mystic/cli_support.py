"""Shared utilities for mystic CLI modules."""
from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console

from mystic.core.config import MysticConfig, load_config
from mystic.core.output import (  # noqa: F401 - re-exported for command modules
    print_error,
    print_header,
    print_info,
    print_success,
    print_warning,
)
from mystic.core.results import BatchReport

HELP_OPTIONS = {"help_option_names": ["-h", "--help"]}


def setup_file_logging(log_file: Optional[str] = None, verbose: bool = False) -> None:
    """Set up file logging for CLI commands.

    Args:
        log_file: Path to log file (optional)
        verbose: Enable verbose logging
    """
    from mystic.core.logger import setup_file_logging as _setup_file_logging
    _setup_file_logging(log_file=log_file, verbose=verbose)


def get_config(
    project_dir: Optional[str] = None,
    root_path: Optional[str] = None,
    compose_file: Optional[str] = None,
) -> MysticConfig:
    """Resolve configuration for a command from its flags."""
    return load_config(project_dir=project_dir, root_path=root_path, compose_file=compose_file)


def is_verbose(ctx: typer.Context) -> bool:
    """Return the global --verbose flag set by the root callback."""
    return bool((ctx.obj or {}).get("verbose"))


def handle_cli_error(
    e: Exception,
    console: Console,
    verbose: bool = False,
    exit_code: int = 1
) -> None:
    """Handle CLI errors with consistent formatting.

    Args:
        e: Exception to handle
        console: Rich console for output
        verbose: Show exception traceback if True
        exit_code: Exit code to use
    """
    print_error(console, str(e))
    if verbose:
        console.print_exception()
    raise typer.Exit(exit_code)


def finish_batch(report: BatchReport, strict: bool = False) -> None:
    """Exit with the batch's status when it is not a plain success."""
    code = report.exit_code(strict)
    if code:
        raise typer.Exit(code)
