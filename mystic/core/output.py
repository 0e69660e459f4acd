"""Console output helpers shared by operations and CLI commands."""
from typing import Iterable, Optional, Tuple

from rich.console import Console

from mystic.core.results import BatchReport


def print_success(console: Console, message: str, prefix: str = "✓") -> None:
    """Print success message with consistent formatting."""
    console.print(f"[green]{prefix}[/green] {message}")


def print_error(console: Console, message: str, prefix: str = "✗") -> None:
    """Print error message with consistent formatting."""
    console.print(f"[red]{prefix}[/red] {message}")


def print_warning(console: Console, message: str, prefix: str = "⚠") -> None:
    """Print warning message with consistent formatting."""
    console.print(f"[yellow]{prefix}[/yellow] {message}")


def print_info(console: Console, message: str, prefix: str = "ℹ") -> None:
    """Print info message with consistent formatting."""
    console.print(f"[cyan]{prefix}[/cyan] {message}")


def print_header(console: Console, title: str) -> None:
    """Print a banner for the start of a command."""
    console.rule(f"[bold blue]{title} - Mystic Home Server[/bold blue]")
    console.print()


def print_section(console: Console, title: str) -> None:
    console.print()
    console.print(f"[blue]--- {title} ---[/blue]")


def print_settings(console: Console, settings: Iterable[Tuple[str, object]]) -> None:
    """Print the resolved configuration block."""
    print_info(console, "Configuration:")
    for label, value in settings:
        console.print(f"  {label + ':':<15}{value}")
    console.print()


def print_progress(console: Console, current: int, total: int, message: str) -> None:
    console.print(f"[blue]\\[{current}/{total}][/blue] {message}")


def print_batch_summary(
    console: Console,
    title: str,
    report: BatchReport,
    label: str,
    rows: Iterable[Tuple[str, object]] = (),
    unit: Optional[str] = None,
) -> None:
    """Print the closing summary of a batch command.

    Args:
        console: Rich console for output
        title: Completion banner, e.g. "Export Complete!"
        report: Batch results
        label: Counter label, e.g. "Volumes Exported"
        rows: Extra (label, value) lines printed before the counter
        unit: Noun used in the failure warning, e.g. "volume(s)"
    """
    console.print()
    console.rule(f"[green]{title}[/green]")
    for row_label, value in rows:
        console.print(f"{row_label + ':':<18}[blue]{value}[/blue]")

    done = "0 (dry run)" if report.dry_run else str(report.succeeded)
    console.print(f"{label + ':':<18}[blue]{done} / {report.total}[/blue]")

    if report.failed and unit:
        print_warning(console, f"{report.failed} {unit} failed")
        for failure in report.failures:
            console.print(f"  [red]-[/red] {failure.name}: {failure.reason}")
