"""Logging for mystic.

Operators read the Rich console; the log file is for after-the-fact
debugging of a transfer. Every module logger hangs off the ``mystic``
logger, so one file handler there captures all of them.
"""
import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

console = Console()

LOG_DIR = Path("/var/log/mystic")
LOG_FILE = LOG_DIR / "mystic.log"
FALLBACK_LOG_FILE = Path("/tmp/mystic.log")

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_file_logging_configured = False


def _open_log_file(target: Path) -> logging.FileHandler:
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(target)
    except PermissionError:
        return logging.FileHandler(FALLBACK_LOG_FILE)


def setup_file_logging(log_file: str = None, verbose: bool = False):
    """Record mystic log events in a file.

    Args:
        log_file: Log file path (default: /var/log/mystic/mystic.log,
            or /tmp/mystic.log when that directory is not writable)
        verbose: Record DEBUG events as well as INFO
    """
    global _file_logging_configured

    if _file_logging_configured:
        return

    level = logging.DEBUG if verbose else logging.INFO
    file_handler = _open_log_file(Path(log_file) if log_file else LOG_FILE)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    mystic_logger = logging.getLogger("mystic")
    mystic_logger.addHandler(file_handler)
    mystic_logger.setLevel(level)

    _file_logging_configured = True
    mystic_logger.info(f"Logging to {file_handler.baseFilename}")


def get_logger(name: str) -> logging.Logger:
    """Module logger whose warnings and errors also reach the console.

    Progress lines go through the console helpers in mystic.core.output,
    so only WARNING and above are echoed here.
    """
    logger = logging.getLogger(name)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=console, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        handler.setLevel(logging.WARNING)
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)

    return logger
