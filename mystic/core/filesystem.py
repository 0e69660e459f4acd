"""Filesystem helpers shared by the transfer operations."""
import os
from pathlib import Path
from typing import List, Optional, Union

PathLike = Union[str, Path]


def human_size(num_bytes: int) -> str:
    """Format a byte count the way ``du -h`` does (1.5G, 320M, 4.0K)."""
    size = float(num_bytes)
    for unit in ("B", "K", "M", "G", "T"):
        if size < 1024 or unit == "T":
            if unit == "B":
                return f"{int(size)}B"
            return f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}T"


def path_size(path: PathLike) -> int:
    """Return the apparent size in bytes of a file or directory tree.

    Symlinks are not followed; unreadable entries are ignored.

    Raises:
        FileNotFoundError: path does not exist
    """
    path = Path(path)
    if path.is_symlink():
        return 0
    if not path.exists():
        raise FileNotFoundError(f"No such file or directory: {path}")
    if path.is_file():
        return path.stat().st_size

    total = 0
    for dirpath, _dirnames, filenames in os.walk(path):
        for name in filenames:
            entry = Path(dirpath) / name
            try:
                if not entry.is_symlink():
                    total += entry.stat().st_size
            except OSError:
                continue
    return total


def describe_size(path: PathLike) -> str:
    """Human-readable size of path, or 'unknown' when it cannot be read."""
    try:
        return human_size(path_size(path))
    except OSError:
        return "unknown"


def find_archives(
    directory: PathLike,
    suffix: str,
    pattern: Optional[str] = None,
) -> List[Path]:
    """List files directly inside directory ending with suffix.

    Args:
        directory: Directory to scan (not recursive)
        suffix: Required filename suffix, e.g. ".tar" or "-volume.tar.gz"
        pattern: Optional case-insensitive substring the filename must contain

    Returns:
        Matching files sorted by name
    """
    directory = Path(directory)
    needle = pattern.lower() if pattern else None

    matches = []
    for entry in directory.iterdir():
        if not entry.is_file() or not entry.name.endswith(suffix):
            continue
        if needle and needle not in entry.name.lower():
            continue
        matches.append(entry)

    return sorted(matches)


def is_root() -> bool:
    """Return True when running with effective UID 0."""
    return os.geteuid() == 0
