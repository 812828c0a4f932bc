"""Utility functions and constants for pymirror."""

import os
from pathlib import Path
from typing import Union

from .exceptions import PathTooLongError

# =============================================================================
# Constants for file operations
# =============================================================================

# Mode of created destination files (rw-r--r--)
PERM_FILE: int = 0o644

# Mode of created destination directories (rwxr-xr-x)
PERM_DIR: int = 0o755

# Buffer size for the streamed copy (32 KB)
COPY_REGULAR_BUFSIZE: int = 32 * 1024

# Chunk size for the memory-mapped copy (32 KB)
COPY_MMAP_BUFSIZE: int = 32 * 1024

# Files at least this large are copied through mmap (8 MB)
DEFAULT_MMAP_MIN_SIZE: int = 8 * 1024 * 1024

# Seconds the daemon sleeps between two sync cycles
DEFAULT_SLEEP_TIME: int = 300

# Longest path (in bytes) the engine will compose
MAX_PATH_LENGTH: int = 4096


# =============================================================================
# Path utilities
# =============================================================================


def join_entry_path(parent: Union[str, Path], name: str) -> Path:
    """Join a directory path and an entry name.

    Args:
        parent: Directory containing the entry
        name: Entry name as returned by the directory listing

    Returns:
        Path of the entry

    Raises:
        PathTooLongError: If the composed path exceeds MAX_PATH_LENGTH bytes

    Examples:
        >>> join_entry_path("/srv/data", "a.txt")
        PosixPath('/srv/data/a.txt')
    """
    path = Path(parent) / name
    length = len(os.fsencode(path))
    if length > MAX_PATH_LENGTH:
        raise PathTooLongError(
            f"Path is {length} bytes long (limit {MAX_PATH_LENGTH}): {path}",
            path=path,
        )
    return path


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


def parse_size(value: Union[str, int]) -> int:
    """Parse a byte count, accepting K/M/G suffixes.

    Args:
        value: Integer or string such as "8388608", "512K", "8M" or "1G"

    Returns:
        Number of bytes

    Raises:
        ValueError: If the value cannot be parsed or is negative

    Examples:
        >>> parse_size("8M")
        8388608
        >>> parse_size(1024)
        1024
    """
    if isinstance(value, int):
        size = value
    else:
        text = value.strip().upper()
        multipliers = {"K": 1024, "M": 1024 * 1024, "G": 1024 * 1024 * 1024}
        factor = 1
        if text.endswith("B"):
            text = text[:-1]
        if text and text[-1] in multipliers:
            factor = multipliers[text[-1]]
            text = text[:-1]
        try:
            size = int(text) * factor
        except ValueError as e:
            raise ValueError(f"Invalid size: {value!r}") from e

    if size < 0:
        raise ValueError(f"Size cannot be negative: {value!r}")
    return size
