"""Entry classification and directory listing for sync operations."""

import errno
import logging
import os
import stat
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from ..exceptions import MetadataError

logger = logging.getLogger(__name__)

# errno values meaning "nothing there" rather than "could not look"
_MISSING_ERRNOS = (errno.ENOENT, errno.ENOTDIR)


class EntryKind(str, Enum):
    """Kind of filesystem object a path points to."""

    FILE = "file"
    """Regular file"""

    DIRECTORY = "directory"
    """Directory"""

    OTHER = "other"
    """Anything else (symlink, device, socket, fifo, ...)"""

    MISSING = "missing"
    """Nothing exists at the path"""


def _lstat(path: Union[str, Path]) -> Optional[os.stat_result]:
    """Query metadata for a path without following symlinks.

    Returns:
        stat result, or None if the path does not exist

    Raises:
        MetadataError: If the query failed for any other reason
    """
    try:
        return os.lstat(path)
    except OSError as e:
        if e.errno in _MISSING_ERRNOS:
            return None
        raise MetadataError(f"Cannot stat {path}: {e.strerror}", path=path) from e


def classify(path: Union[str, Path]) -> EntryKind:
    """Classify the object at a path.

    The result reflects the filesystem at call time and is never cached.

    Args:
        path: Path to inspect

    Returns:
        EntryKind of the path

    Raises:
        MetadataError: If the metadata query fails for a reason other
            than non-existence (e.g. permission denied)

    Examples:
        >>> classify("/etc/hostname")
        <EntryKind.FILE: 'file'>
        >>> classify("/no/such/path")
        <EntryKind.MISSING: 'missing'>
    """
    st = _lstat(path)
    if st is None:
        return EntryKind.MISSING
    if stat.S_ISREG(st.st_mode):
        return EntryKind.FILE
    if stat.S_ISDIR(st.st_mode):
        return EntryKind.DIRECTORY
    return EntryKind.OTHER


def get_mtime(path: Union[str, Path]) -> Optional[float]:
    """Return the modification time of a path, or None if it does not exist.

    Raises:
        MetadataError: If the metadata query fails for another reason
    """
    st = _lstat(path)
    if st is None:
        return None
    return st.st_mtime


@dataclass(frozen=True)
class FilesystemEntry:
    """A path together with the kind it had when it was inspected."""

    path: Path
    """Absolute or root-relative path to the entry"""

    kind: EntryKind
    """Kind of the entry at inspection time"""

    size: int = 0
    """Size in bytes (0 unless kind is FILE)"""

    mtime: Optional[float] = None
    """Last modification time (Unix timestamp), None if missing"""

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "FilesystemEntry":
        """Inspect a path and build an entry for it.

        Args:
            path: Path to inspect

        Returns:
            FilesystemEntry instance (kind MISSING if nothing is there)
        """
        path = Path(path)
        st = _lstat(path)
        if st is None:
            return cls(path=path, kind=EntryKind.MISSING)
        if stat.S_ISREG(st.st_mode):
            kind = EntryKind.FILE
        elif stat.S_ISDIR(st.st_mode):
            kind = EntryKind.DIRECTORY
        else:
            kind = EntryKind.OTHER
        size = st.st_size if kind == EntryKind.FILE else 0
        return cls(path=path, kind=kind, size=size, mtime=st.st_mtime)

    @property
    def exists(self) -> bool:
        """Whether something existed at the path."""
        return self.kind != EntryKind.MISSING


def list_directory(directory: Union[str, Path]) -> list[str]:
    """List the entry names directly under a directory.

    The self/parent pseudo-entries are never returned and no ordering
    is imposed; names come back in whatever order the OS lists them.

    Args:
        directory: Directory to list

    Returns:
        List of entry names

    Raises:
        MetadataError: If the directory cannot be opened or read
    """
    try:
        with os.scandir(directory) as it:
            return [entry.name for entry in it]
    except OSError as e:
        raise MetadataError(
            f"Cannot list directory {directory}: {e.strerror}", path=directory
        ) from e
