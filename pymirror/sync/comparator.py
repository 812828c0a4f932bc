"""File comparison logic for sync operations."""

from enum import Enum
from pathlib import Path
from typing import Union

from .scanner import get_mtime


class CompareOutcome(str, Enum):
    """Result of comparing a source path against its destination."""

    IN_SYNC = "in_sync"
    """Destination is at least as new as the source"""

    DEST_MISSING = "dest_missing"
    """Source exists, destination does not"""

    SRC_NEWER = "src_newer"
    """Source was modified after the destination"""

    SRC_MISSING = "src_missing"
    """Source does not exist"""

    @property
    def needs_copy(self) -> bool:
        """Whether the source should be copied over the destination."""
        return self in (CompareOutcome.DEST_MISSING, CompareOutcome.SRC_NEWER)


class FileComparator:
    """Compares a source path with its destination counterpart.

    Only modification times and existence are consulted; contents are
    never read. "Newer" is strict, so equal timestamps count as in sync.
    """

    def compare(
        self, src_path: Union[str, Path], dest_path: Union[str, Path]
    ) -> CompareOutcome:
        """Compare a source path with a destination path.

        Args:
            src_path: Path in the source tree
            dest_path: Corresponding path in the destination tree

        Returns:
            CompareOutcome for the pair

        Raises:
            MetadataError: If either path cannot be inspected for a reason
                other than non-existence
        """
        src_mtime = get_mtime(src_path)
        if src_mtime is None:
            return CompareOutcome.SRC_MISSING

        dest_mtime = get_mtime(dest_path)
        if dest_mtime is None:
            return CompareOutcome.DEST_MISSING

        if src_mtime > dest_mtime:
            return CompareOutcome.SRC_NEWER
        return CompareOutcome.IN_SYNC
