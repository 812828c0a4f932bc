"""Filesystem operations used by the sync engine.

Every operation that changes the destination tree emits one INFO log line.
"""

import logging
import os
from pathlib import Path
from typing import Optional, Union

from ..exceptions import CreateError, MetadataError, RemoveError
from ..utils import DEFAULT_MMAP_MIN_SIZE, PERM_DIR, join_entry_path
from .copier import CopyStrategy, FileCopier
from .scanner import EntryKind, classify

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _unlink(path: PathLike) -> bool:
    """Delete a single file.

    Returns:
        True if the file was deleted, False if it was already gone

    Raises:
        RemoveError: If the file exists but cannot be deleted
    """
    try:
        os.unlink(path)
    except FileNotFoundError:
        logger.debug(f"File already gone: {path}")
        return False
    except OSError as e:
        raise RemoveError(f"Cannot remove file {path}: {e.strerror}", path=path) from e
    logger.info(f"removed file: {path}")
    return True


class DirectoryRemover:
    """Recursively removes directory trees.

    Files and directories are removed post-order. Entries that are
    neither (symlinks, devices, sockets, ...) are left in place, which
    makes removal of their parent directory fail with RemoveError.

    The walk uses an explicit stack, so tree depth is not bounded by the
    interpreter's recursion limit.
    """

    def remove_tree(self, path: PathLike) -> dict:
        """Remove a directory and everything under it.

        A tree that is already gone is not an error.

        Args:
            path: Directory to remove

        Returns:
            Dictionary with "deleted_files" and "deleted_dirs" counts

        Raises:
            RemoveError: If the tree cannot be emptied or removed
        """
        stats = {"deleted_files": 0, "deleted_dirs": 0}

        # (directory, children_done)
        stack: list[tuple[Path, bool]] = [(Path(path), False)]
        while stack:
            current, children_done = stack.pop()
            if children_done:
                if self._rmdir(current):
                    stats["deleted_dirs"] += 1
                continue

            stack.append((current, True))
            for name in self._list(current):
                try:
                    child = join_entry_path(current, name)
                    kind = classify(child)
                except MetadataError as e:
                    raise RemoveError(str(e), path=e.path) from e

                if kind == EntryKind.DIRECTORY:
                    stack.append((child, False))
                elif kind == EntryKind.FILE:
                    if _unlink(child):
                        stats["deleted_files"] += 1
                elif kind == EntryKind.OTHER:
                    logger.warning(f"Leaving non-regular entry in place: {child}")

        return stats

    def _list(self, directory: Path) -> list[str]:
        """List a directory that is about to be removed."""
        try:
            with os.scandir(directory) as it:
                return [entry.name for entry in it]
        except FileNotFoundError:
            return []
        except OSError as e:
            raise RemoveError(
                f"Cannot list directory {directory}: {e.strerror}", path=directory
            ) from e

    def _rmdir(self, directory: Path) -> bool:
        try:
            os.rmdir(directory)
        except FileNotFoundError:
            logger.debug(f"Directory already gone: {directory}")
            return False
        except OSError as e:
            raise RemoveError(
                f"Cannot remove directory {directory}: {e.strerror}", path=directory
            ) from e
        logger.info(f"removed dir: {directory}")
        return True


class SyncOperations:
    """Destination-side operations with a common interface."""

    def __init__(
        self,
        copier: Optional[FileCopier] = None,
        remover: Optional[DirectoryRemover] = None,
    ):
        """Initialize sync operations.

        Args:
            copier: File copier (defaults to a FileCopier with default buffers)
            remover: Directory remover
        """
        self.copier = copier or FileCopier()
        self.remover = remover or DirectoryRemover()

    def copy_file(
        self,
        src_path: PathLike,
        dest_path: PathLike,
        copy_threshold: int = DEFAULT_MMAP_MIN_SIZE,
    ) -> CopyStrategy:
        """Copy a source file over its destination.

        Args:
            src_path: Source file
            dest_path: Destination file
            copy_threshold: Minimum size for the mapped strategy (bytes)

        Returns:
            The strategy used

        Raises:
            CopyError: If the copy failed
        """
        strategy = self.copier.copy(src_path, dest_path, copy_threshold)
        logger.info(f"copied ({strategy.value}) {src_path} to {dest_path}")
        return strategy

    def delete_file(self, path: PathLike) -> bool:
        """Delete a destination file.

        Returns:
            True if deleted, False if it no longer existed

        Raises:
            RemoveError: If the file could not be deleted
        """
        return _unlink(path)

    def remove_tree(self, path: PathLike) -> dict:
        """Remove a destination directory tree.

        Returns:
            Dictionary with "deleted_files" and "deleted_dirs" counts

        Raises:
            RemoveError: If the tree could not be removed
        """
        return self.remover.remove_tree(path)

    def create_directory(self, path: PathLike) -> bool:
        """Create a destination directory with mode 0755.

        Returns:
            True if created, False if a directory was already there

        Raises:
            CreateError: If the directory could not be created
        """
        try:
            os.mkdir(path, PERM_DIR)
            # mkdir's mode is filtered by the umask
            os.chmod(path, PERM_DIR)
        except FileExistsError as e:
            if os.path.isdir(path) and not os.path.islink(path):
                return False
            raise CreateError(
                f"Cannot create directory {path}: a non-directory is in the way",
                path=path,
            ) from e
        except OSError as e:
            raise CreateError(
                f"Cannot create directory {path}: {e.strerror}", path=path
            ) from e
        logger.info(f"created dir: {path}")
        return True
