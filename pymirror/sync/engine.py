"""Core sync engine: one-way mirroring of a directory tree."""

import logging
import time
from pathlib import Path
from typing import Optional, Union

from ..exceptions import CreateError, MirrorError
from ..output import OutputFormatter
from ..utils import DEFAULT_MMAP_MIN_SIZE, join_entry_path
from .comparator import CompareOutcome, FileComparator
from .copier import CopyStrategy
from .operations import SyncOperations
from .roots import SyncRoots
from .scanner import EntryKind, classify, list_directory

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _follow_root(path: PathLike) -> Path:
    """Resolve a destination root given as a symlink to a directory.

    Only the root is followed; entries below it are still classified
    without following links.
    """
    path = Path(path)
    if path.is_symlink() and path.is_dir():
        return path.resolve()
    return path


class SyncEngine:
    """Brings a destination tree in line with a source tree.

    Each directory level is handled in two passes:

    1. adoption: files missing from the destination or older there are
       copied over; subdirectories are queued when recursion is enabled.
    2. pruning: destination entries with no source counterpart are
       deleted, whole subtrees included. This happens whether or not
       recursion is enabled.

    Pending directory pairs live on an explicit work list instead of the
    call stack. A failure on one entry is logged and counted, and the
    remaining siblings are still processed.
    """

    def __init__(
        self,
        operations: Optional[SyncOperations] = None,
        comparator: Optional[FileComparator] = None,
        output: Optional[OutputFormatter] = None,
    ):
        """Initialize sync engine.

        Args:
            operations: Filesystem operations (copy, delete, mkdir)
            comparator: File comparator
            output: Output formatter for displaying status
        """
        self.operations = operations or SyncOperations()
        self.comparator = comparator or FileComparator()
        self.output = output or OutputFormatter()

    def sync(self, roots: SyncRoots) -> dict:
        """Run one sync cycle for a pair of roots.

        Args:
            roots: Source/destination roots and options

        Returns:
            Dictionary with sync statistics

        Examples:
            >>> engine = SyncEngine()
            >>> roots = SyncRoots(Path("/srv/data"), Path("/mnt/mirror"), True)
            >>> stats = engine.sync(roots)
            >>> print(f"Copied {stats['copies']} file(s)")
        """
        start_time = time.time()
        logger.info(f"Sync started: {roots}")

        stats = self.sync_directory(
            roots.source,
            roots.destination,
            recursive=roots.recursive,
            copy_threshold=roots.copy_threshold,
        )

        elapsed = time.time() - start_time
        logger.info(
            "Sync finished in %.2fs: %d copied, %d file(s) removed, "
            "%d dir(s) removed, %d error(s)",
            elapsed,
            stats["copies"],
            stats["deleted_files"],
            stats["deleted_dirs"],
            stats["errors"],
        )

        if not self.output.quiet:
            self._display_summary(stats)

        return stats

    def sync_directory(
        self,
        src_dir: PathLike,
        dest_dir: PathLike,
        recursive: bool = False,
        copy_threshold: int = DEFAULT_MMAP_MIN_SIZE,
        stats: Optional[dict] = None,
    ) -> dict:
        """Mirror one directory into another.

        Args:
            src_dir: Source directory
            dest_dir: Destination directory (created if missing)
            recursive: Whether to descend into source subdirectories
            copy_threshold: Minimum size for the mapped copy (bytes)
            stats: Statistics dictionary to update (created if None)

        Returns:
            Dictionary with sync statistics
        """
        if stats is None:
            stats = self._create_empty_stats()

        pending: list[tuple[Path, Path]] = [(Path(src_dir), _follow_root(dest_dir))]
        while pending:
            src, dest = pending.pop()
            subdirs = self._sync_level(src, dest, recursive, copy_threshold, stats)
            # Reversed so subdirectories are visited in listing order
            pending.extend(reversed(subdirs))

        return stats

    def _create_empty_stats(self) -> dict:
        """Create an empty statistics dictionary.

        Returns:
            Dictionary with zero counts for all stat categories
        """
        return {
            "copies": 0,
            "copies_mapped": 0,
            "created_dirs": 0,
            "deleted_files": 0,
            "deleted_dirs": 0,
            "unchanged": 0,
            "skips": 0,
            "errors": 0,
        }

    def _sync_level(
        self,
        src: Path,
        dest: Path,
        recursive: bool,
        copy_threshold: int,
        stats: dict,
    ) -> list[tuple[Path, Path]]:
        """Run the adoption and pruning passes for one directory level.

        Returns:
            Subdirectory pairs still to be synced
        """
        try:
            self._ensure_directory(dest, stats)
        except MirrorError as e:
            self._record_failure(dest, e, stats)
            return []

        try:
            src_names = list_directory(src)
        except MirrorError as e:
            # Never prune against a source that could not be read
            self._record_failure(src, e, stats)
            return []

        subdirs: list[tuple[Path, Path]] = []
        for name in src_names:
            try:
                subdir = self._adopt_entry(
                    src, dest, name, recursive, copy_threshold, stats
                )
            except (MirrorError, OSError) as e:
                self._record_failure(src / name, e, stats)
                continue
            if subdir is not None:
                subdirs.append(subdir)

        try:
            dest_names = list_directory(dest)
        except MirrorError as e:
            self._record_failure(dest, e, stats)
            return subdirs

        for name in dest_names:
            try:
                self._prune_entry(src, dest, name, stats)
            except (MirrorError, OSError) as e:
                self._record_failure(dest / name, e, stats)

        return subdirs

    def _ensure_directory(self, dest: Path, stats: dict) -> None:
        """Create a destination directory if it does not exist yet."""
        kind = classify(dest)
        if kind == EntryKind.DIRECTORY:
            return
        if kind != EntryKind.MISSING:
            raise CreateError(
                f"Destination exists but is not a directory: {dest}", path=dest
            )
        if self.operations.create_directory(dest):
            stats["created_dirs"] += 1

    def _adopt_entry(
        self,
        src: Path,
        dest: Path,
        name: str,
        recursive: bool,
        copy_threshold: int,
        stats: dict,
    ) -> Optional[tuple[Path, Path]]:
        """Propagate one source entry to the destination.

        Returns:
            (source, destination) subdirectory pair to descend into, or None
        """
        src_path = join_entry_path(src, name)
        dest_path = join_entry_path(dest, name)
        src_kind = classify(src_path)

        if src_kind == EntryKind.DIRECTORY:
            if not recursive:
                logger.debug(f"Not descending into {src_path} (recursion disabled)")
                return None
            dest_kind = classify(dest_path)
            if dest_kind == EntryKind.FILE:
                # A file took the place of the directory: replace it
                if self.operations.delete_file(dest_path):
                    stats["deleted_files"] += 1
            elif dest_kind == EntryKind.OTHER:
                logger.warning(f"Skipping {src_path}: {dest_path} is in the way")
                stats["skips"] += 1
                return None
            return src_path, dest_path

        if src_kind != EntryKind.FILE:
            logger.debug(f"Skipping {src_path} ({src_kind.value})")
            stats["skips"] += 1
            return None

        dest_kind = classify(dest_path)
        if dest_kind == EntryKind.DIRECTORY:
            # A directory took the place of the file: replace it
            removed = self.operations.remove_tree(dest_path)
            stats["deleted_files"] += removed["deleted_files"]
            stats["deleted_dirs"] += removed["deleted_dirs"]
        elif dest_kind == EntryKind.OTHER:
            logger.warning(f"Skipping {src_path}: {dest_path} is in the way")
            stats["skips"] += 1
            return None

        outcome = self.comparator.compare(src_path, dest_path)
        if outcome.needs_copy:
            strategy = self.operations.copy_file(src_path, dest_path, copy_threshold)
            stats["copies"] += 1
            if strategy == CopyStrategy.MAPPED:
                stats["copies_mapped"] += 1
        elif outcome == CompareOutcome.SRC_MISSING:
            logger.debug(f"{src_path} vanished during the scan")
        else:
            stats["unchanged"] += 1
        return None

    def _prune_entry(self, src: Path, dest: Path, name: str, stats: dict) -> None:
        """Delete one destination entry if its source counterpart is gone."""
        src_path = join_entry_path(src, name)
        dest_path = join_entry_path(dest, name)

        dest_kind = classify(dest_path)
        if dest_kind in (EntryKind.OTHER, EntryKind.MISSING):
            return

        if self.comparator.compare(src_path, dest_path) != CompareOutcome.SRC_MISSING:
            return

        if dest_kind == EntryKind.DIRECTORY:
            removed = self.operations.remove_tree(dest_path)
            stats["deleted_files"] += removed["deleted_files"]
            stats["deleted_dirs"] += removed["deleted_dirs"]
        elif self.operations.delete_file(dest_path):
            stats["deleted_files"] += 1

    def _record_failure(self, path: PathLike, error: Exception, stats: dict) -> None:
        """Log a failed entry and count it; the cycle goes on."""
        stats["errors"] += 1
        logger.error(f"Failed to sync {path}: {error}")
        if not self.output.quiet:
            self.output.error(f"Error syncing {path}: {error}")

    def _display_summary(self, stats: dict) -> None:
        """Display sync summary.

        Args:
            stats: Statistics dictionary
        """
        self.output.print("")
        if stats["errors"]:
            self.output.warning(f"Sync finished with {stats['errors']} error(s)")
        else:
            self.output.success("Sync complete!")

        total_actions = (
            stats["copies"]
            + stats["created_dirs"]
            + stats["deleted_files"]
            + stats["deleted_dirs"]
        )

        if total_actions > 0:
            self.output.info(f"Total actions: {total_actions}")
            if stats["copies"] > 0:
                self.output.info(
                    f"  Copied: {stats['copies']} ({stats['copies_mapped']} via mmap)"
                )
            if stats["created_dirs"] > 0:
                self.output.info(f"  Directories created: {stats['created_dirs']}")
            if stats["deleted_files"] > 0:
                self.output.info(f"  Files removed: {stats['deleted_files']}")
            if stats["deleted_dirs"] > 0:
                self.output.info(f"  Directories removed: {stats['deleted_dirs']}")
        else:
            self.output.info("No changes needed - everything is in sync!")
