"""Size-adaptive file copy for sync operations.

Two strategies produce byte-identical output:

- streamed: read the source in fixed-size chunks into a reusable buffer
  and write each chunk to the destination.
- mapped: map the whole source read-only and write it out chunk by
  chunk, the final partial chunk with its exact remaining length.

Files at least ``copy_threshold`` bytes long use the mapped strategy.
The destination is always truncated (or created) with mode 0644; source
permissions, ownership and timestamps are not carried over.
"""

import logging
import mmap
import os
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Union

from ..exceptions import CopyError
from ..utils import (
    COPY_MMAP_BUFSIZE,
    COPY_REGULAR_BUFSIZE,
    DEFAULT_MMAP_MIN_SIZE,
    PERM_FILE,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class CopyStrategy(str, Enum):
    """How a file's bytes are moved to the destination."""

    STREAMED = "regular"
    """Buffered read/write loop"""

    MAPPED = "mmap"
    """Memory-mapped source"""


class FileCopier:
    """Copies single files, picking a strategy by source size."""

    def __init__(
        self,
        buffer_size: int = COPY_REGULAR_BUFSIZE,
        chunk_size: int = COPY_MMAP_BUFSIZE,
    ):
        """Initialize file copier.

        Args:
            buffer_size: Buffer size for the streamed strategy (bytes)
            chunk_size: Chunk size for the mapped strategy (bytes)
        """
        if buffer_size <= 0 or chunk_size <= 0:
            raise ValueError("Buffer and chunk sizes must be positive")
        self.buffer_size = buffer_size
        self.chunk_size = chunk_size

    @staticmethod
    def select_strategy(size: int, copy_threshold: int) -> CopyStrategy:
        """Pick the copy strategy for a file of the given size.

        The threshold is inclusive on the mapped side.

        Examples:
            >>> FileCopier.select_strategy(8, 8)
            <CopyStrategy.MAPPED: 'mmap'>
            >>> FileCopier.select_strategy(7, 8)
            <CopyStrategy.STREAMED: 'regular'>
        """
        if size >= copy_threshold:
            return CopyStrategy.MAPPED
        return CopyStrategy.STREAMED

    def copy(
        self,
        src_path: PathLike,
        dest_path: PathLike,
        copy_threshold: int = DEFAULT_MMAP_MIN_SIZE,
    ) -> CopyStrategy:
        """Copy a file, choosing the strategy from the source size.

        Args:
            src_path: File to copy
            dest_path: Destination file (truncated or created)
            copy_threshold: Minimum size for the mapped strategy (bytes)

        Returns:
            The strategy that was used

        Raises:
            CopyError: On any open, stat, read, write or map failure
        """
        try:
            size = os.stat(src_path).st_size
        except OSError as e:
            raise CopyError(
                f"Cannot stat source {src_path}: {e.strerror}", path=src_path
            ) from e

        strategy = self.select_strategy(size, copy_threshold)
        if strategy == CopyStrategy.MAPPED:
            self.copy_mapped(src_path, dest_path)
        else:
            self.copy_streamed(src_path, dest_path)
        return strategy

    def _open_destination(self, dest_path: PathLike) -> BinaryIO:
        """Open the destination for writing, truncating it.

        The mode is forced to PERM_FILE even if the file already existed
        or the process umask would strip bits.
        """
        try:
            fd = os.open(dest_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, PERM_FILE)
        except OSError as e:
            raise CopyError(
                f"Cannot open destination {dest_path}: {e.strerror}", path=dest_path
            ) from e

        try:
            os.fchmod(fd, PERM_FILE)
            return os.fdopen(fd, "wb")
        except OSError as e:
            os.close(fd)
            raise CopyError(
                f"Cannot prepare destination {dest_path}: {e.strerror}",
                path=dest_path,
            ) from e

    def copy_streamed(self, src_path: PathLike, dest_path: PathLike) -> None:
        """Copy a file with a read/write loop over a reusable buffer.

        Raises:
            CopyError: On any I/O failure
        """
        try:
            with open(src_path, "rb", buffering=0) as src_file:
                with self._open_destination(dest_path) as dest_file:
                    buffer = bytearray(self.buffer_size)
                    with memoryview(buffer) as view:
                        while True:
                            nread = src_file.readinto(buffer)
                            if not nread:
                                break
                            dest_file.write(view[:nread])
        except OSError as e:
            raise CopyError(
                f"Copy of {src_path} to {dest_path} failed: {e}", path=src_path
            ) from e
        logger.debug(f"Streamed copy {src_path} -> {dest_path} done")

    def copy_mapped(self, src_path: PathLike, dest_path: PathLike) -> None:
        """Copy a file by mapping the source into memory.

        Raises:
            CopyError: On any I/O or mapping failure
        """
        try:
            with open(src_path, "rb") as src_file:
                size = os.fstat(src_file.fileno()).st_size
                with self._open_destination(dest_path) as dest_file:
                    # An empty file cannot be mapped; truncation is the whole copy
                    if size == 0:
                        return
                    with mmap.mmap(
                        src_file.fileno(), 0, access=mmap.ACCESS_READ
                    ) as mapped:
                        self._write_chunks(mapped, dest_file)
        except (OSError, ValueError) as e:
            raise CopyError(
                f"Mapped copy of {src_path} to {dest_path} failed: {e}",
                path=src_path,
            ) from e
        logger.debug(f"Mapped copy {src_path} -> {dest_path} done")

    def _write_chunks(self, mapped: mmap.mmap, dest_file: BinaryIO) -> None:
        """Write a mapping to a file in fixed-size chunks."""
        size = len(mapped)
        chunk = self.chunk_size
        buffer = bytearray(chunk)

        offset = 0
        while offset + chunk <= size:
            buffer[:] = mapped[offset : offset + chunk]
            dest_file.write(buffer)
            offset += chunk

        remaining = size - offset
        if remaining > 0:
            tail = bytearray(mapped[offset:size])
            dest_file.write(tail)
