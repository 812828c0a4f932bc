"""Sync roots: the immutable configuration a sync cycle runs with."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..exceptions import MirrorConfigError
from ..utils import DEFAULT_MMAP_MIN_SIZE, parse_size


@dataclass(frozen=True)
class SyncRoots:
    """Source and destination trees plus the options of a mirror.

    Built once at startup and passed explicitly to the engine; never
    mutated afterwards.

    Examples:
        >>> roots = SyncRoots(source="/srv/data", destination="/mnt/backup")
        >>> roots.recursive
        False
    """

    source: Path
    """Root of the tree that is mirrored"""

    destination: Path
    """Root of the mirror"""

    recursive: bool = False
    """Whether subdirectories of the source are mirrored too"""

    copy_threshold: int = DEFAULT_MMAP_MIN_SIZE
    """Files at least this large (bytes) are copied through mmap"""

    def __post_init__(self) -> None:
        # Frozen dataclass: normalize through object.__setattr__
        if not isinstance(self.source, Path):
            object.__setattr__(self, "source", Path(self.source))
        if not isinstance(self.destination, Path):
            object.__setattr__(self, "destination", Path(self.destination))
        object.__setattr__(self, "recursive", bool(self.recursive))
        threshold = parse_size(self.copy_threshold)
        object.__setattr__(self, "copy_threshold", threshold)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncRoots":
        """Create sync roots from a dictionary.

        Args:
            data: Dictionary with keys "source", "destination" and
                optionally "recursive" and "copyThreshold"

        Returns:
            SyncRoots instance

        Raises:
            ValueError: If required fields are missing
        """
        required = ["source", "destination"]
        missing = [key for key in required if key not in data]
        if missing:
            raise ValueError(f"Missing required fields: {', '.join(missing)}")

        return cls(
            source=Path(data["source"]),
            destination=Path(data["destination"]),
            recursive=data.get("recursive", False),
            copy_threshold=data.get("copyThreshold", DEFAULT_MMAP_MIN_SIZE),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert sync roots to a dictionary."""
        return {
            "source": str(self.source),
            "destination": str(self.destination),
            "recursive": self.recursive,
            "copyThreshold": self.copy_threshold,
        }

    @classmethod
    def parse_literal(cls, literal: str, recursive: bool = False) -> "SyncRoots":
        """Parse a "SOURCE:DESTINATION" literal.

        Args:
            literal: String of the form "/src/dir:/dest/dir"
            recursive: Recursion flag for the result

        Returns:
            SyncRoots instance

        Raises:
            ValueError: If the literal is malformed
        """
        parts = literal.split(":")
        if len(parts) != 2:
            raise ValueError(
                f"Invalid sync roots literal: {literal!r} "
                "(expected SOURCE:DESTINATION)"
            )
        source, destination = parts
        if not source or not destination:
            raise ValueError("Source and destination cannot be empty")
        return cls(
            source=Path(source), destination=Path(destination), recursive=recursive
        )

    def validate(self) -> None:
        """Check that the roots can be mirrored.

        Raises:
            MirrorConfigError: If a root is not an existing directory, or
                the roots are the same directory or nested in each other
        """
        roots = (("Source", self.source), ("Destination", self.destination))
        for label, root in roots:
            if not root.exists():
                raise MirrorConfigError(f"{label} does not exist: {root}", path=root)
            if not root.is_dir():
                raise MirrorConfigError(
                    f"{label} is not a directory: {root}", path=root
                )

        source = self.source.resolve()
        destination = self.destination.resolve()
        if source == destination:
            raise MirrorConfigError(
                f"Source and destination are the same directory: {source}"
            )
        if source in destination.parents or destination in source.parents:
            raise MirrorConfigError(
                f"Source and destination must not be nested: {source}, {destination}"
            )

    def __str__(self) -> str:
        mode = "recursive" if self.recursive else "flat"
        return f"{self.source} -> {self.destination} ({mode})"
