"""Exceptions raised by pymirror."""

from pathlib import Path
from typing import Optional, Union


class MirrorError(Exception):
    """Base exception for all pymirror errors."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        super().__init__(message)
        self.path = path


class MirrorConfigError(MirrorError):
    """Invalid configuration or sync roots."""


class MetadataError(MirrorError):
    """The state of a path could not be determined.

    Raised for metadata query failures other than plain non-existence
    (permission denied, I/O error, ...). A missing path is not an error.
    """


class PathTooLongError(MetadataError):
    """Composing an entry path would exceed the supported path length."""


class CopyError(MirrorError):
    """Open, read, write or map failure while copying a file."""


class RemoveError(MirrorError):
    """A file or directory could not be removed."""


class CreateError(MirrorError):
    """A destination directory could not be created."""
