"""PyMirror - periodic one-way mirroring of a directory tree."""

from .daemon import MirrorDaemon
from .exceptions import (
    CopyError,
    CreateError,
    MetadataError,
    MirrorConfigError,
    MirrorError,
    PathTooLongError,
    RemoveError,
)
from .sync import SyncEngine, SyncRoots
from .utils import format_size, parse_size

__all__ = [
    "MirrorDaemon",
    "SyncEngine",
    "SyncRoots",
    "MirrorError",
    "MirrorConfigError",
    "MetadataError",
    "PathTooLongError",
    "CopyError",
    "RemoveError",
    "CreateError",
    "format_size",
    "parse_size",
]
