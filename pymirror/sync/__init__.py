"""Sync engine for PyMirror - one-way mirroring of directory trees."""

from .comparator import CompareOutcome, FileComparator
from .copier import CopyStrategy, FileCopier
from .engine import SyncEngine
from .operations import DirectoryRemover, SyncOperations
from .roots import SyncRoots
from .scanner import EntryKind, FilesystemEntry, classify, list_directory

__all__ = [
    "SyncEngine",
    "SyncRoots",
    "SyncOperations",
    "DirectoryRemover",
    "FileCopier",
    "CopyStrategy",
    "FileComparator",
    "CompareOutcome",
    "EntryKind",
    "FilesystemEntry",
    "classify",
    "list_directory",
]
