"""Sync engine for osgrep - initial reconciliation and incremental watching."""

from .comparator import FileComparator, SyncAction, SyncDecision
from .engine import SyncEngine
from .ignore import (
    IGNORE_FILE_NAMES,
    IgnoreFileManager,
    IgnoreRule,
    load_ignore_file,
)
from .operations import SyncOperations
from .progress import SyncProgress, SyncProgressTracker, SyncResult
from .scanner import DirectoryScanner, LocalFile, external_id_for
from .watcher import IncrementalWatcher

__all__ = [
    "SyncEngine",
    "IncrementalWatcher",
    "SyncOperations",
    "DirectoryScanner",
    "LocalFile",
    "external_id_for",
    "FileComparator",
    "SyncAction",
    "SyncDecision",
    "SyncProgress",
    "SyncProgressTracker",
    "SyncResult",
    "IgnoreFileManager",
    "IgnoreRule",
    "IGNORE_FILE_NAMES",
    "load_ignore_file",
]
