"""Sync engines for pyqcp - pull, push, diff and backup of custom scripts."""

from .backup import BackupEngine
from .diff import CompareResult, DiffEngine, compare_contents
from .progress import (
    BackupResult,
    BatchItem,
    BatchResult,
    CancellationToken,
    ItemStatus,
    ProgressEvent,
)
from .pull import PullEngine
from .push import PushEngine

__all__ = [
    "BackupEngine",
    "BackupResult",
    "BatchItem",
    "BatchResult",
    "CancellationToken",
    "CompareResult",
    "DiffEngine",
    "ItemStatus",
    "ProgressEvent",
    "PullEngine",
    "PushEngine",
    "compare_contents",
]
