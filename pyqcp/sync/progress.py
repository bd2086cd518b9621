"""Progress events, cancellation and batch results for sync operations."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from ..models import ScriptRecord


@dataclass(frozen=True)
class ProgressEvent:
    """Emitted after each item of a batch."""

    completed: int
    """Number of items handled so far (including this one)"""

    total: int
    """Number of items in the batch"""

    current_item: str
    """Label of the item that was just handled"""


ProgressCallback = Callable[[ProgressEvent], None]


class CancellationToken:
    """Cooperative cancellation flag polled between batch items."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ItemStatus(str, Enum):
    """Outcome of a single batch item."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED_BY_POLICY = "skipped_by_policy"
    NOT_ATTEMPTED = "not_attempted"


@dataclass
class BatchItem:
    """Result of one item in a batch."""

    item: str
    status: ItemStatus
    record: Optional[ScriptRecord] = None
    error: Optional[Exception] = None


@dataclass
class BatchResult:
    """Ordered results of a push, pull or backup batch."""

    items: list[BatchItem] = field(default_factory=list)
    cancelled: bool = False

    def add(
        self,
        item: str,
        status: ItemStatus,
        record: Optional[ScriptRecord] = None,
        error: Optional[Exception] = None,
    ) -> BatchItem:
        entry = BatchItem(item=item, status=status, record=record, error=error)
        self.items.append(entry)
        return entry

    def _with_status(self, status: ItemStatus) -> list[BatchItem]:
        return [i for i in self.items if i.status == status]

    @property
    def succeeded(self) -> list[BatchItem]:
        return self._with_status(ItemStatus.SUCCEEDED)

    @property
    def failed(self) -> list[BatchItem]:
        return self._with_status(ItemStatus.FAILED)

    @property
    def skipped_by_policy(self) -> list[BatchItem]:
        return self._with_status(ItemStatus.SKIPPED_BY_POLICY)

    @property
    def not_attempted(self) -> list[BatchItem]:
        return self._with_status(ItemStatus.NOT_ATTEMPTED)

    @property
    def records(self) -> list[ScriptRecord]:
        """Records of the succeeded items."""
        return [i.record for i in self.succeeded if i.record is not None]

    @property
    def total(self) -> int:
        return len(self.items)

    def counts(self) -> dict[str, int]:
        return {
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "skipped": len(self.skipped_by_policy),
            "not_attempted": len(self.not_attempted),
        }

    def summary(self) -> str:
        """One-line summary distinguishing every outcome."""
        counts = self.counts()
        text = (
            f"{counts['succeeded']} succeeded, {counts['failed']} failed, "
            f"{counts['skipped']} skipped, {counts['not_attempted']} not attempted"
        )
        if self.cancelled:
            text += " (cancelled)"
        return text

    def to_dict(self) -> dict:
        return {
            **self.counts(),
            "cancelled": self.cancelled,
            "items": [
                {
                    "item": i.item,
                    "status": i.status.value,
                    "record_id": i.record.id if i.record else None,
                    "error": str(i.error) if i.error else None,
                }
                for i in self.items
            ],
        }


@dataclass
class BackupResult(BatchResult):
    """Batch result of a backup, with the directory that was written."""

    directory: Optional[Path] = None

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["directory"] = str(self.directory) if self.directory else None
        return data


def mark_not_attempted(result: BatchResult, remaining: list[str]) -> None:
    """Record items that were never started because the batch was cancelled."""
    result.cancelled = True
    for item in remaining:
        result.add(item, ItemStatus.NOT_ATTEMPTED)
