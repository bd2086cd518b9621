"""CLI progress display for batch operations.

This module provides a Rich-based progress bar fed by the ProgressEvent
callbacks of the sync engines.
"""

from typing import Optional

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from .sync.progress import ProgressCallback, ProgressEvent


class BatchProgressDisplay:
    """Rich progress bar for a push, pull or backup batch.

    Use as a context manager and pass ``callback`` to the engine. When
    ``enabled`` is False the display does nothing and ``callback`` is None.
    """

    def __init__(self, description: str, enabled: bool = True) -> None:
        self.description = description
        self.enabled = enabled
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    @property
    def callback(self) -> Optional[ProgressCallback]:
        return self._handle_event if self.enabled else None

    def _handle_event(self, event: ProgressEvent) -> None:
        if self._progress is None or self._task is None:
            return
        self._progress.update(
            self._task,
            total=event.total,
            completed=event.completed,
            item=event.current_item,
        )

    def __enter__(self) -> "BatchProgressDisplay":
        if not self.enabled:
            return self
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("[cyan]{task.fields[item]}"),
            TimeElapsedColumn(),
            transient=True,
        )
        self._progress.__enter__()
        self._task = self._progress.add_task(self.description, total=None, item="")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None
