"""Snapshots of local source files or remote records."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from .. import mapper
from ..models import ScriptRecord
from ..records_manager import ScriptRecordsManager
from ..workspace import Workspace
from .progress import (
    BackupResult,
    CancellationToken,
    ItemStatus,
    ProgressCallback,
    ProgressEvent,
    mark_not_attempted,
)

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%S"


class BackupEngine:
    """Copies files into new timestamped directories under ``.qcp/backups``.

    A backup never writes into an existing directory: when the timestamped
    name is taken a ``-1``, ``-2``, ... suffix is added.
    """

    def __init__(
        self,
        workspace: Workspace,
        records_manager: Optional[ScriptRecordsManager] = None,
    ):
        """Initialize backup engine.

        Args:
            workspace: Project workspace
            records_manager: Needed for remote backups only
        """
        self.workspace = workspace
        self.records_manager = records_manager

    def new_directory(self, kind: str) -> Path:
        """Create and return a new, unused backup directory.

        Args:
            kind: Prefix describing the backup ('local', 'remote', 'overwrite')
        """
        self.workspace.backup_root.mkdir(parents=True, exist_ok=True)
        base = f"{kind}-{datetime.now().strftime(TIMESTAMP_FORMAT)}"
        candidate = self.workspace.backup_root / base
        suffix = 0
        while True:
            try:
                candidate.mkdir()
                logger.debug(f"Created backup directory {candidate}")
                return candidate
            except FileExistsError:
                suffix += 1
                candidate = self.workspace.backup_root / f"{base}-{suffix}"

    def backup_file(self, source: Path, directory: Path) -> Path:
        """Copy one local file into ``directory``."""
        return self.workspace.copy(source, _unused_path(directory / source.name))

    def backup_record(self, record: ScriptRecord, directory: Path) -> Path:
        """Write one record's code into ``directory``."""
        target = directory / mapper.file_name_for(record)
        if target.exists():
            target = target.with_name(f"{target.stem}-{record.id}{target.suffix}")
        return self.workspace.write_text(
            _unused_path(target), mapper.to_file(record)
        )

    def backup_local(
        self,
        cancel_token: Optional[CancellationToken] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> BackupResult:
        """Copy every source file into a new backup directory.

        Returns:
            BackupResult with one item per file and the backup directory
        """
        files = self.workspace.source_files()
        result = BackupResult(directory=self.new_directory("local"))
        total = len(files)

        for index, source in enumerate(files):
            label = self.workspace.relative(source)
            if cancel_token is not None and cancel_token.cancelled:
                mark_not_attempted(
                    result, [self.workspace.relative(f) for f in files[index:]]
                )
                break
            try:
                self.backup_file(source, result.directory)
                result.add(label, ItemStatus.SUCCEEDED)
            except OSError as e:
                logger.warning(f"Failed to back up {label}: {e}")
                result.add(label, ItemStatus.FAILED, error=e)
            if progress_callback:
                progress_callback(ProgressEvent(index + 1, total, label))

        logger.info(f"Local backup to {result.directory}: {result.summary()}")
        return result

    def backup_from_remote(
        self,
        cancel_token: Optional[CancellationToken] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> BackupResult:
        """Fetch every record and write it into a new backup directory.

        The project configuration is not touched.

        Raises:
            RemoteQueryError: If the records cannot be fetched
        """
        if self.records_manager is None:
            raise ValueError("A records manager is required for remote backups")

        records = self.records_manager.fetch_all(with_code=True)
        result = BackupResult(directory=self.new_directory("remote"))
        total = len(records)

        for index, record in enumerate(records):
            if cancel_token is not None and cancel_token.cancelled:
                mark_not_attempted(result, [r.name for r in records[index:]])
                break
            try:
                self.backup_record(record, result.directory)
                result.add(record.name, ItemStatus.SUCCEEDED, record=record)
            except OSError as e:
                logger.warning(f"Failed to back up record {record.id}: {e}")
                result.add(record.name, ItemStatus.FAILED, record=record, error=e)
            if progress_callback:
                progress_callback(ProgressEvent(index + 1, total, record.name))

        logger.info(f"Remote backup to {result.directory}: {result.summary()}")
        return result


def _unused_path(path: Path) -> Path:
    """Return ``path`` or a ``-N`` variant of it that does not exist yet."""
    candidate = path
    suffix = 0
    while candidate.exists():
        suffix += 1
        candidate = path.with_name(f"{path.stem}-{suffix}{path.suffix}")
    return candidate
