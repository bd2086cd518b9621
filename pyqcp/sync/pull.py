"""Pull custom script records from Salesforce into local files."""

import logging
from collections import defaultdict
from pathlib import Path
from typing import Optional, Union

from .. import mapper
from ..config import ConfigStore, LocalFileEntry
from ..exceptions import (
    AmbiguousNameError,
    CancelledError,
    FileConflictError,
    NotLinkedError,
    QcpError,
    RecordNotFoundError,
)
from ..models import Ambiguous, NotFound, ScriptRecord
from ..overwrite import OverwriteAction, OverwriteResolver
from ..records_manager import ScriptRecordsManager
from ..workspace import SRC_DIR
from .backup import BackupEngine
from .progress import (
    BatchResult,
    CancellationToken,
    ItemStatus,
    ProgressCallback,
    ProgressEvent,
    mark_not_attempted,
)

logger = logging.getLogger(__name__)


class PullEngine:
    """Writes remote records to the source directory and links them."""

    def __init__(
        self,
        records_manager: ScriptRecordsManager,
        store: ConfigStore,
        backup_engine: Optional[BackupEngine] = None,
    ):
        """Initialize pull engine.

        Args:
            records_manager: Remote record access
            store: Project configuration store (mutated and saved)
            backup_engine: Used when the BACKUP overwrite action is chosen
        """
        self.records_manager = records_manager
        self.store = store
        self.workspace = store.workspace
        self.backup_engine = backup_engine or BackupEngine(
            self.workspace, records_manager
        )
        self._overwrite_dir: Optional[Path] = None

    def list_remote(self) -> list[ScriptRecord]:
        """Get every record without code, for picking one to pull."""
        return self.records_manager.fetch_all(with_code=False)

    def pull_all(
        self,
        resolver: Optional[OverwriteResolver] = None,
        cancel_token: Optional[CancellationToken] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> BatchResult:
        """Pull every record into the source directory.

        Args:
            resolver: Overwrite decisions for changed local files
            cancel_token: Checked before each record
            progress_callback: Called after each record

        Returns:
            BatchResult with one item per record

        Raises:
            RemoteQueryError: If the records cannot be fetched (nothing written)
        """
        records = self.records_manager.fetch_all(with_code=True)
        resolver = resolver or OverwriteResolver()
        result = BatchResult()
        self._overwrite_dir = None
        total = len(records)
        ambiguous = self._find_duplicate_names(records)

        try:
            for index, record in enumerate(records):
                if cancel_token is not None and cancel_token.cancelled:
                    mark_not_attempted(result, [r.name for r in records[index:]])
                    break
                try:
                    if record.id in ambiguous:
                        raise ambiguous[record.id]
                    status = self._apply_record(record, resolver)
                    result.add(record.name, status, record=record)
                except CancelledError:
                    mark_not_attempted(result, [r.name for r in records[index:]])
                    break
                except (QcpError, OSError) as e:
                    logger.warning(f"Failed to pull {record.name}: {e}")
                    result.add(record.name, ItemStatus.FAILED, record=record, error=e)
                if progress_callback:
                    progress_callback(ProgressEvent(index + 1, total, record.name))
        finally:
            if result.succeeded:
                self.store.save()

        logger.info(f"Pulled records: {result.summary()}")
        return result

    def pull_one(
        self,
        target: Union[LocalFileEntry, str],
        resolver: Optional[OverwriteResolver] = None,
    ) -> Optional[ScriptRecord]:
        """Pull a single record.

        Args:
            target: A linked file entry, or the ID of a record picked from
                list_remote()
            resolver: Overwrite decision if the local file differs

        Returns:
            The pulled record, or None if the local file was kept

        Raises:
            NotLinkedError: If ``target`` is an unlinked file entry
            RecordNotFoundError: If the record no longer exists
        """
        if isinstance(target, LocalFileEntry):
            if not target.linked_record_id:
                raise NotLinkedError(target.file_path)
            record_id = target.linked_record_id
        else:
            record_id = target

        lookup = self.records_manager.get_by_id(record_id)
        if isinstance(lookup, NotFound):
            raise RecordNotFoundError(record_id)
        return self._pull_single(lookup.record, resolver)

    def pull_by_name(
        self, name: str, resolver: Optional[OverwriteResolver] = None
    ) -> Optional[ScriptRecord]:
        """Pull the record named ``name``.

        Raises:
            AmbiguousNameError: If several records share the name
            FileConflictError: If the target file is linked to another record
            RecordNotFoundError: If no record has the name
        """
        lookup = self.records_manager.find_by_name(name)
        if isinstance(lookup, Ambiguous):
            raise AmbiguousNameError(lookup.name, lookup.ids)
        if isinstance(lookup, NotFound):
            raise RecordNotFoundError(name, f'No record named "{name}" on Salesforce.')
        return self._pull_single(lookup.record, resolver)

    def _pull_single(
        self, record: ScriptRecord, resolver: Optional[OverwriteResolver]
    ) -> Optional[ScriptRecord]:
        self._overwrite_dir = None
        try:
            status = self._apply_record(record, resolver or OverwriteResolver())
        except CancelledError:
            return None
        if status != ItemStatus.SUCCEEDED:
            return None
        self.store.save()
        return record

    def target_path(self, record: ScriptRecord) -> str:
        """Workspace-relative path a record is pulled to.

        A record that is already linked keeps its file, even if the file name
        no longer matches the record name.
        """
        entry = self.store.config.find_by_record_id(record.id)
        if entry is not None:
            return entry.file_path
        return f"{SRC_DIR}/{mapper.file_name_for(record)}"

    def _find_duplicate_names(
        self, records: list[ScriptRecord]
    ) -> dict[str, AmbiguousNameError]:
        """Find unlinked records sharing a name and therefore a target file.

        Records with different names that land on a file linked to another
        record fail later with FileConflictError.
        """
        groups: dict[tuple[str, str], list[ScriptRecord]] = defaultdict(list)
        for record in records:
            groups[(self.target_path(record), record.name)].append(record)

        duplicates: dict[str, AmbiguousNameError] = {}
        for (target, name), group in groups.items():
            if len(group) < 2:
                continue
            ids = [r.id for r in group]
            for record in group:
                entry = self.store.config.find_by_record_id(record.id)
                if entry is not None and entry.file_path == target:
                    continue
                duplicates[record.id] = AmbiguousNameError(name, ids)
        return duplicates

    def _apply_record(
        self, record: ScriptRecord, resolver: OverwriteResolver
    ) -> ItemStatus:
        """Write one record to its file and link it.

        Raises:
            CancelledError: If the resolver cancelled the batch
            FileConflictError: If the target file is linked to another record
        """
        rel_path = self.target_path(record)
        path = self.workspace.resolve(rel_path)
        content = mapper.to_file(record)

        entry = self.store.config.find_by_path(rel_path)
        if entry is not None and entry.linked_record_id not in (None, record.id):
            raise FileConflictError(rel_path, entry.linked_record_id)

        if path.exists() and self.workspace.read_text(path) != content:
            action = resolver.resolve(rel_path)
            if action == OverwriteAction.CANCEL:
                raise CancelledError(f"Pull cancelled at {rel_path}")
            if action == OverwriteAction.SKIP:
                logger.debug(f"Keeping local {rel_path}")
                return ItemStatus.SKIPPED_BY_POLICY
            if action == OverwriteAction.BACKUP:
                if self._overwrite_dir is None:
                    self._overwrite_dir = self.backup_engine.new_directory("overwrite")
                self.backup_engine.backup_file(path, self._overwrite_dir)

        self.workspace.write_text(path, content)
        self.store.config.link(path.name, rel_path, record.id)
        logger.debug(f"Pulled {record.id} to {rel_path}")
        return ItemStatus.SUCCEEDED
