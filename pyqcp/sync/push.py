"""Push local source files to Salesforce custom script records."""

import logging
from pathlib import Path
from typing import Optional, Union

from .. import mapper
from ..config import ConfigStore
from ..exceptions import (
    AmbiguousNameError,
    CancelledError,
    QcpError,
    RecordNotFoundError,
)
from ..models import Ambiguous, NotFound, ScriptRecord
from ..overwrite import OverwriteAction, OverwriteResolver
from ..records_manager import ScriptRecordsManager
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

PathLike = Union[str, Path]


class PushEngine:
    """Writes local file content back to remote records.

    Linked files update their record. Unlinked files are matched by name: no
    match creates a record, one match needs an overwrite decision, several
    matches fail with AmbiguousNameError so a name never maps to two records.
    """

    def __init__(
        self,
        records_manager: ScriptRecordsManager,
        store: ConfigStore,
        backup_engine: Optional[BackupEngine] = None,
    ):
        """Initialize push engine.

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

    def push_one(
        self,
        file_path: PathLike,
        resolver: Optional[OverwriteResolver] = None,
    ) -> Optional[ScriptRecord]:
        """Push one file.

        The config mapping is updated and saved before returning.

        Args:
            file_path: Workspace-relative or absolute path of the file
            resolver: Overwrite decision for an unlinked file whose name
                matches an existing record

        Returns:
            The written record, or None if the resolver chose to skip

        Raises:
            RecordNotFoundError: If the linked record no longer exists
            AmbiguousNameError: If several records share the file's name
            RemoteWriteError: If the create or update call fails
            CancelledError: If the resolver cancelled
        """
        resolver = resolver or OverwriteResolver()
        rel_path = self.workspace.relative(file_path)
        content = self.workspace.read_text(file_path)
        entry = self.store.config.find_by_path(rel_path)

        if entry is not None and entry.linked_record_id:
            record = self._update_linked(entry.linked_record_id, content)
        else:
            record = self._push_unlinked(rel_path, content, resolver)
            if record is None:
                return None

        self.store.config.link(Path(rel_path).name, rel_path, record.id)
        self.store.save()
        logger.debug(f"Pushed {rel_path} to {record.id}")
        return record

    def push_all(
        self,
        file_paths: Optional[list[PathLike]] = None,
        resolver: Optional[OverwriteResolver] = None,
        cancel_token: Optional[CancellationToken] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> BatchResult:
        """Push files one after another, continuing past failures.

        Args:
            file_paths: Files to push (default: every source file)
            resolver: Overwrite decisions shared by the whole batch
            cancel_token: Checked before each file
            progress_callback: Called after each file

        Returns:
            BatchResult with one item per file
        """
        if file_paths is None:
            file_paths = list(self.workspace.source_files())
        labels = [self.workspace.relative(p) for p in file_paths]
        resolver = resolver or OverwriteResolver()
        result = BatchResult()
        self._overwrite_dir = None
        total = len(labels)

        for index, (path, label) in enumerate(zip(file_paths, labels)):
            if cancel_token is not None and cancel_token.cancelled:
                mark_not_attempted(result, labels[index:])
                break
            try:
                record = self.push_one(path, resolver)
                if record is None:
                    result.add(label, ItemStatus.SKIPPED_BY_POLICY)
                else:
                    result.add(label, ItemStatus.SUCCEEDED, record=record)
            except CancelledError:
                mark_not_attempted(result, labels[index:])
                break
            except (QcpError, OSError) as e:
                logger.warning(f"Failed to push {label}: {e}")
                result.add(label, ItemStatus.FAILED, error=e)
            if progress_callback:
                progress_callback(ProgressEvent(index + 1, total, label))

        logger.info(f"Pushed files: {result.summary()}")
        return result

    def _update_linked(self, record_id: str, content: str) -> ScriptRecord:
        # The linked record is overwritten without comparing it to the last
        # pulled version.
        lookup = self.records_manager.get_by_id(record_id)
        if isinstance(lookup, NotFound):
            raise RecordNotFoundError(
                record_id,
                f"Linked record {record_id} no longer exists on Salesforce. "
                "Relink the file or remove its config entry to create a new record.",
            )
        existing = lookup.record
        self.records_manager.update(
            record_id, mapper.to_update_payload(content, existing)
        )
        return mapper.from_file(existing, content)

    def _push_unlinked(
        self, rel_path: str, content: str, resolver: OverwriteResolver
    ) -> Optional[ScriptRecord]:
        name = mapper.name_for_file(rel_path)
        lookup = self.records_manager.find_by_name(name)

        if isinstance(lookup, Ambiguous):
            raise AmbiguousNameError(lookup.name, lookup.ids)

        if isinstance(lookup, NotFound):
            record_id = self.records_manager.create(
                mapper.to_create_payload(name, content)
            )
            logger.info(f"Created record {record_id} for {rel_path}")
            return ScriptRecord(id=record_id, name=name, code=content)

        existing = lookup.record
        if mapper.to_file(existing) == content:
            logger.debug(f"{rel_path} matches record {existing.id}, linking only")
            return existing

        action = resolver.resolve(rel_path)
        if action == OverwriteAction.CANCEL:
            raise CancelledError(f"Push cancelled at {rel_path}")
        if action == OverwriteAction.SKIP:
            logger.debug(f"Skipping {rel_path}, record {existing.id} kept")
            return None
        if action == OverwriteAction.BACKUP:
            if self._overwrite_dir is None:
                self._overwrite_dir = self.backup_engine.new_directory("overwrite")
            self.backup_engine.backup_record(existing, self._overwrite_dir)

        self.records_manager.update(
            existing.id, mapper.to_update_payload(content, existing)
        )
        return mapper.from_file(existing, content)
