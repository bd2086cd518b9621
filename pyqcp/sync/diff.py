"""Read-only comparisons between local files and remote records."""

import difflib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from .. import mapper
from ..config import SyncConfig
from ..exceptions import NotLinkedError, QcpError, RemoteRecordNotFoundError
from ..models import NotFound, ScriptRecord
from ..records_manager import ScriptRecordsManager
from ..workspace import Workspace

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class CompareResult:
    """Result of comparing two code bodies."""

    left_label: str
    right_label: str
    left_content: str
    right_content: str
    diff: list[str] = field(default_factory=list)
    """Unified diff lines (empty when the contents are identical)"""

    metadata_changes: dict[str, tuple[Optional[str], Optional[str]]] = field(
        default_factory=dict
    )
    """Metadata fields that differ, as (left, right)"""

    @property
    def identical(self) -> bool:
        return not self.diff and not self.metadata_changes

    def to_dict(self) -> dict:
        return {
            "left": self.left_label,
            "right": self.right_label,
            "identical": self.identical,
            "diff": self.diff,
            "metadata_changes": {
                name: {"left": left, "right": right}
                for name, (left, right) in self.metadata_changes.items()
            },
        }


def compare_contents(
    left_label: str,
    left_content: str,
    right_label: str,
    right_content: str,
    context_lines: int = 3,
) -> CompareResult:
    """Build a CompareResult for two code bodies."""
    diff = list(
        difflib.unified_diff(
            left_content.splitlines(keepends=True),
            right_content.splitlines(keepends=True),
            fromfile=left_label,
            tofile=right_label,
            n=context_lines,
        )
    )
    return CompareResult(
        left_label=left_label,
        right_label=right_label,
        left_content=left_content,
        right_content=right_content,
        diff=diff,
    )


def compare_metadata(
    left: ScriptRecord, right: ScriptRecord
) -> dict[str, tuple[Optional[str], Optional[str]]]:
    """Metadata fields whose values differ between two records."""
    left_values = left.metadata()
    right_values = right.metadata()
    return {
        name: (left_values[name], right_values[name])
        for name in left_values
        if left_values[name] != right_values[name]
    }


class DiffEngine:
    """Compares local files and remote records without changing anything."""

    def __init__(
        self,
        records_manager: Optional[ScriptRecordsManager],
        workspace: Workspace,
        config: Optional[SyncConfig] = None,
    ):
        """Initialize diff engine.

        Args:
            records_manager: Remote record access, or None to compare local
                files only
            workspace: Project workspace
            config: Project configuration (read only)
        """
        self.records_manager = records_manager
        self.workspace = workspace
        self.config = config if config is not None else SyncConfig()

    def _get_record(self, record_id: str) -> ScriptRecord:
        if self.records_manager is None:
            raise QcpError("Comparing with Salesforce records needs a connection")
        lookup = self.records_manager.get_by_id(record_id)
        if isinstance(lookup, NotFound):
            raise RemoteRecordNotFoundError(record_id)
        return lookup.record

    @staticmethod
    def _record_label(record: ScriptRecord) -> str:
        return f"sfdc:{record.name} ({record.id})"

    def compare_with_linked(self, file_path: PathLike) -> CompareResult:
        """Compare a local file with the record it is linked to.

        Raises:
            NotLinkedError: If the file has no linked record
            RemoteRecordNotFoundError: If the linked record was deleted
        """
        rel_path = self.workspace.relative(file_path)
        entry = self.config.find_by_path(rel_path)
        if entry is None or not entry.linked_record_id:
            raise NotLinkedError(rel_path)
        return self.compare_with_remote(file_path, entry.linked_record_id)

    def compare_with_remote(self, file_path: PathLike, record_id: str) -> CompareResult:
        """Compare a local file with any record.

        Raises:
            RemoteRecordNotFoundError: If the record does not exist
        """
        rel_path = self.workspace.relative(file_path)
        local_content = self.workspace.read_text(file_path)
        record = self._get_record(record_id)
        logger.debug(f"Comparing {rel_path} with {record_id}")
        return compare_contents(
            rel_path,
            local_content,
            self._record_label(record),
            mapper.to_file(record),
        )

    def compare_local_files(self, left: PathLike, right: PathLike) -> CompareResult:
        """Compare two local files."""
        return compare_contents(
            self.workspace.relative(left),
            self.workspace.read_text(left),
            self.workspace.relative(right),
            self.workspace.read_text(right),
        )

    def compare_remote_records(
        self,
        left_id: str,
        right_id: str,
        include_metadata: bool = False,
    ) -> CompareResult:
        """Compare two records.

        Args:
            left_id: ID of the first record
            right_id: ID of the second record
            include_metadata: Also report differing metadata fields

        Raises:
            RemoteRecordNotFoundError: If either record does not exist
        """
        left = self._get_record(left_id)
        right = self._get_record(right_id)
        result = compare_contents(
            self._record_label(left),
            mapper.to_file(left),
            self._record_label(right),
            mapper.to_file(right),
        )
        if include_metadata:
            result.metadata_changes = compare_metadata(left, right)
        return result
