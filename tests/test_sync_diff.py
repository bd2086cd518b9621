"""Tests for comparing local files and remote records."""

from unittest.mock import Mock

import pytest

from pyqcp.config import LocalFileEntry, SyncConfig
from pyqcp.exceptions import NotLinkedError, QcpError, RemoteRecordNotFoundError
from pyqcp.models import Found, NotFound, ScriptRecord, UserRef
from pyqcp.records_manager import ScriptRecordsManager
from pyqcp.sync import DiffEngine, compare_contents
from pyqcp.workspace import Workspace


class TestCompareContents:
    """Tests for compare_contents."""

    def test_identical(self):
        """Test that identical content produces no diff."""
        result = compare_contents("a", "x\ny\n", "b", "x\ny\n")
        assert result.identical
        assert result.diff == []

    def test_unified_diff(self):
        """Test the unified diff output."""
        result = compare_contents("left.ts", "x\ny\n", "right.ts", "x\nz\n")

        assert not result.identical
        assert result.diff[0] == "--- left.ts\n"
        assert result.diff[1] == "+++ right.ts\n"
        assert "-y\n" in result.diff
        assert "+z\n" in result.diff

    def test_line_endings_differ(self):
        """Test that a CRLF change is reported as a difference."""
        assert not compare_contents("a", "x\n", "b", "x\r\n").identical

    def test_to_dict(self):
        """Test JSON serialization."""
        data = compare_contents("a", "x", "b", "x").to_dict()
        assert data == {
            "left": "a",
            "right": "b",
            "identical": True,
            "diff": [],
            "metadata_changes": {},
        }


class TestDiffEngine:
    """Tests for DiffEngine."""

    @pytest.fixture
    def workspace(self, tmp_path):
        """Create a workspace with one source file."""
        ws = Workspace(tmp_path)
        ws.write_text("src/One.ts", "local\n")
        ws.write_text("src/Copy.ts", "local\n")
        return ws

    @pytest.fixture
    def manager(self):
        """Create a mock records manager."""
        return Mock(spec=ScriptRecordsManager)

    @pytest.fixture
    def engine(self, manager, workspace):
        """Create a diff engine with src/One.ts linked to a1."""
        config = SyncConfig(files=[LocalFileEntry("One.ts", "src/One.ts", "a1")])
        return DiffEngine(manager, workspace, config)

    def test_compare_with_linked(self, engine, manager):
        """Test comparing a file with its linked record."""
        manager.get_by_id.return_value = Found(
            ScriptRecord(id="a1", name="One", code="remote\n")
        )

        result = engine.compare_with_linked("src/One.ts")

        manager.get_by_id.assert_called_once_with("a1")
        assert result.left_label == "src/One.ts"
        assert result.right_label == "sfdc:One (a1)"
        assert "+remote\n" in result.diff

    def test_compare_unlinked(self, engine):
        """Test that an unlinked file cannot be compared with its record."""
        with pytest.raises(NotLinkedError):
            engine.compare_with_linked("src/Copy.ts")

    def test_compare_with_deleted_record(self, engine, manager):
        """Test comparing with a record that does not exist."""
        manager.get_by_id.return_value = NotFound("a5")
        with pytest.raises(RemoteRecordNotFoundError) as exc_info:
            engine.compare_with_remote("src/One.ts", "a5")
        assert exc_info.value.record_id == "a5"

    def test_compare_local_files(self, engine, manager):
        """Test comparing two local files without remote calls."""
        assert engine.compare_local_files("src/One.ts", "src/Copy.ts").identical
        manager.get_by_id.assert_not_called()

    def test_local_only_engine(self, workspace):
        """Test an engine without a records manager."""
        engine = DiffEngine(None, workspace)

        assert engine.compare_local_files("src/One.ts", "src/Copy.ts").identical
        with pytest.raises(QcpError, match="needs a connection"):
            engine.compare_remote_records("a1", "a2")

    def test_compare_remote_records_metadata(self, engine, manager):
        """Test that metadata is compared only when requested."""
        left = ScriptRecord(
            id="a1",
            name="One",
            code="same",
            last_modified_by=UserRef(username="ann@example.com"),
        )
        right = ScriptRecord(
            id="a2",
            name="Two",
            code="same",
            last_modified_by=UserRef(username="bob@example.com"),
        )
        manager.get_by_id.side_effect = lambda record_id: Found(
            left if record_id == "a1" else right
        )

        assert engine.compare_remote_records("a1", "a2").identical

        result = engine.compare_remote_records("a1", "a2", include_metadata=True)
        assert result.diff == []
        assert result.metadata_changes["name"] == ("One", "Two")
        assert result.metadata_changes["last_modified_by"] == (
            "ann@example.com",
            "bob@example.com",
        )
        assert "created_date" not in result.metadata_changes
