"""Tests for local and remote backups."""

from unittest.mock import Mock, patch

import pytest

from pyqcp.exceptions import RemoteQueryError
from pyqcp.models import ScriptRecord
from pyqcp.records_manager import ScriptRecordsManager
from pyqcp.sync import BackupEngine, CancellationToken, ItemStatus
from pyqcp.workspace import Workspace


@pytest.fixture
def workspace(tmp_path):
    """Create a workspace with two source files."""
    ws = Workspace(tmp_path)
    ws.write_text("src/One.ts", "one")
    ws.write_text("src/Two.ts", "two\r\n")
    return ws


@pytest.fixture
def manager():
    """Create a mock records manager."""
    return Mock(spec=ScriptRecordsManager)


class TestBackupLocal:
    """Tests for BackupEngine.backup_local."""

    def test_copies_source_files(self, workspace):
        """Test that every source file is copied byte for byte."""
        result = BackupEngine(workspace).backup_local()

        assert result.directory.parent == workspace.backup_root
        assert result.directory.name.startswith("local-")
        assert (result.directory / "One.ts").read_bytes() == b"one"
        assert (result.directory / "Two.ts").read_bytes() == b"two\r\n"
        assert result.counts()["succeeded"] == 2

    def test_same_second_gets_new_directory(self, workspace):
        """Test that two backups never share a directory."""
        engine = BackupEngine(workspace)
        with patch("pyqcp.sync.backup.datetime") as mock_datetime:
            mock_datetime.now.return_value.strftime.return_value = (
                "2024-01-01T00-00-00"
            )
            first = engine.backup_local()
            second = engine.backup_local()

        assert first.directory != second.directory
        assert first.directory.name == "local-2024-01-01T00-00-00"
        assert second.directory.name == "local-2024-01-01T00-00-00-1"
        assert (second.directory / "One.ts").exists()

    def test_empty_source_directory(self, tmp_path):
        """Test backing up a workspace without source files."""
        result = BackupEngine(Workspace(tmp_path)).backup_local()
        assert result.total == 0
        assert result.directory.is_dir()

    def test_cancelled(self, workspace):
        """Test that a cancelled backup copies nothing more."""
        token = CancellationToken()
        token.cancel()

        result = BackupEngine(workspace).backup_local(cancel_token=token)

        assert result.cancelled
        assert [i.status for i in result.items] == [ItemStatus.NOT_ATTEMPTED] * 2
        assert list(result.directory.iterdir()) == []


class TestBackupRemote:
    """Tests for BackupEngine.backup_from_remote."""

    def test_writes_records(self, workspace, manager):
        """Test that every record is written and the config untouched."""
        manager.fetch_all.return_value = [
            ScriptRecord(id="a1", name="One", code="remote one"),
            ScriptRecord(id="a2", name="Empty"),
        ]

        result = BackupEngine(workspace, manager).backup_from_remote()

        assert result.directory.name.startswith("remote-")
        assert (result.directory / "One.ts").read_text() == "remote one"
        assert (result.directory / "Empty.ts").read_text() == ""
        assert not workspace.config_path.exists()
        assert workspace.read_text("src/One.ts") == "one"

    def test_duplicate_names_both_kept(self, workspace, manager):
        """Test that records with the same name do not overwrite each other."""
        manager.fetch_all.return_value = [
            ScriptRecord(id="a1", name="Foo", code="first"),
            ScriptRecord(id="a2", name="Foo", code="second"),
        ]

        result = BackupEngine(workspace, manager).backup_from_remote()

        assert (result.directory / "Foo.ts").read_text() == "first"
        assert (result.directory / "Foo-a2.ts").read_text() == "second"

    def test_query_failure(self, workspace, manager):
        """Test that a failed query creates no backup directory."""
        manager.fetch_all.side_effect = RemoteQueryError("offline")

        with pytest.raises(RemoteQueryError):
            BackupEngine(workspace, manager).backup_from_remote()

        assert not workspace.backup_root.exists()

    def test_requires_records_manager(self, workspace):
        """Test that a remote backup needs a records manager."""
        with pytest.raises(ValueError):
            BackupEngine(workspace).backup_from_remote()
