"""Tests for the CLI commands."""

import json
from unittest.mock import Mock, patch

import pytest
from click.testing import CliRunner

from pyqcp.cli import main
from pyqcp.exceptions import RemoteQueryError, SalesforceAuthenticationError
from pyqcp.models import Ambiguous, Found, NotFound, ScriptRecord
from pyqcp.records_manager import ScriptRecordsManager

CONFIG = {
    "orgInfo": {
        "loginUrl": "https://login.salesforce.com",
        "username": "user@example.com",
        "password": "secret",
        "apiToken": "",
        "orgType": "Production",
    },
    "files": [
        {"fileName": "One.ts", "filePath": "src/One.ts", "linkedRecordId": "a1"},
    ],
}


@pytest.fixture(autouse=True)
def no_project_log(monkeypatch):
    """Keep the JSON project log off during CLI tests."""
    monkeypatch.setenv("QCP_SAVE_LOG", "false")


@pytest.fixture
def runner():
    """Create a CLI runner."""
    return CliRunner()


@pytest.fixture
def project(tmp_path):
    """Create an initialized project with one linked file."""
    (tmp_path / ".qcp").mkdir()
    (tmp_path / ".qcp" / "qcp-config.json").write_text(json.dumps(CONFIG))
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "One.ts").write_text("one")
    return tmp_path


@pytest.fixture
def manager():
    """Patch the records manager used by the session."""
    mock_manager = Mock(spec=ScriptRecordsManager)
    with patch("pyqcp.session.ScriptRecordsManager", return_value=mock_manager):
        yield mock_manager


def read_config(project):
    return json.loads((project / ".qcp" / "qcp-config.json").read_text())


class TestMainGroup:
    """Tests for the command group."""

    def test_help(self, runner):
        """Test that the main help lists the commands."""
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        for command in ("init", "pull", "push", "diff", "backup"):
            assert command in result.output

    def test_uninitialized_workspace(self, runner, tmp_path):
        """Test that commands ask for init in an empty directory."""
        result = runner.invoke(main, ["-w", str(tmp_path), "pull"])
        assert result.exit_code == 1
        assert "qcp init" in result.output


class TestInitCommand:
    """Tests for qcp init."""

    @patch("pyqcp.cli.check_credentials")
    def test_init_with_options(self, mock_check, runner, tmp_path):
        """Test a non-interactive init."""
        result = runner.invoke(
            main,
            [
                "-w",
                str(tmp_path),
                "init",
                "--org-type",
                "Sandbox",
                "--username",
                "user@example.com",
                "--password",
                "secret",
                "--api-token",
                "",
            ],
        )

        assert result.exit_code == 0, result.output
        assert "credentials are valid" in result.output
        org = read_config(tmp_path)["orgInfo"]
        assert org["loginUrl"] == "https://test.salesforce.com"
        assert org["orgType"] == "Sandbox"
        assert (tmp_path / "src").is_dir()
        mock_check.assert_called_once()

    @patch("pyqcp.cli.check_credentials")
    def test_init_invalid_credentials(self, mock_check, runner, tmp_path):
        """Test that rejected credentials exit with status 1."""
        mock_check.side_effect = SalesforceAuthenticationError("INVALID_LOGIN")
        result = runner.invoke(
            main,
            [
                "-w",
                str(tmp_path),
                "init",
                "--org-type",
                "Production",
                "--username",
                "u",
                "--password",
                "p",
                "--api-token",
                "",
            ],
        )
        assert result.exit_code == 1
        assert "INVALID_LOGIN" in result.output

    def test_init_keeps_existing_org(self, runner, project):
        """Test that declining re-initialization changes nothing."""
        result = runner.invoke(main, ["-w", str(project), "init"], input="n\n")
        assert result.exit_code == 0
        assert read_config(project) == CONFIG


class TestPullCommands:
    """Tests for the pull commands."""

    def test_pull_all(self, runner, project, manager):
        """Test pulling every record with an overwrite policy."""
        manager.fetch_all.return_value = [
            ScriptRecord(id="a1", name="One", code="remote one"),
            ScriptRecord(id="a2", name="Two", code="remote two"),
        ]

        result = runner.invoke(
            main, ["-w", str(project), "pull", "--on-conflict", "overwrite"]
        )

        assert result.exit_code == 0, result.output
        assert (project / "src" / "One.ts").read_text() == "remote one"
        assert (project / "src" / "Two.ts").read_text() == "remote two"
        assert "Pull Complete" in result.output

    def test_pull_prompts_on_conflict(self, runner, project, manager):
        """Test that a changed file is only overwritten after confirmation."""
        manager.fetch_all.return_value = [
            ScriptRecord(id="a1", name="One", code="remote one"),
        ]

        result = runner.invoke(main, ["-w", str(project), "pull"], input="skip\n")

        assert result.exit_code == 0, result.output
        assert "Content differs: src/One.ts" in result.output
        assert (project / "src" / "One.ts").read_text() == "one"

    def test_pull_json_reports_failures(self, runner, project, manager):
        """Test JSON output and exit status when a record fails."""
        manager.fetch_all.return_value = [
            ScriptRecord(id="a2", name="Foo", code="x"),
            ScriptRecord(id="a3", name="Foo", code="y"),
        ]

        result = runner.invoke(
            main,
            ["-w", str(project), "-q", "--json", "pull", "--on-conflict", "skip"],
        )

        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["failed"] == 2
        assert data["items"][0]["status"] == "failed"

    def test_pull_query_error(self, runner, project, manager):
        """Test that a failed query exits without writing."""
        manager.fetch_all.side_effect = RemoteQueryError("offline")
        result = runner.invoke(main, ["-w", str(project), "pull"])
        assert result.exit_code == 1
        assert "offline" in result.output

    def test_pull_file_linked(self, runner, project, manager):
        """Test pulling the record linked to a file."""
        manager.get_by_id.return_value = Found(
            ScriptRecord(id="a1", name="One", code="remote one")
        )
        result = runner.invoke(
            main,
            [
                "-w",
                str(project),
                "pull-file",
                str(project / "src" / "One.ts"),
                "--on-conflict",
                "overwrite",
            ],
        )
        assert result.exit_code == 0, result.output
        assert (project / "src" / "One.ts").read_text() == "remote one"

    def test_pull_file_unlinked(self, runner, project, manager):
        """Test that an unlinked file cannot be pulled."""
        (project / "src" / "Draft.ts").write_text("draft")
        result = runner.invoke(
            main,
            ["-w", str(project), "pull-file", str(project / "src" / "Draft.ts")],
        )
        assert result.exit_code == 1
        assert "not linked" in result.output

    def test_pull_remote_by_name_ambiguous(self, runner, project, manager):
        """Test that a duplicated name lists the record IDs."""
        manager.find_by_name.return_value = Ambiguous("Foo", ["a1", "a2"])
        result = runner.invoke(
            main, ["-w", str(project), "pull-remote", "--name", "Foo"]
        )
        assert result.exit_code == 1
        assert "a1, a2" in result.output

    def test_list_json(self, runner, project, manager):
        """Test listing records with their linked files."""
        manager.fetch_all.return_value = [
            ScriptRecord(id="a1", name="One"),
            ScriptRecord(id="a2", name="Two"),
        ]
        result = runner.invoke(main, ["-w", str(project), "--json", "list"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data[0]["linked_file"] == "src/One.ts"
        assert data[1]["linked_file"] is None


class TestPushCommands:
    """Tests for the push commands."""

    def test_push_linked_file(self, runner, project, manager):
        """Test pushing a linked file updates its record."""
        manager.get_by_id.return_value = Found(
            ScriptRecord(id="a1", name="One", code="remote")
        )
        result = runner.invoke(
            main, ["-w", str(project), "push", str(project / "src" / "One.ts")]
        )
        assert result.exit_code == 0, result.output
        manager.update.assert_called_once_with("a1", {"SBQQ__Code__c": "one"})

    def test_push_linked_record_deleted(self, runner, project, manager):
        """Test that a deleted linked record is reported."""
        manager.get_by_id.return_value = NotFound("a1")
        result = runner.invoke(
            main, ["-w", str(project), "push", str(project / "src" / "One.ts")]
        )
        assert result.exit_code == 1
        assert "no longer exists" in result.output
        manager.create.assert_not_called()

    def test_push_all_confirm_declined(self, runner, project, manager):
        """Test that push-all asks before pushing."""
        result = runner.invoke(main, ["-w", str(project), "push-all"], input="n\n")
        assert result.exit_code == 0
        manager.update.assert_not_called()
        manager.create.assert_not_called()

    def test_push_all_creates_new_records(self, runner, project, manager):
        """Test that unlinked files become new records."""
        (project / "src" / "Two.ts").write_text("two")
        manager.get_by_id.return_value = Found(
            ScriptRecord(id="a1", name="One", code="one")
        )
        manager.find_by_name.return_value = NotFound("Two")
        manager.create.return_value = "a2"

        result = runner.invoke(main, ["-w", str(project), "push-all", "--yes"])

        assert result.exit_code == 0, result.output
        files = {
            f["filePath"]: f["linkedRecordId"] for f in read_config(project)["files"]
        }
        assert files == {"src/One.ts": "a1", "src/Two.ts": "a2"}


class TestBackupAndDiffCommands:
    """Tests for backup and diff."""

    def test_backup_local(self, runner, project):
        """Test that a local backup needs no connection."""
        result = runner.invoke(main, ["-w", str(project), "backup", "local"])
        assert result.exit_code == 0, result.output
        backups = list((project / ".qcp" / "backups").glob("local-*/One.ts"))
        assert len(backups) == 1

    def test_backup_remote(self, runner, project, manager):
        """Test a remote backup."""
        manager.fetch_all.return_value = [ScriptRecord(id="a1", name="One", code="r")]
        result = runner.invoke(main, ["-w", str(project), "backup", "remote"])
        assert result.exit_code == 0, result.output
        assert list((project / ".qcp" / "backups").glob("remote-*/One.ts"))
        assert read_config(project) == CONFIG

    def test_backup_local_json(self, runner, project):
        """Test that JSON output names the backup directory once."""
        result = runner.invoke(
            main, ["-w", str(project), "-q", "--json", "backup", "local"]
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert "Directory" not in data
        assert "/.qcp/backups/local-" in data["directory"].replace("\\", "/")
        assert data["succeeded"] == 1

    def test_diff_local_identical(self, runner, project):
        """Test comparing two identical local files."""
        (project / "src" / "Copy.ts").write_text("one")
        result = runner.invoke(
            main,
            [
                "-w",
                str(project),
                "diff",
                "local",
                str(project / "src" / "One.ts"),
                str(project / "src" / "Copy.ts"),
            ],
        )
        assert result.exit_code == 0, result.output
        assert "identical" in result.output

    def test_diff_local_outside_project(self, runner, tmp_path):
        """Test that comparing local files needs no project or credentials."""
        (tmp_path / "a.ts").write_text("same\nleft\n")
        (tmp_path / "b.ts").write_text("same\nright\n")
        result = runner.invoke(
            main,
            [
                "-w",
                str(tmp_path),
                "--json",
                "diff",
                "local",
                str(tmp_path / "a.ts"),
                str(tmp_path / "b.ts"),
            ],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["left"] == "a.ts"
        assert data["right"] == "b.ts"
        assert "-left\n" in data["diff"]
        assert "+right\n" in data["diff"]

    def test_diff_linked_json(self, runner, project, manager):
        """Test comparing a file with its linked record as JSON."""
        manager.get_by_id.return_value = Found(
            ScriptRecord(id="a1", name="One", code="remote")
        )
        result = runner.invoke(
            main,
            [
                "-w",
                str(project),
                "--json",
                "diff",
                "linked",
                str(project / "src" / "One.ts"),
            ],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["identical"] is False
        assert data["right"] == "sfdc:One (a1)"

    def test_diff_records_missing(self, runner, project, manager):
        """Test comparing with a record that does not exist."""
        manager.get_by_id.return_value = NotFound("a9")
        result = runner.invoke(
            main, ["-w", str(project), "diff", "records", "a1", "a9"]
        )
        assert result.exit_code == 1
        assert "a9" in result.output
