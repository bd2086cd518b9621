"""Tests for project initialization."""

import json
from unittest.mock import patch

from pyqcp.config import ConfigStore, OrgInfo
from pyqcp.init_project import check_credentials, initialize_project, update_gitignore
from pyqcp.workspace import Workspace

ORG = OrgInfo(
    login_url="https://test.salesforce.com",
    username="user@example.com",
    password="secret",
    org_type="Sandbox",
)


class TestInitializeProject:
    """Tests for initialize_project."""

    def test_new_project(self, tmp_path):
        """Test creating the config, src directory and .gitignore."""
        store = ConfigStore(Workspace(tmp_path))

        changed = initialize_project(store, ORG)

        assert changed == [".qcp/qcp-config.json", "src", ".gitignore"]
        assert (tmp_path / "src").is_dir()
        data = json.loads((tmp_path / ".qcp" / "qcp-config.json").read_text())
        assert data["orgInfo"]["username"] == "user@example.com"
        assert data["files"] == []
        assert ".qcp" in (tmp_path / ".gitignore").read_text()

    def test_reinit_keeps_mappings(self, tmp_path):
        """Test that re-initializing keeps linked files."""
        store = ConfigStore(Workspace(tmp_path))
        initialize_project(store, ORG)
        store.config.link("One.ts", "src/One.ts", "a1")
        store.save()

        other = OrgInfo(username="new@example.com", password="pw", org_type="Developer")
        initialize_project(ConfigStore(Workspace(tmp_path)), other)

        data = json.loads((tmp_path / ".qcp" / "qcp-config.json").read_text())
        assert data["orgInfo"]["username"] == "new@example.com"
        assert data["files"][0]["linkedRecordId"] == "a1"


class TestGitignore:
    """Tests for update_gitignore."""

    def test_appends_entry(self, tmp_path):
        """Test that existing .gitignore content is kept."""
        (tmp_path / ".gitignore").write_text("node_modules\n")
        assert update_gitignore(Workspace(tmp_path))
        content = (tmp_path / ".gitignore").read_text()
        assert content.startswith("node_modules\n")
        assert "\n.qcp\n" in content

    def test_entry_already_present(self, tmp_path):
        """Test that the entry is not added twice."""
        (tmp_path / ".gitignore").write_text("/.qcp/\n")
        assert not update_gitignore(Workspace(tmp_path))


class TestCheckCredentials:
    """Tests for check_credentials."""

    @patch("pyqcp.init_project.SalesforceClient.login")
    def test_logs_in(self, mock_login):
        """Test that checking credentials performs a login."""
        check_credentials(ORG)
        mock_login.assert_called_once_with()
