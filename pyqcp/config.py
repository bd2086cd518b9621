"""Project configuration: org settings and the file-to-record mapping.

The configuration is stored as JSON in ``.qcp/qcp-config.json`` inside the
workspace. It is loaded once per session, mutated in memory after each
successful pull or push, and written back immediately. The previous version
is copied to ``.qcp/qcp-config.bak.json`` before every write.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .exceptions import PersistenceError
from .workspace import Workspace

logger = logging.getLogger(__name__)

ORG_TYPE_SANDBOX = "Sandbox"
ORG_TYPE_DEV = "Developer"
ORG_TYPE_PROD = "Production"
ORG_TYPE_CUSTOM = "Custom URL"

ORG_LOGIN_URLS = {
    ORG_TYPE_SANDBOX: "https://test.salesforce.com",
    ORG_TYPE_DEV: "https://login.salesforce.com",
    ORG_TYPE_PROD: "https://login.salesforce.com",
}

DEFAULT_MAX_LOG_ENTRIES = 150


def login_url_for(org_type: str, custom_url: Optional[str] = None) -> str:
    """Return the login url for an org type.

    Raises:
        ValueError: If a custom org type has no url
    """
    if org_type == ORG_TYPE_CUSTOM:
        if not custom_url:
            raise ValueError("A custom org type requires a login url")
        return custom_url.rstrip("/")
    return ORG_LOGIN_URLS.get(org_type, ORG_LOGIN_URLS[ORG_TYPE_PROD])


@dataclass
class OrgInfo:
    """Connection settings for the Salesforce org."""

    login_url: str = "https://login.salesforce.com"
    username: str = ""
    password: str = ""
    api_token: str = ""
    org_type: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.org_type and self.username and self.password)

    def to_dict(self) -> dict:
        data = {
            "loginUrl": self.login_url,
            "username": self.username,
            "password": self.password,
            "apiToken": self.api_token,
        }
        if self.org_type is not None:
            data["orgType"] = self.org_type
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "OrgInfo":
        return cls(
            login_url=data.get("loginUrl") or "https://login.salesforce.com",
            username=data.get("username", ""),
            password=data.get("password", ""),
            api_token=data.get("apiToken", ""),
            org_type=data.get("orgType"),
        )


@dataclass
class LocalFileEntry:
    """A source file and the record it is linked to (if any)."""

    file_name: str
    file_path: str
    """Workspace-relative posix path"""

    linked_record_id: Optional[str] = None

    @property
    def is_linked(self) -> bool:
        return bool(self.linked_record_id)

    def to_dict(self) -> dict:
        return {
            "fileName": self.file_name,
            "filePath": self.file_path,
            "linkedRecordId": self.linked_record_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LocalFileEntry":
        return cls(
            file_name=data.get("fileName", ""),
            file_path=data.get("filePath", ""),
            linked_record_id=data.get("linkedRecordId"),
        )


@dataclass
class SyncConfig:
    """In-memory copy of the project configuration."""

    org_info: OrgInfo = field(default_factory=OrgInfo)
    files: list[LocalFileEntry] = field(default_factory=list)

    def find_by_path(self, file_path: str) -> Optional[LocalFileEntry]:
        for entry in self.files:
            if entry.file_path == file_path:
                return entry
        return None

    def find_by_record_id(self, record_id: str) -> Optional[LocalFileEntry]:
        for entry in self.files:
            if entry.linked_record_id == record_id:
                return entry
        return None

    def link(self, file_name: str, file_path: str, record_id: str) -> LocalFileEntry:
        """Create or update the mapping for ``file_path``.

        Any other entry pointing to the same record is unlinked so a record
        maps to at most one file.
        """
        for other in self.files:
            if other.linked_record_id == record_id and other.file_path != file_path:
                logger.debug(
                    f"Unlinking {other.file_path} from {record_id}, "
                    f"now linked to {file_path}"
                )
                other.linked_record_id = None

        entry = self.find_by_path(file_path)
        if entry is None:
            entry = LocalFileEntry(file_name=file_name, file_path=file_path)
            self.files.append(entry)
        entry.file_name = file_name
        entry.linked_record_id = record_id
        return entry

    def to_dict(self) -> dict:
        return {
            "orgInfo": self.org_info.to_dict(),
            "files": [entry.to_dict() for entry in self.files],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SyncConfig":
        return cls(
            org_info=OrgInfo.from_dict(data.get("orgInfo") or {}),
            files=[LocalFileEntry.from_dict(f) for f in data.get("files") or []],
        )


class ConfigStore:
    """Loads and saves the SyncConfig of a workspace."""

    def __init__(self, workspace: Workspace, config: Optional[SyncConfig] = None):
        self.workspace = workspace
        self.config = config if config is not None else SyncConfig()

    @property
    def path(self) -> Path:
        return self.workspace.config_path

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> SyncConfig:
        """Read the configuration file into memory.

        Returns:
            The loaded configuration (also kept as ``self.config``)

        Raises:
            PersistenceError: If the file is missing or not valid JSON
        """
        try:
            data = self.workspace.read_json(self.path)
        except FileNotFoundError as e:
            raise PersistenceError(
                f"No project configuration at {self.path}. Run 'qcp init' first."
            ) from e
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Failed to read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"Invalid configuration in {self.path}")

        self.config = SyncConfig.from_dict(data)
        logger.debug(
            f"Loaded config with {len(self.config.files)} file mapping(s) "
            f"from {self.path}"
        )
        return self.config

    def reload(self) -> SyncConfig:
        """Discard the in-memory copy and read the file again."""
        logger.info("Configuration changed on disk, reloading")
        return self.load()

    def save(self) -> None:
        """Write the configuration, keeping a copy of the previous version.

        Raises:
            PersistenceError: If the file cannot be written
        """
        try:
            if self.path.exists():
                self.workspace.copy(self.path, self.workspace.config_backup_path)
            self.workspace.write_json(self.path, self.config.to_dict())
        except OSError as e:
            raise PersistenceError(f"Failed to write {self.path}: {e}") from e
        logger.debug(f"Saved config to {self.path}")


@dataclass
class LogSettings:
    """Settings for the project JSON log, read from the environment."""

    save_log: bool = True
    max_entries: int = DEFAULT_MAX_LOG_ENTRIES

    @classmethod
    def from_env(cls) -> "LogSettings":
        save_log = os.environ.get("QCP_SAVE_LOG", "true").lower() not in (
            "0",
            "false",
            "no",
            "off",
        )
        try:
            max_entries = int(
                os.environ.get("QCP_MAX_LOG_ENTRIES", DEFAULT_MAX_LOG_ENTRIES)
            )
        except ValueError:
            logger.warning("Ignoring invalid QCP_MAX_LOG_ENTRIES")
            max_entries = DEFAULT_MAX_LOG_ENTRIES
        return cls(save_log=save_log, max_entries=max(1, max_entries))
