"""Session context: workspace, configuration and engines for one run."""

import logging
from pathlib import Path
from typing import Optional, Union

from .api import SalesforceClient
from .config import ConfigStore, LogSettings, SyncConfig
from .file_logger import attach_file_logger
from .records_manager import ScriptRecordsManager
from .sync import BackupEngine, DiffEngine, PullEngine, PushEngine
from .workspace import LOG_BACKUP_FILE, LOG_FILE, Workspace

logger = logging.getLogger(__name__)


class QcpSession:
    """Owns the in-memory configuration and the remote connection.

    The configuration is loaded once by ``open()``; engines mutate it through
    the shared ConfigStore, which saves after every successful change. When
    the config file is edited outside the session, ``notify_file_changed``
    reloads it.
    """

    def __init__(
        self,
        root: Union[str, Path],
        client: Optional[SalesforceClient] = None,
        log_settings: Optional[LogSettings] = None,
    ):
        """Initialize the session.

        Args:
            root: Workspace root directory
            client: Salesforce client (created from the org settings if None)
            log_settings: JSON log settings (read from the environment if None)
        """
        self.workspace = Workspace(root)
        self.store = ConfigStore(self.workspace)
        self.log_settings = log_settings or LogSettings.from_env()
        self._client = client
        self._records_manager: Optional[ScriptRecordsManager] = None

    @property
    def config(self) -> SyncConfig:
        return self.store.config

    @property
    def is_initialized(self) -> bool:
        return self.store.exists()

    def open(self) -> "QcpSession":
        """Load the configuration and start the project log.

        Raises:
            PersistenceError: If the configuration cannot be read
        """
        self.store.load()
        if self.log_settings.save_log:
            attach_file_logger(
                self.workspace.root / LOG_FILE,
                self.workspace.root / LOG_BACKUP_FILE,
                max_entries=self.log_settings.max_entries,
            )
        logger.debug(f"Session opened for {self.workspace.root}")
        return self

    def close(self) -> None:
        if self._client is not None:
            self._client.close()

    def __enter__(self) -> "QcpSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def notify_file_changed(self, path: Union[str, Path]) -> bool:
        """Reload the configuration if ``path`` is the config file.

        Returns:
            True if the configuration was reloaded
        """
        if self.workspace.resolve(path) != self.workspace.config_path:
            return False
        self.store.reload()
        # Credentials may have changed
        if self._client is not None:
            self._client.close()
            self._client = None
            self._records_manager = None
        return True

    @property
    def client(self) -> SalesforceClient:
        if self._client is None:
            self._client = SalesforceClient.from_org_info(self.config.org_info)
        return self._client

    @property
    def records_manager(self) -> ScriptRecordsManager:
        if self._records_manager is None:
            self._records_manager = ScriptRecordsManager(self.client)
        return self._records_manager

    def backup_engine(self) -> BackupEngine:
        return BackupEngine(self.workspace, self.records_manager)

    def pull_engine(self) -> PullEngine:
        return PullEngine(self.records_manager, self.store, self.backup_engine())

    def push_engine(self) -> PushEngine:
        return PushEngine(self.records_manager, self.store, self.backup_engine())

    def diff_engine(self) -> DiffEngine:
        return DiffEngine(self.records_manager, self.workspace, self.config)
