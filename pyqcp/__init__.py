"""PyQCP - CLI tool for syncing Salesforce CPQ custom scripts with local files."""

from .api import SalesforceClient
from .config import ConfigStore, LocalFileEntry, OrgInfo, SyncConfig
from .exceptions import (
    AmbiguousNameError,
    CancelledError,
    FileConflictError,
    NotLinkedError,
    PersistenceError,
    QcpError,
    RecordNotFoundError,
    RemoteQueryError,
    RemoteRecordNotFoundError,
    RemoteWriteError,
    SalesforceAPIError,
    SalesforceAuthenticationError,
    SalesforceConfigError,
    SalesforceInvalidResponseError,
    SalesforceNetworkError,
    SalesforceNotFoundError,
    SalesforcePermissionError,
    SalesforceRateLimitError,
)
from .models import Ambiguous, Found, NotFound, ScriptRecord
from .overwrite import OverwriteAction, OverwriteResolver
from .session import QcpSession

__all__ = [
    "SalesforceClient",
    "ConfigStore",
    "LocalFileEntry",
    "OrgInfo",
    "SyncConfig",
    "AmbiguousNameError",
    "CancelledError",
    "FileConflictError",
    "NotLinkedError",
    "PersistenceError",
    "QcpError",
    "RecordNotFoundError",
    "RemoteQueryError",
    "RemoteRecordNotFoundError",
    "RemoteWriteError",
    "SalesforceAPIError",
    "SalesforceAuthenticationError",
    "SalesforceConfigError",
    "SalesforceInvalidResponseError",
    "SalesforceNetworkError",
    "SalesforceNotFoundError",
    "SalesforcePermissionError",
    "SalesforceRateLimitError",
    "Ambiguous",
    "Found",
    "NotFound",
    "ScriptRecord",
    "OverwriteAction",
    "OverwriteResolver",
    "QcpSession",
]
