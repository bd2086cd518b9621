"""Custom exceptions for pyqcp."""

from typing import Optional


class QcpError(Exception):
    """Base exception for all pyqcp errors."""


# =========================
# Transport errors
# =========================


class SalesforceAPIError(QcpError):
    """Base exception for Salesforce API errors."""


class SalesforceConfigError(SalesforceAPIError):
    """Raised when connection settings are missing or invalid."""


class SalesforceAuthenticationError(SalesforceAPIError):
    """Raised when login fails or the session is no longer valid."""


class SalesforcePermissionError(SalesforceAPIError):
    """Raised when the user lacks access to the requested resource."""


class SalesforceNotFoundError(SalesforceAPIError):
    """Raised when a REST resource does not exist."""


class SalesforceRateLimitError(SalesforceAPIError):
    """Raised when the org's API request limit is exceeded."""


class SalesforceNetworkError(SalesforceAPIError):
    """Raised on connection problems and timeouts."""


class SalesforceInvalidResponseError(SalesforceAPIError):
    """Raised when the server returns a response that cannot be parsed."""


# =========================
# Sync errors
# =========================


class RemoteQueryError(QcpError):
    """Raised when querying script records fails."""


class RemoteWriteError(QcpError):
    """Raised when creating or updating a script record fails."""


class RecordNotFoundError(QcpError):
    """Raised when a linked record id no longer exists remotely."""

    def __init__(self, record_id: str, message: Optional[str] = None):
        self.record_id = record_id
        super().__init__(message or f"Could not find record with Id {record_id}.")


class RemoteRecordNotFoundError(RecordNotFoundError):
    """Raised by comparisons when a referenced record does not exist."""

    def __init__(self, record_id: str):
        super().__init__(
            record_id,
            f"Could not find record on Salesforce with Id {record_id}.",
        )


class AmbiguousNameError(QcpError):
    """Raised when more than one remote record shares a name."""

    def __init__(self, name: str, ids: list[str]):
        self.name = name
        self.ids = list(ids)
        super().__init__(
            f'There are multiple records on Salesforce named "{name}" '
            f"({', '.join(self.ids)}), you should rename or delete these "
            "duplicate records from Salesforce and locally."
        )


class FileConflictError(QcpError):
    """Raised when a pull target is already linked to a different record."""

    def __init__(self, file_path: str, record_id: str):
        self.file_path = file_path
        self.record_id = record_id
        super().__init__(f"{file_path} is linked to record {record_id}.")


class NotLinkedError(QcpError):
    """Raised when an operation needs a linked file but the file is unlinked."""

    def __init__(self, file_path: str):
        self.file_path = file_path
        super().__init__(f"{file_path} is not linked to a Salesforce record.")


class PersistenceError(QcpError):
    """Raised when project files or configuration cannot be read or written."""


class CancelledError(QcpError):
    """Raised when a batch is stopped by the user.

    Items that were not started because of cancellation are reported as
    "not attempted" rather than as failures.
    """
