"""Manager for looking up and writing custom script records."""

import logging
from typing import Any

from . import queries
from .api import SalesforceClient
from .exceptions import (
    RemoteQueryError,
    RemoteWriteError,
    SalesforceAPIError,
    SalesforceNotFoundError,
)
from .models import Ambiguous, Found, LookupResult, NotFound, ScriptRecord

logger = logging.getLogger(__name__)


class ScriptRecordsManager:
    """Wraps the transport client with typed results for the sync engines.

    Transport failures are reported as RemoteQueryError for reads and
    RemoteWriteError for writes. Lookups that can match zero, one or many
    records return a LookupResult instead of a list.
    """

    def __init__(self, client: SalesforceClient):
        """Initialize the records manager.

        Args:
            client: Salesforce API client
        """
        self.client = client

    def _query(self, soql: str) -> list[dict[str, Any]]:
        try:
            return self.client.query(soql)
        except SalesforceAPIError as e:
            raise RemoteQueryError(f"Error querying Salesforce: {e}") from e

    def fetch_all(self, with_code: bool = True) -> list[ScriptRecord]:
        """Get every custom script record.

        Args:
            with_code: Include the code and field list columns

        Returns:
            List of records ordered as returned by the API

        Raises:
            RemoteQueryError: If the query fails
        """
        rows = self._query(queries.all_records(with_code=with_code))
        records = [ScriptRecord.from_api_response(row) for row in rows]
        logger.debug(f"Fetched {len(records)} record(s) (with_code={with_code})")
        return records

    def get_by_id(self, record_id: str) -> LookupResult:
        """Look up a record by ID.

        Returns:
            Found with the record, or NotFound if it was deleted

        Raises:
            RemoteQueryError: If the API call fails for another reason
        """
        try:
            data = self.client.retrieve(record_id)
        except SalesforceNotFoundError:
            logger.debug(f"Record {record_id} not found")
            return NotFound(record_id)
        except SalesforceAPIError as e:
            raise RemoteQueryError(f"Error querying Salesforce: {e}") from e
        return Found(ScriptRecord.from_api_response(data))

    def count_by_name(self, name: str) -> int:
        try:
            return self.client.query_count(queries.count_by_name(name))
        except SalesforceAPIError as e:
            raise RemoteQueryError(f"Error querying Salesforce: {e}") from e

    def find_by_name(self, name: str) -> LookupResult:
        """Look up a record by name, detecting duplicates first.

        A count query runs before the record query so a duplicated name is
        never resolved to one of its records.

        Returns:
            NotFound, Found with the single match, or Ambiguous with all IDs
        """
        count = self.count_by_name(name)
        if count == 0:
            return NotFound(name)
        if count > 1:
            rows = self._query(queries.by_name(name, with_code=False))
            ids = [row["Id"] for row in rows]
            logger.debug(f"Name '{name}' matches {count} records: {ids}")
            return Ambiguous(name, ids)

        rows = self._query(queries.by_name(name))
        if not rows:
            # Deleted between the two queries
            return NotFound(name)
        if len(rows) > 1:
            return Ambiguous(name, [row["Id"] for row in rows])
        return Found(ScriptRecord.from_api_response(rows[0]))

    def create(self, payload: dict[str, Any]) -> str:
        """Create a record.

        Returns:
            ID of the new record

        Raises:
            RemoteWriteError: If the API call fails
        """
        try:
            record_id = self.client.create(payload)
        except SalesforceAPIError as e:
            raise RemoteWriteError(f"Error creating record: {e}") from e
        logger.debug(f"Created record {record_id}")
        return record_id

    def update(self, record_id: str, payload: dict[str, Any]) -> None:
        """Update a record.

        Raises:
            RemoteWriteError: If the API call fails
        """
        try:
            self.client.update(record_id, payload)
        except SalesforceNotFoundError as e:
            raise RemoteWriteError(
                f"Error updating record {record_id}: record no longer exists"
            ) from e
        except SalesforceAPIError as e:
            raise RemoteWriteError(f"Error updating record {record_id}: {e}") from e
        logger.debug(f"Updated record {record_id}")
