"""API client for the Salesforce REST and SOAP login endpoints."""

from __future__ import annotations

import logging
import os
import random
import time
import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse
from xml.sax.saxutils import escape

import httpx

from .exceptions import (
    SalesforceAPIError,
    SalesforceAuthenticationError,
    SalesforceConfigError,
    SalesforceInvalidResponseError,
    SalesforceNetworkError,
    SalesforceNotFoundError,
    SalesforcePermissionError,
    SalesforceRateLimitError,
)
from .queries import SOBJECT_NAME

if TYPE_CHECKING:
    from .config import OrgInfo

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "58.0"
DEFAULT_LOGIN_URL = "https://login.salesforce.com"

_PARTNER_NS = "{urn:partner.soap.sforce.com}"

SOAP_LOGIN_TEMPLATE = """<?xml version="1.0" encoding="utf-8" ?>
<env:Envelope xmlns:xsd="http://www.w3.org/2001/XMLSchema"
    xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
    xmlns:env="http://schemas.xmlsoap.org/soap/envelope/"
    xmlns:urn="urn:partner.soap.sforce.com">
  <env:Body>
    <urn:login>
      <urn:username>{username}</urn:username>
      <urn:password>{password}</urn:password>
    </urn:login>
  </env:Body>
</env:Envelope>"""


class SalesforceClient:
    """Client for the custom script sObject of a Salesforce org."""

    def __init__(
        self,
        username: str | None,
        password: str | None,
        api_token: str | None = None,
        login_url: str | None = None,
        api_version: str | None = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
    ):
        """Initialize the Salesforce API client.

        Args:
            username: Salesforce username
            password: Salesforce password
            api_token: Security token appended to the password on login
            login_url: Login host (defaults to https://login.salesforce.com)
            api_version: REST API version (default: QCP_API_VERSION or 58.0)
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
        """
        if not username or not password:
            raise SalesforceConfigError(
                "Salesforce credentials not configured. Run 'qcp init' or set "
                "QCP_USERNAME and QCP_PASSWORD."
            )
        self.username = username
        self.password = password
        self.api_token = api_token or ""
        self.login_url = (login_url or DEFAULT_LOGIN_URL).rstrip("/")
        self.api_version = (
            api_version or os.environ.get("QCP_API_VERSION") or DEFAULT_API_VERSION
        )
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout

        self.session_id: str | None = None
        self.instance_url: str | None = None
        self._client: httpx.Client | None = None

    @classmethod
    def from_org_info(cls, org_info: OrgInfo, **kwargs: Any) -> SalesforceClient:
        """Create a client from the project's org settings.

        QCP_USERNAME, QCP_PASSWORD, QCP_API_TOKEN and QCP_LOGIN_URL take
        precedence over the values stored in the project config.
        """
        return cls(
            username=os.environ.get("QCP_USERNAME") or org_info.username,
            password=os.environ.get("QCP_PASSWORD") or org_info.password,
            api_token=os.environ.get("QCP_API_TOKEN") or org_info.api_token,
            login_url=os.environ.get("QCP_LOGIN_URL") or org_info.login_url,
            **kwargs,
        )

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> SalesforceClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def is_logged_in(self) -> bool:
        return bool(self.session_id and self.instance_url)

    # =========================
    # Authentication
    # =========================

    def login(self) -> None:
        """Log in with username, password and security token.

        Raises:
            SalesforceAuthenticationError: If Salesforce rejects the credentials
            SalesforceNetworkError: If the login host cannot be reached
        """
        url = f"{self.login_url}/services/Soap/u/{self.api_version}"
        body = SOAP_LOGIN_TEMPLATE.format(
            username=escape(self.username),
            password=escape(f"{self.password}{self.api_token}"),
        )
        headers = {"Content-Type": "text/xml; charset=UTF-8", "SOAPAction": "login"}

        logger.debug("Logging in to %s as %s", self.login_url, self.username)
        try:
            response = self._get_client().post(url, content=body, headers=headers)
        except httpx.RequestError as e:
            raise SalesforceNetworkError(f"Network error during login: {e}") from e

        try:
            root = ET.fromstring(response.content)
        except ET.ParseError as e:
            raise SalesforceInvalidResponseError(
                f"Invalid login response (status {response.status_code})"
            ) from e

        fault = root.find(".//faultstring")
        if fault is not None:
            raise SalesforceAuthenticationError(f"Login failed: {fault.text}")

        session_id = root.find(f".//{_PARTNER_NS}sessionId")
        server_url = root.find(f".//{_PARTNER_NS}serverUrl")
        if session_id is None or server_url is None or not server_url.text:
            raise SalesforceInvalidResponseError(
                "Login response did not contain a session"
            )

        parsed = urlparse(server_url.text)
        self.session_id = session_id.text
        self.instance_url = f"{parsed.scheme}://{parsed.netloc}"
        logger.debug("Logged in, instance url %s", self.instance_url)

    # =========================
    # Request handling
    # =========================

    def _should_retry(self, exception: Exception, attempt: int) -> bool:
        """Determine if a request should be retried.

        Args:
            exception: The exception that occurred
            attempt: Current attempt number (0-based)

        Returns:
            True if the request should be retried, False otherwise
        """
        if attempt >= self.max_retries:
            return False
        return isinstance(exception, (SalesforceNetworkError, SalesforceRateLimitError))

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # +/- 25% jitter
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    @staticmethod
    def _error_message(response: httpx.Response) -> str | None:
        """Extract the message from a Salesforce error body."""
        try:
            data = response.json()
        except ValueError:
            return None
        if isinstance(data, list) and data and isinstance(data[0], dict):
            error_code = data[0].get("errorCode")
            message = data[0].get("message")
            if error_code and message:
                return f"{error_code}: {message}"
            return message
        if isinstance(data, dict):
            return data.get("message") or data.get("error_description")
        return None

    def _handle_http_error(
        self, e: httpx.HTTPStatusError, attempt: int
    ) -> tuple[Exception, bool]:
        """Handle HTTP errors and determine if retry should occur.

        Args:
            e: The HTTP error exception
            attempt: Current attempt number

        Returns:
            Tuple of (exception to raise, should_retry)
        """
        status_code = e.response.status_code
        detail = self._error_message(e.response)

        if status_code == 401:
            raise SalesforceAuthenticationError(
                detail or "Session expired or invalid"
            ) from e
        elif status_code == 403:
            if detail and "REQUEST_LIMIT_EXCEEDED" in detail:
                error = SalesforceRateLimitError(detail)
                return (error, attempt < self.max_retries)
            raise SalesforcePermissionError(
                detail or "Access forbidden - check your permissions"
            ) from e
        elif status_code == 404:
            raise SalesforceNotFoundError(detail or "Resource not found") from e
        elif status_code == 429:
            error = SalesforceRateLimitError("Rate limit exceeded - try again later")
            return (error, attempt < self.max_retries)

        error_msg = f"API request failed with status {status_code}"
        if detail:
            error_msg = f"{error_msg}: {detail}"
        should_retry = 500 <= status_code < 600 and attempt < self.max_retries
        return (SalesforceAPIError(error_msg), should_retry)

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Make an authenticated API request with retry logic.

        Logs in on first use and logs in again once if the session expired.

        Args:
            method: HTTP method
            path: Path relative to the instance url (e.g. /services/data/...)
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data ({} for empty responses)

        Raises:
            SalesforceAPIError: If the request fails after all retries
        """
        if not self.is_logged_in:
            self.login()
        try:
            return self._request_with_retries(method, path, **kwargs)
        except SalesforceAuthenticationError:
            logger.debug("Session rejected, logging in again")
            self.login()
            return self._request_with_retries(method, path, **kwargs)

    def _request_with_retries(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.instance_url}/{path.lstrip('/')}"
        headers = {"Authorization": f"Bearer {self.session_id}"}
        last_exception: Exception | None = None
        client = self._get_client()

        for attempt in range(self.max_retries + 1):
            try:
                response = client.request(method, url, headers=headers, **kwargs)
                response.raise_for_status()

                if not response.content:
                    return {}
                content_type = response.headers.get("Content-Type", "")
                if "application/json" not in content_type:
                    raise SalesforceInvalidResponseError(
                        f"Unexpected response type: {content_type}"
                    )
                try:
                    return response.json()
                except ValueError as e:
                    raise SalesforceInvalidResponseError(
                        "Invalid JSON response from server"
                    ) from e

            except httpx.HTTPStatusError as e:
                error, should_retry = self._handle_http_error(e, attempt)
                last_exception = error
                if should_retry:
                    retry_after = e.response.headers.get("Retry-After")
                    if retry_after and retry_after.isdigit():
                        delay = float(retry_after)
                    else:
                        delay = self._calculate_retry_delay(attempt)
                    time.sleep(delay)
                    continue
                raise error from e
            except SalesforceAPIError:
                raise
            except httpx.RequestError as e:
                error = SalesforceNetworkError(f"Network error: {e}")
                last_exception = error
                if self._should_retry(error, attempt):
                    time.sleep(self._calculate_retry_delay(attempt))
                    continue
                raise error from e

        if last_exception:
            raise last_exception
        raise SalesforceAPIError("Request failed after all retry attempts")

    @property
    def _data_path(self) -> str:
        return f"/services/data/v{self.api_version}"

    # =========================
    # Record operations
    # =========================

    def query(self, soql: str) -> list[dict[str, Any]]:
        """Run a SOQL query and return every row, following pagination.

        Args:
            soql: SOQL query string

        Returns:
            List of record dictionaries
        """
        logger.debug("Query: %s", soql)
        result = self._request("GET", f"{self._data_path}/query", params={"q": soql})
        records = list(result.get("records", []))
        while not result.get("done", True) and result.get("nextRecordsUrl"):
            result = self._request("GET", result["nextRecordsUrl"])
            records.extend(result.get("records", []))
        return records

    def query_count(self, soql: str) -> int:
        """Run a SELECT count() query.

        Args:
            soql: SOQL count query

        Returns:
            Number of matching records
        """
        logger.debug("Count query: %s", soql)
        result = self._request("GET", f"{self._data_path}/query", params={"q": soql})
        return int(result.get("totalSize", 0))

    def retrieve(self, record_id: str) -> dict[str, Any]:
        """Get a single custom script record by ID.

        Raises:
            SalesforceNotFoundError: If the record does not exist
        """
        return self._request(
            "GET", f"{self._data_path}/sobjects/{SOBJECT_NAME}/{record_id}"
        )

    def create(self, payload: dict[str, Any]) -> str:
        """Create a custom script record.

        Args:
            payload: Field values for the new record

        Returns:
            ID of the created record
        """
        result = self._request(
            "POST", f"{self._data_path}/sobjects/{SOBJECT_NAME}/", json=payload
        )
        if not result.get("success", False) or not result.get("id"):
            errors = result.get("errors") or []
            raise SalesforceAPIError(f"Failed to create record: {errors}")
        return result["id"]

    def update(self, record_id: str, payload: dict[str, Any]) -> None:
        """Update fields of an existing custom script record.

        Args:
            record_id: ID of the record to update
            payload: Fields to change
        """
        self._request(
            "PATCH",
            f"{self._data_path}/sobjects/{SOBJECT_NAME}/{record_id}",
            json=payload,
        )
