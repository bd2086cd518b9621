"""Data models for Salesforce custom script records."""

from dataclasses import dataclass, field
from typing import Any, Optional, Union

# Salesforce API field names for SBQQ__CustomScript__c
FIELD_ID = "Id"
FIELD_NAME = "Name"
FIELD_CODE = "SBQQ__Code__c"
FIELD_GROUP_FIELDS = "SBQQ__GroupFields__c"
FIELD_QUOTE_FIELDS = "SBQQ__QuoteFields__c"
FIELD_QUOTE_LINE_FIELDS = "SBQQ__QuoteLineFields__c"

# Fields shown when comparing record metadata
METADATA_FIELDS = (
    "name",
    "group_fields",
    "quote_fields",
    "quote_line_fields",
    "created_by",
    "created_date",
    "last_modified_by",
    "last_modified_date",
)


@dataclass
class UserRef:
    """Reference to the Salesforce user in an audit field."""

    id: Optional[str] = None
    name: Optional[str] = None
    username: Optional[str] = None

    @classmethod
    def from_api_response(cls, data: Optional[dict[str, Any]]) -> Optional["UserRef"]:
        """Create a UserRef from a relationship object (may be None)."""
        if not data:
            return None
        return cls(
            id=data.get("Id"),
            name=data.get("Name"),
            username=data.get("Username"),
        )

    def __str__(self) -> str:
        return self.username or self.name or self.id or ""


def _user_ref(data: dict[str, Any], relationship: str) -> Optional[UserRef]:
    # retrieve responses carry only the user ID, queries carry the relationship
    ref = UserRef.from_api_response(data.get(relationship))
    if ref is None and data.get(f"{relationship}Id"):
        ref = UserRef(id=data[f"{relationship}Id"])
    return ref


@dataclass
class ScriptRecord:
    """A SBQQ__CustomScript__c record."""

    id: str
    name: str
    code: Optional[str] = None
    group_fields: Optional[str] = None
    quote_fields: Optional[str] = None
    quote_line_fields: Optional[str] = None
    created_by: Optional[UserRef] = None
    created_date: Optional[str] = None
    last_modified_by: Optional[UserRef] = None
    last_modified_date: Optional[str] = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "ScriptRecord":
        """Create a ScriptRecord from a query or retrieve response row.

        Args:
            data: Record dictionary as returned by the REST API

        Returns:
            ScriptRecord instance
        """
        return cls(
            id=data[FIELD_ID],
            name=data.get(FIELD_NAME) or "",
            code=data.get(FIELD_CODE),
            group_fields=data.get(FIELD_GROUP_FIELDS),
            quote_fields=data.get(FIELD_QUOTE_FIELDS),
            quote_line_fields=data.get(FIELD_QUOTE_LINE_FIELDS),
            created_by=_user_ref(data, "CreatedBy"),
            created_date=data.get("CreatedDate"),
            last_modified_by=_user_ref(data, "LastModifiedBy"),
            last_modified_date=data.get("LastModifiedDate"),
        )

    @property
    def modified_summary(self) -> str:
        """Short "who and when" line used in record listings."""
        user = self.last_modified_by or self.created_by
        when = (self.last_modified_date or self.created_date or "")[:19]
        return f"Last Modified by {user or 'unknown'} at {when}"

    def metadata(self) -> dict[str, Optional[str]]:
        """Metadata fields as plain strings for comparison."""
        values: dict[str, Optional[str]] = {}
        for name in METADATA_FIELDS:
            value = getattr(self, name)
            values[name] = str(value) if value is not None else None
        return values


# =========================
# Lookup results
# =========================


@dataclass(frozen=True)
class NotFound:
    """No record matched the lookup key."""

    key: str


@dataclass(frozen=True)
class Found:
    """Exactly one record matched."""

    record: ScriptRecord


@dataclass(frozen=True)
class Ambiguous:
    """More than one record shares the requested name."""

    name: str
    ids: list[str] = field(default_factory=list)


LookupResult = Union[NotFound, Found, Ambiguous]
