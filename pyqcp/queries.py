"""SOQL query builders for custom script records."""

from .models import (
    FIELD_CODE,
    FIELD_GROUP_FIELDS,
    FIELD_QUOTE_FIELDS,
    FIELD_QUOTE_LINE_FIELDS,
)

SOBJECT_NAME = "SBQQ__CustomScript__c"

QUERY_FIELDS_BASE = "Id, Name"
QUERY_FIELDS_USER_FIELDS = (
    "CreatedById, CreatedDate, LastModifiedById, LastModifiedDate, "
    "CreatedBy.Id, CreatedBy.Name, CreatedBy.Username, "
    "LastModifiedBy.Id, LastModifiedBy.Name, LastModifiedBy.Username"
)
QUERY_FIELDS_WO_CODE = f"{QUERY_FIELDS_BASE}, {QUERY_FIELDS_USER_FIELDS}"
QUERY_FIELDS_ALL = (
    f"{QUERY_FIELDS_WO_CODE}, {FIELD_CODE}, {FIELD_GROUP_FIELDS}, "
    f"{FIELD_QUOTE_FIELDS}, {FIELD_QUOTE_LINE_FIELDS}"
)


def quote_literal(value: str) -> str:
    """Quote a string literal for use in a SOQL WHERE clause."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def all_records(with_code: bool = True) -> str:
    fields = QUERY_FIELDS_ALL if with_code else QUERY_FIELDS_WO_CODE
    return f"SELECT {fields} FROM {SOBJECT_NAME}"


def by_name(name: str, with_code: bool = True) -> str:
    fields = QUERY_FIELDS_ALL if with_code else QUERY_FIELDS_WO_CODE
    return f"SELECT {fields} FROM {SOBJECT_NAME} WHERE Name = {quote_literal(name)}"


def count_by_name(name: str) -> str:
    return f"SELECT count() FROM {SOBJECT_NAME} WHERE Name = {quote_literal(name)}"
