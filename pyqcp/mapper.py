"""Mapping between script records and local source files.

Code is passed through untouched in both directions. Formatting is left to
the developer's own tooling.
"""

import re
from dataclasses import replace
from pathlib import PurePath
from typing import Any, Union

from .models import FIELD_CODE, FIELD_NAME, ScriptRecord

FILE_EXTENSION = ".ts"

_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def file_name_for(record: ScriptRecord) -> str:
    """Return the local file name for a record.

    Examples:
        >>> file_name_for(ScriptRecord(id="a1", name="Quote Calc"))
        'Quote Calc.ts'
        >>> file_name_for(ScriptRecord(id="a1", name="a/b"))
        'a_b.ts'
        >>> file_name_for(ScriptRecord(id="a1", name="calc.ts"))
        'calc.ts.ts'
    """
    name = _UNSAFE_CHARS.sub("_", record.name).strip().rstrip(".")
    if not name:
        name = "untitled"
    # always extended so name_for_file gives the record name back
    return f"{name}{FILE_EXTENSION}"


def name_for_file(path: Union[str, PurePath]) -> str:
    """Return the record name a local file is pushed as."""
    name = PurePath(path).name
    if name.endswith(FILE_EXTENSION):
        name = name[: -len(FILE_EXTENSION)]
    return name


def to_file(record: ScriptRecord) -> str:
    """Return the file content for a record."""
    return record.code or ""


def to_update_payload(
    file_content: str, existing_record: ScriptRecord
) -> dict[str, Any]:
    """Build the partial record used to update ``existing_record``."""
    return {FIELD_CODE: file_content}


def to_create_payload(name: str, file_content: str) -> dict[str, Any]:
    return {FIELD_NAME: name, FIELD_CODE: file_content}


def from_file(record: ScriptRecord, file_content: str) -> ScriptRecord:
    """Return a copy of ``record`` carrying ``file_content`` as its code."""
    return replace(record, code=file_content)
