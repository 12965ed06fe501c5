"""
Permission id codec.

A permission id addresses one node of the three-level service catalog:

    s:<id>    service
    ss:<id>   sub-service
    sss:<id>  sub-sub-service

Stored records carry the same information as three nullable columns
(service_id, sub_service_id, sub_sub_service_id) with exactly one set.
Anything that does not match the string form is "unparsable": parse()
returns None and callers treat it as "no match".
"""

import enum
import re
from typing import NamedTuple


class PermissionLevel(str, enum.Enum):
    service = "service"
    sub_service = "sub_service"
    sub_sub_service = "sub_sub_service"


LEVEL_PREFIXES: dict[PermissionLevel, str] = {
    PermissionLevel.service: "s",
    PermissionLevel.sub_service: "ss",
    PermissionLevel.sub_sub_service: "sss",
}

LEVEL_FIELDS: dict[PermissionLevel, str] = {
    PermissionLevel.service: "service_id",
    PermissionLevel.sub_service: "sub_service_id",
    PermissionLevel.sub_sub_service: "sub_sub_service_id",
}

_PREFIX_LEVELS = {prefix: level for level, prefix in LEVEL_PREFIXES.items()}

# [0-9] rather than \d so non-ASCII digits are rejected
_PERMISSION_ID_RE = re.compile(r"(s|ss|sss):([0-9]+)")

# Id columns are 32-bit INTEGER; larger numbers cannot address a stored row
MAX_NUMERIC_ID = 2**31 - 1


class PermissionId(NamedTuple):
    level: PermissionLevel
    numeric_id: int

    def __str__(self) -> str:
        return format_permission_id(self.level, self.numeric_id)

    def fields(self) -> dict[str, int | None]:
        return fields_for(self.level, self.numeric_id)


def parse_permission_id(value: object) -> PermissionId | None:
    """Parse ``"s:1"`` / ``"ss:10"`` / ``"sss:789"``; return None for anything else."""
    if not isinstance(value, str):
        return None
    match = _PERMISSION_ID_RE.fullmatch(value)
    if match is None:
        return None
    prefix, digits = match.groups()
    significant = digits.lstrip("0") or "0"
    # Length check first: int() refuses very long digit strings
    if len(significant) > len(str(MAX_NUMERIC_ID)):
        return None
    numeric_id = int(significant)
    if numeric_id > MAX_NUMERIC_ID:
        return None
    return PermissionId(_PREFIX_LEVELS[prefix], numeric_id)


def format_permission_id(level: PermissionLevel, numeric_id: int) -> str:
    return f"{LEVEL_PREFIXES[PermissionLevel(level)]}:{numeric_id}"


def fields_for(level: PermissionLevel, numeric_id: int) -> dict[str, int | None]:
    """Return the one-set, two-null column triple for a (level, id) pair."""
    level = PermissionLevel(level)
    return {field: (numeric_id if lvl is level else None) for lvl, field in LEVEL_FIELDS.items()}


def from_fields(
    service_id: int | None,
    sub_service_id: int | None,
    sub_sub_service_id: int | None,
) -> PermissionId | None:
    """
    Recover the permission id of a stored record.

    The first non-null column wins (service, then sub-service, then
    sub-sub-service).  A record with all three columns null is malformed
    and yields None.
    """
    if service_id is not None:
        return PermissionId(PermissionLevel.service, service_id)
    if sub_service_id is not None:
        return PermissionId(PermissionLevel.sub_service, sub_service_id)
    if sub_sub_service_id is not None:
        return PermissionId(PermissionLevel.sub_sub_service, sub_sub_service_id)
    return None


def record_permission_id(record) -> str | None:
    """Formatted permission id of a stored grant/exception, None if malformed."""
    parsed = from_fields(record.service_id, record.sub_service_id, record.sub_sub_service_id)
    return str(parsed) if parsed is not None else None
