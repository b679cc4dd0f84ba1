"""Wait resource text parsing.

Turns the text SQL Server puts in ``sys.dm_exec_requests.wait_resource`` into a
``ParsedWaitResource``. No database access happens here; the decoder resolves the ids.

Accepted shapes::

    KEY: 5:72057594038321152 (8194443284a0)
    PAGE: 5:1:12345
    RID: 5:1:12345:3
    5:1:12345 (annotation)
    OBJECT: 5:245575913:0
    DATABASE: 5
    FILE: 5:1
    HOBT: 72057594038321152
    APPLICATION: 5:0:[lock name]:(hash)
    METADATA: database_id = 5 SCHEMA(schema_id = 1)
    ALLOCATION_UNIT: 72057594039762944
"""

from __future__ import annotations

import re

from detective.core.exceptions import MalformedInputError
from detective.waits.models import ParsedWaitResource, ResourceKind

SPECIAL_ZERO = "0:0:0"

# Checked in order; the first matching prefix decides the kind.
PREFIXES: list[tuple[str, ResourceKind]] = [
    ("KEY: ", ResourceKind.KEY),
    ("PAGE: ", ResourceKind.PAGE),
    ("RID: ", ResourceKind.RID),
    ("OBJECT: ", ResourceKind.OBJECT),
    ("APPLICATION: ", ResourceKind.APPLICATION),
    ("DATABASE: ", ResourceKind.DATABASE),
    ("FILE: ", ResourceKind.FILE),
    ("HOBT: ", ResourceKind.HOBT),
    ("METADATA: ", ResourceKind.METADATA),
    ("ALLOCATION_UNIT: ", ResourceKind.ALLOCATION_UNIT),
]

_LEGACY_PAGE_RE = re.compile(r"^\d[^:]*:[^:]*:")
_ANNOTATION_RE = re.compile(r"\(.*\)\s*$")
_LEADING_INT_RE = re.compile(r"^\s*(\d+)")

# T-SQL INT and BIGINT upper bounds
INT_MAX = 2**31 - 1
BIGINT_MAX = 2**63 - 1


def _to_int(value: str, limit: int = INT_MAX) -> int | None:
    """Non-negative integer up to ``limit``, or None.

    SQL Server TRY_CAST semantics: out-of-range values fail like non-numeric ones. Minus signs
    are rejected.
    """
    value = value.strip()
    if not (value.isascii() and value.isdigit()):
        return None
    number = int(value)
    return number if number <= limit else None


def classify_wait_resource(text: str) -> ResourceKind:
    """Resource kind of an already-trimmed wait resource string."""
    if not text:
        return ResourceKind.EMPTY
    if text == SPECIAL_ZERO:
        return ResourceKind.SPECIAL
    # KEY wins over the page family, which wins over everything else
    if text.startswith("KEY: "):
        return ResourceKind.KEY
    if text.startswith("PAGE: "):
        return ResourceKind.PAGE
    if text.startswith("RID: "):
        return ResourceKind.RID
    if _LEGACY_PAGE_RE.match(text):
        return ResourceKind.LEGACY_PAGE
    for prefix, kind in PREFIXES:
        if text.startswith(prefix):
            return kind
    return ResourceKind.UNSUPPORTED


def _body(text: str, kind: ResourceKind) -> str:
    for prefix, prefix_kind in PREFIXES:
        if prefix_kind is kind:
            return text[len(prefix) :]
    return text


def _parse_key(text: str) -> ParsedWaitResource:
    body = _body(text, ResourceKind.KEY)
    if ":" not in body:
        raise MalformedInputError("Invalid KEY wait resource format")
    db_part, rest = body.split(":", 1)
    hobt_part, _, hash_part = rest.strip().partition(" ")
    database_id = _to_int(db_part)
    hobt_id = _to_int(hobt_part, BIGINT_MAX)
    if database_id is None or hobt_id is None:
        raise MalformedInputError("Unable to parse database ID or HOBT ID from KEY wait resource")
    key_hash = hash_part.strip().strip("()") or None
    return ParsedWaitResource(
        kind=ResourceKind.KEY,
        text=text,
        database_id=database_id,
        hobt_id=hobt_id,
        key_hash=key_hash,
    )


def _parse_page(text: str, kind: ResourceKind) -> ParsedWaitResource:
    body = _body(text, kind)
    slot_id = None

    if kind is ResourceKind.RID:
        body, sep, slot_part = body.rpartition(":")
        if not sep:
            raise MalformedInputError("Invalid page/RID wait resource format")
        slot_id = _to_int(slot_part)
    elif kind is ResourceKind.LEGACY_PAGE:
        body = _ANNOTATION_RE.sub("", body).strip()

    parts = body.split(":", 2)
    if len(parts) < 3:
        raise MalformedInputError("Invalid page/RID wait resource format")

    database_id, file_id = _to_int(parts[0]), _to_int(parts[1])
    page_id = _to_int(parts[2], BIGINT_MAX)
    if database_id is None or file_id is None or page_id is None:
        raise MalformedInputError("Unable to parse database ID, file ID, or page ID")
    if kind is ResourceKind.RID and slot_id is None:
        raise MalformedInputError("Unable to parse slot ID from RID wait resource")

    return ParsedWaitResource(
        kind=kind,
        text=text,
        database_id=database_id,
        file_id=file_id,
        page_id=page_id,
        slot_id=slot_id,
    )


def _parse_object(text: str) -> ParsedWaitResource:
    body = _body(text, ResourceKind.OBJECT)
    if ":" not in body:
        raise MalformedInputError("Invalid OBJECT wait resource format")
    parts = body.split(":")
    database_id = _to_int(parts[0])
    object_id = _to_int(parts[1])
    if database_id is None or object_id is None:
        raise MalformedInputError(
            "Unable to parse database ID or object ID from OBJECT wait resource"
        )
    lock_partition = _to_int(parts[2]) if len(parts) > 2 else None
    return ParsedWaitResource(
        kind=ResourceKind.OBJECT,
        text=text,
        database_id=database_id,
        object_id=object_id,
        lock_partition=lock_partition,
    )


def _parse_database(text: str) -> ParsedWaitResource:
    match = _LEADING_INT_RE.match(_body(text, ResourceKind.DATABASE))
    return ParsedWaitResource(
        kind=ResourceKind.DATABASE,
        text=text,
        database_id=_to_int(match.group(1)) if match else None,
    )


def _parse_file(text: str) -> ParsedWaitResource:
    body = _body(text, ResourceKind.FILE)
    if ":" not in body:
        return ParsedWaitResource(kind=ResourceKind.FILE, text=text)
    db_part, _, file_part = body.partition(":")
    return ParsedWaitResource(
        kind=ResourceKind.FILE,
        text=text,
        database_id=_to_int(db_part),
        file_id=_to_int(file_part),
        detail=body,
    )


def _parse_hobt(text: str) -> ParsedWaitResource:
    last = _body(text, ResourceKind.HOBT).rsplit(":", 1)[-1]
    return ParsedWaitResource(
        kind=ResourceKind.HOBT, text=text, hobt_id=_to_int(last, BIGINT_MAX)
    )


def parse_wait_resource(text: str) -> ParsedWaitResource:
    """Parse a trimmed wait resource string.

    Raises:
        MalformedInputError: the string has a KEY/PAGE/RID/OBJECT prefix (or the bare numeric
            page shape) but its ids are missing or not integers.
    """
    kind = classify_wait_resource(text)
    if kind is ResourceKind.KEY:
        return _parse_key(text)
    if kind.is_page_like:
        return _parse_page(text, kind)
    if kind is ResourceKind.OBJECT:
        return _parse_object(text)
    if kind is ResourceKind.DATABASE:
        return _parse_database(text)
    if kind is ResourceKind.FILE:
        return _parse_file(text)
    if kind is ResourceKind.HOBT:
        return _parse_hobt(text)
    # APPLICATION, METADATA, ALLOCATION_UNIT, SPECIAL, UNSUPPORTED, EMPTY: opaque
    return ParsedWaitResource(kind=kind, text=text, detail=_body(text, kind) or None)
