"""Wait resource decoder.

Resolves a wait resource string (``KEY: 5:72057594038321152 (8194443284a0)``,
``PAGE: 5:1:12345``, ...) to the database, object, index and page it names.

``decode`` never raises. Every failure becomes a ``DecodedResource`` with ``error_message``
set and the fields resolved up to that point. KEY, PAGE, RID and OBJECT resources are strict:
the database must exist and be ONLINE. DATABASE, FILE and HOBT resources are lenient and only
annotate what they can.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from detective.core.exceptions import (
    DatabaseNotFoundError,
    DatabaseNotOnlineError,
    DecodeError,
    DetectiveError,
    ResourceNotFoundError,
)
from detective.waits.catalog import CatalogLookup, DatabaseState, ObjectDescription
from detective.waits.models import DecodedResource, ParsedWaitResource, ResourceKind
from detective.waits.parser import classify_wait_resource, parse_wait_resource

logger = logging.getLogger(__name__)

EMPTY_INPUT_ERROR = "Wait resource parameter is null or empty"

PAGE_TYPES: dict[int, str] = {
    1: "Data",
    2: "Index",
    3: "Text mix",
    4: "Text tree",
    7: "Sort",
    8: "GAM",
    9: "SGAM",
    10: "IAM",
    11: "PFS",
    13: "Boot",
    15: "File header",
    16: "Diff map",
    17: "ML map",
    18: "Deallocated",
    19: "Index reorg temp",
    20: "Bulk load pre-allocation",
}

INFO: dict[ResourceKind, str] = {
    ResourceKind.SPECIAL: (
        "Special case - see "
        "https://www.sqlskills.com/blogs/paul/the-curious-case-of-what-is-the-wait-resource-000/"
    ),
    ResourceKind.APPLICATION: "Application lock - custom application-defined resource",
    ResourceKind.METADATA: "Metadata lock - system catalog access",
    ResourceKind.ALLOCATION_UNIT: "Allocation unit lock",
    ResourceKind.DATABASE: "Database-level lock",
    ResourceKind.FILE: "File-level lock",
    ResourceKind.HOBT: "Heap or B-tree lock",
    ResourceKind.UNSUPPORTED: "Wait resource type not yet supported for decoding",
}


def page_type_label(code: int | None) -> str:
    """``"1 - Data"`` style label for a page type code."""
    prefix = "Unknown" if code is None else str(code)
    return f"{prefix} - {PAGE_TYPES.get(code, 'Other')}"


def index_label(index_id: int | None, index_name: str | None) -> str | None:
    """Index name, or a placeholder for heaps and unnamed indexes."""
    if index_name:
        return index_name
    if index_id is None:
        return None
    if index_id == 0:
        return "<heap>"
    if index_id == 1:
        return "<clustered>"
    return f"<index_id_{index_id}>"


class WaitResourceDecoder:
    """Decodes wait resource strings through a CatalogLookup."""

    def __init__(self, catalog: CatalogLookup):
        self.catalog = catalog

    def decode(self, wait_resource: str | None) -> DecodedResource:
        """Decode one wait resource string."""
        text = (wait_resource or "").strip()
        kind = classify_wait_resource(text)

        if kind is ResourceKind.EMPTY:
            return DecodedResource(
                wait_resource="", resource_kind=kind, error_message=EMPTY_INPUT_ERROR
            )
        if kind is ResourceKind.SPECIAL:
            return DecodedResource(wait_resource=text, resource_kind=kind, info=INFO[kind])

        # Fields resolved so far; kept on the result if a later step fails.
        fields: dict[str, Any] = {"wait_resource": text, "resource_kind": kind}
        context = {"wait_resource": text, "resource_kind": kind.value}
        try:
            parsed = parse_wait_resource(text)
            self._resolve(parsed, fields)
        except DecodeError as e:
            logger.debug("Decode of %r stopped: %s", text, e, extra=context)
            return DecodedResource(**fields, error_message=str(e))
        except DetectiveError as e:
            logger.warning(
                "Catalog access failed while decoding %r: %s", text, e, extra=context
            )
            return self._failed(fields, e)
        except Exception as e:
            logger.exception("Unexpected error decoding %r", text, extra=context)
            return self._failed(fields, e)

        return DecodedResource(**fields)

    @staticmethod
    def _failed(fields: dict[str, Any], error: Exception) -> DecodedResource:
        message = f"Error processing {fields['resource_kind'].value} wait: {error}"
        return DecodedResource(**fields, error_message=message)

    def decode_many(self, wait_resources: Iterable[str | None]) -> list[DecodedResource]:
        """Decode a batch; each entry succeeds or fails on its own."""
        return [self.decode(w) for w in wait_resources]

    def _resolve(self, parsed: ParsedWaitResource, fields: dict[str, Any]) -> None:
        kind = parsed.kind
        if kind is ResourceKind.KEY:
            self._resolve_key(parsed, fields)
        elif kind.is_page_like:
            self._resolve_page(parsed, fields)
        elif kind is ResourceKind.OBJECT:
            self._resolve_object(parsed, fields)
        elif kind is ResourceKind.DATABASE:
            self._resolve_database(parsed, fields)
        elif kind is ResourceKind.FILE:
            self._resolve_file(parsed, fields)
        elif kind is ResourceKind.HOBT:
            fields["hobt_id"] = parsed.hobt_id
            fields["info"] = INFO[kind]
        else:
            # APPLICATION, METADATA, ALLOCATION_UNIT and unknown prefixes are opaque
            fields["info"] = INFO[kind]

    def _online_database(self, database_id: int, fields: dict[str, Any]) -> DatabaseState:
        fields["database_id"] = database_id
        state = self.catalog.database_state(database_id)
        if state is None:
            raise DatabaseNotFoundError("Database ID not found")
        fields["database_name"] = state.name
        if not state.is_online:
            raise DatabaseNotOnlineError(f"Database is not online (state: {state.state_desc})")
        return state

    def _attach_object(
        self, description: ObjectDescription, index_id: int | None, fields: dict[str, Any]
    ) -> None:
        fields["schema_name"] = description.schema_name or "<system>"
        fields["object_name"] = description.object_name or "<unknown>"
        if index_id is not None:
            fields["index_name"] = index_label(index_id, description.index_name)
        if description.object_type is not None:
            fields["object_type"] = description.object_type

    def _resolve_key(self, parsed: ParsedWaitResource, fields: dict[str, Any]) -> None:
        fields["hobt_id"] = parsed.hobt_id
        fields["key_hash"] = parsed.key_hash
        db = self._online_database(parsed.database_id, fields)

        location = self.catalog.lookup_hobt(db.name, parsed.hobt_id)
        if location is None:
            raise ResourceNotFoundError("HOBT ID not found in database")
        fields["partition_id"] = location.partition_id
        if location.object_type is not None:
            fields["object_type"] = location.object_type

        description = self.catalog.describe_object(db.name, location.object_id, location.index_id)
        self._attach_object(description, location.index_id, fields)

    def _resolve_page(self, parsed: ParsedWaitResource, fields: dict[str, Any]) -> None:
        db = self._online_database(parsed.database_id, fields)
        fields["file_id"] = parsed.file_id
        fields["page_id"] = parsed.page_id
        fields["slot_id"] = parsed.slot_id

        header = self.catalog.describe_page(parsed.database_id, parsed.file_id, parsed.page_id)
        fields["page_type"] = page_type_label(header.page_type_code)

        if header.object_id is None or header.object_id <= 0:
            return
        description = self.catalog.describe_object(db.name, header.object_id, header.index_id)
        if description.exists:
            self._attach_object(description, header.index_id, fields)

    def _resolve_object(self, parsed: ParsedWaitResource, fields: dict[str, Any]) -> None:
        fields["lock_partition"] = parsed.lock_partition
        db = self._online_database(parsed.database_id, fields)
        description = self.catalog.describe_object(db.name, parsed.object_id)
        self._attach_object(description, None, fields)

    def _resolve_database(self, parsed: ParsedWaitResource, fields: dict[str, Any]) -> None:
        fields["database_id"] = parsed.database_id
        fields["info"] = INFO[ResourceKind.DATABASE]
        if parsed.database_id is not None:
            state = self.catalog.database_state(parsed.database_id)
            fields["database_name"] = state.name if state else None

    def _resolve_file(self, parsed: ParsedWaitResource, fields: dict[str, Any]) -> None:
        if parsed.detail is None:
            fields["info"] = f"{INFO[ResourceKind.FILE]} (unable to parse details)"
            return
        fields["database_id"] = parsed.database_id
        fields["file_id"] = parsed.file_id
        fields["info"] = INFO[ResourceKind.FILE]
        if parsed.database_id is not None:
            state = self.catalog.database_state(parsed.database_id)
            fields["database_name"] = state.name if state else None
