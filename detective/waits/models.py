"""Wait resource types: parsed input and decoded output."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel


class ResourceKind(str, Enum):
    """Wait resource categories, in dispatch order."""

    SPECIAL = "SPECIAL"  # the 0:0:0 sentinel
    KEY = "KEY"
    PAGE = "PAGE"
    RID = "RID"
    LEGACY_PAGE = "LEGACY_PAGE"  # bare db:file:page(extra)
    OBJECT = "OBJECT"
    APPLICATION = "APPLICATION"
    DATABASE = "DATABASE"
    FILE = "FILE"
    HOBT = "HOBT"
    METADATA = "METADATA"
    ALLOCATION_UNIT = "ALLOCATION_UNIT"
    UNSUPPORTED = "UNSUPPORTED"
    EMPTY = "EMPTY"

    @property
    def is_page_like(self) -> bool:
        return self in (ResourceKind.PAGE, ResourceKind.RID, ResourceKind.LEGACY_PAGE)


@dataclass(frozen=True)
class ParsedWaitResource:
    """Numeric parts of a wait resource string, before any catalog lookup."""

    kind: ResourceKind
    text: str
    database_id: int | None = None
    file_id: int | None = None
    page_id: int | None = None
    slot_id: int | None = None
    hobt_id: int | None = None
    object_id: int | None = None
    key_hash: str | None = None
    lock_partition: int | None = None
    detail: str | None = None


class DecodedResource(BaseModel):
    """Decoded description of the resource a session waits on.

    ``wait_resource`` always echoes the trimmed input. ``error_message`` is set only when
    resolution failed; the other fields then hold whatever was resolved before the failure.
    """

    wait_resource: str
    resource_kind: ResourceKind = ResourceKind.UNSUPPORTED
    database_name: str | None = None
    database_id: int | None = None
    schema_name: str | None = None
    object_name: str | None = None
    index_name: str | None = None
    object_type: str | None = None
    page_type: str | None = None
    file_id: int | None = None
    page_id: int | None = None
    slot_id: int | None = None
    hobt_id: int | None = None
    partition_id: int | None = None
    key_hash: str | None = None
    lock_partition: int | None = None
    info: str | None = None
    error_message: str | None = None

    @property
    def is_error(self) -> bool:
        return self.error_message is not None

    @property
    def qualified_name(self) -> str | None:
        """``schema.object`` (plus ``.index`` when known), for log lines and tree output."""
        if self.object_name is None:
            return None
        name = f"{self.schema_name}.{self.object_name}" if self.schema_name else self.object_name
        return f"{name}.{self.index_name}" if self.index_name else name
