"""Catalog lookups used by the wait resource decoder.

``CatalogLookup`` is the read-only view the decoder needs: database state, HOBT location,
object/index names and page allocation metadata. ``SqlCatalogLookup`` answers from a live
server with parameterized queries from ``sql/catalog``; ``InMemoryCatalog`` answers from
dictionaries and backs the tests and offline decoding.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from detective.config.models import DecoderConfig
from detective.core.exceptions import (
    DatabaseQueryError,
    ResourceNotFoundError,
    UnsupportedFeatureError,
)
from detective.db.queries import load_catalog

logger = logging.getLogger(__name__)

ONLINE_STATE = 0


@dataclass(frozen=True)
class DatabaseState:
    name: str
    state: int = ONLINE_STATE
    state_desc: str = "ONLINE"

    @property
    def is_online(self) -> bool:
        return self.state == ONLINE_STATE


@dataclass(frozen=True)
class HobtLocation:
    object_id: int
    index_id: int
    partition_id: int | None = None
    object_type: str | None = None


@dataclass(frozen=True)
class ObjectDescription:
    """Raw catalog names; any of them is None when the catalog row is missing."""

    schema_name: str | None = None
    object_name: str | None = None
    index_name: str | None = None
    object_type: str | None = None

    @property
    def exists(self) -> bool:
        return self.object_name is not None


@dataclass(frozen=True)
class PageHeader:
    object_id: int | None
    index_id: int | None
    page_type_code: int | None


class CatalogLookup(Protocol):
    def database_state(self, database_id: int) -> DatabaseState | None: ...

    def lookup_hobt(self, database_name: str, hobt_id: int) -> HobtLocation | None: ...

    def describe_object(
        self, database_name: str, object_id: int, index_id: int | None = None
    ) -> ObjectDescription: ...

    def describe_page(self, database_id: int, file_id: int, page_id: int) -> PageHeader: ...


class SqlCatalogLookup:
    """CatalogLookup backed by SQL Server system views."""

    def __init__(self, db, config: DecoderConfig | None = None):
        self.db = db
        self.config = config or DecoderConfig()
        self._page_info_supported: bool | None = None

    def database_state(self, database_id: int) -> DatabaseState | None:
        rows = self.db.execute_query(load_catalog("database_state"), (database_id,))
        if not rows:
            return None
        row = rows[0]
        return DatabaseState(name=row["name"], state=row["state"], state_desc=row["state_desc"])

    def lookup_hobt(self, database_name: str, hobt_id: int) -> HobtLocation | None:
        rows = self.db.for_database(database_name).execute_query(
            load_catalog("hobt_lookup"), (hobt_id,)
        )
        if not rows or rows[0].get("object_id") is None:
            return None
        row = rows[0]
        return HobtLocation(
            object_id=row["object_id"],
            index_id=row["index_id"],
            partition_id=row.get("partition_id"),
            object_type=row.get("object_type"),
        )

    def describe_object(
        self, database_name: str, object_id: int, index_id: int | None = None
    ) -> ObjectDescription:
        db = self.db.for_database(database_name)
        if index_id is None:
            rows = db.execute_query(load_catalog("object_details"), (object_id,))
        else:
            rows = db.execute_query(load_catalog("object_index_details"), (object_id, index_id))
        if not rows:
            return ObjectDescription()
        row = rows[0]
        return ObjectDescription(
            schema_name=row.get("schema_name"),
            object_name=row.get("object_name"),
            index_name=row.get("index_name"),
            object_type=row.get("object_type"),
        )

    def describe_page(self, database_id: int, file_id: int, page_id: int) -> PageHeader:
        if not self._page_info_available():
            raise UnsupportedFeatureError(
                "Page inspection not supported on this SQL Server edition/version"
            )
        try:
            rows = self.db.execute_query(load_catalog("page_info"), (database_id, file_id, page_id))
        except DatabaseQueryError as e:
            raise UnsupportedFeatureError(f"Page inspection failed: {e}") from e
        if not rows:
            raise ResourceNotFoundError("Page not found in database file")
        row = rows[0]
        return PageHeader(
            object_id=row.get("object_id"),
            index_id=row.get("index_id"),
            page_type_code=row.get("page_type"),
        )

    def _page_info_available(self) -> bool:
        if self._page_info_supported is None:
            props = self.db.get_server_properties()
            edition = props.get("engine_edition")
            major = props.get("major_version") or 0
            self._page_info_supported = (
                edition in self.config.page_info_editions
                and major >= self.config.page_info_min_version
            )
            logger.info(
                "Page inspection %s (engine edition %s, major version %s)",
                "available" if self._page_info_supported else "unavailable",
                edition,
                major,
            )
        return self._page_info_supported


@dataclass
class InMemoryCatalog:
    """Dict-backed CatalogLookup.

    ``objects`` is keyed by ``(database_name, object_id)`` and ``indexes`` by
    ``(database_name, object_id, index_id)``. Leave ``pages`` as None to emulate a server
    without page inspection.
    """

    databases: dict[int, DatabaseState] = field(default_factory=dict)
    hobts: dict[tuple[str, int], HobtLocation] = field(default_factory=dict)
    objects: dict[tuple[str, int], ObjectDescription] = field(default_factory=dict)
    indexes: dict[tuple[str, int, int], str] = field(default_factory=dict)
    pages: dict[tuple[int, int, int], PageHeader] | None = field(default_factory=dict)

    def database_state(self, database_id: int) -> DatabaseState | None:
        return self.databases.get(database_id)

    def lookup_hobt(self, database_name: str, hobt_id: int) -> HobtLocation | None:
        return self.hobts.get((database_name, hobt_id))

    def describe_object(
        self, database_name: str, object_id: int, index_id: int | None = None
    ) -> ObjectDescription:
        obj = self.objects.get((database_name, object_id), ObjectDescription())
        index_name = None
        if index_id is not None:
            index_name = self.indexes.get((database_name, object_id, index_id))
        return ObjectDescription(
            schema_name=obj.schema_name,
            object_name=obj.object_name,
            index_name=index_name,
            object_type=obj.object_type,
        )

    def describe_page(self, database_id: int, file_id: int, page_id: int) -> PageHeader:
        if self.pages is None:
            raise UnsupportedFeatureError(
                "Page inspection not supported on this SQL Server edition/version"
            )
        header = self.pages.get((database_id, file_id, page_id))
        if header is None:
            raise ResourceNotFoundError("Page not found in database file")
        return header
