"""Shared test fixtures and mock database connection."""

from __future__ import annotations

import copy
from unittest.mock import MagicMock

import pytest

from detective.config.models import DetectiveConfig, ThresholdConfig
from detective.waits.catalog import (
    DatabaseState,
    HobtLocation,
    InMemoryCatalog,
    ObjectDescription,
    PageHeader,
)
from detective.waits.decoder import WaitResourceDecoder

SALES_DB_ID = 5
ARCHIVE_DB_ID = 6
ORDERS_OBJECT_ID = 245575913
ORDERS_HOBT_ID = 72057594038321152
ORDERS_HEAP_HOBT_ID = 72057594038386688
ORDERS_NC_HOBT_ID = 72057594038452224


def sample_sessions() -> list[dict]:
    """Session snapshot rows: 55 blocks 60, 60 blocks 61, 70 is idle work."""
    return [
        {
            "session_id": 55,
            "blocked_by": 0,
            "host_name": "app01",
            "program_name": "OrderService",
            "login_name": "orders_rw",
            "database_name": "SalesDB",
            "status": "sleeping",
            "command": "AWAITING COMMAND",
            "cpu_time": 15,
            "memory_usage": 2,
            "physical_io": 3,
            "wait_type": None,
            "wait_time": 0,
            "wait_resource": "",
            "open_tran": 1,
            "sql_text": "UPDATE dbo.Orders\r\nSET Status = 2\nWHERE OrderID = 42",
            "blocking_duration_seconds": 120,
        },
        {
            "session_id": 60,
            "blocked_by": 55,
            "host_name": "app02",
            "program_name": "Reports",
            "login_name": "reporting",
            "database_name": "SalesDB",
            "status": "suspended",
            "command": "SELECT",
            "cpu_time": 0,
            "memory_usage": 1,
            "physical_io": 0,
            "wait_type": "LCK_M_S",
            "wait_time": 45000,
            "wait_resource": f"KEY: {SALES_DB_ID}:{ORDERS_HOBT_ID} (8194443284a0)",
            "open_tran": 0,
            "sql_text": "SELECT * FROM dbo.Orders WHERE OrderID = 42",
            "blocking_duration_seconds": 45,
        },
        {
            "session_id": 61,
            "blocked_by": 60,
            "host_name": "app03",
            "program_name": "Billing",
            "login_name": "billing",
            "database_name": "SalesDB",
            "status": "suspended",
            "command": "UPDATE",
            "cpu_time": 0,
            "memory_usage": 1,
            "physical_io": 0,
            "wait_type": "LCK_M_X",
            "wait_time": 20000,
            "wait_resource": f"PAGE: {SALES_DB_ID}:1:12345",
            "open_tran": 1,
            "sql_text": "UPDATE dbo.Orders SET Billed = 1 WHERE OrderID = 42",
            "blocking_duration_seconds": 20,
        },
        {
            "session_id": 70,
            "blocked_by": 0,
            "database_name": "SalesDB",
            "status": "running",
            "command": "SELECT",
            "wait_type": None,
            "wait_time": 0,
            "wait_resource": "",
            "open_tran": 0,
            "sql_text": "SELECT COUNT(*) FROM dbo.Customers",
            "blocking_duration_seconds": 1,
        },
    ]


class MockConnectionManager:
    """Mock SQL Server that answers catalog and DMV queries from in-memory data."""

    def __init__(self):
        self.current_db = "master"
        self.server_properties = {
            "server_name": "SQLTEST01",
            "product_version": "16.0.4105.2",
            "major_version": 16,
            "edition": "Developer Edition (64-bit)",
            "engine_edition": 3,
        }
        self.databases: dict[int, dict] = {
            SALES_DB_ID: {"name": "SalesDB", "state": 0, "state_desc": "ONLINE"},
            ARCHIVE_DB_ID: {"name": "ArchiveDB", "state": 6, "state_desc": "OFFLINE"},
        }
        self.partitions: dict[tuple[str, int], dict] = {
            ("SalesDB", ORDERS_HOBT_ID): {
                "object_id": ORDERS_OBJECT_ID,
                "index_id": 1,
                "partition_id": ORDERS_HOBT_ID,
                "object_type": "USER_TABLE",
            },
        }
        self.objects: dict[tuple[str, int], dict] = {
            ("SalesDB", ORDERS_OBJECT_ID): {
                "schema_name": "dbo",
                "object_name": "Orders",
                "object_type": "USER_TABLE",
            },
        }
        self.indexes: dict[tuple[str, int, int], str | None] = {
            ("SalesDB", ORDERS_OBJECT_ID, 1): "PK_Orders",
        }
        self.pages: dict[tuple[int, int, int], dict] = {
            (SALES_DB_ID, 1, 12345): {
                "object_id": ORDERS_OBJECT_ID,
                "index_id": 1,
                "page_type": 1,
                "page_type_desc": "DATA_PAGE",
            },
        }
        self.sessions: list[dict] = sample_sessions()
        self.history: list[dict] = []
        self._id_counter = 0
        self._query_log: list[str] = []
        self._database_log: list[str] = []

    def for_database(self, database_name: str) -> MockConnectionManager:
        bound = copy.copy(self)
        bound.current_db = database_name
        return bound

    def execute_query(self, sql: str, params: tuple = ()) -> list[dict]:
        self._query_log.append(sql)
        self._database_log.append(self.current_db)
        if "SELECT 1 AS ok" in sql:
            return [{"ok": 1}]
        if "SERVERPROPERTY" in sql:
            return [dict(self.server_properties)]
        if "sys.sysprocesses" in sql:
            floor = params[0] if params else 0
            return [dict(s) for s in self.sessions if s["session_id"] > floor]
        if "sys.databases" in sql:
            row = self.databases.get(params[0])
            return [dict(row)] if row else []
        if "sys.partitions" in sql:
            row = self.partitions.get((self.current_db, params[0]))
            return [dict(row)] if row else []
        if "dm_db_page_info" in sql:
            row = self.pages.get(tuple(params))
            return [dict(row)] if row else []
        if "sys.indexes" in sql:
            object_id, index_id = params
            return [
                {
                    **self._object_row(object_id),
                    "index_name": self.indexes.get((self.current_db, object_id, index_id)),
                }
            ]
        if "sys.objects" in sql:
            return [self._object_row(params[0])]
        if "FROM blocking_analysis_history" in sql:
            limit = params[0] if params else 20
            return [dict(r) for r in reversed(self.history)][:limit]
        return []

    def execute_nonquery(self, sql: str, params: tuple = ()) -> int:
        self._query_log.append(sql)
        if "INSERT INTO blocking_analysis_history" in sql:
            self._id_counter += 1
            self.history.append(
                {
                    "id": self._id_counter,
                    "captured_at": "2026-10-18T12:00:00",
                    "total_blocked_sessions": params[0],
                    "unique_blocking_heads": params[1],
                    "max_blocking_depth": params[2],
                    "avg_blocking_duration_seconds": params[3],
                    "max_blocking_duration_seconds": params[4],
                    "status": params[5],
                    "blocking_data": params[6],
                }
            )
            return 1
        return 0

    def get_server_properties(self) -> dict:
        rows = self.execute_query("SELECT SERVERPROPERTY('ProductVersion')")
        return rows[0] if rows else {}

    def get_connection(self):
        return MagicMock()

    def test_connection(self) -> bool:
        return True

    def _object_row(self, object_id: int) -> dict:
        # LEFT JOIN from the id: a missing object still yields one all-NULL row
        found = self.objects.get((self.current_db, object_id))
        return dict(found) if found else {
            "schema_name": None,
            "object_name": None,
            "object_type": None,
        }


@pytest.fixture
def mock_db() -> MockConnectionManager:
    return MockConnectionManager()


@pytest.fixture
def config() -> DetectiveConfig:
    return DetectiveConfig(
        thresholds=ThresholdConfig(
            blocked_sessions_warning=1,
            blocked_sessions_critical=10,
            blocking_depth_warning=2,
            blocking_depth_critical=5,
            blocking_seconds_warning=30,
            blocking_seconds_critical=300,
        ),
    )


@pytest.fixture
def catalog() -> InMemoryCatalog:
    return InMemoryCatalog(
        databases={
            SALES_DB_ID: DatabaseState(name="SalesDB"),
            ARCHIVE_DB_ID: DatabaseState(name="ArchiveDB", state=6, state_desc="OFFLINE"),
        },
        hobts={
            ("SalesDB", ORDERS_HOBT_ID): HobtLocation(
                object_id=ORDERS_OBJECT_ID,
                index_id=1,
                partition_id=ORDERS_HOBT_ID,
                object_type="USER_TABLE",
            ),
            ("SalesDB", ORDERS_HEAP_HOBT_ID): HobtLocation(
                object_id=ORDERS_OBJECT_ID, index_id=0, partition_id=ORDERS_HEAP_HOBT_ID
            ),
            ("SalesDB", ORDERS_NC_HOBT_ID): HobtLocation(
                object_id=ORDERS_OBJECT_ID, index_id=3, partition_id=ORDERS_NC_HOBT_ID
            ),
        },
        objects={
            ("SalesDB", ORDERS_OBJECT_ID): ObjectDescription(
                schema_name="dbo", object_name="Orders", object_type="USER_TABLE"
            ),
        },
        indexes={("SalesDB", ORDERS_OBJECT_ID, 1): "PK_Orders"},
        pages={
            (SALES_DB_ID, 1, 12345): PageHeader(
                object_id=ORDERS_OBJECT_ID, index_id=1, page_type_code=1
            ),
            (SALES_DB_ID, 1, 2): PageHeader(object_id=0, index_id=0, page_type_code=10),
            (SALES_DB_ID, 1, 777): PageHeader(object_id=999, index_id=1, page_type_code=99),
        },
    )


@pytest.fixture
def decoder(catalog) -> WaitResourceDecoder:
    return WaitResourceDecoder(catalog)


@pytest.fixture
def sessions() -> list[dict]:
    return sample_sessions()
