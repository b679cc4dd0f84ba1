"""Tests for SqlCatalogLookup against the mock server."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from detective.config.models import DatabaseConfig, DecoderConfig
from detective.core.exceptions import (
    DatabaseQueryError,
    ResourceNotFoundError,
    UnsupportedFeatureError,
)
from detective.db.connection import ConnectionManager
from detective.waits.catalog import SqlCatalogLookup
from detective.waits.decoder import WaitResourceDecoder

ORDERS_OBJECT_ID = 245575913
ORDERS_HOBT_ID = 72057594038321152


@pytest.fixture
def lookup(mock_db):
    return SqlCatalogLookup(mock_db)


class TestDatabaseState:
    def test_online(self, lookup):
        state = lookup.database_state(5)
        assert state.name == "SalesDB"
        assert state.is_online

    def test_offline(self, lookup):
        state = lookup.database_state(6)
        assert not state.is_online
        assert state.state_desc == "OFFLINE"

    def test_missing(self, lookup):
        assert lookup.database_state(42) is None


class TestPerDatabaseLookups:
    def test_hobt_runs_in_target_database(self, lookup, mock_db):
        location = lookup.lookup_hobt("SalesDB", ORDERS_HOBT_ID)
        assert location.object_id == ORDERS_OBJECT_ID
        assert location.index_id == 1
        assert location.object_type == "USER_TABLE"
        assert mock_db._database_log[-1] == "SalesDB"
        assert "USE " not in mock_db._query_log[-1]

    def test_hobt_missing(self, lookup):
        assert lookup.lookup_hobt("SalesDB", 1) is None

    def test_object_with_index(self, lookup):
        description = lookup.describe_object("SalesDB", ORDERS_OBJECT_ID, 1)
        assert description.schema_name == "dbo"
        assert description.object_name == "Orders"
        assert description.index_name == "PK_Orders"

    def test_object_without_index(self, lookup, mock_db):
        description = lookup.describe_object("SalesDB", ORDERS_OBJECT_ID)
        assert description.object_name == "Orders"
        assert description.index_name is None
        assert "sys.indexes" not in mock_db._query_log[-1]

    def test_object_missing(self, lookup):
        description = lookup.describe_object("SalesDB", 1)
        assert not description.exists

    def test_database_name_with_separator(self, monkeypatch):
        bound_to = []

        def execute_query(manager, sql, params=()):
            bound_to.append(manager._conn_str)
            return [{"object_id": ORDERS_OBJECT_ID, "index_id": 1, "partition_id": ORDERS_HOBT_ID}]

        monkeypatch.setattr(ConnectionManager, "execute_query", execute_query)
        lookup = SqlCatalogLookup(ConnectionManager(DatabaseConfig(host="sql01")))
        location = lookup.lookup_hobt("Sales;2024", ORDERS_HOBT_ID)
        assert location.object_id == ORDERS_OBJECT_ID
        assert "DATABASE={Sales;2024};" in bound_to[-1]


class TestDescribePage:
    def test_supported(self, lookup):
        header = lookup.describe_page(5, 1, 12345)
        assert header.object_id == ORDERS_OBJECT_ID
        assert header.page_type_code == 1

    def test_missing_page(self, lookup):
        with pytest.raises(ResourceNotFoundError):
            lookup.describe_page(5, 1, 99)

    def test_old_version_unsupported(self, lookup, mock_db):
        mock_db.server_properties["major_version"] = 14
        with pytest.raises(UnsupportedFeatureError, match="not supported"):
            lookup.describe_page(5, 1, 12345)
        assert not any("dm_db_page_info" in q for q in mock_db._query_log)

    def test_edition_unsupported(self, lookup, mock_db):
        mock_db.server_properties["engine_edition"] = 5
        with pytest.raises(UnsupportedFeatureError):
            lookup.describe_page(5, 1, 12345)

    def test_configured_minimum_version(self, mock_db):
        lookup = SqlCatalogLookup(mock_db, DecoderConfig(page_info_min_version=17))
        with pytest.raises(UnsupportedFeatureError):
            lookup.describe_page(5, 1, 12345)

    def test_permission_error_becomes_unsupported(self, lookup, mock_db):
        mock_db.execute_query = MagicMock(
            side_effect=DatabaseQueryError("VIEW SERVER STATE permission denied")
        )
        mock_db.get_server_properties = MagicMock(
            return_value={"engine_edition": 3, "major_version": 16}
        )
        with pytest.raises(UnsupportedFeatureError, match="Page inspection failed"):
            lookup.describe_page(5, 1, 12345)

    def test_availability_checked_once(self, lookup, mock_db):
        mock_db.get_server_properties = MagicMock(
            return_value={"engine_edition": 3, "major_version": 16}
        )
        lookup.describe_page(5, 1, 12345)
        lookup.describe_page(5, 1, 12345)
        assert mock_db.get_server_properties.call_count == 1


class TestDecoderOnSqlCatalog:
    def test_key(self, mock_db):
        decoder = WaitResourceDecoder(SqlCatalogLookup(mock_db))
        result = decoder.decode(f"KEY: 5:{ORDERS_HOBT_ID} (8194443284a0)")
        assert result.error_message is None
        assert result.qualified_name == "dbo.Orders.PK_Orders"

    def test_page(self, mock_db):
        decoder = WaitResourceDecoder(SqlCatalogLookup(mock_db))
        result = decoder.decode("PAGE: 5:1:12345")
        assert result.page_type == "1 - Data"
        assert result.object_name == "Orders"

    def test_page_on_old_server(self, mock_db):
        mock_db.server_properties["major_version"] = 13
        decoder = WaitResourceDecoder(SqlCatalogLookup(mock_db))
        result = decoder.decode("PAGE: 5:1:12345")
        assert "not supported" in result.error_message
        assert result.database_name == "SalesDB"
