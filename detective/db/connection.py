"""pyodbc connection manager for SQL Server."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from detective.config.models import DatabaseConfig
from detective.core.exceptions import (
    DatabaseConnectionError,
    DatabaseQueryError,
    DatabaseTimeoutError,
)

logger = logging.getLogger(__name__)

# SQLSTATE codes pyodbc reports for query/login timeouts
_TIMEOUT_STATES = ("HYT00", "HYT01")


def _quote(value: str) -> str:
    """ODBC brace-quoted attribute value; a closing brace inside is doubled."""
    return "{" + value.replace("}", "}}") + "}"


def _driver():
    # pyodbc loads libodbc on import; only code that opens connections needs it
    import pyodbc

    return pyodbc


class ConnectionManager:
    """Manages pyodbc connections to SQL Server."""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._conn_str = self._build_connection_string()

    def _build_connection_string(self) -> str:
        parts = [
            f"DRIVER={{{self.config.driver}}}",
            f"SERVER={self.config.host},{self.config.port}",
            f"DATABASE={_quote(self.config.name)}",
            f"UID={_quote(self.config.user)}",
            f"PWD={_quote(self.config.password)}",
            f"Connect Timeout={self.config.connect_timeout}",
            "APP=sql-wait-detective",
        ]
        if self.config.trust_cert:
            parts.append("TrustServerCertificate=yes")
        return ";".join(parts)

    def for_database(self, database_name: str) -> ConnectionManager:
        """Return a manager whose connections open in ``database_name``.

        Catalog views (sys.partitions, sys.objects, ...) are per database, so lookups run on
        a connection bound to the target database instead of a ``USE`` prefix.
        """
        return ConnectionManager(self.config.model_copy(update={"name": database_name}))

    def get_connection(self):
        """Create and return a new database connection."""
        pyodbc = _driver()
        try:
            conn = pyodbc.connect(self._conn_str, timeout=self.config.connect_timeout)
            conn.timeout = self.config.query_timeout
            return conn
        except pyodbc.OperationalError as e:
            raise DatabaseConnectionError(f"Cannot connect to SQL Server: {e}") from e
        except pyodbc.Error as e:
            raise DatabaseConnectionError(f"Connection error: {e}") from e

    @contextmanager
    def cursor(self):
        """Context manager yielding a cursor that auto-commits and closes."""
        pyodbc = _driver()
        conn = self.get_connection()
        try:
            cur = conn.cursor()
            yield cur
            conn.commit()
        except pyodbc.OperationalError as e:
            conn.rollback()
            if e.args and e.args[0] in _TIMEOUT_STATES:
                raise DatabaseTimeoutError(f"Query timed out: {e}") from e
            raise DatabaseQueryError(f"Query failed: {e}") from e
        except pyodbc.Error as e:
            conn.rollback()
            raise DatabaseQueryError(str(e)) from e
        finally:
            conn.close()

    def execute_query(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        """Execute a SELECT query and return rows as list of dicts."""
        with self.cursor() as cur:
            cur.execute(sql, params)
            columns = [desc[0] for desc in cur.description] if cur.description else []
            return [dict(zip(columns, row)) for row in cur.fetchall()]

    def execute_nonquery(self, sql: str, params: tuple = ()) -> int:
        """Execute an INSERT/UPDATE/DELETE and return rows affected."""
        with self.cursor() as cur:
            cur.execute(sql, params)
            return cur.rowcount

    def get_server_properties(self) -> dict[str, Any]:
        """Server name, version and engine edition (used to gate page inspection)."""
        rows = self.execute_query(
            "SELECT @@SERVERNAME AS server_name, "
            "CAST(SERVERPROPERTY('ProductVersion') AS NVARCHAR(128)) AS product_version, "
            "CAST(SERVERPROPERTY('ProductMajorVersion') AS INT) AS major_version, "
            "CAST(SERVERPROPERTY('Edition') AS NVARCHAR(128)) AS edition, "
            "CAST(SERVERPROPERTY('EngineEdition') AS INT) AS engine_edition"
        )
        return rows[0] if rows else {}

    def test_connection(self) -> bool:
        """Test if the database is reachable."""
        try:
            rows = self.execute_query("SELECT 1 AS ok")
            return len(rows) > 0 and rows[0].get("ok") == 1
        except (DatabaseConnectionError, DatabaseQueryError) as e:
            logger.error("Connection test failed: %s", e)
            return False
