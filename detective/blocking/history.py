"""Blocking analysis history table."""

from __future__ import annotations

import json
import logging
from typing import Any

from detective.blocking.models import BlockingAnalysis
from detective.db.connection import ConnectionManager
from detective.db.queries import load_sql

logger = logging.getLogger(__name__)


class BlockingHistoryStore:
    """Persists one summary row per analysis in ``blocking_analysis_history``."""

    def __init__(self, db: ConnectionManager):
        self.db = db
        self._table_ready = False

    def ensure_table(self) -> None:
        if not self._table_ready:
            self.db.execute_nonquery(load_sql("schema/blocking_analysis_history.sql"))
            self._table_ready = True

    def save(self, analysis: BlockingAnalysis) -> int:
        """Insert the analysis summary plus its sessions as JSON. Returns rows affected."""
        self.ensure_table()
        summary = analysis.summary
        blocking_data = json.dumps(
            [n.model_dump(mode="json", exclude={"decoded_wait"}) for n in analysis.nodes]
        )
        rows = self.db.execute_nonquery(
            "INSERT INTO blocking_analysis_history "
            "(total_blocked_sessions, unique_blocking_heads, max_blocking_depth, "
            "avg_blocking_duration_seconds, max_blocking_duration_seconds, status, blocking_data) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                summary.total_blocked_sessions,
                summary.unique_blocking_heads,
                summary.max_blocking_depth,
                summary.avg_blocking_duration_seconds,
                summary.max_blocking_duration_seconds,
                analysis.status,
                blocking_data,
            ),
        )
        logger.info(
            "Saved blocking analysis: %d blocked, depth %d",
            summary.total_blocked_sessions,
            summary.max_blocking_depth,
        )
        return rows

    def recent(self, limit: int = 20) -> list[dict[str, Any]]:
        """Most recent history rows, newest first, without the JSON payload."""
        return self.db.execute_query(
            "SELECT TOP (?) id, captured_at, total_blocked_sessions, unique_blocking_heads, "
            "max_blocking_depth, avg_blocking_duration_seconds, max_blocking_duration_seconds, "
            "status FROM blocking_analysis_history ORDER BY id DESC",
            (limit,),
        )
