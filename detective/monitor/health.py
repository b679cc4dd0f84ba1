"""Server health checks and blocking threshold evaluation."""

from __future__ import annotations

import logging
from typing import Any

from detective.blocking.models import BlockingSummary
from detective.config.models import ThresholdConfig
from detective.core.exceptions import DatabaseConnectionError, DatabaseQueryError
from detective.db.connection import ConnectionManager

logger = logging.getLogger(__name__)


def _check(metric: str, value: float, warning: float, critical: float) -> dict[str, Any] | None:
    if value >= critical:
        return {"metric": metric, "level": "critical", "value": value, "threshold": critical}
    if value >= warning:
        return {"metric": metric, "level": "warning", "value": value, "threshold": warning}
    return None


def evaluate_blocking(
    summary: BlockingSummary, thresholds: ThresholdConfig
) -> list[dict[str, Any]]:
    """Check a blocking summary against configured thresholds."""
    if not summary.blocking:
        return []
    t = thresholds
    checks = [
        _check(
            "blocked_sessions",
            summary.total_blocked_sessions,
            t.blocked_sessions_warning,
            t.blocked_sessions_critical,
        ),
        _check(
            "blocking_depth",
            summary.max_blocking_depth,
            t.blocking_depth_warning,
            t.blocking_depth_critical,
        ),
        _check(
            "blocking_seconds",
            summary.max_blocking_duration_seconds,
            t.blocking_seconds_warning,
            t.blocking_seconds_critical,
        ),
    ]
    return [c for c in checks if c is not None]


def compute_status(alerts: list[dict]) -> str:
    """Determine overall status from alerts."""
    if any(a["level"] == "critical" for a in alerts):
        return "critical"
    if any(a["level"] == "warning" for a in alerts):
        return "warning"
    return "healthy"


class HealthCollector:
    """SQL Server connectivity and version checks."""

    def __init__(self, db: ConnectionManager):
        self.db = db

    def get_sql_health(self) -> dict[str, Any]:
        """Quick SQL Server connectivity and version check."""
        try:
            props = self.db.get_server_properties()
        except (DatabaseConnectionError, DatabaseQueryError) as e:
            logger.error("SQL health check failed: %s", e)
            return {"connected": False, "error": str(e)}
        return {"connected": True, **props} if props else {"connected": False}
