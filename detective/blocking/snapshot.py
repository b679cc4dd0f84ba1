"""Session snapshot capture from sys.sysprocesses."""

from __future__ import annotations

import logging

from detective.blocking.models import SessionRecord
from detective.db.connection import ConnectionManager
from detective.db.queries import load_dmv

logger = logging.getLogger(__name__)


def _flatten(text: str | None) -> str | None:
    if text is None:
        return None
    return text.replace("\r", " ").replace("\n", " ").strip()


class SessionSnapshotSource:
    """Captures the session table once per call."""

    def __init__(self, db: ConnectionManager, min_session_id: int = 0):
        self.db = db
        self.min_session_id = min_session_id

    def capture(self, min_session_id: int | None = None) -> list[SessionRecord]:
        """Run the snapshot query and return one record per session.

        Sessions at or below ``min_session_id`` (default: the floor given at construction) are
        left out in SQL.

        Raises:
            DatabaseQueryError: the query failed; callers decide how to degrade.
        """
        if min_session_id is None:
            min_session_id = self.min_session_id
        rows = self.db.execute_query(load_dmv("session_snapshot"), (min_session_id,))
        sessions = []
        for row in rows:
            row["sql_text"] = _flatten(row.get("sql_text"))
            sessions.append(SessionRecord.model_validate(row))
        logger.debug("Captured %d sessions above spid %d", len(sessions), min_session_id)
        return sessions
