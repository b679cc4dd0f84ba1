"""Live blocking analysis: capture, resolve, decode waits, evaluate, record."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from detective.blocking.history import BlockingHistoryStore
from detective.blocking.models import BlockingAnalysis, BlockingOptions
from detective.blocking.render import render, render_text, render_tree
from detective.blocking.resolver import BlockingChainResolver
from detective.blocking.snapshot import SessionSnapshotSource
from detective.config.models import DetectiveConfig
from detective.core.exceptions import DatabaseConnectionError, DatabaseQueryError
from detective.db.connection import ConnectionManager
from detective.monitor.health import compute_status, evaluate_blocking
from detective.waits.decoder import WaitResourceDecoder

logger = logging.getLogger(__name__)


class BlockingMonitor:
    """Runs blocking analysis against the live server."""

    def __init__(
        self,
        db: ConnectionManager,
        config: DetectiveConfig,
        decoder: WaitResourceDecoder | None = None,
        history: BlockingHistoryStore | None = None,
    ):
        self.db = db
        self.config = config
        self.decoder = decoder
        self.history = history
        self.resolver = BlockingChainResolver(config.blocking)
        self.source = SessionSnapshotSource(db, min_session_id=config.blocking.system_session_floor)
        self.latest: BlockingAnalysis | None = None

    def analyze(
        self, options: BlockingOptions | None = None, save: bool | None = None
    ) -> BlockingAnalysis:
        """Capture one snapshot and return the evaluated analysis.

        A failed capture returns an analysis with status ``error`` instead of raising.
        """
        options = options or self.config.blocking
        try:
            snapshot = self.source.capture(options.system_session_floor)
        except (DatabaseConnectionError, DatabaseQueryError) as e:
            logger.error("Session snapshot failed: %s", e)
            return self._error_analysis(str(e), options)

        analysis = self.resolver.resolve(snapshot, options)
        if self.decoder is not None and self.config.decoder.decode_blocked_waits:
            self._decode_waits(analysis)
            analysis.rendered = render(analysis, options)

        analysis.alerts = evaluate_blocking(analysis.summary, self.config.thresholds)
        analysis.status = compute_status(analysis.alerts)

        if analysis.summary.blocking:
            tree = render_text(render_tree(analysis.nodes, options))
            logger.info(
                "Blocking detected: %d blocked, %d heads, depth %d\n%s",
                analysis.summary.total_blocked_sessions,
                analysis.summary.unique_blocking_heads,
                analysis.summary.max_blocking_depth,
                tree,
                extra={"elapsed_ms": analysis.elapsed_ms},
            )

        if save is None:
            save = self.config.monitor.save_history
        if save and self.history is not None:
            self._save(analysis)

        self.latest = analysis
        return analysis

    def get_root_blockers(self) -> list[dict[str, Any]]:
        """Blocking heads of a fresh analysis."""
        analysis = self.analyze()
        return [n.model_dump(mode="json") for n in analysis.nodes if n.is_blocking_head]

    def get_chain_summary(self) -> dict[str, Any]:
        """Summary of the current blocking situation."""
        analysis = self.analyze()
        return {
            **analysis.summary.model_dump(),
            "status": analysis.status,
            "root_blockers": analysis.heads,
            "orphans": analysis.orphans,
            "alerts": analysis.alerts,
        }

    def _decode_waits(self, analysis: BlockingAnalysis) -> None:
        decoded: dict[str, Any] = {}
        for node in analysis.nodes:
            if not node.is_blocked or not node.wait_resource:
                continue
            if node.wait_resource not in decoded:
                decoded[node.wait_resource] = self.decoder.decode(node.wait_resource)
            node.decoded_wait = decoded[node.wait_resource]

    def _save(self, analysis: BlockingAnalysis) -> None:
        try:
            self.history.save(analysis)
        except (DatabaseConnectionError, DatabaseQueryError) as e:
            logger.warning("Failed to save blocking history: %s", e)

    def _error_analysis(self, error: str, options: BlockingOptions) -> BlockingAnalysis:
        return BlockingAnalysis(
            output_format=options.output_format,
            analyzed_at=datetime.now(timezone.utc),
            status="error",
            alerts=[
                {
                    "metric": "session_snapshot",
                    "level": "critical",
                    "value": error,
                    "threshold": None,
                }
            ],
        )
