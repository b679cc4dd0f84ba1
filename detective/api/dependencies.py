"""Dependency injection for shared engine instances."""

from __future__ import annotations

from detective.blocking.history import BlockingHistoryStore
from detective.blocking.resolver import BlockingChainResolver
from detective.config.loader import load_config
from detective.config.models import DetectiveConfig
from detective.db.connection import ConnectionManager
from detective.monitor.blocking import BlockingMonitor
from detective.monitor.health import HealthCollector
from detective.waits.catalog import SqlCatalogLookup
from detective.waits.decoder import WaitResourceDecoder


class AppState:
    """Holds all shared engine instances."""

    def __init__(self):
        self.config: DetectiveConfig = load_config()
        self.db: ConnectionManager = ConnectionManager(self.config.database)
        self.health: HealthCollector = HealthCollector(self.db)
        self.decoder: WaitResourceDecoder = WaitResourceDecoder(
            SqlCatalogLookup(self.db, self.config.decoder)
        )
        self.resolver: BlockingChainResolver = BlockingChainResolver(self.config.blocking)
        self.history: BlockingHistoryStore = BlockingHistoryStore(self.db)
        self.blocking: BlockingMonitor = BlockingMonitor(
            self.db, self.config, decoder=self.decoder, history=self.history
        )


# Singleton
_state: AppState | None = None


def get_state() -> AppState:
    global _state
    if _state is None:
        _state = AppState()
    return _state


def reset_state() -> None:
    """Reset state (for testing)."""
    global _state
    _state = None
