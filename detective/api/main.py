"""FastAPI application with lifespan; optionally starts the blocking monitor loop."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from detective.api.dependencies import get_state
from detective.api.routes import blocking, health, waits
from detective.core.logging import setup_logging

setup_logging()
logger = logging.getLogger(__name__)


async def _monitor_loop(state) -> None:
    """Background blocking analysis loop."""
    interval = state.config.monitor.poll_interval_seconds
    logger.info("Blocking monitor started (interval=%ds)", interval)
    while True:
        try:
            analysis = await asyncio.to_thread(state.blocking.analyze)
            for alert in analysis.alerts:
                if alert["level"] == "critical":
                    logger.critical(
                        "Critical: %s = %s (threshold: %s)",
                        alert["metric"],
                        alert["value"],
                        alert["threshold"],
                    )
        except Exception:
            logger.critical("Monitor loop error", exc_info=True)

        await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the monitor on startup when enabled, cancel it on shutdown."""
    state = get_state()
    monitor_task = None

    if state.config.monitor.enabled:
        logger.info("Waiting for SQL Server...")
        for attempt in range(30):
            if await asyncio.to_thread(state.db.test_connection):
                logger.info("SQL Server connected.")
                break
            logger.info("SQL Server not ready (attempt %d/30)...", attempt + 1)
            await asyncio.sleep(2)
        else:
            logger.error("Could not connect to SQL Server after 30 attempts")
        monitor_task = asyncio.create_task(_monitor_loop(state))

    yield

    if monitor_task is not None:
        monitor_task.cancel()
    logger.info("Detective shutdown complete.")


app = FastAPI(
    title="SQL Wait Detective",
    description="Wait resource decoding and blocking chain analysis for SQL Server",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(waits.router)
app.include_router(blocking.router)


@app.get("/", include_in_schema=False)
def root():
    return {"message": "SQL Wait Detective API", "docs": "/docs"}
