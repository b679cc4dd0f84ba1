"""Health API routes."""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends

from detective.api.dependencies import AppState, get_state
from detective.api.schemas import HealthResponse, SqlHealthResponse

router = APIRouter(prefix="/api/health", tags=["health"])

_start_time = time.time()


@router.get("", response_model=HealthResponse)
def get_health(state: AppState = Depends(get_state)):
    """Connectivity plus the status of the latest blocking analysis."""
    sql_health = state.health.get_sql_health()
    latest = state.blocking.latest
    return {
        "status": latest.status if latest and latest.status else "initializing",
        "sql_connected": sql_health.get("connected", False),
        "uptime_seconds": round(time.time() - _start_time, 1),
        "version": "1.0.0",
        "blocking": latest.summary if latest else None,
    }


@router.get("/sql", response_model=SqlHealthResponse)
def get_sql_health(state: AppState = Depends(get_state)):
    """SQL Server connectivity and version info."""
    return state.health.get_sql_health()
