"""Blocking chain routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from detective.api.dependencies import AppState, get_state
from detective.api.schemas import (
    AnalyzeSnapshotRequest,
    BlockingHistoryEntry,
    ChainSummaryResponse,
)
from detective.blocking.models import BlockingAnalysis, OutputFormat
from detective.core.exceptions import DatabaseConnectionError, DatabaseQueryError
from detective.monitor.health import compute_status, evaluate_blocking

router = APIRouter(prefix="/api/blocking", tags=["blocking"])


@router.get("", response_model=BlockingAnalysis)
def get_blocking(
    output_format: OutputFormat | None = Query(default=None, alias="format"),
    include_details: bool | None = None,
    min_seconds: int | None = Query(default=None, ge=0),
    only_active: bool | None = None,
    save: bool = False,
    state: AppState = Depends(get_state),
):
    """Live blocking analysis; unset parameters fall back to the configured defaults."""
    overrides = {
        "output_format": output_format,
        "include_details": include_details,
        "min_blocking_seconds": min_seconds,
        "only_active_blocking": only_active,
    }
    options = state.config.blocking.model_copy(
        update={k: v for k, v in overrides.items() if v is not None}
    )
    return state.blocking.analyze(options, save=save)


@router.get("/summary", response_model=ChainSummaryResponse)
def get_blocking_summary(state: AppState = Depends(get_state)):
    """Counts, depth and root blockers of the current blocking situation."""
    return state.blocking.get_chain_summary()


@router.post("/analyze", response_model=BlockingAnalysis)
def analyze_snapshot(body: AnalyzeSnapshotRequest, state: AppState = Depends(get_state)):
    """Resolve a posted session snapshot without touching the database."""
    analysis = state.resolver.resolve(body.sessions, body.options or state.config.blocking)
    analysis.alerts = evaluate_blocking(analysis.summary, state.config.thresholds)
    analysis.status = compute_status(analysis.alerts)
    return analysis


@router.get("/history", response_model=list[BlockingHistoryEntry])
def get_blocking_history(
    limit: int = Query(default=20, ge=1, le=500), state: AppState = Depends(get_state)
):
    """Recent saved analyses, newest first."""
    try:
        return state.history.recent(limit=limit)
    except (DatabaseConnectionError, DatabaseQueryError) as e:
        raise HTTPException(status_code=503, detail=f"History unavailable: {e}") from e
