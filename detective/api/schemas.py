"""Pydantic request/response models for the API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from detective.blocking.models import BlockingOptions, BlockingSummary, SessionRecord


# --- Health ---
class HealthResponse(BaseModel):
    status: str
    sql_connected: bool
    uptime_seconds: float
    version: str = "1.0.0"
    blocking: BlockingSummary | None = None


class SqlHealthResponse(BaseModel):
    connected: bool
    server_name: str | None = None
    product_version: str | None = None
    major_version: int | None = None
    edition: str | None = None
    engine_edition: int | None = None
    error: str | None = None


# --- Wait resources ---
class DecodeRequest(BaseModel):
    wait_resources: list[str | None] = Field(min_length=1, max_length=500)


# --- Blocking ---
class AnalyzeSnapshotRequest(BaseModel):
    sessions: list[SessionRecord]
    options: BlockingOptions | None = None


class BlockingHistoryEntry(BaseModel):
    id: int
    captured_at: datetime | str | None = None
    total_blocked_sessions: int
    unique_blocking_heads: int
    max_blocking_depth: int
    avg_blocking_duration_seconds: float | None = None
    max_blocking_duration_seconds: int | None = None
    status: str | None = None


class ChainSummaryResponse(BlockingSummary):
    status: str | None = None
    root_blockers: list[int] = Field(default_factory=list)
    orphans: list[int] = Field(default_factory=list)
    alerts: list[dict[str, Any]] = Field(default_factory=list)
