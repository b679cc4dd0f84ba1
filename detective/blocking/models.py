"""Blocking chain types: session snapshot rows, options and analysis results."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from detective.waits.models import DecodedResource

OutputFormat = Literal["tree", "flat", "grouped", "json"]


class SessionRecord(BaseModel):
    """One row of the session snapshot (sys.sysprocesses + current request)."""

    session_id: int = Field(gt=0)
    blocked_by: int = 0
    login_time: datetime | None = None
    host_name: str | None = None
    program_name: str | None = None
    login_name: str | None = None
    database_name: str | None = None
    status: str | None = None
    command: str | None = None
    cpu_time: int | None = None
    memory_usage: int | None = None
    physical_io: int | None = None
    wait_type: str | None = None
    wait_time: int = 0
    wait_resource: str | None = None
    open_tran: int = 0
    sql_text: str | None = None
    blocking_duration_seconds: int = 0

    @field_validator(
        "blocked_by", "wait_time", "open_tran", "blocking_duration_seconds", mode="before"
    )
    @classmethod
    def _null_as_zero(cls, value):
        return 0 if value is None else value

    @property
    def is_blocked(self) -> bool:
        """Blocked by another session. Self-blocking and negative markers count as unblocked."""
        return self.blocked_by > 0 and self.blocked_by != self.session_id

    @property
    def is_sleeping(self) -> bool:
        return (self.status or "").strip().lower() == "sleeping"


class BlockingOptions(BaseModel):
    include_details: bool = True
    min_blocking_seconds: int = Field(default=0, ge=0)
    output_format: OutputFormat = "tree"
    only_active_blocking: bool = True
    # spids at or below this are system sessions
    system_session_floor: int = Field(default=50, ge=0)
    max_depth: int = Field(default=32767, ge=1)
    sql_preview_length: int = Field(default=100, ge=1)


class BlockingNode(SessionRecord):
    """A retained session placed in (or left out of) the blocking forest."""

    blocking_level: int = 0
    level_path: str = ""
    is_blocking_head: bool = False
    is_orphan: bool = False
    decoded_wait: DecodedResource | None = None


class BlockingSummary(BaseModel):
    blocking: bool = False
    total_blocked_sessions: int = 0
    unique_blocking_heads: int = 0
    max_blocking_depth: int = 0
    avg_blocking_duration_seconds: float = 0.0
    max_blocking_duration_seconds: int = 0
    lock_waits: int = 0
    io_waits: int = 0


class WaitTypeStat(BaseModel):
    wait_type: str
    session_count: int
    avg_wait_time_ms: float
    max_wait_time_ms: int


class DatabaseStat(BaseModel):
    database_name: str
    blocked_sessions: int
    avg_blocking_duration_seconds: float


class BlockingAnalysis(BaseModel):
    """Result of one resolve() call over one snapshot."""

    nodes: list[BlockingNode] = Field(default_factory=list)
    heads: list[int] = Field(default_factory=list)
    orphans: list[int] = Field(default_factory=list)
    summary: BlockingSummary = Field(default_factory=BlockingSummary)
    wait_types: list[WaitTypeStat] = Field(default_factory=list)
    databases: list[DatabaseStat] = Field(default_factory=list)
    output_format: OutputFormat = "tree"
    rendered: Any = None
    snapshot_size: int = 0
    analyzed_at: datetime | None = None
    elapsed_ms: float = 0.0
    status: str | None = None
    alerts: list[dict[str, Any]] = Field(default_factory=list)

    def node(self, session_id: int) -> BlockingNode | None:
        return next((n for n in self.nodes if n.session_id == session_id), None)
