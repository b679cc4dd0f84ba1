"""Pydantic models for the YAML configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field

from detective.blocking.models import BlockingOptions


class DatabaseConfig(BaseModel):
    host: str = "sqlserver"
    port: int = 1433
    name: str = "master"
    user: str = "sa"
    password: str = ""
    driver: str = "ODBC Driver 18 for SQL Server"
    trust_cert: bool = True
    connect_timeout: int = 10
    query_timeout: int = 30


class DecoderConfig(BaseModel):
    # decode the wait_resource of every blocked session during a monitor pass
    decode_blocked_waits: bool = True
    # dm_db_page_info first shipped with SQL Server 2019
    page_info_min_version: int = 15
    page_info_editions: list[int] = Field(default_factory=lambda: [1, 2, 3, 4])


class ThresholdConfig(BaseModel):
    blocked_sessions_warning: int = 1
    blocked_sessions_critical: int = 10
    blocking_depth_warning: int = 2
    blocking_depth_critical: int = 5
    blocking_seconds_warning: int = 30
    blocking_seconds_critical: int = 300


class MonitorConfig(BaseModel):
    enabled: bool = False
    poll_interval_seconds: int = 30
    save_history: bool = False


class DetectiveConfig(BaseModel):
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    decoder: DecoderConfig = Field(default_factory=DecoderConfig)
    blocking: BlockingOptions = Field(default_factory=BlockingOptions)
    thresholds: ThresholdConfig = Field(default_factory=ThresholdConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
