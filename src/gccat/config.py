"""Analyzer tunables."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class AnalyzerSettings(BaseModel):
    """Configurable limits and thresholds for ingestion, statistics and rules."""

    model_config = ConfigDict(frozen=True)

    # Unidentified lines retained in memory; the rest are only counted
    reject_limit: int = Field(default=1000, ge=0)

    # Percent of wall time between consecutive pauses that must be application time
    throughput_threshold: int = Field(default=90, ge=0, le=100)

    bottleneck_line_limit: int = Field(default=30, ge=0)
    unidentified_report_limit: int = Field(default=30, ge=0)

    # A first event later than this means the log does not start at JVM start
    first_timestamp_threshold_secs: int = Field(default=60, ge=0)

    # GC pause time as a percent of total stopped time
    gc_stopped_ratio_threshold: int = Field(default=80, ge=0, le=100)
