"""Pydantic schemas for BedHeat models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from backend.core.time_window import parse_time_of_day


class PhaseSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    time: str = Field(pattern=r"^\d{2}:\d{2}$", description="Local time of day, HH:MM")
    level: int | None = Field(
        default=None, ge=-100, le=100, description="Heating level on the API scale; null = off"
    )

    @field_validator("time")
    @classmethod
    def _valid_clock(cls, v: str) -> str:
        parse_time_of_day(v)
        return v


class RunReportResponse(BaseModel):
    """Batch summary for the cron caller; per-user detail stays in the logs."""

    success: bool = True
    dry_run: bool
    started_at: datetime
    users_processed: int
    users_failed: int
    skipped: bool = False
