"""Report API schemas."""

from datetime import date, datetime
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

from worker.recurring import Cadence


def _validate_url(value: str) -> str:
    value = value.strip()
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("url must be an absolute http(s) URL")
    return value


class ReportRequest(BaseModel):
    """Schema for requesting a report."""

    url: str = Field(..., max_length=2048, description="Page URL to report on")
    period_start: date | None = Field(
        None, description="First day of the reporting week (defaults to this week's Monday)"
    )

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str) -> str:
        return _validate_url(v)


class SubmitReportResponse(BaseModel):
    """Either an existing report id or a job to poll."""

    status: str = Field(..., description="completed (cached), pending or processing")
    job_id: str | None = None
    report_id: str | None = None
    estimated_seconds: int | None = None
    deduplicated: bool = False


class JobStatusResponse(BaseModel):
    """Schema for job status."""

    id: str
    url: str
    period_start: date
    status: str
    progress: int = Field(..., ge=0, le=100)
    stage: str
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: str | None = None
    report_id: str | None = None
    estimated_completion: datetime | None = None


class ScheduleRequest(BaseModel):
    """Schema for registering a recurring report."""

    url: str = Field(..., max_length=2048)
    cadence: Cadence = Cadence.WEEKLY
    recipients: list[str] = Field(..., min_length=1)
    day_of_week: int = Field(0, ge=0, le=6, description="0=Monday")
    hour: int = Field(6, ge=0, le=23, description="Hour of day (UTC)")

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str) -> str:
        return _validate_url(v)

    @field_validator("recipients")
    @classmethod
    def check_recipients(cls, v: list[str]) -> list[str]:
        cleaned = [r.strip() for r in v if r.strip()]
        if not cleaned:
            raise ValueError("at least one recipient is required")
        return cleaned


class ScheduleResponse(BaseModel):
    schedule_id: str
    url: str
    cadence: Cadence
    recipients: list[str]
    next_run_at: datetime


class HistoryPointResponse(BaseModel):
    """One stored week of a URL's score history."""

    date: date
    overall_score: float
    issue_count: int
    fix_count: int
    traffic_estimate: float
    report_id: str | None = Field(None, description="Stored report for this week, if any")
