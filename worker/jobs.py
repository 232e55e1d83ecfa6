"""Report generation jobs and their state machine."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any

from api.exceptions import InvalidTransitionError, ReportPipelineError


class JobStatus(str, Enum):
    """Job status values."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


ACTIVE_STATUSES = frozenset({JobStatus.PENDING, JobStatus.PROCESSING})
TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED})

ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING, JobStatus.CANCELLED}),
    JobStatus.PROCESSING: frozenset(
        {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}
    ),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}


class JobStage(str, Enum):
    """Pipeline stage a processing job is in, with its progress mark."""

    QUEUED = "queued"
    FETCHING = "fetching"
    SCORING = "scoring"
    TREND = "trend"
    RECOMMENDATIONS = "recommendations"
    FORECAST = "forecast"
    COMPILING = "compiling"
    DONE = "done"


STAGE_PROGRESS = {
    JobStage.QUEUED: 0,
    JobStage.FETCHING: 10,
    JobStage.SCORING: 30,
    JobStage.TREND: 50,
    JobStage.RECOMMENDATIONS: 70,
    JobStage.FORECAST: 85,
    JobStage.COMPILING: 95,
    JobStage.DONE: 100,
}


@dataclass
class Job:
    """A report generation request tracked independently of its report.

    Mutated only by the run that owns it: a scheduler task or an rq job.
    """

    id: str
    url: str
    period_start: date
    status: JobStatus
    created_at: datetime
    progress: int = 0
    stage: JobStage = JobStage.QUEUED
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: str | None = None
    report_id: str | None = None
    estimated_completion: datetime | None = None

    @property
    def key(self) -> tuple[str, date]:
        return (self.url, self.period_start)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition(self, status: JobStatus, at: datetime) -> None:
        """
        Move to `status`.

        Raises:
            InvalidTransitionError: If the move goes backwards or leaves a
                terminal state.
        """
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.id, self.status.value, status.value)

        self.status = status
        if status == JobStatus.PROCESSING:
            self.started_at = at
        elif status in TERMINAL_STATUSES:
            self.completed_at = at
            if status == JobStatus.COMPLETED:
                self.advance(JobStage.DONE)

    def fail(self, error: Exception, at: datetime) -> None:
        """
        Move to failed and record `error`.

        Raises:
            InvalidTransitionError: If the job is not processing.
        """
        self.transition(JobStatus.FAILED, at)
        if isinstance(error, ReportPipelineError):
            self.error = error.message
        else:
            self.error = str(error) or type(error).__name__

    def advance(self, stage: JobStage) -> None:
        """Record pipeline progress; progress never decreases."""
        self.stage = stage
        self.progress = max(self.progress, STAGE_PROGRESS[stage])

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "url": self.url,
            "period_start": self.period_start.isoformat(),
            "status": self.status.value,
            "progress": self.progress,
            "stage": self.stage.value,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error": self.error,
            "report_id": self.report_id,
            "estimated_completion": (
                self.estimated_completion.isoformat() if self.estimated_completion else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Job":
        def _dt(value: str | None) -> datetime | None:
            return datetime.fromisoformat(value) if value else None

        return cls(
            id=data["id"],
            url=data["url"],
            period_start=date.fromisoformat(data["period_start"]),
            status=JobStatus(data["status"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            progress=int(data.get("progress", 0)),
            stage=JobStage(data.get("stage", JobStage.QUEUED.value)),
            started_at=_dt(data.get("started_at")),
            completed_at=_dt(data.get("completed_at")),
            error=data.get("error"),
            report_id=data.get("report_id"),
            estimated_completion=_dt(data.get("estimated_completion")),
        )
