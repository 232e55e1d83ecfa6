"""Recurring report schedules using rq-scheduler.

The API stores a cron entry. When it fires, `python -m worker.main
scheduler` moves it onto the recurring queue and an rq worker generates the
report for the current period, unless a job for that period is already
running.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING
from uuid import NAMESPACE_URL, uuid5

import structlog
from rq_scheduler import Scheduler

from api.config import get_settings
from worker.redis import get_redis_connection_bytes

if TYPE_CHECKING:
    from rq.job import Job

logger = structlog.get_logger(__name__)


class Cadence(str, Enum):
    """Schedule cadence options."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"


# Default schedule times (UTC)
DEFAULT_HOUR = 6  # 6 AM UTC
DEFAULT_DAY_OF_WEEK = 0  # Monday


def get_scheduler() -> Scheduler:
    """Get a scheduler instance connected to Redis."""
    settings = get_settings()
    return Scheduler(
        queue_name=settings.recurring_queue_name,
        connection=get_redis_connection_bytes(),
    )


def calculate_next_run(
    cadence: Cadence,
    day_of_week: int = DEFAULT_DAY_OF_WEEK,
    hour: int = DEFAULT_HOUR,
    from_time: datetime | None = None,
) -> datetime:
    """
    Calculate the next scheduled run time.

    Args:
        cadence: Weekly or monthly
        day_of_week: Day of week (0=Monday, 6=Sunday) for weekly
        hour: Hour of day (UTC)
        from_time: Calculate from this time (defaults to now)

    Returns:
        The next scheduled run datetime (UTC)
    """
    now = from_time or datetime.now(UTC)

    if cadence == Cadence.WEEKLY:
        days_ahead = day_of_week - now.weekday()
        if days_ahead < 0:
            days_ahead += 7
        elif days_ahead == 0 and now.hour >= hour:
            days_ahead = 7
        return now.replace(hour=hour, minute=0, second=0, microsecond=0) + timedelta(
            days=days_ahead
        )

    # MONTHLY: first day of the month
    if now.day == 1 and now.hour < hour:
        return now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if now.month == 12:
        next_month = now.replace(year=now.year + 1, month=1, day=1)
    else:
        next_month = now.replace(month=now.month + 1, day=1)
    return next_month.replace(hour=hour, minute=0, second=0, microsecond=0)


def cron_expression(cadence: Cadence, day_of_week: int = DEFAULT_DAY_OF_WEEK, hour: int = DEFAULT_HOUR) -> str:
    """Cron string for a cadence (cron counts weekdays from Sunday)."""
    if cadence == Cadence.WEEKLY:
        return f"0 {hour} * * {(day_of_week + 1) % 7}"
    return f"0 {hour} 1 * *"


def schedule_id_for(url: str, cadence: Cadence) -> str:
    """One schedule per (url, cadence); registering again replaces it."""
    return f"report_schedule_{uuid5(NAMESPACE_URL, f'{url}|{cadence.value}')}"


def current_period_start(today: date | None = None) -> date:
    """Monday of the current week."""
    today = today or datetime.now(UTC).date()
    return today - timedelta(days=today.weekday())


@dataclass(frozen=True)
class ScheduleInfo:
    schedule_id: str
    url: str
    cadence: Cadence
    recipients: tuple[str, ...]
    next_run_at: datetime

    def to_dict(self) -> dict:
        return {
            "schedule_id": self.schedule_id,
            "url": self.url,
            "cadence": self.cadence.value,
            "recipients": list(self.recipients),
            "next_run_at": self.next_run_at.isoformat(),
        }


class RecurringReportScheduler:
    """Service for managing recurring report schedules."""

    def __init__(self, scheduler: Scheduler | None = None) -> None:
        self._scheduler = scheduler or get_scheduler()
        self._settings = get_settings()

    @property
    def scheduler(self) -> Scheduler:
        """Get the underlying rq-scheduler instance."""
        return self._scheduler

    def schedule(
        self,
        url: str,
        cadence: Cadence,
        recipients: list[str],
        day_of_week: int = DEFAULT_DAY_OF_WEEK,
        hour: int = DEFAULT_HOUR,
    ) -> ScheduleInfo:
        """
        Register recurring report generation for a URL.

        Args:
            url: Tracked URL
            cadence: Weekly or monthly
            recipients: Delivery addresses
            day_of_week: Preferred day for weekly schedules (0=Monday)
            hour: Preferred hour (UTC)

        Returns:
            ScheduleInfo with the schedule id
        """
        schedule_id = schedule_id_for(url, cadence)
        if schedule_id in self._scheduler:
            self._scheduler.cancel(schedule_id)

        next_run_at = calculate_next_run(cadence, day_of_week, hour)

        self._scheduler.cron(
            cron_expression(cadence, day_of_week, hour),
            func=run_scheduled_report_sync,
            args=[url, list(recipients)],
            repeat=None,
            queue_name=self._settings.recurring_queue_name,
            id=schedule_id,
            timeout=self._settings.recurring_job_timeout,
            meta={
                "url": url,
                "cadence": cadence.value,
                "recipients": list(recipients),
                "scheduled_at": datetime.now(UTC).isoformat(),
            },
        )

        logger.info(
            "report_schedule_registered",
            schedule_id=schedule_id,
            url=url,
            cadence=cadence.value,
            next_run_at=next_run_at.isoformat(),
        )

        return ScheduleInfo(
            schedule_id=schedule_id,
            url=url,
            cadence=cadence,
            recipients=tuple(recipients),
            next_run_at=next_run_at,
        )

    def cancel(self, schedule_id: str) -> bool:
        """
        Cancel a recurring schedule.

        Returns:
            True if cancelled, False if not found
        """
        if schedule_id not in self._scheduler:
            return False
        self._scheduler.cancel(schedule_id)
        logger.info("report_schedule_cancelled", schedule_id=schedule_id)
        return True

    def list_schedules(self, url: str | None = None) -> list[dict]:
        """Registered schedules, optionally filtered by URL."""
        schedules = []
        for job in self._scheduler.get_jobs():
            meta = job.meta or {}
            if "cadence" not in meta:
                continue
            if url and meta.get("url") != url:
                continue
            schedules.append(_describe(job, meta))
        return schedules


def _describe(job: Job, meta: dict) -> dict:
    return {
        "schedule_id": job.id,
        "url": meta.get("url"),
        "cadence": meta.get("cadence"),
        "recipients": meta.get("recipients", []),
        "scheduled_at": meta.get("scheduled_at"),
    }


def run_scheduled_report_sync(url: str, recipients: list[str]) -> dict:
    """
    Generate the current period's report for a recurring schedule.

    This is the entry point for RQ which requires sync functions.
    """
    from worker.tasks.report import generate_report_sync

    period_start = current_period_start()
    report_id = generate_report_sync(url, period_start.isoformat())
    if report_id is None:
        logger.info("scheduled_report_skipped", url=url, period_start=period_start.isoformat())
        return {"url": url, "report_id": None, "period_start": period_start.isoformat()}

    # Delivery transport is external; record the hand-off.
    logger.info(
        "report_delivery_requested",
        url=url,
        report_id=report_id,
        recipients=recipients,
    )
    return {"url": url, "report_id": report_id, "period_start": period_start.isoformat()}


def run_scheduler_tick(scheduler: Scheduler | None = None) -> int:
    """
    Move due schedules onto the queue.

    Call periodically when no long-running scheduler process is deployed.

    Returns:
        Number of jobs enqueued
    """
    scheduler = scheduler or get_scheduler()
    count = scheduler.run(burst=True)
    if count:
        logger.info("scheduler_tick", jobs_enqueued=count)
    return count or 0
