"""Report service - the boundary between HTTP routes and the pipeline."""

from datetime import date

import structlog

from api.exceptions import NotFoundError
from worker.collector.providers import MetricCollector, get_collector
from worker.config import PipelineConfig, pipeline_config_from_settings
from worker.jobs import Job
from worker.recurring import Cadence, RecurringReportScheduler, ScheduleInfo
from worker.reports.contract import Report
from worker.reports.exporters import ExportResult, export_report
from worker.scheduler import ReportJobScheduler, SubmitResult
from worker.storage import Repositories, get_repositories
from worker.tasks.report import ReportPipeline

logger = structlog.get_logger(__name__)


class ReportService:
    """Exposes report generation, polling, export and recurring schedules."""

    def __init__(
        self,
        scheduler: ReportJobScheduler,
        repositories: Repositories,
        recurring: RecurringReportScheduler | None = None,
    ):
        self.scheduler = scheduler
        self.repositories = repositories
        self._recurring = recurring

    @property
    def recurring(self) -> RecurringReportScheduler:
        # Connects to Redis on first use only
        if self._recurring is None:
            self._recurring = RecurringReportScheduler()
        return self._recurring

    def submit_report(self, url: str, period_start: date) -> SubmitResult:
        return self.scheduler.submit(url, period_start)

    def get_job_status(self, job_id: str) -> Job:
        return self.scheduler.status(job_id)

    def cancel_job(self, job_id: str) -> Job:
        return self.scheduler.cancel(job_id)

    def get_report(self, report_id: str) -> Report:
        """
        Get a stored report.

        Raises:
            NotFoundError: If no report has this id.
        """
        report = self.repositories.reports.get_by_id(report_id)
        if report is None:
            raise NotFoundError("Report", report_id)
        return report

    def get_history(self, url: str, limit: int = 12) -> list[dict]:
        """
        Stored weekly points for a URL, oldest first.

        Each point carries the id of its stored report, or None when the
        report has expired.
        """
        history = []
        for point in self.repositories.history.get_history(url, limit):
            report = self.repositories.reports.get(url, point.date)
            history.append({**point.to_dict(), "report_id": report.id if report else None})
        return history

    def export_report(self, report_id: str, export_format: str) -> ExportResult:
        """
        Export a stored report.

        Raises:
            NotFoundError: If no report has this id.
            ExportUnsupportedFormatError: If the format is not supported.
        """
        return export_report(self.get_report(report_id), export_format)

    def schedule_recurring(
        self,
        url: str,
        cadence: Cadence,
        recipients: list[str],
        day_of_week: int = 0,
        hour: int = 6,
    ) -> ScheduleInfo:
        return self.recurring.schedule(url, cadence, recipients, day_of_week, hour)

    def cancel_schedule(self, schedule_id: str) -> None:
        """
        Cancel a recurring schedule.

        Raises:
            NotFoundError: If the schedule does not exist.
        """
        if not self.recurring.cancel(schedule_id):
            raise NotFoundError("Schedule", schedule_id)


def build_report_service(
    collector: MetricCollector | None = None,
    repositories: Repositories | None = None,
    config: PipelineConfig | None = None,
    recurring: RecurringReportScheduler | None = None,
) -> ReportService:
    """Wire the pipeline, scheduler and repositories together."""
    config = config or pipeline_config_from_settings()
    repositories = repositories or get_repositories()
    pipeline = ReportPipeline(collector or get_collector(), repositories.history, config)
    scheduler = ReportJobScheduler(pipeline, repositories, config.scheduler)
    return ReportService(scheduler, repositories, recurring)


_service: ReportService | None = None


def get_report_service() -> ReportService:
    """Process-wide service instance."""
    global _service
    if _service is None:
        _service = build_report_service()
    return _service


def set_report_service(service: ReportService | None) -> None:
    global _service
    _service = service
