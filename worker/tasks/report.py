"""Report generation pipeline.

Runs fetch -> scoring -> trend -> recommendations -> forecast -> compile
for one (url, period_start). Stages run strictly in that order; only the
collector calls suspend, and each is time-bounded.
"""

import asyncio
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime

import structlog

from api.exceptions import ProviderTimeoutError, ReportPipelineError
from worker.collector.models import CompetitorBenchmark, RawMeasurement
from worker.collector.providers import MetricCollector, get_collector
from worker.config import PipelineConfig, pipeline_config_from_settings
from worker.fixes.recommendations import RecommendationGenerator
from worker.jobs import Job, JobStage, JobStatus
from worker.reports.compiler import ReportCompiler, ReportInputs
from worker.reports.contract import Report
from worker.scoring.engine import ScoringEngine
from worker.scoring.forecast import ForecastCalculator
from worker.scoring.trend import HistoricalPoint, TrendAnalyzer
from worker.storage import HistoryStore, Repositories, get_repositories

logger = structlog.get_logger(__name__)

StageCallback = Callable[[JobStage], None]
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class PipelineResult:
    """A fully computed report and the history point it contributes."""

    report: Report
    point: HistoricalPoint

    def store(self, repositories: Repositories) -> None:
        """Persist the history point, then the report that marks the key done."""
        repositories.history.append_point(self.report.url, self.point)
        repositories.reports.put(self.report)


class ReportPipeline:
    """Executes the report stages for one key."""

    def __init__(
        self,
        collector: MetricCollector,
        history: HistoryStore,
        config: PipelineConfig | None = None,
        clock: Clock = utc_now,
        recommendation_generator: RecommendationGenerator | None = None,
    ):
        self.collector = collector
        self.history = history
        self.config = config or PipelineConfig()
        self.clock = clock

        self.engine = ScoringEngine(self.config)
        self.trend_analyzer = TrendAnalyzer(self.config.trend)
        self.recommendation_generator = recommendation_generator or RecommendationGenerator(
            self.config.recommendations
        )
        self.forecast_calculator = ForecastCalculator(self.config.forecast)
        self.compiler = ReportCompiler(self.config)

    async def run(
        self,
        url: str,
        period_start: date,
        on_stage: StageCallback | None = None,
    ) -> PipelineResult:
        """
        Generate a report.

        Args:
            url: Tracked URL
            period_start: First day of the reporting period
            on_stage: Called as each stage starts

        Returns:
            PipelineResult; nothing is stored here

        Raises:
            ProviderTimeoutError: If the collector exceeds its time bound.
            MeasurementValidationError: If the measurement is malformed.
        """

        def stage(name: JobStage) -> None:
            if on_stage is not None:
                on_stage(name)

        stage(JobStage.FETCHING)
        measurement = await self._fetch_measurement(url)
        competitors = await self._fetch_competitors(url)

        stage(JobStage.SCORING)
        scoring = self.engine.score(measurement)

        stage(JobStage.TREND)
        history = [
            p
            for p in self.history.get_history(url, self.config.scheduler.history_periods)
            if p.date < period_start
        ]
        point = self._current_point(period_start, scoring.overall_score, len(scoring.issues), history)
        trend = self.trend_analyzer.analyze(history, point)

        stage(JobStage.RECOMMENDATIONS)
        recommendations = self.recommendation_generator.generate(
            scoring.issues, scoring.category_scores, trend
        )

        stage(JobStage.FORECAST)
        forecast = self.forecast_calculator.calculate(
            scoring.overall_score, trend, recommendations, len(scoring.issues)
        )

        stage(JobStage.COMPILING)
        report = self.compiler.compile(
            ReportInputs(
                url=url,
                period_start=period_start,
                generated_at=self.clock(),
                scoring=scoring,
                trend=trend,
                recommendations=recommendations,
                forecast=forecast,
                history=history,
                competitors=competitors,
            )
        )
        return PipelineResult(report=report, point=point)

    async def _fetch_measurement(self, url: str) -> RawMeasurement:
        timeout = self.config.scheduler.collector_timeout_seconds
        try:
            return await asyncio.wait_for(self.collector.fetch_measurement(url), timeout=timeout)
        except TimeoutError as e:
            logger.warning("collector_timeout", url=url, timeout_seconds=timeout)
            raise ProviderTimeoutError(self.collector.name, timeout) from e

    async def _fetch_competitors(self, url: str) -> list[CompetitorBenchmark]:
        timeout = self.config.scheduler.collector_timeout_seconds
        try:
            return await asyncio.wait_for(self.collector.fetch_competitors(url), timeout=timeout)
        except TimeoutError:
            logger.warning("competitors_timeout", url=url, timeout_seconds=timeout)
            return []
        except ReportPipelineError as e:
            logger.warning("competitors_unavailable", url=url, error=e.message)
            return []

    def _current_point(
        self,
        period_start: date,
        overall_score: int,
        issue_count: int,
        history: list[HistoricalPoint],
    ) -> HistoricalPoint:
        # Fixes are issues that disappeared since the previous period
        fix_count = 0
        traffic = 0.0
        if history:
            fix_count = max(0, history[-1].issue_count - issue_count)
            traffic = history[-1].traffic_estimate
        return HistoricalPoint(
            date=period_start,
            overall_score=overall_score,
            issue_count=issue_count,
            fix_count=fix_count,
            traffic_estimate=traffic,
        )


async def generate_report(
    url: str,
    period_start: date,
    collector: MetricCollector | None = None,
    repositories: Repositories | None = None,
    config: PipelineConfig | None = None,
    clock: Clock = utc_now,
) -> Report | None:
    """
    Generate and store a report outside the in-process scheduler.

    The run claims the (url, period_start) key in the job table like an API
    submission does, so it never overlaps a scheduler job for the same key.

    Returns:
        The stored report (existing or new), or None when another job holds
        the key or the job was cancelled while running.
    """
    repositories = repositories or get_repositories()
    existing = repositories.reports.get(url, period_start)
    if existing is not None:
        logger.info("report_cache_hit", url=url, report_id=existing.id)
        return existing

    now = clock()
    job = Job(
        id=str(uuid.uuid4()),
        url=url,
        period_start=period_start,
        status=JobStatus.PROCESSING,
        created_at=now,
        started_at=now,
    )
    holder = repositories.jobs.claim(job)
    if holder is not None:
        logger.info("report_job_already_active", url=url, job_id=holder.id)
        return None

    def still_processing() -> bool:
        current = repositories.jobs.get(job.id)
        return current is None or current.status == JobStatus.PROCESSING

    def on_stage(stage: JobStage) -> None:
        if still_processing():
            job.advance(stage)
            repositories.jobs.put(job)

    pipeline = ReportPipeline(
        collector or get_collector(),
        repositories.history,
        config or pipeline_config_from_settings(),
        clock=clock,
    )
    try:
        result = await pipeline.run(url, period_start, on_stage)
        if not still_processing():
            logger.info("report_job_cancelled", job_id=job.id, url=url)
            return None
        result.store(repositories)
    except Exception as e:
        if still_processing():
            job.fail(e, clock())
            repositories.jobs.put(job)
        logger.warning("report_job_failed", job_id=job.id, url=url, error=job.error)
        raise

    job.report_id = result.report.id
    job.transition(JobStatus.COMPLETED, clock())
    repositories.jobs.put(job)
    logger.info("report_job_completed", job_id=job.id, report_id=result.report.id)
    return result.report


def generate_report_sync(url: str, period_start: str) -> str | None:
    """
    Synchronous wrapper for report generation.

    This is the entry point for RQ which requires sync functions.
    Returns the report id, or None when the run was skipped.
    """
    report = asyncio.run(generate_report(url, date.fromisoformat(period_start)))
    return report.id if report is not None else None
