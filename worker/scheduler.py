"""In-process report job scheduler.

Accepts report requests, de-duplicates them per (url, period_start), and
runs at most `max_workers` pipelines concurrently on the asyncio event
loop. Callers poll job status; a completed job carries the report id.

Submissions are synchronous with respect to the loop, so the
cache/active-job/create sequence cannot interleave with another submit.
Each job is written only by the task that owns it.
"""

import asyncio
import uuid
from dataclasses import dataclass
from datetime import date, timedelta

import structlog

from api.exceptions import NotFoundError, SchedulerOverloadError
from worker.config import SchedulerConfig
from worker.jobs import Job, JobStage, JobStatus
from worker.reports.contract import Report
from worker.storage import Repositories
from worker.tasks.report import Clock, ReportPipeline, utc_now

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SubmitResult:
    """Outcome of a submit: an existing report, or a job to poll."""

    report: Report | None = None
    job: Job | None = None
    estimated_seconds: int | None = None
    deduplicated: bool = False

    @property
    def job_id(self) -> str | None:
        return self.job.id if self.job else None

    @property
    def cached(self) -> bool:
        return self.report is not None


class ReportJobScheduler:
    """Bounded-concurrency scheduler for report generation jobs."""

    def __init__(
        self,
        pipeline: ReportPipeline,
        repositories: Repositories,
        config: SchedulerConfig | None = None,
        clock: Clock = utc_now,
    ):
        self.pipeline = pipeline
        self.repositories = repositories
        self.config = config or SchedulerConfig()
        self.clock = clock

        self._tasks: dict[str, asyncio.Task] = {}
        self._loop_task: asyncio.Task | None = None
        self.peak_concurrency = 0

    @property
    def processing_count(self) -> int:
        return len(self._tasks)

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def submit(self, url: str, period_start: date) -> SubmitResult:
        """
        Request a report for (url, period_start).

        Returns:
            The stored report on a cache hit, the active job for the key if
            one exists, or a new pending job with an estimated completion.

        Raises:
            SchedulerOverloadError: If the pending queue is full.
        """
        existing = self.repositories.reports.get(url, period_start)
        if existing is not None:
            logger.info("report_cache_hit", url=url, report_id=existing.id)
            return SubmitResult(report=existing)

        active = self.repositories.jobs.find_active(url, period_start)
        if active is not None:
            logger.info("report_job_deduplicated", url=url, job_id=active.id)
            return SubmitResult(
                job=active,
                estimated_seconds=self._remaining_seconds(active),
                deduplicated=True,
            )

        pending = self.repositories.jobs.count_pending()
        if pending >= self.config.max_queue_size:
            logger.warning("scheduler_overloaded", pending=pending, limit=self.config.max_queue_size)
            raise SchedulerOverloadError(pending, self.config.max_queue_size)

        now = self.clock()
        estimated_seconds = self.config.estimated_job_seconds * (1 + pending // self.config.max_workers)
        job = Job(
            id=str(uuid.uuid4()),
            url=url,
            period_start=period_start,
            status=JobStatus.PENDING,
            created_at=now,
            estimated_completion=now + timedelta(seconds=estimated_seconds),
        )
        holder = self.repositories.jobs.claim(job)
        if holder is not None:
            logger.info("report_job_deduplicated", url=url, job_id=holder.id)
            return SubmitResult(
                job=holder,
                estimated_seconds=self._remaining_seconds(holder),
                deduplicated=True,
            )

        logger.info(
            "report_job_submitted",
            job_id=job.id,
            url=url,
            period_start=period_start.isoformat(),
            estimated_seconds=estimated_seconds,
        )
        return SubmitResult(job=job, estimated_seconds=estimated_seconds)

    def status(self, job_id: str) -> Job:
        """
        Current job state, without blocking.

        Raises:
            NotFoundError: If the job id is unknown.
        """
        job = self.repositories.jobs.get(job_id)
        if job is None:
            raise NotFoundError("Job", job_id)
        return job

    def cancel(self, job_id: str) -> Job:
        """
        Cancel a pending or processing job and release its worker slot.

        Raises:
            NotFoundError: If the job id is unknown.
            InvalidTransitionError: If the job already finished.
        """
        job = self.status(job_id)
        job.transition(JobStatus.CANCELLED, self.clock())
        self.repositories.jobs.put(job)

        task = self._tasks.pop(job_id, None)
        if task is not None:
            task.cancel()

        logger.info("report_job_cancelled", job_id=job_id, was_running=task is not None)
        return job

    def tick(self) -> list[Job]:
        """Start pending jobs, oldest first, until every worker slot is busy."""
        started = []
        for job in self.repositories.jobs.list_pending():
            if len(self._tasks) >= self.config.max_workers:
                break
            self._start(job)
            started.append(job)
        return started

    def _start(self, job: Job) -> None:
        job.transition(JobStatus.PROCESSING, self.clock())
        self.repositories.jobs.put(job)

        task = asyncio.get_running_loop().create_task(self._execute(job), name=f"report-job-{job.id}")
        self._tasks[job.id] = task
        self.peak_concurrency = max(self.peak_concurrency, len(self._tasks))

        logger.info("report_job_started", job_id=job.id, url=job.url, processing=len(self._tasks))

    async def _execute(self, job: Job) -> None:
        def on_stage(stage: JobStage) -> None:
            if job.status == JobStatus.PROCESSING:
                job.advance(stage)
                self.repositories.jobs.put(job)

        try:
            result = await self.pipeline.run(job.url, job.period_start, on_stage)
            if job.status != JobStatus.PROCESSING:
                return
            result.store(self.repositories)
            job.report_id = result.report.id
            job.transition(JobStatus.COMPLETED, self.clock())
            self.repositories.jobs.put(job)
        except asyncio.CancelledError:
            logger.info("report_job_task_cancelled", job_id=job.id)
            raise
        except Exception as e:
            self._fail(job, e)
            return
        finally:
            if self._tasks.get(job.id) is asyncio.current_task():
                del self._tasks[job.id]

        logger.info(
            "report_job_completed",
            job_id=job.id,
            report_id=result.report.id,
            overall_score=result.report.overall_score,
        )

    def _fail(self, job: Job, error: Exception) -> None:
        if job.status != JobStatus.PROCESSING:
            return
        job.report_id = None
        job.fail(error, self.clock())
        self.repositories.jobs.put(job)
        logger.warning("report_job_failed", job_id=job.id, url=job.url, error=job.error)

    def _remaining_seconds(self, job: Job) -> int | None:
        if job.estimated_completion is None:
            return None
        return max(0, int((job.estimated_completion - self.clock()).total_seconds()))

    async def drain(self) -> None:
        """Wait until no job is processing."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def run_forever(self) -> None:
        """Tick at a fixed cadence until cancelled."""
        logger.info(
            "report_scheduler_started",
            max_workers=self.config.max_workers,
            tick_seconds=self.config.tick_seconds,
        )
        while True:
            self.tick()
            await asyncio.sleep(self.config.tick_seconds)

    def start(self) -> None:
        """Run the tick loop as a background task on the running loop."""
        if self.is_running:
            return
        self._loop_task = asyncio.get_running_loop().create_task(
            self.run_forever(), name="report-scheduler"
        )

    async def stop(self, drain: bool = True) -> None:
        """Stop ticking; optionally wait for in-flight jobs to finish."""
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

        if drain:
            await self.drain()
        logger.info("report_scheduler_stopped")
