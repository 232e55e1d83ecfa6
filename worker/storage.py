"""Job, report and history repositories.

The scheduler only talks to the abstract repositories. In-memory
implementations back tests and single-process runs; the Redis
implementations share state between the API and rq workers.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date

import structlog
from redis import Redis

from worker.jobs import ACTIVE_STATUSES, Job, JobStatus
from worker.redis import (
    HISTORY_KEY_PREFIX,
    JOB_KEY_PREFIX,
    REPORT_KEY_PREFIX,
    get_redis_connection,
)
from worker.reports.contract import Report, report_id_for
from worker.scoring.trend import HistoricalPoint

logger = structlog.get_logger(__name__)


class JobRepository(ABC):
    """Job table."""

    @abstractmethod
    def get(self, job_id: str) -> Job | None: ...

    @abstractmethod
    def put(self, job: Job) -> None: ...

    @abstractmethod
    def find_active(self, url: str, period_start: date) -> Job | None:
        """The pending or processing job for a key, if any."""

    @abstractmethod
    def list_pending(self) -> list[Job]:
        """Pending jobs, oldest first."""

    def count_pending(self) -> int:
        return len(self.list_pending())

    def claim(self, job: Job) -> Job | None:
        """
        Store `job` as the active job for its key.

        Returns:
            None when the key was claimed, otherwise the job already
            holding it (nothing is stored)
        """
        holder = self.find_active(job.url, job.period_start)
        if holder is not None:
            return holder
        self.put(job)
        return None


class ReportRepository(ABC):
    """Report store keyed by (url, period_start)."""

    @abstractmethod
    def get_by_id(self, report_id: str) -> Report | None: ...

    @abstractmethod
    def put(self, report: Report) -> None: ...

    def get(self, url: str, period_start: date) -> Report | None:
        return self.get_by_id(report_id_for(url, period_start))


class HistoryStore(ABC):
    """Append-only HistoricalPoint series per URL."""

    @abstractmethod
    def get_history(self, url: str, period_count: int) -> list[HistoricalPoint]:
        """The latest `period_count` points, oldest first."""

    @abstractmethod
    def append_point(self, url: str, point: HistoricalPoint) -> None:
        """Append a point; a point for the same date as the latest replaces it."""


class InMemoryJobRepository(JobRepository):
    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}

    def get(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)

    def put(self, job: Job) -> None:
        self._jobs[job.id] = job

    def find_active(self, url: str, period_start: date) -> Job | None:
        for job in self._jobs.values():
            if job.key == (url, period_start) and job.status in ACTIVE_STATUSES:
                return job
        return None

    def list_pending(self) -> list[Job]:
        pending = [j for j in self._jobs.values() if j.status == JobStatus.PENDING]
        return sorted(pending, key=lambda j: j.created_at)


class InMemoryReportRepository(ReportRepository):
    def __init__(self) -> None:
        self._reports: dict[str, Report] = {}

    def get_by_id(self, report_id: str) -> Report | None:
        return self._reports.get(report_id)

    def put(self, report: Report) -> None:
        self._reports[report.id] = report


class InMemoryHistoryStore(HistoryStore):
    def __init__(self, seed: dict[str, list[HistoricalPoint]] | None = None) -> None:
        self._series: dict[str, list[HistoricalPoint]] = {
            url: list(points) for url, points in (seed or {}).items()
        }

    def get_history(self, url: str, period_count: int) -> list[HistoricalPoint]:
        if period_count <= 0:
            return []
        return list(self._series.get(url, [])[-period_count:])

    def append_point(self, url: str, point: HistoricalPoint) -> None:
        series = self._series.setdefault(url, [])
        if series and series[-1].date == point.date:
            series[-1] = point
        else:
            series.append(point)


class RedisJobRepository(JobRepository):
    """
    Jobs as JSON strings.

    A sorted set scored by creation time tracks pending jobs and a per-key
    pointer tracks the active job for (url, period_start).
    """

    def __init__(self, redis: Redis | None = None, ttl_seconds: int | None = None):
        self._redis = redis or get_redis_connection()
        self.ttl_seconds = ttl_seconds
        self._pending_key = f"{JOB_KEY_PREFIX}pending"

    def _job_key(self, job_id: str) -> str:
        return f"{JOB_KEY_PREFIX}{job_id}"

    def _active_key(self, url: str, period_start: date) -> str:
        return f"{JOB_KEY_PREFIX}active:{url}|{period_start.isoformat()}"

    def get(self, job_id: str) -> Job | None:
        data = self._redis.get(self._job_key(job_id))
        if not data:
            return None
        return Job.from_dict(json.loads(data))

    def put(self, job: Job) -> None:
        active_key = self._active_key(job.url, job.period_start)
        pipe = self._redis.pipeline()
        pipe.set(self._job_key(job.id), json.dumps(job.to_dict()), ex=self.ttl_seconds)
        if job.status == JobStatus.PENDING:
            pipe.zadd(self._pending_key, {job.id: job.created_at.timestamp()})
        else:
            pipe.zrem(self._pending_key, job.id)
        if job.is_active:
            pipe.set(active_key, job.id)
        pipe.execute()

        if not job.is_active and self._redis.get(active_key) == job.id:
            self._redis.delete(active_key)

    def find_active(self, url: str, period_start: date) -> Job | None:
        job_id = self._redis.get(self._active_key(url, period_start))
        if not job_id:
            return None
        job = self.get(job_id)
        if job is None or not job.is_active:
            return None
        return job

    def claim(self, job: Job) -> Job | None:
        """Claim the key with SET NX so API and rq workers never both run it."""
        active_key = self._active_key(job.url, job.period_start)
        for _ in range(2):
            if self._redis.set(active_key, job.id, nx=True, ex=self.ttl_seconds):
                self.put(job)
                return None
            holder = self.find_active(job.url, job.period_start)
            if holder is not None:
                return holder
            # Pointer left behind by a finished or expired job
            self._redis.delete(active_key)
        raise RuntimeError(f"could not claim {active_key}")

    def list_pending(self) -> list[Job]:
        jobs = []
        for job_id in self._redis.zrange(self._pending_key, 0, -1):
            job = self.get(job_id)
            if job is not None and job.status == JobStatus.PENDING:
                jobs.append(job)
        return jobs

    def count_pending(self) -> int:
        return int(self._redis.zcard(self._pending_key))


class RedisReportRepository(ReportRepository):
    def __init__(self, redis: Redis | None = None, ttl_seconds: int | None = None):
        self._redis = redis or get_redis_connection()
        self.ttl_seconds = ttl_seconds

    def _key(self, report_id: str) -> str:
        return f"{REPORT_KEY_PREFIX}{report_id}"

    def get_by_id(self, report_id: str) -> Report | None:
        data = self._redis.get(self._key(report_id))
        if not data:
            logger.debug("report_cache_miss", report_id=report_id)
            return None
        return Report.from_dict(json.loads(data))

    def put(self, report: Report) -> None:
        self._redis.set(
            self._key(report.id),
            json.dumps(report.to_dict()),
            ex=self.ttl_seconds,
        )
        logger.debug("report_stored", report_id=report.id, ttl=self.ttl_seconds)


class RedisHistoryStore(HistoryStore):
    def __init__(self, redis: Redis | None = None):
        self._redis = redis or get_redis_connection()

    def _key(self, url: str) -> str:
        return f"{HISTORY_KEY_PREFIX}{url}"

    def get_history(self, url: str, period_count: int) -> list[HistoricalPoint]:
        if period_count <= 0:
            return []
        raw = self._redis.lrange(self._key(url), -period_count, -1)
        return [HistoricalPoint.from_dict(json.loads(item)) for item in raw]

    def append_point(self, url: str, point: HistoricalPoint) -> None:
        key = self._key(url)
        payload = json.dumps(point.to_dict())
        latest = self._redis.lindex(key, -1)
        if latest and HistoricalPoint.from_dict(json.loads(latest)).date == point.date:
            self._redis.lset(key, -1, payload)
        else:
            self._redis.rpush(key, payload)


@dataclass
class Repositories:
    """The three stores the pipeline consumes."""

    jobs: JobRepository
    reports: ReportRepository
    history: HistoryStore


def in_memory_repositories() -> Repositories:
    return Repositories(
        jobs=InMemoryJobRepository(),
        reports=InMemoryReportRepository(),
        history=InMemoryHistoryStore(),
    )


def get_repositories() -> Repositories:
    """Build the repositories selected by settings."""
    from api.config import get_settings

    settings = get_settings()
    if settings.uses_redis:
        redis = get_redis_connection()
        return Repositories(
            jobs=RedisJobRepository(redis, ttl_seconds=settings.report_ttl_seconds),
            reports=RedisReportRepository(redis, ttl_seconds=settings.report_ttl_seconds),
            history=RedisHistoryStore(redis),
        )
    return in_memory_repositories()
