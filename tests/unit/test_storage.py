"""Tests for job, report and history repositories."""

import json
from datetime import date, timedelta
from unittest.mock import MagicMock

from tests.fixtures import FIXED_NOW, PERIOD, URL, make_history
from worker.jobs import Job, JobStatus
from worker.scoring.trend import HistoricalPoint
from worker.storage import (
    InMemoryHistoryStore,
    InMemoryJobRepository,
    InMemoryReportRepository,
    RedisHistoryStore,
    RedisJobRepository,
    RedisReportRepository,
)


def _job(job_id: str, url: str = URL, offset: int = 0, status: JobStatus = JobStatus.PENDING) -> Job:
    return Job(
        id=job_id,
        url=url,
        period_start=PERIOD,
        status=status,
        created_at=FIXED_NOW + timedelta(seconds=offset),
    )


class TestInMemoryJobRepository:
    """Tests for the in-memory job table."""

    def test_find_active_by_key(self) -> None:
        repo = InMemoryJobRepository()
        repo.put(_job("done", status=JobStatus.COMPLETED))
        repo.put(_job("live", status=JobStatus.PROCESSING))

        assert repo.find_active(URL, PERIOD).id == "live"
        assert repo.find_active(URL, PERIOD + timedelta(days=7)) is None

    def test_list_pending_oldest_first(self) -> None:
        repo = InMemoryJobRepository()
        repo.put(_job("b", url="https://b.example", offset=5))
        repo.put(_job("a", url="https://a.example", offset=1))
        repo.put(_job("c", url="https://c.example", offset=3, status=JobStatus.PROCESSING))

        assert [j.id for j in repo.list_pending()] == ["a", "b"]
        assert repo.count_pending() == 2

    def test_claim_free_key_stores_job(self) -> None:
        repo = InMemoryJobRepository()

        assert repo.claim(_job("first")) is None
        assert repo.get("first") is not None

    def test_claim_held_key_returns_holder(self) -> None:
        repo = InMemoryJobRepository()
        repo.claim(_job("first", status=JobStatus.PROCESSING))

        holder = repo.claim(_job("second"))

        assert holder.id == "first"
        assert repo.get("second") is None


class TestInMemoryReportRepository:
    def test_lookup_by_key(self, report) -> None:
        repo = InMemoryReportRepository()
        repo.put(report)

        assert repo.get(URL, PERIOD) is report
        assert repo.get_by_id(report.id) is report
        assert repo.get(URL, date(2024, 3, 11)) is None


class TestInMemoryHistoryStore:
    def test_latest_points_oldest_first(self) -> None:
        store = InMemoryHistoryStore({URL: make_history([50, 60, 70])})

        assert [p.overall_score for p in store.get_history(URL, 2)] == [60, 70]
        assert store.get_history(URL, 0) == []
        assert store.get_history("https://unknown.example", 5) == []

    def test_append(self) -> None:
        store = InMemoryHistoryStore()
        for point in make_history([50, 60]):
            store.append_point(URL, point)

        assert len(store.get_history(URL, 12)) == 2

    def test_same_date_replaces_latest(self) -> None:
        """Re-running a week overwrites its point instead of duplicating it."""
        store = InMemoryHistoryStore({URL: make_history([50, 60], end=PERIOD)})
        rerun = HistoricalPoint(date=PERIOD, overall_score=80)

        store.append_point(URL, rerun)
        store.append_point(URL, HistoricalPoint(date=PERIOD, overall_score=85))

        assert [p.overall_score for p in store.get_history(URL, 12)] == [50, 60, 85]


class TestRedisRepositories:
    """Tests for the Redis repositories against a mocked client."""

    def test_report_round_trip(self, report) -> None:
        redis = MagicMock()
        repo = RedisReportRepository(redis, ttl_seconds=60)

        repo.put(report)
        key, payload = redis.set.call_args.args
        assert key == f"seo:report:{report.id}"
        assert redis.set.call_args.kwargs["ex"] == 60

        redis.get.return_value = payload
        assert repo.get_by_id(report.id).to_dict() == report.to_dict()

    def test_report_miss(self) -> None:
        redis = MagicMock()
        redis.get.return_value = None
        assert RedisReportRepository(redis).get(URL, PERIOD) is None

    def test_history_reads_tail(self) -> None:
        redis = MagicMock()
        redis.lrange.return_value = [json.dumps(p.to_dict()) for p in make_history([60, 70])]

        points = RedisHistoryStore(redis).get_history(URL, 2)

        redis.lrange.assert_called_once_with(f"seo:history:{URL}", -2, -1)
        assert [p.overall_score for p in points] == [60, 70]

    def test_history_append_new_date(self) -> None:
        redis = MagicMock()
        redis.lindex.return_value = json.dumps(make_history([60], end=PERIOD)[0].to_dict())

        RedisHistoryStore(redis).append_point(URL, HistoricalPoint(date=PERIOD, overall_score=70))

        redis.rpush.assert_called_once()
        redis.lset.assert_not_called()

    def test_history_append_same_date_replaces(self) -> None:
        redis = MagicMock()
        point = HistoricalPoint(date=PERIOD, overall_score=70)
        redis.lindex.return_value = json.dumps(point.to_dict())

        RedisHistoryStore(redis).append_point(URL, HistoricalPoint(date=PERIOD, overall_score=75))

        redis.lset.assert_called_once()
        assert redis.lset.call_args.args[:2] == (f"seo:history:{URL}", -1)
        redis.rpush.assert_not_called()

    def test_claim_uses_set_nx(self) -> None:
        redis = MagicMock()
        redis.set.return_value = True
        repo = RedisJobRepository(redis, ttl_seconds=60)

        assert repo.claim(_job("job-1")) is None

        redis.set.assert_called_once_with(
            f"seo:job:active:{URL}|{PERIOD.isoformat()}", "job-1", nx=True, ex=60
        )
        redis.pipeline.return_value.execute.assert_called_once()

    def test_claim_held_key_returns_holder(self) -> None:
        redis = MagicMock()
        redis.set.return_value = None
        holder = _job("job-1", status=JobStatus.PROCESSING)
        redis.get.side_effect = ["job-1", json.dumps(holder.to_dict())]
        repo = RedisJobRepository(redis)

        assert repo.claim(_job("job-2")).id == "job-1"
        redis.pipeline.assert_not_called()

    def test_claim_replaces_stale_pointer(self) -> None:
        """A pointer to a finished job does not block the key."""
        redis = MagicMock()
        redis.set.side_effect = [None, True]
        finished = _job("old", status=JobStatus.COMPLETED)
        redis.get.side_effect = ["old", json.dumps(finished.to_dict())]
        repo = RedisJobRepository(redis)

        assert repo.claim(_job("new")) is None
        redis.delete.assert_called_once_with(f"seo:job:active:{URL}|{PERIOD.isoformat()}")

    def test_pending_job_indexed(self) -> None:
        redis = MagicMock()
        pipe = redis.pipeline.return_value
        repo = RedisJobRepository(redis)

        repo.put(_job("job-1"))

        pipe.zadd.assert_called_once()
        pipe.set.assert_any_call(f"seo:job:active:{URL}|{PERIOD.isoformat()}", "job-1")
        pipe.execute.assert_called_once()

    def test_finished_job_clears_active_pointer(self) -> None:
        redis = MagicMock()
        redis.get.return_value = "job-1"
        pipe = redis.pipeline.return_value
        repo = RedisJobRepository(redis)

        repo.put(_job("job-1", status=JobStatus.COMPLETED))

        pipe.zrem.assert_called_once_with("seo:job:pending", "job-1")
        redis.delete.assert_called_once_with(f"seo:job:active:{URL}|{PERIOD.isoformat()}")

