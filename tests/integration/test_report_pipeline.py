"""Integration tests for weekly report generation end to end."""

from datetime import timedelta

import pytest

from api.services.report_service import build_report_service
from tests.fixtures import PERIOD, URL, make_history, make_measurement_payload
from worker.collector.providers import FixtureMetricCollector
from worker.config import PipelineConfig
from worker.jobs import JobStatus
from worker.storage import InMemoryHistoryStore, in_memory_repositories


@pytest.mark.integration
class TestWeeklyReports:
    """Generate consecutive weekly reports through the service layer."""

    @pytest.mark.asyncio
    async def test_consecutive_weeks_build_history(self) -> None:
        """Each week's report feeds the next week's trend and forecast."""
        collector = FixtureMetricCollector()
        repositories = in_memory_repositories()
        service = build_report_service(collector, repositories, PipelineConfig(), recurring=None)
        weeks = [PERIOD + timedelta(weeks=i) for i in range(3)]
        scores = [60, 70, 80]

        reports = []
        for week, score_hint in zip(weeks, scores, strict=True):
            payload = make_measurement_payload()
            payload["backlinks"]["domain_authority"] = score_hint
            collector.set_measurement(URL, payload)

            result = service.submit_report(URL, week)
            service.scheduler.tick()
            await service.scheduler.drain()

            job = service.get_job_status(result.job_id)
            assert job.status == JobStatus.COMPLETED
            reports.append(service.get_report(job.report_id))

        first, second, third = reports
        assert not first.trend.has_enough_data
        assert first.forecast.confidence == 0.5
        assert second.trend.has_enough_data
        assert second.trend.weekly_change.score == second.overall_score - first.overall_score
        assert second.forecast.has_enough_history
        assert third.trend.has_enough_data
        assert third.historical_scores == (first.overall_score, second.overall_score)
        assert third.overall_score >= second.overall_score >= first.overall_score
        assert len(repositories.history.get_history(URL, 12)) == 3

        history = service.get_history(URL, 12)
        assert [p["report_id"] for p in history] == [r.id for r in reports]
        assert [p["overall_score"] for p in history] == [r.overall_score for r in reports]
        assert [p["date"] for p in service.get_history(URL, 1)] == [weeks[-1].isoformat()]

    @pytest.mark.asyncio
    async def test_regenerating_past_week_uses_cache(self) -> None:
        collector = FixtureMetricCollector()
        service = build_report_service(collector, in_memory_repositories(), PipelineConfig())

        first = service.submit_report(URL, PERIOD)
        service.scheduler.tick()
        await service.scheduler.drain()
        again = service.submit_report(URL, PERIOD)

        assert again.cached
        assert again.report.id == service.get_job_status(first.job_id).report_id
        assert collector.calls == [URL]

    @pytest.mark.asyncio
    async def test_seeded_history_drives_forecast(self) -> None:
        """Four rising weeks produce an increasing trend and a higher forecast."""
        repositories = in_memory_repositories()
        repositories.history = InMemoryHistoryStore({URL: make_history([60, 65, 70, 75])})
        service = build_report_service(FixtureMetricCollector(), repositories, PipelineConfig())

        result = service.submit_report(URL, PERIOD)
        service.scheduler.tick()
        await service.scheduler.drain()

        report = service.get_report(service.get_job_status(result.job_id).report_id)
        assert report.trend.has_enough_data
        assert report.forecast.has_enough_history
        assert report.forecast.predicted_score >= report.overall_score
        assert report.historical_scores == (60, 65, 70, 75)

    @pytest.mark.asyncio
    async def test_export_all_formats(self) -> None:
        service = build_report_service(FixtureMetricCollector(), in_memory_repositories(), PipelineConfig())
        result = service.submit_report(URL, PERIOD)
        service.scheduler.tick()
        await service.scheduler.drain()
        report_id = service.get_job_status(result.job_id).report_id

        for name in ("structured-json", "tabular-csv", "portable-document"):
            export = service.export_report(report_id, name)
            assert export.content
