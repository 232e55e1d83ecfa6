"""Pytest configuration and fixtures."""

import os
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

# Set test environment before any app code runs
os.environ["ENV"] = "test"
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["COLLECTOR_BACKEND"] = "fixture"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["REDIS_URL"] = "redis://localhost:6379/0"

from tests.fixtures import (  # noqa: E402
    FIXED_NOW,
    PERIOD,
    URL,
    fixed_clock,
    make_measurement_payload,
)


@pytest.fixture
def measurement_payload() -> dict:
    return make_measurement_payload()


@pytest.fixture
def measurement(measurement_payload):
    from worker.collector.models import RawMeasurement

    return RawMeasurement.parse(measurement_payload)


@pytest.fixture
def collector(measurement_payload):
    from worker.collector.providers import FixtureMetricCollector

    return FixtureMetricCollector({URL: measurement_payload})


@pytest.fixture
def repositories():
    from worker.storage import in_memory_repositories

    return in_memory_repositories()


@pytest.fixture
def pipeline(collector, repositories):
    from worker.tasks.report import ReportPipeline

    return ReportPipeline(collector, repositories.history, clock=fixed_clock)


@pytest.fixture
def report_service(pipeline, repositories):
    from api.services.report_service import ReportService
    from worker.scheduler import ReportJobScheduler

    scheduler = ReportJobScheduler(pipeline, repositories, clock=fixed_clock)
    return ReportService(scheduler, repositories)


@pytest.fixture
async def client(report_service) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client bound to an in-memory report service."""
    from api.config import get_settings

    get_settings.cache_clear()  # Use test env, not stale or .env values

    from api.main import app
    from api.services.report_service import set_report_service

    set_report_service(report_service)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    set_report_service(None)


@pytest.fixture
def report(measurement):
    """A compiled report for the default measurement with no history."""
    from worker.config import PipelineConfig
    from worker.fixes.recommendations import RecommendationGenerator
    from worker.reports.compiler import ReportCompiler, ReportInputs
    from worker.scoring.engine import ScoringEngine
    from worker.scoring.forecast import ForecastCalculator
    from worker.scoring.trend import TrendAnalyzer

    config = PipelineConfig()
    scoring = ScoringEngine(config).score(measurement)
    trend = TrendAnalyzer(config.trend).analyze([])
    recommendations = RecommendationGenerator(config.recommendations).generate(
        scoring.issues, scoring.category_scores, trend
    )
    forecast = ForecastCalculator(config.forecast).calculate(
        scoring.overall_score, trend, recommendations, len(scoring.issues)
    )
    return ReportCompiler(config).compile(
        ReportInputs(
            url=URL,
            period_start=PERIOD,
            generated_at=FIXED_NOW,
            scoring=scoring,
            trend=trend,
            recommendations=recommendations,
            forecast=forecast,
        )
    )
