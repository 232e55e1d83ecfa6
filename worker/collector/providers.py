"""Metric collectors - unified interface for page measurement providers.

The pipeline only talks to `MetricCollector`. The HTTP collector calls the
measurement service that wraps Lighthouse, the HTML analyzer and the
backlink APIs; the fixture collector serves canned measurements for tests
and local development.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError

from api.exceptions import ProviderError, ProviderTimeoutError
from worker.collector.models import CompetitorBenchmark, RawMeasurement

logger = structlog.get_logger(__name__)


@dataclass
class CollectorConfig:
    """Configuration for a metric collector."""

    base_url: str = ""
    api_key: str = ""
    timeout_seconds: float = 30.0


class MetricCollector(ABC):
    """Abstract base class for metric collectors."""

    name: str = "collector"

    def __init__(self, config: CollectorConfig | None = None):
        self.config = config or CollectorConfig()

    @abstractmethod
    async def fetch_measurement(self, url: str) -> RawMeasurement:
        """Collect raw measurements for a URL."""
        ...

    async def fetch_competitors(self, url: str) -> list[CompetitorBenchmark]:  # noqa: ARG002
        """Competitor comparison input; collectors without one return nothing."""
        return []


class HttpMetricCollector(MetricCollector):
    """Collector backed by the measurement service REST API."""

    name = "measurement-api"

    def __init__(
        self,
        config: CollectorConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(config)
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    async def _get(self, path: str, url: str) -> Any:
        try:
            async with httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.get(path, params={"url": url}, headers=self._headers())
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(self.name, self.config.timeout_seconds) from e
        except httpx.HTTPError as e:
            raise ProviderError(self.name, str(e)) from e

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise ProviderError(self.name, f"HTTP {response.status_code}: {response.text[:200]}")
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(self.name, "response body is not valid JSON") from e

    async def fetch_measurement(self, url: str) -> RawMeasurement:
        """Fetch and validate a measurement from the measurement service."""
        payload = await self._get("/measurements", url)
        if payload is None:
            raise ProviderError(self.name, f"no measurement available for {url}")

        measurement = RawMeasurement.parse(payload)
        logger.info(
            "measurement_fetched",
            url=url,
            provider=self.name,
            sources=measurement.data_sources,
        )
        return measurement

    async def fetch_competitors(self, url: str) -> list[CompetitorBenchmark]:
        """Fetch competitor benchmarks; failures degrade to an empty comparison."""
        try:
            payload = await self._get("/competitors", url)
        except (ProviderError, ProviderTimeoutError) as e:
            logger.warning("competitors_unavailable", url=url, error=e.message)
            return []

        if not payload:
            return []
        try:
            return [CompetitorBenchmark.model_validate(item) for item in payload]
        except (PydanticValidationError, TypeError) as e:
            logger.warning("competitors_unavailable", url=url, error=str(e))
            return []


class FixtureMetricCollector(MetricCollector):
    """Collector serving canned measurements."""

    name = "fixture"

    def __init__(
        self,
        measurements: dict[str, RawMeasurement | dict] | None = None,
        competitors: list[CompetitorBenchmark] | None = None,
        config: CollectorConfig | None = None,
    ):
        super().__init__(config)
        self.measurements: dict[str, RawMeasurement | dict] = dict(measurements or {})
        self.competitors = list(competitors or [])
        self.failures: dict[str, Exception] = {}
        self.delay_seconds: float = 0.0
        self.calls: list[str] = []

    def set_measurement(self, url: str, measurement: RawMeasurement | dict) -> None:
        self.measurements[url] = measurement

    def set_failure(self, url: str, error: Exception) -> None:
        """Make fetches for `url` raise `error`."""
        self.failures[url] = error

    async def fetch_measurement(self, url: str) -> RawMeasurement:
        """Return the registered measurement, a configured failure or the default fixture."""
        self.calls.append(url)

        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        if url in self.failures:
            raise self.failures[url]

        measurement = self.measurements.get(url)
        if measurement is None:
            measurement = default_fixture_measurement(url)
        if isinstance(measurement, dict):
            measurement = RawMeasurement.parse(measurement)
        return measurement

    async def fetch_competitors(self, url: str) -> list[CompetitorBenchmark]:  # noqa: ARG002
        return list(self.competitors)


def default_fixture_measurement(url: str) -> RawMeasurement:
    """A plausible mid-range page used when no fixture is registered."""
    return RawMeasurement.parse(
        {
            "url": url,
            "html": {
                "meta": {
                    "title": "Example Store - Handmade Goods and Gifts for Every Occasion",
                    "description": "Browse handmade goods.",
                    "viewport": "width=device-width, initial-scale=1",
                },
                "headings": {"h1": 1, "h2": 2, "h3": 1},
                "links": {"internal": 6, "external": 4},
                "images": {"total": 10, "with_alt": 7, "checked": 5, "optimized": 2},
                "content": {"word_count": 850, "readability_grade": 10.5, "keyword_density": 1.2},
                "technical": {"https": url.startswith("https://"), "responsive": True},
            },
            "lighthouse": {
                "performance": 0.72,
                "accessibility": 0.88,
                "best-practices": 0.83,
                "seo": 0.9,
                "mobile_friendly": 1.0,
                "audits": {"first-contentful-paint": 0.85, "largest-contentful-paint": 0.7},
            },
            "vitals": {"lcp_ms": 2900, "fid_ms": 80, "cls": 0.05, "fcp_ms": 1500},
        }
    )


def get_collector() -> MetricCollector:
    """Build the collector selected by settings."""
    from api.config import get_settings

    settings = get_settings()
    if settings.collector_backend == "http":
        return HttpMetricCollector(
            CollectorConfig(
                base_url=settings.collector_base_url,
                api_key=settings.collector_api_key or "",
                timeout_seconds=settings.collector_timeout_seconds,
            )
        )
    return FixtureMetricCollector()
