"""Tests for measurement models and metric collectors."""

import asyncio

import httpx
import pytest
from pydantic import ValidationError as PydanticValidationError

from api.exceptions import MeasurementValidationError, ProviderError, ProviderTimeoutError
from tests.fixtures import URL, make_measurement_payload
from worker.collector.models import ImageStats, RawMeasurement
from worker.collector.providers import (
    CollectorConfig,
    FixtureMetricCollector,
    HttpMetricCollector,
    default_fixture_measurement,
)


class TestRawMeasurement:
    """Tests for measurement parsing."""

    def test_parse_complete_payload(self) -> None:
        """All sections parse and are reported as data sources."""
        measurement = RawMeasurement.parse(make_measurement_payload())

        assert measurement.url == URL
        assert measurement.html.headings.h2 == 3
        assert measurement.lighthouse.best_practices == 0.85
        assert measurement.data_sources == [
            "Lighthouse",
            "HTML Analysis",
            "Performance Metrics",
            "Backlink APIs",
        ]

    def test_missing_sections_are_none(self) -> None:
        """Absent provider sections stay None instead of failing."""
        measurement = RawMeasurement.parse({"url": URL})

        assert measurement.html is None
        assert measurement.backlinks is None
        assert measurement.data_sources == []

    def test_non_object_payload_rejected(self) -> None:
        """A list payload raises MeasurementValidationError."""
        with pytest.raises(MeasurementValidationError) as exc_info:
            RawMeasurement.parse([1, 2, 3])
        assert "must be an object" in exc_info.value.message

    def test_out_of_range_value_names_field(self) -> None:
        """Lighthouse scores above 1 are rejected with the offending field."""
        payload = make_measurement_payload(lighthouse={"performance": 1.5})

        with pytest.raises(MeasurementValidationError) as exc_info:
            RawMeasurement.parse(payload)

        assert exc_info.value.details["field"] == "lighthouse.performance"
        assert exc_info.value.status_code == 422

    def test_measurement_is_frozen(self) -> None:
        """Parsed measurements cannot be mutated."""
        measurement = RawMeasurement.parse(make_measurement_payload())
        with pytest.raises(PydanticValidationError):
            measurement.url = "https://other.example"


class TestImageStats:
    """Tests for alt text coverage."""

    def test_no_images_is_full_coverage(self) -> None:
        assert ImageStats().alt_coverage == 1.0

    def test_partial_coverage(self) -> None:
        stats = ImageStats(total=10, with_alt=7)
        assert stats.alt_coverage == pytest.approx(0.7)
        assert stats.without_alt == 3


def _http_collector(handler) -> HttpMetricCollector:
    return HttpMetricCollector(
        CollectorConfig(base_url="http://measure.test", api_key="secret", timeout_seconds=5),
        transport=httpx.MockTransport(handler),
    )


class TestHttpMetricCollector:
    """Tests for the measurement service collector."""

    @pytest.mark.asyncio
    async def test_fetch_measurement(self) -> None:
        """Successful responses are validated into a RawMeasurement."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=make_measurement_payload())

        measurement = await _http_collector(handler).fetch_measurement(URL)

        assert measurement.url == URL
        assert seen[0].url.path == "/measurements"
        assert seen[0].url.params["url"] == URL
        assert seen[0].headers["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_timeout_raises_provider_timeout(self) -> None:
        """Transport timeouts surface as ProviderTimeoutError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(ProviderTimeoutError) as exc_info:
            await _http_collector(handler).fetch_measurement(URL)
        assert exc_info.value.details["timeout_seconds"] == 5

    @pytest.mark.asyncio
    async def test_server_error_raises_provider_error(self) -> None:
        """Non-200 responses raise ProviderError with the status code."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="internal")

        with pytest.raises(ProviderError) as exc_info:
            await _http_collector(handler).fetch_measurement(URL)
        assert "HTTP 500" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_not_found_raises_provider_error(self) -> None:
        """A 404 means the service has no measurement for the URL."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        with pytest.raises(ProviderError) as exc_info:
            await _http_collector(handler).fetch_measurement(URL)
        assert "no measurement available" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_malformed_payload_raises_validation_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"html": {}})

        with pytest.raises(MeasurementValidationError):
            await _http_collector(handler).fetch_measurement(URL)

    @pytest.mark.asyncio
    async def test_competitor_failure_degrades_to_empty(self) -> None:
        """Competitor lookups never fail the caller."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        assert await _http_collector(handler).fetch_competitors(URL) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, json=[{"name": "rival.example", "score": 140}]),
            httpx.Response(200, json=[{"score": 74}]),
            httpx.Response(200, json=7),
            httpx.Response(200, text="<html>not json</html>"),
        ],
    )
    async def test_bad_competitor_payload_degrades_to_empty(self, response: httpx.Response) -> None:
        """Invalid or undecodable competitor bodies yield no comparison."""

        def handler(request: httpx.Request) -> httpx.Response:
            return response

        assert await _http_collector(handler).fetch_competitors(URL) == []

    @pytest.mark.asyncio
    async def test_non_json_measurement_raises_provider_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>maintenance</html>")

        with pytest.raises(ProviderError) as exc_info:
            await _http_collector(handler).fetch_measurement(URL)
        assert "not valid JSON" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_competitors_parsed(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[{"name": "rival.example", "score": 74}])

        competitors = await _http_collector(handler).fetch_competitors(URL)

        assert len(competitors) == 1
        assert competitors[0].name == "rival.example"
        assert competitors[0].score == 74


class TestFixtureMetricCollector:
    """Tests for the canned collector."""

    @pytest.mark.asyncio
    async def test_registered_measurement_returned(self) -> None:
        collector = FixtureMetricCollector({URL: make_measurement_payload()})

        measurement = await collector.fetch_measurement(URL)

        assert measurement.html.links.internal == 12
        assert collector.calls == [URL]

    @pytest.mark.asyncio
    async def test_unknown_url_uses_default(self) -> None:
        """Unregistered URLs get the default fixture measurement."""
        collector = FixtureMetricCollector()
        measurement = await collector.fetch_measurement("https://unknown.example")

        assert measurement == default_fixture_measurement("https://unknown.example")

    @pytest.mark.asyncio
    async def test_configured_failure_raised(self) -> None:
        collector = FixtureMetricCollector()
        collector.set_failure(URL, ProviderError("fixture", "boom"))

        with pytest.raises(ProviderError):
            await collector.fetch_measurement(URL)

    @pytest.mark.asyncio
    async def test_delay_is_applied(self) -> None:
        """The configured delay suspends the fetch."""
        collector = FixtureMetricCollector()
        collector.delay_seconds = 0.5

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(collector.fetch_measurement(URL), timeout=0.01)
