"""Tests for the report endpoints."""

from unittest.mock import MagicMock

import pytest
from httpx import AsyncClient

from tests.fixtures import PERIOD, URL, make_history
from worker.recurring import Cadence, RecurringReportScheduler, schedule_id_for


async def _complete_report(client: AsyncClient, report_service) -> str:
    response = await client.post("/v1/reports", json={"url": URL, "period_start": PERIOD.isoformat()})
    job_id = response.json()["data"]["job_id"]
    report_service.scheduler.tick()
    await report_service.scheduler.drain()
    status = await client.get(f"/v1/reports/jobs/{job_id}")
    return status.json()["data"]["report_id"]


class TestSubmitReport:
    """Tests for POST /v1/reports."""

    @pytest.mark.asyncio
    async def test_submit_returns_job(self, client: AsyncClient) -> None:
        response = await client.post(
            "/v1/reports", json={"url": URL, "period_start": PERIOD.isoformat()}
        )

        assert response.status_code == 202
        data = response.json()["data"]
        assert data["status"] == "pending"
        assert data["job_id"]
        assert data["estimated_seconds"] == 300
        assert data["report_id"] is None

    @pytest.mark.asyncio
    async def test_duplicate_submit_deduplicated(self, client: AsyncClient) -> None:
        body = {"url": URL, "period_start": PERIOD.isoformat()}
        first = (await client.post("/v1/reports", json=body)).json()["data"]
        second = (await client.post("/v1/reports", json=body)).json()["data"]

        assert second["job_id"] == first["job_id"]
        assert second["deduplicated"] is True

    @pytest.mark.asyncio
    async def test_cached_report_returns_200(self, client: AsyncClient, report_service) -> None:
        report_id = await _complete_report(client, report_service)

        response = await client.post(
            "/v1/reports", json={"url": URL, "period_start": PERIOD.isoformat()}
        )

        assert response.status_code == 200
        assert response.json()["data"] == {
            "status": "completed",
            "job_id": None,
            "report_id": report_id,
            "estimated_seconds": None,
            "deduplicated": False,
        }

    @pytest.mark.asyncio
    async def test_period_defaults_to_current_week(self, client: AsyncClient, report_service) -> None:
        response = await client.post("/v1/reports", json={"url": URL})

        job = report_service.scheduler.status(response.json()["data"]["job_id"])
        assert job.period_start.weekday() == 0

    @pytest.mark.asyncio
    async def test_invalid_url_rejected(self, client: AsyncClient) -> None:
        response = await client.post("/v1/reports", json={"url": "ftp://example.com"})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "validation_error"
        assert response.json()["error"]["field"] == "url"


class TestJobStatus:
    """Tests for job polling and cancellation."""

    @pytest.mark.asyncio
    async def test_completed_job_has_report_id(self, client: AsyncClient, report_service) -> None:
        report_id = await _complete_report(client, report_service)
        assert report_id

    @pytest.mark.asyncio
    async def test_pending_job_status(self, client: AsyncClient) -> None:
        submit = await client.post("/v1/reports", json={"url": URL})
        job_id = submit.json()["data"]["job_id"]

        response = await client.get(f"/v1/reports/jobs/{job_id}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "pending"
        assert data["progress"] == 0
        assert data["stage"] == "queued"

    @pytest.mark.asyncio
    async def test_unknown_job_404(self, client: AsyncClient) -> None:
        response = await client.get("/v1/reports/jobs/missing")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"

    @pytest.mark.asyncio
    async def test_cancel_pending_job(self, client: AsyncClient) -> None:
        submit = await client.post("/v1/reports", json={"url": URL})
        job_id = submit.json()["data"]["job_id"]

        response = await client.delete(f"/v1/reports/jobs/{job_id}")

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "cancelled"

    @pytest.mark.asyncio
    async def test_cancel_finished_job_conflict(self, client: AsyncClient, report_service) -> None:
        submit = await client.post("/v1/reports", json={"url": URL})
        job_id = submit.json()["data"]["job_id"]
        report_service.scheduler.tick()
        await report_service.scheduler.drain()

        response = await client.delete(f"/v1/reports/jobs/{job_id}")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "invalid_transition"


class TestGetReport:
    """Tests for report retrieval and export."""

    @pytest.mark.asyncio
    async def test_get_report(self, client: AsyncClient, report_service) -> None:
        report_id = await _complete_report(client, report_service)

        response = await client.get(f"/v1/reports/{report_id}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == report_id
        assert data["url"] == URL
        assert data["summary"]["grade"] == "A"
        assert len(data["scores"]["categories"]) == 5

    @pytest.mark.asyncio
    async def test_unknown_report_404(self, client: AsyncClient) -> None:
        response = await client.get("/v1/reports/does-not-exist")
        assert response.status_code == 404

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("export_format", "media_type"),
        [("json", "application/json"), ("tabular-csv", "text/csv"), ("pdf", "application/pdf")],
    )
    async def test_export(
        self, client: AsyncClient, report_service, export_format: str, media_type: str
    ) -> None:
        report_id = await _complete_report(client, report_service)

        response = await client.get(f"/v1/reports/{report_id}/export", params={"format": export_format})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith(media_type)
        assert "attachment" in response.headers["content-disposition"]

    @pytest.mark.asyncio
    async def test_export_unsupported_format(self, client: AsyncClient, report_service) -> None:
        report_id = await _complete_report(client, report_service)

        response = await client.get(f"/v1/reports/{report_id}/export", params={"format": "xlsx"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "unsupported_format"


class TestSchedules:
    """Tests for recurring report registration."""

    @pytest.fixture
    def rq_scheduler(self, report_service) -> MagicMock:
        rq_scheduler = MagicMock()
        rq_scheduler.__contains__.return_value = False
        report_service._recurring = RecurringReportScheduler(rq_scheduler)
        return rq_scheduler

    @pytest.mark.asyncio
    async def test_register_schedule(self, client: AsyncClient, rq_scheduler: MagicMock) -> None:
        response = await client.post(
            "/v1/reports/schedules",
            json={"url": URL, "cadence": "monthly", "recipients": ["seo@example.com"]},
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["schedule_id"] == schedule_id_for(URL, Cadence.MONTHLY)
        assert data["cadence"] == "monthly"
        assert data["recipients"] == ["seo@example.com"]
        rq_scheduler.cron.assert_called_once()

    @pytest.mark.asyncio
    async def test_recipients_required(self, client: AsyncClient, rq_scheduler: MagicMock) -> None:
        response = await client.post("/v1/reports/schedules", json={"url": URL, "recipients": []})

        assert response.status_code == 422
        rq_scheduler.cron.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancel_schedule(self, client: AsyncClient, rq_scheduler: MagicMock) -> None:
        rq_scheduler.__contains__.return_value = True

        response = await client.delete("/v1/reports/schedules/report_schedule_abc")

        assert response.status_code == 204
        rq_scheduler.cancel.assert_called_once_with("report_schedule_abc")

    @pytest.mark.asyncio
    async def test_cancel_unknown_schedule(self, client: AsyncClient, rq_scheduler: MagicMock) -> None:
        response = await client.delete("/v1/reports/schedules/report_schedule_abc")
        assert response.status_code == 404


class TestHistory:
    """Tests for GET /v1/reports/history."""

    @pytest.mark.asyncio
    async def test_history_links_reports(self, client: AsyncClient, report_service) -> None:
        for point in make_history([60, 70]):
            report_service.repositories.history.append_point(URL, point)
        report_id = await _complete_report(client, report_service)

        response = await client.get("/v1/reports/history", params={"url": URL})

        assert response.status_code == 200
        data = response.json()["data"]
        assert [p["overall_score"] for p in data] == [60, 70, 89]
        assert [p["report_id"] for p in data] == [None, None, report_id]
        assert data[-1]["date"] == PERIOD.isoformat()

    @pytest.mark.asyncio
    async def test_history_limit(self, client: AsyncClient, report_service) -> None:
        for point in make_history([50, 60, 70]):
            report_service.repositories.history.append_point(URL, point)

        response = await client.get("/v1/reports/history", params={"url": URL, "limit": 2})

        assert [p["overall_score"] for p in response.json()["data"]] == [60, 70]

    @pytest.mark.asyncio
    async def test_unknown_url_has_empty_history(self, client: AsyncClient) -> None:
        response = await client.get("/v1/reports/history", params={"url": "https://other.example"})

        assert response.status_code == 200
        assert response.json()["data"] == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("params", [{}, {"url": "ftp://example.com"}, {"url": URL, "limit": 0}])
    async def test_invalid_query_rejected(self, client: AsyncClient, params: dict) -> None:
        response = await client.get("/v1/reports/history", params=params)

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "validation_error"
