"""Report generation endpoints."""

from typing import Any

from fastapi import APIRouter, Query, Response, status

from api.deps import ReportServiceDep
from api.schemas.report import (
    HistoryPointResponse,
    JobStatusResponse,
    ReportRequest,
    ScheduleRequest,
    ScheduleResponse,
    SubmitReportResponse,
)
from api.schemas.responses import SuccessResponse
from worker.recurring import current_period_start

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post(
    "",
    response_model=SuccessResponse[SubmitReportResponse],
    status_code=status.HTTP_202_ACCEPTED,
    summary="Request a report",
)
async def submit_report(
    body: ReportRequest,
    response: Response,
    service: ReportServiceDep,
) -> SuccessResponse[SubmitReportResponse]:
    """
    Request a report for a URL and week.

    Returns the existing report id when the report was already generated
    (200), otherwise a job id to poll (202). Submitting while a job for the
    same URL and week is still running returns that job.
    """
    period_start = body.period_start or current_period_start()
    result = service.submit_report(body.url, period_start)

    if result.report is not None:
        response.status_code = status.HTTP_200_OK
        return SuccessResponse(
            data=SubmitReportResponse(status="completed", report_id=result.report.id)
        )

    return SuccessResponse(
        data=SubmitReportResponse(
            status=result.job.status.value,
            job_id=result.job.id,
            estimated_seconds=result.estimated_seconds,
            deduplicated=result.deduplicated,
        )
    )


@router.get(
    "/jobs/{job_id}",
    response_model=SuccessResponse[JobStatusResponse],
    summary="Get job status",
)
async def get_job_status(job_id: str, service: ReportServiceDep) -> SuccessResponse[JobStatusResponse]:
    """Current status and progress of a report job; completed jobs carry the report id."""
    job = service.get_job_status(job_id)
    return SuccessResponse(data=JobStatusResponse.model_validate(job.to_dict()))


@router.delete(
    "/jobs/{job_id}",
    response_model=SuccessResponse[JobStatusResponse],
    summary="Cancel a job",
)
async def cancel_job(job_id: str, service: ReportServiceDep) -> SuccessResponse[JobStatusResponse]:
    """
    Cancel a pending or processing job.

    Finished jobs cannot be cancelled (409).
    """
    job = service.cancel_job(job_id)
    return SuccessResponse(data=JobStatusResponse.model_validate(job.to_dict()))


@router.post(
    "/schedules",
    response_model=SuccessResponse[ScheduleResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Register a recurring report",
)
async def schedule_recurring(
    body: ScheduleRequest,
    service: ReportServiceDep,
) -> SuccessResponse[ScheduleResponse]:
    """Register weekly or monthly report generation and delivery for a URL."""
    info = service.schedule_recurring(
        body.url, body.cadence, body.recipients, body.day_of_week, body.hour
    )
    return SuccessResponse(data=ScheduleResponse.model_validate(info.to_dict()))


@router.delete(
    "/schedules/{schedule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Cancel a recurring report",
)
async def cancel_schedule(schedule_id: str, service: ReportServiceDep) -> Response:
    service.cancel_schedule(schedule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/history",
    response_model=SuccessResponse[list[HistoryPointResponse]],
    summary="Get score history",
)
async def get_history(
    service: ReportServiceDep,
    url: str = Query(..., max_length=2048, pattern=r"^https?://[^/\s]+"),
    limit: int = Query(12, ge=1, le=104, description="Most recent weeks to return"),
) -> SuccessResponse[list[HistoryPointResponse]]:
    """Weekly score history for a URL, oldest first, with each week's report id."""
    points = service.get_history(url, limit)
    return SuccessResponse(data=[HistoryPointResponse.model_validate(p) for p in points])


@router.get(
    "/{report_id}",
    response_model=SuccessResponse[dict[str, Any]],
    summary="Get a report",
)
async def get_report(report_id: str, service: ReportServiceDep) -> SuccessResponse[dict[str, Any]]:
    """Full report document."""
    report = service.get_report(report_id)
    return SuccessResponse(data=report.to_dict())


@router.get(
    "/{report_id}/export",
    summary="Export a report",
    responses={200: {"content": {"application/json": {}, "text/csv": {}, "application/pdf": {}}}},
)
async def export_report(
    report_id: str,
    service: ReportServiceDep,
    export_format: str = Query(
        "structured-json",
        alias="format",
        description="structured-json (json), tabular-csv (csv) or portable-document (pdf)",
    ),
) -> Response:
    """Download a report as JSON, CSV or PDF."""
    result = service.export_report(report_id, export_format)
    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
    )
