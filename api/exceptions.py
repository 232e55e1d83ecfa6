"""Custom exceptions for the report pipeline.

Every error raised by the pipeline derives from ReportPipelineError so the
API layer can render it with a stable code and HTTP status.
"""

from typing import Any

from fastapi import status


class ReportPipelineError(Exception):
    """Base exception for the report pipeline."""

    def __init__(
        self,
        message: str,
        code: str = "error",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class NotFoundError(ReportPipelineError):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str | None = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id '{identifier}' not found"
        super().__init__(
            message=message,
            code="not_found",
            status_code=status.HTTP_404_NOT_FOUND,
        )


class DataUnavailableError(ReportPipelineError):
    """A provider returned nothing for a measurement section.

    Recovered in place by the scoring engine with a documented default.
    """

    def __init__(self, source: str, default: float | str | None = None):
        message = f"{source} data unavailable"
        if default is not None:
            message = f"{message}; using default {default}"
        super().__init__(
            message=message,
            code="data_unavailable",
            status_code=status.HTTP_200_OK,
            details={"source": source, "default": default},
        )


class ProviderTimeoutError(ReportPipelineError):
    """An external provider exceeded its time bound."""

    def __init__(self, provider: str, timeout_seconds: float):
        super().__init__(
            message=f"{provider} did not respond within {timeout_seconds:g}s",
            code="provider_timeout",
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            details={"provider": provider, "timeout_seconds": timeout_seconds},
        )


class ProviderError(ReportPipelineError):
    """An external provider returned an error response."""

    def __init__(self, provider: str, message: str):
        super().__init__(
            message=f"{provider}: {message}",
            code="provider_error",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"provider": provider},
        )


class MeasurementValidationError(ReportPipelineError):
    """A raw measurement payload did not match the expected shape."""

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(
            message=message,
            code="validation_error",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
        )


class SchedulerOverloadError(ReportPipelineError):
    """Too many pending jobs; the caller should back off and retry."""

    def __init__(self, pending: int, limit: int):
        super().__init__(
            message=f"Report queue is full ({pending}/{limit} pending). Retry later.",
            code="scheduler_overload",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details={"pending": pending, "limit": limit},
        )


class ExportUnsupportedFormatError(ReportPipelineError):
    """Requested export format is not supported."""

    def __init__(self, requested: str, supported: list[str]):
        super().__init__(
            message=f"Unsupported export format '{requested}'",
            code="unsupported_format",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"supported": supported},
        )


class InvalidTransitionError(ReportPipelineError):
    """A job status transition would move backwards or leave a terminal state."""

    def __init__(self, job_id: str, current: str, requested: str):
        super().__init__(
            message=f"Job {job_id} cannot move from {current} to {requested}",
            code="invalid_transition",
            status_code=status.HTTP_409_CONFLICT,
            details={"job_id": job_id, "current": current, "requested": requested},
        )
