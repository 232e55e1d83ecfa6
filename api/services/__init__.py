"""Business logic services package."""

from api.services.report_service import ReportService, build_report_service, get_report_service

__all__ = [
    "ReportService",
    "build_report_service",
    "get_report_service",
]
