"""FastAPI dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends

from api.config import Settings, get_settings
from api.services.report_service import ReportService, get_report_service

__all__ = ["SettingsDep", "ReportServiceDep"]


# Settings dependency
SettingsDep = Annotated[Settings, Depends(get_settings)]

ReportServiceDep = Annotated[ReportService, Depends(get_report_service)]
