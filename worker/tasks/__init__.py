"""Background task definitions."""

from worker.tasks.report import ReportPipeline, generate_report

__all__ = [
    "ReportPipeline",
    "generate_report",
]
