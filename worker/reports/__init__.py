"""Report compilation, JSON contract and exporters.

Use explicit imports:
    from worker.reports.contract import Report, report_id_for
    from worker.reports.compiler import ReportCompiler
    from worker.reports.exporters import export_report
"""

__all__ = [
    # Contract
    "ReportVersion",
    "ReportMetadata",
    "Report",
    "report_id_for",
    # Compiler
    "ReportCompiler",
    "ReportInputs",
    # Exporters
    "ExportFormat",
    "ExportResult",
    "export_report",
]
