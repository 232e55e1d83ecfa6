"""Report exporters.

Serialize a compiled report to structured JSON, a tabular CSV or a PDF
document. Exporters never recompile: they render the stored report as is.
"""

import csv
import io
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

import orjson
import structlog
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from api.exceptions import ExportUnsupportedFormatError
from worker.reports.contract import Report
from worker.scoring.engine import CATEGORY_DISPLAY_NAMES

logger = structlog.get_logger(__name__)


class ExportFormat(StrEnum):
    """Supported export formats."""

    STRUCTURED_JSON = "structured-json"
    TABULAR_CSV = "tabular-csv"
    PORTABLE_DOCUMENT = "portable-document"


FORMAT_ALIASES = {
    "json": ExportFormat.STRUCTURED_JSON,
    "csv": ExportFormat.TABULAR_CSV,
    "pdf": ExportFormat.PORTABLE_DOCUMENT,
}


@dataclass(frozen=True)
class ExportResult:
    """Rendered export payload."""

    content: bytes
    media_type: str
    filename: str


def resolve_format(requested: str) -> ExportFormat:
    """
    Resolve a format name or alias.

    Raises:
        ExportUnsupportedFormatError: If the name is not a known format.
    """
    name = (requested or "").strip().lower()
    if name in FORMAT_ALIASES:
        return FORMAT_ALIASES[name]
    try:
        return ExportFormat(name)
    except ValueError:
        supported = [f.value for f in ExportFormat] + list(FORMAT_ALIASES)
        raise ExportUnsupportedFormatError(requested, supported) from None


def _filename(report: Report, extension: str) -> str:
    return f"seo-report-{report.period_start.isoformat()}-{report.id[:8]}.{extension}"


def export_json(report: Report) -> ExportResult:
    content = orjson.dumps(
        report.to_dict(),
        option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS,
    )
    return ExportResult(content, "application/json", _filename(report, "json"))


def export_csv(report: Report) -> ExportResult:
    """One Metric,Value row per headline figure."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Metric", "Value"])
    writer.writerow(["URL", report.url])
    writer.writerow(["Period Start", report.period_start.isoformat()])
    writer.writerow(["Period End", report.period_end.isoformat()])
    writer.writerow(["Overall Score", report.overall_score])
    writer.writerow(["Grade", report.grade])
    writer.writerow(["Status", report.status])
    for score in report.category_scores:
        writer.writerow([CATEGORY_DISPLAY_NAMES[score.category], round(score.score, 2)])
    writer.writerow(["Total Issues", report.issue_summary.total])
    for severity, count in report.issue_summary.by_severity.items():
        writer.writerow([f"{severity.title()} Issues", count])
    writer.writerow(["Recommendations", report.recommendation_summary.total])
    writer.writerow(["Predicted Score", report.forecast.predicted_score])
    writer.writerow(["Forecast Confidence", report.forecast.confidence])
    writer.writerow(["Industry Average", report.comparisons.industry_average])
    return ExportResult(
        buffer.getvalue().encode("utf-8"),
        "text/csv",
        _filename(report, "csv"),
    )


def export_pdf(report: Report) -> ExportResult:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        title="Weekly SEO Report",
        invariant=True,
    )
    styles = getSampleStyleSheet()
    grid = TableStyle(
        [
            ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
            ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
        ]
    )

    flow = [
        Paragraph("<b>Weekly SEO Report</b>", styles["Title"]),
        Paragraph(f"URL: {report.url}", styles["Normal"]),
        Paragraph(
            f"Week: {report.period_start.isoformat()} to {report.period_end.isoformat()}",
            styles["Normal"],
        ),
        Paragraph(
            f"Overall Score: <b>{report.overall_score}/100</b> - Grade: <b>{report.grade}</b> "
            f"({report.status})",
            styles["Normal"],
        ),
        Spacer(1, 12),
        Paragraph("<b>Category Scores</b>", styles["Heading2"]),
    ]

    categories = [["Category", "Score", "Weight"]]
    for score in report.category_scores:
        categories.append(
            [CATEGORY_DISPLAY_NAMES[score.category], f"{score.score:.1f}", f"{score.weight:.0%}"]
        )
    flow.append(Table(categories, style=grid))

    if report.issues:
        flow.append(Spacer(1, 12))
        flow.append(Paragraph("<b>Issues</b>", styles["Heading2"]))
        rows = [["Severity", "Issue", "Impact"]]
        rows.extend([i.severity.value, i.message, f"{i.impact:g}"] for i in report.issues)
        flow.append(Table(rows, style=grid))

    if report.recommendations:
        flow.append(Spacer(1, 12))
        flow.append(Paragraph("<b>Recommendations</b>", styles["Heading2"]))
        for rec in report.recommendations:
            flow.append(
                Paragraph(f"[{rec.priority.value}] <b>{rec.title}</b>: {rec.description}", styles["BodyText"])
            )

    flow.append(Spacer(1, 12))
    flow.append(Paragraph("<b>Forecast</b>", styles["Heading2"]))
    flow.append(
        Paragraph(
            f"Predicted score in {report.forecast.timeframe}: {report.forecast.predicted_score} "
            f"(confidence {report.forecast.confidence:.0%})",
            styles["Normal"],
        )
    )
    for insight in report.actionable_insights:
        flow.append(Paragraph(f"- {insight}", styles["Italic"]))

    doc.build(flow)
    return ExportResult(buffer.getvalue(), "application/pdf", _filename(report, "pdf"))


EXPORTERS: dict[ExportFormat, Callable[[Report], ExportResult]] = {
    ExportFormat.STRUCTURED_JSON: export_json,
    ExportFormat.TABULAR_CSV: export_csv,
    ExportFormat.PORTABLE_DOCUMENT: export_pdf,
}


def export_report(report: Report, requested_format: str) -> ExportResult:
    """
    Export a report.

    Raises:
        ExportUnsupportedFormatError: If the format is not supported.
    """
    export_format = resolve_format(requested_format)
    result = EXPORTERS[export_format](report)
    logger.info(
        "report_exported",
        report_id=report.id,
        format=export_format.value,
        size_bytes=len(result.content),
    )
    return result
