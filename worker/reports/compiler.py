"""Report compiler.

Pure aggregation of scoring, trend, recommendation and forecast outputs
into one immutable Report, plus the derived grade, status, SWOT narrative
and actionable insights. No I/O: identical inputs compile to identical
reports.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

import structlog

from worker.collector.models import CompetitorBenchmark
from worker.config import PipelineConfig
from worker.fixes.recommendations import Effort, Priority, Recommendation
from worker.reports.contract import (
    Comparisons,
    IssueSummary,
    Narrative,
    RecommendationSummary,
    Report,
    ReportMetadata,
    TimelineEntry,
    report_id_for,
)
from worker.scoring.engine import Category, ScoringResult
from worker.scoring.forecast import Forecast
from worker.scoring.issues import Issue, IssueSeverity
from worker.scoring.trend import HistoricalPoint, Trend

logger = structlog.get_logger(__name__)

GRADE_THRESHOLDS = [
    (90, "A+"),
    (85, "A"),
    (80, "A-"),
    (75, "B+"),
    (70, "B"),
    (65, "B-"),
    (60, "C+"),
    (50, "C"),
    (40, "D"),
]

STATUS_THRESHOLDS = [
    (80, "Excellent"),
    (70, "Good"),
    (60, "Needs Improvement"),
    (50, "Poor"),
]

# (effort, week, max tasks)
TIMELINE_SLOTS = [
    (Effort.LOW, 1, 3),
    (Effort.MEDIUM, 2, 2),
    (Effort.HIGH, 4, 2),
]


def calculate_grade(score: float) -> str:
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return "F"


def determine_status(score: float) -> str:
    for threshold, status in STATUS_THRESHOLDS:
        if score >= threshold:
            return status
    return "Critical"


@dataclass(frozen=True)
class ReportInputs:
    """Everything the compiler needs for one (url, period_start)."""

    url: str
    period_start: date
    generated_at: datetime
    scoring: ScoringResult
    trend: Trend
    recommendations: Sequence[Recommendation]
    forecast: Forecast
    history: Sequence[HistoricalPoint] = ()
    competitors: Sequence[CompetitorBenchmark] = field(default_factory=tuple)


class ReportCompiler:
    """Assembles pipeline outputs into a complete report."""

    def __init__(self, config: PipelineConfig | None = None):
        self.config = config or PipelineConfig()

    def compile(self, inputs: ReportInputs) -> Report:
        """
        Compile a report.

        Args:
            inputs: Outputs of the scoring, trend, recommendation and
                forecast stages

        Returns:
            Report whose id is derived from (url, period_start)
        """
        cfg = self.config.report
        scoring = inputs.scoring
        issues = list(scoring.issues)
        recommendations = list(inputs.recommendations)

        report = Report(
            id=report_id_for(inputs.url, inputs.period_start),
            url=inputs.url,
            period_start=inputs.period_start,
            period_end=inputs.period_start + timedelta(days=cfg.period_days),
            generated_at=inputs.generated_at,
            overall_score=scoring.overall_score,
            grade=calculate_grade(scoring.overall_score),
            status=determine_status(scoring.overall_score),
            category_scores=tuple(scoring.category_scores.values()),
            historical_scores=tuple(p.overall_score for p in inputs.history),
            issues=tuple(issues),
            issue_summary=self._build_issue_summary(issues),
            trend=inputs.trend,
            recommendations=tuple(recommendations),
            recommendation_summary=self._build_recommendation_summary(recommendations),
            forecast=inputs.forecast,
            narrative=self._build_narrative(scoring, inputs.trend),
            actionable_insights=self._build_insights(
                scoring, recommendations, inputs.forecast
            ),
            comparisons=Comparisons(
                industry_average=cfg.industry_average,
                competitors=tuple(inputs.competitors),
                previous_period=inputs.trend.weekly_change,
            ),
            metrics=scoring.metrics,
            metadata=ReportMetadata(
                version=self.config.version,
                analysis_method="comprehensive",
                data_sources=tuple(scoring.data_sources),
                confidence=(
                    round(inputs.trend.confidence, 2)
                    if inputs.trend.confidence
                    else cfg.default_confidence
                ),
                defaults_applied=tuple(scoring.defaults_applied),
            ),
        )

        logger.info(
            "report_compiled",
            report_id=report.id,
            url=report.url,
            period_start=report.period_start.isoformat(),
            overall_score=report.overall_score,
            grade=report.grade,
        )
        return report

    def _build_issue_summary(self, issues: list[Issue]) -> IssueSummary:
        by_severity = {severity.value: 0 for severity in IssueSeverity}
        by_type: dict[str, int] = {}
        for issue in issues:
            by_severity[issue.severity.value] += 1
            by_type[issue.type] = by_type.get(issue.type, 0) + 1
        return IssueSummary(total=len(issues), by_severity=by_severity, by_type=by_type)

    def _build_recommendation_summary(
        self, recommendations: list[Recommendation]
    ) -> RecommendationSummary:
        by_priority = {priority.value: 0 for priority in Priority}
        for rec in recommendations:
            by_priority[rec.priority.value] += 1

        timeline = []
        for effort, week, limit in TIMELINE_SLOTS:
            tasks = [r.title for r in recommendations if r.estimated_effort == effort][:limit]
            if tasks:
                timeline.append(TimelineEntry(week=week, tasks=tuple(tasks)))

        return RecommendationSummary(
            total=len(recommendations),
            by_priority=by_priority,
            estimated_impact=sum(r.estimated_impact for r in recommendations),
            implementation_timeline=tuple(timeline),
        )

    def _build_narrative(self, scoring: ScoringResult, trend: Trend) -> Narrative:
        on_page = scoring.score_of(Category.ON_PAGE)
        technical = scoring.score_of(Category.TECHNICAL)
        content = scoring.score_of(Category.CONTENT)
        ux = scoring.score_of(Category.UX)
        authority = scoring.score_of(Category.AUTHORITY)
        critical_count = sum(1 for i in scoring.issues if i.severity == IssueSeverity.CRITICAL)

        strengths = []
        if on_page >= 80:
            strengths.append("Strong on-page SEO foundation")
        if technical >= 85:
            strengths.append("Excellent technical implementation")
        if content >= 75:
            strengths.append("High-quality content")
        if ux >= 80:
            strengths.append("Great user experience")
        if authority >= 70:
            strengths.append("Good domain authority")

        weaknesses = []
        if on_page < 60:
            weaknesses.append("On-page SEO needs significant improvement")
        if technical < 60:
            weaknesses.append("Technical issues affecting performance")
        if content < 60:
            weaknesses.append("Content quality below standards")
        if ux < 60:
            weaknesses.append("User experience needs optimization")
        if critical_count:
            weaknesses.append(f"{critical_count} critical issues found")

        opportunities = []
        if 60 <= on_page < 75:
            opportunities.append("Quick wins available in on-page optimization")
        if 65 <= content < 80:
            opportunities.append("Content upgrades could significantly boost rankings")
        if trend.velocity > 5:
            opportunities.append("Strong positive momentum - capitalize on current improvements")
        lighthouse_seo = scoring.metrics.get("lighthouse", {}).get("seo")
        if lighthouse_seo is not None and lighthouse_seo < 0.9:
            opportunities.append("SEO audit reveals multiple optimization opportunities")

        threats = []
        if trend.velocity < -3:
            threats.append("Negative trend detected - immediate action required")
        if critical_count >= 3:
            threats.append("Multiple critical issues affecting performance and rankings")
        if technical < 50:
            threats.append("Technical debt accumulating - affecting long-term performance")
        if scoring.metrics.get("technical", {}).get("https") is False:
            threats.append("Missing HTTPS - negatively impacting rankings and security")

        return Narrative(
            strengths=tuple(strengths or ["Solid baseline performance"]),
            weaknesses=tuple(weaknesses or ["No major weaknesses detected"]),
            opportunities=tuple(opportunities or ["Incremental improvements across all areas"]),
            threats=tuple(threats or ["Standard competitive pressures"]),
        )

    def _build_insights(
        self,
        scoring: ScoringResult,
        recommendations: list[Recommendation],
        forecast: Forecast,
    ) -> tuple[str, ...]:
        cfg = self.config.report
        insights = []

        quick_wins = [
            r
            for r in recommendations
            if r.estimated_effort == Effort.LOW and r.estimated_impact >= cfg.quick_win_min_impact
        ]
        if quick_wins:
            insights.append(f"{len(quick_wins)} quick wins identified with significant impact")

        critical_count = sum(1 for i in scoring.issues if i.severity == IssueSeverity.CRITICAL)
        if critical_count:
            insights.append(f"{critical_count} critical issues need immediate attention")

        if forecast.confidence > cfg.forecast_insight_confidence:
            current = scoring.overall_score
            if forecast.predicted_score > current * 1.1:
                insights.append("Strong growth potential with recommended improvements")
            elif forecast.predicted_score < current * 0.9:
                insights.append("Risk of decline without immediate action")

        total_impact = sum(r.estimated_impact for r in recommendations)
        if total_impact > cfg.cumulative_impact_insight:
            insights.append(
                f"Potential {total_impact:g}% improvement from implementing recommendations"
            )

        return tuple(insights[: cfg.max_insights])
