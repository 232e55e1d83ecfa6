"""Report JSON contract and data structures.

Defines the stable weekly report format. Every section serializes with
`to_dict` and parses back with `from_dict`, so a stored report can be
returned by the API or exported without being recompiled.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from uuid import NAMESPACE_URL, uuid5

from worker.collector.models import CompetitorBenchmark
from worker.fixes.recommendations import Recommendation
from worker.scoring.engine import CategoryScore
from worker.scoring.forecast import Forecast
from worker.scoring.issues import Issue
from worker.scoring.trend import Trend, WeeklyChange


class ReportVersion(str, Enum):
    """Report schema versions."""

    V2_0 = "2.0"


CURRENT_VERSION = ReportVersion.V2_0


def report_id_for(url: str, period_start: date) -> str:
    """Report identity is (url, period_start); the id is derived from it."""
    return str(uuid5(NAMESPACE_URL, f"{url}|{period_start.isoformat()}"))


@dataclass(frozen=True)
class IssueSummary:
    """Issue counts by severity and type, plus the top of the list."""

    total: int
    by_severity: dict[str, int]
    by_type: dict[str, int]

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "by_severity": dict(self.by_severity),
            "by_type": dict(self.by_type),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "IssueSummary":
        return cls(
            total=int(data["total"]),
            by_severity=dict(data["by_severity"]),
            by_type=dict(data["by_type"]),
        )


@dataclass(frozen=True)
class TimelineEntry:
    """Tasks scheduled for one week of the implementation plan."""

    week: int
    tasks: tuple[str, ...]

    def to_dict(self) -> dict:
        return {"week": self.week, "tasks": list(self.tasks)}

    @classmethod
    def from_dict(cls, data: dict) -> "TimelineEntry":
        return cls(week=int(data["week"]), tasks=tuple(data["tasks"]))


@dataclass(frozen=True)
class RecommendationSummary:
    total: int
    by_priority: dict[str, int]
    estimated_impact: float
    implementation_timeline: tuple[TimelineEntry, ...] = ()

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "by_priority": dict(self.by_priority),
            "estimated_impact": self.estimated_impact,
            "implementation_timeline": [t.to_dict() for t in self.implementation_timeline],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RecommendationSummary":
        return cls(
            total=int(data["total"]),
            by_priority=dict(data["by_priority"]),
            estimated_impact=float(data["estimated_impact"]),
            implementation_timeline=tuple(
                TimelineEntry.from_dict(t) for t in data.get("implementation_timeline", [])
            ),
        )


@dataclass(frozen=True)
class Narrative:
    """Strengths, weaknesses, opportunities and threats."""

    strengths: tuple[str, ...]
    weaknesses: tuple[str, ...]
    opportunities: tuple[str, ...]
    threats: tuple[str, ...]

    def to_dict(self) -> dict:
        return {
            "strengths": list(self.strengths),
            "weaknesses": list(self.weaknesses),
            "opportunities": list(self.opportunities),
            "threats": list(self.threats),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Narrative":
        return cls(
            strengths=tuple(data["strengths"]),
            weaknesses=tuple(data["weaknesses"]),
            opportunities=tuple(data["opportunities"]),
            threats=tuple(data["threats"]),
        )


@dataclass(frozen=True)
class Comparisons:
    """Benchmarks the current score is compared against."""

    industry_average: float
    competitors: tuple[CompetitorBenchmark, ...]
    previous_period: WeeklyChange

    def to_dict(self) -> dict:
        return {
            "industry_average": self.industry_average,
            "competitors": [c.to_dict() for c in self.competitors],
            "previous_period": self.previous_period.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Comparisons":
        return cls(
            industry_average=float(data["industry_average"]),
            competitors=tuple(CompetitorBenchmark.model_validate(c) for c in data["competitors"]),
            previous_period=WeeklyChange.from_dict(data["previous_period"]),
        )


@dataclass(frozen=True)
class ReportMetadata:
    """Report metadata and context."""

    version: str
    analysis_method: str
    data_sources: tuple[str, ...]
    confidence: float
    defaults_applied: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "analysis_method": self.analysis_method,
            "data_sources": list(self.data_sources),
            "confidence": self.confidence,
            "defaults_applied": list(self.defaults_applied),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ReportMetadata":
        return cls(
            version=data["version"],
            analysis_method=data["analysis_method"],
            data_sources=tuple(data["data_sources"]),
            confidence=float(data["confidence"]),
            defaults_applied=tuple(data.get("defaults_applied", ())),
        )


@dataclass(frozen=True)
class Report:
    """Complete weekly report. Only ever stored fully computed."""

    id: str
    url: str
    period_start: date
    period_end: date
    generated_at: datetime

    overall_score: int
    grade: str
    status: str
    category_scores: tuple[CategoryScore, ...]
    historical_scores: tuple[float, ...]

    issues: tuple[Issue, ...]
    issue_summary: IssueSummary
    trend: Trend
    recommendations: tuple[Recommendation, ...]
    recommendation_summary: RecommendationSummary
    forecast: Forecast

    narrative: Narrative
    actionable_insights: tuple[str, ...]
    comparisons: Comparisons
    metrics: dict[str, dict] = field(default_factory=dict)
    metadata: ReportMetadata | None = None

    @property
    def key(self) -> tuple[str, date]:
        return (self.url, self.period_start)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "url": self.url,
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "generated_at": self.generated_at.isoformat(),
            "summary": {
                "overall_score": self.overall_score,
                "grade": self.grade,
                "status": self.status,
            },
            "scores": {
                "overall": self.overall_score,
                "categories": [c.to_dict() for c in self.category_scores],
                "historical": list(self.historical_scores),
            },
            "issues": {
                **self.issue_summary.to_dict(),
                "list": [i.to_dict() for i in self.issues],
            },
            "trend": self.trend.to_dict(),
            "recommendations": {
                **self.recommendation_summary.to_dict(),
                "list": [r.to_dict() for r in self.recommendations],
            },
            "forecast": self.forecast.to_dict(),
            "analysis": self.narrative.to_dict(),
            "actionable_insights": list(self.actionable_insights),
            "comparisons": self.comparisons.to_dict(),
            "metrics": self.metrics,
            "metadata": self.metadata.to_dict() if self.metadata else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Report":
        """Rebuild a report from `to_dict` output."""
        issues = data["issues"]
        recommendations = data["recommendations"]
        return cls(
            id=data["id"],
            url=data["url"],
            period_start=date.fromisoformat(data["period_start"]),
            period_end=date.fromisoformat(data["period_end"]),
            generated_at=datetime.fromisoformat(data["generated_at"]),
            overall_score=int(data["summary"]["overall_score"]),
            grade=data["summary"]["grade"],
            status=data["summary"]["status"],
            category_scores=tuple(
                CategoryScore.from_dict(c) for c in data["scores"]["categories"]
            ),
            historical_scores=tuple(data["scores"].get("historical", ())),
            issues=tuple(Issue.from_dict(i) for i in issues["list"]),
            issue_summary=IssueSummary.from_dict(issues),
            trend=Trend.from_dict(data["trend"]),
            recommendations=tuple(Recommendation.from_dict(r) for r in recommendations["list"]),
            recommendation_summary=RecommendationSummary.from_dict(recommendations),
            forecast=Forecast.from_dict(data["forecast"]),
            narrative=Narrative.from_dict(data["analysis"]),
            actionable_insights=tuple(data.get("actionable_insights", ())),
            comparisons=Comparisons.from_dict(data["comparisons"]),
            metrics=data.get("metrics", {}),
            metadata=ReportMetadata.from_dict(data["metadata"]) if data.get("metadata") else None,
        )

    def get_summary(self) -> dict:
        """Compact view for job status responses and listings."""
        return {
            "id": self.id,
            "url": self.url,
            "period_start": self.period_start.isoformat(),
            "overall_score": self.overall_score,
            "grade": self.grade,
            "status": self.status,
            "issue_count": self.issue_summary.total,
            "recommendation_count": self.recommendation_summary.total,
        }
