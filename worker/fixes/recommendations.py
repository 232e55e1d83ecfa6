"""Recommendation generator.

Derives a prioritized, deduplicated list of improvement actions from the
current issues and category scores. A pluggable primary strategy produces
the list; if it raises, a deterministic rule-based fallback takes over so
recommendation generation never fails a report.
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from uuid import NAMESPACE_URL, uuid5

import structlog

from worker.config import RecommendationConfig
from worker.scoring.engine import Category, CategoryScore
from worker.scoring.issues import Issue, IssueSeverity
from worker.scoring.trend import Trend

logger = structlog.get_logger(__name__)


class Priority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Effort(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RecommendationSource(StrEnum):
    PRIMARY = "primary"
    FALLBACK = "fallback"


PRIORITY_ORDER = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


@dataclass(frozen=True)
class Recommendation:
    """A single improvement action."""

    id: str
    category: str  # performance, seo, content, authority, technical
    priority: Priority
    title: str
    description: str
    estimated_impact: float  # score points
    estimated_effort: Effort
    steps: tuple[str, ...] = ()
    source: RecommendationSource = RecommendationSource.PRIMARY

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category": self.category,
            "priority": self.priority.value,
            "title": self.title,
            "description": self.description,
            "estimated_impact": self.estimated_impact,
            "estimated_effort": self.estimated_effort.value,
            "steps": list(self.steps),
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Recommendation":
        return cls(
            id=data["id"],
            category=data["category"],
            priority=Priority(data["priority"]),
            title=data["title"],
            description=data["description"],
            estimated_impact=float(data["estimated_impact"]),
            estimated_effort=Effort(data["estimated_effort"]),
            steps=tuple(data.get("steps", ())),
            source=RecommendationSource(data.get("source", "primary")),
        )


def recommendation_id(category: str, title: str) -> str:
    """Deterministic id so identical inputs compile to identical reports."""
    return str(uuid5(NAMESPACE_URL, f"recommendation:{category}:{title}"))


def _make(
    category: str,
    priority: Priority,
    title: str,
    description: str,
    impact: float,
    effort: Effort,
    steps: Sequence[str] = (),
    source: RecommendationSource = RecommendationSource.PRIMARY,
) -> Recommendation:
    return Recommendation(
        id=recommendation_id(category, title),
        category=category,
        priority=priority,
        title=title,
        description=description,
        estimated_impact=impact,
        estimated_effort=effort,
        steps=tuple(steps),
        source=source,
    )


Scores = Mapping[Category, CategoryScore]
PrimaryStrategy = Callable[[Sequence[Issue], Scores, Trend, RecommendationConfig], list[Recommendation]]


def _performance_description(issues: Sequence[Issue]) -> str:
    critical = [i for i in issues if i.severity == IssueSeverity.CRITICAL]
    if critical:
        return (
            f"Address {len(critical)} critical performance issues affecting "
            "user experience and conversions."
        )
    warnings = [i for i in issues if i.severity == IssueSeverity.WARNING]
    if warnings:
        return f"Optimize {len(warnings)} performance areas to improve page speed scores."
    return "Maintain current performance levels while monitoring for new issues."


def rule_based_recommendations(
    issues: Sequence[Issue],
    scores: Scores,
    trend: Trend,  # noqa: ARG001
    config: RecommendationConfig,
) -> list[Recommendation]:
    """Primary strategy: one recommendation per triggered rule."""
    recommendations = []

    performance_issues = [i for i in issues if i.type == "performance"]
    if performance_issues:
        has_critical = any(i.severity == IssueSeverity.CRITICAL for i in performance_issues)
        recommendations.append(
            _make(
                category="performance",
                priority=Priority.HIGH if has_critical else Priority.MEDIUM,
                title="Optimize Core Web Vitals",
                description=_performance_description(performance_issues),
                impact=15,
                effort=Effort.MEDIUM,
                steps=(
                    "Implement lazy loading for images and videos",
                    "Minify and compress JavaScript/CSS",
                    "Enable browser caching",
                    "Use a CDN for static assets",
                ),
            )
        )

    on_page = scores[Category.ON_PAGE].score
    if on_page < config.on_page_threshold:
        recommendations.append(
            _make(
                category="seo",
                priority=Priority.HIGH if on_page < config.on_page_high_priority else Priority.MEDIUM,
                title="Improve On-Page SEO",
                description="Key SEO elements need optimization to improve search visibility",
                impact=20,
                effort=Effort.LOW,
                steps=(
                    "Optimize title tags (50-60 characters with primary keyword)",
                    "Improve meta descriptions (120-160 characters)",
                    "Add structured data markup",
                    "Fix broken internal links",
                ),
            )
        )

    if scores[Category.CONTENT].score < config.content_threshold:
        recommendations.append(
            _make(
                category="content",
                priority=Priority.MEDIUM,
                title="Enhance Content Quality",
                description="Improve content depth and readability for better engagement",
                impact=12,
                effort=Effort.HIGH,
                steps=(
                    "Increase word count to 1000+ words per page",
                    "Improve readability score to Grade 8 or below",
                    "Add more supporting media (images, videos, infographics)",
                    "Update outdated content",
                ),
            )
        )

    if scores[Category.AUTHORITY].score < config.authority_threshold:
        recommendations.append(
            _make(
                category="authority",
                priority=Priority.MEDIUM,
                title="Build Domain Authority",
                description="Increase backlinks and social signals to improve authority",
                impact=18,
                effort=Effort.HIGH,
                steps=(
                    "Create link-worthy content (guides, research, tools)",
                    "Guest post on industry websites",
                    "Fix broken external links",
                    "Monitor and disavow toxic backlinks",
                ),
            )
        )

    return recommendations


def fallback_recommendations(scores: Scores, config: RecommendationConfig) -> list[Recommendation]:
    """Deterministic fallback covering on-page and technical problems."""
    recommendations = []

    if scores[Category.ON_PAGE].score < config.on_page_threshold:
        recommendations.append(
            _make(
                category="seo",
                priority=Priority.MEDIUM,
                title="Basic SEO Optimization Needed",
                description="Improve basic on-page SEO factors",
                impact=15,
                effort=Effort.LOW,
                steps=("Fix title and meta description length", "Use exactly one H1 per page"),
                source=RecommendationSource.FALLBACK,
            )
        )

    if scores[Category.TECHNICAL].score < config.technical_fallback_threshold:
        recommendations.append(
            _make(
                category="technical",
                priority=Priority.HIGH,
                title="Technical Issues Detected",
                description="Fix critical technical SEO issues",
                impact=25,
                effort=Effort.MEDIUM,
                steps=("Serve every page over HTTPS", "Add a responsive viewport and canonical tag"),
                source=RecommendationSource.FALLBACK,
            )
        )

    return recommendations


class RecommendationGenerator:
    """Generates ranked recommendations for a report."""

    def __init__(
        self,
        config: RecommendationConfig | None = None,
        primary: PrimaryStrategy | None = None,
    ):
        self.config = config or RecommendationConfig()
        self.primary = primary or rule_based_recommendations

    def generate(
        self,
        issues: Sequence[Issue],
        category_scores: Scores,
        trend: Trend,
    ) -> list[Recommendation]:
        """
        Generate recommendations.

        Args:
            issues: Issues of the current run
            category_scores: Category scores of the current run
            trend: Trend for the URL

        Returns:
            At most `max_recommendations` items, one per category, ranked by
            priority then estimated impact
        """
        try:
            candidates = self.primary(issues, category_scores, trend, self.config)
        except Exception as e:
            logger.warning("recommendation_primary_failed", error=str(e))
            candidates = fallback_recommendations(category_scores, self.config)

        ranked = self._rank(self._dedupe(candidates))
        return ranked[: self.config.max_recommendations]

    def _dedupe(self, recommendations: Sequence[Recommendation]) -> list[Recommendation]:
        """Keep the first recommendation per category."""
        seen: set[str] = set()
        unique = []
        for rec in recommendations:
            if rec.category in seen:
                continue
            seen.add(rec.category)
            unique.append(rec)
        return unique

    def _rank(self, recommendations: list[Recommendation]) -> list[Recommendation]:
        return sorted(
            recommendations,
            key=lambda r: (PRIORITY_ORDER[r.priority], -r.estimated_impact),
        )
