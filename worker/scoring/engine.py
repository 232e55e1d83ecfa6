"""Multi-factor SEO scoring engine.

Turns one RawMeasurement into five category scores (on-page, technical,
content, UX, authority), a weighted overall score and a ranked issue list.

Each sub-model spends a fixed point allotment (total 100). When a
provider returned nothing the sub-model substitutes the documented default
from ScoringDefaults and records it in `defaults_applied` instead of
failing the run.
"""

from dataclasses import dataclass, field
from enum import StrEnum

import structlog

from api.exceptions import DataUnavailableError
from worker.collector.models import (
    BacklinkProfile,
    CoreWebVitals,
    HtmlAnalysis,
    LighthouseScores,
    RawMeasurement,
)
from worker.config import PipelineConfig
from worker.scoring.issues import Issue, detect_issues

logger = structlog.get_logger(__name__)


class Category(StrEnum):
    """Score categories."""

    ON_PAGE = "on_page"
    TECHNICAL = "technical"
    CONTENT = "content"
    UX = "ux"
    AUTHORITY = "authority"


CATEGORY_DISPLAY_NAMES = {
    Category.ON_PAGE: "On-Page SEO",
    Category.TECHNICAL: "Technical SEO",
    Category.CONTENT: "Content Quality",
    Category.UX: "User Experience",
    Category.AUTHORITY: "Authority",
}


@dataclass(frozen=True)
class CategoryScore:
    """Score for one category with the sub-factor points that produced it."""

    category: Category
    score: float  # 0-100
    weight: float
    contributions: dict[str, float] = field(default_factory=dict)
    defaults_applied: tuple[str, ...] = ()

    @property
    def weighted_score(self) -> float:
        return self.score * self.weight

    def to_dict(self) -> dict:
        return {
            "category": self.category.value,
            "display_name": CATEGORY_DISPLAY_NAMES[self.category],
            "score": round(self.score, 2),
            "weight": self.weight,
            "weighted_score": round(self.weighted_score, 2),
            "contributions": {k: round(v, 2) for k, v in self.contributions.items()},
            "defaults_applied": list(self.defaults_applied),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CategoryScore":
        return cls(
            category=Category(data["category"]),
            score=float(data["score"]),
            weight=float(data["weight"]),
            contributions=dict(data.get("contributions", {})),
            defaults_applied=tuple(data.get("defaults_applied", ())),
        )


@dataclass(frozen=True)
class ScoringResult:
    """Complete scoring output for one measurement."""

    url: str
    overall_score: int  # 0-100
    category_scores: dict[Category, CategoryScore]
    issues: tuple[Issue, ...]
    metrics: dict[str, dict]
    data_sources: tuple[str, ...] = ()

    def score_of(self, category: Category) -> float:
        return self.category_scores[category].score

    @property
    def defaults_applied(self) -> list[str]:
        applied: list[str] = []
        for score in self.category_scores.values():
            applied.extend(score.defaults_applied)
        return applied

    def show_the_math(self) -> str:
        """Generate human-readable calculation breakdown."""
        lines = [
            "=" * 50,
            "SEO HEALTH SCORE",
            "=" * 50,
            "",
            f"Overall Score: {self.overall_score}/100",
            "",
        ]
        for score in self.category_scores.values():
            lines.append(
                f"{CATEGORY_DISPLAY_NAMES[score.category]}: {score.score:.1f}/100 x "
                f"{score.weight:.0%} = {score.weighted_score:.1f}"
            )
            for name, points in score.contributions.items():
                lines.append(f"   {name}: {points:.1f}")
        if self.issues:
            lines.extend(["", "-" * 50, "ISSUES", "-" * 50])
            for issue in self.issues:
                lines.append(f"  [{issue.severity.value}] {issue.message}")
        lines.extend(["", "=" * 50])
        return "\n".join(lines)


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _tier(value: float, tiers: list[tuple[float, float]], floor: float) -> float:
    """Points of the first tier whose threshold `value` reaches (tiers descending)."""
    for threshold, points in tiers:
        if value >= threshold:
            return points
    return floor


def _band(value: float, bounds: tuple[float, float]) -> float:
    """Core Web Vital points: good 20, needs improvement 10, poor 5."""
    good, needs_improvement = bounds
    if value <= good:
        return 20.0
    if value <= needs_improvement:
        return 10.0
    return 5.0


class ScoringEngine:
    """Computes category scores, the overall score and issues."""

    def __init__(self, config: PipelineConfig | None = None):
        self.config = config or PipelineConfig()

    def score(self, measurement: RawMeasurement) -> ScoringResult:
        """
        Score a measurement.

        Args:
            measurement: Validated raw measurement for one URL

        Returns:
            ScoringResult with category breakdown and ranked issues
        """
        weights = self.config.weights.as_dict()

        category_scores = {
            Category.ON_PAGE: self._score_on_page(measurement.html, weights["on_page"]),
            Category.TECHNICAL: self._score_technical(measurement, weights["technical"]),
            Category.CONTENT: self._score_content(measurement.html, weights["content"]),
            Category.UX: self._score_ux(measurement, weights["ux"]),
            Category.AUTHORITY: self._score_authority(measurement.backlinks, weights["authority"]),
        }

        total = sum(s.weighted_score for s in category_scores.values())
        overall = int(_clamp(round(total)))

        issues = detect_issues(measurement, self.config.scoring)

        result = ScoringResult(
            url=measurement.url,
            overall_score=overall,
            category_scores=category_scores,
            issues=tuple(issues),
            metrics=self._extract_metrics(measurement),
            data_sources=tuple(measurement.data_sources),
        )

        logger.info(
            "seo_score_calculated",
            url=measurement.url,
            overall_score=overall,
            issues_count=len(issues),
            defaults_applied=result.defaults_applied,
        )

        return result

    def _unavailable(self, source: str, default: float | str) -> str:
        """Record a DataUnavailable downgrade and return its label."""
        error = DataUnavailableError(source, default)
        logger.warning("scoring_default_applied", source=source, reason=error.message)
        return source

    # On-page (title 30, description 20, headings 25, alt text 15, links 10)

    def _score_on_page(self, html: HtmlAnalysis | None, weight: float) -> CategoryScore:
        cfg = self.config.scoring
        if html is None:
            default = cfg.defaults.on_page_score
            return CategoryScore(
                category=Category.ON_PAGE,
                score=default,
                weight=weight,
                contributions={"default": default},
                defaults_applied=(self._unavailable("html", default),),
            )

        points: dict[str, float] = {}

        title = html.meta.title or ""
        points["title"] = 0.0
        if title:
            points["title"] += 15
            low, high = cfg.title_length
            if low <= len(title) <= high:
                points["title"] += 15

        description = html.meta.description or ""
        points["description"] = 0.0
        if description:
            points["description"] += 10
            low, high = cfg.description_length
            if low <= len(description) <= high:
                points["description"] += 10

        headings = html.headings
        points["headings"] = (
            (10.0 if headings.h1 == 1 else 0.0)
            + (8.0 if headings.h2 >= 2 else 0.0)
            + (7.0 if headings.h3 >= 3 else 0.0)
        )

        points["image_alt"] = 15.0 * html.images.alt_coverage

        points["internal_links"] = _tier(
            html.links.internal, [(10, 10.0), (5, 6.0), (3, 2.0)], floor=0.0
        )

        return CategoryScore(
            category=Category.ON_PAGE,
            score=_clamp(sum(points.values())),
            weight=weight,
            contributions=points,
        )

    # Technical (Lighthouse 100 + HTTPS 10 + viewport 10 + canonical 5, capped)

    def _score_technical(self, measurement: RawMeasurement, weight: float) -> CategoryScore:
        cfg = self.config.scoring
        defaults_applied: list[str] = []
        points: dict[str, float] = {}

        lighthouse = measurement.lighthouse
        if lighthouse is None:
            defaults_applied.append(
                self._unavailable("lighthouse", cfg.defaults.lighthouse_category)
            )
            lighthouse = LighthouseScores()

        lighthouse_points = 0.0
        for name, category_weight in cfg.lighthouse_weights.items():
            value = getattr(lighthouse, name)
            if value is None:
                value = cfg.defaults.lighthouse_category
            lighthouse_points += value * 100 * category_weight
        points["lighthouse"] = lighthouse_points

        html = measurement.html
        if html is not None:
            https = html.technical.https
            points["responsive"] = 10.0 if html.technical.responsive else 0.0
            points["canonical"] = 5.0 if html.meta.canonical else 0.0
        else:
            https = measurement.url.lower().startswith("https://")
            points["responsive"] = 0.0
            points["canonical"] = 0.0
        points["https"] = 10.0 if https else 0.0

        return CategoryScore(
            category=Category.TECHNICAL,
            score=_clamp(sum(points.values())),
            weight=weight,
            contributions=points,
            defaults_applied=tuple(defaults_applied),
        )

    # Content (word count 30, readability 30, keywords 20, media 20)

    def _score_content(self, html: HtmlAnalysis | None, weight: float) -> CategoryScore:
        cfg = self.config.scoring
        if html is None:
            default = cfg.defaults.content_score
            return CategoryScore(
                category=Category.CONTENT,
                score=default,
                weight=weight,
                contributions={"default": default},
                defaults_applied=(self._unavailable("content", default),),
            )

        defaults_applied: list[str] = []
        points: dict[str, float] = {}
        content = html.content

        points["word_count"] = _tier(
            content.word_count,
            [(1500, 30.0), (1000, 25.0), (800, 20.0), (500, 15.0), (300, 10.0)],
            floor=5.0,
        )

        grade = content.readability_grade
        if grade is None:
            grade = cfg.defaults.readability_grade
            defaults_applied.append(self._unavailable("readability", grade))
        if grade <= 8:
            points["readability"] = 30.0
        elif grade <= 12:
            points["readability"] = 20.0
        elif grade <= 16:
            points["readability"] = 10.0
        else:
            points["readability"] = 5.0

        density = content.keyword_density
        if density is None:
            density = cfg.defaults.keyword_density
            defaults_applied.append(self._unavailable("keyword_density", density))
        points["keywords"] = min(20.0, keyword_density_score(density, cfg.keyword_density_band) / 100 * 20)

        images = html.images
        if images.checked > 0:
            points["media"] = min(20.0, images.optimized / images.checked * 20)
        elif images.total == 0:
            points["media"] = 20.0
        else:
            points["media"] = cfg.defaults.media_points
            defaults_applied.append(self._unavailable("image_optimization", points["media"]))

        return CategoryScore(
            category=Category.CONTENT,
            score=_clamp(sum(points.values())),
            weight=weight,
            contributions=points,
            defaults_applied=tuple(defaults_applied),
        )

    # UX (LCP 20, FID 20, CLS 20, mobile usability 20, accessibility 20)

    def _score_ux(self, measurement: RawMeasurement, weight: float) -> CategoryScore:
        cfg = self.config.scoring
        defaults = cfg.defaults
        defaults_applied: list[str] = []
        points: dict[str, float] = {}

        vitals = measurement.vitals
        if vitals is None:
            defaults_applied.append(self._unavailable("vitals", defaults.vital_points))
            vitals = CoreWebVitals()

        for name, value, bounds in (
            ("lcp", vitals.lcp_ms, cfg.lcp_ms),
            ("fid", vitals.fid_ms, cfg.fid_ms),
            ("cls", vitals.cls, cfg.cls),
        ):
            if value is None:
                points[name] = defaults.vital_points
                if measurement.vitals is not None:
                    defaults_applied.append(self._unavailable(name, defaults.vital_points))
            else:
                points[name] = _band(value, bounds)

        lighthouse = measurement.lighthouse
        mobile = lighthouse.mobile_friendly if lighthouse else None
        if mobile is None:
            mobile = defaults.mobile_friendly
            defaults_applied.append(self._unavailable("mobile_usability", mobile))
        points["mobile_usability"] = mobile * 20

        accessibility = lighthouse.accessibility if lighthouse else None
        if accessibility is None:
            accessibility = defaults.lighthouse_category
            defaults_applied.append(self._unavailable("accessibility", accessibility))
        points["accessibility"] = accessibility * 20

        return CategoryScore(
            category=Category.UX,
            score=_clamp(sum(points.values())),
            weight=weight,
            contributions=points,
            defaults_applied=tuple(defaults_applied),
        )

    # Authority (DA 30, PA 20, referring domains 30, spam 20)

    def _score_authority(self, backlinks: BacklinkProfile | None, weight: float) -> CategoryScore:
        if backlinks is None:
            default = self.config.scoring.defaults.authority_score
            return CategoryScore(
                category=Category.AUTHORITY,
                score=default,
                weight=weight,
                contributions={"default": default},
                defaults_applied=(self._unavailable("backlinks", default),),
            )

        points = {
            "domain_authority": min(30.0, backlinks.domain_authority / 100 * 30),
            "page_authority": min(20.0, backlinks.page_authority / 100 * 20),
            "referring_domains": _tier(
                backlinks.referring_domains,
                [(1000, 30.0), (500, 25.0), (250, 20.0), (100, 15.0), (50, 10.0)],
                floor=5.0,
            ),
        }

        spam = backlinks.spam_score
        if spam <= 1:
            points["spam_score"] = 20.0
        elif spam <= 3:
            points["spam_score"] = 15.0
        elif spam <= 5:
            points["spam_score"] = 10.0
        else:
            points["spam_score"] = 5.0

        return CategoryScore(
            category=Category.AUTHORITY,
            score=_clamp(sum(points.values())),
            weight=weight,
            contributions=points,
        )

    def _extract_metrics(self, measurement: RawMeasurement) -> dict[str, dict]:
        """Flatten the measurement facts the report displays."""
        metrics: dict[str, dict] = {"performance": {}, "seo": {}, "technical": {}, "lighthouse": {}}

        if measurement.vitals is not None:
            v = measurement.vitals
            metrics["performance"] = {
                "page_load": v.load_ms or 0,
                "first_contentful_paint": v.fcp_ms or 0,
                "largest_contentful_paint": v.lcp_ms or 0,
                "cumulative_layout_shift": v.cls or 0,
                "first_input_delay": v.fid_ms or 0,
                "time_to_interactive": v.dom_interactive_ms or 0,
            }

        if measurement.html is not None:
            html = measurement.html
            metrics["seo"] = {
                "title_length": len(html.meta.title or ""),
                "description_length": len(html.meta.description or ""),
                "headings": html.headings.model_dump(),
                "internal_links": html.links.internal,
                "external_links": html.links.external,
                "image_alts": {"with": html.images.with_alt, "without": html.images.without_alt},
            }
            metrics["technical"] = {
                "https": html.technical.https,
                "responsive": html.technical.responsive,
                "html_lang": bool(html.meta.lang),
                "canonical": bool(html.meta.canonical),
                "schema_markup": html.content.has_schema,
            }

        if measurement.lighthouse is not None:
            lh = measurement.lighthouse
            metrics["lighthouse"] = {
                "performance": lh.performance,
                "accessibility": lh.accessibility,
                "best_practices": lh.best_practices,
                "seo": lh.seo,
            }

        return metrics


def keyword_density_score(density: float, band: tuple[float, float] = (0.5, 2.5)) -> float:
    """Score keyword density 0-100; full marks inside the optimal band."""
    low, high = band
    if low <= density <= high:
        return 100.0
    if density < low:
        return density / low * 50
    return max(0.0, 100 - (density - high) * 20)


def score_measurement(
    measurement: RawMeasurement,
    config: PipelineConfig | None = None,
) -> ScoringResult:
    """Convenience function to score a measurement."""
    return ScoringEngine(config).score(measurement)
