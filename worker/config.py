"""Pipeline configuration.

All scoring weights, thresholds, forecast constants and scheduler limits
live here so the model can be versioned and swapped in tests.
"""

from dataclasses import dataclass, field

MODEL_VERSION = "2.0"


@dataclass(frozen=True)
class CategoryWeights:
    """Weights of the five category scores in the overall score (total = 1.0)."""

    on_page: float = 0.25
    technical: float = 0.25
    content: float = 0.20
    ux: float = 0.15
    authority: float = 0.15

    def as_dict(self) -> dict[str, float]:
        return {
            "on_page": self.on_page,
            "technical": self.technical,
            "content": self.content,
            "ux": self.ux,
            "authority": self.authority,
        }


@dataclass(frozen=True)
class ScoringDefaults:
    """Values substituted when a provider returned nothing."""

    authority_score: float = 50.0
    on_page_score: float = 50.0
    content_score: float = 50.0
    lighthouse_category: float = 0.5  # 0..1, per Lighthouse category
    mobile_friendly: float = 0.5  # 0..1
    vital_points: float = 10.0  # middle band per Core Web Vital
    readability_grade: float = 12.0
    keyword_density: float = 1.0  # percent
    media_points: float = 10.0


@dataclass(frozen=True)
class ScoringConfig:
    """Thresholds for the category sub-models."""

    title_length: tuple[int, int] = (50, 60)
    description_length: tuple[int, int] = (120, 160)
    keyword_density_band: tuple[float, float] = (0.5, 2.5)

    # Lighthouse category weights inside the technical score
    lighthouse_weights: dict[str, float] = field(
        default_factory=lambda: {
            "performance": 0.3,
            "accessibility": 0.2,
            "best_practices": 0.2,
            "seo": 0.3,
        }
    )

    # Core Web Vitals (good, needs-improvement) bounds
    lcp_ms: tuple[float, float] = (2500.0, 4000.0)
    fid_ms: tuple[float, float] = (100.0, 300.0)
    cls: tuple[float, float] = (0.1, 0.25)

    # Audits below this score produce issues
    audit_pass_score: float = 0.9
    thin_content_words: int = 300

    defaults: ScoringDefaults = field(default_factory=ScoringDefaults)


@dataclass(frozen=True)
class TrendConfig:
    """Trend analysis parameters."""

    min_points: int = 2
    window: int = 4  # points used for slope, variance and direction
    stable_percent: float = 5.0
    weeks_per_month: int = 4
    min_confidence: float = 0.3
    max_confidence: float = 0.9
    confidence_scale: float = 0.8


@dataclass(frozen=True)
class ForecastConfig:
    """Forecast parameters."""

    timeframe: str = "1 month"
    velocity_factor: float = 0.25
    recommendation_impact: float = 5.0  # estimated points per implemented recommendation
    recommendation_multiplier: float = 2.0
    base_confidence: float = 0.5
    trend_confidence_factor: float = 0.3
    issue_penalty: float = 0.02
    min_confidence: float = 0.3
    max_confidence: float = 0.9
    insufficient_history_confidence: float = 0.5


@dataclass(frozen=True)
class RecommendationConfig:
    """Recommendation rule thresholds."""

    max_recommendations: int = 5
    on_page_threshold: float = 70.0
    on_page_high_priority: float = 50.0
    content_threshold: float = 60.0
    authority_threshold: float = 50.0
    technical_fallback_threshold: float = 60.0


@dataclass(frozen=True)
class ReportConfig:
    """Report compilation parameters."""

    industry_average: float = 68.0
    period_days: int = 7
    max_insights: int = 3
    quick_win_min_impact: float = 10.0
    cumulative_impact_insight: float = 30.0
    forecast_insight_confidence: float = 0.7
    default_confidence: float = 0.7


@dataclass(frozen=True)
class SchedulerConfig:
    """Job scheduler limits."""

    max_workers: int = 3
    tick_seconds: float = 1.0
    max_queue_size: int = 100
    collector_timeout_seconds: float = 30.0
    estimated_job_seconds: int = 300
    history_periods: int = 12


@dataclass(frozen=True)
class PipelineConfig:
    """Single configuration object injected into every pipeline component."""

    version: str = MODEL_VERSION
    weights: CategoryWeights = field(default_factory=CategoryWeights)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    trend: TrendConfig = field(default_factory=TrendConfig)
    forecast: ForecastConfig = field(default_factory=ForecastConfig)
    recommendations: RecommendationConfig = field(default_factory=RecommendationConfig)
    report: ReportConfig = field(default_factory=ReportConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)


def pipeline_config_from_settings() -> PipelineConfig:
    """Build a PipelineConfig whose scheduler limits come from the environment."""
    from api.config import get_settings

    settings = get_settings()
    return PipelineConfig(
        scheduler=SchedulerConfig(
            max_workers=settings.scheduler_max_workers,
            tick_seconds=settings.scheduler_tick_seconds,
            max_queue_size=settings.scheduler_max_queue_size,
            collector_timeout_seconds=settings.collector_timeout_seconds,
            estimated_job_seconds=settings.scheduler_estimated_job_seconds,
        )
    )
