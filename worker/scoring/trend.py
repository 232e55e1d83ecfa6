"""Trend analysis over a URL's historical score series.

Computes week-over-week deltas, a least-squares slope of recent scores,
direction classification, a naive monthly velocity and a confidence value
that drops as the recent scores get noisier.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum

import structlog

from worker.config import TrendConfig

logger = structlog.get_logger(__name__)


class TrendDirection(StrEnum):
    """Direction of a metric over recent periods."""

    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


@dataclass(frozen=True)
class HistoricalPoint:
    """One period's summary for a tracked URL."""

    date: date
    overall_score: float
    issue_count: int = 0
    fix_count: int = 0
    traffic_estimate: float = 0.0

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "overall_score": self.overall_score,
            "issue_count": self.issue_count,
            "fix_count": self.fix_count,
            "traffic_estimate": self.traffic_estimate,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HistoricalPoint":
        return cls(
            date=date.fromisoformat(data["date"]),
            overall_score=float(data["overall_score"]),
            issue_count=int(data.get("issue_count", 0)),
            fix_count=int(data.get("fix_count", 0)),
            traffic_estimate=float(data.get("traffic_estimate", 0.0)),
        )


@dataclass(frozen=True)
class WeeklyChange:
    """Latest minus previous value, per metric."""

    score: float = 0.0
    issues: float = 0.0
    fixes: float = 0.0
    traffic: float = 0.0

    def to_dict(self) -> dict:
        return {
            "score": round(self.score, 2),
            "issues": round(self.issues, 2),
            "fixes": round(self.fixes, 2),
            "traffic": round(self.traffic, 2),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WeeklyChange":
        return cls(**{k: float(data.get(k, 0.0)) for k in ("score", "issues", "fixes", "traffic")})


@dataclass(frozen=True)
class Trend:
    """Derived trend; only ever persisted inside a Report."""

    has_enough_data: bool
    weekly_change: WeeklyChange = field(default_factory=WeeklyChange)
    monthly_slope: float = 0.0
    trend_direction: TrendDirection = TrendDirection.STABLE
    issue_direction: TrendDirection = TrendDirection.STABLE
    fix_direction: TrendDirection = TrendDirection.STABLE
    velocity: float = 0.0
    acceleration: float = 0.0
    confidence: float = 0.0
    data_points: int = 0

    @classmethod
    def insufficient(cls, data_points: int = 0) -> "Trend":
        """Zero-valued trend for series shorter than the minimum."""
        return cls(has_enough_data=False, data_points=data_points)

    def to_dict(self) -> dict:
        return {
            "has_enough_data": self.has_enough_data,
            "weekly_change": self.weekly_change.to_dict(),
            "monthly_slope": round(self.monthly_slope, 4),
            "trend_direction": self.trend_direction.value,
            "issue_direction": self.issue_direction.value,
            "fix_direction": self.fix_direction.value,
            "velocity": round(self.velocity, 2),
            "acceleration": round(self.acceleration, 2),
            "confidence": round(self.confidence, 2),
            "data_points": self.data_points,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Trend":
        return cls(
            has_enough_data=bool(data["has_enough_data"]),
            weekly_change=WeeklyChange.from_dict(data.get("weekly_change", {})),
            monthly_slope=float(data.get("monthly_slope", 0.0)),
            trend_direction=TrendDirection(data.get("trend_direction", "stable")),
            issue_direction=TrendDirection(data.get("issue_direction", "stable")),
            fix_direction=TrendDirection(data.get("fix_direction", "stable")),
            velocity=float(data.get("velocity", 0.0)),
            acceleration=float(data.get("acceleration", 0.0)),
            confidence=float(data.get("confidence", 0.0)),
            data_points=int(data.get("data_points", 0)),
        )


def linear_slope(values: Sequence[float]) -> float:
    """Ordinary least-squares slope of values against their index."""
    n = len(values)
    if n < 2:
        return 0.0
    sum_x = sum(range(n))
    sum_y = sum(values)
    sum_xy = sum(i * y for i, y in enumerate(values))
    sum_x2 = sum(i * i for i in range(n))
    denominator = n * sum_x2 - sum_x * sum_x
    if denominator == 0:
        return 0.0
    return (n * sum_xy - sum_x * sum_y) / denominator


def variance(values: Sequence[float]) -> float:
    """Population variance."""
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    return sum((v - mean) ** 2 for v in values) / len(values)


def classify_direction(latest: float, previous: float, stable_percent: float) -> TrendDirection:
    """Classify a change by its percent of the previous value."""
    if previous == 0:
        if latest == 0:
            return TrendDirection.STABLE
        return TrendDirection.INCREASING if latest > 0 else TrendDirection.DECREASING

    percent_change = (latest - previous) / abs(previous) * 100
    if abs(percent_change) < stable_percent:
        return TrendDirection.STABLE
    return TrendDirection.INCREASING if percent_change > 0 else TrendDirection.DECREASING


class TrendAnalyzer:
    """Derives a Trend from an ordered HistoricalPoint series."""

    def __init__(self, config: TrendConfig | None = None):
        self.config = config or TrendConfig()

    def analyze(
        self,
        history: Sequence[HistoricalPoint],
        current: HistoricalPoint | None = None,
    ) -> Trend:
        """
        Analyze a series.

        Args:
            history: Stored points, oldest first
            current: The just-computed point, appended to the series when given

        Returns:
            Trend; `has_enough_data` is False when the series, including
            `current`, has fewer than `min_points` entries
        """
        cfg = self.config
        series = list(history)
        if current is not None:
            series.append(current)

        if len(series) < cfg.min_points:
            logger.debug("trend_insufficient_history", points=len(series))
            return Trend.insufficient(data_points=len(series))

        latest, previous = series[-1], series[-2]
        weekly_change = WeeklyChange(
            score=latest.overall_score - previous.overall_score,
            issues=latest.issue_count - previous.issue_count,
            fixes=latest.fix_count - previous.fix_count,
            traffic=latest.traffic_estimate - previous.traffic_estimate,
        )

        window = series[-cfg.window :]
        scores = [p.overall_score for p in window]

        acceleration = 0.0
        if len(series) >= 3:
            previous_change = previous.overall_score - series[-3].overall_score
            acceleration = (weekly_change.score - previous_change) / 2

        if len(series) < cfg.window:
            confidence = cfg.min_confidence
        else:
            raw = (1 - variance(scores) / 100) * cfg.confidence_scale
            confidence = max(cfg.min_confidence, min(cfg.max_confidence, raw))

        trend = Trend(
            has_enough_data=True,
            weekly_change=weekly_change,
            monthly_slope=linear_slope(scores),
            trend_direction=classify_direction(
                latest.overall_score, previous.overall_score, cfg.stable_percent
            ),
            issue_direction=classify_direction(
                latest.issue_count, previous.issue_count, cfg.stable_percent
            ),
            fix_direction=classify_direction(
                latest.fix_count, previous.fix_count, cfg.stable_percent
            ),
            velocity=weekly_change.score * cfg.weeks_per_month,
            acceleration=acceleration,
            confidence=confidence,
            data_points=len(series),
        )

        logger.debug(
            "trend_analyzed",
            points=len(series),
            slope=trend.monthly_slope,
            direction=trend.trend_direction.value,
        )
        return trend
