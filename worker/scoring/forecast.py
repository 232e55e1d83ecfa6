"""Score forecast one month ahead."""

from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog

from api.config import FORECAST_BAND_BEST, FORECAST_BAND_WORST
from worker.config import ForecastConfig
from worker.scoring.trend import Trend, TrendDirection

logger = structlog.get_logger(__name__)

INSUFFICIENT_HISTORY_NOTE = "Historical data insufficient for accurate forecast"


@dataclass(frozen=True)
class Forecast:
    """Projected score with best/worst bounds."""

    predicted_score: int
    confidence: float
    timeframe: str
    best_case: float
    worst_case: float
    key_drivers: tuple[str, ...] = ()
    notes: tuple[str, ...] = ()
    has_enough_history: bool = True

    def to_dict(self) -> dict:
        return {
            "predicted_score": self.predicted_score,
            "confidence": self.confidence,
            "timeframe": self.timeframe,
            "best_case": round(self.best_case, 2),
            "worst_case": round(self.worst_case, 2),
            "key_drivers": list(self.key_drivers),
            "notes": list(self.notes),
            "has_enough_history": self.has_enough_history,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Forecast":
        return cls(
            predicted_score=int(data["predicted_score"]),
            confidence=float(data["confidence"]),
            timeframe=data["timeframe"],
            best_case=float(data["best_case"]),
            worst_case=float(data["worst_case"]),
            key_drivers=tuple(data.get("key_drivers", ())),
            notes=tuple(data.get("notes", ())),
            has_enough_history=bool(data.get("has_enough_history", True)),
        )


class ForecastCalculator:
    """Projects the overall score from trend velocity and recommendation impact."""

    def __init__(self, config: ForecastConfig | None = None):
        self.config = config or ForecastConfig()

    def calculate(
        self,
        current_score: float,
        trend: Trend,
        recommendations: Sequence = (),
        issue_count: int = 0,
    ) -> Forecast:
        """
        Forecast the score one timeframe ahead.

        Args:
            current_score: Overall score of the current period
            trend: Trend for the URL
            recommendations: Recommendations of the current report
            issue_count: Number of open issues

        Returns:
            Forecast; degrades to the current score when history is insufficient
        """
        cfg = self.config
        drivers = self._key_drivers(trend, recommendations)

        if not trend.has_enough_data:
            predicted = int(round(_clamp(current_score, 0, 100)))
            return Forecast(
                predicted_score=predicted,
                confidence=cfg.insufficient_history_confidence,
                timeframe=cfg.timeframe,
                best_case=min(100.0, predicted * FORECAST_BAND_BEST),
                worst_case=max(0.0, predicted * FORECAST_BAND_WORST),
                key_drivers=drivers,
                notes=(INSUFFICIENT_HISTORY_NOTE,),
                has_enough_history=False,
            )

        raw = (
            current_score
            + cfg.velocity_factor * trend.velocity
            + cfg.recommendation_multiplier * cfg.recommendation_impact
        )
        predicted = int(round(_clamp(raw, 0, 100)))

        confidence = _clamp(
            cfg.base_confidence
            + cfg.trend_confidence_factor * trend.confidence
            - cfg.issue_penalty * issue_count,
            cfg.min_confidence,
            cfg.max_confidence,
        )

        forecast = Forecast(
            predicted_score=predicted,
            confidence=round(confidence, 2),
            timeframe=cfg.timeframe,
            best_case=min(100.0, predicted * FORECAST_BAND_BEST),
            worst_case=max(0.0, predicted * FORECAST_BAND_WORST),
            key_drivers=drivers,
        )

        logger.debug(
            "forecast_calculated",
            current=current_score,
            predicted=predicted,
            confidence=forecast.confidence,
        )
        return forecast

    def _key_drivers(self, trend: Trend, recommendations: Sequence) -> tuple[str, ...]:
        drivers = []
        if trend.has_enough_data:
            if trend.trend_direction == TrendDirection.INCREASING:
                drivers.append("Positive score momentum")
            elif trend.trend_direction == TrendDirection.DECREASING:
                drivers.append("Declining score momentum")
        for rec in list(recommendations)[:2]:
            drivers.append(f"Implementation of: {rec.title}")
        return tuple(drivers)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
