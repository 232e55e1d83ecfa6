"""Scoring package: category scores, issues, trends and forecasts."""

# Use explicit imports:
# from worker.scoring.engine import ScoringEngine, score_measurement
# from worker.scoring.trend import TrendAnalyzer, HistoricalPoint
# from worker.scoring.forecast import ForecastCalculator

__all__ = [
    # Engine
    "Category",
    "CategoryScore",
    "ScoringResult",
    "ScoringEngine",
    "score_measurement",
    # Issues
    "Issue",
    "IssueSeverity",
    "detect_issues",
    # Trend
    "HistoricalPoint",
    "Trend",
    "TrendDirection",
    "TrendAnalyzer",
    # Forecast
    "Forecast",
    "ForecastCalculator",
]
