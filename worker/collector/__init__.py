"""Metric collection package.

Use explicit imports:
    from worker.collector.models import RawMeasurement
    from worker.collector.providers import MetricCollector, get_collector
"""

__all__ = [
    # Models
    "RawMeasurement",
    "HtmlAnalysis",
    "LighthouseScores",
    "CoreWebVitals",
    "BacklinkProfile",
    "CompetitorBenchmark",
    # Providers
    "MetricCollector",
    "CollectorConfig",
    "HttpMetricCollector",
    "FixtureMetricCollector",
    "get_collector",
]
