"""Performance Analytics Module."""

from folioscope.analytics.performance import (
    BenchmarkFigures,
    MetricComparison,
    PerformanceAnalyzer,
    PerformanceMetrics,
)

__all__ = [
    "BenchmarkFigures",
    "MetricComparison",
    "PerformanceAnalyzer",
    "PerformanceMetrics",
]
