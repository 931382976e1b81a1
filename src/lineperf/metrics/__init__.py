"""Metrics package.

Pure formulas, the per-record aggregation engine and the scored report
queries built on top of them.
"""

from lineperf.metrics.engine import (
    PerformanceMetrics,
    ScoreBreakdown,
    ScoredPerformance,
    aggregate,
    max_observed_rate,
    score,
)

__all__ = [
    "PerformanceMetrics",
    "ScoreBreakdown",
    "ScoredPerformance",
    "aggregate",
    "max_observed_rate",
    "score",
]
