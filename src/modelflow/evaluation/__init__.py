"""
Evaluation of fitted models: metrics and held-out scoring.
"""

from modelflow.evaluation.holdout import LastFitResult, assess, last_fit
from modelflow.evaluation.metrics import (
    METRICS,
    Direction,
    RegressionMetrics,
    compute_metrics,
    get_metric,
    rmse,
    score,
)

__all__ = [
    "METRICS",
    "Direction",
    "LastFitResult",
    "RegressionMetrics",
    "assess",
    "compute_metrics",
    "get_metric",
    "last_fit",
    "rmse",
    "score",
]
