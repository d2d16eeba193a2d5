"""
Evaluation metrics for regression and classification models.

Every metric treats missing or misaligned rows as an error rather than
silently dropping them.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import numpy as np
import pandas as pd
from sklearn.metrics import (
    accuracy_score,
    mean_absolute_error,
    mean_squared_error,
    r2_score,
    roc_auc_score,
)

from modelflow.utils.logging import get_logger

log = get_logger(__name__)


class Direction(str, Enum):
    """Whether smaller or larger metric values are better."""

    MINIMIZE = "minimize"
    MAXIMIZE = "maximize"


class MetricKind(str, Enum):
    """Which prediction column a metric consumes."""

    NUMERIC = "numeric"  # pred
    CLASS = "class"  # pred_class
    PROB = "prob"  # pred_<event>


@dataclass(frozen=True)
class Metric:
    """
    A named metric with its optimisation direction.

    Attributes:
        name: Metric name.
        func: Callable taking (truth, estimate) arrays.
        direction: Whether to minimize or maximize.
        kind: Prediction type the metric expects.
    """

    name: str
    func: Callable[[np.ndarray, np.ndarray], float]
    direction: Direction
    kind: MetricKind

    def __call__(self, truth: object, estimate: object) -> float:
        y_true, y_pred = check_aligned(truth, estimate)
        return float(self.func(y_true, y_pred))


def check_aligned(truth: object, estimate: object) -> tuple[np.ndarray, np.ndarray]:
    """
    Convert truth/estimate to arrays and verify they line up.

    Raises:
        ValueError: On length mismatch, empty input or any missing value.
    """
    y_true = np.asarray(truth).ravel()
    y_pred = np.asarray(estimate).ravel()

    if len(y_true) != len(y_pred):
        msg = f"truth has {len(y_true)} rows but estimate has {len(y_pred)}"
        raise ValueError(msg)
    if len(y_true) == 0:
        msg = "Cannot compute a metric on zero rows"
        raise ValueError(msg)

    n_missing_truth = int(pd.isna(y_true).sum())
    n_missing_pred = int(pd.isna(y_pred).sum())
    if n_missing_truth or n_missing_pred:
        msg = (
            f"Missing values in aligned rows: {n_missing_truth} in truth, "
            f"{n_missing_pred} in estimate"
        )
        raise ValueError(msg)
    return y_true, y_pred


def rmse(truth: object, estimate: object) -> float:
    """Root mean squared error: sqrt(mean((truth - estimate)^2))."""
    y_true, y_pred = check_aligned(truth, estimate)
    return float(np.sqrt(mean_squared_error(y_true.astype(float), y_pred.astype(float))))


def mae(truth: object, estimate: object) -> float:
    """Mean absolute error."""
    y_true, y_pred = check_aligned(truth, estimate)
    return float(mean_absolute_error(y_true.astype(float), y_pred.astype(float)))


def rsq(truth: object, estimate: object) -> float:
    """Squared Pearson correlation between truth and estimate."""
    y_true, y_pred = check_aligned(truth, estimate)
    if np.std(y_true) == 0 or np.std(y_pred) == 0:
        log.warning("Constant truth or estimate, rsq undefined")
        return float("nan")
    return float(np.corrcoef(y_true.astype(float), y_pred.astype(float))[0, 1] ** 2)


def rsq_trad(truth: object, estimate: object) -> float:
    """Traditional R² (1 - SSE/SST)."""
    y_true, y_pred = check_aligned(truth, estimate)
    return float(r2_score(y_true.astype(float), y_pred.astype(float)))


def accuracy(truth: object, estimate: object) -> float:
    """Share of correctly classified rows."""
    y_true, y_pred = check_aligned(truth, estimate)
    return float(accuracy_score(y_true.astype(str), y_pred.astype(str)))


def roc_auc(truth: object, estimate: object, event: object = True) -> float:
    """
    Area under the ROC curve.

    Args:
        truth: Observed classes.
        estimate: Predicted probability of ``event``.
        event: The class treated as positive.
    """
    y_true, y_pred = check_aligned(truth, estimate)
    positives = y_true == event
    if positives.all() or not positives.any():
        msg = f"roc_auc needs both '{event}' and other classes in truth"
        raise ValueError(msg)
    return float(roc_auc_score(positives, y_pred.astype(float)))


METRICS: dict[str, Metric] = {
    "rmse": Metric("rmse", rmse, Direction.MINIMIZE, MetricKind.NUMERIC),
    "mae": Metric("mae", mae, Direction.MINIMIZE, MetricKind.NUMERIC),
    "rsq": Metric("rsq", rsq, Direction.MAXIMIZE, MetricKind.NUMERIC),
    "rsq_trad": Metric("rsq_trad", rsq_trad, Direction.MAXIMIZE, MetricKind.NUMERIC),
    "accuracy": Metric("accuracy", accuracy, Direction.MAXIMIZE, MetricKind.CLASS),
    "roc_auc": Metric("roc_auc", roc_auc, Direction.MAXIMIZE, MetricKind.PROB),
}


def get_metric(name: str) -> Metric:
    """
    Look up a metric by name.

    Raises:
        KeyError: If the metric is unknown.
    """
    if name not in METRICS:
        available = ", ".join(METRICS)
        msg = f"Unknown metric '{name}'. Available: {available}"
        raise KeyError(msg)
    return METRICS[name]


def score(
    predictions: pd.DataFrame,
    truth: str,
    estimate: str,
    metric: str = "rmse",
    event: object | None = None,
) -> float:
    """
    Compute a metric from two columns of a prediction table.

    Args:
        predictions: Table holding both truth and estimate columns.
        truth: Column with observed values.
        estimate: Column with predictions (or event probabilities).
        metric: Metric name.
        event: Positive class for roc_auc; defaults to the suffix of a
            ``pred_<event>`` estimate column.

    Returns:
        Metric value.

    Raises:
        KeyError: If a column or the metric is unknown.
        ValueError: If any aligned row is missing.
    """
    missing = [col for col in (truth, estimate) if col not in predictions.columns]
    if missing:
        msg = f"Prediction table is missing columns: {missing}"
        raise KeyError(msg)

    spec = get_metric(metric)
    if spec.kind is MetricKind.PROB:
        if event is None:
            if not estimate.startswith("pred_"):
                msg = f"Cannot infer the event class from column '{estimate}'"
                raise ValueError(msg)
            event = estimate.removeprefix("pred_")
        y_true = predictions[truth].astype(str)
        return roc_auc(y_true, predictions[estimate], event=str(event))

    value = spec(predictions[truth], predictions[estimate])
    log.debug("Scored predictions", metric=metric, value=value, n=len(predictions))
    return value


@dataclass(frozen=True)
class RegressionMetrics:
    """
    Standard regression metrics.

    Attributes:
        rmse: Root Mean Squared Error
        rsq: Squared correlation
        mae: Mean Absolute Error
        n_samples: Number of samples
    """

    rmse: float
    rsq: float
    mae: float
    n_samples: int

    def to_dict(self) -> dict[str, float]:
        """Convert to dictionary."""
        return {
            "rmse": self.rmse,
            "rsq": self.rsq,
            "mae": self.mae,
            "n_samples": self.n_samples,
        }

    def __str__(self) -> str:
        return f"RMSE={self.rmse:.4f}, R²={self.rsq:.4f}, MAE={self.mae:.4f}"


def compute_metrics(truth: object, estimate: object) -> RegressionMetrics:
    """
    Compute the standard regression metrics.

    Raises:
        ValueError: If rows are missing or misaligned.
    """
    y_true, y_pred = check_aligned(truth, estimate)
    metrics = RegressionMetrics(
        rmse=rmse(y_true, y_pred),
        rsq=rsq(y_true, y_pred),
        mae=mae(y_true, y_pred),
        n_samples=len(y_true),
    )
    log.debug("Computed metrics", **metrics.to_dict())
    return metrics
