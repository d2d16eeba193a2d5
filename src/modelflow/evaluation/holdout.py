"""
Held-out evaluation of fitted models.

Connects predictions to metrics: picks the prediction type a metric needs,
predicts on held-out rows and scores against the outcome column.
"""

from dataclasses import dataclass, field

import pandas as pd

from modelflow.evaluation.metrics import MetricKind, get_metric, score
from modelflow.modeling.inference import PredictionKind, augment, predict
from modelflow.modeling.recipe import RecipeStep
from modelflow.modeling.spec import Formula, Mode, ModelSpec
from modelflow.modeling.split import DataSplit
from modelflow.modeling.training import FittedModel, fit
from modelflow.utils.logging import get_logger

log = get_logger(__name__)


def assess(
    fitted: FittedModel,
    data: pd.DataFrame,
    metric: str = "rmse",
    event: object | None = None,
) -> float:
    """
    Score a fitted model on held-out rows.

    Args:
        fitted: Fitted model.
        data: Held-out rows including the outcome column.
        metric: Metric name.
        event: Positive class for probability metrics; defaults to the
            first outcome level.

    Returns:
        Metric value.
    """
    spec = get_metric(metric)
    outcome = fitted.formula.outcome
    if outcome not in data.columns:
        msg = f"Held-out data is missing outcome column '{outcome}'"
        raise KeyError(msg)

    if spec.kind is MetricKind.NUMERIC:
        preds = predict(fitted, data, PredictionKind.POINT)
        estimate = "pred"
    elif spec.kind is MetricKind.CLASS:
        preds = predict(fitted, data, PredictionKind.CLASS)
        estimate = "pred_class"
    else:
        preds = predict(fitted, data, PredictionKind.PROB)
        if event is None:
            event = fitted.outcome_levels[0]
        estimate = f"pred_{event}"

    table = preds.assign(**{outcome: data[outcome]})
    return score(table, outcome, estimate, metric, event=event)


@dataclass
class LastFitResult:
    """
    Outcome of fitting on the training rows and scoring on the test rows.

    Attributes:
        fitted: Model fitted on the training portion.
        metrics: Metric name -> value on the test portion.
        predictions: Test rows with predictions appended.
    """

    fitted: FittedModel
    metrics: dict[str, float] = field(default_factory=dict)
    predictions: pd.DataFrame | None = None


def last_fit(
    spec: ModelSpec,
    formula: Formula,
    split: DataSplit,
    steps: list[RecipeStep] | None = None,
    metrics: list[str] | None = None,
) -> LastFitResult:
    """
    Fit on ``split.training()`` and evaluate on ``split.testing()``.

    Args:
        spec: Resolved model specification.
        formula: Column roles.
        split: Train/test split.
        steps: Optional recipe steps.
        metrics: Metric names (default: rmse and rsq for regression,
            accuracy and roc_auc for classification).

    Returns:
        LastFitResult.
    """
    if metrics is None:
        metrics = (
            ["rmse", "rsq"]
            if spec.mode is Mode.REGRESSION
            else ["accuracy", "roc_auc"]
        )

    fitted = fit(spec, formula, split.training(), steps)
    test = split.testing()
    values = {name: assess(fitted, test, name) for name in metrics}

    log.info("Last fit complete", model=str(spec), **values)
    return LastFitResult(
        fitted=fitted,
        metrics=values,
        predictions=augment(fitted, test),
    )
