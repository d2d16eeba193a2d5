"""
Prediction on new data.

Predictions are returned as DataFrames aligned row-for-row (same index)
with the input data.
"""

from enum import Enum

import pandas as pd

from modelflow.modeling.recipe import as_float_array
from modelflow.modeling.spec import Mode
from modelflow.modeling.training import FittedModel
from modelflow.schemas.output import (
    ClassPredictionSchema,
    IntervalPredictionSchema,
    PointPredictionSchema,
)
from modelflow.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_LEVEL = 0.95


class PredictionKind(str, Enum):
    """Type of prediction to produce."""

    POINT = "point"
    INTERVAL = "interval"
    CLASS = "class"
    PROB = "prob"


def predict(
    fitted: FittedModel,
    new_data: pd.DataFrame,
    kind: str | PredictionKind = PredictionKind.POINT,
    level: float = DEFAULT_LEVEL,
) -> pd.DataFrame:
    """
    Predict with a fitted model.

    Args:
        fitted: Fitted model.
        new_data: Rows to predict; must contain every predictor.
        kind: 'point' (pred), 'interval' (pred_lower/pred_upper of the
            mean), 'class' (pred_class) or 'prob' (pred_<level> columns).
        level: Confidence level for interval predictions.

    Returns:
        DataFrame indexed like ``new_data``.

    Raises:
        ValueError: If the kind does not apply to the model's mode or family.
        KeyError: If predictors are missing.
    """
    kind = PredictionKind(kind)
    if not 0 < level < 1:
        msg = f"level must be in (0, 1), got {level}"
        raise ValueError(msg)

    X = as_float_array(fitted.recipe.bake(new_data))
    estimator = fitted.estimator
    mode = fitted.spec.mode

    if kind in (PredictionKind.POINT, PredictionKind.INTERVAL):
        if mode is not Mode.REGRESSION:
            msg = f"'{kind.value}' predictions need a regression model; use 'class' or 'prob'"
            raise ValueError(msg)

    if kind is PredictionKind.POINT:
        result = pd.DataFrame({"pred": estimator.predict(X)}, index=new_data.index)
        return PointPredictionSchema.validate(result)

    if kind is PredictionKind.INTERVAL:
        lower, upper = fitted.family.predict_interval(
            estimator, fitted.extras, X, level
        )
        result = pd.DataFrame(
            {"pred_lower": lower, "pred_upper": upper}, index=new_data.index
        )
        return IntervalPredictionSchema.validate(result)

    if mode is not Mode.CLASSIFICATION:
        msg = f"'{kind.value}' predictions need a classification model"
        raise ValueError(msg)

    if kind is PredictionKind.CLASS:
        result = pd.DataFrame(
            {
                "pred_class": pd.Categorical(
                    estimator.predict(X), categories=list(fitted.outcome_levels)
                )
            },
            index=new_data.index,
        )
        return ClassPredictionSchema.validate(result)

    probs = estimator.predict_proba(X)
    return pd.DataFrame(
        {
            f"pred_{level_name}": probs[:, i]
            for i, level_name in enumerate(fitted.outcome_levels)
        },
        index=new_data.index,
    )


def augment(
    fitted: FittedModel,
    data: pd.DataFrame,
    level: float | None = None,
) -> pd.DataFrame:
    """
    Append predictions to the input columns.

    Regression models add ``pred`` (and interval bounds when ``level`` is
    given); classification models add ``pred_class`` and probabilities.
    """
    parts = [data]
    if fitted.spec.mode is Mode.REGRESSION:
        parts.append(predict(fitted, data, PredictionKind.POINT))
        if level is not None:
            parts.append(predict(fitted, data, PredictionKind.INTERVAL, level=level))
    else:
        parts.append(predict(fitted, data, PredictionKind.CLASS))
        parts.append(predict(fitted, data, PredictionKind.PROB))

    result = pd.concat(parts, axis=1)
    log.debug("Augmented data", rows=len(result), columns=list(result.columns))
    return result
