"""
Sea urchin growth by feeding regime.

Fits ``width ~ initial_volume * food_regime`` with ordinary least squares
and with the Bayesian engine, then predicts mean width with confidence
intervals for a 20 ml urchin under each regime.
"""

from dataclasses import dataclass

import pandas as pd

from modelflow.ingestion.datasets import load_urchins
from modelflow.modeling.inference import predict
from modelflow.modeling.spec import Formula, linear_reg
from modelflow.modeling.training import FittedModel, fit
from modelflow.schemas.datasets import FOOD_REGIMES
from modelflow.utils.logging import get_logger

log = get_logger(__name__)

URCHINS_FORMULA = Formula(
    outcome="width",
    predictors=("initial_volume", "food_regime"),
    interactions=(("initial_volume", "food_regime"),),
)


@dataclass
class UrchinsResult:
    """Both fits and their predictions for the new points."""

    ols: FittedModel
    bayes: FittedModel
    predictions: pd.DataFrame


def new_points(initial_volume: float = 20.0) -> pd.DataFrame:
    """One row per feeding regime at a fixed initial volume."""
    return pd.DataFrame(
        {
            "initial_volume": [initial_volume] * len(FOOD_REGIMES),
            "food_regime": pd.Categorical(FOOD_REGIMES, categories=FOOD_REGIMES),
        }
    )


def predict_points(
    fitted: FittedModel,
    points: pd.DataFrame,
    level: float = 0.95,
) -> pd.DataFrame:
    """Points with mean prediction and confidence bounds appended."""
    return pd.concat(
        [
            points,
            predict(fitted, points, "point"),
            predict(fitted, points, "interval", level=level),
        ],
        axis=1,
    )


def run_urchins(
    data: pd.DataFrame | None = None,
    level: float = 0.95,
) -> UrchinsResult:
    """
    Run the urchins analysis.

    Args:
        data: Urchins table; downloaded if omitted.
        level: Confidence level of the intervals.

    Returns:
        UrchinsResult with predictions from both engines stacked, tagged by
        an ``engine`` column.
    """
    if data is None:
        data = load_urchins()

    ols = fit(linear_reg("ols"), URCHINS_FORMULA, data)
    bayes = fit(linear_reg("bayes"), URCHINS_FORMULA, data)

    points = new_points()
    predictions = pd.concat(
        [
            predict_points(model, points, level).assign(engine=model.spec.engine)
            for model in (ols, bayes)
        ],
        ignore_index=True,
    )
    log.info("Urchins analysis complete", n_rows=len(data))
    return UrchinsResult(ols=ols, bayes=bayes, predictions=predictions)
