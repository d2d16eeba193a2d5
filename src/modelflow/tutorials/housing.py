"""
California housing prices.

The median house value is modelled on a log10 scale with a random forest
whose split parameters are tuned by grid search over stratified
cross-validation folds of the training set.
"""

from dataclasses import dataclass
from typing import Any

import pandas as pd

from modelflow.evaluation.holdout import LastFitResult, last_fit
from modelflow.features.pipeline import TableTransformer
from modelflow.features.rules import LogTransform
from modelflow.ingestion.datasets import HOUSING_OUTCOME, load_housing
from modelflow.modeling.spec import Formula, rand_forest, tune
from modelflow.modeling.split import initial_split, vfold_cv
from modelflow.tuning.grid import expand_grid
from modelflow.tuning.search import TuningResult, finalize_model, select_best, tune_grid
from modelflow.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_GRID: dict[str, list[Any]] = {
    "max_features": [0.33, 0.66, 1.0],
    "min_samples_leaf": [2, 10, 40],
}


@dataclass
class HousingResult:
    """Grid search, selected parameters and the final test-set fit."""

    tuning: TuningResult
    best_params: dict[str, Any]
    final: LastFitResult


def run_housing(
    data: pd.DataFrame | None = None,
    *,
    grid: dict[str, list[Any]] | None = None,
    folds: int = 5,
    n_estimators: int = 100,
    seed: int = 123,
    n_jobs: int = 1,
) -> HousingResult:
    """
    Run the housing analysis.

    Args:
        data: Housing table with a ``MedHouseVal`` column; fetched if omitted.
        grid: Candidate values for ``max_features`` and ``min_samples_leaf``.
        folds: Cross-validation folds.
        n_estimators: Trees per forest.
        seed: Seed for the split, the folds and the forests.
        n_jobs: Parallel candidate evaluations.

    Returns:
        HousingResult.
    """
    if data is None:
        data = load_housing()

    data = TableTransformer([LogTransform(HOUSING_OUTCOME, base=10)]).apply(data)
    formula = Formula.all_predictors(list(data.columns), HOUSING_OUTCOME)

    split = initial_split(data, prop=0.75, seed=seed, strata=HOUSING_OUTCOME)
    train = split.training()
    resamples = vfold_cv(train, v=folds, seed=seed, strata=HOUSING_OUTCOME)

    spec = rand_forest(
        "regression",
        n_estimators=n_estimators,
        random_state=seed,
        max_features=tune(),
        min_samples_leaf=tune(),
    )
    tuning = tune_grid(
        spec,
        formula,
        train,
        resamples,
        expand_grid(grid or DEFAULT_GRID),
        metrics=["rmse", "rsq"],
        n_jobs=n_jobs,
    )
    best = select_best(tuning, "rmse")
    final = last_fit(finalize_model(spec, best), formula, split)

    log.info("Housing analysis complete", best=best, **final.metrics)
    return HousingResult(tuning=tuning, best_params=best, final=final)
