"""
Model fitting.

Validates a specification, preps the recipe on training data, builds the
design matrix and delegates parameter estimation to the registered
scikit-learn estimator.
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import joblib
import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator

from modelflow.modeling.models import ModelFamily, get_family
from modelflow.modeling.recipe import Recipe, RecipeStep, as_float_array
from modelflow.modeling.spec import Formula, Mode, ModelSpec
from modelflow.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class FittedModel:
    """
    A specification bound to parameters estimated on one training set.

    Attributes:
        spec: The resolved model specification.
        formula: Column roles used for fitting.
        recipe: Prepped recipe producing the design matrix.
        estimator: Fitted scikit-learn estimator.
        extras: Family-specific fit statistics (e.g. OLS covariance).
        outcome_levels: Class labels for classification, in estimator order.
        n_train: Number of training rows.
        training_time_s: Wall-clock fitting time.
    """

    spec: ModelSpec
    formula: Formula
    recipe: Recipe
    estimator: BaseEstimator
    extras: dict[str, Any] = field(default_factory=dict)
    outcome_levels: tuple[Any, ...] = ()
    n_train: int = 0
    training_time_s: float = 0.0

    @property
    def family(self) -> ModelFamily:
        """Family implementation of this model."""
        return get_family(self.spec)

    @property
    def design_columns(self) -> list[str]:
        """Names of the design matrix columns."""
        return self.recipe.design_columns

    def tidy(self) -> pd.DataFrame:
        """
        Coefficient or importance table.

        Linear models report term/estimate (intercept first); tree models
        report term/importance.
        """
        estimator = self.estimator
        if hasattr(estimator, "coef_"):
            coef = np.atleast_2d(estimator.coef_)[0]
            terms = ["(Intercept)", *self.design_columns]
            intercept = np.atleast_1d(getattr(estimator, "intercept_", 0.0))[0]
            return pd.DataFrame(
                {"term": terms, "estimate": [float(intercept), *coef.tolist()]}
            )
        if hasattr(estimator, "feature_importances_"):
            return pd.DataFrame(
                {
                    "term": self.design_columns,
                    "importance": estimator.feature_importances_,
                }
            ).sort_values("importance", ascending=False, ignore_index=True)
        msg = f"No coefficient summary for {self.spec.family}"
        raise ValueError(msg)

    def save(self, path: Path) -> Path:
        """Persist the fitted model with joblib."""
        path.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(self, path)
        log.info("Saved model", path=str(path))
        return path

    @staticmethod
    def load(path: Path) -> "FittedModel":
        """Load a model saved with save()."""
        if not path.exists():
            msg = f"Model file not found: {path}"
            raise FileNotFoundError(msg)
        model = joblib.load(path)
        if not isinstance(model, FittedModel):
            msg = f"{path} does not contain a FittedModel"
            raise TypeError(msg)
        return model


def fit(
    spec: ModelSpec,
    formula: Formula,
    data: pd.DataFrame,
    steps: list[RecipeStep] | None = None,
) -> FittedModel:
    """
    Fit a model specification on training data.

    Args:
        spec: Model specification; every tune() marker must be resolved.
        formula: Outcome and predictor roles.
        data: Training rows.
        steps: Optional recipe steps applied before fitting.

    Returns:
        FittedModel.

    Raises:
        ValueError: If parameters are still marked for tuning, the outcome
            has missing values, or the outcome type does not fit the mode.
        KeyError: If formula columns or the model family are unknown.
    """
    spec.check_resolved()
    family = get_family(spec)

    missing = [col for col in formula.required_columns if col not in data.columns]
    if missing:
        msg = f"Training data is missing columns: {missing}"
        raise KeyError(msg)

    outcome = data[formula.outcome]
    if outcome.isna().any():
        msg = f"Outcome '{formula.outcome}' has {int(outcome.isna().sum())} missing values"
        raise ValueError(msg)

    start = time.perf_counter()
    recipe = Recipe(formula, steps).prep(data)
    X = as_float_array(recipe.bake(data))

    outcome_levels: tuple[Any, ...] = ()
    if spec.mode is Mode.REGRESSION:
        if not pd.api.types.is_numeric_dtype(outcome):
            msg = f"Regression outcome '{formula.outcome}' must be numeric"
            raise ValueError(msg)
        y = outcome.to_numpy(dtype=float)
    else:
        y = outcome.astype(object).to_numpy()

    estimator, extras = family.fit(spec, X, y)
    if spec.mode is Mode.CLASSIFICATION:
        outcome_levels = tuple(estimator.classes_.tolist())

    elapsed = time.perf_counter() - start
    log.info(
        "Fitted model",
        model=str(spec),
        formula=str(formula),
        n_rows=len(data),
        n_design_columns=X.shape[1],
        training_time_s=round(elapsed, 3),
    )

    return FittedModel(
        spec=spec,
        formula=formula,
        recipe=recipe,
        estimator=estimator,
        extras=extras,
        outcome_levels=outcome_levels,
        n_train=len(data),
        training_time_s=elapsed,
    )
