"""
Model registry and family implementations.

Each (family, engine, mode) combination maps to a ModelFamily that knows how
to build its scikit-learn estimator, fit it and, where the family supports
it, compute interval estimates for the mean prediction.
"""

from abc import ABC
from typing import Any

import numpy as np
from scipy import stats
from sklearn.base import BaseEstimator
from sklearn.ensemble import RandomForestClassifier, RandomForestRegressor
from sklearn.linear_model import BayesianRidge, LinearRegression, LogisticRegression

from modelflow.modeling.spec import Mode, ModelSpec
from modelflow.utils.logging import get_logger

log = get_logger(__name__)


class ModelFamily(ABC):
    """
    Fit/interval capability shared by all model families.

    Attributes:
        name: Family name used in specifications.
        engine: Engine name within the family.
        mode: Regression or classification.
        estimator_class: scikit-learn estimator class.
        defaults: Default constructor arguments, overridden by spec params.
    """

    supports_intervals = False

    def __init__(
        self,
        name: str,
        engine: str,
        mode: Mode,
        estimator_class: type[BaseEstimator],
        defaults: dict[str, Any] | None = None,
    ) -> None:
        self.name = name
        self.engine = engine
        self.mode = mode
        self.estimator_class = estimator_class
        self.defaults = defaults or {}

    def build(self, spec: ModelSpec) -> BaseEstimator:
        """
        Create an unfitted estimator for a resolved specification.

        Raises:
            ValueError: If the specification names unknown parameters.
        """
        spec.check_resolved()
        valid = set(self.estimator_class().get_params())
        unknown = [name for name in spec.params if name not in valid]
        if unknown:
            msg = (
                f"Unknown parameters {unknown} for {self.name} "
                f"(engine={self.engine}). Valid: {sorted(valid)}"
            )
            raise ValueError(msg)
        params = {**self.defaults, **spec.params}
        log.debug("Creating estimator", family=self.name, params=params)
        return self.estimator_class(**params)

    def fit(
        self,
        spec: ModelSpec,
        X: np.ndarray,
        y: np.ndarray,
    ) -> tuple[BaseEstimator, dict[str, Any]]:
        """
        Fit an estimator.

        Returns:
            Tuple of (fitted estimator, extra statistics needed for
            interval estimation).
        """
        estimator = self.build(spec)
        estimator.fit(X, y)
        return estimator, {}

    def predict_interval(
        self,
        estimator: BaseEstimator,
        extras: dict[str, Any],
        X: np.ndarray,
        level: float,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Lower and upper bounds of the mean prediction at ``level``."""
        msg = f"Interval predictions are not available for {self.name} ({self.engine})"
        raise ValueError(msg)


class OLSFamily(ModelFamily):
    """Ordinary least squares with t-based confidence intervals of the mean."""

    supports_intervals = True

    def fit(
        self,
        spec: ModelSpec,
        X: np.ndarray,
        y: np.ndarray,
    ) -> tuple[BaseEstimator, dict[str, Any]]:
        estimator = self.build(spec)
        estimator.fit(X, y)

        design = self._with_intercept(estimator, X)
        residuals = y - estimator.predict(X)
        rank = np.linalg.matrix_rank(design)
        df_resid = len(y) - rank
        sigma2 = float(residuals @ residuals / df_resid) if df_resid > 0 else np.nan
        extras = {
            "xtx_inv": np.linalg.pinv(design.T @ design),
            "sigma2": sigma2,
            "df_resid": int(df_resid),
        }
        log.debug("OLS fit statistics", df_resid=df_resid, sigma2=sigma2)
        return estimator, extras

    def predict_interval(
        self,
        estimator: BaseEstimator,
        extras: dict[str, Any],
        X: np.ndarray,
        level: float,
    ) -> tuple[np.ndarray, np.ndarray]:
        if extras["df_resid"] <= 0:
            msg = "Confidence intervals need more training rows than coefficients"
            raise ValueError(msg)
        design = self._with_intercept(estimator, X)
        leverage = np.einsum("ij,jk,ik->i", design, extras["xtx_inv"], design)
        se = np.sqrt(extras["sigma2"] * leverage)
        quantile = stats.t.ppf((1 + level) / 2, extras["df_resid"])
        mean = estimator.predict(X)
        return mean - quantile * se, mean + quantile * se

    @staticmethod
    def _with_intercept(estimator: BaseEstimator, X: np.ndarray) -> np.ndarray:
        if getattr(estimator, "fit_intercept", True):
            return np.column_stack([np.ones(len(X)), X])
        return X


class BayesFamily(ModelFamily):
    """
    Bayesian ridge regression with normal posterior intervals of the mean.

    The posterior variance of the mean is the predictive variance reported by
    the estimator minus its noise variance (1 / alpha_).
    """

    supports_intervals = True

    def predict_interval(
        self,
        estimator: BaseEstimator,
        extras: dict[str, Any],
        X: np.ndarray,
        level: float,
    ) -> tuple[np.ndarray, np.ndarray]:
        mean, std = estimator.predict(X, return_std=True)
        mean_var = np.clip(std**2 - 1.0 / estimator.alpha_, 0.0, None)
        quantile = stats.norm.ppf((1 + level) / 2)
        half_width = quantile * np.sqrt(mean_var)
        return mean - half_width, mean + half_width


class ForestFamily(ModelFamily):
    """Random forest; point predictions only."""


class LogisticFamily(ModelFamily):
    """Logistic regression classifier."""


# Model configurations: (family, engine, mode) -> implementation
MODEL_REGISTRY: dict[tuple[str, str, Mode], ModelFamily] = {}


def register_family(family: ModelFamily) -> None:
    """Register a family implementation under its (family, engine, mode) key."""
    key = (family.name, family.engine, family.mode)
    if key in MODEL_REGISTRY:
        log.warning("Overwriting registered model", key=key)
    MODEL_REGISTRY[key] = family


register_family(OLSFamily("linear_reg", "ols", Mode.REGRESSION, LinearRegression))
register_family(
    BayesFamily(
        "linear_reg",
        "bayes",
        Mode.REGRESSION,
        BayesianRidge,
        {"max_iter": 300, "compute_score": True},
    )
)
register_family(
    ForestFamily(
        "rand_forest",
        "sklearn",
        Mode.REGRESSION,
        RandomForestRegressor,
        {"n_estimators": 500, "n_jobs": -1},
    )
)
register_family(
    ForestFamily(
        "rand_forest",
        "sklearn",
        Mode.CLASSIFICATION,
        RandomForestClassifier,
        {"n_estimators": 500, "n_jobs": -1},
    )
)
register_family(
    LogisticFamily(
        "logistic_reg",
        "sklearn",
        Mode.CLASSIFICATION,
        LogisticRegression,
        {"max_iter": 1000},
    )
)


def get_family(spec: ModelSpec) -> ModelFamily:
    """
    Look up the family implementation for a specification.

    Raises:
        KeyError: If the family/engine/mode combination is not registered.
    """
    key = (spec.family, spec.engine, spec.mode)
    if key not in MODEL_REGISTRY:
        available = ", ".join(list_models())
        msg = (
            f"Unknown model '{spec.family}' with engine '{spec.engine}' "
            f"({spec.mode.value}). Available: {available}"
        )
        raise KeyError(msg)
    return MODEL_REGISTRY[key]


def list_models() -> list[str]:
    """List all registered models as 'family/engine (mode)'."""
    return [f"{name}/{engine} ({mode.value})" for name, engine, mode in MODEL_REGISTRY]
