"""
Model and formula specifications.

A model specification declares what to fit (family, mode, engine and
hyperparameters) without touching any data. A formula declares which
columns play which role. Both are immutable; modifying methods return
new instances.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from modelflow.utils.logging import get_logger

log = get_logger(__name__)


class Mode(str, Enum):
    """Prediction mode of a model specification."""

    REGRESSION = "regression"
    CLASSIFICATION = "classification"


class Tune:
    """Placeholder for a hyperparameter whose value is chosen by tuning."""

    _instance: "Tune | None" = None

    def __new__(cls) -> "Tune":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "tune()"

    def __reduce__(self) -> tuple[Any, ...]:
        return (Tune, ())


def tune() -> Tune:
    """Mark a hyperparameter as 'to be tuned'."""
    return Tune()


def is_tune(value: Any) -> bool:
    """Whether a parameter value is the tuning marker."""
    return isinstance(value, Tune)


@dataclass(frozen=True)
class ModelSpec:
    """
    Declarative model specification.

    Attributes:
        family: Model family (linear_reg, logistic_reg, rand_forest).
        mode: Regression or classification.
        engine: Computational engine within the family.
        params: Hyperparameter name -> fixed value or tune() marker.
    """

    family: str
    mode: Mode
    engine: str
    params: Mapping[str, Any] = field(default_factory=dict)

    def set_args(self, **params: Any) -> "ModelSpec":
        """Return a copy with the given hyperparameters set or replaced."""
        return replace(self, params={**self.params, **params})

    def set_engine(self, engine: str, **params: Any) -> "ModelSpec":
        """Return a copy using another engine, with engine-specific arguments."""
        return replace(self, engine=engine, params={**self.params, **params})

    def tunable(self) -> list[str]:
        """Names of hyperparameters still marked for tuning, in declared order."""
        return [name for name, value in self.params.items() if is_tune(value)]

    def finalize(self, values: Mapping[str, Any]) -> "ModelSpec":
        """
        Resolve tuning markers with concrete values.

        Args:
            values: Parameter name -> value. Names that are not part of the
                specification are rejected.

        Returns:
            New specification with the markers replaced.

        Raises:
            ValueError: If a value is given for an unknown parameter.
        """
        unknown = [name for name in values if name not in self.params]
        if unknown:
            msg = (
                f"Cannot finalize unknown parameters {unknown} for "
                f"{self.family}; known: {list(self.params)}"
            )
            raise ValueError(msg)
        return replace(self, params={**self.params, **dict(values)})

    def check_resolved(self) -> None:
        """
        Ensure no hyperparameter is still marked for tuning.

        Raises:
            ValueError: If any tune() marker remains.
        """
        pending = self.tunable()
        if pending:
            msg = (
                f"Parameters {pending} of {self.family} are marked for tuning; "
                "finalize the specification before fitting"
            )
            raise ValueError(msg)

    def __str__(self) -> str:
        args = ", ".join(f"{k}={v!r}" for k, v in self.params.items())
        return f"{self.family}({args}) [{self.mode.value}, engine={self.engine}]"


def linear_reg(engine: str = "ols", **params: Any) -> ModelSpec:
    """
    Linear regression specification.

    Engines:
        ols: ordinary least squares.
        bayes: Bayesian linear regression with Gaussian priors.
    """
    return ModelSpec("linear_reg", Mode.REGRESSION, engine, dict(params))


def logistic_reg(engine: str = "sklearn", **params: Any) -> ModelSpec:
    """Logistic regression specification (classification only)."""
    return ModelSpec("logistic_reg", Mode.CLASSIFICATION, engine, dict(params))


def rand_forest(
    mode: str | Mode = Mode.REGRESSION,
    engine: str = "sklearn",
    **params: Any,
) -> ModelSpec:
    """Random forest specification for regression or classification."""
    return ModelSpec("rand_forest", Mode(mode), engine, dict(params))


@dataclass(frozen=True)
class Formula:
    """
    Explicit column roles for fitting.

    Attributes:
        outcome: Outcome column.
        predictors: Predictor columns, in design-matrix order.
        interactions: Pairs (or longer tuples) of predictors whose product
            terms are added to the design matrix.
        ids: Identifier columns carried through predictions but never fitted.
    """

    outcome: str
    predictors: tuple[str, ...]
    interactions: tuple[tuple[str, ...], ...] = ()
    ids: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Accept lists from config and callers
        object.__setattr__(self, "predictors", tuple(self.predictors))
        object.__setattr__(
            self, "interactions", tuple(tuple(term) for term in self.interactions)
        )
        object.__setattr__(self, "ids", tuple(self.ids))

        if not self.predictors:
            msg = "Formula needs at least one predictor"
            raise ValueError(msg)
        if self.outcome in self.predictors:
            msg = f"Outcome '{self.outcome}' cannot also be a predictor"
            raise ValueError(msg)
        overlap = set(self.ids) & ({self.outcome} | set(self.predictors))
        if overlap:
            msg = f"ID columns cannot be fitted: {sorted(overlap)}"
            raise ValueError(msg)
        for term in self.interactions:
            if len(term) < 2:
                msg = f"Interaction term needs at least two columns: {term}"
                raise ValueError(msg)
            unknown = [col for col in term if col not in self.predictors]
            if unknown:
                msg = f"Interaction term {term} uses non-predictors {unknown}"
                raise ValueError(msg)

    @classmethod
    def all_predictors(
        cls,
        columns: list[str],
        outcome: str,
        ids: tuple[str, ...] = (),
    ) -> "Formula":
        """Formula using every column except the outcome and IDs as predictors."""
        predictors = tuple(c for c in columns if c != outcome and c not in ids)
        return cls(outcome=outcome, predictors=predictors, ids=ids)

    @property
    def required_columns(self) -> list[str]:
        """Columns needed to fit (predictors and outcome)."""
        return [*self.predictors, self.outcome]

    def __str__(self) -> str:
        terms = list(self.predictors) + [":".join(t) for t in self.interactions]
        return f"{self.outcome} ~ {' + '.join(terms)}"
