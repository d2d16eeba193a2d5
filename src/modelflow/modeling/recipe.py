"""
Recipe: ordered preprocessing steps that turn raw predictors into a design matrix.

Steps are explicit descriptors applied in sequence. Each step is prepped
(learns its state) on training data and then baked (applied) identically to
training and new data. Steps must appear in stage order:
derive -> impute -> other -> dummy -> interact -> filter.
"""

import copy
import itertools
import math
from abc import ABC, abstractmethod
from enum import IntEnum

import numpy as np
import pandas as pd
from pandas.api import types as ptypes
from sklearn.impute import SimpleImputer
from sklearn.preprocessing import OneHotEncoder

from modelflow.modeling.spec import Formula
from modelflow.utils.logging import get_logger

log = get_logger(__name__)

# Maps an original predictor name to the design columns it expanded into
Expansions = dict[str, list[str]]

DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
MONTH_NAMES = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]


class StepStage(IntEnum):
    """Position of a step kind in the recipe order."""

    DERIVE = 0
    IMPUTE = 1
    OTHER = 2
    DUMMY = 3
    INTERACT = 4
    FILTER = 5


def is_nominal(series: pd.Series) -> bool:
    """Whether a column holds categories rather than numbers or dates."""
    return (
        isinstance(series.dtype, pd.CategoricalDtype)
        or ptypes.is_object_dtype(series)
        or ptypes.is_string_dtype(series)
    )


def observed_levels(series: pd.Series) -> list:
    """Levels present in a column, in category order when one is declared."""
    present = series.dropna()
    if isinstance(series.dtype, pd.CategoricalDtype):
        seen = set(present.unique())
        return [level for level in series.cat.categories if level in seen]
    return sorted(present.unique(), key=str)


class RecipeStep(ABC):
    """
    Base class for recipe steps.

    Subclasses set ``stage`` and implement ``prep`` and ``bake``. ``columns``
    restricts a step to named columns; None selects every applicable column.
    """

    stage: StepStage

    def __init__(self, columns: list[str] | None = None) -> None:
        self.columns = list(columns) if columns is not None else None
        self._is_prepped = False

    @abstractmethod
    def prep(self, data: pd.DataFrame, expansions: Expansions) -> "RecipeStep":
        """Learn step state from training predictors."""
        ...

    @abstractmethod
    def bake(self, data: pd.DataFrame) -> pd.DataFrame:
        """Apply the learned step to predictors."""
        ...

    @property
    def is_prepped(self) -> bool:
        """Whether the step has been prepped."""
        return self._is_prepped

    def _check_is_prepped(self) -> None:
        if not self._is_prepped:
            raise RuntimeError(
                f"{self.__class__.__name__} has not been prepped. "
                "Call prep() before bake()."
            )

    def _select(self, data: pd.DataFrame, predicate) -> list[str]:
        if self.columns is None:
            return [col for col in data.columns if predicate(data[col])]
        missing = [col for col in self.columns if col not in data.columns]
        if missing:
            msg = f"{self.__class__.__name__} requires missing columns: {missing}"
            raise KeyError(msg)
        return list(self.columns)

    def __repr__(self) -> str:
        target = "all" if self.columns is None else ", ".join(self.columns)
        return f"{self.__class__.__name__}({target})"


class DateStep(RecipeStep):
    """Expand date columns into day-of-week, month, year or day-of-year."""

    stage = StepStage.DERIVE
    FEATURES = ("dow", "month", "year", "doy")

    def __init__(
        self,
        columns: list[str] | None = None,
        features: tuple[str, ...] = ("dow", "month"),
        *,
        keep_original: bool = False,
    ) -> None:
        super().__init__(columns)
        unknown = [f for f in features if f not in self.FEATURES]
        if unknown:
            msg = f"Unknown date features {unknown}. Available: {self.FEATURES}"
            raise ValueError(msg)
        self.features = tuple(features)
        self.keep_original = keep_original
        self.date_columns_: list[str] = []

    def prep(self, data: pd.DataFrame, expansions: Expansions) -> "DateStep":
        self.date_columns_ = self._select(data, ptypes.is_datetime64_any_dtype)
        for col in self.date_columns_:
            derived = [f"{col}_{feature}" for feature in self.features]
            expansions[col] = ([col] if self.keep_original else []) + derived
            for name in derived:
                expansions.setdefault(name, [name])
        self._is_prepped = True
        return self

    def bake(self, data: pd.DataFrame) -> pd.DataFrame:
        self._check_is_prepped()
        data = data.copy()
        for col in self.date_columns_:
            values = pd.to_datetime(data[col])
            for feature in self.features:
                name = f"{col}_{feature}"
                if feature == "dow":
                    data[name] = pd.Categorical(
                        values.dt.dayofweek.map(dict(enumerate(DAY_NAMES))),
                        categories=DAY_NAMES,
                    )
                elif feature == "month":
                    data[name] = pd.Categorical(
                        values.dt.month.map(dict(enumerate(MONTH_NAMES, start=1))),
                        categories=MONTH_NAMES,
                    )
                elif feature == "year":
                    data[name] = values.dt.year.astype(float)
                else:
                    data[name] = values.dt.dayofyear.astype(float)
            if not self.keep_original:
                data = data.drop(columns=col)
        return data


def as_object_column(series: pd.Series) -> np.ndarray:
    """Single-column object array with NaN for missing values."""
    values = series.astype(object).where(series.notna(), np.nan)
    return values.to_numpy(dtype=object).reshape(-1, 1)


class ImputeStep(RecipeStep):
    """Fill missing values with the training median (numeric) or mode (nominal)."""

    stage = StepStage.IMPUTE

    def __init__(self, columns: list[str] | None = None) -> None:
        super().__init__(columns)
        self.imputers_: dict[str, SimpleImputer] = {}

    def prep(self, data: pd.DataFrame, expansions: Expansions) -> "ImputeStep":
        self.imputers_ = {}
        for col in self._select(data, lambda s: True):
            series = data[col]
            if series.notna().sum() == 0:
                msg = f"Cannot impute '{col}': no observed values"
                raise ValueError(msg)
            if ptypes.is_numeric_dtype(series) and not ptypes.is_bool_dtype(series):
                imputer = SimpleImputer(strategy="median")
                imputer.fit(series.to_numpy(dtype=float).reshape(-1, 1))
            else:
                imputer = SimpleImputer(strategy="most_frequent")
                imputer.fit(as_object_column(series))
            self.imputers_[col] = imputer
        self._is_prepped = True
        return self

    def bake(self, data: pd.DataFrame) -> pd.DataFrame:
        self._check_is_prepped()
        data = data.copy()
        for col, imputer in self.imputers_.items():
            if col not in data.columns:
                continue
            series = data[col]
            if imputer.strategy == "median":
                filled = imputer.transform(series.to_numpy(dtype=float).reshape(-1, 1))
                data[col] = filled[:, 0]
                continue
            filled = imputer.transform(as_object_column(series))[:, 0]
            if isinstance(series.dtype, pd.CategoricalDtype):
                data[col] = pd.Categorical(
                    filled,
                    categories=series.cat.categories,
                    ordered=series.cat.ordered,
                )
            else:
                data[col] = filled
        return data


class OtherStep(RecipeStep):
    """
    Pool infrequent categories into a single 'other' level.

    ``threshold`` below 1 is a minimum proportion of training rows, otherwise
    a minimum count. Levels unseen during prep are also mapped to 'other'.
    """

    stage = StepStage.OTHER

    def __init__(
        self,
        columns: list[str] | None = None,
        threshold: float = 0.05,
        other: str = "other",
    ) -> None:
        super().__init__(columns)
        if threshold <= 0:
            msg = f"threshold must be positive, got {threshold}"
            raise ValueError(msg)
        self.threshold = threshold
        self.other = other
        self.retained_: dict[str, list] = {}

    @property
    def min_frequency(self) -> float | int:
        """Threshold in the form OneHotEncoder expects."""
        if self.threshold < 1:
            return self.threshold
        return math.ceil(self.threshold)

    def _infrequent(self, series: pd.Series) -> set:
        observed = series.dropna()
        if observed.empty:
            return set()
        encoder = OneHotEncoder(
            min_frequency=self.min_frequency,
            handle_unknown="infrequent_if_exist",
            sparse_output=False,
        )
        encoder.fit(as_object_column(observed))
        found = encoder.infrequent_categories_[0]
        return set() if found is None else set(found)

    def prep(self, data: pd.DataFrame, expansions: Expansions) -> "OtherStep":
        self.retained_ = {}
        for col in self._select(data, is_nominal):
            infrequent = self._infrequent(data[col])
            levels = [
                level for level in observed_levels(data[col]) if level not in infrequent
            ]
            if self.other in levels:
                msg = f"Column '{col}' already has a level named '{self.other}'"
                raise ValueError(msg)
            self.retained_[col] = levels
            log.debug(
                "Pooled infrequent levels",
                column=col,
                retained=len(levels),
                pooled=len(infrequent),
            )
        self._is_prepped = True
        return self

    def bake(self, data: pd.DataFrame) -> pd.DataFrame:
        self._check_is_prepped()
        data = data.copy()
        for col, levels in self.retained_.items():
            values = data[col].astype(object)
            pooled = values.where(values.isin(levels) | values.isna(), self.other)
            data[col] = pd.Categorical(pooled, categories=[*levels, self.other])
        return data


class DummyStep(RecipeStep):
    """
    Encode nominal columns as indicator columns with OneHotEncoder.

    Uses treatment coding: the first observed level is the reference and
    gets no column unless ``one_hot`` is set. Levels unseen during prep
    encode as all zeros.
    """

    stage = StepStage.DUMMY

    def __init__(
        self,
        columns: list[str] | None = None,
        *,
        one_hot: bool = False,
    ) -> None:
        super().__init__(columns)
        self.one_hot = one_hot
        self.encoders_: dict[str, OneHotEncoder | None] = {}
        self.dummy_columns_: dict[str, list[str]] = {}

    def prep(self, data: pd.DataFrame, expansions: Expansions) -> "DummyStep":
        self.encoders_ = {}
        self.dummy_columns_ = {}
        for col in self._select(data, is_nominal):
            levels = observed_levels(data[col])
            encoded = levels if self.one_hot else levels[1:]
            self.dummy_columns_[col] = [f"{col}_{level}" for level in encoded]
            expansions[col] = self.dummy_columns_[col]

            # A single level under treatment coding yields no indicator
            if not encoded:
                self.encoders_[col] = None
                continue
            categories = np.array(levels, dtype=object)
            encoder = OneHotEncoder(
                categories=[categories],
                drop=None if self.one_hot else "first",
                handle_unknown="ignore",
                sparse_output=False,
                dtype=float,
            )
            self.encoders_[col] = encoder.fit(categories.reshape(-1, 1))
        self._is_prepped = True
        return self

    def bake(self, data: pd.DataFrame) -> pd.DataFrame:
        self._check_is_prepped()
        parts: list[pd.DataFrame | pd.Series] = []
        for col in data.columns:
            if col not in self.encoders_:
                parts.append(data[col])
                continue
            encoder = self.encoders_[col]
            if encoder is None:
                continue
            parts.append(
                pd.DataFrame(
                    encoder.transform(as_object_column(data[col])),
                    columns=self.dummy_columns_[col],
                    index=data.index,
                )
            )
        if not parts:
            return pd.DataFrame(index=data.index)
        return pd.concat(parts, axis=1)


class InteractStep(RecipeStep):
    """
    Add product terms between predictors.

    A term referencing an encoded nominal column expands to one product per
    indicator column, e.g. ``initial_volume:food_regime`` becomes
    ``initial_volume:food_regime_Low`` and ``initial_volume:food_regime_High``.
    """

    stage = StepStage.INTERACT

    def __init__(self, terms: list[tuple[str, ...]]) -> None:
        super().__init__(None)
        self.terms = [tuple(term) for term in terms]
        self.products_: list[tuple[str, tuple[str, ...]]] = []

    def prep(self, data: pd.DataFrame, expansions: Expansions) -> "InteractStep":
        self.products_ = []
        for term in self.terms:
            components = []
            for col in term:
                expanded = expansions.get(col, [col] if col in data.columns else None)
                if expanded is None:
                    msg = f"Interaction term {term} references unknown column '{col}'"
                    raise KeyError(msg)
                components.append(expanded)
            for combo in itertools.product(*components):
                self.products_.append((":".join(combo), combo))
        self._is_prepped = True
        return self

    def bake(self, data: pd.DataFrame) -> pd.DataFrame:
        self._check_is_prepped()
        data = data.copy()
        for name, combo in self.products_:
            product = data[combo[0]].astype(float)
            for col in combo[1:]:
                product = product * data[col].astype(float)
            data[name] = product
        return data

    def __repr__(self) -> str:
        return f"InteractStep({', '.join(':'.join(t) for t in self.terms)})"


class ZeroVarianceStep(RecipeStep):
    """Drop design columns that are constant in the training data."""

    stage = StepStage.FILTER

    def __init__(self, columns: list[str] | None = None) -> None:
        super().__init__(columns)
        self.removed_: list[str] = []

    def prep(self, data: pd.DataFrame, expansions: Expansions) -> "ZeroVarianceStep":
        candidates = self._select(data, lambda s: True)
        self.removed_ = [c for c in candidates if data[c].nunique(dropna=False) <= 1]
        if self.removed_:
            log.info("Removing zero-variance columns", columns=self.removed_)
        self._is_prepped = True
        return self

    def bake(self, data: pd.DataFrame) -> pd.DataFrame:
        self._check_is_prepped()
        return data.drop(columns=[c for c in self.removed_ if c in data.columns])


class Recipe:
    """
    Ordered preprocessing steps bound to a formula.

    The formula's nominal predictors are always dummy encoded and its
    interactions always added; explicit steps of those kinds replace the
    defaults.
    """

    def __init__(self, formula: Formula, steps: list[RecipeStep] | None = None) -> None:
        self.formula = formula
        self.steps = self._with_defaults(list(steps or []))
        self.design_columns: list[str] = []
        self._is_prepped = False

    def _with_defaults(self, steps: list[RecipeStep]) -> list[RecipeStep]:
        stages = [step.stage for step in steps]
        if stages != sorted(stages):
            order = " -> ".join(s.name.lower() for s in StepStage)
            msg = f"Recipe steps out of order {steps}; expected {order}"
            raise ValueError(msg)

        def insert(step: RecipeStep) -> None:
            position = next(
                (i for i, s in enumerate(steps) if s.stage > step.stage), len(steps)
            )
            steps.insert(position, step)

        if not any(isinstance(s, DummyStep) for s in steps):
            insert(DummyStep())
        if self.formula.interactions and not any(
            isinstance(s, InteractStep) for s in steps
        ):
            insert(InteractStep(list(self.formula.interactions)))
        return steps

    @property
    def is_prepped(self) -> bool:
        """Whether the recipe has been prepped."""
        return self._is_prepped

    def prep(self, data: pd.DataFrame) -> "Recipe":
        """
        Learn every step on training data.

        Returns a prepped copy; the recipe itself stays unprepped so it can
        be reused across resamples.

        Raises:
            KeyError: If a predictor is missing.
            ValueError: If the resulting design matrix is not numeric.
        """
        prepped = copy.deepcopy(self)
        expansions: Expansions = {col: [col] for col in self.formula.predictors}
        current = prepped._predictors(data)
        for step in prepped.steps:
            step.prep(current, expansions)
            current = step.bake(current)

        non_numeric = [
            col
            for col in current.columns
            if not ptypes.is_numeric_dtype(current[col])
            or ptypes.is_datetime64_any_dtype(current[col])
        ]
        if non_numeric:
            msg = f"Design matrix has non-numeric columns: {non_numeric}"
            raise ValueError(msg)

        prepped.design_columns = list(current.columns)
        prepped._is_prepped = True
        log.debug(
            "Prepped recipe",
            steps=[repr(s) for s in prepped.steps],
            n_design_columns=len(prepped.design_columns),
        )
        return prepped

    def bake(self, data: pd.DataFrame) -> pd.DataFrame:
        """
        Build the design matrix for new data.

        Returns:
            Float DataFrame indexed like ``data`` with ``design_columns``.
        """
        if not self._is_prepped:
            raise RuntimeError("Recipe has not been prepped. Call prep() first.")
        current = self._predictors(data)
        for step in self.steps:
            current = step.bake(current)
        return current[self.design_columns].astype(float)

    def _predictors(self, data: pd.DataFrame) -> pd.DataFrame:
        missing = [col for col in self.formula.predictors if col not in data.columns]
        if missing:
            msg = f"Missing predictor columns: {missing}"
            raise KeyError(msg)
        return data[list(self.formula.predictors)].copy()

    def summary(self, data: pd.DataFrame) -> pd.DataFrame:
        """Variables with their type and role in this recipe."""
        rows = []
        roles = (
            [(col, "predictor") for col in self.formula.predictors]
            + [(self.formula.outcome, "outcome")]
            + [(col, "ID") for col in self.formula.ids]
        )
        for col, role in roles:
            series = data[col]
            if ptypes.is_datetime64_any_dtype(series):
                kind = "date"
            elif is_nominal(series) or ptypes.is_bool_dtype(series):
                kind = "nominal"
            else:
                kind = "numeric"
            rows.append({"variable": col, "type": kind, "role": role})
        return pd.DataFrame(rows)


def design_matrix(
    formula: Formula,
    data: pd.DataFrame,
    steps: list[RecipeStep] | None = None,
) -> tuple[pd.DataFrame, Recipe]:
    """
    Prep a recipe on ``data`` and return its design matrix.

    Returns:
        Tuple of (design matrix, prepped recipe).
    """
    recipe = Recipe(formula, steps).prep(data)
    return recipe.bake(data), recipe


def as_float_array(frame: pd.DataFrame) -> np.ndarray:
    """Contiguous float array of a design matrix."""
    return np.ascontiguousarray(frame.to_numpy(dtype=float))


STEP_TYPES: dict[str, type[RecipeStep]] = {
    "date": DateStep,
    "impute": ImputeStep,
    "other": OtherStep,
    "dummy": DummyStep,
    "interact": InteractStep,
    "zv": ZeroVarianceStep,
}


def build_step(definition: dict) -> RecipeStep:
    """
    Create a recipe step from a config mapping such as
    ``{"type": "other", "columns": ["dest"], "threshold": 0.01}``.

    Raises:
        KeyError: If the step type is unknown.
    """
    definition = dict(definition)
    kind = definition.pop("type", None)
    if kind not in STEP_TYPES:
        available = ", ".join(STEP_TYPES)
        msg = f"Unknown recipe step '{kind}'. Available: {available}"
        raise KeyError(msg)
    if "features" in definition:
        definition["features"] = tuple(definition["features"])
    return STEP_TYPES[kind](**definition)
