"""
Modeling layer: specifications, recipes, resampling, fitting and prediction.

Provides explicit model specifications backed by a registry of
scikit-learn estimators.
"""

from modelflow.modeling.inference import PredictionKind, augment, predict
from modelflow.modeling.recipe import (
    DateStep,
    DummyStep,
    ImputeStep,
    InteractStep,
    OtherStep,
    Recipe,
    ZeroVarianceStep,
)
from modelflow.modeling.spec import (
    Formula,
    Mode,
    ModelSpec,
    linear_reg,
    logistic_reg,
    rand_forest,
    tune,
)
from modelflow.modeling.split import DataSplit, Fold, initial_split, vfold_cv
from modelflow.modeling.training import FittedModel, fit

__all__ = [
    "DataSplit",
    "DateStep",
    "DummyStep",
    "FittedModel",
    "Fold",
    "Formula",
    "ImputeStep",
    "InteractStep",
    "Mode",
    "ModelSpec",
    "OtherStep",
    "PredictionKind",
    "Recipe",
    "ZeroVarianceStep",
    "augment",
    "fit",
    "initial_split",
    "linear_reg",
    "logistic_reg",
    "predict",
    "rand_forest",
    "tune",
    "vfold_cv",
]
