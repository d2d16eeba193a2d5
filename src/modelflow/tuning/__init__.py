"""
Hyperparameter tuning by grid search over cross-validation folds.
"""

from modelflow.tuning.grid import expand_grid, regular_grid
from modelflow.tuning.search import (
    TuningResult,
    finalize_model,
    select_best,
    tune_grid,
)

__all__ = [
    "TuningResult",
    "expand_grid",
    "finalize_model",
    "regular_grid",
    "select_best",
    "tune_grid",
]
