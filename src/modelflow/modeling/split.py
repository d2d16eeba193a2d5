"""
Resampling: train/test splits and v-fold cross-validation.

Splits are expressed as row positions into the original DataFrame so that
every partition can be checked and reproduced. Randomness comes only from
the explicit seed.
"""

import math
from dataclasses import dataclass

import numpy as np
import pandas as pd
from sklearn.model_selection import KFold, StratifiedKFold, train_test_split

from modelflow.utils.logging import get_logger

log = get_logger(__name__)

# Number of quantile bins used to stratify on a numeric column
DEFAULT_BREAKS = 4

# Strata smaller than this share of rows are pooled with a neighbour
POOL_THRESHOLD = 0.1


@dataclass(frozen=True)
class DataSplit:
    """
    A single train/test partition.

    Rows are held by position, so duplicate index labels still land on
    exactly one side.

    Attributes:
        data: The full dataset.
        train_rows: Positions of the training rows.
        test_rows: Positions of the test rows.
    """

    data: pd.DataFrame
    train_rows: np.ndarray
    test_rows: np.ndarray

    @property
    def train_index(self) -> pd.Index:
        """Row labels of the training rows."""
        return self.data.index[self.train_rows]

    @property
    def test_index(self) -> pd.Index:
        """Row labels of the test rows."""
        return self.data.index[self.test_rows]

    def training(self) -> pd.DataFrame:
        """Training rows."""
        return self.data.iloc[self.train_rows]

    def testing(self) -> pd.DataFrame:
        """Test rows."""
        return self.data.iloc[self.test_rows]

    def __repr__(self) -> str:
        return (
            f"<Training/Testing/Total>\n"
            f"<{len(self.train_index)}/{len(self.test_index)}/{len(self.data)}>"
        )


@dataclass(frozen=True)
class Fold:
    """
    One cross-validation resample.

    Attributes:
        fold_id: Label such as 'Fold01'.
        analysis_rows: Positions used for fitting.
        assessment_rows: Positions held out for evaluation.
        analysis_index: Row labels used for fitting.
        assessment_index: Row labels held out for evaluation.
    """

    fold_id: str
    analysis_rows: np.ndarray
    assessment_rows: np.ndarray
    analysis_index: pd.Index
    assessment_index: pd.Index

    def analysis(self, data: pd.DataFrame) -> pd.DataFrame:
        """Rows used for fitting."""
        return data.iloc[self.analysis_rows]

    def assessment(self, data: pd.DataFrame) -> pd.DataFrame:
        """Held-out rows."""
        return data.iloc[self.assessment_rows]


def make_strata(
    values: pd.Series,
    breaks: int = DEFAULT_BREAKS,
    pool: float = POOL_THRESHOLD,
) -> pd.Series:
    """
    Bucket a column into strata labels.

    Numeric columns are cut at quantiles into ``breaks`` bins (duplicate
    edges collapse). Nominal columns use their values. Any stratum holding
    less than ``pool`` of the rows is merged into the next smaller-ranked
    stratum, so very rare buckets do not starve folds.

    Returns:
        Integer stratum codes aligned with ``values``.
    """
    if values.isna().any():
        msg = f"Stratification column '{values.name}' has missing values"
        raise ValueError(msg)

    if pd.api.types.is_numeric_dtype(values) and not pd.api.types.is_bool_dtype(
        values
    ):
        if values.nunique() <= breaks:
            codes = pd.Series(pd.factorize(values, sort=True)[0], index=values.index)
        else:
            codes = pd.Series(
                pd.qcut(values, q=breaks, labels=False, duplicates="drop"),
                index=values.index,
            )
    else:
        codes = pd.Series(
            pd.factorize(values.astype(str), sort=True)[0], index=values.index
        )

    return _pool_small_strata(codes.astype(int), pool)


def _pool_small_strata(codes: pd.Series, pool: float) -> pd.Series:
    minimum = pool * len(codes)
    codes = codes.copy()
    while codes.nunique() > 1:
        counts = codes.value_counts().sort_index()
        small = counts[counts < minimum]
        if small.empty:
            break
        stratum = small.index[0]
        levels = list(counts.index)
        position = levels.index(stratum)
        neighbour = levels[position - 1] if position > 0 else levels[position + 1]
        codes[codes == stratum] = neighbour
    return codes


def initial_split(
    data: pd.DataFrame,
    prop: float = 0.75,
    seed: int | None = None,
    strata: str | None = None,
    breaks: int = DEFAULT_BREAKS,
) -> DataSplit:
    """
    Split rows into a training and a test set.

    The training set holds ``floor(prop * n)`` rows (at least one row on each
    side).

    Args:
        data: Dataset to split.
        prop: Proportion of rows used for training.
        seed: Random seed.
        strata: Optional column to stratify on.
        breaks: Quantile bins for a numeric stratification column.

    Returns:
        DataSplit with disjoint, exhaustive row positions.

    Raises:
        ValueError: If prop is outside (0, 1) or data has fewer than 2 rows.
    """
    if not 0 < prop < 1:
        msg = f"prop must be in (0, 1), got {prop}"
        raise ValueError(msg)
    n = len(data)
    if n < 2:
        msg = f"Need at least 2 rows to split, got {n}"
        raise ValueError(msg)

    n_train = min(max(math.floor(prop * n), 1), n - 1)
    stratify = make_strata(data[strata], breaks) if strata is not None else None

    train_rows, test_rows = train_test_split(
        np.arange(n),
        train_size=n_train,
        test_size=n - n_train,
        random_state=seed,
        shuffle=True,
        stratify=stratify,
    )

    log.info(
        "Split data",
        n_train=len(train_rows),
        n_test=len(test_rows),
        seed=seed,
        strata=strata,
    )
    return DataSplit(data, train_rows, test_rows)


def vfold_cv(
    data: pd.DataFrame,
    v: int = 10,
    seed: int | None = None,
    strata: str | None = None,
    breaks: int = DEFAULT_BREAKS,
) -> list[Fold]:
    """
    Partition rows into ``v`` folds for cross-validation.

    Each row appears in exactly one assessment set. With ``strata`` the
    folds preserve the proportion of each stratum.

    Args:
        data: Dataset to resample.
        v: Number of folds.
        seed: Random seed.
        strata: Optional column to stratify on.
        breaks: Quantile bins for a numeric stratification column.

    Returns:
        List of folds labelled Fold01, Fold02, ...

    Raises:
        ValueError: If v < 2 or v exceeds the number of rows.
    """
    n = len(data)
    if v < 2:
        msg = f"v must be at least 2, got {v}"
        raise ValueError(msg)
    if v > n:
        msg = f"Cannot make {v} folds from {n} rows"
        raise ValueError(msg)

    labels = data.index.to_numpy()
    positions = np.arange(n)

    if strata is not None:
        codes = make_strata(data[strata], breaks)
        splitter = StratifiedKFold(n_splits=v, shuffle=True, random_state=seed)
        split_iter = splitter.split(positions, codes.to_numpy())
    else:
        splitter = KFold(n_splits=v, shuffle=True, random_state=seed)
        split_iter = splitter.split(positions)

    width = max(2, len(str(v)))
    folds = [
        Fold(
            fold_id=f"Fold{i + 1:0{width}d}",
            analysis_rows=analysis,
            assessment_rows=assessment,
            analysis_index=pd.Index(labels[analysis]),
            assessment_index=pd.Index(labels[assessment]),
        )
        for i, (analysis, assessment) in enumerate(split_iter)
    ]

    log.info("Created folds", v=v, n_rows=n, seed=seed, strata=strata)
    return folds
