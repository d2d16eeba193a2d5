"""Tests for train/test splitting and cross-validation folds."""

import math

import numpy as np
import pandas as pd
import pytest

from modelflow.modeling.split import initial_split, make_strata, vfold_cv


class TestInitialSplit:
    """Tests for initial_split."""

    @pytest.mark.parametrize(("n", "prop"), [(10, 0.75), (8, 0.75), (120, 0.8), (7, 0.5)])
    def test_training_size_is_floor(self, n: int, prop: float) -> None:
        """Test that the training set holds floor(prop * n) rows."""
        data = pd.DataFrame({"x": np.arange(n)})
        split = initial_split(data, prop=prop, seed=1)
        assert len(split.train_index) == math.floor(prop * n)
        assert len(split.test_index) == n - math.floor(prop * n)

    def test_partition(self, regression_data: pd.DataFrame) -> None:
        """Test that train and test are disjoint and exhaustive."""
        split = initial_split(regression_data, seed=3)
        train, test = set(split.train_index), set(split.test_index)
        assert train.isdisjoint(test)
        assert train | test == set(regression_data.index)

    def test_same_seed_same_split(self, regression_data: pd.DataFrame) -> None:
        """Test reproducibility from the seed."""
        first = initial_split(regression_data, seed=222)
        second = initial_split(regression_data, seed=222)
        assert list(first.train_index) == list(second.train_index)

    def test_different_seed_different_split(
        self, regression_data: pd.DataFrame
    ) -> None:
        """Test that the seed drives the assignment."""
        first = initial_split(regression_data, seed=1)
        second = initial_split(regression_data, seed=2)
        assert set(first.train_index) != set(second.train_index)

    def test_training_and_testing_frames(self, regression_data: pd.DataFrame) -> None:
        """Test that training()/testing() return the indexed rows."""
        split = initial_split(regression_data, seed=5)
        assert split.training().index.equals(split.train_index)
        assert split.testing().index.equals(split.test_index)
        assert "<90/30/120>" in repr(split)

    def test_stratified_split_keeps_quartiles(
        self, regression_data: pd.DataFrame
    ) -> None:
        """Test that each outcome quartile is represented proportionally."""
        split = initial_split(regression_data, prop=0.75, seed=9, strata="y")
        strata = make_strata(regression_data["y"])
        train_share = strata.loc[split.train_index].value_counts(normalize=True)
        for share in train_share:
            assert share == pytest.approx(0.25, abs=0.03)

    @pytest.mark.parametrize("prop", [0.0, 1.0, -0.5])
    def test_invalid_prop(self, prop: float) -> None:
        """Test that prop must be in (0, 1)."""
        with pytest.raises(ValueError, match="prop"):
            initial_split(pd.DataFrame({"x": range(10)}), prop=prop)

    def test_too_few_rows(self) -> None:
        """Test that a single row cannot be split."""
        with pytest.raises(ValueError, match="at least 2 rows"):
            initial_split(pd.DataFrame({"x": [1]}))

    def test_duplicate_index_labels(self) -> None:
        """Test that repeated index labels still give a row partition."""
        data = pd.DataFrame({"x": range(8)}, index=[0, 0, 1, 1, 2, 2, 3, 3])
        split = initial_split(data, prop=0.75, seed=1)
        train, test = split.training(), split.testing()
        assert len(train) == 6
        assert len(test) == 2
        assert sorted([*train["x"], *test["x"]]) == list(range(8))


class TestVfoldCV:
    """Tests for vfold_cv."""

    def test_every_row_assessed_once(self, regression_data: pd.DataFrame) -> None:
        """Test that assessment sets partition the data."""
        folds = vfold_cv(regression_data, v=10, seed=4)
        assessed = np.concatenate([f.assessment_index.to_numpy() for f in folds])
        assert len(assessed) == len(regression_data)
        assert set(assessed) == set(regression_data.index)

    def test_analysis_complements_assessment(
        self, regression_data: pd.DataFrame
    ) -> None:
        """Test that each fold's analysis set is the complement of its assessment."""
        for fold in vfold_cv(regression_data, v=4, seed=4):
            analysis, assessment = set(fold.analysis_index), set(fold.assessment_index)
            assert analysis.isdisjoint(assessment)
            assert analysis | assessment == set(regression_data.index)

    def test_fold_labels(self, regression_data: pd.DataFrame) -> None:
        """Test zero-padded fold labels."""
        folds = vfold_cv(regression_data, v=3, seed=1)
        assert [f.fold_id for f in folds] == ["Fold01", "Fold02", "Fold03"]

    def test_duplicate_index_labels(self) -> None:
        """Test that repeated index labels keep every row in one assessment set."""
        data = pd.DataFrame({"x": range(8)}, index=[0, 0, 1, 1, 2, 2, 3, 3])
        folds = vfold_cv(data, v=4, seed=1)
        assessed = []
        for fold in folds:
            analysis, assessment = fold.analysis(data), fold.assessment(data)
            assert len(analysis) + len(assessment) == 8
            assert set(analysis["x"]).isdisjoint(assessment["x"])
            assessed.extend(assessment["x"])
        assert sorted(assessed) == list(range(8))

    def test_same_seed_same_folds(self, regression_data: pd.DataFrame) -> None:
        """Test reproducibility from the seed."""
        first = vfold_cv(regression_data, v=5, seed=8)
        second = vfold_cv(regression_data, v=5, seed=8)
        for a, b in zip(first, second, strict=True):
            assert list(a.assessment_index) == list(b.assessment_index)

    def test_stratified_folds_preserve_proportions(
        self, regression_data: pd.DataFrame
    ) -> None:
        """Test that every fold holds each outcome quartile in equal share."""
        strata = make_strata(regression_data["y"])
        folds = vfold_cv(regression_data, v=5, seed=2, strata="y")
        for fold in folds:
            shares = strata.loc[fold.assessment_index].value_counts(normalize=True)
            assert len(shares) == 4
            for share in shares:
                assert share == pytest.approx(0.25, abs=0.05)

    def test_fold_frames(self, regression_data: pd.DataFrame) -> None:
        """Test analysis()/assessment() accessors."""
        fold = vfold_cv(regression_data, v=4, seed=0)[0]
        assert len(fold.analysis(regression_data)) == 90
        assert len(fold.assessment(regression_data)) == 30

    @pytest.mark.parametrize("v", [1, 0, 121])
    def test_invalid_fold_count(self, regression_data: pd.DataFrame, v: int) -> None:
        """Test that v must be between 2 and the number of rows."""
        with pytest.raises(ValueError):
            vfold_cv(regression_data, v=v)


class TestMakeStrata:
    """Tests for stratum construction."""

    def test_numeric_quartiles(self) -> None:
        """Test that numeric columns are cut into quartiles."""
        codes = make_strata(pd.Series(np.arange(100.0)))
        assert sorted(codes.value_counts()) == [25, 25, 25, 25]

    def test_small_strata_pooled(self) -> None:
        """Test that a stratum under 10% of rows is merged into a neighbour."""
        values = pd.Series(["a"] * 50 + ["b"] * 45 + ["c"] * 5)
        codes = make_strata(values)
        assert codes.nunique() == 2
        assert (codes[95:] == codes[50]).all()

    def test_missing_values(self) -> None:
        """Test that missing stratification values raise error."""
        with pytest.raises(ValueError, match="missing"):
            make_strata(pd.Series([1.0, np.nan, 2.0]))
