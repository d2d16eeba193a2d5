"""Tests for transformation rules and the table transformer."""

import numpy as np
import pandas as pd
import pytest

from modelflow.config.settings import TransformConfig
from modelflow.features.pipeline import TableTransformer, categorize_strings
from modelflow.features.rules import (
    Cast,
    Derive,
    ExtractDate,
    Filter,
    Join,
    LogTransform,
    Rename,
    Rule,
    ThresholdRecode,
    build_rule,
)


@pytest.fixture
def flights_like() -> pd.DataFrame:
    """Small flights-shaped table with one missing delay."""
    return pd.DataFrame(
        {
            "origin": ["EWR", "JFK", "LGA", "EWR"],
            "carrier": ["UA", "B6", "DL", "UA"],
            "arr_delay": [45.0, 10.0, np.nan, 30.0],
            "time_hour": pd.to_datetime(
                [
                    "2013-01-01 05:00",
                    "2013-01-01 06:00",
                    "2013-01-02 07:00",
                    "2013-01-02 08:00",
                ]
            ),
        }
    )


class TestRules:
    """Tests for individual rules."""

    def test_threshold_recode(self, flights_like: pd.DataFrame) -> None:
        """Test that values at or above the threshold get the upper label."""
        result = ThresholdRecode("arr_delay", 30, above="late", below="on_time").apply(
            flights_like
        )
        assert list(result["arr_delay"].astype(object)[[0, 1, 3]]) == [
            "late",
            "on_time",
            "late",
        ]
        assert pd.isna(result["arr_delay"].iloc[2])
        assert list(result["arr_delay"].cat.categories) == ["late", "on_time"]

    def test_log_transform_base10(self) -> None:
        """Test log10 transform."""
        df = pd.DataFrame({"price": [10.0, 100.0, 1000.0]})
        result = LogTransform("price").apply(df)
        np.testing.assert_allclose(result["price"], [1.0, 2.0, 3.0])

    def test_log_transform_non_positive_becomes_missing(self) -> None:
        """Test that zero and negative values are set to missing."""
        df = pd.DataFrame({"price": [0.0, -1.0, 10.0]})
        result = LogTransform("price", output="log_price").apply(df)
        assert result["log_price"].isna().sum() == 2
        assert "price" in result.columns

    def test_extract_date(self, flights_like: pd.DataFrame) -> None:
        """Test that timestamps are truncated to midnight."""
        result = ExtractDate("time_hour").apply(flights_like)
        assert result["date"].iloc[0] == pd.Timestamp("2013-01-01")
        assert result["date"].iloc[3] == pd.Timestamp("2013-01-02")

    def test_cast_invalid_values_become_missing(self) -> None:
        """Test that unparseable numbers are coerced to missing."""
        df = pd.DataFrame({"width": ["0.1", "abc", "0.3"]})
        result = Cast("width", "float").apply(df)
        assert result["width"].isna().sum() == 1
        assert result["width"].iloc[2] == pytest.approx(0.3)

    def test_cast_category_with_levels(self) -> None:
        """Test that declared levels fix the category order."""
        df = pd.DataFrame({"food_regime": ["Low", "High", "Initial"]})
        result = Cast("food_regime", "category", ("Initial", "Low", "High")).apply(df)
        assert list(result["food_regime"].cat.categories) == ["Initial", "Low", "High"]

    def test_cast_unknown_dtype(self) -> None:
        """Test that unknown dtypes raise error."""
        with pytest.raises(ValueError, match="Unknown dtype"):
            Cast("x", "complex")

    def test_join_inner(self, flights_like: pd.DataFrame) -> None:
        """Test that an inner join keeps matching rows only."""
        weather = pd.DataFrame(
            {
                "origin": ["EWR", "JFK"],
                "time_hour": pd.to_datetime(["2013-01-01 05:00", "2013-01-01 06:00"]),
                "temp": [39.0, 40.0],
            }
        )
        result = Join(weather, on=("origin", "time_hour")).apply(flights_like)
        assert len(result) == 2
        assert list(result["temp"]) == [39.0, 40.0]

    def test_filter(self, flights_like: pd.DataFrame) -> None:
        """Test row filtering."""
        result = Filter("origin", "in", ["EWR"]).apply(flights_like)
        assert len(result) == 2
        with pytest.raises(ValueError, match="Unknown filter operator"):
            Filter("origin", "~", "EWR")

    def test_rename_and_derive(self) -> None:
        """Test renaming followed by a derived column."""
        df = pd.DataFrame({"a": [1.0, 2.0]})
        df = Rename({"a": "b"}).apply(df)
        result = Derive("c", lambda d: d["b"] * 2, requires=("b",)).apply(df)
        assert list(result["c"]) == [2.0, 4.0]

    def test_rule_base_is_abstract(self) -> None:
        """Test that rules must implement apply()."""
        with pytest.raises(TypeError):
            Rule()


class TestBuildRule:
    """Tests for config-driven rule construction."""

    def test_known_rule(self) -> None:
        """Test building a rule from a mapping."""
        rule = build_rule({"type": "log", "column": "price", "base": 10})
        assert isinstance(rule, LogTransform)
        assert rule.base == 10

    def test_unknown_rule(self) -> None:
        """Test that unknown rule types raise KeyError."""
        with pytest.raises(KeyError, match="Unknown rule type"):
            build_rule({"type": "explode"})


class TestTableTransformer:
    """Tests for the full transformation pipeline."""

    def test_rules_applied_in_order(self, flights_like: pd.DataFrame) -> None:
        """Test that a later rule sees the output of an earlier one."""
        transformer = TableTransformer(
            [
                ThresholdRecode("arr_delay", 30, above="late", below="on_time"),
                Filter("arr_delay", "==", "late"),
            ]
        )
        result = transformer.apply(flights_like)
        assert len(result) == 2
        assert set(result["arr_delay"].astype(str)) == {"late"}

    def test_missing_dependency(self, flights_like: pd.DataFrame) -> None:
        """Test that a rule on a missing column raises KeyError."""
        transformer = TableTransformer([LogTransform("price")])
        with pytest.raises(KeyError, match="price"):
            transformer.apply(flights_like)

    def test_drops_incomplete_rows(self, flights_like: pd.DataFrame) -> None:
        """Test that rows with any missing retained value are dropped."""
        result = TableTransformer().apply(flights_like)
        assert len(result) == 3
        assert not result.isna().any().any()

    def test_missing_values_in_dropped_columns_are_ignored(
        self, flights_like: pd.DataFrame
    ) -> None:
        """Test that only retained columns are checked for missing values."""
        result = TableTransformer(keep=["origin", "carrier"]).apply(flights_like)
        assert len(result) == 4
        assert list(result.columns) == ["origin", "carrier"]

    def test_strings_become_categorical(self, flights_like: pd.DataFrame) -> None:
        """Test string-to-category conversion."""
        result = TableTransformer().apply(flights_like)
        assert isinstance(result["origin"].dtype, pd.CategoricalDtype)
        assert isinstance(result["carrier"].dtype, pd.CategoricalDtype)
        assert not isinstance(result["time_hour"].dtype, pd.CategoricalDtype)

    def test_keep_missing_column(self, flights_like: pd.DataFrame) -> None:
        """Test that keeping an absent column raises KeyError."""
        with pytest.raises(KeyError, match="Cannot keep"):
            TableTransformer(keep=["origin", "dest"]).apply(flights_like)

    def test_from_config(self, flights_like: pd.DataFrame) -> None:
        """Test building the transformer from configuration."""
        config = TransformConfig(
            rules=[
                {
                    "type": "threshold_recode",
                    "column": "arr_delay",
                    "threshold": 30,
                    "above": "late",
                    "below": "on_time",
                },
                {"type": "extract_date", "column": "time_hour"},
            ],
            keep=["origin", "arr_delay", "date"],
        )
        result = TableTransformer.from_config(config).apply(flights_like)
        assert list(result.columns) == ["origin", "arr_delay", "date"]
        assert len(result) == 3


def test_categorize_strings_keeps_existing_categories() -> None:
    """Test that declared category order is preserved."""
    df = pd.DataFrame(
        {
            "regime": pd.Categorical(["Low", "High"], categories=["High", "Low"]),
            "name": ["a", "b"],
        }
    )
    result = categorize_strings(df)
    assert list(result["regime"].cat.categories) == ["High", "Low"]
    assert list(result["name"].cat.categories) == ["a", "b"]
