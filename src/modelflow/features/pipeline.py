"""
Table transformation pipeline.

Orchestrates cleaning from a raw table to a model-ready dataset:
rules in declared order, column selection, global missing-value removal
and string-to-category conversion.
"""

import pandas as pd
from pandas.api import types as ptypes

from modelflow.config.settings import TransformConfig
from modelflow.features.rules import Rule, build_rule
from modelflow.utils.logging import get_logger

log = get_logger(__name__)


class TableTransformer:
    """
    Pipeline for cleaning a raw table.

    Missing-value removal runs after every rule, over all retained columns:
    a row is dropped if any retained column is missing.
    """

    def __init__(
        self,
        rules: list[Rule] | None = None,
        *,
        keep: list[str] | None = None,
        drop_missing: bool = True,
        categorize_strings: bool = True,
    ) -> None:
        """
        Initialize transformer.

        Args:
            rules: Rules applied in order.
            keep: Columns retained after the rules (default: all).
            drop_missing: Drop rows with any missing retained value.
            categorize_strings: Convert string columns to categoricals.
        """
        self.rules = list(rules or [])
        self.keep = list(keep) if keep is not None else None
        self.drop_missing = drop_missing
        self.categorize_strings = categorize_strings

    @classmethod
    def from_config(cls, config: TransformConfig) -> "TableTransformer":
        """Build a transformer from configuration."""
        return cls(
            [build_rule(rule) for rule in config.rules],
            keep=config.keep,
            drop_missing=config.drop_missing,
            categorize_strings=config.categorize_strings,
        )

    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Run the full transformation.

        Args:
            df: Raw input table.

        Returns:
            Cleaned table.

        Raises:
            KeyError: If a rule or ``keep`` references a missing column.
        """
        n_input = len(df)
        log.info("Starting table transformation", rows=n_input, n_rules=len(self.rules))

        for rule in self.rules:
            missing = [col for col in rule.dependencies if col not in df.columns]
            if missing:
                msg = f"{rule!r} requires missing columns: {missing}"
                raise KeyError(msg)
            df = rule.apply(df)

        if self.keep is not None:
            missing = [col for col in self.keep if col not in df.columns]
            if missing:
                msg = f"Cannot keep missing columns: {missing}"
                raise KeyError(msg)
            df = df[self.keep]

        if self.drop_missing:
            before = len(df)
            df = df.dropna()
            log.info("Dropped incomplete rows", removed=before - len(df), kept=len(df))

        if self.categorize_strings:
            df = categorize_strings(df)

        log.info(
            "Table transformation complete",
            rows_in=n_input,
            rows_out=len(df),
            columns=list(df.columns),
        )
        return df


def categorize_strings(df: pd.DataFrame) -> pd.DataFrame:
    """Convert object and string columns to categoricals (sorted levels)."""
    df = df.copy()
    for col in df.columns:
        series = df[col]
        if isinstance(series.dtype, pd.CategoricalDtype):
            continue
        if ptypes.is_object_dtype(series) or ptypes.is_string_dtype(series):
            df[col] = series.astype("category")
    return df
