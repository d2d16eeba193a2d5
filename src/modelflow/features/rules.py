"""
Declarative column transformation rules.

Each rule declares the columns it needs and produces a new DataFrame.
Rules are applied in the order given, so a derived column is available to
every later rule (e.g. a late/on-time recode before a filter on it).
"""

import operator
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from modelflow.utils.logging import get_logger

log = get_logger(__name__)


class Rule(ABC):
    """Base class for transformation rules."""

    @property
    def dependencies(self) -> tuple[str, ...]:
        """Columns that must exist before the rule runs."""
        return ()

    @abstractmethod
    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        """Return a transformed copy of ``df``."""


@dataclass(frozen=True)
class Rename(Rule):
    """Rename columns via a mapping old -> new."""

    mapping: dict[str, str]

    @property
    def dependencies(self) -> tuple[str, ...]:
        return tuple(self.mapping)

    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        return df.rename(columns=self.mapping)


@dataclass(frozen=True)
class Cast(Rule):
    """
    Cast a column to a type.

    Values that cannot be parsed become missing and are dropped with the
    other incomplete rows.
    """

    column: str
    dtype: str
    levels: tuple[str, ...] | None = None

    DTYPES = ("float", "int", "str", "category", "datetime", "date")

    def __post_init__(self) -> None:
        if self.dtype not in self.DTYPES:
            msg = f"Unknown dtype '{self.dtype}'. Available: {self.DTYPES}"
            raise ValueError(msg)

    @property
    def dependencies(self) -> tuple[str, ...]:
        return (self.column,)

    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        df = df.copy()
        values = df[self.column]
        if self.dtype == "float":
            df[self.column] = pd.to_numeric(values, errors="coerce").astype(float)
        elif self.dtype == "int":
            df[self.column] = pd.to_numeric(values, errors="coerce").round().astype(
                "Int64"
            )
        elif self.dtype == "str":
            df[self.column] = values.astype("string")
        elif self.dtype == "category":
            df[self.column] = pd.Categorical(
                values.astype(object).where(values.notna()),
                categories=list(self.levels) if self.levels else None,
            )
        else:
            parsed = pd.to_datetime(values, errors="coerce")
            df[self.column] = parsed.dt.normalize() if self.dtype == "date" else parsed

        n_invalid = int(df[self.column].isna().sum() - values.isna().sum())
        if n_invalid > 0:
            log.warning(
                "Unparseable values set to missing",
                column=self.column,
                dtype=self.dtype,
                n_invalid=n_invalid,
            )
        return df


@dataclass(frozen=True)
class ThresholdRecode(Rule):
    """
    Recode a numeric column into two labels around a threshold.

    Values >= threshold become ``above``, others ``below``; missing stays
    missing. The result is categorical with levels (above, below).
    """

    column: str
    threshold: float
    above: str
    below: str
    output: str | None = None

    @property
    def dependencies(self) -> tuple[str, ...]:
        return (self.column,)

    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        df = df.copy()
        values = pd.to_numeric(df[self.column], errors="coerce")
        labels = np.where(values >= self.threshold, self.above, self.below)
        recoded = pd.Series(labels, index=df.index, dtype=object).where(values.notna())
        df[self.output or self.column] = pd.Categorical(
            recoded, categories=[self.above, self.below]
        )
        return df


@dataclass(frozen=True)
class LogTransform(Rule):
    """Logarithm of a column; non-positive values become missing."""

    column: str
    base: float = 10.0
    output: str | None = None

    @property
    def dependencies(self) -> tuple[str, ...]:
        return (self.column,)

    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        df = df.copy()
        values = pd.to_numeric(df[self.column], errors="coerce").astype(float)
        n_invalid = int((values <= 0).sum())
        if n_invalid:
            log.warning(
                "Non-positive values cannot be logged",
                column=self.column,
                n_invalid=n_invalid,
            )
        positive = values.where(values > 0)
        df[self.output or self.column] = np.log(positive) / np.log(self.base)
        return df


@dataclass(frozen=True)
class ExtractDate(Rule):
    """Calendar date (midnight) of a timestamp column."""

    column: str
    output: str = "date"

    @property
    def dependencies(self) -> tuple[str, ...]:
        return (self.column,)

    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        df = df.copy()
        df[self.output] = pd.to_datetime(df[self.column], errors="coerce").dt.normalize()
        return df


@dataclass(frozen=True)
class Join(Rule):
    """Inner (or other) join with another table on key columns."""

    other: pd.DataFrame = field(repr=False)
    on: tuple[str, ...]
    how: str = "inner"

    @property
    def dependencies(self) -> tuple[str, ...]:
        return tuple(self.on)

    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        missing = [col for col in self.on if col not in self.other.columns]
        if missing:
            msg = f"Join table is missing key columns: {missing}"
            raise KeyError(msg)
        merged = df.merge(self.other, on=list(self.on), how=self.how)
        log.debug("Joined tables", rows_before=len(df), rows_after=len(merged))
        return merged


FILTER_OPS: dict[str, Callable[[pd.Series, Any], pd.Series]] = {
    "==": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "in": lambda s, v: s.isin(v),
    "not in": lambda s, v: ~s.isin(v),
}


@dataclass(frozen=True)
class Filter(Rule):
    """Keep rows where ``column <op> value`` holds."""

    column: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in FILTER_OPS:
            msg = f"Unknown filter operator '{self.op}'. Available: {list(FILTER_OPS)}"
            raise ValueError(msg)

    @property
    def dependencies(self) -> tuple[str, ...]:
        return (self.column,)

    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        mask = FILTER_OPS[self.op](df[self.column], self.value)
        kept = df[mask.fillna(False).astype(bool)]
        log.debug(
            "Filtered rows",
            column=self.column,
            op=self.op,
            kept=len(kept),
            removed=len(df) - len(kept),
        )
        return kept


@dataclass(frozen=True)
class Derive(Rule):
    """
    Compute a new column with a function of the table.

    Attributes:
        output: Name of the new column.
        formula: Function that computes the column from a DataFrame.
        requires: Columns the function reads.
        description: Human-readable description.
    """

    output: str
    formula: Callable[[pd.DataFrame], pd.Series] = field(repr=False)
    requires: tuple[str, ...] = ()
    description: str = ""

    @property
    def dependencies(self) -> tuple[str, ...]:
        return tuple(self.requires)

    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        df = df.copy()
        df[self.output] = self.formula(df)
        return df


RULE_TYPES: dict[str, type[Rule]] = {
    "rename": Rename,
    "cast": Cast,
    "threshold_recode": ThresholdRecode,
    "log": LogTransform,
    "extract_date": ExtractDate,
    "filter": Filter,
}


def build_rule(definition: dict[str, Any]) -> Rule:
    """
    Create a rule from a config mapping such as
    ``{"type": "log", "column": "price"}``.

    Raises:
        KeyError: If the rule type is unknown.
    """
    definition = dict(definition)
    kind = definition.pop("type", None)
    if kind not in RULE_TYPES:
        available = ", ".join(RULE_TYPES)
        msg = f"Unknown rule type '{kind}'. Available: {available}"
        raise KeyError(msg)
    if "levels" in definition and definition["levels"] is not None:
        definition["levels"] = tuple(definition["levels"])
    return RULE_TYPES[kind](**definition)
