"""
Loader contract shared by all data sources.

A loader reads a raw table, checks it against a pandera schema and then
applies source-specific adjustments (dtypes, level order).
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

import pandas as pd
import pandera.pandas as pa

from modelflow.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T", bound=pa.DataFrameModel)


class DataLoader(ABC, Generic[T]):
    """
    Read a table and validate it at the boundary.

    Subclasses implement ``_load_raw`` and may override ``_post_process``,
    which only ever sees validated data.
    """

    def __init__(self, schema: type[T] | None = None) -> None:
        self.schema = schema

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def _load_raw(self) -> pd.DataFrame:
        """Read the source as-is."""

    def _post_process(self, df: pd.DataFrame) -> pd.DataFrame:
        return df

    def load(self, *, validate: bool = True) -> pd.DataFrame:
        """
        Read, validate and post-process the source.

        Args:
            validate: Check the raw table against ``schema`` when one is set.

        Returns:
            The loaded table.

        Raises:
            FileNotFoundError: If a local source is missing.
            pandera.errors.SchemaError: If the table violates the schema.
        """
        df = self._load_raw()
        log.info("Read table", loader=self.name, rows=len(df), columns=len(df.columns))

        if validate and self.schema is not None:
            df = self.schema.validate(df)
            log.debug("Validated table", loader=self.name, schema=self.schema.__name__)

        return self._post_process(df)
