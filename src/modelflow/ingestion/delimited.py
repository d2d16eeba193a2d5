"""
Delimited text loader for local files and URLs.
"""

from pathlib import Path

import pandas as pd

from modelflow.config.settings import DataConfig
from modelflow.ingestion.base import DataLoader, T
from modelflow.utils.logging import get_logger

log = get_logger(__name__)

REMOTE_PREFIXES = ("http://", "https://", "ftp://", "s3://")


def is_remote(source: str) -> bool:
    """Whether a source refers to a URL rather than a local path."""
    return source.startswith(REMOTE_PREFIXES)


class CsvDataLoader(DataLoader[T]):
    """
    Load a delimited file from a path or URL.

    Malformed lines (wrong field count) are skipped rather than raising.
    """

    def __init__(
        self,
        source: str | Path,
        *,
        names: list[str] | None = None,
        rename: dict[str, str] | None = None,
        sep: str = ",",
        parse_dates: list[str] | None = None,
        schema: type[T] | None = None,
    ) -> None:
        """
        Initialize loader.

        Args:
            source: Local path or URL.
            names: Positional column names replacing the file header.
            rename: Column renames applied after reading.
            sep: Field delimiter.
            parse_dates: Columns parsed as timestamps.
            schema: Optional pandera schema.
        """
        super().__init__(schema)
        self.source = str(source)
        self.names = names
        self.rename = rename or {}
        self.sep = sep
        self.parse_dates = parse_dates or []

    @classmethod
    def from_config(cls, config: DataConfig) -> "CsvDataLoader":
        """Build a loader from configuration."""
        return cls(
            config.source,
            names=config.names,
            rename=config.rename,
            sep=config.sep,
            parse_dates=config.parse_dates,
        )

    def _load_raw(self) -> pd.DataFrame:
        if not is_remote(self.source) and not Path(self.source).exists():
            msg = f"Data file not found: {self.source}"
            raise FileNotFoundError(msg)

        log.debug("Reading delimited file", source=self.source)
        df = pd.read_csv(self.source, sep=self.sep, on_bad_lines="skip")

        if self.names is not None:
            if len(self.names) != len(df.columns):
                msg = (
                    f"Got {len(self.names)} names for {len(df.columns)} columns "
                    f"in {self.source}"
                )
                raise ValueError(msg)
            df.columns = self.names
        if self.rename:
            df = df.rename(columns=self.rename)
        for col in self.parse_dates:
            df[col] = pd.to_datetime(df[col], errors="coerce", utc=False)
        return df
