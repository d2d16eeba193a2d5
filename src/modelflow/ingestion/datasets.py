"""
Loaders for the bundled tutorial datasets.

- urchins: sea urchin growth under three feeding regimes (remote CSV)
- flights/weather: NYC 2013 departures and hourly weather (CSV exports)
- housing: California housing block groups (scikit-learn dataset)
"""

from pathlib import Path

import pandas as pd
from sklearn.datasets import fetch_california_housing

from modelflow.ingestion.base import DataLoader
from modelflow.ingestion.delimited import CsvDataLoader
from modelflow.schemas.datasets import (
    FOOD_REGIMES,
    FlightsSchema,
    HousingSchema,
    UrchinsSchema,
    WeatherSchema,
)
from modelflow.utils.logging import get_logger

log = get_logger(__name__)

URCHINS_URL = "https://tidymodels.org/start/models/urchins.csv"
URCHINS_COLUMNS = ["food_regime", "initial_volume", "width"]

HOUSING_OUTCOME = "MedHouseVal"


class UrchinsLoader(CsvDataLoader[UrchinsSchema]):
    """Urchins CSV with short column names and ordered feeding regimes."""

    def __init__(self, source: str | Path = URCHINS_URL) -> None:
        super().__init__(source, names=URCHINS_COLUMNS, schema=UrchinsSchema)

    def _post_process(self, df: pd.DataFrame) -> pd.DataFrame:
        df = df.copy()
        df["food_regime"] = pd.Categorical(df["food_regime"], categories=FOOD_REGIMES)
        return df


class HousingLoader(DataLoader[HousingSchema]):
    """California housing prices from scikit-learn (downloaded and cached)."""

    def __init__(self, data_home: Path | None = None) -> None:
        super().__init__(HousingSchema)
        self.data_home = data_home

    def _load_raw(self) -> pd.DataFrame:
        bunch = fetch_california_housing(
            data_home=str(self.data_home) if self.data_home else None,
            as_frame=True,
        )
        return bunch.frame


def load_urchins(source: str | Path = URCHINS_URL) -> pd.DataFrame:
    """Load the urchins dataset."""
    return UrchinsLoader(source).load()


def load_flights(
    flights_source: str | Path,
    weather_source: str | Path,
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """
    Load flight and weather tables.

    Returns:
        Tuple of (flights, weather); ``time_hour`` parsed in both.
    """
    flights = CsvDataLoader(
        flights_source, parse_dates=["time_hour"], schema=FlightsSchema
    ).load()
    weather = CsvDataLoader(
        weather_source, parse_dates=["time_hour"], schema=WeatherSchema
    ).load()
    return flights, weather


def load_housing(data_home: Path | None = None) -> pd.DataFrame:
    """Load the California housing dataset."""
    return HousingLoader(data_home).load()
