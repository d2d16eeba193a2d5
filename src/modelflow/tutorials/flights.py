"""
NYC flight arrival delays.

Arrival delay is recoded to late/on_time (30 minutes or more is late),
flights are matched to hourly weather, the departure date becomes
day-of-week and month features and a logistic regression is scored on a
held-out quarter of the flights.
"""

from pathlib import Path

import pandas as pd

from modelflow.evaluation.holdout import LastFitResult, last_fit
from modelflow.features.pipeline import TableTransformer
from modelflow.features.rules import ExtractDate, Join, ThresholdRecode
from modelflow.ingestion.datasets import load_flights
from modelflow.modeling.recipe import DateStep, RecipeStep, ZeroVarianceStep
from modelflow.modeling.spec import Formula, logistic_reg
from modelflow.modeling.split import initial_split
from modelflow.utils.logging import get_logger

log = get_logger(__name__)

LATE_THRESHOLD_MIN = 30
SPLIT_SEED = 222

FLIGHT_COLUMNS = [
    "dep_time",
    "flight",
    "origin",
    "dest",
    "air_time",
    "distance",
    "carrier",
    "date",
    "arr_delay",
    "time_hour",
]

FLIGHTS_FORMULA = Formula(
    outcome="arr_delay",
    predictors=("dep_time", "origin", "dest", "air_time", "distance", "carrier", "date"),
    ids=("flight", "time_hour"),
)


def flight_steps() -> list[RecipeStep]:
    """Date features followed by removal of constant columns."""
    return [DateStep(["date"], features=("dow", "month")), ZeroVarianceStep()]


def prepare_flights(flights: pd.DataFrame, weather: pd.DataFrame) -> pd.DataFrame:
    """
    Model-ready flights table.

    Only flights with a weather record for their origin and hour are kept;
    rows with any missing value are dropped.
    """
    keys = ("origin", "time_hour")
    transformer = TableTransformer(
        [
            ThresholdRecode(
                "arr_delay", LATE_THRESHOLD_MIN, above="late", below="on_time"
            ),
            ExtractDate("time_hour", output="date"),
            Join(weather[list(keys)].drop_duplicates(), on=keys),
        ],
        keep=FLIGHT_COLUMNS,
    )
    data = transformer.apply(flights)

    shares = data["arr_delay"].value_counts(normalize=True)
    log.info("Arrival delay classes", **{str(k): round(v, 3) for k, v in shares.items()})
    return data


def run_flights(
    flights: pd.DataFrame | None = None,
    weather: pd.DataFrame | None = None,
    *,
    flights_source: str | Path | None = None,
    weather_source: str | Path | None = None,
    seed: int = SPLIT_SEED,
) -> LastFitResult:
    """
    Run the flights analysis.

    Args:
        flights: Raw flights table (loaded from ``flights_source`` if omitted).
        weather: Raw hourly weather table (loaded from ``weather_source``).
        flights_source: CSV export of the flights table.
        weather_source: CSV export of the weather table.
        seed: Seed of the train/test split.

    Returns:
        LastFitResult with test-set accuracy and ROC AUC.

    Raises:
        ValueError: If neither tables nor sources are given.
    """
    if flights is None or weather is None:
        if flights_source is None or weather_source is None:
            msg = "Provide flights and weather tables or their CSV sources"
            raise ValueError(msg)
        flights, weather = load_flights(flights_source, weather_source)

    data = prepare_flights(flights, weather)
    split = initial_split(data, prop=3 / 4, seed=seed)
    result = last_fit(
        logistic_reg(),
        FLIGHTS_FORMULA,
        split,
        flight_steps(),
        metrics=["accuracy", "roc_auc"],
    )
    log.info("Flights analysis complete", **result.metrics)
    return result
