"""
Schema definitions using Pandera for data validation.

Input datasets and model outputs are validated at system boundaries.
"""

from modelflow.schemas.datasets import (
    FlightsSchema,
    HousingSchema,
    UrchinsSchema,
    WeatherSchema,
)
from modelflow.schemas.output import (
    ClassPredictionSchema,
    IntervalPredictionSchema,
    PointPredictionSchema,
    TuningMetricsSchema,
)

__all__ = [
    "ClassPredictionSchema",
    "FlightsSchema",
    "HousingSchema",
    "IntervalPredictionSchema",
    "PointPredictionSchema",
    "TuningMetricsSchema",
    "UrchinsSchema",
    "WeatherSchema",
]
