"""
Pandera schemas for the bundled tutorial datasets.
"""

import pandera.pandas as pa
from pandera.typing import Series

FOOD_REGIMES = ["Initial", "Low", "High"]


class UrchinsSchema(pa.DataFrameModel):
    """
    Sea urchin growth experiment.

    Urchins were fed one of three diets; suture width was measured at the
    end of the experiment together with the initial body volume.
    """

    food_regime: Series[str] = pa.Field(
        isin=FOOD_REGIMES,
        description="Feeding regime (Initial, Low, High)",
    )
    initial_volume: Series[float] = pa.Field(
        ge=0,
        description="Initial body volume in ml",
    )
    width: Series[float] = pa.Field(
        ge=0,
        description="Suture width at the end of the experiment in mm",
    )

    class Config:
        """Schema configuration."""

        name = "UrchinsSchema"
        strict = False
        coerce = True


class FlightsSchema(pa.DataFrameModel):
    """Departed flights (one row per flight), before cleaning."""

    origin: Series[str] = pa.Field(description="Origin airport code")
    dest: Series[str] = pa.Field(nullable=True, description="Destination airport code")
    carrier: Series[str] = pa.Field(description="Two-letter carrier code")
    flight: Series[int] = pa.Field(description="Flight number")
    dep_time: Series[float] = pa.Field(nullable=True, description="Departure time HHMM")
    arr_delay: Series[float] = pa.Field(
        nullable=True, description="Arrival delay in minutes"
    )
    air_time: Series[float] = pa.Field(nullable=True, description="Minutes in the air")
    distance: Series[float] = pa.Field(ge=0, description="Distance in miles")
    time_hour: Series[pa.DateTime] = pa.Field(
        description="Scheduled departure hour"
    )

    class Config:
        """Schema configuration."""

        name = "FlightsSchema"
        strict = False
        coerce = True


class WeatherSchema(pa.DataFrameModel):
    """Hourly weather at the origin airports."""

    origin: Series[str] = pa.Field(description="Weather station airport code")
    time_hour: Series[pa.DateTime] = pa.Field(description="Observation hour")

    class Config:
        """Schema configuration."""

        name = "WeatherSchema"
        strict = False
        coerce = True


class HousingSchema(pa.DataFrameModel):
    """California housing block groups (1990 census)."""

    MedInc: Series[float] = pa.Field(ge=0, description="Median income (10k USD)")
    HouseAge: Series[float] = pa.Field(ge=0, description="Median house age")
    AveRooms: Series[float] = pa.Field(ge=0, description="Average rooms per household")
    AveBedrms: Series[float] = pa.Field(ge=0, description="Average bedrooms per household")
    Population: Series[float] = pa.Field(ge=0, description="Block group population")
    AveOccup: Series[float] = pa.Field(ge=0, description="Average household members")
    Latitude: Series[float] = pa.Field(description="Block group latitude")
    Longitude: Series[float] = pa.Field(description="Block group longitude")
    MedHouseVal: Series[float] = pa.Field(
        gt=0, description="Median house value (100k USD)"
    )

    class Config:
        """Schema configuration."""

        name = "HousingSchema"
        strict = False
        coerce = True
