"""
Pandera schemas for model outputs.
"""

import pandera.pandas as pa
from pandera.typing import Series


class PointPredictionSchema(pa.DataFrameModel):
    """Point predictions of a regression model."""

    pred: Series[float] = pa.Field(
        nullable=False,
        description="Predicted outcome",
    )

    class Config:
        """Schema configuration."""

        name = "PointPredictionSchema"
        strict = False
        coerce = True


class IntervalPredictionSchema(pa.DataFrameModel):
    """Interval estimates for the mean prediction."""

    pred_lower: Series[float] = pa.Field(
        nullable=False,
        description="Lower bound of the interval",
    )
    pred_upper: Series[float] = pa.Field(
        nullable=False,
        description="Upper bound of the interval",
    )

    @pa.dataframe_check
    def lower_not_above_upper(cls, df) -> Series[bool]:
        """Bounds must be ordered."""
        return df["pred_lower"] <= df["pred_upper"]

    class Config:
        """Schema configuration."""

        name = "IntervalPredictionSchema"
        strict = False
        coerce = True


class ClassPredictionSchema(pa.DataFrameModel):
    """Hard class predictions of a classification model."""

    pred_class: Series[pa.Category] = pa.Field(
        nullable=False,
        description="Predicted class label",
    )

    class Config:
        """Schema configuration."""

        name = "ClassPredictionSchema"
        strict = False
        # Coercion would rebuild categories from observed values only
        coerce = False


class TuningMetricsSchema(pa.DataFrameModel):
    """
    Per-fold metric values of a grid search.

    Hyperparameter columns vary by model and are allowed as extra columns.
    """

    config: Series[str] = pa.Field(description="Candidate label, e.g. 'Config03'")
    fold: Series[str] = pa.Field(description="Fold label, e.g. 'Fold01'")
    metric: Series[str] = pa.Field(description="Metric name")
    value: Series[float] = pa.Field(nullable=True, description="Metric value")

    class Config:
        """Schema configuration."""

        name = "TuningMetricsSchema"
        strict = False
        coerce = True
