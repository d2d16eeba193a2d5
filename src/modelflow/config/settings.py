"""
Typed configuration models using Pydantic.

A workflow configuration declares every stage of one analysis: where the
data comes from, how it is cleaned, which columns play which role, how it
is resampled, which model is fitted and how it is tuned.
"""

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class DirectionSetting(str, Enum):
    """Selection direction for tuning metrics."""

    MINIMIZE = "minimize"
    MAXIMIZE = "maximize"


class DataConfig(BaseModel):
    """Data source configuration."""

    model_config = ConfigDict(frozen=True)

    source: str = Field(description="Path or URL of a delimited text file")
    names: list[str] | None = Field(
        default=None,
        description="Positional column names replacing the file header",
    )
    rename: dict[str, str] = Field(
        default_factory=dict, description="Column renames old -> new"
    )
    sep: str = Field(default=",", description="Field delimiter")
    parse_dates: list[str] = Field(
        default_factory=list, description="Columns parsed as timestamps"
    )


class TransformConfig(BaseModel):
    """Cleaning rules applied after loading."""

    model_config = ConfigDict(frozen=True)

    rules: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Ordered rule definitions, e.g. {type: log, column: price}",
    )
    keep: list[str] | None = Field(
        default=None, description="Columns retained after the rules"
    )
    drop_missing: bool = Field(default=True)
    categorize_strings: bool = Field(default=True)


class FormulaConfig(BaseModel):
    """Column roles."""

    model_config = ConfigDict(frozen=True)

    outcome: str
    predictors: list[str] | None = Field(
        default=None, description="Predictors (default: every other column)"
    )
    interactions: list[list[str]] = Field(default_factory=list)
    ids: list[str] = Field(default_factory=list)


class SplitConfig(BaseModel):
    """Resampling configuration."""

    model_config = ConfigDict(frozen=True)

    prop: float = Field(default=0.75, gt=0.0, lt=1.0)
    seed: int | None = Field(default=None)
    folds: int = Field(default=10, ge=2, le=100)
    strata: str | None = Field(default=None)
    breaks: int = Field(default=4, ge=2)


class ModelConfig(BaseModel):
    """Model specification configuration."""

    model_config = ConfigDict(frozen=True)

    family: str = Field(default="linear_reg")
    mode: str = Field(default="regression")
    engine: str = Field(default="ols")
    params: dict[str, Any] = Field(
        default_factory=dict, description="Fixed hyperparameters"
    )
    tune: list[str] = Field(
        default_factory=list, description="Hyperparameters chosen by grid search"
    )

    @field_validator("mode")
    @classmethod
    def validate_mode(cls, v: str) -> str:
        """Mode must be regression or classification."""
        if v not in {"regression", "classification"}:
            msg = f"mode must be 'regression' or 'classification', got: {v!r}"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def validate_tune_params(self) -> "ModelConfig":
        """A parameter cannot be both fixed and tuned."""
        both = sorted(set(self.tune) & set(self.params))
        if both:
            msg = f"Parameters both fixed and tuned: {both}"
            raise ValueError(msg)
        return self


class RegularGridConfig(BaseModel):
    """Evenly spaced grid definition."""

    model_config = ConfigDict(frozen=True)

    ranges: dict[str, tuple[float, float]]
    levels: int = Field(default=3, ge=1)
    log10: list[str] = Field(default_factory=list)
    integer: list[str] = Field(default_factory=list)


class TuningConfig(BaseModel):
    """Grid search configuration."""

    model_config = ConfigDict(frozen=True)

    grid: dict[str, list[Any]] = Field(
        default_factory=dict, description="Candidate values per parameter"
    )
    regular: RegularGridConfig | None = Field(default=None)
    metrics: list[str] = Field(default_factory=lambda: ["rmse"])
    direction: DirectionSetting | None = Field(
        default=None, description="Override of the metric's own direction"
    )
    n_jobs: int = Field(default=1)

    @model_validator(mode="after")
    def validate_grid_source(self) -> "TuningConfig":
        """Use either explicit values or a regular grid, not both."""
        if self.grid and self.regular is not None:
            msg = "Specify either tuning.grid or tuning.regular, not both"
            raise ValueError(msg)
        if not self.metrics:
            msg = "tuning.metrics must name at least one metric"
            raise ValueError(msg)
        return self


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO")
    json_output: bool = Field(default=False)


class OutputConfig(BaseModel):
    """Output paths configuration.

    Structure: ./output/{project}/models, ./output/{project}/predictions.
    """

    model_config = ConfigDict(frozen=True)

    output_root: Path = Field(
        default=Path("./output"), description="Root directory for all outputs"
    )


class WorkflowConfig(BaseModel):
    """Complete workflow configuration."""

    model_config = ConfigDict(frozen=True)

    project: str = Field(description="Project identifier (e.g., 'urchins-ols')")

    data: DataConfig
    transform: TransformConfig = Field(default_factory=TransformConfig)
    formula: FormulaConfig
    recipe: list[dict[str, Any]] = Field(
        default_factory=list, description="Ordered recipe step definitions"
    )
    split: SplitConfig = Field(default_factory=SplitConfig)
    model: ModelConfig = Field(default_factory=ModelConfig)
    tuning: TuningConfig | None = Field(default=None)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def validate_tuning(self) -> "WorkflowConfig":
        """Tuned parameters need a tuning section and vice versa."""
        if self.model.tune and self.tuning is None:
            msg = f"model.tune lists {self.model.tune} but no tuning section is given"
            raise ValueError(msg)
        return self

    @property
    def models_dir(self) -> Path:
        """Path to saved models."""
        return self.output.output_root / self.project / "models"

    @property
    def predictions_dir(self) -> Path:
        """Path to prediction tables."""
        return self.output.output_root / self.project / "predictions"
