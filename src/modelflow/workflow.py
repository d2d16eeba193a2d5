"""
Configuration-driven modeling workflow.

Runs one analysis end to end: load, clean, split, optionally tune by
cross-validation, fit on the training rows, score on the test rows and
persist the fitted model with its test predictions.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd

from modelflow.config.settings import FormulaConfig, ModelConfig, WorkflowConfig
from modelflow.evaluation.holdout import LastFitResult, last_fit
from modelflow.features.pipeline import TableTransformer
from modelflow.ingestion.delimited import CsvDataLoader
from modelflow.modeling.recipe import build_step
from modelflow.modeling.spec import (
    Formula,
    ModelSpec,
    linear_reg,
    logistic_reg,
    rand_forest,
    tune,
)
from modelflow.modeling.split import initial_split, vfold_cv
from modelflow.tuning.grid import expand_grid, regular_grid
from modelflow.tuning.search import (
    TuningResult,
    finalize_model,
    select_best,
    tune_grid,
)
from modelflow.utils.logging import get_logger, log_context

log = get_logger(__name__)


@dataclass
class WorkflowResult:
    """
    Outcome of a workflow run.

    Attributes:
        spec: Final (resolved) model specification.
        last_fit: Fit on the training rows with test-set metrics.
        tuning: Grid search result, if the model was tuned.
        best_params: Selected hyperparameters, if the model was tuned.
        model_path: Where the fitted model was saved.
        predictions_path: Where the test predictions were written.
    """

    spec: ModelSpec
    last_fit: LastFitResult
    tuning: TuningResult | None = None
    best_params: dict[str, Any] | None = None
    model_path: Path | None = None
    predictions_path: Path | None = None

    @property
    def metrics(self) -> dict[str, float]:
        """Test-set metrics."""
        return self.last_fit.metrics


def build_spec(config: ModelConfig) -> ModelSpec:
    """
    Create a model specification from configuration.

    Parameters listed under ``tune`` are marked with tune().

    Raises:
        KeyError: If the model family is unknown.
    """
    params: dict[str, Any] = dict(config.params)
    params.update({name: tune() for name in config.tune})

    if config.family == "linear_reg":
        return linear_reg(config.engine, **params)
    if config.family == "logistic_reg":
        return logistic_reg(config.engine, **params)
    if config.family == "rand_forest":
        return rand_forest(config.mode, config.engine, **params)
    msg = (
        f"Unknown model family '{config.family}'. "
        "Available: linear_reg, logistic_reg, rand_forest"
    )
    raise KeyError(msg)


def build_formula(config: FormulaConfig, columns: list[str]) -> Formula:
    """Formula from configuration; predictors default to every other column."""
    if config.predictors is None:
        predictors = [
            c for c in columns if c != config.outcome and c not in config.ids
        ]
    else:
        predictors = config.predictors
    return Formula(
        outcome=config.outcome,
        predictors=tuple(predictors),
        interactions=tuple(tuple(term) for term in config.interactions),
        ids=tuple(config.ids),
    )


def prepare_data(config: WorkflowConfig) -> pd.DataFrame:
    """Load and clean the configured data source."""
    raw = CsvDataLoader.from_config(config.data).load()
    return TableTransformer.from_config(config.transform).apply(raw)


def run_workflow(
    config: WorkflowConfig,
    data: pd.DataFrame | None = None,
    *,
    save: bool = True,
) -> WorkflowResult:
    """
    Run a configured workflow.

    Args:
        config: Workflow configuration.
        data: Already cleaned data; loaded from ``config.data`` if omitted.
        save: Persist the fitted model and test predictions.

    Returns:
        WorkflowResult.
    """
    with log_context(project=config.project):
        if data is None:
            data = prepare_data(config)

        formula = build_formula(config.formula, list(data.columns))
        steps = [build_step(step) for step in config.recipe]
        spec = build_spec(config.model)
        log.info("Workflow configured", formula=str(formula), model=str(spec))

        split = initial_split(
            data,
            prop=config.split.prop,
            seed=config.split.seed,
            strata=config.split.strata,
            breaks=config.split.breaks,
        )

        tuning_result = None
        best_params = None
        metrics = None
        if config.tuning is not None:
            tuning = config.tuning
            folds = vfold_cv(
                split.training(),
                v=config.split.folds,
                seed=config.split.seed,
                strata=config.split.strata,
                breaks=config.split.breaks,
            )
            if tuning.regular is not None:
                grid = regular_grid(
                    dict(tuning.regular.ranges),
                    tuning.regular.levels,
                    log10=tuple(tuning.regular.log10),
                    integer=tuple(tuning.regular.integer),
                )
            else:
                grid = expand_grid(dict(tuning.grid))
            tuning_result = tune_grid(
                spec,
                formula,
                split.training(),
                folds,
                grid,
                metrics=tuning.metrics,
                steps=steps,
                n_jobs=tuning.n_jobs,
            )
            best_params = select_best(
                tuning_result,
                direction=tuning.direction.value if tuning.direction else None,
            )
            spec = finalize_model(spec, best_params)
            metrics = list(tuning.metrics)

        final = last_fit(spec, formula, split, steps, metrics=metrics)
        result = WorkflowResult(
            spec=spec,
            last_fit=final,
            tuning=tuning_result,
            best_params=best_params,
        )

        if save:
            result.model_path = final.fitted.save(
                config.models_dir / f"{config.project}.joblib"
            )
            predictions_path = config.predictions_dir / "test_predictions.csv"
            predictions_path.parent.mkdir(parents=True, exist_ok=True)
            final.predictions.to_csv(predictions_path, index=False)
            result.predictions_path = predictions_path
            log.info("Saved test predictions", path=str(predictions_path))

        return result
