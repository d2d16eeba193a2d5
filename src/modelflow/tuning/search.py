"""
Grid search over hyperparameters with cross-validation.

For every candidate combination and every fold the specification is
finalized, fitted on the analysis rows and scored on the assessment rows.
Per-fold values are averaged per candidate and the best candidate is
selected by the metric's direction.
"""

import time
from dataclasses import dataclass, field
from typing import Any

import joblib
import numpy as np
import pandas as pd

from modelflow.evaluation.holdout import assess
from modelflow.evaluation.metrics import Direction, get_metric
from modelflow.modeling.recipe import RecipeStep
from modelflow.modeling.spec import Formula, ModelSpec
from modelflow.modeling.split import Fold
from modelflow.modeling.training import fit
from modelflow.schemas.output import TuningMetricsSchema
from modelflow.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class TuningResult:
    """
    Per-fold metric values for every candidate.

    Attributes:
        spec: The specification that was tuned.
        candidates: Parameter combinations in enumeration order.
        metrics: Long table with columns config, <params>, fold, metric, value.
        tuning_time_s: Wall-clock time of the search.
    """

    spec: ModelSpec
    candidates: list[dict[str, Any]]
    metrics: pd.DataFrame
    tuning_time_s: float = 0.0
    metric_names: list[str] = field(default_factory=list)

    @property
    def param_names(self) -> list[str]:
        """Names of the tuned parameters."""
        return list(self.candidates[0]) if self.candidates else []

    def collect_metrics(self) -> pd.DataFrame:
        """
        Aggregate per-fold values per candidate and metric.

        Returns:
            Table with config, <params>, metric, mean, n, std_err ordered by
            candidate enumeration.
        """
        grouped = self.metrics.groupby(["config", "metric"], sort=False)["value"]
        summary = grouped.agg(
            mean="mean",
            n="count",
            std_err=lambda v: float(np.std(v, ddof=1) / np.sqrt(len(v)))
            if len(v) > 1
            else np.nan,
        ).reset_index()
        params = pd.DataFrame(
            [{"config": config_label(i), **c} for i, c in enumerate(self.candidates)]
        )
        return params.merge(summary, on="config", how="right")[
            ["config", *self.param_names, "metric", "mean", "n", "std_err"]
        ]

    def show_best(
        self,
        metric: str | None = None,
        n: int = 5,
        direction: str | Direction | None = None,
    ) -> pd.DataFrame:
        """Top ``n`` candidates for a metric, best first (ties keep grid order)."""
        metric, direction = self._resolve(metric, direction)
        table = self.collect_metrics()
        table = table[table["metric"] == metric]
        ascending = direction is Direction.MINIMIZE
        return table.sort_values(
            "mean", ascending=ascending, kind="stable", na_position="last"
        ).head(n).reset_index(drop=True)

    def _resolve(
        self,
        metric: str | None,
        direction: str | Direction | None,
    ) -> tuple[str, Direction]:
        if metric is None:
            metric = self.metric_names[0]
        if metric not in self.metric_names:
            msg = f"Metric '{metric}' was not computed. Available: {self.metric_names}"
            raise KeyError(msg)
        if direction is None:
            direction = get_metric(metric).direction
        return metric, Direction(direction)


def config_label(position: int) -> str:
    """Candidate label for an enumeration position (0-based)."""
    return f"Config{position + 1:02d}"


def _evaluate_candidate(
    spec: ModelSpec,
    formula: Formula,
    data: pd.DataFrame,
    fold: Fold,
    steps: list[RecipeStep] | None,
    params: dict[str, Any],
    metrics: list[str],
) -> dict[str, float]:
    fitted = fit(spec.finalize(params), formula, fold.analysis(data), steps)
    assessment = fold.assessment(data)
    return {name: assess(fitted, assessment, name) for name in metrics}


def tune_grid(
    spec: ModelSpec,
    formula: Formula,
    data: pd.DataFrame,
    folds: list[Fold],
    grid: list[dict[str, Any]],
    metrics: str | list[str] = "rmse",
    steps: list[RecipeStep] | None = None,
    n_jobs: int = 1,
) -> TuningResult:
    """
    Evaluate every grid candidate on every fold.

    Args:
        spec: Specification with tune() markers.
        formula: Column roles.
        data: Dataset the folds index into.
        folds: Cross-validation folds.
        grid: Candidate parameter combinations; keys must equal the tunable
            parameters of ``spec``.
        metrics: Metric name or names; the first is the primary metric.
        steps: Optional recipe steps, prepped anew on each analysis set.
        n_jobs: Parallel workers (joblib). 1 runs sequentially.

    Returns:
        TuningResult with one row per (candidate, fold, metric).

    Raises:
        ValueError: If the grid is empty or its keys do not match the
            tunable parameters.
    """
    metric_names = [metrics] if isinstance(metrics, str) else list(metrics)
    for name in metric_names:
        get_metric(name)

    if not grid:
        msg = "Tuning grid is empty"
        raise ValueError(msg)
    if not folds:
        msg = "No folds to evaluate"
        raise ValueError(msg)

    tunable = set(spec.tunable())
    for candidate in grid:
        if set(candidate) != tunable:
            msg = (
                f"Grid candidate {candidate} does not match tunable parameters "
                f"{sorted(tunable)}"
            )
            raise ValueError(msg)

    log.info(
        "Starting grid search",
        model=str(spec),
        n_candidates=len(grid),
        n_folds=len(folds),
        metrics=metric_names,
        n_jobs=n_jobs,
    )
    start = time.perf_counter()

    tasks = [(i, candidate, fold) for i, candidate in enumerate(grid) for fold in folds]
    outcomes = joblib.Parallel(n_jobs=n_jobs)(
        joblib.delayed(_evaluate_candidate)(
            spec, formula, data, fold, steps, candidate, metric_names
        )
        for _, candidate, fold in tasks
    )

    rows = []
    for (i, candidate, fold), values in zip(tasks, outcomes, strict=True):
        for name, value in values.items():
            rows.append(
                {
                    "config": config_label(i),
                    **candidate,
                    "fold": fold.fold_id,
                    "metric": name,
                    "value": value,
                }
            )
    table = TuningMetricsSchema.validate(pd.DataFrame(rows))

    elapsed = time.perf_counter() - start
    result = TuningResult(
        spec=spec,
        candidates=[dict(c) for c in grid],
        metrics=table,
        tuning_time_s=elapsed,
        metric_names=metric_names,
    )
    best = select_best(result)
    log.info(
        "Grid search complete",
        tuning_time_s=round(elapsed, 2),
        best=best,
    )
    return result


def select_best(
    result: TuningResult,
    metric: str | None = None,
    direction: str | Direction | None = None,
) -> dict[str, Any]:
    """
    Candidate with the best mean metric across folds.

    Minimizes error metrics and maximizes score metrics unless ``direction``
    overrides it. Ties go to the candidate enumerated first.

    Returns:
        Parameter combination of the best candidate.
    """
    metric, direction = result._resolve(metric, direction)
    table = result.collect_metrics()
    table = table[table["metric"] == metric].reset_index(drop=True)
    means = table["mean"].to_numpy(dtype=float)
    if np.isnan(means).all():
        msg = f"All candidates have undefined '{metric}'"
        raise ValueError(msg)

    position = (
        int(np.nanargmin(means))
        if direction is Direction.MINIMIZE
        else int(np.nanargmax(means))
    )
    config = table.loc[position, "config"]
    index = int(config.removeprefix("Config")) - 1
    return dict(result.candidates[index])


def finalize_model(spec: ModelSpec, params: dict[str, Any]) -> ModelSpec:
    """Replace the tune() markers of ``spec`` with ``params``."""
    finalized = spec.finalize(params)
    finalized.check_resolved()
    return finalized
