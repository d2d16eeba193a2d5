"""Tests for configured workflows, tutorials and the CLI."""

from pathlib import Path

import numpy as np
import pandas as pd
import pytest
from typer.testing import CliRunner

from modelflow.cli import app
from modelflow.config import FormulaConfig, ModelConfig, TuningConfig, WorkflowConfig, load_config
from modelflow.modeling.training import FittedModel
from modelflow.tutorials import run_flights, run_housing, run_urchins
from modelflow.tutorials.flights import prepare_flights
from modelflow.workflow import build_formula, build_spec, run_workflow

runner = CliRunner()


@pytest.fixture
def flights_tables() -> tuple[pd.DataFrame, pd.DataFrame]:
    """Synthetic flights over six weeks and weather for most hours."""
    rng = np.random.default_rng(3)
    n = 400
    hours = pd.date_range("2013-01-01 05:00", "2013-02-10 22:00", freq="h")
    time_hour = rng.choice(hours, size=n)
    origin = rng.choice(["EWR", "JFK", "LGA"], size=n)
    dep_time = rng.integers(500, 2300, size=n).astype(float)
    flights = pd.DataFrame(
        {
            "year": 2013,
            "dep_time": dep_time,
            "arr_delay": rng.normal(10, 40, size=n) + (dep_time - 1400) / 30,
            "carrier": rng.choice(["UA", "AA", "B6"], size=n),
            "flight": rng.integers(1, 3000, size=n),
            "origin": origin,
            "dest": rng.choice(["ATL", "ORD", "MIA", "LAX"], size=n),
            "air_time": rng.uniform(40, 350, size=n),
            "distance": rng.uniform(200, 2500, size=n),
            "time_hour": time_hour,
        }
    )
    flights.loc[:4, "arr_delay"] = np.nan
    weather = pd.DataFrame(
        [(o, h) for o in ["EWR", "JFK", "LGA"] for h in hours[::2]] +
        [(o, h) for o in ["EWR", "JFK", "LGA"] for h in hours[1::2][:-50]],
        columns=["origin", "time_hour"],
    ).assign(year=2013, temp=40.0)
    return flights, weather


@pytest.fixture
def housing_data() -> pd.DataFrame:
    """Small housing-shaped table."""
    rng = np.random.default_rng(5)
    n = 160
    income = rng.uniform(1, 10, size=n)
    age = rng.uniform(1, 50, size=n)
    value = 10 ** (0.1 * income - 0.002 * age + rng.normal(0, 0.05, size=n))
    return pd.DataFrame({"MedInc": income, "HouseAge": age, "MedHouseVal": value})


class TestWorkflow:
    """Tests for run_workflow."""

    def test_from_yaml(self, workflow_yaml: Path) -> None:
        """Test a full run from a YAML file."""
        config = load_config(workflow_yaml)
        result = run_workflow(config)

        assert set(result.metrics) == {"rmse", "rsq"}
        assert result.tuning is None
        assert result.model_path is not None and result.model_path.exists()
        assert result.predictions_path is not None
        predictions = pd.read_csv(result.predictions_path)
        assert len(predictions) == 30
        assert {"x1", "x2", "y", "pred"} <= set(predictions.columns)

        loaded = FittedModel.load(result.model_path)
        assert loaded.formula.predictors == ("x1", "x2")

    def test_tuned_workflow(self, regression_data: pd.DataFrame) -> None:
        """Test grid search inside a configured run."""
        config = WorkflowConfig(
            project="tuned",
            data={"source": "unused.csv"},
            formula=FormulaConfig(outcome="y"),
            split={"seed": 4, "folds": 3, "strata": "y"},
            model=ModelConfig(
                family="rand_forest",
                engine="sklearn",
                params={"n_estimators": 10, "random_state": 0, "n_jobs": 1},
                tune=["min_samples_leaf"],
            ),
            tuning=TuningConfig(grid={"min_samples_leaf": [1, 10]}, metrics=["rmse"]),
        )
        result = run_workflow(config, data=regression_data, save=False)

        assert result.best_params is not None
        assert result.best_params["min_samples_leaf"] in {1, 10}
        assert result.spec.tunable() == []
        assert list(result.metrics) == ["rmse"]
        assert result.model_path is None

    def test_build_spec_marks_tuned_parameters(self) -> None:
        """Test translation of model configuration."""
        spec = build_spec(
            ModelConfig(family="rand_forest", engine="sklearn", tune=["max_features"])
        )
        assert spec.tunable() == ["max_features"]

    def test_build_spec_unknown_family(self) -> None:
        """Test that unknown families raise KeyError."""
        with pytest.raises(KeyError, match="Unknown model family"):
            build_spec(ModelConfig(family="svm"))

    def test_build_formula_defaults_to_other_columns(self) -> None:
        """Test that predictors default to every non-outcome, non-ID column."""
        formula = build_formula(
            FormulaConfig(outcome="y", ids=["id"]), ["id", "a", "y", "b"]
        )
        assert formula.predictors == ("a", "b")
        assert formula.ids == ("id",)


class TestTutorials:
    """Tests for the worked analyses on synthetic data."""

    def test_urchins(self, urchins_data: pd.DataFrame) -> None:
        """Test predictions for both engines at initial_volume = 20."""
        result = run_urchins(urchins_data)
        predictions = result.predictions
        assert len(predictions) == 6
        assert list(predictions["engine"].unique()) == ["ols", "bayes"]
        assert (predictions["pred_lower"] <= predictions["pred"]).all()
        assert (predictions["pred"] <= predictions["pred_upper"]).all()
        assert "initial_volume:food_regime_High" in list(result.ols.tidy()["term"])

    def test_prepare_flights(self, flights_tables) -> None:
        """Test recoding, weather matching and missing-row removal."""
        flights, weather = flights_tables
        data = prepare_flights(flights, weather)
        assert list(data["arr_delay"].cat.categories) == ["late", "on_time"]
        assert not data.isna().any().any()
        assert len(data) < len(flights)
        assert isinstance(data["dest"].dtype, pd.CategoricalDtype)
        assert "temp" not in data.columns

    def test_flights(self, flights_tables) -> None:
        """Test the logistic regression scores on held-out flights."""
        flights, weather = flights_tables
        result = run_flights(flights, weather)
        assert set(result.metrics) == {"accuracy", "roc_auc"}
        assert 0.0 <= result.metrics["accuracy"] <= 1.0
        assert "pred_late" in result.predictions.columns
        assert "date_dow_Tue" in result.fitted.design_columns

    def test_flights_requires_sources(self) -> None:
        """Test that missing tables and sources raise error."""
        with pytest.raises(ValueError, match="CSV sources"):
            run_flights()

    def test_housing(self, housing_data: pd.DataFrame) -> None:
        """Test tuning and the final fit on log10 values."""
        result = run_housing(
            housing_data,
            grid={"max_features": [0.5, 1.0], "min_samples_leaf": [2, 20]},
            folds=3,
            n_estimators=10,
        )
        assert len(result.tuning.candidates) == 4
        assert set(result.best_params) == {"max_features", "min_samples_leaf"}
        assert result.final.metrics["rmse"] >= 0
        assert result.final.predictions["MedHouseVal"].max() < 2


class TestCli:
    """Tests for the command-line interface."""

    def test_run(self, workflow_yaml: Path) -> None:
        """Test the run command."""
        result = runner.invoke(app, ["run", "--config", str(workflow_yaml)])
        assert result.exit_code == 0, result.output
        assert "rmse" in result.output

    def test_run_invalid_config(self, tmp_path: Path) -> None:
        """Test that invalid configuration exits with code 1."""
        path = tmp_path / "bad.yaml"
        path.write_text("project: p\n")
        result = runner.invoke(app, ["run", "--config", str(path)])
        assert result.exit_code == 1

    def test_unknown_tutorial(self) -> None:
        """Test that unknown tutorial names exit with code 1."""
        result = runner.invoke(app, ["tutorial", "penguins"])
        assert result.exit_code == 1

    def test_predict(self, workflow_yaml: Path, tmp_path: Path) -> None:
        """Test predictions from a saved model."""
        run_result = run_workflow(load_config(workflow_yaml))
        new_data = tmp_path / "new.csv"
        pd.DataFrame({"x1": [1.0, 5.0], "x2": [0.0, 0.5]}).to_csv(new_data, index=False)
        output = tmp_path / "preds.csv"

        result = runner.invoke(
            app,
            [
                "predict",
                "--model",
                str(run_result.model_path),
                "--data",
                str(new_data),
                "--output",
                str(output),
                "--level",
                "0.9",
            ],
        )
        assert result.exit_code == 0, result.output
        predictions = pd.read_csv(output)
        assert list(predictions.columns) == ["x1", "x2", "pred", "pred_lower", "pred_upper"]

    def test_models(self) -> None:
        """Test the model listing."""
        result = runner.invoke(app, ["models"])
        assert result.exit_code == 0
        assert "linear_reg/ols" in result.output
