"""Pytest configuration and shared fixtures."""

from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from modelflow.schemas.datasets import FOOD_REGIMES


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def urchins_data() -> pd.DataFrame:
    """Synthetic urchins table: 24 urchins per feeding regime."""
    rng = np.random.default_rng(42)
    n_per = 24
    regimes = np.repeat(FOOD_REGIMES, n_per)
    volume = rng.uniform(5, 45, size=len(regimes))
    intercepts = {"Initial": 0.03, "Low": 0.02, "High": 0.025}
    slopes = {"Initial": 0.0016, "Low": 0.0009, "High": 0.0003}
    width = np.array(
        [
            intercepts[r] + slopes[r] * v
            for r, v in zip(regimes, volume, strict=True)
        ]
    ) + rng.normal(0, 0.01, size=len(regimes))
    return pd.DataFrame(
        {
            "food_regime": pd.Categorical(regimes, categories=FOOD_REGIMES),
            "initial_volume": volume,
            "width": np.abs(width),
        }
    )


@pytest.fixture
def exact_linear_data() -> pd.DataFrame:
    """
    Eight rows satisfying y = 1 + 2x + 3 * [group == 'b'] exactly.

    Groups alternate so every split of six training rows sees both levels.
    """
    x = np.arange(1.0, 9.0)
    group = ["a", "b"] * 4
    y = 1.0 + 2.0 * x + 3.0 * (np.array(group) == "b")
    return pd.DataFrame({"x": x, "group": group, "y": y})


@pytest.fixture
def classification_data() -> pd.DataFrame:
    """Two numeric predictors and one nominal predictor with a binary outcome."""
    rng = np.random.default_rng(7)
    n = 300
    x1 = rng.normal(size=n)
    x2 = rng.normal(size=n)
    group = rng.choice(["north", "south", "east"], size=n)
    logit = 1.5 * x1 - 1.0 * x2 + 0.5 * (group == "south")
    prob = 1 / (1 + np.exp(-logit))
    outcome = np.where(rng.uniform(size=n) < prob, "late", "on_time")
    return pd.DataFrame(
        {
            "x1": x1,
            "x2": x2,
            "group": pd.Categorical(group),
            "status": pd.Categorical(outcome, categories=["late", "on_time"]),
            "row_id": np.arange(n),
        }
    )


@pytest.fixture
def regression_data() -> pd.DataFrame:
    """Noisy linear data with a skewed outcome, for resampling and tuning."""
    rng = np.random.default_rng(11)
    n = 120
    x1 = rng.uniform(0, 10, size=n)
    x2 = rng.normal(size=n)
    y = np.exp(0.2 * x1 + 0.3 * x2 + rng.normal(0, 0.2, size=n))
    return pd.DataFrame({"x1": x1, "x2": x2, "y": y})


@pytest.fixture
def workflow_yaml(tmp_path: Path, regression_data: pd.DataFrame) -> Path:
    """A workflow config pointing at a CSV of ``regression_data``."""
    csv_path = tmp_path / "data.csv"
    regression_data.to_csv(csv_path, index=False)
    config_path = tmp_path / "workflow.yaml"
    config_path.write_text(
        f"""
project: test-workflow
data:
  source: {csv_path}
formula:
  outcome: y
split:
  prop: 0.75
  seed: 1
output:
  root: {tmp_path / "output"}
"""
    )
    return config_path
