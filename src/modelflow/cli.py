"""Command-line interface for modelflow workflows."""

from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    import pandas as pd

app = typer.Typer(
    name="modelflow",
    help="Train, evaluate and tune statistical models from YAML workflows.",
    no_args_is_help=True,
)

console = Console()


def _metrics_table(title: str, metrics: dict[str, float]) -> Table:
    table = Table(title=title)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    for name, value in metrics.items():
        table.add_row(name, f"{value:.4f}")
    return table


def _frame_table(title: str, frame: "pd.DataFrame", digits: int = 4) -> Table:
    table = Table(title=title)
    for col in frame.columns:
        table.add_column(str(col))
    for row in frame.itertuples(index=False):
        table.add_row(
            *(f"{v:.{digits}f}" if isinstance(v, float) else str(v) for v in row)
        )
    return table


@app.command()
def run(
    config: Annotated[
        Path,
        typer.Option(
            "--config",
            "-c",
            help="Path to workflow YAML file.",
            exists=True,
            dir_okay=False,
        ),
    ],
    no_save: Annotated[
        bool,
        typer.Option(
            "--no-save",
            help="Do not write the fitted model and test predictions.",
        ),
    ] = False,
) -> None:
    """Run a configured workflow: load, split, (tune,) fit and score."""
    from modelflow.config.loader import load_config
    from modelflow.utils.logging import configure_logging
    from modelflow.workflow import run_workflow

    console.print(f"[blue]Loading configuration from {config}[/blue]")
    try:
        workflow_config = load_config(config)
        configure_logging(
            workflow_config.logging.level, workflow_config.logging.json_output
        )
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        raise typer.Exit(code=1) from e

    console.print(f"[blue]Running workflow '{workflow_config.project}'[/blue]")

    try:
        result = run_workflow(workflow_config, save=not no_save)
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from e
    except Exception as e:
        console.print(f"[red]Workflow failed: {e}[/red]")
        raise typer.Exit(code=1) from e

    if result.tuning is not None:
        console.print()
        console.print(
            _frame_table("Best candidates", result.tuning.show_best(n=5))
        )
        console.print(f"[green]Selected: {result.best_params}[/green]")

    console.print()
    console.print(_metrics_table(f"Test metrics ({result.spec})", result.metrics))

    if result.model_path:
        console.print(f"\n[green]Model saved to: {result.model_path}[/green]")
    if result.predictions_path:
        console.print(f"[green]Predictions saved to: {result.predictions_path}[/green]")


@app.command()
def tutorial(
    name: Annotated[
        str,
        typer.Argument(help="Tutorial to run: urchins, flights or housing."),
    ],
    flights_csv: Annotated[
        Path | None,
        typer.Option("--flights", help="Flights CSV (flights tutorial only)."),
    ] = None,
    weather_csv: Annotated[
        Path | None,
        typer.Option("--weather", help="Weather CSV (flights tutorial only)."),
    ] = None,
    n_jobs: Annotated[
        int,
        typer.Option("--jobs", "-j", help="Parallel grid evaluations (housing)."),
    ] = 1,
    log_level: Annotated[
        str,
        typer.Option("--log-level", help="Log level."),
    ] = "INFO",
) -> None:
    """Run one of the worked analyses."""
    from modelflow.tutorials import TUTORIALS, run_flights, run_housing, run_urchins
    from modelflow.utils.logging import configure_logging

    if name not in TUTORIALS:
        console.print(
            f"[red]Error: Unknown tutorial '{name}'. "
            f"Use one of: {', '.join(TUTORIALS)}[/red]"
        )
        raise typer.Exit(code=1)

    try:
        configure_logging(log_level)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from e

    console.print(f"[blue]Running tutorial: {name}[/blue]")

    try:
        if name == "urchins":
            urchins = run_urchins()
            console.print(_frame_table("Coefficients (OLS)", urchins.ols.tidy()))
            console.print(
                _frame_table("Predictions at initial_volume = 20", urchins.predictions)
            )
        elif name == "flights":
            flights = run_flights(
                flights_source=flights_csv, weather_source=weather_csv
            )
            console.print(_metrics_table("Test metrics (logistic_reg)", flights.metrics))
        else:
            housing = run_housing(n_jobs=n_jobs)
            console.print(
                _frame_table("Best candidates", housing.tuning.show_best("rmse"))
            )
            console.print(f"[green]Selected: {housing.best_params}[/green]")
            console.print(
                _metrics_table("Test metrics (rand_forest)", housing.final.metrics)
            )
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from e
    except Exception as e:
        console.print(f"[red]Tutorial failed: {e}[/red]")
        raise typer.Exit(code=1) from e


@app.command()
def predict(
    model: Annotated[
        Path,
        typer.Option(
            "--model",
            "-m",
            help="Path to a saved .joblib model.",
            exists=True,
            dir_okay=False,
        ),
    ],
    data: Annotated[
        Path,
        typer.Option(
            "--data",
            "-d",
            help="CSV with the predictor columns.",
            exists=True,
            dir_okay=False,
        ),
    ],
    output: Annotated[
        Path,
        typer.Option("--output", "-o", help="Output CSV path."),
    ],
    level: Annotated[
        float | None,
        typer.Option(
            "--level",
            help="Add confidence bounds at this level (regression only).",
        ),
    ] = None,
) -> None:
    """Append predictions of a saved model to a CSV file."""
    from modelflow.ingestion.delimited import CsvDataLoader
    from modelflow.modeling.inference import augment
    from modelflow.modeling.training import FittedModel
    from modelflow.utils.logging import configure_logging

    configure_logging()

    try:
        fitted = FittedModel.load(model)
        new_data = CsvDataLoader(data).load()
        result = augment(fitted, new_data, level=level)
    except (FileNotFoundError, TypeError) as e:
        console.print(f"[red]Error loading inputs: {e}[/red]")
        raise typer.Exit(code=1) from e
    except Exception as e:
        console.print(f"[red]Prediction failed: {e}[/red]")
        raise typer.Exit(code=1) from e

    output.parent.mkdir(parents=True, exist_ok=True)
    result.to_csv(output, index=False)
    console.print(f"[green]Wrote {len(result)} predictions to {output}[/green]")


@app.command()
def models() -> None:
    """List available model families and engines."""
    from modelflow.modeling.models import list_models

    table = Table(title="Model families")
    table.add_column("Model", style="cyan")
    for entry in list_models():
        table.add_row(entry)
    console.print(table)


if __name__ == "__main__":
    app()
