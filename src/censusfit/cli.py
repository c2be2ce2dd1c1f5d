"""Command-line interface for the censusfit workflow."""

from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console

if TYPE_CHECKING:
    from censusfit.config.settings import WorkflowConfig

app = typer.Typer(
    name="censusfit",
    help="Census wage regression comparison (GLM, GBM, random forest, deep learning).",
    no_args_is_help=True,
)

console = Console()

ConfigOption = Annotated[
    Path,
    typer.Option(
        "--config",
        "-c",
        help="Path to configuration YAML file.",
        exists=True,
        dir_okay=False,
    ),
]


@app.callback()
def main(
    log_level: Annotated[
        str,
        typer.Option("--log-level", "-l", help="Log level (DEBUG, INFO, WARNING, ERROR)."),
    ] = "WARNING",
    json_logs: Annotated[
        bool,
        typer.Option("--json-logs", help="Write logs as JSON lines."),
    ] = False,
) -> None:
    """Configure logging for all commands."""
    from censusfit.errors import ConfigurationError
    from censusfit.utils.logging import configure_logging

    try:
        configure_logging(level=log_level, json_output=json_logs)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from e


def _load(config: Path) -> "WorkflowConfig":
    from censusfit.config.loader import load_config

    console.print(f"[blue]Loading configuration from {config}[/blue]")
    try:
        return load_config(config)
    except ValueError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        raise typer.Exit(code=1) from e


@app.command()
def run(
    config: ConfigOption,
    no_mlflow: Annotated[
        bool,
        typer.Option("--no-mlflow", help="Disable MLflow tracking."),
    ] = False,
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Output root directory (overrides the config).",
        ),
    ] = None,
    save: Annotated[
        bool,
        typer.Option("--save/--no-save", help="Save models and tables."),
    ] = True,
) -> None:
    """Run the full workflow and print the model comparison."""
    from pandera.errors import SchemaError as ContractError
    from pandera.errors import SchemaErrors as ContractErrors
    from rich.markup import escape

    from censusfit.config.loader import disable_mlflow
    from censusfit.errors import ClusterError
    from censusfit.evaluation.comparison import print_comparison_table, print_sweep_table
    from censusfit.workflow import run_workflow

    workflow_config = _load(config)
    if no_mlflow:
        workflow_config = disable_mlflow(workflow_config)
    if output is not None:
        workflow_config = workflow_config.model_copy(
            update={"output": workflow_config.output.model_copy(update={"output_root": output})}
        )

    console.print(f"[blue]Running workflow '{workflow_config.project}'[/blue]")
    console.print(f"[dim]MLflow: {'on' if workflow_config.mlflow.enabled else 'off'}[/dim]")

    try:
        result = run_workflow(workflow_config, save_outputs=save)
    except (ClusterError, ContractError, ContractErrors, OSError) as e:
        console.print(f"[red]Workflow failed: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    console.print()
    if result.sweep is not None:
        print_sweep_table(result.sweep.table, console, "Single Predictor GLMs")
    print_comparison_table(result.comparison, console)

    if result.random_group_checksum:
        console.print(f"[dim]Random group checksum: {result.random_group_checksum}[/dim]")
    if result.output_paths:
        console.print(f"\n[green]Saved {len(result.output_paths)} files to:[/green]")
        console.print(f"  {workflow_config.reports_dir}")
        console.print(f"  {workflow_config.models_dir}")


@app.command()
def sweep(config: ConfigOption) -> None:
    """Fit one GLM per predictor and print their fit statistics."""
    from censusfit.errors import ClusterError
    from censusfit.evaluation.comparison import print_sweep_table
    from censusfit.workflow import CensusWorkflow

    workflow = CensusWorkflow(_load(config))
    try:
        train, test = workflow.import_data()
        workflow.cast_categoricals(train, test)
        result = workflow.trainer.sweep(train, test)
    except ClusterError as e:
        console.print(f"[red]Sweep failed: {e}[/red]")
        raise typer.Exit(code=1) from e
    finally:
        workflow.close()

    print_sweep_table(result.table, console, "Single Predictor GLMs")


@app.command()
def grid(config: ConfigOption) -> None:
    """Fit the elastic-net grid and print it sorted by test MSE."""
    from censusfit.errors import ClusterError
    from censusfit.evaluation.comparison import print_sweep_table
    from censusfit.workflow import CensusWorkflow

    workflow = CensusWorkflow(_load(config))
    try:
        train, test = workflow.import_data()
        workflow.cast_categoricals(train, test)
        result = workflow.trainer.grid(train, test)
    except ClusterError as e:
        console.print(f"[red]Grid failed: {e}[/red]")
        raise typer.Exit(code=1) from e
    finally:
        workflow.close()

    print_sweep_table(result.table, console, "Elastic-Net Grid")


@app.command()
def validate(config: ConfigOption) -> None:
    """Validate the train and test files against the census schema."""
    from censusfit.validation import ConsoleReporter, ValidationRunner

    console.print("[blue]Running schema validation...[/blue]")

    runner = ValidationRunner(_load(config))
    results = runner.run()

    reporter = ConsoleReporter(console)
    reporter.print_results(results)

    # Exit with appropriate code
    if any(r.schema_valid is not True for r in results):
        raise typer.Exit(code=1)


@app.command()
def version() -> None:
    """Show version information."""
    from censusfit import __version__

    console.print(f"censusfit version {__version__}")


if __name__ == "__main__":
    app()
