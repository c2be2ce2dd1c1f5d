"""
Side-by-side comparison of trained models.

Scores every model against its held-out frame and tabulates the fit
statistics: AIC and deviance explained (GLM only), train and test MSE,
test R².
"""

from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd
from rich.console import Console
from rich.table import Table

from censusfit.cluster.frame import Frame
from censusfit.evaluation.metrics import GLMRegressionMetrics, RegressionMetrics
from censusfit.modeling.base import Model
from censusfit.utils.logging import get_logger

log = get_logger(__name__)

COMPARISON_COLUMNS = [
    "label",
    "model_id",
    "algo",
    "aic",
    "deviance_explained",
    "train_mse",
    "test_mse",
    "test_r2",
]


@dataclass
class ComparisonEntry:
    """A model scored against a held-out frame."""

    label: str
    model: Model
    test_metrics: RegressionMetrics


class ModelComparison:
    """
    Collects models and builds the comparison table.

    Models are scored when added, so the table reflects the frames as they
    were at that point.
    """

    def __init__(self) -> None:
        """Initialize an empty comparison."""
        self.entries: list[ComparisonEntry] = []

    def __len__(self) -> int:
        """Number of compared models."""
        return len(self.entries)

    def add(self, model: Model, test: Frame, label: str | None = None) -> RegressionMetrics:
        """
        Score a model against a test frame and add it.

        Args:
            model: Trained model.
            test: Held-out frame with the response column.
            label: Row label (default: model id).

        Returns:
            Test metrics of the model.
        """
        metrics = model.model_performance(test)
        self.entries.append(ComparisonEntry(label or model.model_id, model, metrics))
        log.debug("Added model to comparison", model_id=model.model_id, test_mse=metrics.mse)
        return metrics

    def table(self) -> pd.DataFrame:
        """
        Comparison table sorted by test MSE.

        AIC and deviance explained are NaN for families that do not define
        them.
        """
        rows = []
        for entry in self.entries:
            train = entry.model.training_metrics
            is_glm = isinstance(train, GLMRegressionMetrics)
            rows.append({
                "label": entry.label,
                "model_id": entry.model.model_id,
                "algo": entry.model.algo,
                "aic": train.aic if is_glm else np.nan,
                "deviance_explained": train.deviance_explained if is_glm else np.nan,
                "train_mse": train.mse if train is not None else np.nan,
                "test_mse": entry.test_metrics.mse,
                "test_r2": entry.test_metrics.r2,
            })

        df = pd.DataFrame(rows, columns=COMPARISON_COLUMNS)
        return df.sort_values("test_mse", ignore_index=True)

    def best(self) -> ComparisonEntry:
        """
        Entry with the lowest test MSE.

        Raises:
            ValueError: If no model has been added.
        """
        if not self.entries:
            msg = "No models to compare"
            raise ValueError(msg)
        return min(self.entries, key=lambda entry: entry.test_metrics.mse)

    def save(self, path: Path) -> Path:
        """Write the comparison table as CSV."""
        path.parent.mkdir(parents=True, exist_ok=True)
        self.table().to_csv(path, index=False)
        log.info("Saved comparison table", path=str(path), n_models=len(self.entries))
        return path


def _fmt(value: float, spec: str = ".4f") -> str:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return "-"
    return format(value, spec)


def print_comparison_table(
    df: pd.DataFrame,
    console: Console,
    title: str = "Model Comparison",
) -> None:
    """
    Print a comparison table to the console.

    Args:
        df: Table from ModelComparison.table().
        console: Rich console for output.
        title: Table title.
    """
    table = Table(title=title)
    table.add_column("Model", style="cyan")
    table.add_column("Algo", style="dim")
    table.add_column("AIC", style="magenta", justify="right")
    table.add_column("Dev. expl.", style="green", justify="right")
    table.add_column("Train MSE", style="yellow", justify="right")
    table.add_column("Test MSE", style="yellow", justify="right")
    table.add_column("Test R²", style="green", justify="right")

    for row in df.itertuples(index=False):
        table.add_row(
            row.label,
            row.algo,
            _fmt(row.aic, ".1f"),
            _fmt(row.deviance_explained),
            _fmt(row.train_mse),
            _fmt(row.test_mse),
            _fmt(row.test_r2),
        )

    console.print(table)


def print_sweep_table(df: pd.DataFrame, console: Console, title: str) -> None:
    """
    Print a GLM sweep or grid table to the console.

    Args:
        df: Table from single_predictor_sweep or elastic_net_grid.
        console: Rich console for output.
        title: Table title.
    """
    table = Table(title=title)
    key_columns = [col for col in ("predictor", "alpha", "lambda") if col in df.columns]
    for col in key_columns:
        table.add_column(col, style="cyan")
    table.add_column("AIC", style="magenta", justify="right")
    table.add_column("Dev. expl.", style="green", justify="right")
    table.add_column("Train MSE", style="yellow", justify="right")
    table.add_column("Test MSE", style="yellow", justify="right")

    for _, row in df.iterrows():
        keys = [
            row[col] if col == "predictor" else _fmt(row[col], ".4g") for col in key_columns
        ]
        table.add_row(
            *keys,
            _fmt(row["aic"], ".1f"),
            _fmt(row["deviance_explained"]),
            _fmt(row["train_mse"]),
            _fmt(row["test_mse"]),
        )

    console.print(table)
