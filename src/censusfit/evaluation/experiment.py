"""
MLflow experiment management.

One parent run per workflow execution with a nested run per model
(parameters, training and test metrics).
"""

import math
from datetime import datetime
from pathlib import Path
from typing import Any

import mlflow

from censusfit.config.settings import WorkflowConfig
from censusfit.evaluation.metrics import RegressionMetrics
from censusfit.modeling.base import Model
from censusfit.utils.hashing import config_checksum
from censusfit.utils.logging import get_logger

log = get_logger(__name__)


def _finite(metrics: dict[str, Any], prefix: str = "") -> dict[str, float]:
    """Numeric, finite metric values with an optional name prefix."""
    return {
        f"{prefix}{name}": float(value)
        for name, value in metrics.items()
        if isinstance(value, int | float) and math.isfinite(value)
    }


class WorkflowExperiment:
    """
    MLflow tracking for a workflow run.

    Question: which model family predicts log wages best on held-out data?
    """

    def __init__(self, config: WorkflowConfig) -> None:
        """
        Initialize experiment.

        Args:
            config: Workflow configuration.
        """
        self.config = config
        self._run_id: str | None = None

    @property
    def run_id(self) -> str | None:
        """Id of the active parent run."""
        return self._run_id

    def setup(self) -> None:
        """Setup MLflow experiment."""
        mlflow.set_tracking_uri(self.config.mlflow.tracking_uri)
        mlflow.set_experiment(self.config.experiment_name)

        log.info(
            "Experiment setup",
            name=self.config.experiment_name,
            tracking_uri=self.config.mlflow.tracking_uri,
        )

    def start_run(self, run_name: str | None = None) -> str:
        """
        Start the parent MLflow run.

        Args:
            run_name: Optional run name.

        Returns:
            Run ID.
        """
        self.setup()

        tags = {
            "project": self.config.project,
            "response": self.config.columns.response,
            "config_hash": config_checksum(self.config),
        }
        run = mlflow.start_run(
            run_name=run_name or f"{self.config.project}-{datetime.now():%Y%m%d-%H%M}",
            tags=tags,
        )
        self._run_id = run.info.run_id

        mlflow.log_params({
            "n_predictors": len(self.config.columns.predictors),
            "random_group": self.config.random_group.enabled,
            "models": ",".join(self.config.models.enabled),
        })

        log.info("Started MLflow run", run_id=self._run_id)
        return self._run_id

    def end_run(self, status: str = "FINISHED") -> None:
        """End the parent MLflow run."""
        mlflow.end_run(status=status)
        log.info("Ended MLflow run", run_id=self._run_id, status=status)

    def log_model(self, model: Model, test_metrics: RegressionMetrics) -> None:
        """Log a model's parameters and metrics in a nested run."""
        with mlflow.start_run(run_name=model.model_id, nested=True):
            mlflow.set_tags({"model_id": model.model_id, "algo": model.algo})
            mlflow.log_params({
                name: str(value) for name, value in model.params.items()
            })
            if model.training_metrics is not None:
                mlflow.log_metrics(_finite(model.training_metrics.to_dict(), "train_"))
            mlflow.log_metrics(_finite(test_metrics.to_dict(), "test_"))

        log.debug("Logged model to MLflow", model_id=model.model_id)

    def log_artifact(self, path: Path, artifact_path: str | None = None) -> None:
        """Log an artifact."""
        mlflow.log_artifact(str(path), artifact_path)
