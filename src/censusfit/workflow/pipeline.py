"""
Census regression workflow.

Runs the comparison end to end against one cluster session: import the
train/test splits, cast the nominal columns, append the random-group
column, fit the GLM sweeps and the other model families, and compare
them on the test split. Steps run strictly in order; each consumes the
frames and models the previous one left in the session.
"""

from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd

from censusfit.cluster.frame import Frame, bucket_breaks
from censusfit.cluster.session import ClusterSession, init_cluster
from censusfit.config.settings import WorkflowConfig
from censusfit.evaluation.comparison import ModelComparison
from censusfit.evaluation.experiment import WorkflowExperiment
from censusfit.modeling.base import Model
from censusfit.modeling.glm import GLMModel
from censusfit.modeling.persistence import save_model
from censusfit.modeling.training import ModelTrainer, SweepResult
from censusfit.schemas.registry import SchemaRegistry
from censusfit.utils.logging import get_logger, log_context

log = get_logger(__name__)

COMPARISON_FILE = "comparison.csv"
SWEEP_FILE = "single_predictor_sweep.csv"
GRID_FILE = "elastic_net_grid.csv"


@dataclass
class WorkflowResult:
    """
    Result of a workflow run.

    Attributes:
        session: Session holding every frame and model of the run.
        train: Training frame (with the random-group column if enabled).
        test: Test frame.
        sweep: Single-predictor GLM sweep (None if GLMs are disabled).
        combined: GLM on all predictors (None if GLMs are disabled).
        grid: Elastic-net grid (None if disabled).
        models: Non-GLM models by family.
        comparison: Comparison table sorted by test MSE.
        random_group_checksum: Checksum of the random-group column.
        output_paths: Files written by the run.
    """

    session: ClusterSession
    train: Frame
    test: Frame
    sweep: SweepResult | None = None
    combined: GLMModel | None = None
    grid: SweepResult | None = None
    models: dict[str, Model] = field(default_factory=dict)
    comparison: pd.DataFrame = field(default_factory=pd.DataFrame)
    random_group_checksum: str | None = None
    output_paths: list[Path] = field(default_factory=list)


class CensusWorkflow:
    """
    Census wage regression comparison.

    Step order: import, categorical casting, random group, GLM sweep,
    combined GLM, elastic-net grid, other families, comparison.
    """

    def __init__(
        self,
        config: WorkflowConfig,
        session: ClusterSession | None = None,
    ) -> None:
        """
        Initialize workflow.

        Args:
            config: Workflow configuration.
            session: Running session to use (default: start one from config).
        """
        self.config = config
        self._session = session
        self.trainer = ModelTrainer(config)

    @property
    def session(self) -> ClusterSession:
        """Session the workflow runs against, started on first use."""
        if self._session is None:
            self._session = init_cluster(
                nthreads=self.config.cluster.nthreads,
                name=self.config.cluster.name,
            )
        return self._session

    def close(self) -> None:
        """Shut down the session if it is running."""
        if self._session is not None and self._session.is_running:
            self._session.shutdown()

    def import_data(self) -> tuple[Frame, Frame]:
        """Import the train and test splits under their configured keys."""
        paths = self.config.data_paths
        train = self.session.import_file(
            paths.resolve("train"), sep=paths.delimiter, destination_frame=paths.train_key
        )
        test = self.session.import_file(
            paths.resolve("test"), sep=paths.delimiter, destination_frame=paths.test_key
        )
        return train, test

    def cast_categoricals(self, *frames: Frame) -> None:
        """Cast the configured nominal columns to categorical on each frame."""
        categorical = self.config.columns.categorical
        if not categorical:
            return
        for frame in frames:
            frame.asfactor(categorical)
            log.debug("Cast categorical columns", frame=frame.key, columns=categorical)

    def add_random_group(self, train: Frame) -> tuple[Frame, str]:
        """
        Append the bucketed uniform column to the training frame.

        The bucket column is bound back to the training frame's key; the
        intermediate frames are removed from the session.

        Returns:
            (training frame with the new column, checksum of the column)
        """
        group = self.config.random_group
        with self.session.scratch():
            rnd = train.runif(seed=group.seed, column=group.column)
            buckets = rnd.cut(bucket_breaks(group.bucket_width))
            checksum = buckets.checksum()
            n_buckets = len(buckets.levels(group.column))
            train = self.session.assign(train.cbind(buckets), train.key)

        log.info(
            "Added random group column",
            column=group.column,
            seed=group.seed,
            n_buckets=n_buckets,
        )
        return train, checksum

    def compare(self, result: WorkflowResult) -> ModelComparison:
        """Score the combined GLM, the best grid model and every other family on test."""
        comparison = ModelComparison()
        if result.combined is not None:
            comparison.add(result.combined, result.test)
        if result.grid is not None and not result.grid.table.empty:
            best_id = result.grid.table.iloc[0]["model_id"]
            comparison.add(
                result.grid.models[best_id], result.test, label=f"{best_id} (best grid)"
            )
        for model in result.models.values():
            comparison.add(model, result.test)
        return comparison

    def run(self, *, save_outputs: bool = False) -> WorkflowResult:
        """
        Run the full workflow.

        Args:
            save_outputs: Write models and tables below the output root.

        Returns:
            WorkflowResult with frames, models and the comparison table.
        """
        log.info("Starting workflow", project=self.config.project)

        with log_context(step="import"):
            log.info("Step 1: Importing train and test splits")
            train, test = self.import_data()

        with log_context(step="asfactor"):
            log.info("Step 2: Casting categorical columns")
            self.cast_categoricals(train, test)

        result = WorkflowResult(session=self.session, train=train, test=test)

        if self.config.random_group.enabled:
            with log_context(step="random_group"):
                log.info("Step 3: Adding random group column")
                result.train, result.random_group_checksum = self.add_random_group(train)

        experiment = WorkflowExperiment(self.config) if self.config.mlflow.enabled else None
        if experiment is not None:
            experiment.start_run()

        try:
            self._fit_models(result)

            log.info("Step 8: Comparing models")
            comparison = self.compare(result)
            result.comparison = comparison.table()

            if experiment is not None:
                for entry in comparison.entries:
                    experiment.log_model(entry.model, entry.test_metrics)

            if save_outputs:
                result.output_paths = self._save_outputs(result)
                if experiment is not None:
                    for path in result.output_paths:
                        if path.suffix == ".csv":
                            experiment.log_artifact(path, "reports")
        except Exception:
            if experiment is not None:
                experiment.end_run(status="FAILED")
            raise

        if experiment is not None:
            experiment.end_run()

        log.info(
            "Workflow complete",
            n_models=len(result.session.store.model_ids()),
            best=result.comparison.iloc[0]["model_id"] if not result.comparison.empty else None,
        )
        return result

    def _fit_models(self, result: WorkflowResult) -> None:
        train, test = result.train, result.test
        enabled = self.config.models.enabled

        if "glm" in enabled:
            with log_context(step="single_predictor_sweep"):
                log.info("Step 4: Single predictor GLM sweep")
                result.sweep = self.trainer.sweep(train, test)

            with log_context(step="combined_glm"):
                log.info("Step 5: Combined GLM")
                result.combined = self.trainer.combined(train, test)

            if self.config.models.elastic_net.enabled:
                with log_context(step="elastic_net_grid"):
                    log.info("Step 6: Elastic-net grid")
                    result.grid = self.trainer.grid(train, test)

        log.info("Step 7: Training remaining model families")
        result.models = self.trainer.train(train, test)

    def _save_outputs(self, result: WorkflowResult) -> list[Path]:
        reports_dir = self.config.reports_dir
        reports_dir.mkdir(parents=True, exist_ok=True)

        SchemaRegistry.validate(result.comparison, "comparison")
        paths = []
        comparison_path = reports_dir / COMPARISON_FILE
        result.comparison.to_csv(comparison_path, index=False)
        paths.append(comparison_path)

        if result.sweep is not None:
            sweep_path = reports_dir / SWEEP_FILE
            result.sweep.table.to_csv(sweep_path, index=False)
            paths.append(sweep_path)
        if result.grid is not None:
            grid_path = reports_dir / GRID_FILE
            result.grid.table.to_csv(grid_path, index=False)
            paths.append(grid_path)

        models: list[Model] = []
        if result.combined is not None:
            models.append(result.combined)
        models.extend(result.models.values())
        paths.extend(save_model(model, self.config.models_dir) for model in models)

        log.info("Saved outputs", n_files=len(paths), reports_dir=str(reports_dir))
        return paths


def run_workflow(
    config: WorkflowConfig,
    *,
    save_outputs: bool = False,
    keep_session: bool = False,
) -> WorkflowResult:
    """
    Convenience function to run the workflow in a fresh session.

    Args:
        config: Workflow configuration.
        save_outputs: Write models and tables below the output root.
        keep_session: Leave the session running (otherwise it is shut down
            and only the tables of the result remain usable).

    Returns:
        WorkflowResult of the run.
    """
    workflow = CensusWorkflow(config)
    try:
        return workflow.run(save_outputs=save_outputs)
    finally:
        if not keep_session:
            workflow.close()
