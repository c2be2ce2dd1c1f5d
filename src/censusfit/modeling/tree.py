"""
Tree ensembles: gradient boosting (GBM) and distributed random forest (DRF).

Both families encode categorical predictors as integer codes and report
variable importances. GBM additionally keeps a per-tree scoring history.
"""

from typing import Any, ClassVar

import numpy as np
import pandas as pd
from sklearn.ensemble import GradientBoostingRegressor, RandomForestRegressor
from sklearn.pipeline import Pipeline

from censusfit.errors import ConfigurationError, UnsupportedDiagnosticError
from censusfit.modeling.base import (
    METRIC_DIAGNOSTICS,
    ModelEstimator,
    PipelineModel,
    TrainingData,
)
from censusfit.modeling.preprocessing import (
    CategoricalEncoding,
    build_design,
    design_feature_names,
)
from censusfit.utils.logging import get_logger

log = get_logger(__name__)

# GBM distribution -> sklearn loss
GBM_DISTRIBUTIONS = {
    "gaussian": "squared_error",
    "laplace": "absolute_error",
    "huber": "huber",
    "quantile": "quantile",
}

# Fraction of predictors tried per split when mtries=-1
DEFAULT_MTRIES_FRACTION = 1 / 3


def variable_importances(names: list[str], importances: np.ndarray) -> pd.DataFrame:
    """
    Variable importance table, most important first.

    Returns:
        DataFrame with variable, relative_importance, scaled_importance
        (relative to the largest) and percentage (share of the total).
    """
    importances = np.asarray(importances, dtype=float)
    top = importances.max() if len(importances) else 0.0
    total = importances.sum()
    table = pd.DataFrame({
        "variable": names,
        "relative_importance": importances,
        "scaled_importance": importances / top if top > 0 else np.zeros_like(importances),
        "percentage": importances / total if total > 0 else np.zeros_like(importances),
    })
    return table.sort_values("relative_importance", ascending=False, ignore_index=True)


def _tree_pipeline(data: TrainingData, regressor: Any) -> Pipeline:
    design = build_design(
        data.numeric,
        data.categorical,
        encoding=CategoricalEncoding.ORDINAL,
    )
    return Pipeline(steps=[("design", design), ("model", regressor)])


class TreeEnsembleModel(PipelineModel):
    """Trained tree ensemble."""

    DIAGNOSTICS: ClassVar[frozenset[str]] = METRIC_DIAGNOSTICS | {"varimp"}

    def _model_diagnostic(self, name: str) -> Any:
        if name == "varimp":
            design = self.pipeline.named_steps["design"]
            regressor = self.pipeline.named_steps["model"]
            return variable_importances(
                design_feature_names(design), regressor.feature_importances_
            )
        raise UnsupportedDiagnosticError(self.algo, name)


class GBMModel(TreeEnsembleModel):
    """Trained gradient boosting machine."""

    algo = "gbm"
    DIAGNOSTICS: ClassVar[frozenset[str]] = TreeEnsembleModel.DIAGNOSTICS | {
        "scoring_history"
    }

    def __init__(
        self,
        model_id: str,
        params: dict[str, Any],
        x: list[str],
        y: str,
        numeric: list[str],
        categorical: list[str],
        *,
        pipeline: Pipeline,
        history: pd.DataFrame,
    ) -> None:
        """Initialize a trained GBM (created by GBMEstimator)."""
        super().__init__(model_id, params, x, y, numeric, categorical, pipeline=pipeline)
        self._history = history

    def _model_diagnostic(self, name: str) -> Any:
        if name == "scoring_history":
            return self._history.copy()
        return super()._model_diagnostic(name)


class DRFModel(TreeEnsembleModel):
    """Trained random forest."""

    algo = "drf"


class GBMEstimator(ModelEstimator):
    """Builder for gradient boosting machines."""

    algo = "gbm"

    def __init__(
        self,
        model_id: str | None = None,
        *,
        ntrees: int = 50,
        learn_rate: float = 0.1,
        max_depth: int = 5,
        min_rows: int = 10,
        sample_rate: float = 1.0,
        distribution: str = "gaussian",
        seed: int | None = None,
    ) -> None:
        """
        Initialize GBM builder.

        Args:
            model_id: Id of the model to create.
            ntrees: Number of boosting stages.
            learn_rate: Shrinkage applied to each tree.
            max_depth: Maximum tree depth.
            min_rows: Minimum rows per leaf.
            sample_rate: Row fraction sampled per tree.
            distribution: Loss ('gaussian', 'laplace', 'huber', 'quantile').
            seed: Random seed.

        Raises:
            ConfigurationError: If the configuration is invalid.
        """
        super().__init__(model_id)
        self.ntrees = ntrees
        self.learn_rate = learn_rate
        self.max_depth = max_depth
        self.min_rows = min_rows
        self.sample_rate = sample_rate
        self.distribution = distribution
        self.seed = seed
        self._validate()

    @property
    def params(self) -> dict[str, Any]:
        """Hyperparameters passed to the model."""
        return {
            "ntrees": self.ntrees,
            "learn_rate": self.learn_rate,
            "max_depth": self.max_depth,
            "min_rows": self.min_rows,
            "sample_rate": self.sample_rate,
            "distribution": self.distribution,
            "seed": self.seed,
        }

    def _validate(self) -> None:
        if self.distribution not in GBM_DISTRIBUTIONS:
            available = ", ".join(GBM_DISTRIBUTIONS)
            msg = f"Unsupported distribution '{self.distribution}'. Available: {available}"
            raise ConfigurationError(msg)
        if self.ntrees < 1:
            msg = f"ntrees must be >= 1, got {self.ntrees}"
            raise ConfigurationError(msg)
        if not 0 < self.learn_rate <= 1:
            msg = f"learn_rate must be in (0, 1], got {self.learn_rate}"
            raise ConfigurationError(msg)
        if self.max_depth < 1:
            msg = f"max_depth must be >= 1, got {self.max_depth}"
            raise ConfigurationError(msg)
        if self.min_rows < 1:
            msg = f"min_rows must be >= 1, got {self.min_rows}"
            raise ConfigurationError(msg)
        if not 0 < self.sample_rate <= 1:
            msg = f"sample_rate must be in (0, 1], got {self.sample_rate}"
            raise ConfigurationError(msg)

    def _fit(
        self,
        model_id: str,
        data: TrainingData,
        valid: TrainingData | None,
        n_jobs: int,
    ) -> GBMModel:
        pipeline = _tree_pipeline(
            data,
            GradientBoostingRegressor(
                loss=GBM_DISTRIBUTIONS[self.distribution],
                n_estimators=self.ntrees,
                learning_rate=self.learn_rate,
                max_depth=self.max_depth,
                min_samples_leaf=self.min_rows,
                subsample=self.sample_rate,
                random_state=self.seed,
            ),
        )
        pipeline.fit(data.X, data.y)

        history = self._scoring_history(pipeline, data, valid)
        log.debug("GBM fitted", ntrees=self.ntrees, distribution=self.distribution)

        return GBMModel(
            model_id,
            self.params,
            list(data.X.columns),
            data.response,
            data.numeric,
            data.categorical,
            pipeline=pipeline,
            history=history,
        )

    @staticmethod
    def _scoring_history(
        pipeline: Pipeline,
        data: TrainingData,
        valid: TrainingData | None,
    ) -> pd.DataFrame:
        """Mean squared error after each boosting stage."""
        design = pipeline.named_steps["design"]
        regressor = pipeline.named_steps["model"]

        history = pd.DataFrame({
            "number_of_trees": np.arange(1, regressor.n_estimators_ + 1),
            "training_deviance": [
                float(np.mean((data.y - pred) ** 2))
                for pred in regressor.staged_predict(design.transform(data.X))
            ],
        })
        if valid is not None:
            history["validation_deviance"] = [
                float(np.mean((valid.y - pred) ** 2))
                for pred in regressor.staged_predict(design.transform(valid.X))
            ]
        return history


class RandomForestEstimator(ModelEstimator):
    """Builder for random forests."""

    algo = "drf"

    def __init__(
        self,
        model_id: str | None = None,
        *,
        ntrees: int = 50,
        max_depth: int = 20,
        min_rows: int = 1,
        mtries: int = -1,
        sample_rate: float = 0.632,
        seed: int | None = None,
    ) -> None:
        """
        Initialize random forest builder.

        Args:
            model_id: Id of the model to create.
            ntrees: Number of trees.
            max_depth: Maximum tree depth (0 for unlimited).
            min_rows: Minimum rows per leaf.
            mtries: Predictors tried per split (-1 for a third of them).
            sample_rate: Row fraction bootstrapped per tree.
            seed: Random seed.

        Raises:
            ConfigurationError: If the configuration is invalid.
        """
        super().__init__(model_id)
        self.ntrees = ntrees
        self.max_depth = max_depth
        self.min_rows = min_rows
        self.mtries = mtries
        self.sample_rate = sample_rate
        self.seed = seed
        self._validate()

    @property
    def params(self) -> dict[str, Any]:
        """Hyperparameters passed to the model."""
        return {
            "ntrees": self.ntrees,
            "max_depth": self.max_depth,
            "min_rows": self.min_rows,
            "mtries": self.mtries,
            "sample_rate": self.sample_rate,
            "seed": self.seed,
        }

    def _validate(self) -> None:
        if self.ntrees < 1:
            msg = f"ntrees must be >= 1, got {self.ntrees}"
            raise ConfigurationError(msg)
        if self.max_depth < 0:
            msg = f"max_depth must be >= 0, got {self.max_depth}"
            raise ConfigurationError(msg)
        if self.min_rows < 1:
            msg = f"min_rows must be >= 1, got {self.min_rows}"
            raise ConfigurationError(msg)
        if self.mtries != -1 and self.mtries < 1:
            msg = f"mtries must be -1 or >= 1, got {self.mtries}"
            raise ConfigurationError(msg)
        if not 0 < self.sample_rate <= 1:
            msg = f"sample_rate must be in (0, 1], got {self.sample_rate}"
            raise ConfigurationError(msg)

    def _fit(
        self,
        model_id: str,
        data: TrainingData,
        valid: TrainingData | None,
        n_jobs: int,
    ) -> DRFModel:
        n_predictors = len(data.X.columns)
        if self.mtries > n_predictors:
            msg = f"mtries={self.mtries} exceeds the number of predictors ({n_predictors})"
            raise ConfigurationError(msg)

        pipeline = _tree_pipeline(
            data,
            RandomForestRegressor(
                n_estimators=self.ntrees,
                max_depth=self.max_depth or None,
                min_samples_leaf=self.min_rows,
                max_features=self.mtries if self.mtries > 0 else DEFAULT_MTRIES_FRACTION,
                max_samples=self.sample_rate if self.sample_rate < 1 else None,
                random_state=self.seed,
                n_jobs=n_jobs,
            ),
        )
        pipeline.fit(data.X, data.y)
        log.debug("Random forest fitted", ntrees=self.ntrees, n_jobs=n_jobs)

        return DRFModel(
            model_id,
            self.params,
            list(data.X.columns),
            data.response,
            data.numeric,
            data.categorical,
            pipeline=pipeline,
        )
