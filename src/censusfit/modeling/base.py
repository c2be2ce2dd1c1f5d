"""
Estimator and model handle base classes.

Every model family follows one training contract:

    model = Estimator(model_id="...", **params).train(
        x=predictors, y=response, training_frame=train, validation_frame=test
    )

The returned Model is registered in the training frame's session under
its id and is never mutated afterwards; re-training with the same id
supersedes it.
"""

import time
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, ClassVar

import numpy as np
import pandas as pd

from censusfit.cluster.frame import Frame
from censusfit.cluster.store import ColumnType
from censusfit.errors import (
    ColumnNotFoundError,
    ConfigurationError,
    SchemaError,
    UnsupportedDiagnosticError,
)
from censusfit.evaluation.metrics import RegressionMetrics, compute_metrics
from censusfit.utils.logging import get_logger, log_context

log = get_logger(__name__)

# Diagnostics defined for every model family
METRIC_DIAGNOSTICS = frozenset({"mse", "rmse", "mae", "r2", "mean_residual_deviance", "nobs"})


@dataclass
class TrainingData:
    """
    Client-side view of the columns a model is trained or scored on.

    Attributes:
        X: Predictor columns.
        y: Response values (None when scoring without a response).
        numeric: Numeric predictor names.
        categorical: Categorical predictor names.
        response: Response column name.
    """

    X: pd.DataFrame
    y: np.ndarray | None
    numeric: list[str]
    categorical: list[str]
    response: str


def _require_columns(frame: Frame, columns: Sequence[str]) -> dict[str, ColumnType]:
    types = frame.types
    missing = [col for col in columns if col not in types]
    if missing:
        raise ColumnNotFoundError(frame.key, missing)
    return types


def prepare_training_data(frame: Frame, x: Sequence[str], y: str) -> TrainingData:
    """
    Validate and extract training columns from a frame.

    Rows with a missing response are skipped.

    Raises:
        ConfigurationError: If no predictors are given or the response is
            listed as a predictor.
        ColumnNotFoundError: If a predictor or the response is missing.
        SchemaError: If the response is not numeric or a predictor is a
            string column, or no rows remain.
    """
    x = list(x)
    if not x:
        msg = "At least one predictor is required"
        raise ConfigurationError(msg)
    if y in x:
        msg = f"Response '{y}' cannot also be a predictor"
        raise ConfigurationError(msg)
    if len(set(x)) != len(x):
        msg = "Predictors must be unique"
        raise ConfigurationError(msg)

    types = _require_columns(frame, [*x, y])

    if types[y] != ColumnType.NUMERIC:
        msg = (
            f"Gaussian response '{y}' must be numeric, "
            f"column is {types[y].value} in frame '{frame.key}'"
        )
        raise SchemaError(msg)

    strings = [col for col in x if types[col] == ColumnType.STRING]
    if strings:
        msg = f"String predictor(s) {', '.join(strings)} must be converted with asfactor"
        raise SchemaError(msg)

    df = frame.session.frame_data(frame.key)
    df = df.loc[df[y].notna(), [*x, y]]
    if df.empty:
        msg = f"Frame '{frame.key}' has no rows with a non-missing response '{y}'"
        raise SchemaError(msg)

    return TrainingData(
        X=df[x].reset_index(drop=True),
        y=df[y].to_numpy(dtype=float),
        numeric=[col for col in x if types[col] == ColumnType.NUMERIC],
        categorical=[col for col in x if types[col] == ColumnType.CATEGORICAL],
        response=y,
    )


class Model(ABC):
    """
    Handle to a trained model.

    Subclasses declare the diagnostics they define; requesting any other
    diagnostic raises UnsupportedDiagnosticError.
    """

    algo: ClassVar[str] = "model"
    DIAGNOSTICS: ClassVar[frozenset[str]] = METRIC_DIAGNOSTICS

    def __init__(
        self,
        model_id: str,
        params: dict[str, Any],
        x: list[str],
        y: str,
        numeric: list[str],
        categorical: list[str],
    ) -> None:
        """
        Initialize a model handle.

        Args:
            model_id: Caller-chosen model id.
            params: Hyperparameters the model was trained with.
            x: Predictor names.
            y: Response name.
            numeric: Numeric predictors (as typed in the training frame).
            categorical: Categorical predictors.
        """
        self.model_id = model_id
        self.params = params
        self.x = x
        self.y = y
        self.numeric = numeric
        self.categorical = categorical
        self.training_metrics: RegressionMetrics | None = None
        self.validation_metrics: RegressionMetrics | None = None
        self.training_frame: str | None = None
        self.validation_frame: str | None = None
        self.training_time_s = 0.0

    def __repr__(self) -> str:
        """Model representation."""
        return f"{type(self).__name__}(model_id={self.model_id!r})"

    @abstractmethod
    def _predict_array(self, X: pd.DataFrame) -> np.ndarray:
        """Predict the response for the predictor columns."""
        ...

    def _compute_metrics(self, y_true: np.ndarray, y_pred: np.ndarray) -> RegressionMetrics:
        return compute_metrics(y_true, y_pred)

    def _scoring_data(self, frame: Frame, *, with_response: bool) -> TrainingData:
        """Extract predictor (and response) columns from a frame to score."""
        columns = [*self.x, self.y] if with_response else list(self.x)
        types = _require_columns(frame, columns)

        wrong = [col for col in self.numeric if types[col] != ColumnType.NUMERIC]
        if wrong:
            msg = f"Predictor(s) {', '.join(wrong)} must be numeric in frame '{frame.key}'"
            raise SchemaError(msg)

        df = frame.session.frame_data(frame.key)
        y = None
        if with_response:
            if types[self.y] != ColumnType.NUMERIC:
                msg = f"Response '{self.y}' must be numeric in frame '{frame.key}'"
                raise SchemaError(msg)
            df = df.loc[df[self.y].notna()]
            if df.empty:
                msg = f"Frame '{frame.key}' has no rows with a non-missing response"
                raise SchemaError(msg)
            y = df[self.y].to_numpy(dtype=float)

        return TrainingData(
            X=df[self.x].reset_index(drop=True),
            y=y,
            numeric=self.numeric,
            categorical=self.categorical,
            response=self.y,
        )

    def predict(self, frame: Frame) -> Frame:
        """
        Predict the response for every row of a frame.

        Returns:
            New frame with a single 'predict' column.
        """
        data = self._scoring_data(frame, with_response=False)
        predictions = self._predict_array(data.X)
        log.debug("Predicted", model_id=self.model_id, frame=frame.key, rows=len(predictions))
        return frame.session.new_frame(
            pd.DataFrame({"predict": predictions}), prefix=f"predict_{self.model_id}"
        )

    def model_performance(self, frame: Frame) -> RegressionMetrics:
        """
        Score the model against a frame.

        Has no side effects on the session. Rows with a missing response
        are skipped.
        """
        data = self._scoring_data(frame, with_response=True)
        predictions = self._predict_array(data.X)
        return self._compute_metrics(data.y, predictions)

    def _metrics(self, valid: bool) -> RegressionMetrics:
        if valid:
            if self.validation_metrics is None:
                msg = f"Model '{self.model_id}' was trained without a validation frame"
                raise ConfigurationError(msg)
            return self.validation_metrics
        if self.training_metrics is None:
            msg = f"Model '{self.model_id}' has no training metrics"
            raise ConfigurationError(msg)
        return self.training_metrics

    def _model_diagnostic(self, name: str) -> Any:
        """Diagnostics that are properties of the model rather than a metric."""
        raise UnsupportedDiagnosticError(self.algo, name)

    def diagnostic(self, name: str, *, valid: bool = False) -> Any:
        """
        Get a named diagnostic.

        Args:
            name: Diagnostic name (e.g. 'mse', 'aic', 'coef').
            valid: Use validation metrics instead of training metrics.

        Raises:
            UnsupportedDiagnosticError: If the family does not define it.
        """
        if name not in self.DIAGNOSTICS:
            raise UnsupportedDiagnosticError(self.algo, name)
        if name in METRIC_DIAGNOSTICS:
            return getattr(self._metrics(valid), name)
        return self._model_diagnostic(name)

    def mse(self, *, valid: bool = False) -> float:
        """Mean squared error."""
        return self.diagnostic("mse", valid=valid)

    def rmse(self, *, valid: bool = False) -> float:
        """Root mean squared error."""
        return self.diagnostic("rmse", valid=valid)

    def mae(self, *, valid: bool = False) -> float:
        """Mean absolute error."""
        return self.diagnostic("mae", valid=valid)

    def r2(self, *, valid: bool = False) -> float:
        """R²."""
        return self.diagnostic("r2", valid=valid)

    def aic(self, *, valid: bool = False) -> float:
        """Akaike information criterion (GLM only)."""
        return self.diagnostic("aic", valid=valid)

    def null_deviance(self, *, valid: bool = False) -> float:
        """Null deviance (GLM only)."""
        return self.diagnostic("null_deviance", valid=valid)

    def residual_deviance(self, *, valid: bool = False) -> float:
        """Residual deviance (GLM only)."""
        return self.diagnostic("residual_deviance", valid=valid)

    def deviance_explained(self, *, valid: bool = False) -> float:
        """1 - residual / null deviance (GLM only)."""
        return self.diagnostic("deviance_explained", valid=valid)

    def coef(self) -> dict[str, float]:
        """Coefficients on the original scale (GLM only)."""
        return self.diagnostic("coef")

    def coef_norm(self) -> dict[str, float]:
        """Coefficients on the standardized scale (GLM only)."""
        return self.diagnostic("coef_norm")

    def varimp(self) -> pd.DataFrame:
        """Variable importances (tree ensembles only)."""
        return self.diagnostic("varimp")

    def scoring_history(self) -> pd.DataFrame:
        """Per-iteration training and validation deviance (GBM only)."""
        return self.diagnostic("scoring_history")

    def summary(self) -> dict[str, Any]:
        """Model id, algorithm, parameters and training metrics."""
        return {
            "model_id": self.model_id,
            "algo": self.algo,
            "x": self.x,
            "y": self.y,
            "params": self.params,
            "training_frame": self.training_frame,
            "validation_frame": self.validation_frame,
            "training_metrics": self.training_metrics.to_dict()
            if self.training_metrics
            else None,
            "validation_metrics": self.validation_metrics.to_dict()
            if self.validation_metrics
            else None,
            "training_time_s": self.training_time_s,
        }


class ModelEstimator(ABC):
    """
    Base class for model builders.

    Subclasses hold their hyperparameters, validate them on construction
    and implement `_fit`.
    """

    algo: ClassVar[str] = "model"

    def __init__(self, model_id: str | None = None) -> None:
        """
        Initialize estimator.

        Args:
            model_id: Id of the model to create (default: generated).
        """
        self.model_id = model_id

    @property
    @abstractmethod
    def params(self) -> dict[str, Any]:
        """Hyperparameters passed to the model."""
        ...

    @abstractmethod
    def _fit(
        self,
        model_id: str,
        data: TrainingData,
        valid: TrainingData | None,
        n_jobs: int,
    ) -> Model:
        """Fit the model. Implemented by subclasses."""
        ...

    def train(
        self,
        x: Sequence[str],
        y: str,
        training_frame: Frame,
        validation_frame: Frame | None = None,
    ) -> Model:
        """
        Train a model and register it in the training frame's session.

        Args:
            x: Predictor column names.
            y: Response column name.
            training_frame: Frame to train on.
            validation_frame: Optional held-out frame tracked during training.

        Returns:
            The trained model handle.

        Raises:
            ColumnNotFoundError: If a predictor or the response is missing.
            SchemaError: If column types do not fit the family.
            ConfigurationError: If the configuration is invalid.
        """
        session = training_frame.session
        if validation_frame is not None and validation_frame.session is not session:
            msg = "Training and validation frames must belong to the same session"
            raise ConfigurationError(msg)

        model_id = self.model_id or session.generate_key(self.algo)

        with log_context(model_id=model_id, algo=self.algo):
            data = prepare_training_data(training_frame, x, y)
            valid = (
                prepare_training_data(validation_frame, x, y)
                if validation_frame is not None
                else None
            )

            log.info(
                "Training model",
                training_frame=training_frame.key,
                validation_frame=validation_frame.key if validation_frame else None,
                n_rows=len(data.X),
                n_predictors=len(data.X.columns),
            )

            start = time.perf_counter()
            model = self._fit(model_id, data, valid, session.n_jobs)
            model.training_time_s = time.perf_counter() - start
            model.training_frame = training_frame.key
            model.validation_frame = validation_frame.key if validation_frame else None

            model.training_metrics = model._compute_metrics(
                data.y, model._predict_array(data.X)
            )
            if valid is not None:
                model.validation_metrics = model._compute_metrics(
                    valid.y, model._predict_array(valid.X)
                )

            session.register_model(model)
            log.info(
                "Model trained",
                training_mse=f"{model.training_metrics.mse:.4f}",
                validation_mse=f"{model.validation_metrics.mse:.4f}"
                if model.validation_metrics
                else None,
                training_time_s=f"{model.training_time_s:.2f}",
            )

        return model


class PipelineModel(Model):
    """Model backed by a fitted scikit-learn pipeline (design + regressor)."""

    def __init__(
        self,
        model_id: str,
        params: dict[str, Any],
        x: list[str],
        y: str,
        numeric: list[str],
        categorical: list[str],
        *,
        pipeline: Any,
    ) -> None:
        """Initialize a model around a fitted pipeline."""
        super().__init__(model_id, params, x, y, numeric, categorical)
        self.pipeline = pipeline

    def _predict_array(self, X: pd.DataFrame) -> np.ndarray:
        return np.asarray(self.pipeline.predict(X), dtype=float)
