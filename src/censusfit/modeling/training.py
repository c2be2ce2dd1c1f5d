"""
Model training functionality.

Provides the GLM sweeps of the census comparison (one model per predictor,
one combined model, an elastic-net grid) and a trainer that builds every
configured model family against the same train/test frames.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from itertools import product
from typing import Any

import pandas as pd

from censusfit.cluster.frame import Frame
from censusfit.config.settings import WorkflowConfig
from censusfit.modeling.base import Model
from censusfit.modeling.glm import GLMEstimator, GLMModel
from censusfit.modeling.models import train_model
from censusfit.utils.logging import get_logger, log_context

log = get_logger(__name__)

COMBINED_GLM_ID = "glm_combined"

GRID_OWNED_PARAMS = frozenset({"alpha", "lambda_", "lambda_search", "nlambda"})


@dataclass
class SweepResult:
    """
    Models of a sweep with their summary table.

    Attributes:
        models: Model id -> trained model.
        table: One row per model (AIC, deviance explained, MSEs).
    """

    models: dict[str, Model] = field(default_factory=dict)
    table: pd.DataFrame = field(default_factory=pd.DataFrame)


def _format_number(value: float) -> str:
    """Compact number for model ids (0.5 -> '0.5', 1e-05 -> '1e-05')."""
    return f"{value:g}"


def _glm_row(model: GLMModel, test: Frame) -> dict[str, Any]:
    test_metrics = model.model_performance(test)
    return {
        "model_id": model.model_id,
        "aic": model.aic(),
        "deviance_explained": model.training_metrics.deviance_explained,
        "train_mse": model.mse(),
        "test_mse": test_metrics.mse,
        "test_r2": test_metrics.r2,
    }


def single_predictor_sweep(
    response: str,
    predictors: Sequence[str],
    train: Frame,
    test: Frame,
    **glm_params: Any,
) -> SweepResult:
    """
    Fit one Gaussian GLM per predictor.

    Args:
        response: Response column.
        predictors: Predictors, each fitted on its own (model id glm_<predictor>).
        train: Training frame.
        test: Frame the test MSE is computed on.
        **glm_params: GLMEstimator parameters.

    Returns:
        Models and a table with one row per predictor, in predictor order.
    """
    result = SweepResult()
    rows = []

    for predictor in predictors:
        model_id = f"glm_{predictor}"
        with log_context(step="single_predictor_sweep", predictor=predictor):
            model = GLMEstimator(model_id, **glm_params).train(
                x=[predictor], y=response, training_frame=train
            )
        result.models[model_id] = model
        rows.append({"predictor": predictor, **_glm_row(model, test)})

    result.table = pd.DataFrame(rows)
    log.info("Single predictor sweep complete", n_models=len(rows))
    return result


def fit_combined_glm(
    response: str,
    predictors: Sequence[str],
    train: Frame,
    test: Frame | None = None,
    model_id: str = COMBINED_GLM_ID,
    **glm_params: Any,
) -> GLMModel:
    """
    Fit one Gaussian GLM on all predictors.

    Args:
        response: Response column.
        predictors: All predictors.
        train: Training frame.
        test: Optional frame tracked as validation frame.
        model_id: Id of the model (default glm_combined).
        **glm_params: GLMEstimator parameters.

    Returns:
        Trained GLM.
    """
    with log_context(step="combined_glm"):
        return GLMEstimator(model_id, **glm_params).train(
            x=list(predictors), y=response, training_frame=train, validation_frame=test
        )


def elastic_net_grid(
    response: str,
    predictors: Sequence[str],
    train: Frame,
    test: Frame,
    alphas: Sequence[float],
    lambdas: Sequence[float] = (),
    *,
    lambda_search: bool = False,
    nlambda: int = 100,
    **glm_params: Any,
) -> SweepResult:
    """
    Fit a cartesian alpha x lambda grid of elastic-net GLMs.

    With lambda_search, one model per alpha searches its own lambda path
    and picks the lambda with the lowest test deviance; lambdas is ignored.

    Args:
        response: Response column.
        predictors: All predictors.
        train: Training frame.
        test: Frame the test MSE is computed on.
        alphas: Elastic-net mixing values.
        lambdas: Shrinkage values.
        lambda_search: Search lambda per alpha instead of using lambdas.
        nlambda: Path length for lambda_search.
        **glm_params: Further GLMEstimator parameters.

    Returns:
        Models and a table with one row per grid cell, sorted by test MSE.
    """
    glm_params = {k: v for k, v in glm_params.items() if k not in GRID_OWNED_PARAMS}
    result = SweepResult()
    rows = []

    if lambda_search:
        cells = [(alpha, None) for alpha in alphas]
    else:
        cells = list(product(alphas, lambdas))

    for alpha, lam in cells:
        lam_label = "search" if lam is None else _format_number(lam)
        model_id = f"glm_enet_a{_format_number(alpha)}_l{lam_label}"

        with log_context(step="elastic_net_grid", alpha=alpha, lambda_=lam_label):
            if lam is None:
                estimator = GLMEstimator(
                    model_id,
                    **{
                        **glm_params,
                        "alpha": alpha,
                        "lambda_search": True,
                        "nlambda": nlambda,
                    },
                )
                model = estimator.train(
                    x=list(predictors), y=response, training_frame=train, validation_frame=test
                )
            else:
                estimator = GLMEstimator(
                    model_id,
                    **{**glm_params, "alpha": alpha, "lambda_": lam, "lambda_search": False},
                )
                model = estimator.train(x=list(predictors), y=response, training_frame=train)

        result.models[model_id] = model
        rows.append({
            "alpha": alpha,
            "lambda": model.lambda_best,
            **_glm_row(model, test),
        })

    table = pd.DataFrame(rows)
    if not table.empty:
        table = table.sort_values("test_mse", ignore_index=True)
    result.table = table
    log.info("Elastic-net grid complete", n_models=len(rows))
    return result


class ModelTrainer:
    """
    Trainer for the census comparison models.

    Maps the configuration's model sections onto estimators and trains them
    against a shared train/test frame pair.
    """

    def __init__(self, config: WorkflowConfig) -> None:
        """
        Initialize trainer.

        Args:
            config: Workflow configuration.
        """
        self.config = config
        self.models: dict[str, Model] = {}

    @property
    def response(self) -> str:
        """Response column."""
        return self.config.columns.response

    @property
    def predictors(self) -> list[str]:
        """Predictor columns."""
        return list(self.config.columns.predictors)

    def sweep(self, train: Frame, test: Frame) -> SweepResult:
        """Run the single-predictor GLM sweep."""
        result = single_predictor_sweep(
            self.response,
            self.predictors,
            train,
            test,
            **self.config.models.glm.to_params(),
        )
        self.models.update(result.models)
        return result

    def combined(self, train: Frame, test: Frame) -> GLMModel:
        """Fit the GLM on all predictors."""
        model = fit_combined_glm(
            self.response,
            self.predictors,
            train,
            test,
            **self.config.models.glm.to_params(),
        )
        self.models[model.model_id] = model
        return model

    def grid(self, train: Frame, test: Frame) -> SweepResult:
        """Run the elastic-net grid."""
        grid_config = self.config.models.elastic_net
        # Grid cells set their own mixing, shrinkage and search options
        glm_params = {
            key: value
            for key, value in self.config.models.glm.to_params().items()
            if key not in GRID_OWNED_PARAMS
        }
        result = elastic_net_grid(
            self.response,
            self.predictors,
            train,
            test,
            alphas=grid_config.alphas,
            lambdas=grid_config.lambdas,
            lambda_search=grid_config.lambda_search,
            nlambda=grid_config.nlambda,
            **glm_params,
        )
        self.models.update(result.models)
        return result

    def train(
        self,
        train: Frame,
        test: Frame,
        families: list[str] | None = None,
    ) -> dict[str, Model]:
        """
        Train non-GLM model families, each with the test frame as validation frame.

        Args:
            train: Training frame.
            test: Validation frame.
            families: Families to train (default: enabled families except glm).

        Returns:
            Dictionary of family -> trained model (model id = family).
        """
        if families is None:
            families = [f for f in self.config.models.enabled if f != "glm"]

        log.info("Starting training", families=families, n_predictors=len(self.predictors))

        trained: dict[str, Model] = {}
        for family in families:
            with log_context(step=family):
                trained[family] = train_model(
                    family,
                    x=self.predictors,
                    y=self.response,
                    training_frame=train,
                    model_id=family,
                    params=self.config.models.params_for(family),
                    validation_frame=test,
                )

        self.models.update(trained)
        log.info("Training complete", n_models=len(trained))
        return trained
