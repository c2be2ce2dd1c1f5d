"""
Feed-forward neural network regression.

Inputs are standardized and categoricals one-hot encoded with all levels;
the response is standardized for training and mapped back for predictions.
"""

import warnings
from collections.abc import Sequence
from typing import Any

from sklearn.compose import TransformedTargetRegressor
from sklearn.exceptions import ConvergenceWarning
from sklearn.neural_network import MLPRegressor
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from censusfit.errors import ConfigurationError
from censusfit.modeling.base import ModelEstimator, PipelineModel, TrainingData
from censusfit.modeling.preprocessing import CategoricalEncoding, build_design
from censusfit.utils.logging import get_logger

log = get_logger(__name__)

# Activation -> sklearn activation
ACTIVATIONS = {
    "rectifier": "relu",
    "tanh": "tanh",
    "logistic": "logistic",
}


class DeepLearningModel(PipelineModel):
    """Trained feed-forward network."""

    algo = "deeplearning"


class DeepLearningEstimator(ModelEstimator):
    """Builder for feed-forward networks."""

    algo = "deeplearning"

    def __init__(
        self,
        model_id: str | None = None,
        *,
        hidden: Sequence[int] = (200, 200),
        epochs: int = 10,
        activation: str = "rectifier",
        l2: float = 0.0,
        seed: int | None = None,
    ) -> None:
        """
        Initialize deep learning builder.

        Args:
            model_id: Id of the model to create.
            hidden: Units per hidden layer.
            epochs: Passes over the training data.
            activation: 'rectifier', 'tanh' or 'logistic'.
            l2: L2 weight penalty.
            seed: Random seed for weight initialization and shuffling.

        Raises:
            ConfigurationError: If the configuration is invalid.
        """
        super().__init__(model_id)
        self.hidden = tuple(hidden)
        self.epochs = epochs
        self.activation = activation
        self.l2 = l2
        self.seed = seed
        self._validate()

    @property
    def params(self) -> dict[str, Any]:
        """Hyperparameters passed to the model."""
        return {
            "hidden": list(self.hidden),
            "epochs": self.epochs,
            "activation": self.activation,
            "l2": self.l2,
            "seed": self.seed,
        }

    def _validate(self) -> None:
        if self.activation not in ACTIVATIONS:
            available = ", ".join(ACTIVATIONS)
            msg = f"Unsupported activation '{self.activation}'. Available: {available}"
            raise ConfigurationError(msg)
        if not self.hidden or any(units < 1 for units in self.hidden):
            msg = f"hidden must list at least one layer of >= 1 units, got {list(self.hidden)}"
            raise ConfigurationError(msg)
        if self.epochs < 1:
            msg = f"epochs must be >= 1, got {self.epochs}"
            raise ConfigurationError(msg)
        if self.l2 < 0:
            msg = f"l2 must be >= 0, got {self.l2}"
            raise ConfigurationError(msg)

    def _fit(
        self,
        model_id: str,
        data: TrainingData,
        valid: TrainingData | None,
        n_jobs: int,
    ) -> DeepLearningModel:
        network = Pipeline(
            steps=[
                (
                    "design",
                    build_design(
                        data.numeric,
                        data.categorical,
                        encoding=CategoricalEncoding.ONE_HOT,
                        standardize=True,
                    ),
                ),
                (
                    "model",
                    MLPRegressor(
                        hidden_layer_sizes=self.hidden,
                        activation=ACTIVATIONS[self.activation],
                        alpha=self.l2,
                        max_iter=self.epochs,
                        random_state=self.seed,
                    ),
                ),
            ]
        )
        pipeline = TransformedTargetRegressor(regressor=network, transformer=StandardScaler())

        # A fixed epoch budget is expected to stop before convergence
        with warnings.catch_warnings():
            warnings.filterwarnings("ignore", category=ConvergenceWarning)
            pipeline.fit(data.X, data.y)

        log.debug(
            "Network fitted",
            hidden=list(self.hidden),
            epochs=self.epochs,
            final_loss=float(pipeline.regressor_.named_steps["model"].loss_),
        )

        return DeepLearningModel(
            model_id,
            self.params,
            list(data.X.columns),
            data.response,
            data.numeric,
            data.categorical,
            pipeline=pipeline,
        )
