"""
Estimator registry and factory.

Maps model family names to their estimator classes and default
parameters, so models can be built from configuration by name.
"""

from collections.abc import Sequence
from typing import Any

from censusfit.cluster.frame import Frame
from censusfit.errors import ConfigurationError
from censusfit.modeling.base import Model, ModelEstimator
from censusfit.modeling.deeplearning import DeepLearningEstimator
from censusfit.modeling.glm import GLMEstimator
from censusfit.modeling.tree import GBMEstimator, RandomForestEstimator
from censusfit.utils.logging import get_logger

log = get_logger(__name__)


# Estimator configurations: family -> (class, default_kwargs)
ESTIMATOR_REGISTRY: dict[str, tuple[type[ModelEstimator], dict[str, Any]]] = {
    "glm": (GLMEstimator, {"family": "gaussian", "alpha": 0.5, "lambda_": 0.0}),
    "gbm": (GBMEstimator, {"ntrees": 50, "max_depth": 5, "learn_rate": 0.1}),
    "drf": (RandomForestEstimator, {"ntrees": 50, "max_depth": 20}),
    "deeplearning": (DeepLearningEstimator, {"hidden": (200, 200), "epochs": 10}),
}

# Alternative family names
ALIASES = {
    "gradient_boosting": "gbm",
    "random_forest": "drf",
    "randomforest": "drf",
    "neural_network": "deeplearning",
    "dl": "deeplearning",
}


def resolve_family(name: str) -> str:
    """
    Canonical family name.

    Raises:
        ConfigurationError: If the family is unknown.
    """
    family = ALIASES.get(name.lower(), name.lower())
    if family not in ESTIMATOR_REGISTRY:
        available = ", ".join(ESTIMATOR_REGISTRY)
        msg = f"Unknown model family '{name}'. Available: {available}"
        raise ConfigurationError(msg)
    return family


def get_estimator(name: str, model_id: str | None = None, **kwargs: Any) -> ModelEstimator:
    """
    Get an estimator instance by family name.

    Args:
        name: Family name or alias from the registry.
        model_id: Id of the model the estimator will create.
        **kwargs: Override default parameters.

    Returns:
        Estimator instance.

    Raises:
        ConfigurationError: If the family is unknown or a parameter invalid.
    """
    family = resolve_family(name)
    estimator_class, default_kwargs = ESTIMATOR_REGISTRY[family]
    params = {**default_kwargs, **kwargs}

    log.debug("Creating estimator", family=family, model_id=model_id, params=params)
    try:
        return estimator_class(model_id, **params)
    except TypeError as e:
        msg = f"Invalid parameters for family '{family}': {e}"
        raise ConfigurationError(msg) from e


def list_estimators() -> list[str]:
    """List all available family names."""
    return list(ESTIMATOR_REGISTRY.keys())


def train_model(
    family: str,
    x: Sequence[str],
    y: str,
    training_frame: Frame,
    model_id: str | None = None,
    params: dict[str, Any] | None = None,
    validation_frame: Frame | None = None,
) -> Model:
    """
    Convenience function to build and train a single model.

    Args:
        family: Family name or alias.
        x: Predictor column names.
        y: Response column name.
        training_frame: Frame to train on.
        model_id: Id of the model to create.
        params: Family hyperparameters.
        validation_frame: Optional held-out frame.

    Returns:
        Trained model handle.
    """
    estimator = get_estimator(family, model_id, **(params or {}))
    return estimator.train(
        x=x, y=y, training_frame=training_frame, validation_frame=validation_frame
    )
