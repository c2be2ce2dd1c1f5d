"""
Model persistence.

Trained models are written with joblib and can be loaded into any running
session, where they are registered under their original id.
"""

from pathlib import Path

import joblib

from censusfit.cluster.session import ClusterSession
from censusfit.errors import SchemaError
from censusfit.modeling.base import Model
from censusfit.utils.logging import get_logger

log = get_logger(__name__)

MODEL_SUFFIX = ".joblib"


def save_model(model: Model, directory: Path) -> Path:
    """
    Save a trained model.

    Args:
        model: Model to save.
        directory: Output directory (created if missing).

    Returns:
        Path of the written file, named after the model id.
    """
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{model.model_id}{MODEL_SUFFIX}"
    joblib.dump(model, path)
    log.info("Saved model", model_id=model.model_id, path=str(path))
    return path


def load_model(path: Path, session: ClusterSession) -> Model:
    """
    Load a saved model and register it in a session.

    Raises:
        SchemaError: If the file is missing or does not hold a model.
    """
    if not path.is_file():
        msg = f"Model file not found: {path}"
        raise SchemaError(msg)

    model = joblib.load(path)
    if not isinstance(model, Model):
        msg = f"File '{path}' does not contain a censusfit model"
        raise SchemaError(msg)

    session.register_model(model)
    log.info("Loaded model", model_id=model.model_id, path=str(path))
    return model
