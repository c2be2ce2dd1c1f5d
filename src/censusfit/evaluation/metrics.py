"""
Evaluation metrics for regression models.

Provides the metrics every model family reports (MSE, RMSE, MAE, R²,
mean residual deviance) and the Gaussian GLM statistics (null and
residual deviance, AIC).
"""

import math
from dataclasses import asdict, dataclass

import numpy as np
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score

from censusfit.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class RegressionMetrics:
    """
    Standard regression metrics.

    Attributes:
        mse: Mean squared error
        rmse: Root mean squared error
        mae: Mean absolute error
        r2: R² (coefficient of determination)
        mean_residual_deviance: Mean deviance per row (equals MSE for
            the Gaussian family)
        nobs: Number of scored rows
    """

    mse: float
    rmse: float
    mae: float
    r2: float
    mean_residual_deviance: float
    nobs: int

    def to_dict(self) -> dict[str, float]:
        """Convert to dictionary."""
        return asdict(self)

    def __str__(self) -> str:
        """String representation."""
        return (
            f"MSE={self.mse:.4f}, RMSE={self.rmse:.4f}, "
            f"MAE={self.mae:.4f}, R²={self.r2:.4f}, n={self.nobs}"
        )


@dataclass(frozen=True)
class GLMRegressionMetrics(RegressionMetrics):
    """
    Gaussian GLM metrics.

    Attributes:
        null_deviance: Σ(y - ȳ)² with ȳ the training mean
        residual_deviance: Σ(y - ŷ)²
        null_dof: Null degrees of freedom (n - 1)
        residual_dof: Residual degrees of freedom (n - rank)
        aic: Akaike information criterion
        rank: Number of non-zero coefficients including the intercept
    """

    null_deviance: float = 0.0
    residual_deviance: float = 0.0
    null_dof: int = 0
    residual_dof: int = 0
    aic: float = 0.0
    rank: int = 0

    @property
    def deviance_explained(self) -> float:
        """1 - residual deviance / null deviance (NaN for a constant response)."""
        if self.null_deviance == 0:
            return float("nan")
        return 1.0 - self.residual_deviance / self.null_deviance

    def __str__(self) -> str:
        """String representation."""
        return (
            f"{super().__str__()}, AIC={self.aic:.2f}, "
            f"null dev={self.null_deviance:.2f}, resid dev={self.residual_deviance:.2f}"
        )


def _validate_arrays(y_true: np.ndarray, y_pred: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    y_true = np.asarray(y_true, dtype=float).ravel()
    y_pred = np.asarray(y_pred, dtype=float).ravel()
    if len(y_true) != len(y_pred):
        msg = f"Length mismatch: {len(y_true)} targets, {len(y_pred)} predictions"
        raise ValueError(msg)
    if len(y_true) == 0:
        msg = "Cannot compute metrics on zero rows"
        raise ValueError(msg)
    return y_true, y_pred


def compute_metrics(y_true: np.ndarray, y_pred: np.ndarray) -> RegressionMetrics:
    """
    Compute regression metrics.

    Args:
        y_true: True values.
        y_pred: Predicted values.

    Returns:
        RegressionMetrics object.

    Raises:
        ValueError: If the arrays are empty or differ in length.
    """
    y_true, y_pred = _validate_arrays(y_true, y_pred)

    mse = float(mean_squared_error(y_true, y_pred))
    metrics = RegressionMetrics(
        mse=mse,
        rmse=math.sqrt(mse),
        mae=float(mean_absolute_error(y_true, y_pred)),
        r2=float(r2_score(y_true, y_pred)) if len(y_true) > 1 else float("nan"),
        mean_residual_deviance=mse,
        nobs=len(y_true),
    )

    log.debug("Computed metrics", **metrics.to_dict())
    return metrics


def gaussian_aic(residual_deviance: float, nobs: int, rank: int) -> float:
    """
    AIC of a Gaussian fit with estimated dispersion.

    AIC = n·(ln(2π·RSS/n) + 1) + 2·(rank + 1); the extra parameter is the
    dispersion. A perfect fit (RSS = 0) has AIC of -inf.
    """
    if residual_deviance <= 0:
        return float("-inf")
    return nobs * (math.log(2 * math.pi * residual_deviance / nobs) + 1) + 2 * (rank + 1)


def compute_glm_metrics(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    y_train_mean: float,
    rank: int,
) -> GLMRegressionMetrics:
    """
    Compute Gaussian GLM metrics.

    The null model predicts the training mean on any scored frame.

    Args:
        y_true: True values.
        y_pred: Predicted values.
        y_train_mean: Mean response of the training frame.
        rank: Number of non-zero coefficients including the intercept.

    Returns:
        GLMRegressionMetrics object.
    """
    base = compute_metrics(y_true, y_pred)
    y_true, y_pred = _validate_arrays(y_true, y_pred)

    null_deviance = float(np.sum((y_true - y_train_mean) ** 2))
    residual_deviance = float(np.sum((y_true - y_pred) ** 2))
    nobs = len(y_true)

    return GLMRegressionMetrics(
        **base.to_dict(),
        null_deviance=null_deviance,
        residual_deviance=residual_deviance,
        null_dof=nobs - 1,
        residual_dof=nobs - rank,
        aic=gaussian_aic(residual_deviance, nobs, rank),
        rank=rank,
    )
