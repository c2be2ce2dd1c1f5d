"""
Gaussian generalized linear model.

Penalized least squares with the elastic-net objective

    (1 / 2N) · RSS + λ · (α · ‖β‖₁ + (1 - α) / 2 · ‖β‖²)

with an unpenalized intercept. λ = 0 is ordinary least squares. Numeric
predictors are standardized before fitting when `standardize=True` and the
coefficients are mapped back to the original scale. Categorical
predictors use reference coding (first level dropped).
"""

from typing import Any, ClassVar

import numpy as np
import pandas as pd
from sklearn.compose import ColumnTransformer
from sklearn.linear_model import ElasticNet, LinearRegression, Ridge, TweedieRegressor

from censusfit.errors import ConfigurationError, UnsupportedDiagnosticError
from censusfit.evaluation.metrics import (
    GLMRegressionMetrics,
    compute_glm_metrics,
)
from censusfit.modeling.base import METRIC_DIAGNOSTICS, Model, ModelEstimator, TrainingData
from censusfit.modeling.preprocessing import (
    CategoricalEncoding,
    build_design,
    design_feature_names,
    standardize_columns,
)
from censusfit.utils.logging import get_logger

log = get_logger(__name__)

FAMILIES = {"gaussian"}
LINKS = {"identity", "log"}

# Floor on alpha when computing the largest useful lambda for ridge paths
MIN_ALPHA_FOR_LAMBDA_MAX = 1e-3


class GLMModel(Model):
    """Trained Gaussian GLM."""

    algo = "glm"
    DIAGNOSTICS: ClassVar[frozenset[str]] = METRIC_DIAGNOSTICS | {
        "aic",
        "null_deviance",
        "residual_deviance",
        "deviance_explained",
        "coef",
        "coef_norm",
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
        design: ColumnTransformer,
        feature_names: list[str],
        intercept: float,
        coefficients: np.ndarray,
        intercept_norm: float,
        coefficients_norm: np.ndarray,
        link: str,
        y_train_mean: float,
        lambda_best: float,
        path: pd.DataFrame | None = None,
    ) -> None:
        """Initialize a trained GLM (created by GLMEstimator)."""
        super().__init__(model_id, params, x, y, numeric, categorical)
        self.design = design
        self.feature_names = feature_names
        self.intercept = intercept
        self.coefficients = coefficients
        self.intercept_norm = intercept_norm
        self.coefficients_norm = coefficients_norm
        self.link = link
        self.y_train_mean = y_train_mean
        self.lambda_best = lambda_best
        self._path = path

    @property
    def rank(self) -> int:
        """Non-zero coefficients including the intercept."""
        return int(np.count_nonzero(self.coefficients)) + 1

    def _predict_array(self, X: pd.DataFrame) -> np.ndarray:
        eta = self.design.transform(X) @ self.coefficients + self.intercept
        return np.exp(eta) if self.link == "log" else eta

    def _compute_metrics(self, y_true: np.ndarray, y_pred: np.ndarray) -> GLMRegressionMetrics:
        return compute_glm_metrics(y_true, y_pred, self.y_train_mean, self.rank)

    def _model_diagnostic(self, name: str) -> Any:
        if name == "coef":
            return {
                "Intercept": self.intercept,
                **dict(zip(self.feature_names, self.coefficients.tolist(), strict=True)),
            }
        if name == "coef_norm":
            return {
                "Intercept": self.intercept_norm,
                **dict(zip(self.feature_names, self.coefficients_norm.tolist(), strict=True)),
            }
        raise UnsupportedDiagnosticError(self.algo, name)

    def diagnostic(self, name: str, *, valid: bool = False) -> Any:
        """Get a named diagnostic, including the GLM deviance statistics."""
        if name in {"aic", "null_deviance", "residual_deviance"}:
            return getattr(self._metrics(valid), name)
        if name == "deviance_explained":
            metrics = self._metrics(valid)
            if metrics.null_deviance == 0:
                msg = (
                    f"Deviance explained is undefined for model '{self.model_id}': "
                    "the response is constant"
                )
                raise ConfigurationError(msg)
            return metrics.deviance_explained
        return super().diagnostic(name, valid=valid)

    def regularization_path(self) -> pd.DataFrame:
        """
        Lambda path of a lambda search.

        Returns:
            One row per lambda: lambda, training/validation deviance,
            deviance explained, number of non-zero coefficients, and one
            column per coefficient on the original scale.

        Raises:
            ConfigurationError: If the model was not trained with lambda_search.
        """
        if self._path is None:
            msg = f"Model '{self.model_id}' was not trained with lambda_search"
            raise ConfigurationError(msg)
        return self._path.copy()


class GLMEstimator(ModelEstimator):
    """Builder for Gaussian GLMs."""

    algo = "glm"

    def __init__(
        self,
        model_id: str | None = None,
        *,
        family: str = "gaussian",
        link: str = "identity",
        alpha: float = 0.5,
        lambda_: float = 0.0,
        lambda_search: bool = False,
        nlambda: int = 100,
        lambda_min_ratio: float | None = None,
        standardize: bool = True,
        max_iterations: int = 10_000,
        tolerance: float = 1e-7,
        seed: int | None = None,
    ) -> None:
        """
        Initialize GLM builder.

        Args:
            model_id: Id of the model to create.
            family: Response distribution; only 'gaussian' is supported.
            link: 'identity' or 'log'.
            alpha: Elastic-net mixing (0 = ridge, 1 = lasso).
            lambda_: Fixed shrinkage; 0 disables regularization.
            lambda_search: Search a geometric lambda path instead of lambda_.
            nlambda: Number of lambdas on the path.
            lambda_min_ratio: Smallest lambda as a fraction of the largest.
            standardize: Standardize numeric predictors before fitting.
            max_iterations: Solver iteration limit.
            tolerance: Solver convergence tolerance.
            seed: Seed for the coordinate-descent solver.

        Raises:
            ConfigurationError: If the configuration is invalid.
        """
        super().__init__(model_id)
        self.family = family
        self.link = link
        self.alpha = alpha
        self.lambda_ = lambda_
        self.lambda_search = lambda_search
        self.nlambda = nlambda
        self.lambda_min_ratio = lambda_min_ratio
        self.standardize = standardize
        self.max_iterations = max_iterations
        self.tolerance = tolerance
        self.seed = seed
        self._validate()

    @property
    def params(self) -> dict[str, Any]:
        """Hyperparameters passed to the model."""
        return {
            "family": self.family,
            "link": self.link,
            "alpha": self.alpha,
            "lambda": self.lambda_,
            "lambda_search": self.lambda_search,
            "nlambda": self.nlambda,
            "lambda_min_ratio": self.lambda_min_ratio,
            "standardize": self.standardize,
            "max_iterations": self.max_iterations,
            "tolerance": self.tolerance,
            "seed": self.seed,
        }

    def _validate(self) -> None:
        if self.family not in FAMILIES:
            msg = f"Unsupported GLM family '{self.family}'. Available: {', '.join(sorted(FAMILIES))}"
            raise ConfigurationError(msg)
        if self.link not in LINKS:
            msg = f"Unsupported link '{self.link}'. Available: {', '.join(sorted(LINKS))}"
            raise ConfigurationError(msg)
        if not 0.0 <= self.alpha <= 1.0:
            msg = f"alpha must be in [0, 1], got {self.alpha}"
            raise ConfigurationError(msg)
        if self.lambda_ < 0:
            msg = f"lambda must be >= 0, got {self.lambda_}"
            raise ConfigurationError(msg)
        if self.nlambda < 1:
            msg = f"nlambda must be >= 1, got {self.nlambda}"
            raise ConfigurationError(msg)
        if self.lambda_min_ratio is not None and not 0 < self.lambda_min_ratio < 1:
            msg = f"lambda_min_ratio must be in (0, 1), got {self.lambda_min_ratio}"
            raise ConfigurationError(msg)
        if self.max_iterations < 1:
            msg = f"max_iterations must be >= 1, got {self.max_iterations}"
            raise ConfigurationError(msg)
        if self.link == "log":
            if self.lambda_search:
                msg = "lambda_search is not supported with the log link"
                raise ConfigurationError(msg)
            if self.alpha > 0 and self.lambda_ > 0:
                msg = "The log link supports only a ridge penalty (alpha=0) or lambda=0"
                raise ConfigurationError(msg)

    def _solver(self, lam: float, n_rows: int) -> Any:
        """Linear solver for one lambda on the standardized design."""
        if lam == 0:
            return LinearRegression()
        if self.alpha == 0:
            # Ridge minimizes RSS + a‖β‖²; matching (1/2N)RSS + λ/2‖β‖² needs a = Nλ
            return Ridge(alpha=lam * n_rows)
        return ElasticNet(
            alpha=lam,
            l1_ratio=self.alpha,
            max_iter=self.max_iterations,
            tol=self.tolerance,
            random_state=self.seed,
        )

    def _fit_linear(self, Xs: np.ndarray, y: np.ndarray, lam: float) -> tuple[float, np.ndarray]:
        if Xs.shape[1] == 0:
            # Every predictor collapsed to a single level: intercept-only model
            return float(np.mean(y)), np.zeros(0)
        solver = self._solver(lam, len(y))
        solver.fit(Xs, y)
        return float(solver.intercept_), np.asarray(solver.coef_, dtype=float)

    def _fit_log_link(self, Xs: np.ndarray, y: np.ndarray) -> tuple[float, np.ndarray]:
        if np.any(y <= 0):
            msg = "The log link requires a strictly positive response"
            raise ConfigurationError(msg)
        if Xs.shape[1] == 0:
            return float(np.log(np.mean(y))), np.zeros(0)
        solver = TweedieRegressor(
            power=0.0,
            link="log",
            alpha=self.lambda_,
            max_iter=self.max_iterations,
            tol=self.tolerance,
        )
        solver.fit(Xs, y)
        return float(solver.intercept_), np.asarray(solver.coef_, dtype=float)

    def _lambda_path(self, Xs: np.ndarray, y: np.ndarray) -> np.ndarray:
        """Geometric lambda path from the smallest all-zero lambda downwards."""
        n, p = Xs.shape
        if p == 0:
            return np.array([0.0])
        centered = Xs - Xs.mean(axis=0)
        lambda_max = float(
            np.max(np.abs(centered.T @ (y - y.mean())))
            / (n * max(self.alpha, MIN_ALPHA_FOR_LAMBDA_MAX))
        )
        if lambda_max <= 0:
            return np.array([0.0])

        ratio = self.lambda_min_ratio or (1e-4 if n > p else 1e-2)
        if self.nlambda == 1:
            return np.array([lambda_max])
        return lambda_max * np.geomspace(1.0, ratio, self.nlambda)

    def _fit(
        self,
        model_id: str,
        data: TrainingData,
        valid: TrainingData | None,
        n_jobs: int,
    ) -> GLMModel:
        design = build_design(
            data.numeric,
            data.categorical,
            encoding=CategoricalEncoding.REFERENCE,
        )
        X = design.fit_transform(data.X)
        names = design_feature_names(design)

        n_standardized = len(data.numeric) if self.standardize else 0
        Xs, means, scales = standardize_columns(X, n_standardized)

        def to_original(b0: float, b: np.ndarray) -> tuple[float, np.ndarray]:
            coef = b / scales
            return b0 - float(np.sum(coef * means)), coef

        path = None
        lambda_best = self.lambda_

        if self.link == "log":
            b0_norm, b_norm = self._fit_log_link(Xs, data.y)
        elif self.lambda_search:
            Xv = (design.transform(valid.X) - means) / scales if valid is not None else None
            b0_norm, b_norm, lambda_best, path = self._search(
                Xs, data.y, Xv, valid, names, to_original
            )
        else:
            b0_norm, b_norm = self._fit_linear(Xs, data.y, self.lambda_)

        intercept, coefficients = to_original(b0_norm, b_norm)

        log.debug(
            "GLM fitted",
            link=self.link,
            lambda_best=lambda_best,
            n_coefficients=len(coefficients),
            n_nonzero=int(np.count_nonzero(coefficients)),
        )

        return GLMModel(
            model_id,
            self.params,
            list(data.X.columns),
            data.response,
            data.numeric,
            data.categorical,
            design=design,
            feature_names=names,
            intercept=intercept,
            coefficients=coefficients,
            intercept_norm=b0_norm,
            coefficients_norm=b_norm,
            link=self.link,
            y_train_mean=float(np.mean(data.y)),
            lambda_best=float(lambda_best),
            path=path,
        )

    def _search(
        self,
        Xs: np.ndarray,
        y: np.ndarray,
        Xv: np.ndarray | None,
        valid: TrainingData | None,
        names: list[str],
        to_original: Any,
    ) -> tuple[float, np.ndarray, float, pd.DataFrame]:
        """Fit every lambda of the path and pick the best one."""
        lambdas = self._lambda_path(Xs, y)
        null_deviance = float(np.sum((y - y.mean()) ** 2))

        rows = []
        fits = []
        for lam in lambdas:
            b0, b = self._fit_linear(Xs, y, float(lam))
            fits.append((b0, b))
            train_dev = float(np.sum((y - (Xs @ b + b0)) ** 2))
            valid_dev = (
                float(np.sum((valid.y - (Xv @ b + b0)) ** 2)) if Xv is not None else None
            )
            intercept, coef = to_original(b0, b)
            rows.append({
                "lambda": float(lam),
                "alpha": self.alpha,
                "training_deviance": train_dev,
                "validation_deviance": valid_dev,
                "deviance_explained": 1 - train_dev / null_deviance
                if null_deviance > 0
                else float("nan"),
                "n_nonzero": int(np.count_nonzero(coef)),
                "Intercept": intercept,
                **dict(zip(names, coef.tolist(), strict=True)),
            })

        path = pd.DataFrame(rows)
        criterion = "validation_deviance" if Xv is not None else "training_deviance"
        best = int(path[criterion].to_numpy(dtype=float).argmin())
        log.info(
            "Lambda search complete",
            n_lambdas=len(lambdas),
            lambda_best=f"{lambdas[best]:.6g}",
            criterion=criterion,
        )
        b0_best, b_best = fits[best]
        return b0_best, b_best, float(lambdas[best]), path

