"""Tests for the Gaussian GLM."""

import math

import numpy as np
import pandas as pd
import pytest

from censusfit.cluster import ClusterSession, Frame
from censusfit.config.settings import DEFAULT_PREDICTORS as PREDICTORS
from censusfit.errors import ConfigurationError, UnsupportedDiagnosticError
from censusfit.evaluation.metrics import compute_glm_metrics, gaussian_aic
from censusfit.modeling.glm import GLMEstimator


@pytest.fixture
def linear_frame(session: ClusterSession) -> Frame:
    """Numeric frame with a noisy linear response."""
    rng = np.random.default_rng(7)
    n = 150
    df = pd.DataFrame({
        "x1": rng.normal(10, 3, n),
        "x2": rng.normal(0, 1, n),
        "x3": rng.uniform(0, 100, n),
    })
    df["y"] = 2.0 + 0.7 * df["x1"] - 1.5 * df["x2"] + 0.01 * df["x3"] + rng.normal(0, 0.5, n)
    return session.upload_frame(df, "linear")


class TestGLMFit:
    """Tests for unregularized and penalized fits."""

    def test_lambda_zero_matches_least_squares(self, linear_frame: Frame) -> None:
        """Test that lambda=0 reproduces the ordinary least-squares solution."""
        model = GLMEstimator("ols", lambda_=0.0).train(
            x=["x1", "x2", "x3"], y="y", training_frame=linear_frame
        )

        df = linear_frame.as_data_frame()
        design = np.column_stack([np.ones(len(df)), df[["x1", "x2", "x3"]].to_numpy()])
        beta, *_ = np.linalg.lstsq(design, df["y"].to_numpy(), rcond=None)

        coef = model.coef()
        assert coef["Intercept"] == pytest.approx(beta[0], abs=1e-6)
        assert coef["x1"] == pytest.approx(beta[1], abs=1e-6)
        assert coef["x2"] == pytest.approx(beta[2], abs=1e-6)
        assert coef["x3"] == pytest.approx(beta[3], abs=1e-6)

    def test_standardize_does_not_change_ols(self, linear_frame: Frame) -> None:
        """Test that standardization is undone on the reported coefficients."""
        x = ["x1", "x2", "x3"]
        standardized = GLMEstimator("std", standardize=True).train(
            x=x, y="y", training_frame=linear_frame
        )
        raw = GLMEstimator("raw", standardize=False).train(
            x=x, y="y", training_frame=linear_frame
        )
        for name, value in raw.coef().items():
            assert standardized.coef()[name] == pytest.approx(value, abs=1e-6)

    @pytest.mark.parametrize("alpha", [0.0, 0.5, 1.0])
    @pytest.mark.parametrize("lambda_", [0.0, 0.01, 1.0])
    def test_deviance_explained_in_unit_interval(
        self, linear_frame: Frame, alpha: float, lambda_: float
    ) -> None:
        """Test that training deviance explained lies in [0, 1]."""
        model = GLMEstimator(alpha=alpha, lambda_=lambda_).train(
            x=["x1", "x2", "x3"], y="y", training_frame=linear_frame
        )
        assert -1e-9 <= model.deviance_explained() <= 1 + 1e-9

    def test_lasso_shrinks_coefficients(self, linear_frame: Frame) -> None:
        """Test that a large L1 penalty zeroes every slope."""
        model = GLMEstimator("lasso", alpha=1.0, lambda_=100.0).train(
            x=["x1", "x2", "x3"], y="y", training_frame=linear_frame
        )
        coef = model.coef()
        assert coef["x1"] == 0.0
        assert coef["x2"] == 0.0
        assert coef["x3"] == 0.0
        assert model.rank == 1

    def test_categorical_reference_coding(self, census_frames: tuple[Frame, Frame]) -> None:
        """Test that a categorical predictor drops its first level."""
        train, _ = census_frames
        model = GLMEstimator("glm_SEX").train(x=["SEX"], y="LOG_WAGP", training_frame=train)

        coef = model.coef()
        assert set(coef) == {"Intercept", "SEX.2"}
        assert coef["SEX.2"] < 0

    def test_unseen_level_scores(
        self, session: ClusterSession, census_frames: tuple[Frame, Frame]
    ) -> None:
        """Test that a level absent from training scores at the reference level."""
        train, test = census_frames
        model = GLMEstimator("glm_RAC1P").train(x=["RAC1P"], y="LOG_WAGP", training_frame=train)

        scoring = session.upload_frame(
            pd.DataFrame({"RAC1P": [99], "LOG_WAGP": [10.0]}), "unseen"
        ).asfactor("RAC1P")
        predictions = model.predict(scoring).as_data_frame()["predict"]
        assert predictions.iloc[0] == pytest.approx(model.coef()["Intercept"])

    def test_full_predictor_set(self, census_frames: tuple[Frame, Frame]) -> None:
        """Test the combined model on the census predictors."""
        train, test = census_frames
        model = GLMEstimator("glm_combined").train(
            x=PREDICTORS, y="LOG_WAGP", training_frame=train, validation_frame=test
        )

        assert model.mse() > 0
        assert model.mse(valid=True) > 0
        assert 0 < model.deviance_explained() <= 1
        assert math.isfinite(model.aic())


class TestLambdaSearch:
    """Tests for lambda path search."""

    def test_path_rows(self, linear_frame: Frame) -> None:
        """Test that the path has one row per lambda in decreasing order."""
        model = GLMEstimator("search", alpha=0.5, lambda_search=True, nlambda=20).train(
            x=["x1", "x2", "x3"], y="y", training_frame=linear_frame
        )
        path = model.regularization_path()

        assert len(path) == 20
        assert path["lambda"].is_monotonic_decreasing
        assert path.iloc[0]["n_nonzero"] <= path.iloc[-1]["n_nonzero"]
        assert model.lambda_best in set(path["lambda"])
        assert {"Intercept", "x1", "x2", "x3", "training_deviance"} <= set(path.columns)

    def test_search_uses_validation_deviance(
        self, census_frames: tuple[Frame, Frame]
    ) -> None:
        """Test that the best lambda minimizes validation deviance."""
        train, test = census_frames
        model = GLMEstimator("search", alpha=1.0, lambda_search=True, nlambda=10).train(
            x=PREDICTORS, y="LOG_WAGP", training_frame=train, validation_frame=test
        )
        path = model.regularization_path()
        best = path.loc[path["validation_deviance"].idxmin(), "lambda"]
        assert model.lambda_best == pytest.approx(best)

    def test_no_path_without_search(self, linear_frame: Frame) -> None:
        """Test that a fixed-lambda model has no regularization path."""
        model = GLMEstimator("fixed").train(x=["x1"], y="y", training_frame=linear_frame)
        with pytest.raises(ConfigurationError, match="lambda_search"):
            model.regularization_path()


class TestLogLink:
    """Tests for the log link."""

    def test_recovers_coefficients(self, session: ClusterSession) -> None:
        """Test that an exact exponential response is recovered."""
        x = np.linspace(0, 2, 50)
        frame = session.upload_frame(pd.DataFrame({"x": x, "y": np.exp(0.5 + 0.8 * x)}), "exp")

        model = GLMEstimator("loglink", link="log", tolerance=1e-10).train(
            x=["x"], y="y", training_frame=frame
        )
        coef = model.coef()
        assert coef["Intercept"] == pytest.approx(0.5, abs=1e-3)
        assert coef["x"] == pytest.approx(0.8, abs=1e-3)

    def test_rejects_non_positive_response(self, session: ClusterSession) -> None:
        """Test that the log link needs a positive response."""
        frame = session.upload_frame(pd.DataFrame({"x": [1.0, 2.0], "y": [1.0, -1.0]}), "neg")
        with pytest.raises(ConfigurationError, match="strictly positive"):
            GLMEstimator(link="log").train(x=["x"], y="y", training_frame=frame)


class TestSingleLevelPredictor:
    """Tests for a categorical predictor with only one level."""

    @pytest.fixture
    def single_level_frame(self, session: ClusterSession) -> Frame:
        """Frame whose only predictor is constant."""
        df = pd.DataFrame({"SEX": [1] * 6, "y": [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]})
        return session.upload_frame(df, "single_level").asfactor("SEX")

    def test_intercept_only(self, single_level_frame: Frame) -> None:
        """Test that the fit falls back to the response mean."""
        model = GLMEstimator("glm_SEX").train(
            x=["SEX"], y="y", training_frame=single_level_frame
        )

        assert model.coef() == {"Intercept": pytest.approx(3.5)}
        predictions = model.predict(single_level_frame).as_data_frame()["predict"]
        assert predictions.tolist() == pytest.approx([3.5] * 6)
        assert model.deviance_explained() == pytest.approx(0.0)

    def test_lambda_search(self, single_level_frame: Frame) -> None:
        """Test that lambda search yields a single zero lambda."""
        model = GLMEstimator("search", lambda_search=True, nlambda=10).train(
            x=["SEX"], y="y", training_frame=single_level_frame
        )

        assert model.regularization_path()["lambda"].tolist() == [0.0]
        assert model.coef()["Intercept"] == pytest.approx(3.5)

    def test_log_link(self, single_level_frame: Frame) -> None:
        """Test that the log link intercept is the log of the mean."""
        model = GLMEstimator("loglink", link="log").train(
            x=["SEX"], y="y", training_frame=single_level_frame
        )
        assert model.coef()["Intercept"] == pytest.approx(math.log(3.5))


class TestGLMConfiguration:
    """Tests for invalid GLM configurations."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"family": "poisson"},
            {"link": "logit"},
            {"alpha": 1.5},
            {"lambda_": -0.1},
            {"nlambda": 0},
            {"lambda_min_ratio": 1.5},
            {"link": "log", "lambda_search": True},
            {"link": "log", "alpha": 0.5, "lambda_": 0.1},
        ],
    )
    def test_invalid(self, kwargs: dict) -> None:
        """Test that invalid combinations raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            GLMEstimator(**kwargs)

    def test_response_as_predictor(self, linear_frame: Frame) -> None:
        """Test that the response cannot be a predictor."""
        with pytest.raises(ConfigurationError):
            GLMEstimator().train(x=["x1", "y"], y="y", training_frame=linear_frame)

    def test_tree_diagnostic_unsupported(self, linear_frame: Frame) -> None:
        """Test that GLMs do not define variable importances."""
        model = GLMEstimator().train(x=["x1"], y="y", training_frame=linear_frame)
        with pytest.raises(UnsupportedDiagnosticError):
            model.varimp()


class TestGLMStatistics:
    """Tests for deviance and AIC statistics."""

    def test_aic_formula(self) -> None:
        """Test the Gaussian AIC with estimated dispersion."""
        expected = 10 * (math.log(2 * math.pi * 5.0 / 10) + 1) + 2 * (3 + 1)
        assert gaussian_aic(5.0, nobs=10, rank=3) == pytest.approx(expected)
        assert gaussian_aic(0.0, nobs=10, rank=3) == float("-inf")

    def test_glm_metrics(self) -> None:
        """Test deviances and degrees of freedom."""
        y = np.array([1.0, 2.0, 3.0, 4.0])
        pred = np.array([1.5, 2.0, 2.5, 4.0])
        metrics = compute_glm_metrics(y, pred, y_train_mean=2.5, rank=2)

        assert metrics.null_deviance == pytest.approx(5.0)
        assert metrics.residual_deviance == pytest.approx(0.5)
        assert metrics.deviance_explained == pytest.approx(0.9)
        assert metrics.null_dof == 3
        assert metrics.residual_dof == 2
        assert metrics.mse == pytest.approx(0.125)

    def test_model_aic_consistent(self, linear_frame: Frame) -> None:
        """Test that the model AIC follows from its residual deviance and rank."""
        model = GLMEstimator().train(x=["x1", "x2"], y="y", training_frame=linear_frame)
        expected = gaussian_aic(model.residual_deviance(), linear_frame.nrow, model.rank)
        assert model.aic() == pytest.approx(expected)
        assert model.rank == 3

    def test_constant_response(self, session: ClusterSession) -> None:
        """Test that deviance explained is undefined for a constant response."""
        frame = session.upload_frame(
            pd.DataFrame({"x": [1.0, 2.0, 3.0], "y": [4.0, 4.0, 4.0]}), "const"
        )
        model = GLMEstimator().train(x=["x"], y="y", training_frame=frame)
        with pytest.raises(ConfigurationError, match="constant"):
            model.deviance_explained()
