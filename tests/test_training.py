"""Tests for the GLM sweeps and the model trainer."""

from pathlib import Path
from typing import Any

import pytest

from censusfit.cluster import Frame
from censusfit.config.loader import load_config
from censusfit.config.settings import DEFAULT_PREDICTORS as PREDICTORS
from censusfit.config.settings import WorkflowConfig
from censusfit.modeling.glm import GLMModel
from censusfit.modeling.training import (
    COMBINED_GLM_ID,
    ModelTrainer,
    elastic_net_grid,
    fit_combined_glm,
    single_predictor_sweep,
)


class TestSinglePredictorSweep:
    """Tests for one GLM per predictor."""

    def test_one_model_per_predictor(self, census_frames: tuple[Frame, Frame]) -> None:
        """Test model ids and table order."""
        train, test = census_frames
        result = single_predictor_sweep("LOG_WAGP", PREDICTORS, train, test)

        assert list(result.models) == [f"glm_{p}" for p in PREDICTORS]
        assert list(result.table["predictor"]) == PREDICTORS
        assert (result.table["test_mse"] > 0).all()
        for model_id, model in result.models.items():
            assert isinstance(model, GLMModel)
            assert model.x == [model_id.removeprefix("glm_")]

    def test_models_registered(self, census_frames: tuple[Frame, Frame]) -> None:
        """Test that sweep models are stored in the session."""
        train, test = census_frames
        single_predictor_sweep("LOG_WAGP", ["AGEP", "SEX"], train, test)
        assert train.session.get_model("glm_AGEP").x == ["AGEP"]
        assert train.session.get_model("glm_SEX").x == ["SEX"]

    def test_deviance_explained_bounds(self, census_frames: tuple[Frame, Frame]) -> None:
        """Test that every single-predictor fit explains a fraction of deviance."""
        train, test = census_frames
        table = single_predictor_sweep("LOG_WAGP", PREDICTORS, train, test).table
        assert table["deviance_explained"].between(-1e-9, 1 + 1e-9).all()


class TestCombinedGLM:
    """Tests for the GLM on all predictors."""

    def test_default_id_and_validation(self, census_frames: tuple[Frame, Frame]) -> None:
        """Test that the combined model tracks the test frame as validation frame."""
        train, test = census_frames
        model = fit_combined_glm("LOG_WAGP", PREDICTORS, train, test)

        assert model.model_id == COMBINED_GLM_ID
        assert model.validation_frame == test.key
        assert model.mse(valid=True) == pytest.approx(model.model_performance(test).mse)

    def test_beats_single_predictors_on_training(
        self, census_frames: tuple[Frame, Frame]
    ) -> None:
        """Test that adding predictors never lowers training deviance explained."""
        train, test = census_frames
        sweep = single_predictor_sweep("LOG_WAGP", PREDICTORS, train, test)
        combined = fit_combined_glm("LOG_WAGP", PREDICTORS, train)
        assert combined.deviance_explained() >= sweep.table["deviance_explained"].max()


class TestElasticNetGrid:
    """Tests for the alpha x lambda grid."""

    def test_grid_ids_and_sorting(self, census_frames: tuple[Frame, Frame]) -> None:
        """Test that the grid has one model per cell, sorted by test MSE."""
        train, test = census_frames
        result = elastic_net_grid(
            "LOG_WAGP", PREDICTORS, train, test, alphas=[0.0, 0.5, 1.0], lambdas=[0.001, 0.1]
        )

        assert set(result.models) == {
            "glm_enet_a0_l0.001",
            "glm_enet_a0_l0.1",
            "glm_enet_a0.5_l0.001",
            "glm_enet_a0.5_l0.1",
            "glm_enet_a1_l0.001",
            "glm_enet_a1_l0.1",
        }
        assert len(result.table) == 6
        assert result.table["test_mse"].is_monotonic_increasing
        assert set(result.table["lambda"]) == {0.001, 0.1}

    def test_overrides_alpha_and_lambda(self, census_frames: tuple[Frame, Frame]) -> None:
        """Test that grid cells ignore alpha and lambda from the shared parameters."""
        train, test = census_frames
        result = elastic_net_grid(
            "LOG_WAGP",
            ["AGEP", "WKHP"],
            train,
            test,
            alphas=[1.0],
            lambdas=[0.01],
            alpha=0.0,
            lambda_=5.0,
        )
        model = result.models["glm_enet_a1_l0.01"]
        assert model.params["alpha"] == 1.0
        assert model.params["lambda"] == 0.01

    def test_lambda_search(self, census_frames: tuple[Frame, Frame]) -> None:
        """Test one searched model per alpha."""
        train, test = census_frames
        result = elastic_net_grid(
            "LOG_WAGP",
            PREDICTORS,
            train,
            test,
            alphas=[0.5, 1.0],
            lambda_search=True,
            nlambda=8,
        )

        assert set(result.models) == {"glm_enet_a0.5_lsearch", "glm_enet_a1_lsearch"}
        for model in result.models.values():
            assert len(model.regularization_path()) == 8
            assert model.validation_frame == test.key


class TestModelTrainer:
    """Tests for the configuration-driven trainer."""

    @pytest.fixture
    def trainer(self, workflow_config_file: Path) -> ModelTrainer:
        """Trainer over the small test configuration."""
        return ModelTrainer(load_config(workflow_config_file))

    def test_columns(self, trainer: ModelTrainer) -> None:
        """Test response and predictors come from the configuration."""
        assert trainer.response == "LOG_WAGP"
        assert trainer.predictors == PREDICTORS

    def test_train_non_glm_families(
        self, trainer: ModelTrainer, census_frames: tuple[Frame, Frame]
    ) -> None:
        """Test that train builds every enabled family except the GLM."""
        train, test = census_frames
        models = trainer.train(train, test)

        assert list(models) == ["gbm", "drf", "deeplearning"]
        for family, model in models.items():
            assert model.model_id == family
            assert model.validation_frame == test.key
        assert models["gbm"].params["ntrees"] == 5

    def test_train_selected_families(
        self, trainer: ModelTrainer, census_frames: tuple[Frame, Frame]
    ) -> None:
        """Test training an explicit family list."""
        train, test = census_frames
        models = trainer.train(train, test, families=["drf"])
        assert list(models) == ["drf"]
        assert "drf" in trainer.models

    def test_grid_from_config(
        self,
        trainer: ModelTrainer,
        census_frames: tuple[Frame, Frame],
        workflow_config_dict: dict[str, Any],
    ) -> None:
        """Test that the grid uses the configured alphas and lambdas."""
        train, test = census_frames
        result = trainer.grid(train, test)
        grid = workflow_config_dict["models"]["elastic_net"]
        assert len(result.models) == len(grid["alphas"]) * len(grid["lambdas"])

    def test_grid_with_default_config(self, census_frames: tuple[Frame, Frame]) -> None:
        """Test the grid under an unmodified configuration, GLM options included."""
        train, test = census_frames
        config = WorkflowConfig(project="defaults")
        grid = config.models.elastic_net

        result = ModelTrainer(config).grid(train, test)

        assert len(result.models) == len(grid.alphas) * len(grid.lambdas)
        assert sorted(result.table["alpha"].unique()) == sorted(grid.alphas)
        for model in result.models.values():
            assert not model.params["lambda_search"]

    def test_grid_lambda_search_from_config(
        self, census_frames: tuple[Frame, Frame]
    ) -> None:
        """Test that the grid's lambda search takes precedence over the GLM options."""
        train, test = census_frames
        config = WorkflowConfig.model_validate({
            "project": "search",
            "models": {
                "glm": {"lambda_search": False, "nlambda": 50},
                "elastic_net": {"alphas": [0.5], "lambda_search": True, "nlambda": 5},
            },
        })

        result = ModelTrainer(config).grid(train, test)

        assert list(result.models) == ["glm_enet_a0.5_lsearch"]
        assert result.models["glm_enet_a0.5_lsearch"].params["nlambda"] == 5
