"""Tests for configuration system."""

import os
import tempfile
from pathlib import Path

import pytest
from pydantic import ValidationError

from censusfit.config import (
    ClusterConfig,
    ColumnsConfig,
    DataPathsConfig,
    ElasticNetGridConfig,
    GLMConfig,
    ModelsConfig,
    WorkflowConfig,
    disable_mlflow,
    load_config,
)
from censusfit.errors import ConfigurationError


class TestClusterConfig:
    """Tests for ClusterConfig."""

    def test_defaults(self) -> None:
        """Test that all available threads are used by default."""
        config = ClusterConfig()
        assert config.nthreads == -1
        assert config.name == "censusfit"

    @pytest.mark.parametrize("nthreads", [0, -2])
    def test_invalid_nthreads(self, nthreads: int) -> None:
        """Test that zero and values below -1 are rejected."""
        with pytest.raises(ValueError, match="nthreads"):
            ClusterConfig(nthreads=nthreads)


class TestDataPathsConfig:
    """Tests for DataPathsConfig."""

    def test_resolve(self) -> None:
        """Test that file paths are resolved against data_root."""
        config = DataPathsConfig(data_root=Path("/data"))
        assert config.resolve("train") == Path("/data/adult_2013_train.csv.gz")
        assert config.resolve("test") == Path("/data/adult_2013_test.csv.gz")

    def test_multi_character_delimiter(self) -> None:
        """Test that the delimiter must be one character."""
        with pytest.raises(ValueError, match="single character"):
            DataPathsConfig(delimiter="::")

    def test_keys_must_differ(self) -> None:
        """Test that train and test frames cannot share a key."""
        with pytest.raises(ValueError, match="must differ"):
            DataPathsConfig(train_key="adult", test_key="adult")


class TestColumnsConfig:
    """Tests for ColumnsConfig."""

    def test_defaults(self) -> None:
        """Test the census column roles."""
        config = ColumnsConfig()
        assert config.response == "LOG_WAGP"
        assert len(config.predictors) == 12
        assert set(config.categorical) <= set(config.predictors)

    def test_response_as_predictor(self) -> None:
        """Test that the response cannot be a predictor."""
        with pytest.raises(ValueError, match="cannot also be a predictor"):
            ColumnsConfig(predictors=["AGEP", "LOG_WAGP"])

    def test_no_predictors(self) -> None:
        """Test that at least one predictor is required."""
        with pytest.raises(ValueError, match="At least one predictor"):
            ColumnsConfig(predictors=[])


class TestModelsConfig:
    """Tests for model hyperparameter sections."""

    def test_glm_lambda_alias(self) -> None:
        """Test that 'lambda' from YAML maps to the estimator's lambda_."""
        config = GLMConfig(**{"lambda": 0.01, "alpha": 0.0})
        assert config.lambda_ == 0.01
        assert config.to_params()["lambda_"] == 0.01
        assert "lambda" not in config.to_params()

    def test_glm_field_name(self) -> None:
        """Test that lambda_ is accepted by field name as well."""
        assert GLMConfig(lambda_=0.5).lambda_ == 0.5

    def test_invalid_alphas(self) -> None:
        """Test that grid alphas outside [0, 1] are rejected."""
        with pytest.raises(ValueError, match="alphas"):
            ElasticNetGridConfig(alphas=[0.5, 1.5])
        with pytest.raises(ValueError, match="alphas"):
            ElasticNetGridConfig(alphas=[])

    def test_invalid_lambdas(self) -> None:
        """Test that negative grid lambdas are rejected."""
        with pytest.raises(ValueError, match="lambdas"):
            ElasticNetGridConfig(lambdas=[0.1, -1.0])

    def test_unknown_family(self) -> None:
        """Test that unknown families cannot be enabled."""
        with pytest.raises(ValueError, match="Unknown model family"):
            ModelsConfig(enabled=["glm", "xgboost"])

    def test_params_for(self) -> None:
        """Test per-family estimator arguments."""
        config = ModelsConfig(deeplearning={"hidden": [32, 16], "epochs": 3})
        assert config.params_for("deeplearning")["hidden"] == [32, 16]
        assert config.params_for("gbm")["ntrees"] == 50
        assert config.params_for("drf")["mtries"] == -1


class TestWorkflowConfig:
    """Tests for derived workflow settings."""

    def test_output_paths_derived_from_project(self) -> None:
        """Test that output directories are derived from project name."""
        config = WorkflowConfig(project="adult-2013")
        assert config.models_dir == Path("./output/adult-2013/models")
        assert config.reports_dir == Path("./output/adult-2013/reports")
        assert config.experiment_name == "adult-2013"

    def test_disable_mlflow(self) -> None:
        """Test that disable_mlflow returns a copy with tracking off."""
        config = WorkflowConfig(project="p")
        disabled = disable_mlflow(config)
        assert config.mlflow.enabled is True
        assert disabled.mlflow.enabled is False
        assert disabled.project == "p"

    def test_frozen(self) -> None:
        """Test that configurations are immutable."""
        config = WorkflowConfig(project="p")
        with pytest.raises(ValidationError):
            config.project = "q"


class TestLoadConfig:
    """Tests for config loading."""

    def test_load_minimal_config(self) -> None:
        """Test loading a config that sets only the project."""
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "minimal.yaml"
            path.write_text("project: minimal\n", encoding="utf-8")

            config = load_config(path)

        assert config.project == "minimal"
        assert config.columns.response == "LOG_WAGP"
        assert config.models.enabled == ["glm", "gbm", "drf", "deeplearning"]
        assert config.random_group.seed == 123

    def test_load_full_config(self, workflow_config_file: Path) -> None:
        """Test loading the data, model and output sections."""
        config = load_config(workflow_config_file)

        assert config.project == "test-census"
        assert config.cluster.nthreads == 1
        assert config.data_paths.resolve("train").is_file()
        assert config.models.gbm.ntrees == 5
        assert config.models.deeplearning.hidden == [8]
        assert config.models.elastic_net.alphas == [0.0, 1.0]
        assert config.mlflow.enabled is False

    def test_base_config_merge(self, tmp_path: Path) -> None:
        """Test that base.yaml in the same directory is deep-merged."""
        (tmp_path / "base.yaml").write_text(
            "models:\n  gbm:\n    ntrees: 20\n    max_depth: 4\n"
            "random_group:\n  seed: 7\n",
            encoding="utf-8",
        )
        path = tmp_path / "project.yaml"
        path.write_text("project: merged\nmodels:\n  gbm:\n    ntrees: 99\n", encoding="utf-8")

        config = load_config(path)

        assert config.models.gbm.ntrees == 99
        assert config.models.gbm.max_depth == 4
        assert config.random_group.seed == 7

    def test_lambda_alias_in_yaml(self, tmp_path: Path) -> None:
        """Test that the GLM section accepts 'lambda'."""
        path = tmp_path / "glm.yaml"
        path.write_text("project: p\nmodels:\n  glm:\n    lambda: 0.05\n", encoding="utf-8")
        assert load_config(path).models.glm.lambda_ == 0.05

    def test_env_var_interpolation(self) -> None:
        """Test environment variable interpolation."""
        os.environ["TEST_CENSUS_DATA"] = "/mnt/census"
        try:
            with tempfile.TemporaryDirectory() as tmp:
                path = Path(tmp) / "env.yaml"
                path.write_text(
                    "project: env\n"
                    "data:\n  root: ${TEST_CENSUS_DATA}\n"
                    "mlflow:\n  tracking_uri: ${TEST_CENSUS_UNSET_URI:./fallback}\n",
                    encoding="utf-8",
                )
                config = load_config(path)

            assert config.data_paths.data_root == Path("/mnt/census")
            assert config.mlflow.tracking_uri == "./fallback"
        finally:
            del os.environ["TEST_CENSUS_DATA"]

    def test_missing_project(self, tmp_path: Path) -> None:
        """Test that a config without project is rejected."""
        path = tmp_path / "noproject.yaml"
        path.write_text("cluster:\n  nthreads: 1\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="project"):
            load_config(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that a missing config file is rejected."""
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "absent.yaml")

    def test_invalid_value(self, tmp_path: Path) -> None:
        """Test that invalid values surface as validation errors."""
        path = tmp_path / "bad.yaml"
        path.write_text("project: bad\ncluster:\n  nthreads: 0\n", encoding="utf-8")
        with pytest.raises(ValidationError):
            load_config(path)

    def test_shipped_configs(self) -> None:
        """Test that the project's shipped config loads with its base."""
        config_path = Path(__file__).parent.parent / "configs" / "adult-2013.yaml"
        config = load_config(config_path)

        assert config.project == "adult-2013"
        assert config.data_paths.train == Path("adult_2013_train.csv.gz")
        assert config.models.elastic_net.lambdas == [0.0001, 0.001, 0.01, 0.1]
        assert config.models.gbm.seed == 1234
