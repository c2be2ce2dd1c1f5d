"""
Typed configuration models using Pydantic.

All workflow settings are defined here with explicit typing and validation:
cluster, data files, column roles, the random-group column, per-family
hyperparameters, MLflow tracking and output locations.
"""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Model families the workflow can train
MODEL_FAMILIES = ("glm", "gbm", "drf", "deeplearning")

DEFAULT_CATEGORICAL = ["COW", "SCHL", "MAR", "INDP", "RELP", "RAC1P", "SEX", "POBP"]
DEFAULT_PREDICTORS = [
    "AGEP",
    *DEFAULT_CATEGORICAL,
    "WKHP",
    "LOG_CAPGAIN",
    "LOG_CAPLOSS",
]


class ClusterConfig(BaseModel):
    """Analytics cluster session configuration."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="censusfit", description="Cluster name")
    nthreads: int = Field(
        default=-1, description="Execution threads (-1 for all available)"
    )

    @field_validator("nthreads")
    @classmethod
    def validate_nthreads(cls, v: int) -> int:
        """Ensure nthreads is -1 or positive."""
        if v == 0 or v < -1:
            msg = f"nthreads must be -1 or >= 1, got {v}"
            raise ValueError(msg)
        return v


class DataPathsConfig(BaseModel):
    """Data file paths configuration.

    Paths are relative to data_root. Use resolve() to get full paths.
    """

    model_config = ConfigDict(frozen=True)

    data_root: Path = Field(
        default=Path("./data"), description="Root directory for data files"
    )
    train: Path = Field(
        default=Path("adult_2013_train.csv.gz"), description="Training split file"
    )
    test: Path = Field(
        default=Path("adult_2013_test.csv.gz"), description="Test split file"
    )
    delimiter: str = Field(default=",", description="Field delimiter")
    train_key: str = Field(
        default="adult_2013_train", description="Frame key of the training split"
    )
    test_key: str = Field(
        default="adult_2013_test", description="Frame key of the test split"
    )

    @field_validator("delimiter")
    @classmethod
    def validate_delimiter(cls, v: str) -> str:
        """Ensure the delimiter is a single character."""
        if len(v) != 1:
            msg = f"delimiter must be a single character, got {v!r}"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def validate_keys(self) -> "DataPathsConfig":
        """Ensure train and test frames get distinct keys."""
        if self.train_key == self.test_key:
            msg = f"train_key and test_key must differ, both are '{self.train_key}'"
            raise ValueError(msg)
        return self

    def resolve(self, path_attr: str) -> Path:
        """Resolve a relative path against data_root."""
        return self.data_root / getattr(self, path_attr)


class ColumnsConfig(BaseModel):
    """Column roles of the census extract."""

    model_config = ConfigDict(frozen=True)

    response: str = Field(default="LOG_WAGP", description="Gaussian response column")
    predictors: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PREDICTORS),
        description="Predictor columns, in sweep order",
    )
    categorical: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CATEGORICAL),
        description="Integer-coded nominal columns cast to categorical",
    )

    @model_validator(mode="after")
    def validate_roles(self) -> "ColumnsConfig":
        """Ensure the response is numeric and not a predictor."""
        if not self.predictors:
            msg = "At least one predictor is required"
            raise ValueError(msg)
        if self.response in self.predictors:
            msg = f"Response '{self.response}' cannot also be a predictor"
            raise ValueError(msg)
        if self.response in self.categorical:
            msg = f"Response '{self.response}' cannot be categorical"
            raise ValueError(msg)
        return self


class RandomGroupConfig(BaseModel):
    """Illustrative random-group column appended to the training frame."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True)
    column: str = Field(default="RAND_GRP", description="Name of the bucket column")
    seed: int = Field(default=123, description="Seed of the uniform draw")
    bucket_width: float = Field(default=0.01, gt=0, le=1)


class GLMConfig(BaseModel):
    """GLM hyperparameters for the sweep and the combined model."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    family: str = Field(default="gaussian")
    link: str = Field(default="identity")
    alpha: float = Field(default=0.5, ge=0, le=1, description="Elastic-net mixing")
    lambda_: float = Field(default=0.0, ge=0, alias="lambda", description="Shrinkage")
    lambda_search: bool = Field(default=False)
    nlambda: int = Field(default=100, ge=1)
    standardize: bool = Field(default=True)
    seed: int | None = Field(default=None)

    def to_params(self) -> dict[str, Any]:
        """Estimator keyword arguments."""
        return self.model_dump()


class ElasticNetGridConfig(BaseModel):
    """Alpha x lambda grid of elastic-net GLMs."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True)
    alphas: list[float] = Field(default_factory=lambda: [0.0, 0.25, 0.5, 0.75, 1.0])
    lambdas: list[float] = Field(default_factory=lambda: [1e-4, 1e-3, 1e-2, 1e-1])
    lambda_search: bool = Field(
        default=False, description="Search a lambda path per alpha instead of lambdas"
    )
    nlambda: int = Field(default=100, ge=1)

    @field_validator("alphas")
    @classmethod
    def validate_alphas(cls, v: list[float]) -> list[float]:
        """Ensure every alpha is in [0, 1]."""
        bad = [a for a in v if not 0 <= a <= 1]
        if not v or bad:
            msg = f"alphas must be a non-empty list of values in [0, 1], got {v}"
            raise ValueError(msg)
        return v

    @field_validator("lambdas")
    @classmethod
    def validate_lambdas(cls, v: list[float]) -> list[float]:
        """Ensure every lambda is non-negative."""
        if any(lam < 0 for lam in v):
            msg = f"lambdas must be >= 0, got {v}"
            raise ValueError(msg)
        return v


class GBMConfig(BaseModel):
    """Gradient boosting hyperparameters."""

    model_config = ConfigDict(frozen=True)

    ntrees: int = Field(default=50, ge=1)
    learn_rate: float = Field(default=0.1, gt=0, le=1)
    max_depth: int = Field(default=5, ge=1)
    min_rows: int = Field(default=10, ge=1)
    sample_rate: float = Field(default=1.0, gt=0, le=1)
    distribution: str = Field(default="gaussian")
    seed: int | None = Field(default=1234)

    def to_params(self) -> dict[str, Any]:
        """Estimator keyword arguments."""
        return self.model_dump()


class RandomForestConfig(BaseModel):
    """Random forest hyperparameters."""

    model_config = ConfigDict(frozen=True)

    ntrees: int = Field(default=50, ge=1)
    max_depth: int = Field(default=20, ge=0, description="0 for unlimited depth")
    min_rows: int = Field(default=1, ge=1)
    mtries: int = Field(default=-1, description="-1 for a third of the predictors")
    sample_rate: float = Field(default=0.632, gt=0, le=1)
    seed: int | None = Field(default=1234)

    def to_params(self) -> dict[str, Any]:
        """Estimator keyword arguments."""
        return self.model_dump()


class DeepLearningConfig(BaseModel):
    """Feed-forward network hyperparameters."""

    model_config = ConfigDict(frozen=True)

    hidden: list[int] = Field(default_factory=lambda: [200, 200])
    epochs: int = Field(default=10, ge=1)
    activation: str = Field(default="rectifier")
    l2: float = Field(default=0.0, ge=0)
    seed: int | None = Field(default=1234)

    def to_params(self) -> dict[str, Any]:
        """Estimator keyword arguments."""
        return self.model_dump()


class ModelsConfig(BaseModel):
    """Model selection and hyperparameter configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: list[str] = Field(
        default_factory=lambda: list(MODEL_FAMILIES),
        description="Model families to train after the GLM steps",
    )
    glm: GLMConfig = Field(default_factory=GLMConfig)
    elastic_net: ElasticNetGridConfig = Field(default_factory=ElasticNetGridConfig)
    gbm: GBMConfig = Field(default_factory=GBMConfig)
    drf: RandomForestConfig = Field(default_factory=RandomForestConfig)
    deeplearning: DeepLearningConfig = Field(default_factory=DeepLearningConfig)

    @field_validator("enabled")
    @classmethod
    def validate_enabled(cls, v: list[str]) -> list[str]:
        """Ensure only known families are enabled."""
        unknown = [name for name in v if name not in MODEL_FAMILIES]
        if unknown:
            msg = (
                f"Unknown model family(ies): {', '.join(unknown)}. "
                f"Available: {', '.join(MODEL_FAMILIES)}"
            )
            raise ValueError(msg)
        return v

    def params_for(self, family: str) -> dict[str, Any]:
        """Estimator keyword arguments of a family."""
        section: GLMConfig | GBMConfig | RandomForestConfig | DeepLearningConfig = getattr(
            self, family
        )
        return section.to_params()


class MLflowConfig(BaseModel):
    """MLflow experiment tracking configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True)
    tracking_uri: str = Field(default="./mlruns")
    # experiment_name is optional; derived from project name if not set
    experiment_name: str | None = Field(
        default=None, description="MLflow experiment name (defaults to project name)"
    )


class OutputConfig(BaseModel):
    """Output paths configuration.

    Structure: ./output/{project}/models, ./output/{project}/reports
    """

    model_config = ConfigDict(frozen=True)

    output_root: Path = Field(
        default=Path("./output"), description="Root directory for all outputs"
    )


class WorkflowConfig(BaseModel):
    """Complete workflow configuration.

    The project name drives:
    - MLflow experiment name (if not explicitly set)
    - Output directory structure: ./output/{project}/
    """

    model_config = ConfigDict(frozen=True)

    project: str = Field(description="Project identifier (e.g., 'adult-2013')")

    cluster: ClusterConfig = Field(default_factory=ClusterConfig)
    data_paths: DataPathsConfig = Field(default_factory=DataPathsConfig)
    columns: ColumnsConfig = Field(default_factory=ColumnsConfig)
    random_group: RandomGroupConfig = Field(default_factory=RandomGroupConfig)
    models: ModelsConfig = Field(default_factory=ModelsConfig)
    mlflow: MLflowConfig = Field(default_factory=MLflowConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @property
    def experiment_name(self) -> str:
        """MLflow experiment name (derived from project if not set)."""
        return self.mlflow.experiment_name or self.project

    @property
    def models_dir(self) -> Path:
        """Path to saved models directory."""
        return self.output.output_root / self.project / "models"

    @property
    def reports_dir(self) -> Path:
        """Path to reports directory."""
        return self.output.output_root / self.project / "reports"
