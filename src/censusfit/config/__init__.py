"""
Configuration management with typed Pydantic models.

Provides environment-aware YAML loading with base.yaml inheritance.
"""

from censusfit.config.loader import disable_mlflow, load_config
from censusfit.config.settings import (
    ClusterConfig,
    ColumnsConfig,
    DataPathsConfig,
    DeepLearningConfig,
    ElasticNetGridConfig,
    GBMConfig,
    GLMConfig,
    MLflowConfig,
    ModelsConfig,
    OutputConfig,
    RandomForestConfig,
    RandomGroupConfig,
    WorkflowConfig,
)

__all__ = [
    "ClusterConfig",
    "ColumnsConfig",
    "DataPathsConfig",
    "DeepLearningConfig",
    "ElasticNetGridConfig",
    "GBMConfig",
    "GLMConfig",
    "MLflowConfig",
    "ModelsConfig",
    "OutputConfig",
    "RandomForestConfig",
    "RandomGroupConfig",
    "WorkflowConfig",
    "disable_mlflow",
    "load_config",
]
