"""
YAML loading for workflow configurations.

A config file may sit next to a `base.yaml`, whose sections it overrides
key by key. String values expand `${VAR}` and `${VAR:default}` from the
environment. Only `project` is required; every other section falls back
to the adult 2013 census defaults in settings.py.
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml

from censusfit.config.settings import (
    ClusterConfig,
    ColumnsConfig,
    DataPathsConfig,
    MLflowConfig,
    ModelsConfig,
    OutputConfig,
    RandomGroupConfig,
    WorkflowConfig,
)
from censusfit.errors import ConfigurationError

ENV_REFERENCE = re.compile(r"\$\{(?P<name>[^}:]+)(?::(?P<default>[^}]*))?\}")

BASE_CONFIG_NAME = "base.yaml"

# YAML section -> settings model, for sections that map one to one
SECTION_MODELS = {
    "cluster": ClusterConfig,
    "columns": ColumnsConfig,
    "random_group": RandomGroupConfig,
    "models": ModelsConfig,
    "mlflow": MLflowConfig,
}


def _expand_env(value: Any) -> Any:
    """Expand environment references in every string of a parsed YAML tree."""
    if isinstance(value, str):
        return ENV_REFERENCE.sub(
            lambda m: os.environ.get(m["name"], m["default"] or ""), value
        )
    if isinstance(value, dict):
        return {key: _expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env(item) for item in value]
    return value


def _overlay(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Nested mappings merge; any other override value replaces the base value."""
    merged = dict(base)
    for key, value in override.items():
        below = merged.get(key)
        merged[key] = (
            _overlay(below, value)
            if isinstance(below, dict) and isinstance(value, dict)
            else value
        )
    return merged


def load_yaml(path: Path) -> dict[str, Any]:
    """
    Read one YAML config file with environment references expanded.

    Raises:
        ConfigurationError: If the file is missing or is not a mapping.
    """
    if not path.is_file():
        msg = f"Config file not found: {path}"
        raise ConfigurationError(msg)
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"Config file must contain a mapping: {path}"
        raise ConfigurationError(msg)
    return _expand_env(data)


def _base_for(config_path: Path) -> Path | None:
    candidate = config_path.parent / BASE_CONFIG_NAME
    if candidate.is_file() and candidate.resolve() != config_path.resolve():
        return candidate
    return None


def _data_paths(section: dict[str, Any]) -> DataPathsConfig:
    # 'root' in YAML, 'data_root' on the model
    fields = dict(section)
    if "root" in fields:
        fields["data_root"] = Path(fields.pop("root"))
    return DataPathsConfig(**fields)


def load_config(
    config_path: Path,
    base_path: Path | None = None,
) -> WorkflowConfig:
    """
    Build a validated `WorkflowConfig` from YAML.

    Args:
        config_path: Main configuration file.
        base_path: Base file to inherit from. Defaults to a `base.yaml`
            beside `config_path`, when one exists.

    Raises:
        ConfigurationError: If a file is missing or `project` is not set.
        pydantic.ValidationError: If a value fails validation.
    """
    base_path = base_path if base_path is not None else _base_for(config_path)
    base = load_yaml(base_path) if base_path is not None else {}
    merged = _overlay(base, load_yaml(config_path))

    project = merged.get("project")
    if not project:
        msg = "Config must specify 'project' name"
        raise ConfigurationError(msg)

    sections = {
        name: model(**(merged.get(name) or {}))
        for name, model in SECTION_MODELS.items()
    }
    output_root = (merged.get("output") or {}).get("root", "./output")

    return WorkflowConfig(
        project=str(project),
        data_paths=_data_paths(merged.get("data") or {}),
        output=OutputConfig(output_root=Path(output_root)),
        **sections,
    )


def disable_mlflow(config: WorkflowConfig) -> WorkflowConfig:
    """Copy of a configuration with MLflow tracking switched off."""
    return config.model_copy(
        update={"mlflow": config.mlflow.model_copy(update={"enabled": False})}
    )
