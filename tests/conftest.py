"""Pytest configuration and shared fixtures."""

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
import pytest
import yaml

from censusfit.cluster import ClusterSession, Frame
from censusfit.config.settings import DEFAULT_CATEGORICAL as CATEGORICAL


def make_census(n_rows: int, seed: int) -> pd.DataFrame:
    """Synthetic census extract with a log-wage response driven by a few columns."""
    rng = np.random.default_rng(seed)
    df = pd.DataFrame({
        "AGEP": rng.integers(18, 80, n_rows),
        "COW": rng.integers(1, 8, n_rows),
        "SCHL": rng.integers(16, 24, n_rows),
        "MAR": rng.integers(1, 6, n_rows),
        "INDP": rng.choice([170, 770, 3390, 7860, 8680], n_rows),
        "RELP": rng.integers(0, 5, n_rows),
        "RAC1P": rng.choice([1, 2, 6, 8], n_rows),
        "SEX": rng.integers(1, 3, n_rows),
        "POBP": rng.choice([6, 36, 48, 210, 303], n_rows),
        "WKHP": rng.integers(10, 80, n_rows),
        "LOG_CAPGAIN": np.where(rng.random(n_rows) < 0.1, rng.uniform(5, 10, n_rows), 0.0),
        "LOG_CAPLOSS": np.where(rng.random(n_rows) < 0.05, rng.uniform(5, 8, n_rows), 0.0),
    })
    df["LOG_WAGP"] = (
        8.5
        + 0.02 * df["AGEP"]
        + 0.1 * (df["SCHL"] - 16)
        + 0.3 * (df["SEX"] == 1)
        + 0.015 * df["WKHP"]
        + rng.normal(0, 0.3, n_rows)
    )
    return df


@pytest.fixture
def session() -> Iterator[ClusterSession]:
    """Running single-threaded cluster session, shut down after the test."""
    cluster = ClusterSession(name="test", nthreads=1)
    yield cluster
    if cluster.is_running:
        cluster.shutdown()


@pytest.fixture
def census_train_df() -> pd.DataFrame:
    """Synthetic training split."""
    return make_census(240, seed=1)


@pytest.fixture
def census_test_df() -> pd.DataFrame:
    """Synthetic test split."""
    return make_census(80, seed=2)


@pytest.fixture
def census_frames(
    session: ClusterSession,
    census_train_df: pd.DataFrame,
    census_test_df: pd.DataFrame,
) -> tuple[Frame, Frame]:
    """Train and test frames with the nominal columns cast to categorical."""
    train = session.upload_frame(census_train_df, "adult_2013_train").asfactor(CATEGORICAL)
    test = session.upload_frame(census_test_df, "adult_2013_test").asfactor(CATEGORICAL)
    return train, test


@pytest.fixture
def census_files(
    tmp_path: Path,
    census_train_df: pd.DataFrame,
    census_test_df: pd.DataFrame,
) -> tuple[Path, Path]:
    """Train and test splits written as gzip-compressed CSV files."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    train_path = data_dir / "adult_2013_train.csv.gz"
    test_path = data_dir / "adult_2013_test.csv.gz"
    census_train_df.to_csv(train_path, index=False)
    census_test_df.to_csv(test_path, index=False)
    return train_path, test_path


@pytest.fixture
def workflow_config_dict(tmp_path: Path, census_files: tuple[Path, Path]) -> dict[str, Any]:
    """Small, fast workflow configuration over the census files."""
    train_path, test_path = census_files
    return {
        "project": "test-census",
        "cluster": {"nthreads": 1},
        "data": {
            "root": str(train_path.parent),
            "train": train_path.name,
            "test": test_path.name,
        },
        "models": {
            "enabled": ["glm", "gbm", "drf", "deeplearning"],
            "elastic_net": {"alphas": [0.0, 1.0], "lambdas": [0.001, 0.1]},
            "gbm": {"ntrees": 5, "max_depth": 3},
            "drf": {"ntrees": 5, "max_depth": 5},
            "deeplearning": {"hidden": [8], "epochs": 5},
        },
        "mlflow": {"enabled": False},
        "output": {"root": str(tmp_path / "output")},
    }


@pytest.fixture
def workflow_config_file(tmp_path: Path, workflow_config_dict: dict[str, Any]) -> Path:
    """Workflow configuration written to a YAML file."""
    config_dir = tmp_path / "configs"
    config_dir.mkdir()
    path = config_dir / "test.yaml"
    path.write_text(yaml.safe_dump(workflow_config_dict), encoding="utf-8")
    return path
