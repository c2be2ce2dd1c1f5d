"""Tests for validation module."""

from io import StringIO
from pathlib import Path
from typing import Any

import pandas as pd
import pytest
from rich.console import Console

from censusfit.config import WorkflowConfig, load_config
from censusfit.schemas.registry import SchemaRegistry
from censusfit.validation import ConsoleReporter, ValidationResult, ValidationRunner
from censusfit.validation.core import DATASET_SCHEMA_MAP


@pytest.fixture
def config(workflow_config_file: Path) -> WorkflowConfig:
    """Configuration pointing at the synthetic census files."""
    return load_config(workflow_config_file)


def _by_name(results: list[ValidationResult]) -> dict[str, ValidationResult]:
    return {r.dataset_name: r for r in results}


class TestDatasetSchemaMapping:
    """Tests for the dataset schema mapping."""

    def test_all_mapped_schemas_exist(self) -> None:
        """Test that all mapped schemas exist in registry."""
        for schema_name in DATASET_SCHEMA_MAP.values():
            assert schema_name in SchemaRegistry.list_schemas()


class TestValidationRunner:
    """Tests for ValidationRunner."""

    def test_valid_files(self, config: WorkflowConfig) -> None:
        """Test validation passes for the synthetic splits."""
        results = _by_name(ValidationRunner(config).run())

        assert set(results) == {"train", "test"}
        assert results["train"].schema_valid is True
        assert results["train"].row_count == 240
        assert results["test"].row_count == 80
        assert results["test"].error_message is None

    def test_missing_files(self, config: WorkflowConfig, census_files: tuple[Path, Path]) -> None:
        """Test validation reports missing files correctly."""
        for path in census_files:
            path.unlink()

        for result in ValidationRunner(config).run():
            assert result.exists is False
            assert result.schema_valid is None
            assert result.error_message == "File not found"

    def test_missing_configured_column(
        self,
        config: WorkflowConfig,
        census_files: tuple[Path, Path],
        census_test_df: pd.DataFrame,
    ) -> None:
        """Test that a split without a configured predictor fails."""
        _, test_path = census_files
        census_test_df.drop(columns="WKHP").to_csv(test_path, index=False)

        results = _by_name(ValidationRunner(config).run())
        assert results["train"].schema_valid is True
        assert results["test"].schema_valid is False
        assert "WKHP" in results["test"].error_message

    def test_schema_violation(
        self,
        config: WorkflowConfig,
        census_files: tuple[Path, Path],
        census_train_df: pd.DataFrame,
    ) -> None:
        """Test that out-of-range values fail with a formatted message."""
        train_path, _ = census_files
        df = census_train_df.copy()
        df.loc[:9, "SEX"] = 7
        df.to_csv(train_path, index=False)

        result = _by_name(ValidationRunner(config).run())["train"]
        assert result.exists is True
        assert result.schema_valid is False
        assert result.row_count == 240
        assert result.error_message

    def test_wrong_delimiter(
        self, config: WorkflowConfig, census_files: tuple[Path, Path], census_test_df: pd.DataFrame
    ) -> None:
        """Test that a file with another delimiter fails to parse."""
        _, test_path = census_files
        census_test_df.to_csv(test_path, index=False, sep=";")

        result = _by_name(ValidationRunner(config).run())["test"]
        assert result.schema_valid is False
        assert "does not split" in result.error_message


class TestConsoleReporter:
    """Tests for the rich console report."""

    def _render(self, results: list[ValidationResult]) -> str:
        buffer = StringIO()
        ConsoleReporter(Console(file=buffer, width=200)).print_results(results)
        return buffer.getvalue()

    def test_summary(self, config: WorkflowConfig) -> None:
        """Test that the summary counts passed datasets."""
        output = self._render(ValidationRunner(config).run())
        assert "Passed: 2" in output
        assert "train" in output

    def test_error_details(self, config: WorkflowConfig, census_files: tuple[Path, Path]) -> None:
        """Test that failures are listed with their message."""
        census_files[0].unlink()
        output = self._render(ValidationRunner(config).run())
        assert "File not found" in output
        assert "Missing: 1" in output

    @pytest.mark.parametrize("dataset", ["train", "test"])
    def test_result_fields(self, config: WorkflowConfig, dataset: str) -> None:
        """Test that each result carries its file path and schema."""
        result: Any = _by_name(ValidationRunner(config).run())[dataset]
        assert result.schema_name == "census"
        assert result.file_path == config.data_paths.resolve(dataset)
