"""
Core validation logic for data files.

Validates the configured census splits against the registered Pandera
schema before they are imported into a cluster.
"""

from dataclasses import dataclass
from pathlib import Path

import pandas as pd
from pandera.errors import SchemaError as PanderaSchemaError
from pandera.errors import SchemaErrors as PanderaSchemaErrors

from censusfit.cluster.store import read_frame
from censusfit.config.settings import WorkflowConfig
from censusfit.errors import ClusterError
from censusfit.schemas.registry import SchemaRegistry
from censusfit.utils.logging import get_logger

log = get_logger(__name__)

# Maximum number of failure cases shown per dataset
MAX_REPORTED_FAILURES = 5


@dataclass
class ValidationResult:
    """Result of validating a single dataset."""

    dataset_name: str
    schema_name: str | None
    file_path: Path
    exists: bool
    schema_valid: bool | None
    row_count: int | None
    error_message: str | None


# Mapping from config dataset names to schema names
DATASET_SCHEMA_MAP: dict[str, str] = {
    "train": "census",
    "test": "census",
}


class ValidationRunner:
    """
    Runs validation for the configured train and test files.

    Checks that each file exists, parses with the configured delimiter,
    holds the configured columns and satisfies its schema.
    """

    def __init__(self, config: WorkflowConfig) -> None:
        """
        Initialize validation runner.

        Args:
            config: Workflow configuration containing data paths.
        """
        self.config = config

    def run(self) -> list[ValidationResult]:
        """
        Run validation for all datasets in config.

        Returns:
            List of validation results, one per dataset.
        """
        return [self._validate_dataset(name) for name in DATASET_SCHEMA_MAP]

    def _result(
        self,
        dataset_attr: str,
        file_path: Path,
        *,
        exists: bool,
        schema_valid: bool | None,
        row_count: int | None = None,
        error_message: str | None = None,
    ) -> ValidationResult:
        return ValidationResult(
            dataset_name=dataset_attr,
            schema_name=DATASET_SCHEMA_MAP[dataset_attr],
            file_path=file_path,
            exists=exists,
            schema_valid=schema_valid,
            row_count=row_count,
            error_message=error_message,
        )

    def _validate_dataset(self, dataset_attr: str) -> ValidationResult:
        """
        Validate a single dataset.

        Args:
            dataset_attr: Attribute name from DataPathsConfig.

        Returns:
            ValidationResult for the dataset.
        """
        file_path = self.config.data_paths.resolve(dataset_attr)
        schema_name = DATASET_SCHEMA_MAP[dataset_attr]

        if not file_path.exists():
            log.warning("Data file not found", dataset=dataset_attr, path=str(file_path))
            return self._result(
                dataset_attr,
                file_path,
                exists=False,
                schema_valid=None,
                error_message="File not found",
            )

        try:
            df = read_frame(file_path, sep=self.config.data_paths.delimiter)
        except ClusterError as e:
            log.error("Could not read data file", dataset=dataset_attr, error=str(e))
            return self._result(
                dataset_attr, file_path, exists=True, schema_valid=False, error_message=str(e)
            )

        row_count = len(df)
        columns = self.config.columns
        missing = [
            col for col in [*columns.predictors, columns.response] if col not in df.columns
        ]
        if missing:
            error_msg = f"Missing configured column(s): {', '.join(missing)}"
            log.error("Validation failed", dataset=dataset_attr, error=error_msg)
            return self._result(
                dataset_attr,
                file_path,
                exists=True,
                schema_valid=False,
                row_count=row_count,
                error_message=error_msg,
            )

        try:
            SchemaRegistry.validate(df, schema_name)
        except (PanderaSchemaError, PanderaSchemaErrors) as e:
            error_msg = self._format_schema_error(e)
            log.error(
                "Schema validation failed",
                dataset=dataset_attr,
                schema=schema_name,
                error=error_msg,
            )
            return self._result(
                dataset_attr,
                file_path,
                exists=True,
                schema_valid=False,
                row_count=row_count,
                error_message=error_msg,
            )

        log.info("Validation passed", dataset=dataset_attr, schema=schema_name, rows=row_count)
        return self._result(
            dataset_attr, file_path, exists=True, schema_valid=True, row_count=row_count
        )

    def _format_schema_error(self, error: PanderaSchemaError | PanderaSchemaErrors) -> str:
        """
        Format schema error for user-friendly display.

        Args:
            error: Pandera SchemaError, or SchemaErrors for whole-frame checks.

        Returns:
            Formatted error message (first few violations).
        """
        failures = getattr(error, "failure_cases", None)
        if isinstance(failures, pd.DataFrame):
            n_failures = len(failures)
            if n_failures > MAX_REPORTED_FAILURES:
                shown = failures.head(MAX_REPORTED_FAILURES).to_string(index=False)
                return (
                    f"{n_failures} validation errors "
                    f"(showing first {MAX_REPORTED_FAILURES}):\n{shown}"
                )
            return f"{n_failures} validation error(s):\n{failures.to_string(index=False)}"

        # Fallback to error message
        return str(error).split("\n")[0][:200]
