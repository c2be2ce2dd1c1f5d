"""Rich console output for data file validation."""

from collections import Counter

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from censusfit.validation.core import ValidationResult

STATUS_STYLES = {
    "Passed": "green",
    "Failed": "red",
    "Missing": "yellow",
    "Skipped": "yellow",
}


def result_status(result: ValidationResult) -> str:
    """One-word status of a validation result."""
    if not result.exists:
        return "Missing"
    if result.schema_valid is None:
        return "Skipped"
    return "Passed" if result.schema_valid else "Failed"


class ConsoleReporter:
    """Prints validation results as a table followed by the failure details."""

    def __init__(self, console: Console) -> None:
        """
        Initialize console reporter.

        Args:
            console: Rich console to print to.
        """
        self.console = console

    def print_results(self, results: list[ValidationResult]) -> None:
        """Print one row per dataset, a status count line and one panel per failure."""
        table = Table(title="Census File Validation")
        table.add_column("Dataset", style="cyan", no_wrap=True)
        table.add_column("Status", justify="center")
        table.add_column("Rows", justify="right")
        table.add_column("File", style="dim")
        table.add_column("Detail", overflow="fold")

        for result in results:
            status = result_status(result)
            detail = (result.error_message or "").split("\n", 1)[0]
            table.add_row(
                result.dataset_name,
                f"[{STATUS_STYLES[status]}]{status}[/{STATUS_STYLES[status]}]",
                "-" if result.row_count is None else f"{result.row_count:,}",
                str(result.file_path),
                Text(detail),
            )
        self.console.print(table)

        counts = Counter(result_status(r) for r in results)
        self.console.print(
            "  ".join(
                f"[{style}]{status}: {counts[status]}[/{style}]"
                for status, style in STATUS_STYLES.items()
                if status != "Skipped" or counts[status]
            )
        )

        for result in results:
            if result.schema_valid is False and result.error_message:
                self.console.print(
                    Panel(
                        Text(result.error_message),
                        title=f"{result.dataset_name} ({result.schema_name})",
                        border_style="red",
                    )
                )
