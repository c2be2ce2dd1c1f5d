"""Tests for logging configuration."""

import logging
from collections.abc import Iterator

import pytest
import structlog

from censusfit.errors import ConfigurationError
from censusfit.utils.logging import configure_logging, get_logger, log_context


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    """Restore the default structlog configuration after each test."""
    yield
    structlog.reset_defaults()


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_level_names_case_insensitive(self) -> None:
        """Test that level names are accepted in any case."""
        configure_logging(level="debug")
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level(self) -> None:
        """Test that an unknown level raises ConfigurationError."""
        with pytest.raises(ConfigurationError, match="Unknown log level"):
            configure_logging(level="LOUD")

    def test_quiet_third_party_loggers(self) -> None:
        """Test that MLflow stays at WARNING when the workflow logs at DEBUG."""
        configure_logging(level="DEBUG")
        assert logging.getLogger("mlflow").level == logging.WARNING

    def test_context_in_json_lines(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test that bound context appears on every JSON log line."""
        configure_logging(level="INFO", json_output=True)
        log = get_logger("censusfit.test")

        with log_context(step="combined_glm"):
            log.info("Training model", model_id="glm_combined")
        log.info("Outside")

        lines = capsys.readouterr().err.strip().splitlines()
        assert '"step": "combined_glm"' in lines[0]
        assert '"model_id": "glm_combined"' in lines[0]
        assert "step" not in lines[1]

    def test_level_filters(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test that lines below the configured level are dropped."""
        configure_logging(level="WARNING", json_output=True)
        log = get_logger("censusfit.test")
        log.info("hidden")
        log.warning("shown")

        err = capsys.readouterr().err
        assert "hidden" not in err
        assert "shown" in err
