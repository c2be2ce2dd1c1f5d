"""
Structured logging for censusfit.

Cluster requests log at DEBUG and workflow steps at INFO. Every line
carries the context bound with `log_context` (step, model_id, ...), so a
grid cell or a model family can be followed through the log.
"""

import logging
import sys
from typing import Any

import structlog

from censusfit.errors import ConfigurationError

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Third-party loggers kept at WARNING or above; they are chatty at INFO
QUIET_LOGGERS = ("mlflow", "alembic", "urllib3", "git")


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # Resolve sys.stderr per logger so redirected streams are honoured
    return structlog.PrintLogger(sys.stderr)


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
) -> None:
    """
    Configure structlog and the standard library loggers.

    Logs go to stderr so the tables the CLI prints stay clean on stdout.
    Loggers are not cached, so module-level loggers follow a later
    reconfiguration.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: Write one JSON object per line instead of the
            console renderer.

    Raises:
        ConfigurationError: If the level name is unknown.
    """
    try:
        log_level = LOG_LEVELS[level.upper()]
    except KeyError:
        msg = f"Unknown log level '{level}'. Available: {', '.join(LOG_LEVELS)}"
        raise ConfigurationError(msg) from None

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=json_output),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Logger for a module, typically called with __name__."""
    return structlog.get_logger(name)


def log_context(**kwargs: Any) -> structlog.contextvars.bound_contextvars:
    """
    Bind key-value pairs to every log line within a block.

    Example:
        with log_context(step="elastic_net_grid", alpha=0.5):
            log.info("Training")  # includes step and alpha

    Args:
        **kwargs: Context values.

    Returns:
        Context manager that binds and later unbinds the values.
    """
    return structlog.contextvars.bound_contextvars(**kwargs)
