"""
Error taxonomy for cluster requests.

Every failure surfaces on the offending call and is never retried:
- ClusterConnectionError: the session is missing, shut down, or cannot start.
- SchemaError: a frame or column lookup fails or a column has the wrong type.
- ConfigurationError: a hyperparameter combination or diagnostic request is
  not defined for the model family.
"""


class ClusterError(Exception):
    """Base class for all errors raised by cluster requests."""


class ClusterConnectionError(ClusterError):
    """The cluster session is unavailable."""


class SchemaError(ClusterError):
    """A frame does not have the columns or types a request needs."""


class ColumnNotFoundError(SchemaError):
    """A requested column is not part of the frame's schema."""

    def __init__(self, frame_key: str, missing: list[str]) -> None:
        self.frame_key = frame_key
        self.missing = missing
        super().__init__(
            f"Column(s) {', '.join(missing)} not found in frame '{frame_key}'"
        )


class ConfigurationError(ClusterError, ValueError):
    """A request carries an invalid or unsupported configuration."""


class UnsupportedDiagnosticError(ConfigurationError):
    """A diagnostic was requested that the model family does not define."""

    def __init__(self, algo: str, diagnostic: str) -> None:
        self.algo = algo
        self.diagnostic = diagnostic
        super().__init__(f"Diagnostic '{diagnostic}' is not defined for {algo} models")
