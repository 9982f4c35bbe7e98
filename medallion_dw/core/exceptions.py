"""
Exception hierarchy for operational failures.

Data-shape and consistency problems in records never raise: they are
repaired with sentinels or recomputation and reported by the validation
gate. Only operational problems (missing sources, store failures, bad
configuration) surface as exceptions and end a batch run.
"""


class PipelineError(Exception):
    """Base class for operational pipeline failures."""

    code = "PIPELINE_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class SourceError(PipelineError):
    """Raised when a raw source entity cannot be located or read."""

    code = "SOURCE_ERROR"


class StoreError(PipelineError):
    """Raised when the backing store rejects an operation."""

    code = "STORE_ERROR"


class ConfigurationError(PipelineError, ValueError):
    """Raised when a check or pipeline configuration is invalid."""

    code = "CONFIGURATION_ERROR"


def error_code(exc: BaseException) -> str:
    """
    Resolve a diagnostic code for an exception.

    Database errors report their SQLSTATE, pipeline errors their own code,
    anything else its class name.

    Args:
        exc: The exception to describe

    Returns:
        Error code string
    """
    sqlstate = getattr(exc, "sqlstate", None)
    if sqlstate:
        return str(sqlstate)
    code = getattr(exc, "code", None)
    if isinstance(code, str) and code:
        return code
    return type(exc).__name__
