"""
Error taxonomy for the forecasting pipeline.

Forecasters do not raise from ``train``/``predict``/``evaluate``. They record the
failure on ``last_error_`` and return a sentinel (``False``, ``[]`` or NaN) so that
``ModelErrorHandler`` can pick a recovery strategy from the error kind without
unwinding caller state.

Validation utilities (``CrossValidator``, ``HyperparameterOptimizer``) do raise:
``InsufficientDataError`` is fatal there because no per-fold recovery is meaningful
before any data exists.
"""

from enum import Enum


class ForecastingError(Exception):
    """Base exception for forecasting operations."""

    pass


class InsufficientDataError(ForecastingError):
    """Too few records for the requested operation."""

    pass


class InvalidParameterError(ForecastingError):
    """Unknown or out-of-range hyperparameter."""

    pass


class NumericInstabilityError(ForecastingError):
    """Power iteration failed to converge or produced non-finite values."""

    pass


class ResourceExhaustionError(ForecastingError):
    """Input too large for the available memory budget."""

    pass


class MalformedInputError(ForecastingError):
    """Target values that are non-finite or negative."""

    pass


class InvalidStateError(ForecastingError):
    """Operation not valid for the model's current state."""

    pass


class ModelNotTrainedError(InvalidStateError):
    """Prediction or evaluation requested before a successful train()."""

    pass


class UnknownError(ForecastingError):
    """Unexpected failure wrapped by a forecaster."""

    pass


class NoValidResultsError(ForecastingError):
    """Every cross-validation fold failed to train or evaluate."""

    pass


class ErrorKind(Enum):
    """Recovery category used by ModelErrorHandler."""

    MALFORMED_INPUT = "malformed_input"
    INVALID_STATE = "invalid_state"
    RESOURCE_EXHAUSTION = "resource_exhaustion"
    UNKNOWN = "unknown"


def classify_error(error: BaseException | None) -> ErrorKind:
    """
    Map an exception to the recovery category that handles it.

    Args:
        error: Exception recorded by a forecaster (may be None if the model
            failed without recording one)

    Returns:
        ErrorKind for the error

    Example:
        ```python
        classify_error(MalformedInputError("NaN sales"))  # ErrorKind.MALFORMED_INPUT
        classify_error(MemoryError())                     # ErrorKind.RESOURCE_EXHAUSTION
        classify_error(None)                              # ErrorKind.UNKNOWN
        ```
    """
    if isinstance(error, (ResourceExhaustionError, MemoryError)):
        return ErrorKind.RESOURCE_EXHAUSTION
    if isinstance(
        error,
        (InvalidStateError, InvalidParameterError, NumericInstabilityError, InsufficientDataError),
    ):
        return ErrorKind.INVALID_STATE
    if isinstance(error, (MalformedInputError, ValueError, TypeError)):
        return ErrorKind.MALFORMED_INPUT
    return ErrorKind.UNKNOWN
