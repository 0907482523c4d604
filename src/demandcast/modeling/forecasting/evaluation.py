"""
Evaluation metrics for demand forecasting.

**Point Forecast Metrics** (actual vs. predicted arrays):
- MAE (Mean Absolute Error): Average absolute deviation
- RMSE (Root Mean Squared Error): Penalizes large errors
- MAPE (Mean Absolute Percentage Error): The pipeline's primary score, used for
  evaluation, cross-validation, ensemble weighting and monitoring

**Interval Metrics** (for forecasts with confidence bounds):
- Coverage: Fraction of actuals inside [lower, upper]
- Interval Sharpness: Average interval width

**Drift**:
- relative_change / split_half_drift: Relative change of recent error vs. older
  error, shared by ModelMonitor and OnlineLearner

MAPE is reported as a fraction (0.05 == 5%) and only counts positions with a
positive actual value, matching the sales domain where zero-sales days (closed
stores) carry no percentage error.

Example:
    ```python
    import numpy as np
    from demandcast.modeling.forecasting.evaluation import mape, split_half_drift

    y_true = np.array([100.0, 200.0, 0.0, 400.0])
    y_pred = np.array([110.0, 190.0, 5.0, 400.0])
    mape(y_true, y_pred)  # 0.05 (zero actual skipped)

    errors = [0.1] * 10 + [0.2] * 10
    split_half_drift(errors)  # 1.0 (recent half doubled)
    ```
"""

from collections.abc import Sequence

import numpy as np
from numpy.typing import NDArray


def mae(y_true: NDArray[np.floating], y_pred: NDArray[np.floating]) -> float:
    """
    Mean Absolute Error (MAE).

    Formula:
        MAE = mean(|y_true - y_pred|)

    Raises:
        ValueError: If arrays are empty or have different shapes
    """
    y_true, y_pred = _validate_arrays(y_true, y_pred)
    return float(np.mean(np.abs(y_true - y_pred)))


def rmse(y_true: NDArray[np.floating], y_pred: NDArray[np.floating]) -> float:
    """
    Root Mean Squared Error (RMSE).

    Formula:
        RMSE = sqrt(mean((y_true - y_pred)²))

    Raises:
        ValueError: If arrays are empty or have different shapes
    """
    y_true, y_pred = _validate_arrays(y_true, y_pred)
    return float(np.sqrt(np.mean((y_true - y_pred) ** 2)))


def absolute_percentage_error(actual: float, predicted: float) -> float:
    """
    Absolute percentage error of a single prediction, as a fraction.

    Returns:
        |predicted - actual| / |actual|, or NaN if actual is zero or non-finite
    """
    if actual == 0 or not np.isfinite(actual):
        return float("nan")
    return float(abs(predicted - actual) / abs(actual))


def mape(y_true: NDArray[np.floating], y_pred: NDArray[np.floating]) -> float:
    """
    Mean Absolute Percentage Error (MAPE), as a fraction.

    Formula:
        MAPE = mean(|y_true - y_pred| / y_true) over positions with y_true > 0

    Interpretation:
        Scale-independent error. 0.0 is a perfect forecast, 0.1 means the
        forecast is off by 10% on average.

    Args:
        y_true: Actual values of shape (n_samples,)
        y_pred: Predicted values of shape (n_samples,)

    Returns:
        MAPE as float, or NaN if no position has a positive actual

    Raises:
        ValueError: If arrays are empty or have different shapes

    Example:
        ```python
        y_true = np.array([100, 200, 300])
        y_pred = np.array([110, 190, 310])
        print(mape(y_true, y_pred))  # ~0.0556
        ```
    """
    y_true, y_pred = _validate_arrays(
        np.asarray(y_true, dtype=np.float64), np.asarray(y_pred, dtype=np.float64)
    )

    mask = y_true > 0
    if not np.any(mask):
        return float("nan")

    percentage_errors = np.abs(y_true[mask] - y_pred[mask]) / y_true[mask]
    return float(np.mean(percentage_errors))


def coverage(
    y_true: NDArray[np.floating],
    lower: NDArray[np.floating],
    upper: NDArray[np.floating],
) -> float:
    """
    Prediction interval coverage, as a fraction.

    Formula:
        Coverage = (# actuals within [lower, upper]) / (# actuals)

    Raises:
        ValueError: If arrays are empty or have different shapes
    """
    if len(y_true) == 0:
        raise ValueError("y_true cannot be empty")
    if len(y_true) != len(lower) or len(y_true) != len(upper):
        raise ValueError(
            f"Array shapes must match: y_true={len(y_true)}, "
            f"lower={len(lower)}, upper={len(upper)}"
        )

    within_bounds = (y_true >= lower) & (y_true <= upper)
    return float(np.mean(within_bounds))


def interval_sharpness(lower: NDArray[np.floating], upper: NDArray[np.floating]) -> float:
    """
    Interval sharpness (average prediction interval width).

    Raises:
        ValueError: If arrays are empty or have different shapes
    """
    if len(lower) == 0:
        raise ValueError("lower cannot be empty")
    if len(lower) != len(upper):
        raise ValueError(f"Array shapes must match: lower={len(lower)}, upper={len(upper)}")

    return float(np.mean(np.asarray(upper) - np.asarray(lower)))


def sample_std(values: Sequence[float]) -> float:
    """Sample standard deviation (ddof=1); NaN with fewer than two values."""
    if len(values) < 2:
        return float("nan")
    return float(np.std(np.asarray(values, dtype=np.float64), ddof=1))


def relative_change(older: float, recent: float) -> float:
    """
    Relative change |recent - older| / older.

    Returns 0.0 when both are zero and inf when only the older value is zero.
    """
    if older == 0:
        return 0.0 if recent == 0 else float("inf")
    return float(abs((recent - older) / older))


def split_half_drift(errors: Sequence[float]) -> float:
    """
    Drift between the older and the more recent half of an error window.

    The window is split at ``len(errors) // 2``: the first half is compared with
    the last half (the middle element is ignored for odd lengths).

    Args:
        errors: Error values ordered oldest first

    Returns:
        relative_change(mean(older half), mean(recent half)), or NaN with
        fewer than two errors
    """
    half = len(errors) // 2
    if half == 0:
        return float("nan")

    arr = np.asarray(errors, dtype=np.float64)
    older = float(np.mean(arr[:half]))
    recent = float(np.mean(arr[-half:]))
    return relative_change(older, recent)


def compute_all_metrics(
    y_true: NDArray[np.floating],
    y_pred: NDArray[np.floating],
    lower: NDArray[np.floating] | None = None,
    upper: NDArray[np.floating] | None = None,
) -> dict[str, float]:
    """
    Compute all point forecast metrics at once, plus interval metrics if bounds
    are provided.

    Returns:
        Dictionary with metric names and values

    Raises:
        ValueError: If arrays are empty or have different shapes
    """
    metrics = {
        "mae": mae(y_true, y_pred),
        "rmse": rmse(y_true, y_pred),
        "mape": mape(y_true, y_pred),
    }

    if lower is not None and upper is not None:
        metrics["coverage"] = coverage(y_true, lower, upper)
        metrics["interval_sharpness"] = interval_sharpness(lower, upper)

    return metrics


def _validate_arrays(
    y_true: NDArray[np.floating], y_pred: NDArray[np.floating]
) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
    """
    Validate that arrays are non-empty and have matching shapes.

    Raises:
        ValueError: If arrays are empty or have different shapes
    """
    if len(y_true) == 0:
        raise ValueError("y_true cannot be empty")
    if len(y_pred) == 0:
        raise ValueError("y_pred cannot be empty")
    if len(y_true) != len(y_pred):
        raise ValueError(
            f"y_true and y_pred must have same shape: "
            f"y_true={len(y_true)}, y_pred={len(y_pred)}"
        )
    return y_true, y_pred
