"""
Forecaster contract and baseline forecasting models.

Every model in the pipeline implements the same capability:

1. train(observations) -> bool: Learn from historical observations
2. predict(recent, horizon) -> list[ForecastPoint]: Iterative one-step forecasts
3. evaluate(test) -> float: Sliding one-step MAPE on held-out observations
4. get_parameters() / set_parameters(mapping): Tunable hyperparameters

Failures never raise out of train/predict/evaluate. The failing call records the
typed error on ``last_error_`` and returns a sentinel (False, [] or NaN) so that
``ModelErrorHandler`` can decide on a recovery strategy.

Baseline models included:
- NaiveForecaster: Last value propagation (random walk baseline)
- SeasonalNaiveForecaster: Seasonal repetition (weekly sales cycles)
- MovingAverageForecaster: Smoothed level (stable series)

Example:
    ```python
    from datetime import date, timedelta
    from demandcast.data import Observation
    from demandcast.modeling.forecasting.baselines import SeasonalNaiveForecaster

    start = date(2024, 1, 1)
    history = [
        Observation(date=start + timedelta(days=i), value=100 + 10 * (i % 7))
        for i in range(28)
    ]

    seasonal = SeasonalNaiveForecaster(period=7)
    if seasonal.train(history):
        points = seasonal.predict(history, horizon=7)  # repeats the last week
    ```
"""

import re
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from datetime import date, timedelta
from typing import Any

import numpy as np
from loguru import logger
from numpy.typing import NDArray

from demandcast.data.observations import ForecastPoint, Observation, values_of

from .errors import (
    ForecastingError,
    InsufficientDataError,
    InvalidParameterError,
    MalformedInputError,
    ModelNotTrainedError,
    NumericInstabilityError,
    ResourceExhaustionError,
    UnknownError,
)
from .evaluation import mape

# 95% normal interval
INTERVAL_Z = 1.96

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def normalize_parameter_name(name: str) -> str:
    """Convert ``WindowSize``/``windowSize`` style names to ``window_size``."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


class Forecaster(ABC):
    """
    Capability every forecasting model exposes.

    Subclasses implement train/predict/evaluate with sentinel failure results
    and the parameter accessors. Shared here: parameter-name normalization,
    defaults reset, cloning and failure recording.

    Attributes:
        is_trained_: Whether a train() call has succeeded
        last_error_: Error recorded by the most recent failed call (or None)
    """

    model_kind: str = "base"
    DEFAULT_PARAMETERS: dict[str, float] = {}

    def __init__(self):
        self.is_trained_ = False
        self.last_error_: ForecastingError | None = None

    @property
    def model_name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def train(self, observations: Sequence[Observation]) -> bool:
        pass

    @abstractmethod
    def predict(self, recent: Sequence[Observation], horizon: int = 10) -> list[ForecastPoint]:
        pass

    @abstractmethod
    def evaluate(self, test: Sequence[Observation]) -> float:
        pass

    @abstractmethod
    def get_parameters(self) -> dict[str, float]:
        """Return the model's tunable parameters as a name → scalar mapping."""
        pass

    @abstractmethod
    def _apply_parameter(self, name: str, value: float) -> None:
        """Apply one normalized, numeric parameter."""
        pass

    def set_parameters(self, parameters: Mapping[str, Any]) -> None:
        """
        Apply parameters by name.

        Names may be given in CamelCase (``WindowSize``) or snake_case
        (``window_size``). Parameters are applied in the order get_parameters()
        lists them, so dependent bounds (e.g. component count ≤ window size)
        resolve the same way regardless of mapping order. Out-of-range values
        are clamped by the model's own bounds.

        New values take effect at the next train(); trained state is untouched.

        Raises:
            InvalidParameterError: For unknown names, non-numeric or non-finite values
        """
        known = list(self.get_parameters())
        normalized: dict[str, float] = {}
        for raw_name, value in parameters.items():
            name = normalize_parameter_name(raw_name)
            if name not in known:
                raise InvalidParameterError(
                    f"Unknown parameter '{raw_name}' for {self.model_name}. Known: {known}"
                )
            if isinstance(value, bool):
                raise InvalidParameterError(f"Parameter '{raw_name}' must be numeric, got bool")
            try:
                normalized[name] = float(value)
            except (TypeError, ValueError) as e:
                raise InvalidParameterError(
                    f"Parameter '{raw_name}' must be numeric, got {value!r}"
                ) from e
            if not np.isfinite(normalized[name]):
                raise InvalidParameterError(f"Parameter '{raw_name}' must be finite, got {value!r}")

        for name in known:
            if name in normalized:
                self._apply_parameter(name, normalized[name])

    def reset_parameters(self) -> None:
        """Restore the documented default parameters."""
        self.set_parameters(self.DEFAULT_PARAMETERS)

    def clone(self) -> "Forecaster":
        """Return a fresh, untrained forecaster with the same parameters."""
        fresh = type(self)()
        fresh.set_parameters(self.get_parameters())
        return fresh

    def _record_failure(self, operation: str, error: ForecastingError) -> bool:
        self.last_error_ = error
        logger.warning(f"{self.model_name} {operation} failed: {type(error).__name__}: {error}")
        return False

    def _describe_parameters(self) -> str:
        return ", ".join(f"{name}={value:g}" for name, value in self.get_parameters().items())

    def __repr__(self) -> str:
        return f"{self.model_name}({self._describe_parameters()})"


class BaseForecaster(Forecaster):
    """
    Abstract base class for window-based forecasters.

    Implements the train/predict/evaluate templates shared by every single model:

    - Input validation (too few records, non-finite or negative targets)
    - Atomic commit of trained state: ``_fit`` returns the new state and it is
      assigned only when training succeeds, so a failed train() leaves the last
      good state untouched
    - Iterative one-step prediction from a window of the most recent values,
      padded from the training series when the recent series is shorter
    - Confidence intervals of half-width ``1.96 × max(std, interval_std_floor)``
      where ``std`` is the standard deviation of the full training series

    Subclasses must implement:
    - window_length: Number of recent values consumed by one forecast step
    - _fit(values): Compute and return the trained state
    - _forecast_one_step(window): Forecast the value following ``window``
    - get_parameters() / _apply_parameter(name, value)

    Attributes:
        history_: Training series (set after train())
        interval_std_: Floored standard deviation used for intervals
        last_date_: Latest observation date seen in training
        trained_window_length_: Window length the trained state was built with
    """

    def __init__(self, interval_std_floor: float = 1.0):
        if interval_std_floor < 0:
            raise InvalidParameterError(
                f"interval_std_floor must be >= 0, got {interval_std_floor}"
            )

        super().__init__()
        self.interval_std_floor = float(interval_std_floor)
        self.history_: NDArray[np.floating] | None = None
        self.interval_std_: float | None = None
        self.last_date_: date | None = None
        self.trained_window_length_: int | None = None

    @property
    @abstractmethod
    def window_length(self) -> int:
        """Number of recent values one forecast step consumes."""
        pass

    def min_training_size(self) -> int:
        """Minimum number of observations train() accepts."""
        return self.window_length

    @abstractmethod
    def _fit(self, values: NDArray[np.floating]) -> dict[str, Any]:
        """
        Compute trained state from a validated training series.

        Must not assign to ``self``; the returned mapping of attribute name to
        value is committed by train() only on success.

        Raises:
            ForecastingError: On any training failure
        """
        pass

    @abstractmethod
    def _forecast_one_step(self, window: NDArray[np.floating]) -> float:
        """Forecast the value that follows ``window`` using trained state."""
        pass

    def train(self, observations: Sequence[Observation]) -> bool:
        """
        Train the forecaster on historical observations.

        Args:
            observations: Training observations ordered by date

        Returns:
            True if training succeeded. On failure the error is available on
            ``last_error_`` and any previously trained state is kept.
        """
        observations = list(observations) if observations is not None else []
        logger.info(
            f"Training {self.model_name} on {len(observations)} observations "
            f"({self._describe_parameters()})"
        )

        try:
            values = self._validate_training_values(observations)
            state = self._fit(values)
        except ForecastingError as e:
            return self._record_failure("training", e)
        except MemoryError as e:
            return self._record_failure(
                "training", _chained(ResourceExhaustionError(f"out of memory: {e}"), e)
            )
        except Exception as e:
            return self._record_failure(
                "training", _chained(UnknownError(f"{type(e).__name__}: {e}"), e)
            )

        state.update(
            history_=values,
            interval_std_=max(float(np.std(values)), self.interval_std_floor),
            last_date_=max(obs.date for obs in observations),
            trained_window_length_=self.window_length,
        )
        for name, value in state.items():
            setattr(self, name, value)
        self.is_trained_ = True
        self.last_error_ = None

        logger.info(f"{self.model_name} training completed successfully")
        return True

    def predict(self, recent: Sequence[Observation], horizon: int = 10) -> list[ForecastPoint]:
        """
        Forecast ``horizon`` steps after the most recent observation.

        Each step forecasts one value from the current window, appends it and
        slides the window forward by one. Forecast dates follow the latest date
        in ``recent`` (or the training series when ``recent`` is empty) at
        daily frequency.

        Args:
            recent: Recent observations; padded from the training series if
                shorter than the model's window
            horizon: Number of steps ahead to forecast

        Returns:
            ``horizon`` forecast points, or an empty list on failure
        """
        if not self.is_trained_:
            self._record_failure(
                "prediction", ModelNotTrainedError(f"{self.model_name} has not been trained")
            )
            return []
        if horizon <= 0:
            self._record_failure(
                "prediction", InvalidParameterError(f"horizon must be > 0, got {horizon}")
            )
            return []

        recent = list(recent) if recent is not None else []
        try:
            points = self._predict_points(recent, horizon)
        except ForecastingError as e:
            self._record_failure("prediction", e)
            return []
        except Exception as e:
            self._record_failure("prediction", _chained(UnknownError(f"{type(e).__name__}: {e}"), e))
            return []

        self.last_error_ = None
        logger.info(f"{self.model_name} forecast complete with {len(points)} periods")
        return points

    def evaluate(self, test: Sequence[Observation]) -> float:
        """
        Sliding one-step evaluation.

        For every window of ``window_length`` consecutive test values, forecast
        the next value and compare it with the actual one.

        Returns:
            MAPE over positions with a positive actual value, or NaN if the model
            is untrained, the test series is too short, or no actual is positive
        """
        if not self.is_trained_:
            self._record_failure(
                "evaluation", ModelNotTrainedError(f"{self.model_name} has not been trained")
            )
            return float("nan")

        values = values_of(list(test) if test is not None else [])
        window = self.trained_window_length_
        if len(values) <= window:
            logger.debug(
                f"{self.model_name}: {len(values)} test values leave no window of {window} to score"
            )
            return float("nan")
        if not np.all(np.isfinite(values)):
            self._record_failure(
                "evaluation", MalformedInputError("test series contains non-finite values")
            )
            return float("nan")

        try:
            predicted = np.array(
                [max(0.0, self._forecast_one_step(values[i - window : i])) for i in range(window, len(values))]
            )
        except ForecastingError as e:
            self._record_failure("evaluation", e)
            return float("nan")

        return mape(values[window:], predicted)

    def _validate_training_values(self, observations: list[Observation]) -> NDArray[np.floating]:
        required = self.min_training_size()
        if len(observations) < required:
            raise InsufficientDataError(
                f"{self.model_name} needs at least {required} observations, got {len(observations)}"
            )

        values = values_of(observations)
        invalid = int(np.sum(~np.isfinite(values) | (values < 0)))
        if invalid > 0:
            raise MalformedInputError(
                f"{invalid} of {len(values)} observations have non-finite or negative values"
            )
        return values

    def _predict_points(self, recent: list[Observation], horizon: int) -> list[ForecastPoint]:
        recent_values = values_of(recent)
        if np.any(~np.isfinite(recent_values) | (recent_values < 0)):
            raise MalformedInputError("recent series contains non-finite or negative values")

        window = self._initial_window(recent_values)
        start_date = max(obs.date for obs in recent) if recent else self.last_date_
        margin = INTERVAL_Z * self.interval_std_

        points = []
        for step in range(horizon):
            value = float(self._forecast_one_step(window))
            if not np.isfinite(value):
                raise NumericInstabilityError(f"non-finite forecast at step {step + 1}")
            value = max(0.0, value)
            window = np.append(window[1:], value)
            points.append(
                ForecastPoint(
                    date=start_date + timedelta(days=step + 1),
                    point_forecast=value,
                    lower_bound=max(0.0, value - margin),
                    upper_bound=value + margin,
                )
            )
        return points

    def _initial_window(self, recent_values: NDArray[np.floating]) -> NDArray[np.floating]:
        window = self.trained_window_length_
        if len(recent_values) >= window:
            return recent_values[-window:].copy()

        missing = window - len(recent_values)
        return np.concatenate([self.history_[-missing:], recent_values])


def _chained(error: ForecastingError, cause: BaseException) -> ForecastingError:
    error.__cause__ = cause
    return error


class NaiveForecaster(BaseForecaster):
    """
    Naive forecaster that propagates the last observed value.

    This is the simplest baseline, also known as the "persistence" or
    "random walk" forecaster.

    Formula:
        ŷ(t+h) = y(t) for all h in [1, horizon]

    Use cases:
        - Baseline every other model must beat
        - Non-stationary demand with strong persistence
    """

    model_kind = "naive"
    DEFAULT_PARAMETERS = {"interval_std_floor": 1.0}

    @property
    def window_length(self) -> int:
        return 1

    def _fit(self, values: NDArray[np.floating]) -> dict[str, Any]:
        return {}

    def _forecast_one_step(self, window: NDArray[np.floating]) -> float:
        return float(window[-1])

    def get_parameters(self) -> dict[str, float]:
        return {"interval_std_floor": self.interval_std_floor}

    def _apply_parameter(self, name: str, value: float) -> None:
        self.interval_std_floor = max(0.0, value)


class SeasonalNaiveForecaster(BaseForecaster):
    """
    Seasonal naive forecaster that repeats the last seasonal cycle.

    Formula:
        ŷ(t+h) = y(t - period + ((h-1) mod period))

    Use cases:
        - Retail sales with a strong weekly pattern (period=7)
        - Requires at least one full seasonal cycle of data

    Example:
        ```python
        # Two weeks of daily sales with a weekly pattern
        sales = [100, 120, 130, 125, 135, 90, 80,
                 105, 125, 135, 130, 140, 95, 85]

        seasonal = SeasonalNaiveForecaster(period=7)
        seasonal.train(observations)
        seasonal.predict(observations, horizon=7)
        # point forecasts: [105, 125, 135, 130, 140, 95, 85]
        ```

    Attributes:
        period: Length of the seasonal cycle
    """

    model_kind = "seasonal_naive"
    DEFAULT_PARAMETERS = {"period": 7, "interval_std_floor": 1.0}

    def __init__(self, period: int = 7, interval_std_floor: float = 1.0):
        if period <= 0:
            raise InvalidParameterError(f"period must be > 0, got {period}")

        super().__init__(interval_std_floor=interval_std_floor)
        self.period = int(period)

    @property
    def window_length(self) -> int:
        return self.period

    def _fit(self, values: NDArray[np.floating]) -> dict[str, Any]:
        return {}

    def _forecast_one_step(self, window: NDArray[np.floating]) -> float:
        # The value one period back is the first element of a period-long window
        return float(window[0])

    def get_parameters(self) -> dict[str, float]:
        return {"period": self.period, "interval_std_floor": self.interval_std_floor}

    def _apply_parameter(self, name: str, value: float) -> None:
        if name == "period":
            if value <= 0:
                raise InvalidParameterError(f"period must be > 0, got {value:g}")
            self.period = int(value)
        else:
            self.interval_std_floor = max(0.0, value)


class MovingAverageForecaster(BaseForecaster):
    """
    Moving average forecaster that uses the mean of recent observations.

    Each step forecasts the mean of the last ``window`` values and feeds the
    forecast back into the window, so multi-step forecasts converge smoothly
    toward the recent level.

    Formula:
        ŷ(t+1) = mean(y(t-window+1), ..., y(t))

    Use cases:
        - Stable series with noise but no trend or seasonality

    Attributes:
        window: Number of recent observations to average
    """

    model_kind = "moving_average"
    DEFAULT_PARAMETERS = {"window": 7, "interval_std_floor": 1.0}

    def __init__(self, window: int = 7, interval_std_floor: float = 1.0):
        if window <= 0:
            raise InvalidParameterError(f"window must be > 0, got {window}")

        super().__init__(interval_std_floor=interval_std_floor)
        self.window = int(window)

    @property
    def window_length(self) -> int:
        return self.window

    def _fit(self, values: NDArray[np.floating]) -> dict[str, Any]:
        return {}

    def _forecast_one_step(self, window: NDArray[np.floating]) -> float:
        return float(np.mean(window))

    def get_parameters(self) -> dict[str, float]:
        return {"window": self.window, "interval_std_floor": self.interval_std_floor}

    def _apply_parameter(self, name: str, value: float) -> None:
        if name == "window":
            if value <= 0:
                raise InvalidParameterError(f"window must be > 0, got {value:g}")
            self.window = int(value)
        else:
            self.interval_std_floor = max(0.0, value)
