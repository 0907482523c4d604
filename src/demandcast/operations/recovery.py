"""
Typed error recovery for forecaster failures.

Forecasters report failures as sentinel results plus ``last_error_``. The
``ModelErrorHandler`` turns such an error into a recovery decision:

| Error kind          | Training recovery                        | Prediction recovery                  |
|---------------------|------------------------------------------|--------------------------------------|
| malformed_input     | drop invalid records, retrain            | drop invalid records, predict        |
| invalid_state       | reset parameters to defaults, retrain    | retrain on recent records, predict   |
| resource_exhaustion | retrain on the most recent records       | retrain on recent records, predict   |
| unknown             | wait, retrain unchanged                  | wait, predict unchanged              |

Each error kind has a retry budget shared by training and prediction. Once a
kind's budget is spent the handler reports permanent failure without attempting
recovery, and the model keeps its last good trained state.

Example:
    ```python
    from demandcast.operations import ModelErrorHandler

    handler = ModelErrorHandler("store-42", max_retries=3)
    if not model.train(history):
        if not handler.handle_training_error(model.last_error_, model, history):
            raise RuntimeError(f"training failed permanently: {model.last_error_}")
    ```
"""

import threading
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from loguru import logger

from demandcast.config import ErrorHandlingSettings
from demandcast.data.observations import ForecastPoint, Observation, sort_observations
from demandcast.modeling.forecasting.baselines import Forecaster
from demandcast.modeling.forecasting.errors import ErrorKind, classify_error
from demandcast.utils.ring_buffer import RingBuffer

from .monitor import utc_now

TRAINING = "training"
PREDICTION = "prediction"


@dataclass(frozen=True)
class ErrorRecord:
    """One failure seen by the handler."""

    timestamp: datetime
    error_kind: ErrorKind
    operation: str
    message: str


@dataclass(frozen=True)
class ErrorStatistics:
    """
    Snapshot of a handler's counters.

    Attributes:
        retry_counts: Retries spent per kind since its last successful recovery
        error_counts: Errors per kind in the retained history
        total_errors: Number of errors in the retained history
    """

    retry_counts: dict[ErrorKind, int]
    error_counts: dict[ErrorKind, int]
    total_errors: int


class ModelErrorHandler:
    """
    Retry-budgeted recovery policy for one model.

    Args:
        model_name: Name used in logs
        max_retries: Recovery attempts allowed per error kind
        retry_delay: Wait before retrying an unknown error
        max_error_history: Capacity of the error history
        max_cleaning_loss: Largest fraction of records cleaning may discard
        reduced_training_size: Records kept when retraining after resource exhaustion
        recent_prediction_size: Records used to retrain before a recovered prediction
        clock: Callable returning the current time (defaults to UTC now)
    """

    def __init__(
        self,
        model_name: str,
        max_retries: int = 3,
        retry_delay: timedelta = timedelta(seconds=5),
        max_error_history: int = 100,
        max_cleaning_loss: float = 0.1,
        reduced_training_size: int = 1000,
        recent_prediction_size: int = 30,
        clock: Callable[[], datetime] | None = None,
    ):
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        if not 0 <= max_cleaning_loss <= 1:
            raise ValueError(f"max_cleaning_loss must be in [0, 1], got {max_cleaning_loss}")

        self.model_name = model_name
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.max_cleaning_loss = max_cleaning_loss
        self.reduced_training_size = reduced_training_size
        self.recent_prediction_size = recent_prediction_size
        self.clock = clock or utc_now

        self._history: RingBuffer[ErrorRecord] = RingBuffer(max_error_history)
        self._retry_counts: dict[ErrorKind, int] = {kind: 0 for kind in ErrorKind}
        self._cancelled = threading.Event()
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, model_name: str, settings: ErrorHandlingSettings) -> "ModelErrorHandler":
        return cls(
            model_name,
            max_retries=settings.max_retries,
            retry_delay=timedelta(seconds=settings.retry_delay_seconds),
            max_error_history=settings.max_error_history,
            max_cleaning_loss=settings.max_cleaning_loss,
            reduced_training_size=settings.reduced_training_size,
            recent_prediction_size=settings.recent_prediction_size,
        )

    def handle_training_error(
        self,
        error: BaseException | None,
        model: Forecaster,
        data: Sequence[Observation],
    ) -> bool:
        """
        Record a training failure and attempt the recovery for its kind.

        Args:
            error: The failure (usually ``model.last_error_``)
            model: The model whose training failed
            data: The training data of the failed call

        Returns:
            True if recovery retrained the model successfully
        """
        kind = self._admit(error, TRAINING)
        if kind is None:
            return False

        data = list(data) if data is not None else []
        strategies = {
            ErrorKind.MALFORMED_INPUT: self._retrain_cleaned,
            ErrorKind.INVALID_STATE: self._retrain_with_defaults,
            ErrorKind.RESOURCE_EXHAUSTION: self._retrain_reduced,
            ErrorKind.UNKNOWN: self._retrain_after_delay,
        }
        return self._finish(kind, TRAINING, strategies[kind](model, data))

    def handle_prediction_error(
        self,
        error: BaseException | None,
        model: Forecaster,
        data: Sequence[Observation],
        horizon: int = 1,
    ) -> list[ForecastPoint]:
        """
        Record a prediction failure and attempt the recovery for its kind.

        Args:
            error: The failure (usually ``model.last_error_``)
            model: The model whose prediction failed
            data: The recent data of the failed call
            horizon: Horizon to forecast on recovery

        Returns:
            The recovered forecast, or an empty list if recovery failed
        """
        kind = self._admit(error, PREDICTION)
        if kind is None:
            return []

        data = list(data) if data is not None else []
        strategies = {
            ErrorKind.MALFORMED_INPUT: self._predict_cleaned,
            ErrorKind.INVALID_STATE: self._predict_after_recent_retrain,
            ErrorKind.RESOURCE_EXHAUSTION: self._predict_after_recent_retrain,
            ErrorKind.UNKNOWN: self._predict_after_delay,
        }
        points = strategies[kind](model, data, horizon)
        self._finish(kind, PREDICTION, bool(points))
        return points

    def get_error_history(self) -> list[ErrorRecord]:
        with self._lock:
            return self._history.to_list()

    def get_error_statistics(self) -> ErrorStatistics:
        with self._lock:
            records = self._history.to_list()
            counts = Counter(record.error_kind for record in records)
            return ErrorStatistics(
                retry_counts=dict(self._retry_counts),
                error_counts={kind: counts.get(kind, 0) for kind in ErrorKind},
                total_errors=len(records),
            )

    def reset_retry_counts(self) -> None:
        with self._lock:
            self._retry_counts = {kind: 0 for kind in ErrorKind}

    def cancel(self) -> None:
        """Abort pending and future retry delays until resume() is called."""
        self._cancelled.set()

    def resume(self) -> None:
        self._cancelled.clear()

    def _admit(self, error: BaseException | None, operation: str) -> ErrorKind | None:
        kind = classify_error(error)
        message = f"{type(error).__name__}: {error}" if error is not None else "no error recorded"

        with self._lock:
            self._history.append(ErrorRecord(self.clock(), kind, operation, message))
            if self._retry_counts[kind] >= self.max_retries:
                logger.error(
                    f"{self.model_name}: {operation} failed permanently, retry budget for "
                    f"{kind.value} exhausted ({self.max_retries}): {message}"
                )
                return None
            self._retry_counts[kind] += 1
            attempt = self._retry_counts[kind]

        logger.warning(
            f"{self.model_name}: {operation} error ({kind.value}), "
            f"recovery attempt {attempt}/{self.max_retries}: {message}"
        )
        return kind

    def _finish(self, kind: ErrorKind, operation: str, recovered: bool) -> bool:
        if recovered:
            with self._lock:
                self._retry_counts[kind] = 0
            logger.info(f"{self.model_name}: recovered from {kind.value} {operation} error")
        else:
            logger.warning(f"{self.model_name}: recovery from {kind.value} {operation} error failed")
        return recovered

    def _wait(self) -> bool:
        seconds = self.retry_delay.total_seconds()
        if seconds <= 0:
            return not self._cancelled.is_set()
        logger.debug(f"{self.model_name}: waiting {seconds:g}s before retry")
        return not self._cancelled.wait(seconds)

    def _clean(self, data: list[Observation]) -> list[Observation] | None:
        if not data:
            return None
        cleaned = [obs for obs in data if obs.is_valid]
        lost = 1 - len(cleaned) / len(data)
        if lost > self.max_cleaning_loss:
            logger.error(
                f"{self.model_name}: cleaning would discard {lost:.1%} of records "
                f"(limit {self.max_cleaning_loss:.1%}), aborting recovery"
            )
            return None
        logger.debug(f"{self.model_name}: removed {len(data) - len(cleaned)} invalid records")
        return cleaned

    def _recent(self, data: list[Observation], count: int) -> list[Observation]:
        return sort_observations(data)[-count:]

    def _retrain_cleaned(self, model: Forecaster, data: list[Observation]) -> bool:
        cleaned = self._clean(data)
        return cleaned is not None and model.train(cleaned)

    def _retrain_with_defaults(self, model: Forecaster, data: list[Observation]) -> bool:
        saved = _parameter_state(model)
        model.reset_parameters()
        if model.train(data):
            return True
        for owner, parameters in saved:
            owner.set_parameters(parameters)
        logger.debug(f"{self.model_name}: retrain with defaults failed, parameters restored")
        return False

    def _retrain_reduced(self, model: Forecaster, data: list[Observation]) -> bool:
        return model.train(self._recent(data, self.reduced_training_size))

    def _retrain_after_delay(self, model: Forecaster, data: list[Observation]) -> bool:
        return self._wait() and model.train(data)

    def _predict_cleaned(
        self, model: Forecaster, data: list[Observation], horizon: int
    ) -> list[ForecastPoint]:
        cleaned = self._clean(data)
        if cleaned is None:
            return []
        return model.predict(cleaned, horizon)

    def _predict_after_recent_retrain(
        self, model: Forecaster, data: list[Observation], horizon: int
    ) -> list[ForecastPoint]:
        recent = self._recent(data, self.recent_prediction_size)
        if not model.train(recent):
            return []
        return model.predict(recent, horizon)

    def _predict_after_delay(
        self, model: Forecaster, data: list[Observation], horizon: int
    ) -> list[ForecastPoint]:
        if not self._wait():
            return []
        return model.predict(data, horizon)


def _parameter_state(model: Forecaster) -> list[tuple[Forecaster, dict[str, float]]]:
    """Parameters of ``model`` and, for ensembles, of every member."""
    state = [(model, model.get_parameters())]
    for member in getattr(model, "models", ()):
        state.extend(_parameter_state(member))
    return state
