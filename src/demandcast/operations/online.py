"""
Online learning over a sliding observation window.

``OnlineLearner`` wraps one forecaster and keeps it current as daily
observations arrive: every new observation enters a bounded window, the
realized error of yesterday's one-step forecast is recorded, and the model is
retrained on the full window once it is full.
"""

import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta

import numpy as np
from loguru import logger

from demandcast.config import OnlineLearningSettings
from demandcast.data.observations import ForecastPoint, Observation
from demandcast.modeling.forecasting.baselines import Forecaster
from demandcast.modeling.forecasting.evaluation import (
    absolute_percentage_error,
    sample_std,
    split_half_drift,
)
from demandcast.utils.ring_buffer import RingBuffer

from .monitor import PerformanceSnapshot, utc_now

MIN_WINDOW_SIZE = 7
MAX_WINDOW_SIZE = 90


@dataclass(frozen=True)
class ModelPerformance:
    """Summary of an online learner's realized one-step accuracy."""

    mean_error: float
    std_dev_error: float
    drift: float
    has_drifted: bool
    sample_count: int
    window_fill: int


class OnlineLearner:
    """
    Sliding-window online learner with drift detection.

    Args:
        model: Forecaster kept up to date (trained in place)
        window_size: Capacity of the observation and error windows (clamped to [7, 90])
        drift_threshold: Relative error change above which the model counts as drifted
        clock: Callable returning the current time, used for snapshots

    Example:
        ```python
        from demandcast.modeling.forecasting import SpectralForecaster
        from demandcast.operations import OnlineLearner

        learner = OnlineLearner(SpectralForecaster(window_size=7), window_size=30)
        for obs in stream:
            learner.update_model(obs)
            tomorrow = learner.predict(horizon=1)
            if learner.has_model_drifted():
                alert_operator()
        ```
    """

    def __init__(
        self,
        model: Forecaster,
        window_size: int = 30,
        drift_threshold: float = 0.1,
        clock: Callable[[], datetime] | None = None,
    ):
        if drift_threshold <= 0:
            raise ValueError(f"drift_threshold must be > 0, got {drift_threshold}")

        self.model = model
        self.window_size = max(MIN_WINDOW_SIZE, min(MAX_WINDOW_SIZE, int(window_size)))
        self.drift_threshold = drift_threshold
        self.clock = clock or utc_now

        self._window: RingBuffer[Observation] = RingBuffer(self.window_size)
        self._errors: RingBuffer[float] = RingBuffer(self.window_size)
        self._performance: RingBuffer[PerformanceSnapshot] = RingBuffer(self.window_size)
        self._last_update: date | None = None
        self._last_prediction: float | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, model: Forecaster, settings: OnlineLearningSettings) -> "OnlineLearner":
        return cls(model, window_size=settings.window_size, drift_threshold=settings.drift_threshold)

    @property
    def last_update(self) -> date | None:
        return self._last_update

    @property
    def observation_count(self) -> int:
        return len(self._window)

    def update_model(self, observation: Observation | None) -> bool:
        """
        Feed one observation.

        The realized error of the last prediction is recorded only when the new
        observation is dated exactly one day after the previous update and its
        value is positive. Once the window is full the model is retrained on it;
        a failed retrain leaves the last update date unchanged.

        Returns:
            False for a missing observation or a failed retrain, True otherwise
        """
        if observation is None:
            logger.warning("update_model called without an observation")
            return False

        with self._lock:
            self._window.append(observation)

            if (
                self._last_prediction is not None
                and self._last_update is not None
                and observation.date - self._last_update == timedelta(days=1)
            ):
                error = absolute_percentage_error(observation.value, self._last_prediction)
                if not np.isnan(error):
                    self._errors.append(error)
                    self._performance.append(self._snapshot())

            if self._window.is_full:
                logger.debug(f"Retraining {self.model.model_name} on {len(self._window)} observations")
                if not self.model.train(self._window.to_list()):
                    logger.warning(
                        f"Online retrain of {self.model.model_name} failed: {self.model.last_error_}"
                    )
                    return False

            self._last_update = observation.date
        return True

    def predict(self, horizon: int = 1) -> list[ForecastPoint]:
        """
        Forecast from the buffered window.

        Returns:
            Forecast points, or an empty list until the window is full or if
            the wrapped model fails
        """
        with self._lock:
            if not self._window.is_full:
                logger.debug(
                    f"OnlineLearner has {len(self._window)}/{self.window_size} observations, "
                    f"not predicting yet"
                )
                return []

            points = self.model.predict(self._window.to_list(), horizon)
            if points:
                self._last_prediction = points[0].point_forecast
            return points

    def has_model_drifted(self) -> bool:
        """
        True if the recent half of the error window is worse than the older half
        by more than ``drift_threshold`` (relative change). Always False until the
        error window is full.
        """
        with self._lock:
            return self._drifted()

    def get_model_performance(self) -> ModelPerformance:
        with self._lock:
            errors = self._errors.to_list()
            return ModelPerformance(
                mean_error=float(np.mean(errors)) if errors else float("nan"),
                std_dev_error=sample_std(errors),
                drift=split_half_drift(errors),
                has_drifted=self._drifted(),
                sample_count=len(errors),
                window_fill=len(self._window),
            )

    def get_performance_history(self) -> list[PerformanceSnapshot]:
        with self._lock:
            return self._performance.to_list()

    def _drifted(self) -> bool:
        if len(self._errors) < self.window_size:
            return False
        return split_half_drift(self._errors.to_list()) > self.drift_threshold

    def _snapshot(self) -> PerformanceSnapshot:
        errors = self._errors.to_list()
        return PerformanceSnapshot(
            timestamp=self.clock(),
            mean_error=float(np.mean(errors)),
            std_dev_error=sample_std(errors),
            drift=split_half_drift(errors),
            sample_count=len(errors),
        )
