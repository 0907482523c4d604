"""
Production monitoring of forecast accuracy.

``ModelMonitor`` keeps a bounded history of (predicted, actual) pairs for one
model, recomputes rolling accuracy after every tracked prediction and raises a
degradation alert when the rolling error breaches a threshold, at most once per
cooldown window.

Example:
    ```python
    from datetime import date, timedelta
    from demandcast.operations import ModelMonitor

    monitor = ModelMonitor("store-42", error_threshold=0.2)
    for day, (predicted, actual) in enumerate(pairs):
        monitor.track_prediction(date(2024, 1, 1) + timedelta(days=day), predicted, actual)

    metrics = monitor.get_performance_metrics()
    print(f"MAPE={metrics.mean_error:.3f}, drift={metrics.drift:.2f}")
    print(f"Alerts raised: {len(monitor.get_alerts())}")
    ```
"""

import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

import numpy as np
from loguru import logger

from demandcast.config import MonitorSettings
from demandcast.modeling.forecasting.evaluation import (
    absolute_percentage_error,
    sample_std,
    split_half_drift,
)
from demandcast.utils.ring_buffer import RingBuffer

# Drift is only reported once the performance window holds this many records
DRIFT_MIN_SAMPLES = 15
MAX_ALERT_HISTORY = 100


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PredictionRecord:
    """One tracked prediction and its realized absolute percentage error."""

    date: date
    predicted: float
    actual: float
    error: float


@dataclass(frozen=True)
class PerformanceSnapshot:
    """
    Rolling accuracy at one point in time.

    Attributes:
        timestamp: When the snapshot was computed
        mean_error: Mean APE over the performance window (NaN if empty)
        std_dev_error: Sample std of APE (NaN with fewer than two records)
        drift: Relative change of the recent half's mean error vs. the older
            half's (NaN until enough records exist)
        sample_count: Number of records in the window
    """

    timestamp: datetime
    mean_error: float
    std_dev_error: float
    drift: float
    sample_count: int


@dataclass(frozen=True)
class Alert:
    """A degradation alert raised by a monitor."""

    timestamp: datetime
    model_name: str
    mean_error: float
    threshold: float
    message: str


class ModelMonitor:
    """
    Rolling accuracy tracker with cooldown-limited degradation alerts.

    Records whose actual value is zero carry no percentage error and are
    skipped. Mutating methods run under a lock so one monitor can be fed from
    several threads.

    Args:
        model_name: Name used in logs and alerts
        max_history: Capacity of the prediction history
        error_threshold: Mean APE above which the model counts as degraded
        alert_cooldown: Minimum time between two alerts
        performance_window: Number of most recent records metrics are computed over
        max_performance_history: Capacity of the snapshot history
        min_alert_samples: History size required before alerts can fire
        clock: Callable returning the current time (defaults to UTC now)
    """

    def __init__(
        self,
        model_name: str,
        max_history: int = 1000,
        error_threshold: float = 0.2,
        alert_cooldown: timedelta = timedelta(hours=24),
        performance_window: int = 30,
        max_performance_history: int = 30,
        min_alert_samples: int = 30,
        clock: Callable[[], datetime] | None = None,
    ):
        if error_threshold <= 0:
            raise ValueError(f"error_threshold must be > 0, got {error_threshold}")
        if performance_window < 2:
            raise ValueError(f"performance_window must be >= 2, got {performance_window}")

        self.model_name = model_name
        self.error_threshold = error_threshold
        self.alert_cooldown = alert_cooldown
        self.performance_window = performance_window
        self.min_alert_samples = min_alert_samples
        self.clock = clock or utc_now

        self._history: RingBuffer[PredictionRecord] = RingBuffer(max_history)
        self._performance: RingBuffer[PerformanceSnapshot] = RingBuffer(max_performance_history)
        self._alerts: RingBuffer[Alert] = RingBuffer(MAX_ALERT_HISTORY)
        self._last_alert_time: datetime | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        model_name: str,
        settings: MonitorSettings,
        clock: Callable[[], datetime] | None = None,
    ) -> "ModelMonitor":
        return cls(
            model_name,
            max_history=settings.max_history,
            error_threshold=settings.error_threshold,
            alert_cooldown=timedelta(hours=settings.alert_cooldown_hours),
            performance_window=settings.performance_window,
            max_performance_history=settings.max_performance_history,
            min_alert_samples=settings.min_alert_samples,
            clock=clock,
        )

    def track_prediction(
        self, day: date, predicted: float, actual: float
    ) -> PerformanceSnapshot | None:
        """
        Record a realized prediction, refresh rolling metrics and check for degradation.

        Returns:
            The refreshed snapshot, or None if the record was skipped
        """
        error = absolute_percentage_error(actual, predicted)
        if np.isnan(error) or not np.isfinite(predicted):
            logger.debug(f"{self.model_name}: skipping {day} (actual={actual}, predicted={predicted})")
            return None

        with self._lock:
            self._history.append(PredictionRecord(day, float(predicted), float(actual), error))
            snapshot = self._compute_metrics()
            self._performance.append(snapshot)
            self._check_degradation(snapshot)
        return snapshot

    def get_performance_metrics(self) -> PerformanceSnapshot:
        """Rolling metrics over the most recent ``performance_window`` records."""
        with self._lock:
            return self._compute_metrics()

    def get_prediction_history(self) -> list[PredictionRecord]:
        with self._lock:
            return self._history.to_list()

    def get_performance_history(self) -> list[PerformanceSnapshot]:
        with self._lock:
            return self._performance.to_list()

    def get_alerts(self) -> list[Alert]:
        with self._lock:
            return self._alerts.to_list()

    def reset(self) -> None:
        """Forget all history, snapshots, alerts and the cooldown timer."""
        with self._lock:
            self._history.clear()
            self._performance.clear()
            self._alerts.clear()
            self._last_alert_time = None

    def _compute_metrics(self) -> PerformanceSnapshot:
        errors = [record.error for record in self._history.latest(self.performance_window)]
        mean_error = float(np.mean(errors)) if errors else float("nan")
        drift = split_half_drift(errors) if len(errors) >= DRIFT_MIN_SAMPLES else float("nan")

        return PerformanceSnapshot(
            timestamp=self.clock(),
            mean_error=mean_error,
            std_dev_error=sample_std(errors),
            drift=drift,
            sample_count=len(errors),
        )

    def _check_degradation(self, snapshot: PerformanceSnapshot) -> None:
        if len(self._history) < self.min_alert_samples:
            return
        if not snapshot.mean_error > self.error_threshold:
            return

        now = snapshot.timestamp
        if self._last_alert_time is not None and now - self._last_alert_time < self.alert_cooldown:
            logger.debug(f"{self.model_name}: degradation alert suppressed (cooldown)")
            return

        message = (
            f"Model {self.model_name} degraded: MAPE={snapshot.mean_error:.4f} "
            f"exceeds threshold {self.error_threshold:.4f}"
        )
        self._alerts.append(Alert(now, self.model_name, snapshot.mean_error, self.error_threshold, message))
        self._last_alert_time = now
        logger.warning(message)
