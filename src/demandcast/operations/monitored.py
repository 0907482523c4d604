"""
Forecaster wrapper that routes failures to recovery and feeds a monitor.

``MonitoredForecaster`` is what an application holds in production: training
and prediction failures go through a ``ModelErrorHandler``, and every actual
reported later is matched with the forecast issued for that date and tracked by
a ``ModelMonitor``.

Example:
    ```python
    from demandcast.modeling.forecasting import SpectralForecaster
    from demandcast.operations import MonitoredForecaster

    monitored = MonitoredForecaster(SpectralForecaster(), name="store-42")
    monitored.train(history)
    points = monitored.predict(history, horizon=7)

    # next day, once sales are known
    monitored.record_actual(points[0].date, actual_sales)
    ```
"""

from collections.abc import Sequence
from datetime import date

from loguru import logger

from demandcast.data.observations import ForecastPoint, Observation
from demandcast.modeling.forecasting.baselines import Forecaster

from .monitor import ModelMonitor, PerformanceSnapshot
from .recovery import ModelErrorHandler

MAX_PENDING_FORECASTS = 1000


class MonitoredForecaster:
    """
    A forecaster with error recovery and accuracy monitoring attached.

    Args:
        model: Wrapped forecaster
        handler: Error handler (a default one is created when omitted)
        monitor: Accuracy monitor (a default one is created when omitted)
        name: Name shared by the handler and monitor (defaults to the model's)
    """

    def __init__(
        self,
        model: Forecaster,
        handler: ModelErrorHandler | None = None,
        monitor: ModelMonitor | None = None,
        name: str | None = None,
    ):
        self.model = model
        self.name = name or model.model_name
        self.handler = handler or ModelErrorHandler(self.name)
        self.monitor = monitor or ModelMonitor(self.name)
        # date -> point forecast, oldest issued first
        self._issued: dict[date, float] = {}

    @property
    def is_trained_(self) -> bool:
        return self.model.is_trained_

    def train(self, observations: Sequence[Observation]) -> bool:
        observations = list(observations)
        if self.model.train(observations):
            return True
        return self.handler.handle_training_error(self.model.last_error_, self.model, observations)

    def predict(self, recent: Sequence[Observation], horizon: int = 10) -> list[ForecastPoint]:
        recent = list(recent)
        points = self.model.predict(recent, horizon)
        if not points:
            points = self.handler.handle_prediction_error(
                self.model.last_error_, self.model, recent, horizon
            )

        for point in points:
            self._issued.pop(point.date, None)
            self._issued[point.date] = point.point_forecast
        while len(self._issued) > MAX_PENDING_FORECASTS:
            del self._issued[next(iter(self._issued))]
        return points

    def evaluate(self, test: Sequence[Observation]) -> float:
        return self.model.evaluate(test)

    def get_parameters(self) -> dict[str, float]:
        return self.model.get_parameters()

    def set_parameters(self, parameters) -> None:
        self.model.set_parameters(parameters)

    def record_actual(self, day: date, actual: float) -> PerformanceSnapshot | None:
        """
        Track the realized value for a forecast date.

        Returns:
            The monitor's refreshed snapshot, or None if no forecast was issued
            for ``day`` or the record was skipped
        """
        predicted = self._issued.pop(day, None)
        if predicted is None:
            logger.debug(f"{self.name}: no forecast issued for {day}, actual not tracked")
            return None
        return self.monitor.track_prediction(day, predicted, actual)
