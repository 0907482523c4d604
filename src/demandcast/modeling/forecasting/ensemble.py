"""
Weighted multi-model ensemble.

Members are kept index-aligned with their weights. Training is all-or-nothing:
the ensemble is trained only when every member trains successfully. Prediction
combines whichever members return a complete forecast for the call, with the
weights renormalized over those survivors.

Example:
    ```python
    from demandcast.modeling.forecasting import (
        EnsembleForecaster,
        SeasonalNaiveForecaster,
        SpectralForecaster,
    )

    ensemble = EnsembleForecaster()
    ensemble.add_model(SpectralForecaster(window_size=7), weight=0.6)
    ensemble.add_model(SeasonalNaiveForecaster(period=7), weight=0.4)

    ensemble.train(history)
    ensemble.update_weights(validation)  # reweight by 1 / (1 + MAPE)
    points = ensemble.predict(history, horizon=14)
    ```
"""

from collections.abc import Sequence

import numpy as np
from loguru import logger

from demandcast.data.observations import ForecastPoint, Observation

from .baselines import Forecaster
from .errors import InvalidParameterError, InvalidStateError, ModelNotTrainedError
from .evaluation import mape


class EnsembleForecaster(Forecaster):
    """
    Ensemble of forecasters combined by weighted average.

    Args:
        models: Initial members
        weights: Initial weights (defaults to 1.0 per member)

    Attributes:
        last_combination_weights_: Renormalized weights used by the most recent
            successful predict(), index-aligned with the surviving members
        last_surviving_members_: Indices of the members combined in that call
    """

    model_kind = "ensemble"

    def __init__(
        self,
        models: Sequence[Forecaster] | None = None,
        weights: Sequence[float] | None = None,
    ):
        super().__init__()
        self._models: list[Forecaster] = []
        self._weights: list[float] = []
        self.last_combination_weights_: list[float] | None = None
        self.last_surviving_members_: list[int] | None = None

        models = list(models or [])
        if weights is not None and len(weights) != len(models):
            raise InvalidParameterError(
                f"weights must match models: {len(weights)} weights for {len(models)} models"
            )
        for i, model in enumerate(models):
            self.add_model(model, weight=1.0 if weights is None else weights[i])

    @property
    def models(self) -> tuple[Forecaster, ...]:
        return tuple(self._models)

    @property
    def weights(self) -> tuple[float, ...]:
        return tuple(self._weights)

    def add_model(self, model: Forecaster, weight: float = 1.0) -> None:
        """
        Append a member. The ensemble must be retrained afterwards.

        Raises:
            InvalidParameterError: If weight is negative or non-finite
        """
        if not np.isfinite(weight) or weight < 0:
            raise InvalidParameterError(f"weight must be a finite value >= 0, got {weight}")

        self._models.append(model)
        self._weights.append(float(weight))
        self.is_trained_ = False
        logger.debug(f"Added {model.model_name} to ensemble with weight {weight:g}")

    def train(self, observations: Sequence[Observation]) -> bool:
        observations = list(observations) if observations is not None else []
        if not self._models:
            return self._record_failure("training", InvalidStateError("ensemble has no members"))

        logger.info(f"Training ensemble of {len(self._models)} models on {len(observations)} observations")
        failed = [model for model in self._models if not model.train(observations)]

        if failed:
            self.is_trained_ = False
            names = ", ".join(model.model_name for model in failed)
            error = failed[0].last_error_ or InvalidStateError(f"member training failed: {names}")
            return self._record_failure("training", error)

        self.is_trained_ = True
        self.last_error_ = None
        logger.info("Ensemble training completed successfully")
        return True

    def predict(self, recent: Sequence[Observation], horizon: int = 10) -> list[ForecastPoint]:
        """
        Weighted combination of member forecasts.

        Members returning no forecast (or a forecast of the wrong length) are
        dropped for this call and the remaining weights are renormalized to sum
        to 1. If the surviving weights are all zero they are combined equally.

        Returns:
            ``horizon`` combined points, or an empty list if the ensemble is
            untrained or no member produced a forecast
        """
        if not self.is_trained_:
            self._record_failure("prediction", ModelNotTrainedError("ensemble has not been trained"))
            return []
        if horizon <= 0:
            self._record_failure(
                "prediction", InvalidParameterError(f"horizon must be > 0, got {horizon}")
            )
            return []

        recent = list(recent) if recent is not None else []
        surviving: list[int] = []
        forecasts: list[list[ForecastPoint]] = []
        for i, model in enumerate(self._models):
            points = model.predict(recent, horizon)
            if len(points) != horizon:
                logger.debug(
                    f"Dropping {model.model_name} from this forecast "
                    f"({len(points)} of {horizon} points)"
                )
                continue
            surviving.append(i)
            forecasts.append(points)

        if not forecasts:
            error = next(
                (m.last_error_ for m in self._models if m.last_error_ is not None),
                InvalidStateError("no ensemble member returned a forecast"),
            )
            self._record_failure("prediction", error)
            return []

        weights = np.array([self._weights[i] for i in surviving])
        total = weights.sum()
        weights = weights / total if total > 0 else np.full(len(surviving), 1.0 / len(surviving))

        combined = []
        for step in range(horizon):
            step_points = [points[step] for points in forecasts]
            combined.append(
                ForecastPoint(
                    date=step_points[0].date,
                    point_forecast=float(weights @ [p.point_forecast for p in step_points]),
                    lower_bound=max(0.0, float(weights @ [p.lower_bound for p in step_points])),
                    upper_bound=float(weights @ [p.upper_bound for p in step_points]),
                )
            )

        self.last_combination_weights_ = weights.tolist()
        self.last_surviving_members_ = surviving
        self.last_error_ = None
        return combined

    def evaluate(self, test: Sequence[Observation]) -> float:
        """
        One-step holdout: forecast the last record from all the records before it.

        Returns:
            Absolute percentage error of that forecast, or NaN if the forecast
            fails, fewer than two records are given or the last actual is not positive
        """
        test = list(test) if test is not None else []
        if len(test) < 2:
            return float("nan")

        points = self.predict(test[:-1], horizon=1)
        if not points:
            return float("nan")

        return mape(np.array([test[-1].value]), np.array([points[0].point_forecast]))

    def update_weights(self, validation: Sequence[Observation]) -> list[float]:
        """
        Reweight members by validation accuracy.

        Each member scores ``1 / (1 + MAPE)`` (0 when its MAPE is NaN) and the
        scores are normalized to sum to 1. Weights are left unchanged when every
        score is 0.

        Returns:
            The weight vector after the update
        """
        validation = list(validation) if validation is not None else []
        scores = []
        for model in self._models:
            error = model.evaluate(validation)
            scores.append(0.0 if np.isnan(error) else 1.0 / (1.0 + error))
            logger.debug(f"{model.model_name}: validation MAPE={error:.4f}")

        total = sum(scores)
        if total == 0:
            logger.warning("No member produced a valid validation score; weights unchanged")
            return list(self._weights)

        self._weights = [score / total for score in scores]
        logger.info(f"Updated ensemble weights: {[round(w, 4) for w in self._weights]}")
        return list(self._weights)

    def get_parameters(self) -> dict[str, float]:
        return {f"weight_{i}": weight for i, weight in enumerate(self._weights)}

    def _apply_parameter(self, name: str, value: float) -> None:
        if not np.isfinite(value) or value < 0:
            raise InvalidParameterError(f"{name} must be a finite value >= 0, got {value:g}")
        self._weights[int(name.removeprefix("weight_"))] = value

    def reset_parameters(self) -> None:
        """Reset every member to its defaults and all weights to 1.0."""
        for model in self._models:
            model.reset_parameters()
        self._weights = [1.0] * len(self._models)

    def clone(self) -> "EnsembleForecaster":
        return EnsembleForecaster([model.clone() for model in self._models], list(self._weights))
