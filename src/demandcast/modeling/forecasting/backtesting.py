"""
Walk-forward backtesting for forecasters.

Walk-forward validation simulates the production workflow: train on history,
forecast the next ``horizon`` days, move the cut-off forward and repeat. Unlike
k-fold cross-validation it never trains on records that come after the records
it is scored on.

Window Strategies:
- Expanding window (default): Training data grows over time
  - Example: [0:60] → [0:67] → [0:74] → ...
- Sliding window: Fixed training size, window slides forward
  - Example: [0:60] → [7:67] → [14:74] → ...

Example:
    ```python
    from demandcast.modeling.forecasting import SpectralForecaster, WalkForwardBacktest

    backtest = WalkForwardBacktest(initial_train_size=60, horizon=7, step_size=7)
    results = backtest.run_backtest(SpectralForecaster(window_size=7), history)

    print(f"Overall MAPE: {results.overall_metrics['mape']:.3f}")
    print(f"Interval coverage: {results.overall_metrics['coverage']:.2%}")
    for i, fold in enumerate(results.fold_metrics):
        print(f"Fold {i}: MAPE={fold['mape']:.3f}, train_size={fold['train_size']:.0f}")
    ```
"""

import time
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from loguru import logger
from numpy.typing import NDArray

from demandcast.data.observations import Observation, values_of

from .baselines import Forecaster
from .errors import InsufficientDataError, NoValidResultsError
from .evaluation import compute_all_metrics


@dataclass(frozen=True)
class BacktestResults:
    """
    Results from walk-forward backtesting.

    Attributes:
        forecasts: Point forecasts across folds, shape (n_total_forecasts,)
        lower_bounds: Matching lower bounds
        upper_bounds: Matching upper bounds
        actuals: Corresponding actual values
        fold_metrics: Metrics dict for each completed fold
        overall_metrics: Metrics over all folds combined
        train_sizes: Training set size at each completed fold
        train_times: Training time for each completed fold in seconds
        avg_train_time: Average training time across folds in seconds
        n_folds: Number of folds completed
    """

    forecasts: NDArray[np.floating]
    lower_bounds: NDArray[np.floating]
    upper_bounds: NDArray[np.floating]
    actuals: NDArray[np.floating]
    fold_metrics: list[dict[str, float]]
    overall_metrics: dict[str, float]
    train_sizes: NDArray[np.integer]
    train_times: NDArray[np.floating]
    avg_train_time: float
    n_folds: int


class WalkForwardBacktest:
    """
    Walk-forward backtesting over an ordered observation sequence.

    Args:
        initial_train_size: Size of initial training window (must be > 0)
        horizon: Forecast horizon in days (must be > 0)
        step_size: Records to move forward each iteration (default: 1)
        retrain: Whether to retrain the model at each fold (default: True)
        expanding_window: If True, use expanding window; if False, use sliding
            window of size initial_train_size (default: True)

    Raises:
        ValueError: If initial_train_size, horizon, or step_size <= 0
    """

    def __init__(
        self,
        initial_train_size: int,
        horizon: int,
        step_size: int = 1,
        retrain: bool = True,
        expanding_window: bool = True,
    ):
        if initial_train_size <= 0:
            raise ValueError(f"initial_train_size must be > 0, got {initial_train_size}")
        if horizon <= 0:
            raise ValueError(f"horizon must be > 0, got {horizon}")
        if step_size <= 0:
            raise ValueError(f"step_size must be > 0, got {step_size}")

        self.initial_train_size = initial_train_size
        self.horizon = horizon
        self.step_size = step_size
        self.retrain = retrain
        self.expanding_window = expanding_window

        logger.info(
            f"Initialized WalkForwardBacktest: "
            f"initial_train_size={initial_train_size}, "
            f"horizon={horizon}, "
            f"step_size={step_size}, "
            f"retrain={retrain}, "
            f"expanding_window={expanding_window}"
        )

    def run_backtest(self, forecaster: Forecaster, observations: Sequence[Observation]) -> BacktestResults:
        """
        Run walk-forward backtesting on an ordered observation sequence.

        A fold whose training fails or whose forecast comes back empty is
        skipped with a warning. With ``retrain=False`` the model is trained once
        on the first successful fold and then only forecasts.

        Args:
            forecaster: Any forecaster; it is trained in place
            observations: Observations ordered by date

        Returns:
            BacktestResults containing all forecasts, actuals, and metrics

        Raises:
            InsufficientDataError: If there is not enough data for the initial
                training window plus one horizon
            NoValidResultsError: If no fold completed
        """
        observations = list(observations)
        min_required_size = self.initial_train_size + self.horizon
        if len(observations) < min_required_size:
            raise InsufficientDataError(
                f"Time series too short for backtesting. "
                f"Need at least {min_required_size} observations "
                f"(initial_train_size={self.initial_train_size} + horizon={self.horizon}), "
                f"got {len(observations)}"
            )

        logger.info(
            f"Starting backtest of {forecaster.model_name} on {len(observations)} observations. "
            f"Expecting ~{self._estimate_n_folds(len(observations))} folds."
        )

        all_forecasts, all_lower, all_upper, all_actuals = [], [], [], []
        fold_metrics_list = []
        train_sizes = []
        train_times = []

        initial_model_fitted = False
        fold_idx = 0
        train_end = self.initial_train_size

        while train_end + self.horizon <= len(observations):
            if self.expanding_window:
                train_window = observations[:train_end]
            else:
                train_window = observations[train_end - self.initial_train_size : train_end]
            test_window = observations[train_end : train_end + self.horizon]

            if self.retrain or not initial_model_fitted:
                start_time = time.time()
                if not forecaster.train(train_window):
                    logger.warning(
                        f"Fold {fold_idx}: training failed with {forecaster.last_error_}. "
                        f"Skipping this fold."
                    )
                    train_end += self.step_size
                    fold_idx += 1
                    continue
                train_time = time.time() - start_time
                initial_model_fitted = True
                logger.debug(
                    f"Fold {fold_idx}: trained on {len(train_window)} observations in {train_time:.2f}s"
                )
            else:
                train_time = train_times[0] if train_times else 0.0

            points = forecaster.predict(train_window, self.horizon)
            if len(points) != self.horizon:
                logger.warning(
                    f"Fold {fold_idx}: forecast failed with {forecaster.last_error_}. "
                    f"Skipping this fold."
                )
                train_end += self.step_size
                fold_idx += 1
                continue

            forecast = np.array([p.point_forecast for p in points])
            lower = np.array([p.lower_bound for p in points])
            upper = np.array([p.upper_bound for p in points])
            actual = values_of(test_window)

            all_forecasts.append(forecast)
            all_lower.append(lower)
            all_upper.append(upper)
            all_actuals.append(actual)
            train_sizes.append(len(train_window))
            train_times.append(train_time)

            fold_metrics = compute_all_metrics(actual, forecast, lower, upper)
            fold_metrics["train_size"] = len(train_window)
            fold_metrics["train_time"] = train_time
            fold_metrics_list.append(fold_metrics)

            logger.debug(
                f"Fold {fold_idx}: MAE={fold_metrics['mae']:.4f}, "
                f"MAPE={fold_metrics['mape']:.4f}, "
                f"train_size={len(train_window)}"
            )

            train_end += self.step_size
            fold_idx += 1

        if not all_forecasts:
            raise NoValidResultsError(
                f"Backtesting failed: no fold of {forecaster.model_name} completed"
            )

        forecasts_concat = np.concatenate(all_forecasts)
        lower_concat = np.concatenate(all_lower)
        upper_concat = np.concatenate(all_upper)
        actuals_concat = np.concatenate(all_actuals)
        overall_metrics = compute_all_metrics(actuals_concat, forecasts_concat, lower_concat, upper_concat)
        avg_train_time = float(np.mean(train_times))

        logger.info(
            f"Backtest completed: {len(fold_metrics_list)} folds, "
            f"Overall MAE={overall_metrics['mae']:.4f}, "
            f"MAPE={overall_metrics['mape']:.4f}, "
            f"Avg train time={avg_train_time:.2f}s"
        )

        return BacktestResults(
            forecasts=forecasts_concat,
            lower_bounds=lower_concat,
            upper_bounds=upper_concat,
            actuals=actuals_concat,
            fold_metrics=fold_metrics_list,
            overall_metrics=overall_metrics,
            train_sizes=np.array(train_sizes, dtype=np.int64),
            train_times=np.array(train_times, dtype=np.float64),
            avg_train_time=avg_train_time,
            n_folds=len(fold_metrics_list),
        )

    def _estimate_n_folds(self, n_samples: int) -> int:
        available_for_testing = n_samples - self.initial_train_size - self.horizon
        return max(0, available_for_testing // self.step_size + 1)
