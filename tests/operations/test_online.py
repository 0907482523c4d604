"""
Tests for sliding-window online learning.

Tests cover:
- Window filling and retraining
- Realized one-step errors on consecutive days only
- Drift detection once the error window is full
- Failed retrains
"""

from datetime import timedelta

import numpy as np
import pytest

from demandcast.config import OnlineLearningSettings
from demandcast.data.observations import Observation
from demandcast.modeling.forecasting.baselines import NaiveForecaster
from demandcast.operations.online import OnlineLearner


def stream(learner, observations, predict=True):
    """Feed observations one at a time, forecasting after each."""
    for obs in observations:
        learner.update_model(obs)
        if predict:
            learner.predict(horizon=1)


class TestWindow:
    """Tests for window handling and retraining."""

    def test_window_size_clamped(self, fixed_forecaster):
        """Window size is clamped to [7, 90]."""
        assert OnlineLearner(fixed_forecaster([1.0]), window_size=3).window_size == 7
        assert OnlineLearner(fixed_forecaster([1.0]), window_size=200).window_size == 90

    def test_no_prediction_until_window_full(self, fixed_forecaster, make_observations):
        """predict returns [] while the window is filling."""
        learner = OnlineLearner(fixed_forecaster([100.0]), window_size=7)
        stream(learner, make_observations([100.0] * 6), predict=False)

        assert learner.predict() == []
        assert learner.observation_count == 6

    def test_retrains_when_full(self, fixed_forecaster, make_observations):
        """The model is retrained on every update once the window is full."""
        model = fixed_forecaster([100.0])
        learner = OnlineLearner(model, window_size=7)

        stream(learner, make_observations([100.0] * 9), predict=False)

        assert model.train_calls == 3
        assert learner.observation_count == 7

    def test_real_model_tracks_latest_value(self, make_observations):
        """A naive model forecasts the newest observation in the window."""
        learner = OnlineLearner(NaiveForecaster(), window_size=7)
        stream(learner, make_observations(range(1, 11)), predict=False)

        assert learner.predict(horizon=1)[0].point_forecast == 10.0

    def test_missing_observation(self, fixed_forecaster):
        """None is rejected without side effects."""
        learner = OnlineLearner(fixed_forecaster([1.0]))

        assert not learner.update_model(None)
        assert learner.observation_count == 0

    def test_failed_retrain_keeps_last_update(self, fixed_forecaster, make_observations):
        """A failed retrain returns False and leaves last_update unchanged."""
        learner = OnlineLearner(fixed_forecaster([1.0], train_ok=False), window_size=7)
        observations = make_observations([100.0] * 7)

        stream(learner, observations[:6], predict=False)
        assert not learner.update_model(observations[6])
        assert learner.last_update == observations[5].date

    def test_from_config(self, fixed_forecaster):
        """Settings map onto the learner."""
        learner = OnlineLearner.from_config(
            fixed_forecaster([1.0]), OnlineLearningSettings(window_size=14, drift_threshold=0.2)
        )

        assert learner.window_size == 14
        assert learner.drift_threshold == 0.2


class TestDrift:
    """Tests for realized errors and drift detection."""

    def test_errors_recorded_on_consecutive_days(self, fixed_forecaster, make_observations):
        """Each next-day observation records the error of the last forecast."""
        learner = OnlineLearner(fixed_forecaster([100.0]), window_size=7)
        stream(learner, make_observations([100.0] * 7 + [110.0, 120.0]))

        performance = learner.get_model_performance()
        assert performance.sample_count == 2
        assert performance.mean_error == pytest.approx((10 / 110 + 20 / 120) / 2)
        assert len(learner.get_performance_history()) == 2

    def test_gap_day_not_scored(self, fixed_forecaster, make_observations, start_date):
        """An observation that does not follow the last update by one day is not scored."""
        learner = OnlineLearner(fixed_forecaster([100.0]), window_size=7)
        stream(learner, make_observations([100.0] * 7))

        learner.update_model(Observation(date=start_date + timedelta(days=9), value=150.0))

        assert learner.get_model_performance().sample_count == 0

    def test_drift_detected(self, fixed_forecaster, make_observations):
        """Errors rising from 0 to 0.5 across the error window signal drift."""
        learner = OnlineLearner(fixed_forecaster([100.0]), window_size=7, drift_threshold=0.1)
        stream(learner, make_observations([100.0] * 7 + [100.0] * 4 + [200.0] * 3))

        performance = learner.get_model_performance()
        assert performance.sample_count == 7
        assert performance.drift == float("inf")
        assert learner.has_model_drifted()

    def test_no_drift_until_error_window_full(self, fixed_forecaster, make_observations):
        """Drift is never reported before the error window is full."""
        learner = OnlineLearner(fixed_forecaster([100.0]), window_size=7)
        stream(learner, make_observations([100.0] * 7 + [100.0] * 3 + [200.0] * 3))

        assert learner.get_model_performance().sample_count == 6
        assert not learner.has_model_drifted()

    def test_stable_errors_no_drift(self, fixed_forecaster, make_observations):
        """Constant error across the window is not drift."""
        learner = OnlineLearner(fixed_forecaster([100.0]), window_size=7)
        stream(learner, make_observations([100.0] * 7 + [125.0] * 7))

        assert learner.get_model_performance().drift == pytest.approx(0.0)
        assert not learner.has_model_drifted()

    def test_empty_performance(self, fixed_forecaster):
        """A fresh learner reports NaN error."""
        performance = OnlineLearner(fixed_forecaster([1.0])).get_model_performance()

        assert np.isnan(performance.mean_error)
        assert not performance.has_drifted
        assert performance.window_fill == 0
