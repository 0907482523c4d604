"""
Tests for the weighted ensemble forecaster.

Tests cover:
- Weighted combination of member forecasts
- Dropping members that fail to forecast, with weight renormalization
- All-or-nothing training
- Validation-based reweighting
- Parameters, reset and cloning
"""

import numpy as np
import pytest

from demandcast.modeling.forecasting.baselines import NaiveForecaster, SeasonalNaiveForecaster
from demandcast.modeling.forecasting.ensemble import EnsembleForecaster
from demandcast.modeling.forecasting.errors import (
    InsufficientDataError,
    InvalidParameterError,
    InvalidStateError,
    ModelNotTrainedError,
)


@pytest.fixture
def two_member_ensemble(fixed_forecaster, constant_history):
    """Trained ensemble of fixed forecasts [10, 20] (0.6) and [20, 30] (0.4)."""
    ensemble = EnsembleForecaster(
        [fixed_forecaster([10.0, 20.0]), fixed_forecaster([20.0, 30.0])], weights=[0.6, 0.4]
    )
    ensemble.train(constant_history)
    return ensemble


class TestEnsembleCombination:
    """Tests for combining member forecasts."""

    def test_weighted_point_forecast(self, two_member_ensemble, constant_history):
        """Point forecasts are the weighted average of the members."""
        points = two_member_ensemble.predict(constant_history, horizon=2)

        np.testing.assert_allclose([p.point_forecast for p in points], [14.0, 24.0])

    def test_weighted_bounds(self, fixed_forecaster, constant_history):
        """Bounds combine with the same weights."""
        ensemble = EnsembleForecaster(
            [fixed_forecaster([10.0], margin=1.0), fixed_forecaster([20.0], margin=3.0)],
            weights=[0.5, 0.5],
        )
        ensemble.train(constant_history)

        point = ensemble.predict(constant_history, horizon=1)[0]

        assert point.lower_bound == pytest.approx(13.0)
        assert point.upper_bound == pytest.approx(17.0)

    def test_failed_member_dropped_and_renormalized(self, fixed_forecaster, constant_history):
        """A member returning no forecast is dropped and weights renormalize."""
        ensemble = EnsembleForecaster(
            [fixed_forecaster([10.0, 20.0]), fixed_forecaster([]), fixed_forecaster([20.0, 30.0])],
            weights=[0.3, 0.5, 0.2],
        )
        ensemble.train(constant_history)

        points = ensemble.predict(constant_history, horizon=2)

        assert ensemble.last_surviving_members_ == [0, 2]
        np.testing.assert_allclose(ensemble.last_combination_weights_, [0.6, 0.4])
        assert sum(ensemble.last_combination_weights_) == pytest.approx(1.0)
        np.testing.assert_allclose([p.point_forecast for p in points], [14.0, 24.0])

    def test_short_forecast_member_dropped(self, fixed_forecaster, constant_history):
        """A member returning fewer than horizon points is dropped."""
        ensemble = EnsembleForecaster([fixed_forecaster([10.0]), fixed_forecaster([20.0, 30.0])])
        ensemble.train(constant_history)

        points = ensemble.predict(constant_history, horizon=2)

        assert ensemble.last_surviving_members_ == [1]
        assert [p.point_forecast for p in points] == [20.0, 30.0]

    def test_zero_weights_combine_equally(self, fixed_forecaster, constant_history):
        """Surviving weights summing to zero fall back to equal weights."""
        ensemble = EnsembleForecaster(
            [fixed_forecaster([10.0]), fixed_forecaster([20.0])], weights=[0.0, 0.0]
        )
        ensemble.train(constant_history)

        assert ensemble.predict(constant_history, horizon=1)[0].point_forecast == 15.0

    def test_no_surviving_member(self, fixed_forecaster, constant_history):
        """If no member forecasts, predict returns [] and records an error."""
        ensemble = EnsembleForecaster([fixed_forecaster([]), fixed_forecaster([])])
        ensemble.train(constant_history)

        assert ensemble.predict(constant_history, horizon=3) == []
        assert isinstance(ensemble.last_error_, InvalidStateError)

    def test_predict_untrained(self, fixed_forecaster):
        """Predict before train returns []."""
        ensemble = EnsembleForecaster([fixed_forecaster([1.0])])

        assert ensemble.predict([], horizon=1) == []
        assert isinstance(ensemble.last_error_, ModelNotTrainedError)

    def test_predict_invalid_horizon(self, two_member_ensemble):
        """A non-positive horizon returns []."""
        assert two_member_ensemble.predict([], horizon=0) == []
        assert isinstance(two_member_ensemble.last_error_, InvalidParameterError)

    def test_real_members(self, make_observations):
        """Naive and seasonal naive members combine on a weekly series."""
        history = make_observations([100, 120, 130, 125, 135, 90, 80] * 3)
        ensemble = EnsembleForecaster(
            [NaiveForecaster(), SeasonalNaiveForecaster(period=7)], weights=[1.0, 1.0]
        )

        assert ensemble.train(history)
        points = ensemble.predict(history, horizon=1)

        # Naive repeats 80, seasonal naive repeats 100
        assert points[0].point_forecast == pytest.approx(90.0)


class TestEnsembleTraining:
    """Tests for all-or-nothing training."""

    def test_empty_ensemble_fails(self, constant_history):
        """An ensemble with no members cannot train."""
        ensemble = EnsembleForecaster()

        assert not ensemble.train(constant_history)
        assert isinstance(ensemble.last_error_, InvalidStateError)

    def test_one_failed_member_fails_ensemble(self, fixed_forecaster, constant_history):
        """If any member fails, the ensemble is not trained."""
        ensemble = EnsembleForecaster(
            [fixed_forecaster([1.0]), fixed_forecaster([1.0], train_ok=False)]
        )

        assert not ensemble.train(constant_history)
        assert not ensemble.is_trained_
        assert isinstance(ensemble.last_error_, InsufficientDataError)

    def test_failed_retrain_untrains_ensemble(self, two_member_ensemble, constant_history):
        """A failed retrain leaves the ensemble untrained."""
        two_member_ensemble.models[1].train_ok = False

        assert not two_member_ensemble.train(constant_history)
        assert two_member_ensemble.predict(constant_history, horizon=1) == []

    def test_add_model_requires_retrain(self, two_member_ensemble, fixed_forecaster):
        """Adding a member invalidates training."""
        two_member_ensemble.add_model(fixed_forecaster([1.0]))
        assert not two_member_ensemble.is_trained_

    def test_negative_weight_rejected(self, fixed_forecaster):
        """Negative weights are rejected."""
        with pytest.raises(InvalidParameterError, match="weight must be"):
            EnsembleForecaster().add_model(fixed_forecaster([1.0]), weight=-0.5)

    def test_weights_must_match_models(self, fixed_forecaster):
        """Mismatched weights are rejected."""
        with pytest.raises(InvalidParameterError, match="weights must match models"):
            EnsembleForecaster([fixed_forecaster([1.0])], weights=[0.5, 0.5])


class TestEnsembleWeights:
    """Tests for validation-based reweighting and parameters."""

    def test_update_weights_inverse_error(self, fixed_forecaster, constant_history):
        """Members score 1 / (1 + MAPE), normalized."""
        ensemble = EnsembleForecaster(
            [fixed_forecaster([1.0], score=0.0), fixed_forecaster([1.0], score=1.0)]
        )

        weights = ensemble.update_weights(constant_history)

        np.testing.assert_allclose(weights, [2 / 3, 1 / 3])
        assert sum(ensemble.weights) == pytest.approx(1.0)

    def test_update_weights_nan_scores_zero(self, fixed_forecaster, constant_history):
        """A member with NaN error gets weight 0."""
        ensemble = EnsembleForecaster(
            [fixed_forecaster([1.0], score=float("nan")), fixed_forecaster([1.0], score=0.5)]
        )

        np.testing.assert_allclose(ensemble.update_weights(constant_history), [0.0, 1.0])

    def test_update_weights_all_nan_unchanged(self, fixed_forecaster, constant_history):
        """Weights are unchanged when no member scores."""
        ensemble = EnsembleForecaster(
            [fixed_forecaster([1.0], score=float("nan"))] * 2, weights=[0.7, 0.3]
        )

        assert ensemble.update_weights(constant_history) == [0.7, 0.3]

    def test_evaluate_one_step_holdout(self, fixed_forecaster, make_observations):
        """Evaluate forecasts the last record from the ones before it."""
        ensemble = EnsembleForecaster([fixed_forecaster([13.0])])
        history = make_observations([10.0] * 5)
        ensemble.train(history)

        assert ensemble.evaluate(history) == pytest.approx(0.3)

    def test_evaluate_too_short(self, two_member_ensemble, make_observations):
        """Fewer than two records give NaN."""
        assert np.isnan(two_member_ensemble.evaluate(make_observations([1.0])))

    def test_parameters_are_weights(self, two_member_ensemble):
        """get_parameters exposes one weight per member."""
        assert two_member_ensemble.get_parameters() == {"weight_0": 0.6, "weight_1": 0.4}

    def test_set_weight_parameter(self, two_member_ensemble):
        """Weights can be set by parameter name."""
        two_member_ensemble.set_parameters({"weight_1": 2.0})
        assert two_member_ensemble.weights == (0.6, 2.0)

    def test_reset_parameters(self):
        """reset_parameters resets members and sets all weights to 1."""
        member = SeasonalNaiveForecaster(period=3)
        ensemble = EnsembleForecaster([member], weights=[0.2])

        ensemble.reset_parameters()

        assert ensemble.weights == (1.0,)
        assert member.period == 7

    def test_clone_copies_members(self):
        """clone() builds an untrained ensemble with cloned members."""
        member = SeasonalNaiveForecaster(period=5)
        ensemble = EnsembleForecaster([member], weights=[0.4])

        copy = ensemble.clone()

        assert copy.models[0] is not member
        assert copy.models[0].period == 5
        assert copy.weights == (0.4,)
        assert not copy.is_trained_
