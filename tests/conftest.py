"""Shared fixtures and configuration for tests."""

from datetime import date, datetime, timedelta, timezone

import numpy as np
import pytest

from demandcast.data.observations import ForecastPoint, Observation
from demandcast.modeling.forecasting.baselines import Forecaster
from demandcast.modeling.forecasting.errors import InsufficientDataError

# Test configuration
pytest.TEST_SEED = 42
START_DATE = date(2024, 1, 1)


@pytest.fixture(autouse=True)
def set_random_seed():
    """Automatically set random seed for reproducible tests."""
    np.random.seed(pytest.TEST_SEED)
    yield
    np.random.seed(None)


def _make_observations(values, start=START_DATE, entity_id="default", step_days=1):
    return [
        Observation(entity_id=entity_id, date=start + timedelta(days=i * step_days), value=float(v))
        for i, v in enumerate(values)
    ]


@pytest.fixture
def make_observations():
    """Factory building daily observations from a list of values."""
    return _make_observations


@pytest.fixture
def start_date():
    return START_DATE


@pytest.fixture
def seasonal_history():
    """
    120 days of weekly-seasonal sales with mild noise.

    Pattern: 100 + 20·sin(2πt/7) + N(0, 2), always positive.
    """
    rng = np.random.default_rng(pytest.TEST_SEED)
    t = np.arange(120)
    values = 100 + 20 * np.sin(2 * np.pi * t / 7) + rng.normal(0, 2, size=len(t))
    return _make_observations(values)


@pytest.fixture
def constant_history():
    """20 days of constant sales of 5.0."""
    return _make_observations([5.0] * 20)


class FixedForecaster(Forecaster):
    """
    Forecaster stub returning a fixed forecast.

    Args:
        values: Point forecasts returned by predict() (truncated to horizon)
        train_ok: Whether train() succeeds
        score: Value returned by evaluate()
        margin: Interval half-width around each point
    """

    model_kind = "fixed"

    def __init__(self, values=(), train_ok=True, score=0.0, margin=0.0):
        super().__init__()
        self.values = list(values)
        self.train_ok = train_ok
        self.score = score
        self.margin = margin
        self.train_calls = 0

    def train(self, observations):
        self.train_calls += 1
        if not self.train_ok:
            return self._record_failure("training", InsufficientDataError("stub refuses to train"))
        self.is_trained_ = True
        return True

    def predict(self, recent, horizon=10):
        if not self.is_trained_ or not self.values:
            return []
        return [
            ForecastPoint(
                date=START_DATE + timedelta(days=i + 1),
                point_forecast=v,
                lower_bound=max(0.0, v - self.margin),
                upper_bound=v + self.margin,
            )
            for i, v in enumerate(self.values[:horizon])
        ]

    def evaluate(self, test):
        return self.score

    def get_parameters(self):
        return {}

    def _apply_parameter(self, name, value):
        pass

    def clone(self):
        return FixedForecaster(self.values, self.train_ok, self.score, self.margin)


@pytest.fixture
def fixed_forecaster():
    """The FixedForecaster stub class."""
    return FixedForecaster


class FakeClock:
    """Manually advanced clock for cooldown and timestamp tests."""

    def __init__(self, start=datetime(2024, 1, 1, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()
