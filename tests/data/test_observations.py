"""Tests for observation and forecast data types."""

from datetime import date

import numpy as np
import polars as pl
import pytest
from pydantic import ValidationError

from demandcast.data.observations import (
    ForecastPoint,
    Observation,
    find_date_gaps,
    observations_from_frame,
    sort_observations,
    values_of,
)


class TestObservation:
    """Tests for Observation."""

    def test_defaults(self):
        """Entity defaults to 'default' with no attributes."""
        obs = Observation(date=date(2024, 1, 1), value=3.0)

        assert obs.entity_id == "default"
        assert obs.attributes == {}

    @pytest.mark.parametrize(
        "value,valid",
        [(0.0, True), (12.5, True), (-1.0, False), (float("nan"), False), (float("inf"), False)],
    )
    def test_is_valid(self, value, valid):
        """Only finite, non-negative values are valid."""
        assert Observation(date=date(2024, 1, 1), value=value).is_valid is valid

    def test_frozen(self):
        """Observations are immutable."""
        obs = Observation(date=date(2024, 1, 1), value=3.0)
        with pytest.raises(ValidationError):
            obs.value = 4.0

    def test_attributes(self):
        """Exogenous attributes are carried through."""
        obs = Observation(
            date=date(2024, 1, 1), value=3.0, attributes={"promo": True, "store_type": "a"}
        )
        assert obs.attributes["promo"] is True


class TestForecastPoint:
    """Tests for ForecastPoint."""

    def test_width(self):
        """Width is upper minus lower."""
        point = ForecastPoint(date=date(2024, 1, 1), point_forecast=5.0, lower_bound=3.0, upper_bound=8.0)
        assert point.width == 5.0

    def test_ordering_enforced(self):
        """The point forecast must lie inside its bounds."""
        with pytest.raises(ValidationError, match="lower_bound <= point_forecast <= upper_bound"):
            ForecastPoint(date=date(2024, 1, 1), point_forecast=10.0, lower_bound=3.0, upper_bound=8.0)

    def test_negative_lower_bound_rejected(self):
        """Lower bounds are floored at zero by construction."""
        with pytest.raises(ValidationError):
            ForecastPoint(date=date(2024, 1, 1), point_forecast=0.0, lower_bound=-1.0, upper_bound=1.0)


class TestHelpers:
    """Tests for ordering, value extraction and gap detection."""

    def test_sort_by_date_then_entity(self):
        """Sorting orders by date, then entity."""
        obs = [
            Observation(entity_id="b", date=date(2024, 1, 2), value=1.0),
            Observation(entity_id="b", date=date(2024, 1, 1), value=2.0),
            Observation(entity_id="a", date=date(2024, 1, 2), value=3.0),
        ]

        ordered = sort_observations(obs)

        assert [(o.entity_id, o.date.day) for o in ordered] == [("b", 1), ("a", 2), ("b", 2)]

    def test_values_of(self, make_observations):
        """Values come back as a float64 array in order."""
        values = values_of(make_observations([1, 2, 3]))

        assert values.dtype == np.float64
        np.testing.assert_array_equal(values, [1.0, 2.0, 3.0])

    def test_find_date_gaps(self):
        """Gaps longer than one day are reported per entity."""
        obs = [
            Observation(date=date(2024, 1, 1), value=10.0),
            Observation(date=date(2024, 1, 5), value=11.0),
            Observation(date=date(2024, 1, 2), value=12.0),
        ]

        assert find_date_gaps(obs) == [("default", date(2024, 1, 2), date(2024, 1, 5))]

    def test_no_gaps_in_daily_series(self, make_observations):
        """A consecutive daily series has no gaps."""
        assert find_date_gaps(make_observations([1.0] * 10)) == []

    def test_gaps_checked_per_entity(self):
        """Interleaved entities do not create gaps for each other."""
        obs = [
            Observation(entity_id=e, date=date(2024, 1, d), value=1.0)
            for d in (1, 2, 3)
            for e in ("a", "b")
        ]
        assert find_date_gaps(obs) == []


class TestObservationsFromFrame:
    """Tests for the polars ingestion adapter."""

    def test_builds_sorted_observations(self):
        """Rows become observations sorted by date, extra columns become attributes."""
        frame = pl.DataFrame(
            {
                "date": [date(2024, 1, 2), date(2024, 1, 1)],
                "sales": [20.0, 10.0],
                "store": ["1", "1"],
                "promo": [True, False],
            }
        )

        observations = observations_from_frame(frame, value_col="sales", entity_col="store")

        assert [o.value for o in observations] == [10.0, 20.0]
        assert observations[0].entity_id == "1"
        assert observations[0].attributes == {"promo": False}

    def test_null_values_become_nan(self):
        """Null targets are kept as NaN for later cleaning."""
        frame = pl.DataFrame({"date": [date(2024, 1, 1)], "value": [None]}, schema={"date": pl.Date, "value": pl.Float64})

        observations = observations_from_frame(frame)

        assert np.isnan(observations[0].value)
        assert observations[0].entity_id == "default"

    def test_missing_column(self):
        """A missing value column is rejected."""
        frame = pl.DataFrame({"date": [date(2024, 1, 1)]})

        with pytest.raises(ValueError, match="column 'value' not found"):
            observations_from_frame(frame)
