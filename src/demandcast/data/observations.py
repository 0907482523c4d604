"""
Observation and forecast data types shared by every forecasting component.

Observations are produced by an external ingestion layer (CSV import, databases)
and consumed here as ordered sequences. Forecast points are produced by the
forecasters and consumed by reporting layers.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import date as date_type
from datetime import timedelta

import numpy as np
import polars as pl
from loguru import logger
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field, model_validator


class Observation(BaseModel):
    """A single dated demand/sales observation for one entity (e.g. a store)."""

    model_config = ConfigDict(frozen=True)

    entity_id: str = Field(default="default", min_length=1, description="Entity identifier")
    date: date_type = Field(..., description="Observation date")
    value: float = Field(..., description="Target value (sales); may be NaN before cleaning")
    attributes: dict[str, str | int | float | bool] = Field(
        default_factory=dict, description="Exogenous flags and categoricals"
    )

    @property
    def is_valid(self) -> bool:
        """True if the target value is finite and non-negative."""
        return bool(np.isfinite(self.value)) and self.value >= 0


class ForecastPoint(BaseModel):
    """One forecast step with its confidence interval."""

    model_config = ConfigDict(frozen=True)

    date: date_type
    point_forecast: float
    lower_bound: float = Field(..., ge=0)
    upper_bound: float

    @model_validator(mode="after")
    def check_ordering(self) -> "ForecastPoint":
        if not self.lower_bound <= self.point_forecast <= self.upper_bound:
            raise ValueError(
                f"Expected lower_bound <= point_forecast <= upper_bound, got "
                f"{self.lower_bound} / {self.point_forecast} / {self.upper_bound}"
            )
        return self

    @property
    def width(self) -> float:
        return self.upper_bound - self.lower_bound


def sort_observations(observations: Iterable[Observation]) -> list[Observation]:
    """Return observations ordered by (date, entity_id)."""
    return sorted(observations, key=lambda obs: (obs.date, obs.entity_id))


def values_of(observations: Sequence[Observation]) -> NDArray[np.floating]:
    """Extract target values as a float64 array, preserving order."""
    return np.array([obs.value for obs in observations], dtype=np.float64)


def find_date_gaps(
    observations: Sequence[Observation],
) -> list[tuple[str, date_type, date_type]]:
    """
    Report gaps longer than one day between consecutive observations.

    Observations are grouped by entity and sorted by date before comparison,
    so callers do not need to pre-sort.

    Args:
        observations: Observations for one or more entities

    Returns:
        List of (entity_id, previous_date, next_date) for every gap

    Example:
        ```python
        obs = [
            Observation(date=date(2024, 1, 1), value=10.0),
            Observation(date=date(2024, 1, 2), value=12.0),
            Observation(date=date(2024, 1, 5), value=11.0),
        ]
        find_date_gaps(obs)
        # [("default", date(2024, 1, 2), date(2024, 1, 5))]
        ```
    """
    by_entity: dict[str, list[date_type]] = defaultdict(list)
    for obs in observations:
        by_entity[obs.entity_id].append(obs.date)

    gaps = []
    for entity_id, dates in by_entity.items():
        dates.sort()
        for previous, current in zip(dates, dates[1:]):
            if current - previous > timedelta(days=1):
                gaps.append((entity_id, previous, current))
    return gaps


def observations_from_frame(
    frame: pl.DataFrame,
    date_col: str = "date",
    value_col: str = "value",
    entity_col: str = "entity_id",
) -> list[Observation]:
    """
    Build observations from a polars DataFrame.

    Any column other than the date, value and entity columns is carried as an
    exogenous attribute. Null values become NaN so that cleaning can happen in
    the error-recovery layer rather than at ingestion.

    Args:
        frame: DataFrame with at least date and value columns
        date_col: Name of the date column
        value_col: Name of the target column
        entity_col: Name of the entity column (optional in the frame)

    Returns:
        Observations sorted by date

    Raises:
        ValueError: If the date or value column is missing
    """
    for col in (date_col, value_col):
        if col not in frame.columns:
            raise ValueError(f"column '{col}' not found in frame columns: {frame.columns}")

    attribute_cols = [c for c in frame.columns if c not in (date_col, value_col, entity_col)]
    observations = []
    for row in frame.iter_rows(named=True):
        value = row[value_col]
        attributes = {c: row[c] for c in attribute_cols if row[c] is not None}
        observations.append(
            Observation(
                entity_id=str(row[entity_col]) if entity_col in row else "default",
                date=row[date_col],
                value=float("nan") if value is None else float(value),
                attributes=attributes,
            )
        )

    logger.debug(f"Built {len(observations)} observations from frame with {frame.height} rows")
    return sort_observations(observations)
