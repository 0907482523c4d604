"""Observation types, ingestion adapters and data quality checks."""

from .observations import (
    ForecastPoint,
    Observation,
    find_date_gaps,
    observations_from_frame,
    sort_observations,
    values_of,
)
from .quality import Anomaly, DataQualityChecker, DataQualityReport

__all__ = [
    "Observation",
    "ForecastPoint",
    "find_date_gaps",
    "observations_from_frame",
    "sort_observations",
    "values_of",
    "Anomaly",
    "DataQualityChecker",
    "DataQualityReport",
]
