"""
Data quality validation for observation series.

Run before training to surface problems that would otherwise show up as
training failures: too few records, missing or invalid targets, gaps in the
daily date sequence, z-score outliers and implausible values.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

import numpy as np
from loguru import logger

from demandcast.config import DataQualitySettings

from .observations import Observation, find_date_gaps, values_of


@dataclass(frozen=True)
class Anomaly:
    """An observation whose value lies far from the series mean."""

    entity_id: str
    date: date
    value: float
    z_score: float

    @property
    def description(self) -> str:
        return f"value {self.value:.2f} is {self.z_score:.2f} standard deviations from the mean"


@dataclass
class DataQualityReport:
    """
    Outcome of a quality check.

    Attributes:
        is_valid: False if any issue was found
        total_records: Number of records checked
        missing_values: Records whose value is NaN/inf or negative
        date_gaps: (entity_id, previous_date, next_date) for every gap > 1 day
        anomalies: Records with |z-score| above the threshold
        range_issues: Human-readable range problems
        issues: Every problem found, human-readable
        validated_at: When the check ran
    """

    is_valid: bool = True
    total_records: int = 0
    missing_values: int = 0
    date_gaps: list[tuple[str, date, date]] = field(default_factory=list)
    anomalies: list[Anomaly] = field(default_factory=list)
    range_issues: list[str] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)
    validated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def add_issue(self, issue: str) -> None:
        self.is_valid = False
        self.issues.append(issue)


class DataQualityChecker:
    """
    Validate an observation series before training.

    Args:
        z_score_threshold: |z| above which a value is reported as an anomaly
        min_required_records: Fewer records than this is an issue
        max_missing_fraction: Largest acceptable fraction of missing/invalid values

    Example:
        ```python
        checker = DataQualityChecker(z_score_threshold=3.0)
        report = checker.validate_data(history)
        if not report.is_valid:
            for issue in report.issues:
                print(issue)
        ```
    """

    def __init__(
        self,
        z_score_threshold: float = 3.0,
        min_required_records: int = 30,
        max_missing_fraction: float = 0.1,
    ):
        if z_score_threshold <= 0:
            raise ValueError(f"z_score_threshold must be > 0, got {z_score_threshold}")

        self.z_score_threshold = z_score_threshold
        self.min_required_records = min_required_records
        self.max_missing_fraction = max_missing_fraction

    @classmethod
    def from_config(cls, settings: DataQualitySettings) -> "DataQualityChecker":
        return cls(**settings.model_dump())

    def validate_data(self, observations: Sequence[Observation] | None) -> DataQualityReport:
        observations = list(observations or [])
        logger.info(f"Validating data quality for {len(observations)} records")

        report = DataQualityReport(total_records=len(observations))
        if not observations:
            report.add_issue("No data provided")
            return report

        if len(observations) < self.min_required_records:
            report.add_issue(
                f"Insufficient data: {len(observations)} records "
                f"(minimum {self.min_required_records} required)"
            )

        values = values_of(observations)
        invalid = ~np.isfinite(values) | (values < 0)
        report.missing_values = int(invalid.sum())
        missing_fraction = report.missing_values / len(observations)
        if missing_fraction > self.max_missing_fraction:
            report.add_issue(
                f"Too many missing values: {missing_fraction:.2%} "
                f"(maximum {self.max_missing_fraction:.2%} allowed)"
            )

        report.date_gaps = find_date_gaps(observations)
        if report.date_gaps:
            report.add_issue(f"Found {len(report.date_gaps)} gaps in date sequence")

        report.anomalies = self._detect_anomalies(observations, values)
        if report.anomalies:
            report.add_issue(f"Found {len(report.anomalies)} anomalies in the data")

        report.range_issues = self._check_value_ranges(values)
        for issue in report.range_issues:
            report.add_issue(issue)

        logger.info(
            f"Data validation completed. Valid: {report.is_valid}, Issues: {len(report.issues)}"
        )
        return report

    def _detect_anomalies(self, observations: list[Observation], values: np.ndarray) -> list[Anomaly]:
        finite = values[np.isfinite(values)]
        if len(finite) < 2:
            return []
        mean = finite.mean()
        std = finite.std(ddof=1)
        if std == 0:
            return []

        anomalies = []
        for obs, value in zip(observations, values):
            if not np.isfinite(value):
                continue
            z_score = abs(value - mean) / std
            if z_score > self.z_score_threshold:
                anomalies.append(Anomaly(obs.entity_id, obs.date, float(value), float(z_score)))
        return anomalies

    def _check_value_ranges(self, values: np.ndarray) -> list[str]:
        issues = []
        finite = values[np.isfinite(values)]

        negative = int((finite < 0).sum())
        if negative:
            issues.append(f"Found {negative} records with negative values")

        if len(finite) >= 2:
            upper_limit = finite.mean() + self.z_score_threshold * finite.std(ddof=1)
            large = int((finite > upper_limit).sum())
            if large:
                issues.append(
                    f"Found {large} records with unusually large values (> {upper_limit:.2f})"
                )
        return issues
