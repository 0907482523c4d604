"""
Engine configuration.

One pydantic section per component replaces a global settings object: each
component reads its defaults from the section passed to its ``from_config``
classmethod, so two pipelines in one process can run with different settings.

Settings can be loaded from a TOML file whose tables mirror the sections:

    ```toml
    [logging]
    level = "DEBUG"

    [spectral]
    window_size = 14
    num_components = 4

    [monitor]
    error_threshold = 0.15
    alert_cooldown_hours = 12
    ```

Example:
    ```python
    from demandcast.config import EngineSettings
    from demandcast.modeling.forecasting import SpectralForecaster

    settings = EngineSettings.from_toml("engine.toml")
    model = SpectralForecaster.from_config(settings.spectral)
    ```
"""

from pathlib import Path
from typing import Any

import toml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid")


class LoggingSettings(_Section):
    """Log sink configuration."""

    level: str = Field(default="INFO", description="Minimum log level")
    show_time: bool = Field(default=False, description="Prefix log lines with a timestamp")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}, got {v}")
        return v.upper()


class SpectralSettings(_Section):
    """Defaults for SpectralForecaster."""

    window_size: int = Field(default=7, ge=2, le=30)
    num_components: int = Field(default=3, ge=1, le=30)
    interval_std_floor: float = Field(default=1.0, ge=0)
    max_iterations: int = Field(default=100, gt=0)
    tolerance: float = Field(default=1e-7, gt=0)
    seed: int = 42
    strict_convergence: bool = False
    max_series_length: int = Field(default=100_000, gt=0)


class CrossValidationSettings(_Section):
    """Defaults for CrossValidator."""

    num_folds: int = Field(default=5, ge=2, le=10)
    shuffle: bool = True
    seed: int = 42
    max_workers: int | None = Field(default=None, gt=0)


class OptimizerSettings(_Section):
    """Defaults for HyperparameterOptimizer."""

    num_folds: int = Field(default=5, ge=2, le=10)
    parallel: bool = True
    max_workers: int | None = Field(default=None, gt=0)
    timeout_seconds: float | None = Field(default=None, gt=0)


class MonitorSettings(_Section):
    """Defaults for ModelMonitor."""

    max_history: int = Field(default=1000, gt=0)
    error_threshold: float = Field(default=0.2, gt=0)
    alert_cooldown_hours: float = Field(default=24.0, ge=0)
    performance_window: int = Field(default=30, ge=2)
    max_performance_history: int = Field(default=30, gt=0)
    min_alert_samples: int = Field(default=30, gt=0)


class OnlineLearningSettings(_Section):
    """Defaults for OnlineLearner."""

    window_size: int = Field(default=30, ge=7, le=90)
    drift_threshold: float = Field(default=0.1, gt=0)


class ErrorHandlingSettings(_Section):
    """Defaults for ModelErrorHandler."""

    max_retries: int = Field(default=3, ge=0)
    retry_delay_seconds: float = Field(default=5.0, ge=0)
    max_error_history: int = Field(default=100, gt=0)
    max_cleaning_loss: float = Field(default=0.1, ge=0, le=1)
    reduced_training_size: int = Field(default=1000, gt=0)
    recent_prediction_size: int = Field(default=30, gt=0)


class DataQualitySettings(_Section):
    """Defaults for DataQualityChecker."""

    z_score_threshold: float = Field(default=3.0, gt=0)
    min_required_records: int = Field(default=30, gt=0)
    max_missing_fraction: float = Field(default=0.1, ge=0, le=1)


class EngineSettings(_Section):
    """Complete engine configuration, one section per component."""

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    spectral: SpectralSettings = Field(default_factory=SpectralSettings)
    cross_validation: CrossValidationSettings = Field(default_factory=CrossValidationSettings)
    optimizer: OptimizerSettings = Field(default_factory=OptimizerSettings)
    monitor: MonitorSettings = Field(default_factory=MonitorSettings)
    online_learning: OnlineLearningSettings = Field(default_factory=OnlineLearningSettings)
    error_handling: ErrorHandlingSettings = Field(default_factory=ErrorHandlingSettings)
    data_quality: DataQualitySettings = Field(default_factory=DataQualitySettings)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EngineSettings":
        return cls.model_validate(data)

    @classmethod
    def from_toml(cls, path: str | Path) -> "EngineSettings":
        """
        Load settings from a TOML file. Missing tables and keys keep their defaults.

        Raises:
            FileNotFoundError: If the file does not exist
            toml.TomlDecodeError: If the file is not valid TOML
            pydantic.ValidationError: If a value is out of range or a key is unknown
        """
        path = Path(path)
        with open(path) as f:
            data = toml.load(f)

        logger.info(f"Loaded engine settings from {path} (sections: {sorted(data)})")
        return cls.from_dict(data)

    def to_toml(self, path: str | Path) -> Path:
        """Write settings to a TOML file, omitting unset optional values."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            toml.dump(self.model_dump(exclude_none=True), f)
        return path
