"""Forecasting models, validation and tuning."""

from . import forecasting
from .forecasting import (
    EnsembleForecaster,
    ForecasterRegistry,
    SpectralForecaster,
    default_registry,
)

__all__ = [
    "forecasting",
    "EnsembleForecaster",
    "ForecasterRegistry",
    "SpectralForecaster",
    "default_registry",
]
