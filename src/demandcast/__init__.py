"""demandcast - Pluggable demand forecasting engine with monitoring and error recovery"""

__version__ = "0.1.0"

# Import submodules
from . import config, data, io, modeling, operations, utils

# Convenience imports
from .config import EngineSettings
from .data import ForecastPoint, Observation
from .modeling import EnsembleForecaster, SpectralForecaster, default_registry
from .operations import (
    ModelErrorHandler,
    ModelMonitor,
    MonitoredForecaster,
    OnlineLearner,
)
from .utils import (
    configure_logging,
    quiet_library_logging,
    verbose_library_logging,
)

__all__ = [
    "config",
    "data",
    "io",
    "modeling",
    "operations",
    "utils",
    "EngineSettings",
    "ForecastPoint",
    "Observation",
    "EnsembleForecaster",
    "SpectralForecaster",
    "default_registry",
    "ModelErrorHandler",
    "ModelMonitor",
    "MonitoredForecaster",
    "OnlineLearner",
    "configure_logging",
    "quiet_library_logging",
    "verbose_library_logging",
]
