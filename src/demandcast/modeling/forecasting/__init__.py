"""Demand forecasting framework.

This module provides:
- The forecaster contract and baseline forecasters (naive, seasonal naive, moving average)
- The spectral (SSA) forecaster and the weighted ensemble
- A model-kind registry
- Evaluation metrics, k-fold cross-validation, grid search and walk-forward backtesting
"""

from .backtesting import BacktestResults, WalkForwardBacktest
from .baselines import (
    BaseForecaster,
    Forecaster,
    MovingAverageForecaster,
    NaiveForecaster,
    SeasonalNaiveForecaster,
)
from .cross_validation import CrossValidationResult, CrossValidator
from .ensemble import EnsembleForecaster
from .errors import (
    ErrorKind,
    ForecastingError,
    InsufficientDataError,
    InvalidParameterError,
    InvalidStateError,
    MalformedInputError,
    ModelNotTrainedError,
    NoValidResultsError,
    NumericInstabilityError,
    ResourceExhaustionError,
    UnknownError,
    classify_error,
)
from .evaluation import (
    compute_all_metrics,
    coverage,
    interval_sharpness,
    mae,
    mape,
    rmse,
)
from .optimization import (
    CandidateResult,
    HyperparameterOptimizer,
    OptimizationResult,
    enumerate_grid,
)
from .registry import ForecasterRegistry, default_registry
from .spectral import SpectralForecaster

__all__ = [
    # Forecasters
    "Forecaster",
    "BaseForecaster",
    "NaiveForecaster",
    "SeasonalNaiveForecaster",
    "MovingAverageForecaster",
    "SpectralForecaster",
    "EnsembleForecaster",
    # Registry
    "ForecasterRegistry",
    "default_registry",
    # Errors
    "ErrorKind",
    "ForecastingError",
    "InsufficientDataError",
    "InvalidParameterError",
    "InvalidStateError",
    "MalformedInputError",
    "ModelNotTrainedError",
    "NoValidResultsError",
    "NumericInstabilityError",
    "ResourceExhaustionError",
    "UnknownError",
    "classify_error",
    # Evaluation metrics
    "mae",
    "rmse",
    "mape",
    "coverage",
    "interval_sharpness",
    "compute_all_metrics",
    # Validation and tuning
    "CrossValidator",
    "CrossValidationResult",
    "HyperparameterOptimizer",
    "OptimizationResult",
    "CandidateResult",
    "enumerate_grid",
    # Backtesting
    "WalkForwardBacktest",
    "BacktestResults",
]
