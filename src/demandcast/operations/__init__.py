"""Production operations: monitoring, online learning, error recovery, background training."""

from .background import BackgroundTrainer
from .monitor import Alert, ModelMonitor, PerformanceSnapshot, PredictionRecord
from .monitored import MonitoredForecaster
from .online import ModelPerformance, OnlineLearner
from .recovery import ErrorRecord, ErrorStatistics, ModelErrorHandler

__all__ = [
    "Alert",
    "BackgroundTrainer",
    "ErrorRecord",
    "ErrorStatistics",
    "ModelErrorHandler",
    "ModelMonitor",
    "ModelPerformance",
    "MonitoredForecaster",
    "OnlineLearner",
    "PerformanceSnapshot",
    "PredictionRecord",
]
