"""
Utility helpers for the forecasting pipeline.

Provides logging configuration and the fixed-capacity ring buffer used by
monitoring, online learning and error recovery.
"""

from .log_config import (
    configure_from_settings,
    configure_logging,
    quiet_library_logging,
    verbose_library_logging,
)
from .ring_buffer import RingBuffer

__all__ = [
    # Logging
    "configure_from_settings",
    "configure_logging",
    "quiet_library_logging",
    "verbose_library_logging",
    # Containers
    "RingBuffer",
]
