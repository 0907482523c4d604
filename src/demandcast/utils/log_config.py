"""
Logging configuration utilities.

Library modules log through loguru's global ``logger``. These helpers replace the
default sink with a cleaner format for scripts, services and notebooks.
"""

import sys
from typing import Any

from loguru import logger

from demandcast.config import LoggingSettings


def configure_logging(level: str = "INFO", show_time: bool = False, sink: Any = None) -> int:
    """
    Configure loguru for readable forecasting-pipeline output.

    This removes the default handler and adds one with a compact format. Calling
    it again replaces the previous configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Default: INFO
        show_time: Whether to show timestamps. Default: False
        sink: Destination for log records (default: sys.stderr)

    Returns:
        The loguru handler id of the new sink

    Example:
        ```python
        from demandcast.utils import configure_logging

        configure_logging(level="INFO")

        # Library logging now reads:
        # INFO     | Training SpectralForecaster on 120 observations (window_size=7)
        # WARNING  | Fold 3: training failed (InsufficientDataError). Skipping this fold.
        ```
    """
    logger.remove()

    if show_time:
        format_str = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"
    else:
        format_str = "<level>{level: <8}</level> | {message}"

    return logger.add(
        sink if sink is not None else sys.stderr,
        format=format_str,
        level=level,
        colorize=sink is None,
    )


def quiet_library_logging() -> int:
    """
    Reduce library logging to warnings and errors only.

    Useful around hyperparameter searches, which log every fold at INFO.
    """
    return configure_logging(level="WARNING", show_time=False)


def verbose_library_logging() -> int:
    """
    Enable detailed logging for debugging.

    Shows DEBUG-level messages with timestamps - per-fold and per-iteration
    details from cross-validation and power iteration.
    """
    return configure_logging(level="DEBUG", show_time=True)


def configure_from_settings(settings: LoggingSettings) -> int:
    """Configure logging from the ``[logging]`` section of EngineSettings."""
    return configure_logging(level=settings.level, show_time=settings.show_time)
