"""
Utility modules for BTC Levels system

Logging, exception hierarchy and helper functions shared across the
pipeline, data layer and API.
"""

from .logger import get_logger, configure_logging, LoggerMixin, timed_operation
from .exceptions import (
    LevelsException,
    DataUnavailableException,
    InsufficientDataException,
    InvalidDataException,
    DataFetchException,
    ConfigurationException,
    create_error_response,
    log_exception
)
from .helpers import (
    ensure_positive_price,
    ensure_positive_prices,
    relative_difference,
    format_price,
    format_levels_report
)

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "LoggerMixin",
    "timed_operation",

    # Exceptions
    "LevelsException",
    "DataUnavailableException",
    "InsufficientDataException",
    "InvalidDataException",
    "DataFetchException",
    "ConfigurationException",
    "create_error_response",
    "log_exception",

    # Helpers
    "ensure_positive_price",
    "ensure_positive_prices",
    "relative_difference",
    "format_price",
    "format_levels_report"
]
