"""
Custom exceptions for BTC Levels system

Exception hierarchy for the level-detection pipeline with error codes,
structured details and helpers for API responses and logging.
"""

from typing import Optional, Dict, Any
from datetime import datetime


class LevelsException(Exception):
    """
    Base exception for the levels system

    Every package specific error derives from this class so callers can
    handle pipeline failures uniformly.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        """
        Args:
            message: Error message
            error_code: Code for programmatic handling
            details: Additional error details
            original_exception: Wrapped exception, if any
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now()

        if original_exception:
            self.details['original_error'] = str(original_exception)
            self.details['original_type'] = type(original_exception).__name__

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a JSON serializable dict"""
        return {
            'error_type': self.__class__.__name__,
            'error_code': self.error_code,
            'message': self.message,
            'details': self.details,
            'timestamp': self.timestamp.isoformat(),
            'original_exception': str(self.original_exception) if self.original_exception else None
        }

    def __str__(self) -> str:
        base_msg = f"[{self.error_code}] {self.message}"
        if self.details:
            base_msg += f" | Details: {self.details}"
        return base_msg


class DataUnavailableException(LevelsException):
    """
    No bar series can be obtained, neither fresh nor cached.

    Fatal to the current run; the core never retries.
    """

    def __init__(
        self,
        message: str = "Historical data unavailable",
        data_source: Optional[str] = None,
        original_exception: Optional[Exception] = None
    ):
        details = {'data_source': data_source} if data_source else {}
        super().__init__(
            message=message,
            error_code="DATA_UNAVAILABLE",
            details=details,
            original_exception=original_exception
        )


class InsufficientDataException(LevelsException):
    """
    Series shorter than the minimum bar count for windowed detection.
    """

    def __init__(
        self,
        message: str,
        required_bars: Optional[int] = None,
        provided_bars: Optional[int] = None
    ):
        details = {}
        if required_bars is not None:
            details['required_bars'] = required_bars
        if provided_bars is not None:
            details['provided_bars'] = provided_bars

        super().__init__(
            message=message,
            error_code="INSUFFICIENT_DATA",
            details=details
        )


class InvalidDataException(LevelsException):
    """
    Input rejected at the boundary: non-positive prices, malformed bars,
    missing columns, bad detector parameters.
    """

    def __init__(
        self,
        message: str,
        validation_errors: Optional[Dict[str, Any]] = None,
        data_info: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        details = {}
        if validation_errors:
            details['validation_errors'] = validation_errors
        if data_info:
            details['data_info'] = data_info

        super().__init__(
            message=message,
            error_code="INVALID_DATA",
            details=details,
            original_exception=original_exception
        )


class DataFetchException(LevelsException):
    """
    Failure of an external data collaborator (history or price fetch).
    """

    def __init__(
        self,
        message: str,
        data_source: Optional[str] = None,
        endpoint: Optional[str] = None,
        original_exception: Optional[Exception] = None
    ):
        details = {}
        if data_source:
            details['data_source'] = data_source
        if endpoint:
            details['endpoint'] = endpoint

        super().__init__(
            message=message,
            error_code="DATA_FETCH_ERROR",
            details=details,
            original_exception=original_exception
        )


class ConfigurationException(LevelsException):
    """Invalid or missing configuration"""

    def __init__(
        self,
        message: str,
        config_section: Optional[str] = None,
        invalid_params: Optional[Dict[str, Any]] = None
    ):
        details = {}
        if config_section:
            details['config_section'] = config_section
        if invalid_params:
            details['invalid_params'] = invalid_params

        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            details=details
        )


def create_error_response(exception: LevelsException) -> Dict[str, Any]:
    """
    Build a standardized API error payload

    Args:
        exception: Package exception

    Returns:
        Error response dict
    """
    return {
        "success": False,
        "error": {
            "type": exception.__class__.__name__,
            "code": exception.error_code,
            "message": exception.message,
            "details": exception.details,
            "timestamp": exception.timestamp.isoformat()
        }
    }


def log_exception(logger, exception: Exception, context: Optional[Dict[str, Any]] = None):
    """
    Log an exception with context

    Args:
        logger: structlog logger
        exception: Exception to log
        context: Additional context
    """
    context = context or {}

    if isinstance(exception, LevelsException):
        logger.error(
            f"Levels exception: {exception.message}",
            error_code=exception.error_code,
            error_type=exception.__class__.__name__,
            details=exception.details,
            **context
        )
    else:
        logger.error(
            f"Unexpected exception: {exception}",
            error_type=type(exception).__name__,
            exc_info=True,
            **context
        )
