"""
Structured logging utilities for BTC Levels system

structlog based logging with JSON/text/colored output, service context
and helpers for timing pipeline operations.
"""

import functools
import inspect
import logging
import os
import sys
import time
from typing import Optional, Dict, Any, Union
from pathlib import Path
from enum import Enum

import structlog
from structlog.types import Processor


class LogLevel(str, Enum):
    """Logging levels"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats"""
    JSON = "json"
    TEXT = "text"
    COLORED = "colored"


_logging_configured = False
_log_level = LogLevel.INFO
_log_format = LogFormat.JSON


def configure_logging(
    level: LogLevel = LogLevel.INFO,
    format_type: LogFormat = LogFormat.JSON,
    log_file: Optional[Union[str, Path]] = None,
    service_name: str = "btc-levels",
    service_version: str = "1.0.0",
    environment: str = "development",
    force: bool = False
) -> None:
    """
    Configure structured logging for the whole application

    Args:
        level: Logging level
        format_type: Output format
        log_file: Optional log file path (always JSON)
        service_name: Service name
        service_version: Service version
        environment: Runtime environment
        force: Reconfigure even if logging was already set up
    """
    global _logging_configured, _log_level, _log_format

    if _logging_configured and not force:
        return

    _log_level = LogLevel(level)
    _log_format = LogFormat(format_type)

    processors = [
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            ]
        ),
        structlog.processors.format_exc_info,
        _add_service_context(service_name, service_version, environment),
    ]

    if _log_format == LogFormat.JSON:
        processors.append(structlog.processors.JSONRenderer())
    elif _log_format == LogFormat.COLORED:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.append(
            structlog.processors.KeyValueRenderer(
                key_order=['timestamp', 'level', 'logger', 'event']
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, _log_level.value),
        force=force
    )

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(getattr(logging, _log_level.value))
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(),
            )
        )
        logging.getLogger().addHandler(file_handler)

    _suppress_noisy_loggers()

    _logging_configured = True


def _add_service_context(
    service_name: str,
    service_version: str,
    environment: str
) -> Processor:
    """Processor adding service metadata to every event"""
    def processor(logger, method_name, event_dict):
        event_dict.update({
            'service': service_name,
            'version': service_version,
            'environment': environment,
            'pid': os.getpid(),
        })
        return event_dict

    return processor


def _suppress_noisy_loggers():
    noisy_loggers = [
        'asyncio',
        'aiohttp.access',
        'aiohttp.client',
        'uvicorn.access',
    ]

    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """
    Get a configured structured logger

    Args:
        name: Logger name (defaults to the caller's module)

    Returns:
        structlog logger
    """
    if not _logging_configured:
        configure_logging()

    if name is None:
        frame = inspect.currentframe().f_back
        name = frame.f_globals.get('__name__', 'unknown')

    return structlog.get_logger(name)


def get_request_logger(
    request_id: str,
    endpoint: Optional[str] = None
) -> structlog.BoundLogger:
    """Logger bound to an HTTP request context"""
    return get_logger("api").bind(request_id=request_id, endpoint=endpoint)


def log_performance_metrics(
    logger: structlog.BoundLogger,
    operation: str,
    duration_seconds: float,
    success: bool = True,
    additional_metrics: Optional[Dict[str, Any]] = None
):
    """
    Log performance metrics of an operation

    Args:
        logger: Target logger
        operation: Operation name
        duration_seconds: Duration in seconds
        success: Whether the operation succeeded
        additional_metrics: Extra fields
    """
    metrics = {
        'operation': operation,
        'duration_seconds': round(duration_seconds, 4),
        'success': success,
        'performance_log': True
    }

    if additional_metrics:
        metrics.update(additional_metrics)

    if success:
        logger.info(f"Performance: {operation} completed", **metrics)
    else:
        logger.error(f"Performance: {operation} failed", **metrics)


class LoggerMixin:
    """
    Mixin adding a class scoped logger

    The logger is bound to the class name plus any context set through
    ``set_log_context``.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._logger = None
        self._log_context = {}

    @property
    def logger(self) -> structlog.BoundLogger:
        if self._logger is None:
            class_name = self.__class__.__name__
            module_name = self.__class__.__module__

            base_logger = get_logger(f"{module_name}.{class_name}")
            self._logger = base_logger.bind(**{'class': class_name, **self._log_context})

        return self._logger

    def set_log_context(self, **kwargs):
        """Set additional logging context"""
        self._log_context.update(kwargs)
        # rebuilt lazily with the new context
        self._logger = None


def timed_operation(operation_name: Optional[str] = None):
    """
    Decorator measuring execution time of sync and async callables

    Args:
        operation_name: Operation name (defaults to the function name)
    """
    def decorator(func):
        op_name = operation_name or func.__name__

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                logger = get_logger(func.__module__)
                start_time = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    log_performance_metrics(
                        logger, op_name, time.perf_counter() - start_time,
                        success=False, additional_metrics={'error': str(e)}
                    )
                    raise
                log_performance_metrics(logger, op_name, time.perf_counter() - start_time)
                return result

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger(func.__module__)
            start_time = time.perf_counter()
            logger.debug(f"Starting timed operation: {op_name}")

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                log_performance_metrics(
                    logger, op_name, time.perf_counter() - start_time,
                    success=False, additional_metrics={'error': str(e)}
                )
                raise

            log_performance_metrics(logger, op_name, time.perf_counter() - start_time)
            return result

        return wrapper
    return decorator
