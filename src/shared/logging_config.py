"""
Logging configuration for the Fanzone client cache.

Provides structured logging with correlation and session IDs, centralized
configuration, and multiple output formats for different environments.
"""

import logging
import json
import sys
from datetime import datetime
from typing import Dict, Any, Optional, Union
from uuid import uuid4
import traceback
from contextvars import ContextVar
from pathlib import Path


# Context variables for correlation tracking
correlation_id: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)
user_id: ContextVar[Optional[str]] = ContextVar('user_id', default=None)
session_id: ContextVar[Optional[str]] = ContextVar('session_id', default=None)

# Attributes set by logging itself; never copied from ``extra``
_RESERVED_RECORD_ATTRS = frozenset(
    logging.LogRecord('', 0, '', 0, '', (), None).__dict__.keys()
) | {'message', 'asctime'}


class CorrelationFilter(logging.Filter):
    """Add correlation IDs and context to log records."""

    def filter(self, record):
        """Add correlation context to log record."""
        record.correlation_id = correlation_id.get() or 'unknown'
        record.user_id = user_id.get() or 'anonymous'
        record.session_id = session_id.get() or 'no-session'
        record.component = getattr(record, 'component', 'unknown')
        record.operation = getattr(record, 'operation', 'unknown')
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self, include_extra=True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record):
        """Format log record as JSON."""
        log_entry = {
            'timestamp': datetime.utcnow().isoformat() + 'Z',
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'correlation_id': getattr(record, 'correlation_id', 'unknown'),
            'user_id': getattr(record, 'user_id', 'anonymous'),
            'session_id': getattr(record, 'session_id', 'no-session'),
            'component': getattr(record, 'component', 'unknown'),
            'operation': getattr(record, 'operation', 'unknown'),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if record.exc_info:
            log_entry['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info)
            }

        if self.include_extra:
            for key, value in record.__dict__.items():
                if key in log_entry or key.startswith('_') or key in _RESERVED_RECORD_ATTRS:
                    continue
                try:
                    json.dumps(value)
                    log_entry[key] = value
                except (TypeError, ValueError):
                    log_entry[key] = str(value)

        return json.dumps(log_entry, default=str)


class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output."""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
    }
    RESET = '\033[0m'

    def format(self, record):
        """Format log record with colors."""
        color = self.COLORS.get(record.levelname, '')
        formatted = super().format(record)

        correlation_info = f"[{getattr(record, 'correlation_id', 'unknown')[:8]}]"
        session_info = f"[{getattr(record, 'session_id', 'no-session')[:8]}]"

        return f"{color}{formatted}{self.RESET} {correlation_info} {session_info}"


class FanzoneLogger:
    """Component logger with correlation tracking and structured fields."""

    def __init__(self, name: str, component: str = None):
        self.logger = logging.getLogger(name)
        self.component = component or name.split('.')[-1]

    def _extra(self, operation: Optional[str], fields: Dict[str, Any]) -> Dict[str, Any]:
        extra = {
            'component': self.component,
            'operation': operation or 'unknown',
        }
        for key, value in fields.items():
            # LogRecord refuses to overwrite its own attributes
            if key in _RESERVED_RECORD_ATTRS:
                key = f'field_{key}'
            extra[key] = value
        return extra

    def _log(self, log_level: int, message: str, operation: str = None, **kwargs):
        """Internal logging method with context."""
        self.logger.log(log_level, message, extra=self._extra(operation, kwargs))

    def debug(self, message: str, operation: str = None, **kwargs):
        """Log debug message."""
        self._log(logging.DEBUG, message, operation, **kwargs)

    def info(self, message: str, operation: str = None, **kwargs):
        """Log info message."""
        self._log(logging.INFO, message, operation, **kwargs)

    def warning(self, message: str, operation: str = None, **kwargs):
        """Log warning message."""
        self._log(logging.WARNING, message, operation, **kwargs)

    def error(self, message: str, operation: str = None, **kwargs):
        """Log error message."""
        self._log(logging.ERROR, message, operation, **kwargs)

    def exception(self, message: str, operation: str = None, **kwargs):
        """Log exception with traceback."""
        self.logger.exception(message, extra=self._extra(operation or 'exception', kwargs))


class LoggingConfig:
    """Centralized logging configuration."""

    DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    @classmethod
    def setup_logging(
        cls,
        level: Union[str, int] = logging.INFO,
        format_type: str = 'colored',
        log_file: Optional[str] = None,
        console_output: bool = True,
        correlation_tracking: bool = True
    ):
        """
        Setup logging configuration.

        Args:
            level: Logging level
            format_type: 'json', 'colored', or 'standard'
            log_file: Optional log file path
            console_output: Enable console output
            correlation_tracking: Enable correlation ID tracking
        """
        if log_file:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)

        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        correlation_filter = CorrelationFilter() if correlation_tracking else None

        if console_output:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(level)

            if format_type == 'json':
                console_handler.setFormatter(JSONFormatter())
            elif format_type == 'colored':
                console_handler.setFormatter(ColoredFormatter(cls.DEFAULT_FORMAT))
            else:
                console_handler.setFormatter(logging.Formatter(cls.DEFAULT_FORMAT))

            if correlation_filter:
                console_handler.addFilter(correlation_filter)

            root_logger.addHandler(console_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(level)
            file_handler.setFormatter(JSONFormatter())  # Always use JSON for files

            if correlation_filter:
                file_handler.addFilter(correlation_filter)

            root_logger.addHandler(file_handler)

        cls._configure_component_loggers()

        logger = FanzoneLogger(__name__, 'logging_config')
        logger.info(
            "Logging system initialized",
            operation="setup_logging",
            level=level,
            format_type=format_type,
            log_file=log_file,
        )

    @classmethod
    def _configure_component_loggers(cls):
        """Quiet third-party loggers."""
        third_party_loggers = {
            'aiohttp': logging.WARNING,
            'redis': logging.WARNING,
            'uvicorn': logging.WARNING,
            'fastapi': logging.WARNING,
        }

        for logger_name, level in third_party_loggers.items():
            logging.getLogger(logger_name).setLevel(level)


class CorrelationContext:
    """Context manager binding correlation, user and session IDs."""

    def __init__(self, correlation_id_value: str = None, user_id_value: str = None, session_id_value: str = None):
        self.correlation_id_value = correlation_id_value or str(uuid4())
        self.user_id_value = user_id_value
        self.session_id_value = session_id_value
        self.correlation_token = None
        self.user_token = None
        self.session_token = None

    def __enter__(self):
        self.correlation_token = correlation_id.set(self.correlation_id_value)
        if self.user_id_value:
            self.user_token = user_id.set(self.user_id_value)
        if self.session_id_value:
            self.session_token = session_id.set(self.session_id_value)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.correlation_token:
            correlation_id.reset(self.correlation_token)
        if self.user_token:
            user_id.reset(self.user_token)
        if self.session_token:
            session_id.reset(self.session_token)


def get_logger(name: str, component: str = None) -> FanzoneLogger:
    """Get a component logger instance."""
    return FanzoneLogger(name, component)


def set_session_id(session_id_value: Optional[str]):
    """Set session ID for current context."""
    session_id.set(session_id_value)


def get_session_id() -> Optional[str]:
    """Get current session ID."""
    return session_id.get()


def get_correlation_id() -> Optional[str]:
    """Get current correlation ID."""
    return correlation_id.get()


def initialize_logging():
    """Initialize logging with the configured level and format."""
    from .config import get_monitoring_settings

    monitoring = get_monitoring_settings()
    LoggingConfig.setup_logging(
        level=monitoring.log_level.value,
        format_type=monitoring.log_format,
        log_file=monitoring.log_file,
        console_output=True,
        correlation_tracking=True
    )

