"""
Structured logging with JSON output and per-run correlation tracking.
"""
import json
import logging
import sys
import traceback
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Dict, Any, Optional

# Shared by every logger so a whole ingestion run carries one id
_correlation_id: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)

# Attributes owned by logging.LogRecord; passing them via `extra` raises KeyError
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {'message', 'asctime'}


class StructuredLogger:
    """
    Thin wrapper around `logging.Logger` that accepts keyword context fields.
    """

    def __init__(self, name: str, level: str = "INFO", format_type: str = "json"):
        self.name = name
        self.logger = logging.getLogger(name)
        self.configure(level, format_type)

    def configure(self, level: str, format_type: str):
        """(Re)apply level and output format."""
        self.logger.setLevel(getattr(logging, level.upper()))

        # Remove existing handlers to avoid duplicates
        self.logger.handlers.clear()

        handler = logging.StreamHandler(sys.stdout)
        if format_type.lower() == "json":
            handler.setFormatter(JSONFormatter())
        else:
            handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            ))
        self.logger.addHandler(handler)

    def set_correlation_id(self, correlation_id: Optional[str]):
        """Set correlation ID for the current run."""
        _correlation_id.set(correlation_id)

    def get_correlation_id(self) -> Optional[str]:
        """Get current correlation ID."""
        return _correlation_id.get()

    def _log(self, level: int, message: str, **kwargs):
        extra_data = {
            'correlation_id': _correlation_id.get(),
            'service': 'lead-ingestion',
        }
        for key, value in kwargs.items():
            if key in _RESERVED_ATTRS:
                key = f"ctx_{key}"
            extra_data[key] = value

        extra_data = {k: v for k, v in extra_data.items() if v is not None}
        self.logger.log(level, message, extra=extra_data)

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, error: Optional[Exception] = None, **kwargs):
        """Log error message with optional exception details."""
        if error is not None:
            kwargs.update({
                'error_type': type(error).__name__,
                'error_message': str(error),
            })
            if error.__traceback__ is not None:
                kwargs['traceback'] = ''.join(traceback.format_exception(type(error), error, error.__traceback__))
        self._log(logging.ERROR, message, **kwargs)

    @contextmanager
    def operation(self, operation: str, **context_data):
        """Log start, completion and failure of an operation with its duration."""
        start_time = datetime.now(timezone.utc)
        operation_id = str(uuid.uuid4())

        self.info(
            f"Starting operation: {operation}",
            operation=operation,
            operation_id=operation_id,
            **context_data
        )

        try:
            yield operation_id
        except Exception as e:
            self.error(
                f"Failed operation: {operation}",
                error=e,
                operation=operation,
                operation_id=operation_id,
                duration_ms=_elapsed_ms(start_time),
                status="error"
            )
            raise

        self.info(
            f"Completed operation: {operation}",
            operation=operation,
            operation_id=operation_id,
            duration_ms=_elapsed_ms(start_time),
            status="success"
        )


def _elapsed_ms(start_time: datetime) -> int:
    return int((datetime.now(timezone.utc) - start_time).total_seconds() * 1000)


class JSONFormatter(logging.Formatter):
    """Render a log record and its context fields as one JSON object."""

    def format(self, record):
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'function': record.funcName,
            'line': record.lineno
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class LoggerFactory:
    """Factory for creating configured loggers."""

    _loggers: Dict[str, StructuredLogger] = {}
    _default_level = "INFO"
    _default_format = "json"

    @classmethod
    def configure(cls, level: str = "INFO", format_type: str = "json"):
        """Configure default logger settings, including already created loggers."""
        cls._default_level = level
        cls._default_format = format_type
        for existing in cls._loggers.values():
            existing.configure(level, format_type)

    @classmethod
    def get_logger(cls, name: str) -> StructuredLogger:
        """Get or create a logger instance."""
        if name not in cls._loggers:
            cls._loggers[name] = StructuredLogger(
                name=name,
                level=cls._default_level,
                format_type=cls._default_format
            )
        return cls._loggers[name]


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return LoggerFactory.get_logger(name)


def new_correlation_id() -> str:
    """Start a new correlation scope and return its id."""
    correlation_id = str(uuid.uuid4())
    _correlation_id.set(correlation_id)
    return correlation_id
