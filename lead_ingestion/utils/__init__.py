"""
Utility modules for the lead ingestion system.
"""

from .logger import (
    StructuredLogger,
    LoggerFactory,
    get_logger,
    new_correlation_id
)
from .exceptions import (
    BaseIngestionError,
    ConfigurationError,
    MailboxError,
    EmailProcessingError,
    LeadParsingError,
    PersistenceError,
    AWSServiceError,
    RetryExhaustedError,
    ErrorCode,
    handle_exception
)
from .metrics import (
    MetricsCollector,
    IngestionMetrics,
    initialize_metrics,
    get_ingestion_metrics,
    flush_metrics
)
from .validators import (
    DataValidator,
    normalize_postcode,
    normalize_email,
    is_within_size_limit
)
from .retry import (
    RetryHandler,
    RetryConfig,
    BackoffStrategy
)

__all__ = [
    # Logger
    'StructuredLogger',
    'LoggerFactory',
    'get_logger',
    'new_correlation_id',

    # Exceptions
    'BaseIngestionError',
    'ConfigurationError',
    'MailboxError',
    'EmailProcessingError',
    'LeadParsingError',
    'PersistenceError',
    'AWSServiceError',
    'RetryExhaustedError',
    'ErrorCode',
    'handle_exception',

    # Metrics
    'MetricsCollector',
    'IngestionMetrics',
    'initialize_metrics',
    'get_ingestion_metrics',
    'flush_metrics',

    # Validators
    'DataValidator',
    'normalize_postcode',
    'normalize_email',
    'is_within_size_limit',

    # Retry
    'RetryHandler',
    'RetryConfig',
    'BackoffStrategy'
]
