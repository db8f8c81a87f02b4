"""
Custom exceptions and error handling utilities for the lead ingestion system.
"""
from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Standardized error codes for different failure types."""

    # Configuration errors
    CONFIG_INVALID = "CONFIG_INVALID"

    # Mailbox errors
    MAILBOX_UNAVAILABLE = "MAILBOX_UNAVAILABLE"
    MAILBOX_FETCH_FAILED = "MAILBOX_FETCH_FAILED"
    EMAIL_PARSE_FAILED = "EMAIL_PARSE_FAILED"

    # Lead parsing errors
    LEAD_DATA_INVALID = "LEAD_DATA_INVALID"
    LEAD_MISSING_CONTACT = "LEAD_MISSING_CONTACT"

    # Persistence errors
    PERSISTENCE_FAILED = "PERSISTENCE_FAILED"

    # AWS service errors
    S3_ACCESS_DENIED = "S3_ACCESS_DENIED"
    S3_OBJECT_NOT_FOUND = "S3_OBJECT_NOT_FOUND"

    # Processing errors
    RETRY_EXHAUSTED = "RETRY_EXHAUSTED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class BaseIngestionError(Exception):
    """Base exception for all lead ingestion errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            'error_type': self.__class__.__name__,
            'error_code': self.error_code.value,
            'message': self.message,
            'details': self.details,
            'cause': str(self.cause) if self.cause else None
        }


class ConfigurationError(BaseIngestionError):
    """Raised when configuration is invalid or incomplete."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.CONFIG_INVALID,
            cause=cause
        )


class MailboxError(BaseIngestionError):
    """
    Raised when the mailbox cannot be reached or read.

    This is the only error that aborts a whole ingestion run.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.MAILBOX_UNAVAILABLE,
        mailbox: Optional[str] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            details={'mailbox': mailbox} if mailbox else {},
            cause=cause
        )


class EmailProcessingError(BaseIngestionError):
    """Raised when a single raw email cannot be decoded or is unusable."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.EMAIL_PARSE_FAILED,
        message_id: Optional[str] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            details={'message_id': message_id} if message_id else {},
            cause=cause
        )


class LeadParsingError(BaseIngestionError):
    """Raised inside parsers when lead fields cannot be extracted."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.LEAD_DATA_INVALID,
        lead_source: Optional[str] = None,
        missing_fields: Optional[list] = None,
        cause: Optional[Exception] = None
    ):
        details = {}
        if lead_source:
            details['lead_source'] = lead_source
        if missing_fields:
            details['missing_fields'] = missing_fields

        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            cause=cause
        )


class PersistenceError(BaseIngestionError):
    """Raised when the lead store or activity log rejects a write."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(
            message=message,
            error_code=ErrorCode.PERSISTENCE_FAILED,
            details={'operation': operation} if operation else {},
            cause=cause
        )


class AWSServiceError(BaseIngestionError):
    """Raised when AWS service operations fail."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        service: str,
        operation: Optional[str] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            details={
                'service': service,
                'operation': operation
            },
            cause=cause
        )


class RetryExhaustedError(BaseIngestionError):
    """Raised when retry attempts are exhausted."""

    def __init__(self, message: str, max_attempts: int, last_error: Optional[Exception] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.RETRY_EXHAUSTED,
            details={'max_attempts': max_attempts},
            cause=last_error
        )


def handle_exception(
    exception: Exception,
    context: Optional[Dict[str, Any]] = None,
    default_error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR
) -> BaseIngestionError:
    """
    Convert any exception to a BaseIngestionError with proper context.

    Args:
        exception: The original exception
        context: Additional context information
        default_error_code: Default error code if not a known exception type

    Returns:
        BaseIngestionError: Wrapped exception with proper error code
    """
    if isinstance(exception, BaseIngestionError):
        return exception

    exception_name = type(exception).__name__

    if 'NoCredentialsError' in exception_name or 'AccessDenied' in str(exception):
        return AWSServiceError(
            message=f"AWS access denied: {str(exception)}",
            error_code=ErrorCode.S3_ACCESS_DENIED,
            service="AWS",
            cause=exception
        )

    # imaplib.IMAP4.error, socket errors and timeouts all mean the mailbox is gone
    if exception_name in ('error', 'abort') or isinstance(exception, (ConnectionError, TimeoutError)):
        return MailboxError(
            message=f"Mailbox unavailable: {str(exception)}",
            cause=exception
        )

    return BaseIngestionError(
        message=f"Unexpected error: {str(exception)}",
        error_code=default_error_code,
        details=context or {},
        cause=exception
    )
