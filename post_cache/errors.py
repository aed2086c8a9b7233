"""Error definitions for the post cache."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(Enum):
    """Categories of errors that can occur in the system."""

    STORAGE_ERROR = "storage_error"
    NOT_FOUND = "not_found"
    DECODE_ERROR = "decode_error"
    UNSUPPORTED = "unsupported"
    CONFIGURATION_ERROR = "configuration_error"
    SYSTEM_ERROR = "system_error"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class BaseError(Exception):
    """Base error class for all post cache errors."""

    category = ErrorCategory.SYSTEM_ERROR
    default_severity = ErrorSeverity.MEDIUM

    def __init__(
        self,
        message: str,
        severity: Optional[ErrorSeverity] = None,
        error_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize base error.

        Args:
            message: Error message
            severity: Error severity, defaults to the class severity
            error_id: Optional unique error ID
            details: Optional error details
        """
        super().__init__(message)
        self.message = message
        self.severity = severity or self.default_severity
        self.error_id = error_id
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        """Return a log-friendly representation of the error."""
        return {
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "error_id": self.error_id,
            "details": self.details,
            "timestamp": self.timestamp,
        }


class StoreUnavailableError(BaseError):
    """Error raised when the remote table cannot be reached or rejects a request."""

    category = ErrorCategory.STORAGE_ERROR
    default_severity = ErrorSeverity.HIGH


class RecordNotFoundError(BaseError):
    """Error raised when a record is absent from the remote table."""

    category = ErrorCategory.NOT_FOUND
    default_severity = ErrorSeverity.MEDIUM


class RecordDecodeError(BaseError):
    """Error raised when a stored record cannot be mapped back to a post."""

    category = ErrorCategory.DECODE_ERROR
    default_severity = ErrorSeverity.LOW


class UnsupportedOperationError(BaseError):
    """Error raised for operations this store does not implement."""

    category = ErrorCategory.UNSUPPORTED
    default_severity = ErrorSeverity.LOW


class ConfigurationError(BaseError):
    """Error raised when storage settings are missing or malformed."""

    category = ErrorCategory.CONFIGURATION_ERROR
    default_severity = ErrorSeverity.CRITICAL


class CacheNotReadyError(BaseError):
    """Error raised when the cache is read before it has been populated."""

    category = ErrorCategory.SYSTEM_ERROR
    default_severity = ErrorSeverity.CRITICAL
