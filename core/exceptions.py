"""
Custom exceptions for the artifact pipeline with structured error context.

This module provides the exception hierarchy used from fetching responses
through normalization, persistence, export and derived-table transformations.
Each exception includes context information for debugging and monitoring.

Exception Hierarchy:
    PipelineException (base)
    ├── ExtractionError
    │   └── APIExtractionError
    │       ├── NetworkError
    │       ├── RateLimitError
    │       └── AuthenticationError
    ├── TransformationError
    │   ├── NormalizationError
    │   ├── InvalidPayloadError
    │   └── UnknownQueryTypeError
    ├── LoadError
    │   └── StoreError
    ├── ExportError
    ├── TransformationStepError
    │   └── StepDefinitionError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class PipelineException(Exception):
    """
    Base exception for all pipeline-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (query type, table, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(PipelineException):
    """Base exception for response fetching failures."""
    pass


class APIExtractionError(ExtractionError):
    """
    Exception raised when a GraphQL request fails.

    Context should include:
        - api_url: The endpoint that failed
        - entity: owner/name of the queried entity
        - status_code: HTTP status code (if applicable)
        - retry_count: Number of retries attempted
    """
    pass


# ============================================================================
# Transformation Errors
# ============================================================================

class TransformationError(PipelineException):
    """Base exception for normalization failures."""
    pass


class NormalizationError(TransformationError):
    """
    Exception raised when a batch cannot be normalized.

    Context should include:
        - query_type: Query type of the batch
        - record_count: Number of records in the batch
    """
    pass


class UnknownQueryTypeError(TransformationError):
    """Raised when no normalizer is registered for a query type."""
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(PipelineException):
    """Base exception for persistence failures."""
    pass


class StoreError(LoadError):
    """
    Exception raised when the analytical store rejects an operation.

    Context should include:
        - operation: Type of operation (CREATE, INSERT, COPY, ...)
        - table_name: Name of the table
    """
    pass


class ExportError(PipelineException):
    """
    Exception raised when a table cannot be exported.

    Context should include:
        - table_name: Name of the table
        - path: Target file path
    """
    pass


# ============================================================================
# Transformation Step Errors
# ============================================================================

class TransformationStepError(PipelineException):
    """Base exception for derived-table step failures."""
    pass


class StepDefinitionError(TransformationStepError):
    """
    Raised when the ordered step list is inconsistent.

    Context should include:
        - step: Name of the offending step
        - table_name: Table involved in the violation (if applicable)
    """
    pass


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(PipelineException):
    """
    Mixin for errors that should trigger retry logic.

    Use this for transient errors like:
    - Network timeouts
    - Rate limiting (HTTP 429)
    - Service unavailable (HTTP 5xx)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0
    ):
        super().__init__(message, context, original_exception)
        self.max_retries = max_retries
        self.retry_delay = retry_delay


class NonRetryableError(PipelineException):
    """
    Mixin for errors that should NOT trigger retry logic.

    Use this for permanent errors like:
    - Authentication failures (HTTP 401, 403)
    - Structurally invalid payloads
    """
    pass


# ============================================================================
# Specific Retryable Errors
# ============================================================================

class NetworkError(RetryableError, APIExtractionError):
    """Network-related errors that should be retried."""
    pass


class RateLimitError(RetryableError, APIExtractionError):
    """Rate limiting errors (HTTP 429) that should be retried with backoff."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[int] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after  # Seconds to wait before retry
        if retry_after:
            self.context["retry_after"] = retry_after


# ============================================================================
# Specific Non-Retryable Errors
# ============================================================================

class AuthenticationError(NonRetryableError, APIExtractionError):
    """Authentication failures (HTTP 401, 403) that should not be retried."""
    pass


class InvalidPayloadError(NonRetryableError, TransformationError):
    """
    Raised when a root payload is not an object at all.

    Context should include:
        - query_type: Query type of the record
        - payload_type: Python type name of the offending payload
        - record_index: Position of the record in the batch
    """
    pass
