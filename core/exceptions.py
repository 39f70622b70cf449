"""
Custom exceptions for the ingestion pipeline with structured error context.

Every exception carries context information for debugging and monitoring.
Per-record errors carry a ``category`` used to group them in load summaries.

Exception Hierarchy:
    ETLException (base)
    ├── ConfigurationError
    ├── ExtractionError
    │   ├── SourceUnavailable
    │   ├── SourceFormatError
    │   └── ExtractionRetriesExhausted
    ├── TransformationError
    │   └── ValidationError
    ├── LoadError
    │   ├── RecordLoadError
    │   │   ├── ForeignKeyError
    │   │   ├── DuplicateError
    │   │   ├── RecordTimeoutError
    │   │   └── DatabaseError
    │   ├── CircuitBreakerTripped
    │   ├── TransactionError
    │   └── PipelineCancelled
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class ETLException(Exception):
    """
    Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (source, row, table, etc.)
        original_exception: The original exception that was caught (if any)
    """

    category = "pipeline"

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None
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

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {self.original_exception}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "category": self.category,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


class ConfigurationError(ETLException):
    """
    Invalid batch size, retry count or source descriptor.

    Raised before any I/O and never retried.
    """

    category = "configuration"


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(ETLException):
    """Base exception for data extraction failures."""

    category = "extraction"


class SourceUnavailable(ExtractionError):
    """
    The source could not be read: missing file, HTTP error, failed query.

    Context should include:
        - source_type: file, http or database
        - path / url / query: what was being read
        - status_code: HTTP status code (if applicable)
    """
    pass


class SourceFormatError(ExtractionError):
    """
    The source was read but its payload is malformed.

    Context should include:
        - source_type: file, http or database
        - detail: what about the payload was unexpected
    """
    pass


class ExtractionRetriesExhausted(ExtractionError):
    """
    Every extraction attempt failed.

    ``result`` holds the failed PipelineRunResult so callers that catch this
    still get the structured run report.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None,
        result: Any = None
    ):
        super().__init__(message, context, original_exception)
        self.result = result


# ============================================================================
# Transformation Errors
# ============================================================================

class TransformationError(ETLException):
    """Base exception for data transformation failures."""

    category = "transformation"


class ValidationError(TransformationError):
    """
    A record failed required-field or business-rule validation.

    Per-record and never fatal: the record is skipped.
    """

    category = "validation"


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(ETLException):
    """Base exception for data loading failures."""

    category = "load"


class RecordLoadError(LoadError):
    """A single record could not be persisted. Captured, never propagated."""

    category = "database"


class ForeignKeyError(RecordLoadError):
    """A referenced franchisor/agency/location/caregiver/parent id does not exist."""

    category = "foreign_key"


class DuplicateError(RecordLoadError):
    """An external id or email collides with an existing stored row."""

    category = "duplicate"


class RecordTimeoutError(RecordLoadError):
    """An insert exceeded the per-record time budget."""

    category = "timeout"


class DatabaseError(RecordLoadError):
    """
    Ordinary insert failure reported by the database.

    Context should include:
        - operation: Type of database operation (SELECT, INSERT)
        - table_name: Name of the table
    """

    category = "database"


class FatalLoadError(LoadError):
    """
    Load-phase error that aborts the whole load.

    ``load_result`` holds the statistics gathered up to the abort.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None,
        load_result: Any = None
    ):
        super().__init__(message, context, original_exception)
        self.load_result = load_result


class CircuitBreakerTripped(FatalLoadError):
    """Error rate within a load run exceeded the configured threshold."""

    category = "circuit_breaker"


class TransactionError(FatalLoadError):
    """The transaction infrastructure itself failed (commit, rollback, connection)."""

    category = "transaction"


class PipelineCancelled(FatalLoadError):
    """The caller's cancellation event was set between batches."""

    category = "cancelled"


RECORD_ERRORS = (ValidationError, RecordLoadError)
