"""
Custom exceptions for the report sync pipeline with structured error context.

Every exception carries a context dictionary (report name, table, URL, ...)
so failures can be logged with enough detail to replay the failing step.

Exception Hierarchy:
    ETLException (base)
    ├── ExtractionError
    │   └── APIExtractionError
    │       ├── TransportError
    │       ├── AuthenticationError
    │       ├── ResourceNotFoundError
    │       └── RateLimitError
    ├── TransformationError
    ├── LoadError
    │   ├── DatabaseError
    │   └── StagingError
    ├── CheckpointError
    │   └── StateCorruptionError
    ├── ConfigurationError
    └── ReportFailedError

Handling policy:
    - ExtractionError subclasses never leave the fetcher; a failed page is
      logged and surfaces as an empty page.
    - LoadError subclasses abort the current report attempt.
    - StateCorruptionError is logged and the report treated as first run.
    - ConfigurationError is fatal at startup.
    - ReportFailedError is raised once a report exhausts its attempts; the
      pipeline logs it and moves on to the next report.
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class ETLException(Exception):
    """
    Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (report, table, url, ...)
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
            base_msg += (
                f" | Caused by: {type(self.original_exception).__name__}: "
                f"{str(self.original_exception)}"
            )

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging."""
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

class ExtractionError(ETLException):
    """Base exception for data extraction failures."""
    pass


class APIExtractionError(ExtractionError):
    """
    Exception raised when a report API request fails.

    Context should include:
        - url: The request URL (credentials stripped)
        - status_code: HTTP status code (if applicable)
        - response_body: Response body (truncated)
    """
    pass


class TransportError(APIExtractionError):
    """Upstream unreachable, timed out, or answered with a non-2xx status."""
    pass


class AuthenticationError(APIExtractionError):
    """Authentication failures (HTTP 401, 403)."""
    pass


class ResourceNotFoundError(APIExtractionError):
    """Unknown report endpoint (HTTP 404)."""
    pass


class RateLimitError(APIExtractionError):
    """Rate limiting (HTTP 429)."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[int] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after
        if retry_after:
            self.context["retry_after"] = retry_after


# ============================================================================
# Transformation Errors
# ============================================================================

class TransformationError(ETLException):
    """Base exception for record transformation failures."""
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(ETLException):
    """Base exception for warehouse load failures."""
    pass


class DatabaseError(LoadError):
    """
    Exception raised when a warehouse statement fails.

    Context should include:
        - operation: Type of statement (CREATE, INSERT, COPY, DROP, RENAME, ...)
        - table_name: Name of the table
        - sql: The statement text (truncated)
    """
    pass


class StagingError(LoadError):
    """
    Exception raised when the staging table lifecycle is misused.

    Context should include:
        - table_name: Destination table
        - staging_table: Staging table
    """
    pass


# ============================================================================
# Checkpoint Errors
# ============================================================================

class CheckpointError(ETLException):
    """
    Exception raised when sync state management fails.

    Context should include:
        - report_name: Report whose state failed
        - state_file: Path of the state file
        - operation: read or write
    """
    pass


class StateCorruptionError(CheckpointError):
    """Persisted sync state could not be parsed."""
    pass


# ============================================================================
# Pipeline Errors
# ============================================================================

class ConfigurationError(ETLException):
    """Required configuration is missing or invalid."""
    pass


class ReportFailedError(ETLException):
    """
    Raised when a report fails on every allowed attempt.

    Context should include:
        - report_name: The report that was skipped
        - attempts: Number of attempts made
    """
    pass
