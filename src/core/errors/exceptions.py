"""
Unified exception hierarchy for the webhook pipeline.

Provides typed exceptions with error classification so that failures at the
store, configuration and delivery seams are logged with a consistent category.
"""

# Import ErrorCategory from canonical source to avoid duplicate enum issues
# (comparing enums from different classes always returns False)
from core.types import ErrorCategory


class PipelineError(Exception):
    """
    Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error description
        category: Error classification
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


# =============================================================================
# Category Base Classes
# =============================================================================


class TransientError(PipelineError):
    """Base class for transient errors."""

    category = ErrorCategory.TRANSIENT


class PermanentError(PipelineError):
    """Base class for permanent errors."""

    category = ErrorCategory.PERMANENT


# =============================================================================
# Domain-Specific Errors
# =============================================================================


class ConfigurationError(PermanentError):
    """Invalid or missing configuration."""

    pass


class StoreError(TransientError):
    """Error reading responses, participants or questions from the survey store."""

    pass


class DeliveryError(PipelineError):
    """
    Webhook delivery failed.

    The category is derived from the HTTP status when one was received,
    otherwise from the wrapped transport exception.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: Exception | None = None,
        context: dict | None = None,
        category: ErrorCategory | None = None,
    ):
        super().__init__(message, cause, context)
        self.status_code = status_code
        if category is not None:
            self.category = category
        elif status_code is not None:
            self.category = classify_http_status(status_code)
        elif cause is not None:
            self.category = classify_exception(cause)


# =============================================================================
# Error Classification Utilities
# =============================================================================


def classify_http_status(status_code: int) -> ErrorCategory:
    """Classify HTTP status code into error category."""
    if 200 <= status_code < 300:
        return ErrorCategory.UNKNOWN  # Not an error

    if status_code == 401:
        return ErrorCategory.AUTH

    if status_code == 429:
        return ErrorCategory.TRANSIENT  # Rate limited

    if 400 <= status_code < 500:
        return ErrorCategory.PERMANENT

    if status_code >= 500:
        return ErrorCategory.TRANSIENT

    return ErrorCategory.UNKNOWN


def classify_exception(exc: Exception) -> ErrorCategory:
    """Classify an exception into error category."""
    # Already classified
    if isinstance(exc, PipelineError):
        return exc.category

    exc_type = type(exc).__name__.lower()
    exc_str = str(exc).lower()

    # Timeouts first: asyncio.TimeoutError and ServerTimeoutError both land here
    if "timeout" in exc_type or "timeout" in exc_str:
        return ErrorCategory.TRANSIENT

    connection_markers = (
        "connectionerror",
        "connectorerror",
        "connection refused",
        "connection reset",
        "connection aborted",
        "no route to host",
        "network unreachable",
        "name resolution",
        "dns",
        "socket",
        "broken pipe",
        "serverdisconnected",
    )
    if any(m in exc_type or m in exc_str for m in connection_markers):
        return ErrorCategory.TRANSIENT

    # Certificate verification failures will not fix themselves
    if "certificate" in exc_type or "certificate" in exc_str or "ssl" in exc_type:
        return ErrorCategory.PERMANENT

    if "401" in exc_str or "unauthorized" in exc_str:
        return ErrorCategory.AUTH

    if "invalid url" in exc_str or "invalidurl" in exc_type:
        return ErrorCategory.PERMANENT

    return ErrorCategory.UNKNOWN
