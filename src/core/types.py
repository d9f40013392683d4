"""
Core types shared across modules.

One error category enum so that every layer classifies
failures the same way.
"""

from enum import Enum


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Categories:
        TRANSIENT: Temporary failures that might succeed later
                   (e.g., network timeouts, 429/503 responses)
        AUTH: Authentication failures at the receiving endpoint
              (e.g., 401 responses, rejected API token)
        PERMANENT: Failures that won't succeed on a second attempt
                   (e.g., 404, validation errors, configuration issues)
        UNKNOWN: Unclassified errors
    """

    TRANSIENT = "transient"
    AUTH = "auth"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


__all__ = [
    "ErrorCategory",
]
