"""
Security validation module.

Provides webhook URL validation and sanitization of URLs and error
messages before they are logged.
"""

from core.security.exceptions import URLValidationError, ValidationError
from core.security.url_validation import (
    ALLOWED_SCHEMES,
    sanitize_error_message,
    sanitize_url,
    validate_webhook_url,
)

__all__ = [
    "validate_webhook_url",
    "sanitize_url",
    "sanitize_error_message",
    "ALLOWED_SCHEMES",
    "URLValidationError",
    "ValidationError",
]
