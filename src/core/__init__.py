"""
Core library: reusable, domain-agnostic components.

Modules:
    errors      - Error classification and exception hierarchy
    logging     - Structured JSON logging with survey/response correlation
    security    - Webhook URL validation and log sanitization
    utils       - JSON serialization helpers
"""

from .types import ErrorCategory

__version__ = "0.1.0"

__all__ = [
    "ErrorCategory",
]
