"""
URL validation and sanitization for webhook targets.

Webhook targets come from operator configuration, so validation checks
structure only (scheme and hostname). Sanitization strips credentials and
tokens from URLs and error messages before they reach the logs.
"""

import re
from typing import Set, Tuple
from urllib.parse import urlparse, urlunparse

# Allowed schemes for webhook targets
ALLOWED_SCHEMES: Set[str] = {"https", "http"}


def validate_webhook_url(url: str) -> Tuple[bool, str]:
    """
    Validate the structure of a webhook target URL.

    Args:
        url: URL to validate

    Returns:
        Tuple of (is_valid, error_message):
        - (True, "") if valid
        - (False, "error description") if invalid

    Examples:
        >>> validate_webhook_url("https://hooks.example.com/survey")
        (True, "")

        >>> validate_webhook_url("ftp://hooks.example.com/survey")
        (False, "Invalid scheme: ftp")
    """
    if not url:
        return False, "Empty URL"

    try:
        parsed = urlparse(url)
    except ValueError as e:
        return False, f"Invalid URL format: {e}"

    scheme = parsed.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        return False, f"Invalid scheme: {scheme or '(none)'}"

    if not parsed.hostname:
        return False, "No hostname in URL"

    return True, ""


# ---------------------------------------------------------------------------
# URL Sanitization (for logging)
# ---------------------------------------------------------------------------

# Query parameters that may contain sensitive tokens
SENSITIVE_PARAMS = {
    "token",
    "api_token",
    "access_token",
    "api_key",
    "apikey",
    "key",
    "secret",
    "password",
    "pwd",
    "auth",
    "authorization",
    "sig",
    "signature",
}


def sanitize_url(url: str) -> str:
    """
    Remove sensitive query parameters and userinfo from URL.

    Returns URL with sensitive parameters replaced with [REDACTED].
    """
    if not url:
        return url

    try:
        parsed = urlparse(url)
    except ValueError:
        return url

    if parsed.password:
        netloc = f"{parsed.username}:[REDACTED]@{parsed.hostname}"
        if parsed.port:
            netloc += f":{parsed.port}"
        parsed = parsed._replace(netloc=netloc)

    if parsed.query:
        sanitized_params = []
        for param in parsed.query.split("&"):
            if "=" in param:
                key, _ = param.split("=", 1)
                if key.lower() in SENSITIVE_PARAMS:
                    sanitized_params.append(f"{key}=[REDACTED]")
                    continue
            sanitized_params.append(param)
        parsed = parsed._replace(query="&".join(sanitized_params))

    return urlunparse(parsed)


# ---------------------------------------------------------------------------
# Error Message Sanitization
# ---------------------------------------------------------------------------

# Patterns that may contain sensitive data in error messages
SENSITIVE_PATTERNS = [
    (re.compile(r'api_token["\']?\s*[=:]\s*["\']?[^&\s"\',}]+', re.IGNORECASE), "api_token=[REDACTED]"),
    (re.compile(r'(?<![a-z_])token=[^&\s"\']+', re.IGNORECASE), "token=[REDACTED]"),
    (re.compile(r'password=[^&\s"\']+', re.IGNORECASE), "password=[REDACTED]"),
    (re.compile(r'secret=[^&\s"\']+', re.IGNORECASE), "secret=[REDACTED]"),
    (re.compile(r"bearer\s+[a-zA-Z0-9\-_.]+", re.IGNORECASE), "bearer [REDACTED]"),
    (re.compile(r'api[_-]?key[=:]\s*[^\s"\'&]+', re.IGNORECASE), "api_key=[REDACTED]"),
]

_URL_PATTERN = re.compile(r'https?://[^\s"\'<>]+')


def sanitize_error_message(msg: str, max_length: int = 500) -> str:
    """
    Remove potentially sensitive data from error messages.

    Applies pattern-based redaction and truncates to max_length.
    """
    if not msg:
        return msg

    for pattern, replacement in SENSITIVE_PATTERNS:
        msg = pattern.sub(replacement, msg)

    for match in _URL_PATTERN.finditer(msg):
        original_url = match.group(0)
        sanitized = sanitize_url(original_url)
        if sanitized != original_url:
            msg = msg.replace(original_url, sanitized)

    if len(msg) > max_length:
        msg = msg[: max_length - 3] + "..."

    return msg
