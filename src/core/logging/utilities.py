"""Logging utility functions."""

import logging
from typing import Any

from core.security.url_validation import sanitize_error_message

# Attributes every LogRecord already has; these cannot travel in extra
_RESERVED_LOG_KEYS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime"}


def log_with_context(
    logger: logging.Logger,
    level: int,
    msg: str,
    **kwargs: Any,
) -> None:
    """
    Log with structured context fields.

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, etc.)
        msg: Log message
        **kwargs: Additional context fields (target_url, elapsed_seconds, etc.)
                  exc_info=True is supported and handled specially.

    Example:
        log_with_context(
            logger, logging.INFO, "Webhook dispatched",
            event="afterSurveyComplete",
            http_status=200,
        )
    """
    exc_info = kwargs.pop("exc_info", None)

    # Filter out reserved keys to prevent LogRecord conflicts
    extra = {k: v for k, v in kwargs.items() if k not in _RESERVED_LOG_KEYS}

    logger.log(level, msg, exc_info=exc_info, extra=extra)


def log_exception(
    logger: logging.Logger,
    exc: Exception,
    msg: str,
    level: int = logging.ERROR,
    include_traceback: bool = True,
    **kwargs: Any,
) -> None:
    """
    Log exception with context and optional traceback.

    Automatically extracts error_category from PipelineError subclasses.
    Sanitizes error messages to remove sensitive data.

    Example:
        try:
            await store.get_response(survey_id, response_id)
        except StoreError as e:
            log_exception(logger, e, "Response lookup failed")
    """
    error_category = kwargs.get("error_category")
    if error_category is None and hasattr(exc, "category"):
        cat = exc.category
        kwargs["error_category"] = cat.value if hasattr(cat, "value") else str(cat)

    kwargs["error_message"] = sanitize_error_message(str(exc))
    kwargs.setdefault("error_type", type(exc).__name__)

    extra = {k: v for k, v in kwargs.items() if k not in _RESERVED_LOG_KEYS}
    if include_traceback:
        logger.log(level, msg, exc_info=exc, extra=extra)
    else:
        logger.log(level, msg, extra=extra)
