"""Log formatters for JSON and console output."""

import json
import logging
import re
import sys
from datetime import UTC, datetime
from typing import Any

from core.logging.context import get_log_context
from core.utils.json_serializers import json_serializer


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter with context injection.

    Produces one JSON object per line for easy parsing with jq/grep.
    Sanitizes URLs to remove sensitive tokens before logging.
    """

    # Fields to extract from LogRecord extras
    EXTRA_FIELDS = [
        # Correlation
        "trace_id",
        "duration_ms",
        "elapsed_seconds",
        # Event
        "event",
        "survey_ids",
        "richness",
        # HTTP
        "http_status",
        "http_method",
        "http_url",
        "target_url",
        "content_length",
        # Payload / remote side
        "payload",
        "remote_response",
        "answers_count",
        "fields_total",
        "fields_skipped",
        # Catalog
        "questions_count",
        "subquestions_count",
        "answer_options_count",
        "language",
        "field_code",
        "column",
        # Errors
        "error_category",
        "error_message",
        "error_type",
        "error",
        # Server
        "host",
        "port",
        "path",
    ]

    # Type mapping for numeric fields so they never serialize as strings
    NUMERIC_FIELDS = {
        "duration_ms": float,
        "elapsed_seconds": float,
        "http_status": int,
        "content_length": int,
        "answers_count": int,
        "fields_total": int,
        "fields_skipped": int,
        "questions_count": int,
        "subquestions_count": int,
        "answer_options_count": int,
        "port": int,
    }

    # Fields that contain URLs and should be sanitized
    URL_FIELDS = ["target_url", "http_url", "url"]

    # Pattern to match sensitive query parameters
    SENSITIVE_PARAMS_PATTERN = re.compile(
        r"([?&])(sig|token|key|secret|password|auth|api_token)=[^&]*",
        re.IGNORECASE,
    )

    def _sanitize_url(self, url: str) -> str:
        return self.SENSITIVE_PARAMS_PATTERN.sub(r"\1\2=[REDACTED]", url)

    def _sanitize_value(self, key: str, value: Any) -> Any:
        if key in self.URL_FIELDS and isinstance(value, str):
            return self._sanitize_url(value)
        return value

    def _ensure_type(self, field: str, value: Any) -> Any:
        """
        Coerce numeric fields to their declared type.

        Returns None when the value cannot be converted.
        """
        if field not in self.NUMERIC_FIELDS or value is None:
            return value

        expected_type = self.NUMERIC_FIELDS[field]
        try:
            return expected_type(value)
        except (ValueError, TypeError):
            return None

    @staticmethod
    def _base_log_entry(record: logging.LogRecord) -> dict[str, Any]:
        return {
            "ts": datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

    @staticmethod
    def _inject_context(log_entry: dict[str, Any], log_context: dict[str, Any]) -> None:
        for field in ("stage", "trace_id", "survey_id", "response_id"):
            if log_context.get(field):
                log_entry[field] = log_context[field]

    @staticmethod
    def _should_include_source_location(record: logging.LogRecord) -> bool:
        return record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL)

    def _inject_extra_fields(self, log_entry: dict[str, Any], record: logging.LogRecord) -> None:
        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                typed_value = self._ensure_type(field, value)
                log_entry[field] = self._sanitize_value(field, typed_value)

    def _inject_exception(self, log_entry: dict[str, Any], record: logging.LogRecord) -> None:
        if not record.exc_info:
            return

        exc_type, exc_value, _ = record.exc_info
        log_entry["exception"] = {
            "type": exc_type.__name__ if exc_type else None,
            "message": str(exc_value) if exc_value else None,
            "stacktrace": self.formatException(record.exc_info),
        }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as a single JSON line."""
        log_entry = self._base_log_entry(record)

        self._inject_context(log_entry, get_log_context())

        if self._should_include_source_location(record):
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        # Type coercion must happen before sanitization
        self._inject_extra_fields(log_entry, record)
        self._inject_exception(log_entry, record)

        return json.dumps(log_entry, default=json_serializer, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter with color-coded log levels.

    Colors are auto-disabled when output is not a TTY (pipes, files).
    """

    # ANSI color codes
    COLORS = {
        logging.DEBUG: "\033[36m",  # Cyan
        logging.INFO: "\033[32m",  # Green
        logging.WARNING: "\033[33m",  # Yellow
        logging.ERROR: "\033[31m",  # Red
        logging.CRITICAL: "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._use_colors = sys.stdout.isatty()

    def _format_level_name(self, record: logging.LogRecord) -> str:
        level_name = record.levelname
        if not self._use_colors:
            return level_name

        color = self.COLORS.get(record.levelno, "")
        if not color:
            return level_name

        return f"{color}{level_name}{self.RESET}"

    @staticmethod
    def _build_prefix(level_name: str, log_context: dict[str, Any]) -> str:
        parts = [
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            level_name,
        ]
        if log_context.get("stage"):
            parts.append(f"[{log_context['stage']}]")
        return " - ".join(parts)

    @staticmethod
    def _build_tags(record: logging.LogRecord, log_context: dict[str, Any]) -> list[str]:
        trace_id = getattr(record, "trace_id", None) or log_context.get("trace_id")
        survey_id = log_context.get("survey_id")
        response_id = log_context.get("response_id")

        tags = []
        if survey_id:
            tags.append(f"[sid:{survey_id}]")
        if response_id:
            tags.append(f"[rid:{response_id}]")
        if trace_id:
            tags.append(f"[{trace_id[:8]}]")
        return tags

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for console output with optional color coding."""
        log_context = get_log_context()

        level_name = self._format_level_name(record)
        prefix = self._build_prefix(level_name, log_context)
        tags = self._build_tags(record, log_context)

        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        if tags:
            return f"{prefix} - {' '.join(tags)} {message}"

        return f"{prefix} - {message}"
