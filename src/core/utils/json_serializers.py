"""Shared JSON serialization utilities for type-safe JSON encoding."""

from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any


def _serialize_known_type(obj: Any) -> tuple[bool, Any]:
    """Try to serialize by known type. Returns (handled, result)."""
    if isinstance(obj, datetime):
        # LimeSurvey stores timestamps without zone, keep its wire format
        return True, obj.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(obj, date):
        return True, obj.isoformat()
    if isinstance(obj, Decimal):
        return True, str(obj) if obj != obj.to_integral_value() else int(obj)
    if isinstance(obj, (bytes, bytearray)):
        return True, bytes(obj).decode("utf-8", errors="replace")
    if isinstance(obj, Path):
        return True, str(obj)
    if isinstance(obj, (set, frozenset)):
        return True, sorted(obj)
    return False, None


def json_serializer(obj: Any) -> Any:
    """
    Type-safe JSON serializer for webhook payloads.

    Database drivers hand back values that json.dumps cannot encode:
    - datetime → "YYYY-MM-DD HH:MM:SS" (the survey platform's own format)
    - date → ISO 8601 string
    - Decimal → int when integral, otherwise its exact string form
    - bytes → UTF-8 text
    - set/frozenset → sorted list
    - Enums → value
    - Everything else → string (fallback)

    Args:
        obj: Object to serialize

    Returns:
        JSON-serializable representation
    """
    handled, result = _serialize_known_type(obj)
    if handled:
        return result
    if hasattr(obj, "value"):
        return obj.value
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    return str(obj)


__all__ = ["json_serializer"]
