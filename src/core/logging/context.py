"""Context variables for structured logging."""

from contextvars import ContextVar
from typing import Dict, Optional

_stage_name: ContextVar[str] = ContextVar("stage_name", default="")
_trace_id: ContextVar[str] = ContextVar("trace_id", default="")
_survey_id: ContextVar[str] = ContextVar("survey_id", default="")
_response_id: ContextVar[str] = ContextVar("response_id", default="")


def set_log_context(
    stage: Optional[str] = None,
    trace_id: Optional[str] = None,
    survey_id: Optional[str] = None,
    response_id: Optional[str] = None,
) -> None:
    if stage is not None:
        _stage_name.set(stage)
    if trace_id is not None:
        _trace_id.set(trace_id)
    if survey_id is not None:
        _survey_id.set(str(survey_id))
    if response_id is not None:
        _response_id.set(str(response_id))


def get_log_context() -> Dict[str, str]:
    return {
        "stage": _stage_name.get(),
        "trace_id": _trace_id.get(),
        "survey_id": _survey_id.get(),
        "response_id": _response_id.get(),
    }


def clear_log_context() -> None:
    _stage_name.set("")
    _trace_id.set("")
    _survey_id.set("")
    _response_id.set("")
