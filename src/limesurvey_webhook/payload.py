"""
Webhook payload assembly.

Merges response metadata, the optional participant and the enrichment output
into the JSON structure the receiving endpoint gets. Assembly never fails:
missing optional values serialize as null.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from limesurvey_webhook.catalog import QuestionCatalog
from limesurvey_webhook.models import EnrichedAnswer, Participant, RawResponse, Richness

# Stored when the platform did not record a real submit time
SENTINEL_SUBMIT_DATE = "1980-01-01 00:00:00"
SUBMIT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_EVENT_NAME = "afterSurveyComplete"


def correct_submit_date(submit_date: Any, now: datetime | None = None) -> str:
    """Replace a missing or sentinel submit date with the current time."""
    if isinstance(submit_date, datetime):
        submit_date = submit_date.strftime(SUBMIT_DATE_FORMAT)

    if not submit_date or str(submit_date) == SENTINEL_SUBMIT_DATE:
        return (now or datetime.now()).strftime(SUBMIT_DATE_FORMAT)
    return str(submit_date)


def build_payload(
    survey_id: int,
    response_id: int,
    response: RawResponse,
    *,
    event_name: str = DEFAULT_EVENT_NAME,
    richness: Richness = Richness.LABELED,
    answers: Sequence[EnrichedAnswer] | None = None,
    catalog: QuestionCatalog | None = None,
    participant: Participant | None = None,
    auth_token: str | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Assemble the outbound webhook body.

    Keys always present: api_token, survey, event, respondId, submitDate,
    token, participant. The rest depends on richness:

        raw      response
        coded    response, questions, choices
        labeled  answers
        full     response, answers
    """
    token = response.get("token") or None

    payload: dict[str, Any] = {
        "api_token": auth_token or None,
        "survey": survey_id,
        "event": event_name,
        "respondId": response_id,
        "submitDate": correct_submit_date(response.get("submitdate"), now=now),
        "token": token,
        "participant": participant.to_dict() if participant else None,
    }

    if richness.includes_response:
        payload["response"] = dict(response)

    if richness is Richness.CODED:
        payload["questions"] = catalog.question_rows() if catalog else []
        payload["choices"] = catalog.choice_rows() if catalog else []

    if richness.includes_answers:
        payload["answers"] = [a.to_dict() for a in answers or ()]

    return payload


def redact_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Copy of the payload with the API token masked, for logging."""
    if not payload.get("api_token"):
        return payload
    return {**payload, "api_token": "[REDACTED]"}
