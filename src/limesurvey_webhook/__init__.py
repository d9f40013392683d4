"""
LimeSurvey completion webhook.

Turns a completed survey response into a JSON payload of human-readable
question/answer pairs and POSTs it to a configured endpoint.

Pipeline: store -> catalog + field codes -> resolver -> enrichment ->
payload -> dispatcher.
"""

from limesurvey_webhook.catalog import QuestionCatalog, load_catalog
from limesurvey_webhook.dispatcher import AuthType, WebhookDispatcher
from limesurvey_webhook.enrichment import EXCLUDED_FIELDS, enrich_response
from limesurvey_webhook.field_codes import parse_field_code
from limesurvey_webhook.models import (
    AnswerOption,
    DispatchResult,
    EnrichedAnswer,
    ParsedFieldCode,
    Participant,
    Question,
    Richness,
)
from limesurvey_webhook.payload import build_payload, correct_submit_date
from limesurvey_webhook.resolver import resolve_answer

__version__ = "0.1.0"

__all__ = [
    "AnswerOption",
    "AuthType",
    "DispatchResult",
    "EnrichedAnswer",
    "EXCLUDED_FIELDS",
    "ParsedFieldCode",
    "Participant",
    "Question",
    "QuestionCatalog",
    "Richness",
    "WebhookDispatcher",
    "build_payload",
    "correct_submit_date",
    "enrich_response",
    "load_catalog",
    "parse_field_code",
    "resolve_answer",
]
