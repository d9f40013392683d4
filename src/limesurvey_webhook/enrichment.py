"""
Response enrichment.

Walks every column of one response in order, skipping system metadata,
and resolves each answered question column to a display pair.
"""

import logging

from limesurvey_webhook.catalog import QuestionCatalog
from limesurvey_webhook.field_codes import parse_field_code
from limesurvey_webhook.models import EnrichedAnswer, RawResponse
from limesurvey_webhook.resolver import resolve_answer

logger = logging.getLogger(__name__)

# System columns of a response record, never enriched
EXCLUDED_FIELDS = frozenset(
    {
        "id",
        "token",
        "submitdate",
        "startlanguage",
        "seed",
        "startdate",
        "datestamp",
        "ipaddr",
        "refurl",
        "lastpage",
    }
)


def enrich_response(response: RawResponse, catalog: QuestionCatalog) -> list[EnrichedAnswer]:
    """Resolve every answered question column of a response.

    Output keeps the column order of the response. A response holding only
    metadata yields an empty list.
    """
    answers: list[EnrichedAnswer] = []
    skipped = 0
    total = 0

    for field_code, raw_value in response.items():
        if field_code in EXCLUDED_FIELDS:
            continue
        total += 1

        parsed = parse_field_code(field_code)
        if parsed is None:
            logger.debug("Skipping unparseable field", extra={"field_code": field_code})
            skipped += 1
            continue

        enriched = resolve_answer(parsed, raw_value, catalog, field_code=field_code)
        if enriched is None:
            skipped += 1
            continue

        answers.append(enriched)

    logger.debug(
        "Response enriched",
        extra={
            "fields_total": total,
            "fields_skipped": skipped,
            "answers_count": len(answers),
        },
    )
    return answers
