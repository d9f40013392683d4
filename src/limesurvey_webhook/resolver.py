"""
Answer resolution against the question catalog.

Turns one parsed field code and its raw value into a (question, answer)
pair of display text. Lookup misses fall back to the raw value; only an
unknown question or an unanswered field produces no pair.
"""

from typing import Any

from limesurvey_webhook.catalog import QuestionCatalog
from limesurvey_webhook.field_codes import is_subquestion_code
from limesurvey_webhook.models import EnrichedAnswer, ParsedFieldCode

YES_NO_LABELS = {"Y": "Yes", "N": "No"}


def as_text(value: Any) -> str | None:
    """Raw column value as text. None and empty strings mean 'not answered'."""
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    text = value if isinstance(value, str) else str(value)
    return text if text != "" else None


def resolve_answer(
    parsed: ParsedFieldCode,
    raw_value: Any,
    catalog: QuestionCatalog,
    field_code: str = "",
) -> EnrichedAnswer | None:
    """Resolve a parsed field and its raw value to display text.

    Rules, in order:
        1. Unknown question code, or empty value: no pair.
        2. Field names a subquestion: that subquestion's text, else the raw value.
        3. Value is itself a subquestion code: that subquestion's text, else the raw value.
        4. Value is a predefined answer code: the answer's label.
        5. 'Y'/'N': 'Yes'/'No'. Anything else passes through unchanged.

    A rank position is appended to the question text as ' [<rank>]'.
    """
    value = as_text(raw_value)
    if value is None:
        return None

    question = catalog.get_question(parsed.question_code)
    if question is None:
        return None

    question_text = question.display_text()
    if parsed.rank_code is not None:
        question_text = f"{question_text} [{parsed.rank_code}]"

    if parsed.sub_code is not None:
        sub = catalog.get_subquestion(question.id, parsed.subquestion_key)
        answer = sub.display_text() if sub else value
    elif is_subquestion_code(value):
        sub = catalog.get_subquestion(question.id, value)
        answer = sub.display_text() if sub else value
    else:
        option = catalog.get_answer_option(question.id, value)
        if option is not None:
            answer = option.display_text()
        else:
            answer = YES_NO_LABELS.get(value, value)

    return EnrichedAnswer(question=question_text, answer=answer, field_code=field_code)
