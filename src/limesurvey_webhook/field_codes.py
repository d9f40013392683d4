"""
Response field code parsing.

Survey response columns are named <question code>[_SQ<digits>][_<digits>]:
    G1Q00001          plain question
    G1Q00001_SQ003    subquestion SQ003 of G1Q00001
    G1Q00001_2        rank/position 2 of G1Q00001
    G1Q00001_SQ003_2  both

Anything else (system columns, "_other"/"_comment" columns) is unparseable
and the caller skips it.
"""

import re

from limesurvey_webhook.models import ParsedFieldCode

FIELD_CODE_PATTERN = re.compile(r"^([A-Za-z0-9]+)(?:_SQ(\d+))?(?:_(\d+))?$")

# Selected choice stored as the subquestion code itself
SUBQUESTION_CODE_PATTERN = re.compile(r"^SQ(\d+)$")


def parse_field_code(field_code: str) -> ParsedFieldCode | None:
    """Decode a response column name.

    Returns:
        ParsedFieldCode, or None when the name does not follow the grammar
    """
    if not isinstance(field_code, str):
        return None

    match = FIELD_CODE_PATTERN.match(field_code)
    if not match:
        return None

    question_code, sub_code, rank_code = match.groups()
    return ParsedFieldCode(
        question_code=question_code,
        sub_code=sub_code,
        rank_code=rank_code,
    )


def is_subquestion_code(value: str) -> bool:
    """True when value looks like a subquestion code (e.g. 'SQ045')."""
    return bool(SUBQUESTION_CODE_PATTERN.match(value))
