"""
Survey data access.

SurveyStore is the read interface the webhook needs from the survey
platform. SqlSurveyStore implements it against a LimeSurvey database with
SQLAlchemy's asyncio engine. All values travel as bound parameters; the only
interpolated identifiers are the table prefix (validated at config load) and
integer survey ids.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from core.errors.exceptions import StoreError
from limesurvey_webhook.models import AnswerOption, Participant, Question

logger = logging.getLogger(__name__)

TABLE_PREFIX_PATTERN = re.compile(r"^[A-Za-z0-9_]*$")

# <sid>X<gid>X<qid><suffix>
SGQA_PATTERN = re.compile(r"^(\d+)X(\d+)X(\d+)(.*)$")


@runtime_checkable
class SurveyStore(Protocol):
    """Read access to responses, participants and survey structure."""

    async def get_response(self, survey_id: int, response_id: int) -> dict[str, Any] | None:
        ...

    async def query_participant(self, survey_id: int, token: str) -> Participant | None:
        ...

    async def query_questions(self, survey_id: int, language: str | None = None) -> list[Question]:
        ...

    async def query_answer_options(
        self, survey_id: int, language: str | None = None
    ) -> list[AnswerOption]:
        ...


def _survey_id(value: Any) -> int:
    """Coerce a survey id to int before it is used in a table name."""
    if isinstance(value, bool):
        raise StoreError(f"Invalid survey id: {value!r}")
    try:
        survey_id = int(value)
    except (TypeError, ValueError) as e:
        raise StoreError(f"Invalid survey id: {value!r}", cause=e) from e
    if survey_id <= 0:
        raise StoreError(f"Invalid survey id: {value!r}")
    return survey_id


# Question types whose answer columns carry a numeric position after the qid
NUMBERED_COLUMN_TYPES = frozenset({"R"})


@dataclass(frozen=True)
class ColumnQuestion:
    """Top-level question as addressed by response column names."""

    group_id: int
    code: str
    type: str = ""

    @property
    def has_numbered_columns(self) -> bool:
        return self.type in NUMBERED_COLUMN_TYPES


def _field_code_for(
    column: str,
    survey_id: int,
    questions: Mapping[int, ColumnQuestion],
) -> str | None:
    match = SGQA_PATTERN.match(column)
    if match is None or int(match.group(1)) != survey_id:
        return None

    group_id = int(match.group(2))
    digits, rest = match.group(3), match.group(4)

    # qid and rank position share one digit run: try the longest qid first
    for end in range(len(digits), 0, -1):
        question = questions.get(int(digits[:end]))
        if question is None or question.group_id != group_id:
            continue
        position = digits[end:]
        if position and not question.has_numbered_columns:
            continue
        suffix = position + rest
        return f"{question.code}_{suffix}" if suffix else question.code
    return None


def translate_sgqa_columns(
    row: Mapping[str, Any],
    survey_id: int,
    questions: Mapping[int, ColumnQuestion],
) -> dict[str, Any]:
    """Rename <sid>X<gid>X<qid><suffix> columns to question-code field codes.

    A column belongs to a question only when both qid and group id match.
    Digits after the qid are a position only for ranking questions, where
    they become '<code>_<position>'. Other suffixes become '<code>_<suffix>'.
    Unknown or foreign columns keep their name, as does any column whose
    translated name is already taken.
    """
    translated: dict[str, Any] = {}
    for column, value in row.items():
        new_name = _field_code_for(column, survey_id, questions) or column
        if new_name in translated:
            logger.warning(
                "Response column name already taken, keeping column name",
                extra={"field_code": new_name, "column": column},
            )
            new_name = column
        translated[new_name] = value
    return translated


class SqlSurveyStore:
    """
    SurveyStore backed by a LimeSurvey database.

    Tables used (prefix 'lime_' by default):
        survey_<sid>       responses
        tokens_<sid>       participants
        questions          question structure
        question_l10ns     localized question text
        answers            predefined answer codes
        answer_l10ns       localized answer labels
    """

    def __init__(self, engine: AsyncEngine, table_prefix: str = "lime_"):
        if not TABLE_PREFIX_PATTERN.match(table_prefix):
            raise ValueError(f"Invalid table prefix: {table_prefix!r}")
        self._engine = engine
        self.table_prefix = table_prefix

    @classmethod
    def from_url(cls, url: str, table_prefix: str = "lime_", **engine_kwargs) -> "SqlSurveyStore":
        engine_kwargs.setdefault("pool_pre_ping", True)
        return cls(create_async_engine(url, **engine_kwargs), table_prefix=table_prefix)

    async def close(self) -> None:
        await self._engine.dispose()

    def _table(self, name: str) -> str:
        return f"{self.table_prefix}{name}"

    async def _fetch_all(self, sql: str, params: dict[str, Any], operation: str) -> list[dict]:
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(text(sql), params)
                return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            raise StoreError(
                f"Survey store query failed: {operation}",
                cause=e,
                context={"operation": operation},
            ) from e

    async def _column_questions(self, survey_id: int) -> dict[int, ColumnQuestion]:
        rows = await self._fetch_all(
            f"SELECT qid, gid, title, type FROM {self._table('questions')} "
            "WHERE sid = :sid AND parent_qid = 0",
            {"sid": survey_id},
            "column_questions",
        )
        return {
            int(row["qid"]): ColumnQuestion(
                group_id=int(row["gid"]), code=row["title"], type=row["type"] or ""
            )
            for row in rows
        }

    async def get_response(self, survey_id: int, response_id: int) -> dict[str, Any] | None:
        """Fetch one response with question-code column names.

        Returns:
            Column -> value mapping in table order, or None if no such response
        """
        sid = _survey_id(survey_id)
        rows = await self._fetch_all(
            f"SELECT * FROM {self._table(f'survey_{sid}')} WHERE id = :rid",
            {"rid": int(response_id)},
            "get_response",
        )
        if not rows:
            return None

        questions = await self._column_questions(sid)
        return translate_sgqa_columns(rows[0], sid, questions)

    async def query_participant(self, survey_id: int, token: str) -> Participant | None:
        """Look up a participant by access token. Missing token or record: None."""
        if not token:
            return None
        sid = _survey_id(survey_id)
        rows = await self._fetch_all(
            f"SELECT firstname, lastname, email FROM {self._table(f'tokens_{sid}')} "
            "WHERE token = :token LIMIT 1",
            {"token": token},
            "query_participant",
        )
        return Participant.from_row(rows[0]) if rows else None

    async def query_questions(self, survey_id: int, language: str | None = None) -> list[Question]:
        """All questions and subquestions of a survey with localized text.

        With a language, questions lacking that translation come back with
        text None. Without one, every translation row is returned.
        """
        sid = _survey_id(survey_id)
        params: dict[str, Any] = {"sid": sid}
        join = "ql.qid = q.qid"
        if language:
            join += " AND ql.language = :language"
            params["language"] = language

        rows = await self._fetch_all(
            "SELECT q.qid, q.sid, q.parent_qid, q.type, q.title, "
            "ql.question, ql.language "
            f"FROM {self._table('questions')} q "
            f"LEFT JOIN {self._table('question_l10ns')} ql ON {join} "
            "WHERE q.sid = :sid "
            "ORDER BY q.parent_qid, q.question_order, q.qid",
            params,
            "query_questions",
        )
        return [
            Question(
                id=int(row["qid"]),
                survey_id=int(row["sid"]),
                parent_id=int(row["parent_qid"] or 0),
                type=row["type"],
                code=row["title"],
                text=row["question"],
                language=row["language"],
            )
            for row in rows
        ]

    async def query_answer_options(
        self, survey_id: int, language: str | None = None
    ) -> list[AnswerOption]:
        """Predefined answer codes and labels of every question in a survey."""
        sid = _survey_id(survey_id)
        params: dict[str, Any] = {"sid": sid}
        join = "al.aid = a.aid"
        if language:
            join += " AND al.language = :language"
            params["language"] = language

        rows = await self._fetch_all(
            "SELECT a.qid, a.code, al.answer, al.language "
            f"FROM {self._table('answers')} a "
            f"JOIN {self._table('questions')} q ON q.qid = a.qid "
            f"LEFT JOIN {self._table('answer_l10ns')} al ON {join} "
            "WHERE q.sid = :sid "
            "ORDER BY a.qid, a.scale_id, a.sortorder",
            params,
            "query_answer_options",
        )
        return [
            AnswerOption(
                question_id=int(row["qid"]),
                code=row["code"],
                text=row["answer"],
                language=row["language"],
            )
            for row in rows
        ]
