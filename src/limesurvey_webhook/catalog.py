"""
Question catalog for one survey.

Indexes the survey's questions so that top-level questions can be found by
code and subquestions by (parent id, code). Built fresh for every event from
the rows the survey store returns.
"""

import html
import logging
import re
from collections.abc import Iterable
from dataclasses import replace

from limesurvey_webhook.models import AnswerOption, Question

logger = logging.getLogger(__name__)

_TAG_PATTERN = re.compile(r"<[^>]+>")
_BREAK_PATTERN = re.compile(r"<\s*(br|/p|/div|/li)\s*/?\s*>", re.IGNORECASE)
_WHITESPACE_PATTERN = re.compile(r"\s+")


def strip_html(text: str | None) -> str | None:
    """Reduce stored question HTML to plain text."""
    if not text:
        return text
    text = _BREAK_PATTERN.sub(" ", text)
    text = _TAG_PATTERN.sub("", text)
    text = html.unescape(text)
    return _WHITESPACE_PATTERN.sub(" ", text).strip()


def _pick_language(rows: Iterable, language: str | None, key) -> list:
    """Keep one row per key: the requested language if present, else the first seen."""
    chosen: dict = {}
    for row in rows:
        k = key(row)
        current = chosen.get(k)
        if current is None:
            chosen[k] = row
        elif language and row.language == language and current.language != language:
            chosen[k] = row
    return list(chosen.values())


class QuestionCatalog:
    """
    Lookup structure over a survey's questions and answer options.

    Attributes:
        survey_id: Survey the catalog was built for
        language: Requested language (None means first row seen wins)
        rows: Question rows exactly as fetched, kept for the coded payload
    """

    def __init__(
        self,
        survey_id: int,
        questions: Iterable[Question] = (),
        answer_options: Iterable[AnswerOption] = (),
        language: str | None = None,
        clean_html: bool = True,
    ):
        self.survey_id = survey_id
        self.language = language
        self.rows: list[Question] = list(questions)

        self._by_code: dict[str, Question] = {}
        self._children: dict[int, dict[str, Question]] = {}
        self._options: dict[int, dict[str, AnswerOption]] = {}

        for question in _pick_language(self.rows, language, key=lambda q: q.id):
            if clean_html:
                question = replace(question, text=strip_html(question.text))
            if question.is_top_level:
                self._by_code.setdefault(question.code, question)
            else:
                self._children.setdefault(question.parent_id, {}).setdefault(
                    question.code, question
                )

        for option in _pick_language(
            answer_options, language, key=lambda o: (o.question_id, o.code)
        ):
            if clean_html:
                option = replace(option, text=strip_html(option.text))
            self._options.setdefault(option.question_id, {})[option.code] = option

    def __len__(self) -> int:
        return len(self._by_code)

    @property
    def is_empty(self) -> bool:
        return not self._by_code

    @property
    def subquestion_count(self) -> int:
        return sum(len(children) for children in self._children.values())

    @property
    def answer_option_count(self) -> int:
        return sum(len(options) for options in self._options.values())

    def get_question(self, code: str) -> Question | None:
        return self._by_code.get(code)

    def get_subquestion(self, parent_id: int, code: str) -> Question | None:
        return self._children.get(parent_id, {}).get(code)

    def get_answer_option(self, question_id: int, code: str) -> AnswerOption | None:
        return self._options.get(question_id, {}).get(code)

    def question_text(self, code: str) -> str:
        """Text of a top-level question, falling back to its code."""
        question = self._by_code.get(code)
        return question.display_text() if question else code

    def question_rows(self) -> list[dict]:
        return [q.to_question_row() for q in self.rows if q.is_top_level]

    def choice_rows(self) -> list[dict]:
        return [q.to_choice_row() for q in self.rows if not q.is_top_level]


async def load_catalog(
    store,
    survey_id: int,
    language: str | None = None,
    clean_html: bool = True,
) -> QuestionCatalog:
    """Fetch questions and answer options for a survey and index them.

    A survey without questions yields an empty catalog.

    Args:
        store: SurveyStore to read from
        survey_id: Survey to load
        language: Preferred language for question text
        clean_html: Strip HTML markup from question and answer text
    """
    questions = await store.query_questions(survey_id, language)
    answer_options = await store.query_answer_options(survey_id, language)

    catalog = QuestionCatalog(
        survey_id,
        questions,
        answer_options,
        language=language,
        clean_html=clean_html,
    )

    logger.debug(
        "Question catalog loaded",
        extra={
            "questions_count": len(catalog),
            "subquestions_count": catalog.subquestion_count,
            "answer_options_count": catalog.answer_option_count,
            "language": language,
        },
    )
    if catalog.is_empty:
        logger.info("Survey has no questions", extra={"language": language})

    return catalog
