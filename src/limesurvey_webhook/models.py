"""
Data models for the survey completion webhook.

Read-only snapshots of survey structure plus the transient values built
while handling one completed response. Nothing here is cached between events.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

# Field code -> raw value, in the column order of the response table
RawResponse = Mapping[str, Any]


class Richness(str, Enum):
    """How much of the response the outbound payload carries.

    RAW: the response record exactly as stored
    CODED: raw record plus the question and choice rows of the survey
    LABELED: enriched question/answer pairs only
    FULL: raw record and enriched pairs
    """

    RAW = "raw"
    CODED = "coded"
    LABELED = "labeled"
    FULL = "full"

    @property
    def needs_catalog(self) -> bool:
        return self is not Richness.RAW

    @property
    def includes_answers(self) -> bool:
        return self in (Richness.LABELED, Richness.FULL)

    @property
    def includes_response(self) -> bool:
        return self is not Richness.LABELED


@dataclass(frozen=True)
class Question:
    """
    One row of a survey's question table with its localized text.

    parent_id == 0 marks a top-level question. Any other value is the id of
    the top-level question this subquestion (matrix row, choice) belongs to.
    """

    id: int
    survey_id: int
    parent_id: int
    type: str
    code: str
    text: str | None = None
    language: str | None = None

    @property
    def is_top_level(self) -> bool:
        return self.parent_id == 0

    def display_text(self) -> str:
        """Localized text, or the code when no text exists."""
        return self.text or self.code

    def to_question_row(self) -> dict[str, Any]:
        return {
            "qid": self.id,
            "sid": self.survey_id,
            "parent_qid": self.parent_id,
            "type": self.type,
            "question_code": self.code,
            "question_text": self.text,
            "language": self.language,
        }

    def to_choice_row(self) -> dict[str, Any]:
        return {
            "qid": self.id,
            "sid": self.survey_id,
            "parent_qid": self.parent_id,
            "type": self.type,
            "answer_code": self.code,
            "answer_text": self.text,
            "language": self.language,
        }


@dataclass(frozen=True)
class AnswerOption:
    """Label of one predefined answer of a list, dropdown or ranking question."""

    question_id: int
    code: str
    text: str | None = None
    language: str | None = None

    def display_text(self) -> str:
        return self.text or self.code


@dataclass(frozen=True)
class ParsedFieldCode:
    """Decoded response column name: question code plus optional subquestion and rank."""

    question_code: str
    sub_code: str | None = None
    rank_code: str | None = None

    @property
    def subquestion_key(self) -> str | None:
        """Catalog lookup key for the subquestion, e.g. 'SQ003'."""
        if self.sub_code is None:
            return None
        return f"SQ{self.sub_code}"


@dataclass(frozen=True)
class EnrichedAnswer:
    """Human-readable question/answer pair."""

    question: str
    answer: str
    field_code: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"question": self.question, "answer": self.answer}


@dataclass(frozen=True)
class Participant:
    """Survey participant resolved from the response token."""

    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Participant":
        return cls(
            first_name=row.get("firstname"),
            last_name=row.get("lastname"),
            email=row.get("email"),
        )

    def to_dict(self) -> dict[str, str | None]:
        return {
            "firstname": self.first_name,
            "lastname": self.last_name,
            "email": self.email,
        }


@dataclass
class DispatchResult:
    """Outcome of one webhook POST."""

    success: bool
    status: int | None = None
    body: str | None = None
    error: Exception | None = None
    elapsed_seconds: float = 0.0

    @property
    def remote_response(self) -> str:
        """Response body as logged: the body, or a failure indicator."""
        if self.body is not None:
            return self.body
        if self.error is not None:
            return f"<failed: {self.error}>"
        return "<no response>"
