"""Shared fixtures for webhook tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from limesurvey_webhook.catalog import QuestionCatalog
from limesurvey_webhook.config import WebhookConfig
from limesurvey_webhook.models import AnswerOption, DispatchResult, Participant, Question

SURVEY_ID = 42


def _survey_questions():
    return [
        Question(1, SURVEY_ID, 0, "M", "G1Q00001", "How satisfied are you?", "en"),
        Question(2, SURVEY_ID, 1, "T", "SQ001", "Product quality", "en"),
        Question(3, SURVEY_ID, 1, "T", "SQ003", "Support quality", "en"),
        Question(4, SURVEY_ID, 0, "Y", "G2Q00002", "Would you recommend us?", "en"),
        Question(5, SURVEY_ID, 0, "S", "G3Q00003", "<p>Any <b>comments</b>?</p>", "en"),
        Question(6, SURVEY_ID, 0, "L", "G4Q00004", "Favourite colour", "en"),
        Question(7, SURVEY_ID, 0, "R", "G5Q00005", "Rank the channels", "en"),
    ]


def _answer_options():
    return [
        AnswerOption(6, "A1", "Red", "en"),
        AnswerOption(6, "A2", "Blue", "en"),
        AnswerOption(7, "A1", "Email", "en"),
        AnswerOption(7, "A2", "Phone", "en"),
    ]


@pytest.fixture
def questions():
    return _survey_questions()


@pytest.fixture
def answer_options():
    return _answer_options()


@pytest.fixture
def catalog(questions, answer_options):
    return QuestionCatalog(SURVEY_ID, questions, answer_options, language="en")


@pytest.fixture
def raw_response():
    return {
        "id": 7,
        "submitdate": "2026-10-19 10:15:00",
        "lastpage": 3,
        "startlanguage": "en",
        "seed": "12345",
        "token": "tok123",
        "G1Q00001_SQ003": "1",
        "G1Q00001_SQ001": "",
        "G2Q00002": "Y",
        "G3Q00003": "Great service",
        "G3Q00003_comment": "ignored",
        "G4Q00004": "A2",
        "G5Q00005_1": "A2",
        "G5Q00005_2": "A1",
    }


class FakeSurveyStore:
    """In-memory SurveyStore."""

    def __init__(self, responses=None, participants=None, questions=(), answer_options=()):
        self.responses = responses or {}
        self.participants = participants or {}
        self.questions = list(questions)
        self.answer_options = list(answer_options)
        self.calls = []

    async def get_response(self, survey_id, response_id):
        self.calls.append(("get_response", survey_id, response_id))
        return self.responses.get((survey_id, response_id))

    async def query_participant(self, survey_id, token):
        self.calls.append(("query_participant", survey_id, token))
        return self.participants.get((survey_id, token))

    async def query_questions(self, survey_id, language=None):
        self.calls.append(("query_questions", survey_id, language))
        return [q for q in self.questions if q.survey_id == survey_id]

    async def query_answer_options(self, survey_id, language=None):
        self.calls.append(("query_answer_options", survey_id, language))
        return list(self.answer_options)


@pytest.fixture
def fake_store(raw_response, questions, answer_options):
    return FakeSurveyStore(
        responses={(SURVEY_ID, 7): raw_response},
        participants={(SURVEY_ID, "tok123"): Participant("Ada", "Lovelace", "ada@example.com")},
        questions=questions,
        answer_options=answer_options,
    )


@pytest.fixture
def webhook_config():
    return WebhookConfig(
        target_url="https://hooks.example.com/survey",
        survey_ids=frozenset({10, 20, 30, SURVEY_ID}),
        auth_token="secret-token",
    )


@pytest.fixture
def mock_dispatcher():
    dispatcher = MagicMock()
    dispatcher.target_url = "https://hooks.example.com/survey"
    dispatcher.serialize = MagicMock(side_effect=lambda payload: str(payload))
    dispatcher.dispatch = AsyncMock(
        return_value=DispatchResult(success=True, status=200, body="ok", elapsed_seconds=0.01)
    )
    return dispatcher
