"""Tests for response field code parsing."""

import pytest

from limesurvey_webhook.field_codes import is_subquestion_code, parse_field_code
from limesurvey_webhook.models import ParsedFieldCode


class TestParseFieldCode:
    def test_plain_question(self):
        assert parse_field_code("G2Q00002") == ParsedFieldCode("G2Q00002")

    def test_subquestion(self):
        parsed = parse_field_code("G1Q00001_SQ003")
        assert parsed.question_code == "G1Q00001"
        assert parsed.sub_code == "003"
        assert parsed.rank_code is None

    def test_subquestion_key_matches_catalog_code(self):
        assert parse_field_code("G1Q00001_SQ003").subquestion_key == "SQ003"

    def test_rank(self):
        parsed = parse_field_code("G5Q00005_2")
        assert parsed == ParsedFieldCode("G5Q00005", None, "2")
        assert parsed.subquestion_key is None

    def test_subquestion_and_rank(self):
        assert parse_field_code("Q1_SQ010_3") == ParsedFieldCode("Q1", "010", "3")

    @pytest.mark.parametrize(
        "field_code",
        [
            "G3Q00003_comment",
            "G3Q00003_other",
            "Q1_SQ",
            "Q1_",
            "",
            "Q-1",
            "Q1 SQ001",
            "123X4X56SQ001#0",
        ],
    )
    def test_unparseable_returns_none(self, field_code):
        assert parse_field_code(field_code) is None

    def test_non_string_returns_none(self):
        assert parse_field_code(None) is None
        assert parse_field_code(12) is None


class TestIsSubquestionCode:
    def test_matches(self):
        assert is_subquestion_code("SQ045") is True

    def test_rejects_other_values(self):
        assert is_subquestion_code("SQ") is False
        assert is_subquestion_code("A1") is False
        assert is_subquestion_code("sq045") is False
        assert is_subquestion_code("SQ045 ") is False
